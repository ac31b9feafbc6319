import traceback
import time
from typing import Any, Dict, List

# Oldest events are dropped past this many; rewrite loops can be chatty.
TRACE_LIMIT = 500


def add_traceback(obj, step: str, info: str, *, with_stack: bool = False) -> None:
    """
    Append a trace event to `obj.traceback_info`.

    Parameters
    ----------
    obj        : any engine that owns a `traceback_info` list.
    step, info : short label (e.g. 'simplify_pass') and free-form description.
    with_stack : include trimmed call-stack (default False).
    """
    if not hasattr(obj, "traceback_info"):
        raise AttributeError(f"{obj!r} has no attribute 'traceback_info'")

    event: Dict[str, Any] = {
        "step":       step,
        "info":       info,
        "timestamp":  time.time(),
    }
    if with_stack:
        # omit the last frame (this helper)
        event["stack"] = traceback.format_stack()[:-1]

    log = obj.traceback_info
    log.append(event)
    if len(log) > TRACE_LIMIT:
        del log[:len(log) - TRACE_LIMIT]


def merge_traceback(target, source) -> None:
    """Fold the events of a helper engine into `target`'s log, in order."""
    for event in getattr(source, "traceback_info", []):
        target.traceback_info.append(event)
    if len(target.traceback_info) > TRACE_LIMIT:
        del target.traceback_info[:len(target.traceback_info) - TRACE_LIMIT]


def format_traceback(obj, last: int = 10) -> List[str]:
    """Render the newest `last` events as `step: info` lines."""
    events = getattr(obj, "traceback_info", [])[-last:] if last else []
    return [f"{e['step']}: {e['info']}" for e in events]
