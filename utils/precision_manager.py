"""
Central precision switch for numeric evaluation.
REPL (or tests) may call set_dps(value) to change precision; the evaluator
and the integrator's numeric checks only *read* it through get_dps().
Symbolic work is exact and never consults this value.
"""
from typing import List
from mpmath import mp

_PRESETS: List[int] = [15, 30, 50, 100, 1000]   # machine-ish, default + 3 bigger ones
_DEFAULT = 30
_CURRENT = _DEFAULT


def get_dps() -> int:
    """Return the active decimal-places setting."""
    return _CURRENT


def set_dps(value: int) -> None:
    """Set global precision if value is one of the approved presets."""
    global _CURRENT
    if value not in _PRESETS:
        raise ValueError(f"dps {value} not allowed; choose one of {_PRESETS}")
    _CURRENT = value
    mp.dps = value


def reset_dps() -> None:
    set_dps(_DEFAULT)


def presets() -> List[int]:
    return _PRESETS.copy()
