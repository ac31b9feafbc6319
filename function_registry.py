"""
Registry of named-function numeric evaluators.

The numeric evaluator never reaches out to a module by name at call time;
it asks the registry it was handed.  The default registry is assembled once,
on first use, from the trigonometric and elementary function families.
"""
from functools import lru_cache
from typing import Callable, Dict, Iterable, Optional

from exact_arithmetic import ExactNumber

Evaluator = Callable[..., ExactNumber]


class FunctionRegistry:
    """Immutable name -> evaluator table.  `with_function` returns a copy."""

    def __init__(self, evaluators: Optional[Dict[str, Evaluator]] = None):
        self._evaluators: Dict[str, Evaluator] = dict(evaluators or {})

    def lookup(self, name: str) -> Optional[Evaluator]:
        return self._evaluators.get(name)

    def with_function(self, name: str, fn: Evaluator) -> "FunctionRegistry":
        table = dict(self._evaluators)
        table[name] = fn
        return FunctionRegistry(table)

    def names(self) -> Iterable[str]:
        return sorted(self._evaluators)

    def __contains__(self, name):
        return name in self._evaluators

    def __len__(self):
        return len(self._evaluators)


@lru_cache(maxsize=1)
def default_registry() -> FunctionRegistry:
    from elementary_engine import ElementaryEngine
    from trigonometry_engine import TrigonometryEngine

    table: Dict[str, Evaluator] = {}
    table.update(TrigonometryEngine.evaluators())
    table.update(ElementaryEngine.evaluators())
    return FunctionRegistry(table)
