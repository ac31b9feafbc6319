"""
Immutable call-time environment.

Replaces ambient global tables: the parser, the evaluator and the engines
all receive an Environment value holding the physical-constants table, the
category filter, the error-message provider and the function registry.
"""
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from errors import MessageProvider
from expression_tree import Constant, Expression, wrap
from function_registry import FunctionRegistry, default_registry


@dataclass(frozen=True)
class PhysicalConstant:
    name: str
    value: Expression
    description: str = ""
    unit: str = ""
    category: str = ""
    symbol: str = ""

    def __post_init__(self):
        object.__setattr__(self, "value", wrap(self.value))

    def as_node(self) -> Constant:
        return Constant(self.name, self.value)


@dataclass(frozen=True, eq=False)
class Environment:
    constants: Mapping[str, PhysicalConstant] = field(default_factory=dict)
    constant_categories: Optional[FrozenSet[str]] = None
    substitute_constants: bool = False
    messages: Optional[MessageProvider] = None
    functions: Optional[FunctionRegistry] = None

    def __post_init__(self):
        object.__setattr__(self, "constants", MappingProxyType(dict(self.constants)))
        if self.constant_categories is not None:
            object.__setattr__(self, "constant_categories", frozenset(self.constant_categories))

    @property
    def registry(self) -> FunctionRegistry:
        return self.functions if self.functions is not None else default_registry()

    def lookup_constant(self, name: str) -> Optional[PhysicalConstant]:
        """Constant to substitute for identifier `name`, honouring the category filter."""
        if not self.substitute_constants:
            return None
        const = self.constants.get(name)
        if const is None:
            return None
        if self.constant_categories is not None and const.category not in self.constant_categories:
            return None
        return const

    def message(self, kind: str) -> str:
        text = self.messages(kind) if self.messages is not None else None
        return text or kind

    def with_constants(self, constants: Mapping[str, PhysicalConstant], *,
                       categories: Optional[Iterable[str]] = None,
                       enabled: bool = True) -> "Environment":
        return replace(self, constants=constants,
                       constant_categories=None if categories is None else frozenset(categories),
                       substitute_constants=enabled)

    def with_messages(self, provider: Optional[MessageProvider]) -> "Environment":
        return replace(self, messages=provider)

    def with_functions(self, registry: FunctionRegistry) -> "Environment":
        return replace(self, functions=registry)


def constants_from_table(rows: Iterable[Dict[str, Any]]) -> Dict[str, PhysicalConstant]:
    """Build a constants mapping from plain dict rows (name, value, category, ...)."""
    table = {}
    for row in rows:
        const = PhysicalConstant(
            name=row["name"],
            value=row["value"],
            description=row.get("description", ""),
            unit=row.get("unit", ""),
            category=row.get("category", ""),
            symbol=row.get("symbol", row["name"]),
        )
        table[const.name] = const
    return table


DEFAULT_ENVIRONMENT = Environment()
