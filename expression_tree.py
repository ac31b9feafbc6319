"""
Expression tree model shared by every engine.

Nodes are frozen dataclasses: structural equality and hashing come for free
and no engine can mutate a tree a caller still holds.  The variant set is
closed; every consumer dispatches on the concrete class.

Arithmetic operators on nodes only *build* trees (``x * 2`` is
``Mul((x, Number(2)))``); nothing is simplified until the simplifier runs.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from functools import lru_cache
from typing import Callable, Iterator, Tuple

from exact_arithmetic import ExactNumber, to_exact
from errors import InternalInvariantViolation

# Hard ceiling for the recursive helpers in this module.
MAX_TREE_DEPTH = 150


@dataclass(frozen=True)
class Expression:
    """Base of the closed node union."""

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _CHILD_FIELDS and not isinstance(value, Expression):
                raise InternalInvariantViolation(
                    f"{type(self).__name__}.{f.name} must be an Expression, got {value!r}")
            if f.name in _SEQUENCE_FIELDS:
                value = tuple(value)
                for item in value:
                    if not isinstance(item, Expression):
                        raise InternalInvariantViolation(
                            f"{type(self).__name__}.{f.name} holds non-Expression {item!r}")
                object.__setattr__(self, f.name, value)

    # display capability ------------------------------------------------
    def display(self) -> str:
        from expression_printer import to_display_string
        return to_display_string(self)

    def __str__(self):
        return self.display()

    # tree-building operators ------------------------------------------
    def __add__(self, other):
        return Add((self, wrap(other)))

    def __radd__(self, other):
        return Add((wrap(other), self))

    def __sub__(self, other):
        return Sub(self, wrap(other))

    def __rsub__(self, other):
        return Sub(wrap(other), self)

    def __mul__(self, other):
        return Mul((self, wrap(other)))

    def __rmul__(self, other):
        return Mul((wrap(other), self))

    def __truediv__(self, other):
        return Div(self, wrap(other))

    def __rtruediv__(self, other):
        return Div(wrap(other), self)

    def __pow__(self, other):
        return Pow(self, wrap(other))

    def __rpow__(self, other):
        return Pow(wrap(other), self)

    def __neg__(self):
        return Neg(self)


# Field names that must hold a single Expression / a sequence of them.
_CHILD_FIELDS = {"left", "right", "base", "exp", "arg", "expr", "point", "center", "value"}
_SEQUENCE_FIELDS = {"terms", "factors", "args", "elements"}


@dataclass(frozen=True)
class Number(Expression):
    value: ExactNumber

    def __post_init__(self):
        value = to_exact(self.value)
        if value is None:
            raise InternalInvariantViolation(f"Number needs a numeric payload, got {self.value!r}")
        object.__setattr__(self, "value", value)


@dataclass(frozen=True)
class Variable(Expression):
    name: str


@dataclass(frozen=True)
class Constant(Expression):
    """Named literal (physical constant) carrying its own expansion."""
    name: str
    value: Expression


@dataclass(frozen=True)
class Add(Expression):
    terms: Tuple[Expression, ...]


@dataclass(frozen=True)
class Mul(Expression):
    factors: Tuple[Expression, ...]


@dataclass(frozen=True)
class Sub(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Div(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Pow(Expression):
    base: Expression
    exp: Expression


@dataclass(frozen=True)
class Neg(Expression):
    arg: Expression


@dataclass(frozen=True)
class Func(Expression):
    name: str
    args: Tuple[Expression, ...]


@dataclass(frozen=True)
class Equation(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Tensor(Expression):
    """Rank-1 container; rank > 1 nests Tensors."""
    elements: Tuple[Expression, ...]


@dataclass(frozen=True)
class Matrix(Expression):
    rows: Tuple[Tuple[Expression, ...], ...]

    def __post_init__(self):
        rows = tuple(tuple(row) for row in self.rows)
        for row in rows:
            for item in row:
                if not isinstance(item, Expression):
                    raise InternalInvariantViolation(f"Matrix holds non-Expression {item!r}")
        object.__setattr__(self, "rows", rows)


@dataclass(frozen=True)
class UnevaluatedIntegral(Expression):
    expr: Expression
    var: str


@dataclass(frozen=True)
class Limit(Expression):
    expr: Expression
    var: str
    point: Expression


@dataclass(frozen=True)
class Series(Expression):
    """Deferred Taylor expansion of `expr` in `var` about `center`."""
    expr: Expression
    var: str
    center: Expression
    order: int


# ---------------------------------------------------------------------- #
# Constructors
# ---------------------------------------------------------------------- #
def wrap(value) -> Expression:
    if isinstance(value, Expression):
        return value
    number = to_exact(value)
    if number is None:
        raise InternalInvariantViolation(f"cannot use {value!r} as an expression")
    return Number(number)


def num(value) -> Number:
    return Number(value)


def var(name: str) -> Variable:
    return Variable(name)


def func(name: str, *args) -> Func:
    return Func(name, tuple(wrap(a) for a in args))


def add(*terms) -> Expression:
    """n-ary sum; collapses to the identity 0 or the lone term."""
    terms = tuple(wrap(t) for t in terms)
    if not terms:
        return Number(0)
    if len(terms) == 1:
        return terms[0]
    return Add(terms)


def mul(*factors) -> Expression:
    """n-ary product; collapses to the identity 1 or the lone factor."""
    factors = tuple(wrap(f) for f in factors)
    if not factors:
        return Number(1)
    if len(factors) == 1:
        return factors[0]
    return Mul(factors)


# ---------------------------------------------------------------------- #
# Generic traversal
# ---------------------------------------------------------------------- #
def children(e: Expression) -> Tuple[Expression, ...]:
    if isinstance(e, Add):
        return e.terms
    if isinstance(e, Mul):
        return e.factors
    if isinstance(e, (Sub, Div, Equation)):
        return e.left, e.right
    if isinstance(e, Pow):
        return e.base, e.exp
    if isinstance(e, Neg):
        return (e.arg,)
    if isinstance(e, Func):
        return e.args
    if isinstance(e, Tensor):
        return e.elements
    if isinstance(e, Matrix):
        return tuple(item for row in e.rows for item in row)
    if isinstance(e, UnevaluatedIntegral):
        return (e.expr,)
    if isinstance(e, Limit):
        return e.expr, e.point
    if isinstance(e, Series):
        return e.expr, e.center
    return ()


def rebuild(e: Expression, kids) -> Expression:
    """Same variant as `e` with its children replaced, in `children()` order."""
    kids = tuple(kids)
    if isinstance(e, Add):
        return Add(kids)
    if isinstance(e, Mul):
        return Mul(kids)
    if isinstance(e, (Sub, Div, Equation)):
        return type(e)(kids[0], kids[1])
    if isinstance(e, Pow):
        return Pow(kids[0], kids[1])
    if isinstance(e, Neg):
        return Neg(kids[0])
    if isinstance(e, Func):
        return Func(e.name, kids)
    if isinstance(e, Tensor):
        return Tensor(kids)
    if isinstance(e, Matrix):
        rows, at = [], 0
        for row in e.rows:
            rows.append(kids[at:at + len(row)])
            at += len(row)
        return Matrix(tuple(rows))
    if isinstance(e, UnevaluatedIntegral):
        return UnevaluatedIntegral(kids[0], e.var)
    if isinstance(e, Limit):
        return Limit(kids[0], e.var, kids[1])
    if isinstance(e, Series):
        return Series(kids[0], e.var, kids[1], e.order)
    return e


def map_children(e: Expression, fn: Callable[[Expression], Expression]) -> Expression:
    kids = children(e)
    if not kids:
        return e
    new = tuple(fn(k) for k in kids)
    if all(a is b for a, b in zip(kids, new)):
        return e
    return rebuild(e, new)


def walk(e: Expression) -> Iterator[Expression]:
    """Pre-order iteration without recursion."""
    stack = [e]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(children(node)))


def depth(e: Expression) -> int:
    best = 0
    stack = [(e, 1)]
    while stack:
        node, d = stack.pop()
        best = max(best, d)
        stack.extend((k, d + 1) for k in children(node))
    return best


def free_variables(e: Expression) -> frozenset:
    return frozenset(n.name for n in walk(e) if isinstance(n, Variable))


def depends_on(e: Expression, name: str) -> bool:
    return any(isinstance(n, Variable) and n.name == name for n in walk(e))


def substitute(e: Expression, target: Expression, replacement: Expression, _depth: int = 0) -> Expression:
    """Replace every subtree structurally equal to `target`."""
    if _depth > MAX_TREE_DEPTH:
        raise InternalInvariantViolation("expression nesting exceeds the traversal cap")
    if e == target:
        return replacement
    return map_children(e, lambda k: substitute(k, target, replacement, _depth + 1))


# ---------------------------------------------------------------------- #
# Canonical serialization (sort key)
# ---------------------------------------------------------------------- #
@lru_cache(maxsize=8192)
def serialize(e: Expression) -> str:
    """Structural serialization string; the total order behind canonical sorting."""
    if isinstance(e, Number):
        return "#" + e.value.serial()
    if isinstance(e, Variable):
        return "v:" + e.name
    if isinstance(e, Constant):
        return "c:" + e.name
    if isinstance(e, Pow):
        return serialize(e.base) + "^" + serialize(e.exp)
    if isinstance(e, Func):
        return "f:" + e.name + "(" + ",".join(serialize(a) for a in e.args) + ")"
    tag = {
        Add: "+", Mul: "*", Sub: "s", Div: "d", Neg: "-", Equation: "=",
        Tensor: "[", Matrix: "M", UnevaluatedIntegral: "I", Limit: "L", Series: "S",
    }[type(e)]
    extra = ""
    if isinstance(e, (UnevaluatedIntegral, Limit, Series)):
        extra = ";" + e.var
    if isinstance(e, Series):
        extra += ";" + str(e.order)
    return tag + "(" + ",".join(serialize(k) for k in children(e)) + extra + ")"


def is_tensor(e: Expression) -> bool:
    return isinstance(e, (Tensor, Matrix))


def sort_key(e: Expression):
    """Numbers first, tensors last (their relative order is preserved)."""
    if isinstance(e, Number):
        return 0, serialize(e)
    if is_tensor(e):
        return 2, ""
    return 1, serialize(e)
