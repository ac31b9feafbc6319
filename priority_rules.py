# Centralised operator precedence for the parser and the printer
from expression_tree import (
    Add, Constant, Div, Equation, Expression, Func, Limit, Matrix, Mul, Neg,
    Number, Pow, Series, Sub, Tensor, UnevaluatedIntegral, Variable,
)

PRIORITY = {
    '=': 0,
    '+': 1, '-': 1,
    '*': 2, '/': 2,
    'neg': 3,
    '^': 4,
    '!': 5,
    'atom': 6,
}

RIGHT_ASSOCIATIVE = frozenset({'^', '='})


def precedence_of(token: str) -> int:
    return PRIORITY.get(token, 0)


def node_precedence(expr: Expression) -> int:
    """Binding strength of the operator at the root of `expr` as displayed."""
    if isinstance(expr, Equation):
        return PRIORITY['=']
    if isinstance(expr, (Add, Sub)):
        return PRIORITY['+']
    if isinstance(expr, (Mul, Div)):
        return PRIORITY['*']
    if isinstance(expr, Neg):
        return PRIORITY['neg']
    if isinstance(expr, Number):
        # a negative or fractional literal prints with a sign or a slash
        if expr.value.is_negative():
            return PRIORITY['neg']
        if expr.value.is_exact and not expr.value.is_integer():
            return PRIORITY['/']
        return PRIORITY['atom']
    if isinstance(expr, Pow):
        return PRIORITY['^']
    if isinstance(expr, Func) and expr.name == 'factorial':
        return PRIORITY['!']
    if isinstance(expr, (Variable, Constant, Func, Tensor, Matrix,
                         UnevaluatedIntegral, Limit, Series)):
        return PRIORITY['atom']
    return PRIORITY['atom']


def needs_parens(child: Expression, parent_op: str, *, right_side: bool = False) -> bool:
    """True when `child` must be wrapped to keep its meaning under `parent_op`."""
    child_prec = node_precedence(child)
    parent_prec = precedence_of(parent_op)
    if child_prec != parent_prec:
        return child_prec < parent_prec
    # equal strength: the non-associative side needs grouping
    if parent_op in RIGHT_ASSOCIATIVE:
        return not right_side
    return right_side
