"""
Taylor expansion by repeated differentiation.

    series_expand("sin", "x", 0, 5)        # x - x^3/6 + x^5/120

Coefficients are f^(k)(c) with c substituted exactly, so literal centres give
exact rational coefficients.  The shift (x - c) is kept factored.
"""
from math import factorial
from typing import Union

from abc_engines import MathEngine
from derivative_engine import DerivativeEngine
from errors import DOMAIN, SERIES_UNIMPLEMENTED, EvaluationError, UnimplementedNode
from exact_arithmetic import make_rational
from expression_tree import (
    Add, Equation, Expression, Func, Limit, Matrix, Mul, Neg, Number, Pow,
    Series, Tensor, Variable, substitute, walk, wrap,
)
from simplify_engine import simplify

_UNSUPPORTED = (Tensor, Matrix, Equation, Limit, Series)


def is_singular(coeff: Expression) -> bool:
    """True when a coefficient still holds 1/0 or a logarithm of zero."""
    for node in walk(coeff):
        if isinstance(node, Pow) and isinstance(node.base, Number) and node.base.value.is_zero() \
                and isinstance(node.exp, Number) and node.exp.value.is_negative():
            return True
        if isinstance(node, Func) and node.name in ('ln', 'log', 'log2', 'log10') \
                and isinstance(node.args[0], Number) and node.args[0].value.is_zero():
            return True
    return False


class SeriesEngine(MathEngine):
    """Builds truncated Taylor polynomials."""

    def compute(self, expr):
        if not isinstance(expr, Series):
            raise UnimplementedNode(SERIES_UNIMPLEMENTED, f"expected a series node, got {type(expr).__name__}")
        return self.expand(expr.expr, expr.var, expr.center, expr.order)

    def expand(self, func: Union[str, Expression], var: Union[str, Variable], center, order: int) -> Expression:
        x = var if isinstance(var, Variable) else Variable(var)
        f = Func(func, (x,)) if isinstance(func, str) else func
        center = wrap(center)
        if order < 0:
            raise ValueError(f"series order must be non-negative, got {order}")
        if any(isinstance(n, _UNSUPPORTED) for n in walk(f)):
            raise UnimplementedNode(SERIES_UNIMPLEMENTED, f"cannot expand {f}")

        self._add_traceback('series', f'{f} about {x.name} = {center}, order {order}')
        shift = x if center == Number(0) else Add((x, Neg(center)))
        differentiator = DerivativeEngine(self.environment)
        terms = []
        current = f
        for k in range(order + 1):
            coeff = simplify(substitute(current, x, center), environment=self.environment)
            if is_singular(coeff):
                raise EvaluationError(DOMAIN, f"{f} is not analytic at {x.name} = {center}")
            if coeff != Number(0):
                terms.append(Mul((coeff, Number(make_rational(1, factorial(k))), Pow(shift, Number(k)))))
            if k < order:
                current, _ = differentiator.differentiate(current, x.name)
        self._add_traceback('series', f'{len(terms)} non-zero term(s)')
        if not terms:
            return Number(0)
        return simplify(Add(tuple(terms)), expand=False, environment=self.environment)


def series_expand(func: Union[str, Expression], var: Union[str, Variable], center, order: int,
                  environment=None) -> Expression:
    return SeriesEngine(environment).expand(func, var, center, order)
