"""
Limits at a finite point.

    engine = LimitEngine()
    engine.limit(parse("sin(x)/x"), "x", Number(0))         # 1

Three attempts, first success wins:

    1. exact substitution of the point, then simplify
    2. L'Hôpital's rule on a 0/0 quotient (numerator and denominator
       differentiated separately, at most MAX_LHOPITAL times)
    3. two-sided numeric approach at the working precision, snapped to a
       small rational when both sides agree on one

A limit none of them settles comes back as the Limit marker unchanged.
"""
from typing import Optional, Tuple

from mpmath import mp

from abc_engines import MathEngine
from derivative_engine import DerivativeEngine
from errors import CASError
from exact_arithmetic import Float, make_rational
from expression_tree import (
    Div, Expression, Func, Limit, Mul, Number, Pow, Variable, depends_on,
    free_variables, mul, substitute, walk, wrap,
)
from numeric_evaluator import NumericEvaluator
from series_engine import is_singular
from simplify_engine import simplify
from utils.precision_manager import get_dps

MAX_LHOPITAL = 5

_SNAP_DENOMINATORS = range(1, 13)


def split_quotient(e: Expression) -> Tuple[Expression, Optional[Expression]]:
    """(numerator, denominator); the denominator is None when nothing is divided."""
    if isinstance(e, Div):
        return e.left, e.right
    factors = e.factors if isinstance(e, Mul) else (e,)
    numer, denom = [], []
    for f in factors:
        if isinstance(f, Pow) and isinstance(f.exp, Number) and f.exp.value.is_negative():
            power = -f.exp.value
            denom.append(f.base if power.is_one() else Pow(f.base, Number(power)))
        else:
            numer.append(f)
    if not denom:
        return e, None
    return mul(*numer), mul(*denom)


class LimitEngine(MathEngine):
    """Evaluates lim(expr, var, point) for a finite point."""

    def compute(self, expr):
        if not isinstance(expr, Limit):
            raise TypeError(f"expected a limit node, got {type(expr).__name__}")
        return self.limit(expr.expr, expr.var, expr.point)

    def limit(self, expr: Expression, var: str, point) -> Expression:
        point = wrap(point)
        self._add_traceback('limit', f'{expr} as {var} -> {point}')
        result = self._limit(expr, var, point, 0)
        if result is None:
            self._add_traceback('unevaluated', f'no method settled lim({expr}, {var}, {point})')
            return Limit(expr, var, point)
        self._add_traceback('limit', f'= {result}')
        return result

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _simplify(self, e: Expression, expand: bool = True) -> Expression:
        return simplify(e, expand=expand, environment=self.environment)

    def _value_at(self, e: Expression, x: str, point: Expression) -> Optional[Expression]:
        """Exact value of e at the point, or None where it is singular there."""
        replaced = substitute(e, Variable(x), point)
        if is_singular(replaced):
            return None
        try:
            value = self._simplify(replaced)
        except CASError:
            return None
        if is_singular(value):
            return None
        if not free_variables(value) - {'pi', 'e'}:
            try:
                NumericEvaluator(self.environment).evaluate(value)
            except CASError:
                return None
        return value

    def _is_zero(self, value: Expression) -> bool:
        if isinstance(value, Number):
            return value.value.is_zero()
        if free_variables(value) - {'pi', 'e'}:
            return False
        try:
            number = NumericEvaluator(self.environment).evaluate(value).to_mpf()
        except CASError:
            return False
        return mp.fabs(number) < mp.mpf(10) ** (-(get_dps() - 5))

    def _derivative(self, e: Expression, x: str) -> Expression:
        result, _ = DerivativeEngine(self.environment).differentiate(e, x)
        return result

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #
    def _limit(self, expr: Expression, x: str, point: Expression, depth: int) -> Optional[Expression]:
        f = self._simplify(expr, expand=False)
        if not depends_on(f, x):
            return f

        numer, denom = split_quotient(f)
        if denom is None or not depends_on(denom, x):
            value = self._value_at(f, x, point)
            if value is not None:
                self._add_traceback('limit', 'direct substitution')
                return value
        else:
            top = self._value_at(numer, x, point)
            bottom = self._value_at(denom, x, point)
            if top is not None and bottom is not None:
                if not self._is_zero(bottom):
                    self._add_traceback('limit', 'direct substitution')
                    return self._simplify(Mul((top, Pow(bottom, Number(-1)))))
                if self._is_zero(top) and depth < MAX_LHOPITAL:
                    self._add_traceback('lhopital', f'0/0 at {x} = {point}, pass {depth + 1}')
                    ratio = Mul((self._derivative(numer, x), Pow(self._derivative(denom, x), Number(-1))))
                    found = self._limit(ratio, x, point, depth + 1)
                    if found is not None:
                        return found

        return self._two_sided(f, x, point)

    def _two_sided(self, f: Expression, x: str, point: Expression) -> Optional[Expression]:
        """Approach from both sides numerically; None unless the sides agree."""
        if free_variables(f) - {x, 'pi', 'e'} or any(isinstance(n, Func) and n.name in ('diff', 'int')
                                                     for n in walk(f)):
            return None
        evaluator = NumericEvaluator(self.environment)
        dps = get_dps()
        with mp.workdps(dps):
            try:
                at = evaluator.evaluate(point).to_mpf()
                delta = mp.mpf(10) ** (-(dps // 2))
                left = evaluator.evaluate(f, {x: Float(at - delta)}).to_mpf()
                right = evaluator.evaluate(f, {x: Float(at + delta)}).to_mpf()
            except CASError:
                return None
            tol = mp.mpf(10) ** (-(dps // 4))
            if mp.fabs(left - right) > tol * max(mp.fabs(left), mp.mpf(1)):
                return None
            mean = (left + right) / 2
            self._add_traceback('limit', f'two-sided numeric approach agrees: {mp.nstr(mean, 15)}')
            snapped = self._snap(mean, mp.mpf(10) ** (-(dps // 3)))
            if snapped is not None:
                return snapped
            return Number(self._real_number(mean, f'lim at {point}'))

    @staticmethod
    def _snap(value, tol) -> Optional[Expression]:
        for den in _SNAP_DENOMINATORS:
            scaled = value * den
            nearest = mp.nint(scaled)
            if mp.fabs(scaled - nearest) < tol * den:
                return Number(make_rational(int(nearest), den))
        return None


def limit(expr: Expression, var: str, point, environment=None) -> Expression:
    return LimitEngine(environment).limit(expr, var, point)
