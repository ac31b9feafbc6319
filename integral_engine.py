"""
Heuristic symbolic integrator.

    engine = IntegralEngine()
    F = engine.integrate(parse("x*exp(x)"), "x")        # x exp(x) - exp(x)

Baseline rules run first and always: constants, termwise sums, constant
factors pulled out.  The remaining integrand is offered to the strategies in
a fixed order and the first closed form wins:

    1. substitution   f(g(x))·k·g'(x),  g(x)^n·g'(x)  (n = -1 -> ln|g|)
    2. rational       partial fractions, 1/(x^2 + c)
    3. trigonometric  squares of trig/hyperbolic functions of ax + b
    4. exponential    exp(ax + b)·sin/cos(cx + d)
    5. logarithmic    ln(g) by one parts step
    6. by parts       u chosen by LIATE priority

then an expansion fallback.  Nothing raises: an integrand no strategy closes
comes back as UnevaluatedIntegral(expr, var).  No "+ C" is added.
"""
from typing import List, Optional, Tuple

from mpmath import mp

from abc_engines import MathEngine
from derivative_engine import DerivativeEngine
from elementary_engine import ElementaryEngine
from errors import CASError
from exact_arithmetic import exact_power, make_rational
from expression_tree import (
    Add, Expression, Func, Mul, Number, Pow, UnevaluatedIntegral, Variable,
    depends_on, free_variables, substitute, walk,
)
from expression_tree import depth as tree_depth
from numeric_evaluator import NumericEvaluator
from simplify_engine import simplify
from trigonometry_engine import TrigonometryEngine
from utils.precision_manager import get_dps

MAX_INTEGRATION_DEPTH = 6
# Integrands nested deeper than this are returned unevaluated without simplifying.
MAX_INTEGRAND_DEPTH = 120

# Exact sample points for the numeric constancy check (inside (0, 1) so that
# asin/acos/sqrt(1 - x^2) style integrands stay in their real domain).
_SAMPLE_POINTS = (make_rational(2, 7), make_rational(3, 5), make_rational(5, 11))
_PARAMETER_VALUES = (make_rational(13, 7), make_rational(17, 11), make_rational(19, 13))

_LOG_NAMES = {'ln', 'log', 'log10', 'log2'}
_INVERSE_TRIG = {'asin', 'acos', 'atan', 'arcsin', 'arccos', 'arctan', 'asinh', 'acosh', 'atanh'}
_TRIG = {'sin', 'cos', 'tan', 'sec', 'csc', 'cot', 'sinh', 'cosh', 'tanh'}


def _neg(e: Expression) -> Expression:
    return Mul((Number(-1), e))


def _recip(e: Expression) -> Expression:
    return Pow(e, Number(-1))


def _ln_abs(e: Expression) -> Expression:
    return Func('ln', (Func('abs', (e,)),))


def _factors(e: Expression) -> List[Expression]:
    return list(e.factors) if isinstance(e, Mul) else [e]


def _product(factors) -> Expression:
    factors = tuple(factors)
    if not factors:
        return Number(1)
    return factors[0] if len(factors) == 1 else Mul(factors)


def liate_priority(e: Expression) -> int:
    """1 log, 2 inverse trig, 3 algebraic, 4 trig, 5 exponential, 6 anything else."""
    base = e.base if isinstance(e, Pow) else e
    if isinstance(base, Func):
        if base.name in _LOG_NAMES:
            return 1
        if base.name in _INVERSE_TRIG:
            return 2
        if base.name in _TRIG:
            return 4
        if base.name == 'exp':
            return 5
        return 6
    if isinstance(e, Pow) and isinstance(e.base, Number):
        return 5
    return 3


class IntegralEngine(MathEngine):
    """Integrates expression trees with respect to one variable."""

    def compute(self, expr, var: str = "x"):
        return self.integrate(expr, var)

    def integrate(self, expr: Expression, var: str) -> Expression:
        self._add_traceback('integrate', f'∫({expr}) d{var}')
        nesting = tree_depth(expr)
        if nesting > MAX_INTEGRAND_DEPTH:
            self._add_traceback('unevaluated', f'nesting {nesting} exceeds {MAX_INTEGRAND_DEPTH}')
            return UnevaluatedIntegral(expr, var)
        result = self._integrate(expr, var, 0)
        if result is None:
            self._add_traceback('unevaluated', f'no strategy closed ∫({expr}) d{var}')
            return UnevaluatedIntegral(self._simplify(expr), var)
        return self._simplify(result)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _simplify(self, e: Expression) -> Expression:
        return simplify(e, environment=self.environment)

    def _normal(self, e: Expression) -> Expression:
        return simplify(e, expand=False, environment=self.environment)

    def _derivative(self, e: Expression, x: str) -> Expression:
        result, _ = DerivativeEngine(self.environment).differentiate(e, x)
        return result

    def _linear(self, g: Expression, x: str) -> Optional[Tuple[Expression, Expression]]:
        """(a, b) with g = a·x + b, a non-zero and free of x; None otherwise."""
        try:
            a = self._derivative(g, x)
        except CASError:
            return None
        if depends_on(a, x) or a == Number(0):
            return None
        b = self._simplify(Add((g, _neg(Mul((a, Variable(x)))))))
        if depends_on(b, x):
            return None
        return a, b

    def _quadratic(self, q: Expression, x: str):
        """Exact (a, b, c) with q = a·x^2 + b·x + c and a non-zero; None otherwise."""
        try:
            first = self._derivative(q, x)
            second = self._derivative(first, x)
        except CASError:
            return None
        if not isinstance(second, Number) or second.value.is_zero():
            return None
        zero = Number(0)
        b = self._simplify(substitute(first, Variable(x), zero))
        c = self._simplify(substitute(q, Variable(x), zero))
        if not (isinstance(b, Number) and isinstance(c, Number)):
            return None
        a = second.value / 2
        if not all(v.is_exact for v in (a, b.value, c.value)):
            return None
        return a, b.value, c.value

    def _rational_roots(self, q: Expression, x: str):
        """(a, r1, r2) with q = a(x - r1)(x - r2) over the rationals; None otherwise."""
        coeffs = self._quadratic(q, x)
        if coeffs is None:
            return None
        a, b, c = coeffs
        disc = b * b - a * c * 4
        if disc.is_negative():
            return None
        root = exact_power(disc, make_rational(1, 2))
        if root is None:
            return None
        return a, (-b + root) / (a * 2), (-b - root) / (a * 2)

    def _constant_ratio(self, extra: Expression, dg: Expression, x: str) -> Optional[Expression]:
        """extra / dg when that quotient is free of x (checked symbolically, then numerically)."""
        ratio = self._normal(Mul((extra, _recip(dg))))
        if not depends_on(ratio, x):
            return ratio
        if any(isinstance(n, Func) and n.name == 'diff' for n in walk(ratio)):
            return None

        others = sorted(free_variables(ratio) - {x, 'pi', 'e'})
        params = {name: _PARAMETER_VALUES[i % len(_PARAMETER_VALUES)] for i, name in enumerate(others)}
        evaluator = NumericEvaluator(self.environment)
        values = []
        try:
            for point in _SAMPLE_POINTS:
                bindings = dict(params)
                bindings[x] = point
                values.append(evaluator.evaluate(ratio, bindings).to_mpf())
        except (CASError, ValueError, ZeroDivisionError):
            return None
        tol = mp.mpf(10) ** (-(get_dps() // 2))
        scale = max(mp.fabs(values[0]), mp.mpf(1))
        if any(mp.fabs(v - values[0]) > tol * scale for v in values[1:]):
            return None
        self._add_traceback('strategy', 'numeric constancy check passed')
        return self._simplify(substitute(ratio, Variable(x), Number(_SAMPLE_POINTS[0])))

    # ------------------------------------------------------------------ #
    # Driver
    # ------------------------------------------------------------------ #
    def _integrate(self, expr: Expression, x: str, depth: int) -> Optional[Expression]:
        if depth > MAX_INTEGRATION_DEPTH:
            return None
        f = self._normal(expr)
        if not depends_on(f, x):
            return Mul((f, Variable(x)))

        if isinstance(f, Add):
            parts = []
            for term in f.terms:
                part = self._integrate(term, x, depth)
                if part is None:
                    return None
                parts.append(part)
            return Add(tuple(parts))

        if isinstance(f, Mul):
            constant = [g for g in f.factors if not depends_on(g, x)]
            if constant:
                inner = self._integrate(_product(g for g in f.factors if depends_on(g, x)), x, depth)
                return None if inner is None else Mul(tuple(constant) + (inner,))

        strategies = (
            ('substitution', self._substitution),
            ('rational', self._rational),
            ('trigonometric', self._trigonometric),
            ('exponential', self._exponential),
            ('logarithmic', self._logarithmic),
            ('by parts', self._by_parts),
        )
        for name, strategy in strategies:
            result = strategy(f, x, depth)
            if result is not None:
                self._add_traceback('strategy', f'{name}: ∫({f}) d{x}')
                return result

        expanded = self._simplify(f)
        if isinstance(expanded, Add) and expanded != f:
            self._add_traceback('strategy', f'expansion: ∫({f}) d{x}')
            return self._integrate(expanded, x, depth + 1)
        return None

    # ------------------------------------------------------------------ #
    # 1. Substitution
    # ------------------------------------------------------------------ #
    def _candidates(self, factor: Expression, x: str):
        """(g, F(g)) pairs: `factor` read as an outer function of g with antiderivative F."""
        if isinstance(factor, Func) and len(factor.args) == 1:
            g = factor.args[0]
            F = TrigonometryEngine.antiderivative(factor.name, g)
            if F is None:
                F = ElementaryEngine.antiderivative(factor.name, g)
            if F is not None:
                yield g, F
            return
        if isinstance(factor, Pow):
            base, n = factor.base, factor.exp
            if not depends_on(n, x):
                if n == Number(-1):
                    yield base, _ln_abs(base)
                else:
                    raised = self._simplify(Add((n, Number(1))))
                    yield base, Mul((Pow(base, raised), _recip(raised)))
            elif not depends_on(base, x):
                yield n, Mul((factor, _recip(Func('ln', (base,)))))
            return
        yield factor, Mul((Number(make_rational(1, 2)), Pow(factor, Number(2))))

    def _substitution(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        factors = _factors(f)
        for i, factor in enumerate(factors):
            if not depends_on(factor, x):
                continue
            for g, F in self._candidates(factor, x):
                extra = _product(factors[:i] + factors[i + 1:])
                try:
                    dg = self._derivative(g, x)
                except CASError:
                    continue
                if dg == Number(0):
                    continue
                k = self._constant_ratio(extra, dg, x)
                if k is not None:
                    return Mul((k, F))
        return None

    # ------------------------------------------------------------------ #
    # 2. Rational functions
    # ------------------------------------------------------------------ #
    def _rational(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        factors = _factors(f)
        if not all(isinstance(g, Pow) and g.exp == Number(-1) for g in factors):
            return None
        denominators = [g.base for g in factors]

        if len(denominators) == 2:
            first, second = (self._linear(d, x) for d in denominators)
            if first is None or second is None:
                return None
            (p1, q1), (p2, q2) = first, second
            det = self._simplify(Add((Mul((p1, q2)), _neg(Mul((p2, q1))))))
            if det == Number(0):
                return None
            # 1/(AB) = (p1/A - p2/B) / det
            logs = Add((_ln_abs(denominators[0]), _neg(_ln_abs(denominators[1]))))
            return Mul((_recip(det), logs))

        if len(denominators) == 1:
            # a x^2 + b x + c with rational roots -> partial fractions over its factors
            factored = self._rational_roots(denominators[0], x)
            if factored is not None:
                a, r1, r2 = factored
                left, right = Add((Variable(x), Number(-r1))), Add((Variable(x), Number(-r2)))
                self._add_traceback('strategy', f'factored {denominators[0]} over its rational roots')
                if r1 == r2:
                    return Mul((Number(make_rational(-1) / a), _recip(left)))
                logs = Add((_ln_abs(left), _neg(_ln_abs(right))))
                return Mul((Number(make_rational(1) / (a * (r1 - r2))), logs))
            # x^2 + c with a positive literal c -> atan
            quadratic = self._simplify(denominators[0])
            c = self._simplify(Add((quadratic, _neg(Pow(Variable(x), Number(2))))))
            if isinstance(c, Number) and c.value > 0:
                root = Pow(c, Number(make_rational(1, 2)))
                return Mul((_recip(root), Func('atan', (Mul((Variable(x), _recip(root))),))))
        return None

    # ------------------------------------------------------------------ #
    # 3. Trigonometric squares
    # ------------------------------------------------------------------ #
    def _trigonometric(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        if not (isinstance(f, Pow) and isinstance(f.base, Func) and len(f.base.args) == 1
                and isinstance(f.exp, Number)):
            return None
        name, g = f.base.name, f.base.args[0]
        linear = self._linear(g, x)
        if linear is None:
            return None
        a = linear[0]
        n = f.exp.value
        quarter = Number(make_rational(1, 4))
        half = Number(make_rational(1, 2))

        def double(fn):
            return Func(fn, (Mul((Number(2), g)),))

        F = None
        if n == 2:
            F = {
                'sin':  lambda: Add((Mul((half, g)), _neg(Mul((quarter, double('sin')))))),
                'cos':  lambda: Add((Mul((half, g)), Mul((quarter, double('sin'))))),
                'tan':  lambda: Add((Func('tan', (g,)), _neg(g))),
                'sec':  lambda: Func('tan', (g,)),
                'csc':  lambda: _neg(Func('cot', (g,))),
                'cot':  lambda: _neg(Add((Func('cot', (g,)), g))),
                'sinh': lambda: Add((Mul((quarter, double('sinh'))), _neg(Mul((half, g))))),
                'cosh': lambda: Add((Mul((quarter, double('sinh'))), Mul((half, g)))),
                'tanh': lambda: Add((g, _neg(Func('tanh', (g,))))),
            }.get(name, lambda: None)()
        elif n == -2:
            F = {
                'cos':  lambda: Func('tan', (g,)),
                'sin':  lambda: _neg(Func('cot', (g,))),
                'cosh': lambda: Func('tanh', (g,)),
            }.get(name, lambda: None)()
        if F is None:
            return None
        return Mul((_recip(a), F))

    # ------------------------------------------------------------------ #
    # 4. Exponential
    # ------------------------------------------------------------------ #
    def _exponential(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        factors = _factors(f)
        if len(factors) != 2:
            return None
        exps = [g for g in factors if isinstance(g, Func) and g.name == 'exp']
        trig = [g for g in factors if isinstance(g, Func) and g.name in ('sin', 'cos')]
        if len(exps) != 1 or len(trig) != 1:
            return None
        u, v = exps[0].args[0], trig[0].args[0]
        lu, lv = self._linear(u, x), self._linear(v, x)
        if lu is None or lv is None:
            return None
        a, c = lu[0], lv[0]
        sin_v, cos_v = Func('sin', (v,)), Func('cos', (v,))
        if trig[0].name == 'sin':
            inner = Add((Mul((a, sin_v)), _neg(Mul((c, cos_v)))))
        else:
            inner = Add((Mul((a, cos_v)), Mul((c, sin_v))))
        norm = Add((Pow(a, Number(2)), Pow(c, Number(2))))
        return Mul((exps[0], inner, _recip(norm)))

    # ------------------------------------------------------------------ #
    # 5. Logarithmic
    # ------------------------------------------------------------------ #
    def _logarithmic(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        if not (isinstance(f, Func) and f.name in _LOG_NAMES and len(f.args) == 1):
            return None
        # u = f, dv = dx
        try:
            df = self._derivative(f, x)
        except CASError:
            return None
        rest = self._integrate(Mul((Variable(x), df)), x, depth + 1)
        if rest is None:
            return None
        return Add((Mul((Variable(x), f)), _neg(rest)))

    # ------------------------------------------------------------------ #
    # 6. By parts
    # ------------------------------------------------------------------ #
    def _by_parts(self, f: Expression, x: str, depth: int) -> Optional[Expression]:
        factors = _factors(f)
        if len(factors) < 2:
            return None
        ranked = sorted(range(len(factors)), key=lambda i: liate_priority(factors[i]))
        u = factors[ranked[0]]
        dv = _product(factors[:ranked[0]] + factors[ranked[0] + 1:])
        v = self._integrate(dv, x, depth + 1)
        if v is None:
            return None
        try:
            du = self._derivative(u, x)
        except CASError:
            return None
        rest = self._integrate(Mul((v, du)), x, depth + 1)
        if rest is None:
            return None
        return Add((Mul((u, v)), _neg(rest)))


# ---------------------------------------------------------------------- #
# Module-level operations
# ---------------------------------------------------------------------- #
def integrate(expr: Expression, var: str, environment=None) -> Expression:
    return IntegralEngine(environment).integrate(expr, var)


def definite_integral(expr: Expression, var: str, lower: Expression, upper: Expression,
                      environment=None) -> Expression:
    """F(upper) - F(lower); an unsolved integrand stays as ∫(expr, var, lower, upper)."""
    F = integrate(expr, var, environment)
    if any(isinstance(n, UnevaluatedIntegral) for n in walk(F)):
        return Func('int', (expr, Variable(var), lower, upper))
    x = Variable(var)
    difference = Add((substitute(F, x, upper), _neg(substitute(F, x, lower))))
    return simplify(difference, environment=environment)


def integrate_multiple(expr: Expression, variables, environment=None) -> Expression:
    """Integrate successively over `variables`, innermost first."""
    result = expr
    for name in variables:
        result = integrate(result, name, environment)
    return result
