from math import factorial
from typing import Callable, Dict, Optional

from mpmath import mp

from abc_engines import MathEngine
from errors import DOMAIN, UNKNOWN_FUNCTION, EvaluationError
from exact_arithmetic import ONE, ZERO, ExactNumber, Integer, exact_power, make_rational
from expression_tree import Expression, Func, Mul, Number, Pow, Variable, add, mul

# Largest integer argument whose factorial is folded exactly.
MAX_EXACT_FACTORIAL = 1000

_HALF = make_rational(1, 2)


def _exact_log(x: ExactNumber, base: int) -> Optional[ExactNumber]:
    """log_base(x) when x is an exact integer power of `base`."""
    if not x.is_exact or x.is_negative() or x.is_zero():
        return None
    num, den = x.as_pair()
    value, k = (num, 1) if den == 1 else (den, -1) if num == 1 else (None, 0)
    if value is None:
        return None
    power = 0
    while value > 1 and value % base == 0:
        value //= base
        power += 1
    return Integer(k * power) if value == 1 else None


class ElementaryEngine(MathEngine):
    """
    Elementary functions: exp, ln, log (base 10), log10, log2, log1p, sqrt,
    abs, sign, floor, ceil, factorial, gamma, digamma, erf.
    """

    NAMES = ('exp', 'ln', 'log', 'log10', 'log2', 'log1p', 'sqrt', 'abs', 'sign', 'floor', 'ceil',
             'factorial', 'gamma', 'digamma', 'erf')

    # -------------------------------------------------------------- #
    # Numeric wrappers
    # -------------------------------------------------------------- #
    def exp(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_zero():
            return ONE
        return self._real_number(mp.exp(x.to_mpf()), f'exp({x})')

    def ln(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_one():
            return ZERO
        return self._real_number(mp.log(x.to_mpf()), f'ln({x})')

    def log(self, x: ExactNumber) -> ExactNumber:
        exact = _exact_log(x, 10)
        if exact is not None:
            return exact
        return self._real_number(mp.log10(x.to_mpf()), f'log({x})')

    def log2(self, x: ExactNumber) -> ExactNumber:
        exact = _exact_log(x, 2)
        if exact is not None:
            return exact
        return self._real_number(mp.log(x.to_mpf(), 2), f'log2({x})')

    def log1p(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_zero():
            return ZERO
        return self._real_number(mp.log1p(x.to_mpf()), f'log1p({x})')

    def sqrt(self, x: ExactNumber) -> ExactNumber:
        if x.is_negative():
            raise EvaluationError(DOMAIN, f"sqrt({x}) is not real")
        exact = exact_power(x, _HALF)
        if exact is not None:
            return exact
        return self._real_number(mp.sqrt(x.to_mpf()), f'sqrt({x})')

    def abs(self, x: ExactNumber) -> ExactNumber:
        return abs(x)

    def sign(self, x: ExactNumber) -> ExactNumber:
        return Integer(0 if x.is_zero() else -1 if x.is_negative() else 1)

    def floor(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact:
            num, den = x.as_pair()
            return Integer(num // den)
        return Integer(int(mp.floor(x.to_mpf())))

    def ceil(self, x: ExactNumber) -> ExactNumber:
        return -self.floor(-x)

    def erf(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_zero():
            return ZERO
        return self._real_number(mp.erf(x.to_mpf()), f'erf({x})')

    def digamma(self, x: ExactNumber) -> ExactNumber:
        return self._real_number(mp.digamma(x.to_mpf()), f'digamma({x})')

    def factorial(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_integer():
            n = x.as_pair()[0]
            if n < 0:
                raise EvaluationError(DOMAIN, f"{n}! is undefined")
            if n <= MAX_EXACT_FACTORIAL:
                return Integer(factorial(n))
        return self._real_number(mp.gamma(x.to_mpf() + 1), f'{x}!')

    def gamma(self, x: ExactNumber) -> ExactNumber:
        if x.is_exact and x.is_integer():
            n = x.as_pair()[0]
            if n <= 0:
                raise EvaluationError(DOMAIN, f"gamma({n}) is a pole")
            if n <= MAX_EXACT_FACTORIAL + 1:
                return Integer(factorial(n - 1))
        return self._real_number(mp.gamma(x.to_mpf()), f'gamma({x})')

    # -------------------------------------------------------------- #
    # compute() entry: a call with a literal argument
    # -------------------------------------------------------------- #
    def compute(self, expr):
        self._add_traceback('compute_start', str(expr))
        if not (isinstance(expr, Func) and len(expr.args) == 1 and isinstance(expr.args[0], Number)):
            raise EvaluationError(UNKNOWN_FUNCTION, f'Unsupported elementary expression: {expr}')
        name = 'log' if expr.name == 'log10' else expr.name
        if name not in self.NAMES:
            raise EvaluationError(UNKNOWN_FUNCTION, name)
        result = getattr(self, name)(expr.args[0].value)
        self._add_traceback(name, f'Result = {result}')
        return result

    # -------------------------------------------------------------- #
    # Registry / calculus tables
    # -------------------------------------------------------------- #
    @classmethod
    def evaluators(cls) -> Dict[str, Callable[..., ExactNumber]]:
        engine = cls()
        table = {name: getattr(engine, name) for name in cls.NAMES if name != 'log10'}
        table['log10'] = engine.log
        return table

    @staticmethod
    def derivative(name: str, u: Expression) -> Optional[Expression]:
        """d/du name(u), or None for names outside this family."""
        if name == 'exp':
            return Func('exp', (u,))
        if name == 'ln':
            return Pow(u, Number(-1))
        if name in ('log', 'log10', 'log2'):
            base = 2 if name == 'log2' else 10
            return Pow(mul(u, Func('ln', (Number(base),))), Number(-1))
        if name == 'log1p':
            return Pow(add(Number(1), u), Number(-1))
        if name == 'sqrt':
            return mul(Number(_HALF), Pow(u, Number(make_rational(-1, 2))))
        if name == 'abs':
            return mul(u, Pow(Func('abs', (u,)), Number(-1)))
        if name in ('sign', 'floor', 'ceil'):
            return Number(0)
        if name == 'erf':
            two_over_root_pi = mul(Number(2), Pow(Variable('pi'), Number(make_rational(-1, 2))))
            return mul(two_over_root_pi, Func('exp', (Mul((Number(-1), Pow(u, Number(2)))),)))
        if name == 'gamma':
            return mul(Func('gamma', (u,)), Func('digamma', (u,)))
        return None

    @staticmethod
    def antiderivative(name: str, u: Expression) -> Optional[Expression]:
        """∫ name(u) du, or None when no closed form is tabulated."""
        if name == 'exp':
            return Func('exp', (u,))
        if name == 'ln':
            return add(mul(u, Func('ln', (u,))), Mul((Number(-1), u)))
        if name in ('log', 'log10'):
            inner = add(mul(u, Func('ln', (u,))), Mul((Number(-1), u)))
            return mul(inner, Pow(Func('ln', (Number(10),)), Number(-1)))
        if name == 'sqrt':
            return mul(Number(make_rational(2, 3)), Pow(u, Number(make_rational(3, 2))))
        if name == 'abs':
            return mul(Number(_HALF), u, Func('abs', (u,)))
        return None
