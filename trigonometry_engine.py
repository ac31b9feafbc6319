from functools import lru_cache
from typing import Callable, Dict, Optional

from mpmath import mp
import sympy as sp

from abc_engines import MathEngine
from errors import DOMAIN, UNKNOWN_FUNCTION, EvaluationError
from exact_arithmetic import ExactNumber, make_rational
from expression_tree import Expression, Func, Mul, Number, Pow, add, mul

# Denominators tried when snapping an argument to a rational multiple of pi.
_PI_DENOMINATORS = (1, 2, 3, 4, 5, 6, 8, 10, 12)

_ALIASES = {'arcsin': 'asin', 'arccos': 'acos', 'arctan': 'atan'}


@lru_cache(maxsize=512)
def _special_value(name: str, num: int, den: int):
    """Exact SymPy value of name(pi*num/den)."""
    value = getattr(sp, name)(sp.pi * sp.Rational(num, den))
    if value is sp.zoo or value in (sp.oo, -sp.oo):
        return None
    return value


def _neg(e: Expression) -> Expression:
    return Mul((Number(-1), e))


def _inv_sqrt(e: Expression) -> Expression:
    return Pow(e, Number(make_rational(-1, 2)))


class TrigonometryEngine(MathEngine):
    """Circular, hyperbolic and inverse trig functions: numeric values, derivatives, antiderivatives."""

    NAMES = ('sin', 'cos', 'tan', 'sec', 'csc', 'cot',
             'sinh', 'cosh', 'tanh',
             'asin', 'acos', 'atan', 'arcsin', 'arccos', 'arctan',
             'asinh', 'acosh', 'atanh')

    def __init__(self, environment=None, use_sympy: Optional[bool] = None):
        super().__init__(environment)
        self.use_sympy = True if use_sympy is None else use_sympy

    def compute(self, expr):
        """Evaluate a call `Func(name, (Number,))`."""
        self._add_traceback('compute', f'Processing: {expr}')
        if not (isinstance(expr, Func) and len(expr.args) == 1 and isinstance(expr.args[0], Number)):
            raise EvaluationError(UNKNOWN_FUNCTION, f"cannot compute {expr}")
        name = _ALIASES.get(expr.name, expr.name)
        if name not in self.NAMES:
            raise EvaluationError(UNKNOWN_FUNCTION, name)
        result = self.evaluate(name, expr.args[0].value)
        self._add_traceback(name, f'{name}({expr.args[0].value}) = {result}')
        return result

    def evaluate(self, name: str, x: ExactNumber) -> ExactNumber:
        if self.use_sympy and name in ('sin', 'cos', 'tan'):
            snapped = self.snap(name, x)
            if snapped is not None:
                return snapped
        return self._real_number(getattr(mp, name)(x.to_mpf()), f'{name}({x})')

    # ------------------------------------------------------------------ #
    # Exact special angles
    # ------------------------------------------------------------------ #
    @staticmethod
    def _snap_to_pi_multiple(x: ExactNumber):
        """(num, den) when x is a small rational multiple of pi, else None."""
        if x.is_exact and x.is_zero():
            return 0, 1
        tol = mp.mpf(10) ** (-mp.dps + 3)
        ratio = x.to_mpf() / mp.pi
        for den in _PI_DENOMINATORS:
            scaled = ratio * den
            nearest = mp.nint(scaled)
            if abs(nearest) <= 4 * den and mp.fabs(scaled - nearest) < tol * den:
                return int(nearest), den
        return None

    @classmethod
    def snap(cls, name: str, x: ExactNumber) -> Optional[ExactNumber]:
        """Exact value of sin/cos/tan at a special angle; rational values stay exact."""
        multiple = cls._snap_to_pi_multiple(x)
        if multiple is None:
            return None
        value = _special_value(name, *multiple)
        if value is None:
            raise EvaluationError(DOMAIN, f"{name}({x}) is undefined")
        if value.is_Rational:
            return make_rational(int(value.p), int(value.q))
        return cls._real_number(mp.mpf(str(value.evalf(mp.dps))), f'{name}({x})')

    # ------------------------------------------------------------------ #
    # Registry / calculus tables
    # ------------------------------------------------------------------ #
    @classmethod
    def evaluators(cls) -> Dict[str, Callable[..., ExactNumber]]:
        engine = cls()
        table = {}
        for name in cls.NAMES:
            canonical = _ALIASES.get(name, name)
            if canonical in ('sec', 'csc', 'cot'):
                table[name] = cls._reciprocal(engine, canonical)
            else:
                table[name] = (lambda n: lambda x: engine.evaluate(n, x))(canonical)
        return table

    @staticmethod
    def _reciprocal(engine, name):
        base = {'sec': 'cos', 'csc': 'sin', 'cot': 'tan'}[name]

        def evaluate(x):
            value = engine.evaluate(base, x)
            if value.is_zero():
                raise EvaluationError(DOMAIN, f"{name}({x}) is undefined")
            return make_rational(1, 1) / value
        return evaluate

    @staticmethod
    def derivative(name: str, u: Expression) -> Optional[Expression]:
        """d/du name(u), or None for names outside this family."""
        name = _ALIASES.get(name, name)
        one = Number(1)
        square = Pow(u, Number(2))
        if name == 'sin':
            return Func('cos', (u,))
        if name == 'cos':
            return _neg(Func('sin', (u,)))
        if name == 'tan':
            return Pow(Func('cos', (u,)), Number(-2))
        if name == 'sec':
            return mul(Func('sec', (u,)), Func('tan', (u,)))
        if name == 'csc':
            return _neg(mul(Func('csc', (u,)), Func('cot', (u,))))
        if name == 'cot':
            return _neg(Pow(Func('sin', (u,)), Number(-2)))
        if name == 'sinh':
            return Func('cosh', (u,))
        if name == 'cosh':
            return Func('sinh', (u,))
        if name == 'tanh':
            return Pow(Func('cosh', (u,)), Number(-2))
        if name == 'asin':
            return _inv_sqrt(add(one, _neg(square)))
        if name == 'acos':
            return _neg(_inv_sqrt(add(one, _neg(square))))
        if name == 'atan':
            return Pow(add(one, square), Number(-1))
        if name == 'asinh':
            return _inv_sqrt(add(square, one))
        if name == 'acosh':
            return _inv_sqrt(add(square, Number(-1)))
        if name == 'atanh':
            return Pow(add(one, _neg(square)), Number(-1))
        return None

    @staticmethod
    def antiderivative(name: str, u: Expression) -> Optional[Expression]:
        """∫ name(u) du, or None when no closed form is tabulated."""
        name = _ALIASES.get(name, name)
        one = Number(1)
        square = Pow(u, Number(2))

        def ln_abs(e):
            return Func('ln', (Func('abs', (e,)),))

        if name == 'sin':
            return _neg(Func('cos', (u,)))
        if name == 'cos':
            return Func('sin', (u,))
        if name == 'tan':
            return _neg(ln_abs(Func('cos', (u,))))
        if name == 'cot':
            return ln_abs(Func('sin', (u,)))
        if name == 'sec':
            return ln_abs(add(Func('sec', (u,)), Func('tan', (u,))))
        if name == 'csc':
            return _neg(ln_abs(add(Func('csc', (u,)), Func('cot', (u,)))))
        if name == 'sinh':
            return Func('cosh', (u,))
        if name == 'cosh':
            return Func('sinh', (u,))
        if name == 'tanh':
            return Func('ln', (Func('cosh', (u,)),))
        if name == 'asin':
            return add(mul(u, Func('asin', (u,))), Func('sqrt', (add(one, _neg(square)),)))
        if name == 'acos':
            return add(mul(u, Func('acos', (u,))), _neg(Func('sqrt', (add(one, _neg(square)),))))
        if name == 'atan':
            half = Number(make_rational(-1, 2))
            return add(mul(u, Func('atan', (u,))), mul(half, Func('ln', (add(one, square),))))
        return None
