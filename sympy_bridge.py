"""
Conversion of expression trees to SymPy, used as an independent oracle when
checking simplifier, derivative and integral results.
"""
import sympy as sp

from expression_tree import (
    Add, Constant, Div, Equation, Expression, Func, Matrix, Mul, Neg, Number,
    Pow, Sub, Tensor, UnevaluatedIntegral, Variable,
)

_FUNCTIONS = {
    'sin': sp.sin, 'cos': sp.cos, 'tan': sp.tan,
    'sec': sp.sec, 'csc': sp.csc, 'cot': sp.cot,
    'sinh': sp.sinh, 'cosh': sp.cosh, 'tanh': sp.tanh,
    'asin': sp.asin, 'acos': sp.acos, 'atan': sp.atan,
    'arcsin': sp.asin, 'arccos': sp.acos, 'arctan': sp.atan,
    'asinh': sp.asinh, 'acosh': sp.acosh, 'atanh': sp.atanh,
    'exp': sp.exp, 'ln': sp.log, 'sqrt': sp.sqrt, 'abs': sp.Abs,
    'sign': sp.sign, 'floor': sp.floor, 'ceil': sp.ceiling,
    'gamma': sp.gamma, 'digamma': sp.digamma, 'erf': sp.erf,
    'factorial': sp.factorial,
    'log': lambda u: sp.log(u, 10),
    'log10': lambda u: sp.log(u, 10),
    'log2': lambda u: sp.log(u, 2),
    'log1p': lambda u: sp.log(1 + u),
}


def _number(value):
    if not value.is_exact:
        return sp.Float(str(value.to_mpf()))
    num, den = value.as_pair()
    return sp.Rational(num, den)


def to_sympy(expr: Expression):
    """Structural translation; `e` and `pi` map to SymPy's E and pi, other names to real Symbols."""
    if isinstance(expr, Number):
        return _number(expr.value)
    if isinstance(expr, Variable):
        if expr.name == 'pi':
            return sp.pi
        if expr.name == 'e':
            return sp.E
        return sp.Symbol(expr.name, real=True)
    if isinstance(expr, Constant):
        return to_sympy(expr.value)
    if isinstance(expr, Add):
        return sp.Add(*[to_sympy(t) for t in expr.terms])
    if isinstance(expr, Mul):
        return sp.Mul(*[to_sympy(f) for f in expr.factors])
    if isinstance(expr, Sub):
        return to_sympy(expr.left) - to_sympy(expr.right)
    if isinstance(expr, Div):
        return to_sympy(expr.left) / to_sympy(expr.right)
    if isinstance(expr, Neg):
        return -to_sympy(expr.arg)
    if isinstance(expr, Pow):
        return sp.Pow(to_sympy(expr.base), to_sympy(expr.exp))
    if isinstance(expr, Equation):
        return sp.Eq(to_sympy(expr.left), to_sympy(expr.right))
    if isinstance(expr, Func):
        args = [to_sympy(a) for a in expr.args]
        if expr.name == 'diff' and len(args) == 2:
            return sp.Derivative(*args)
        if expr.name == 'int':
            return sp.Integral(args[0], tuple(args[1:]) if len(args) == 4 else args[1])
        fn = _FUNCTIONS.get(expr.name)
        if fn is None:
            fn = sp.Function(expr.name)
        return fn(*args)
    if isinstance(expr, Tensor):
        return sp.Array([to_sympy(e) for e in expr.elements])
    if isinstance(expr, Matrix):
        return sp.Matrix([[to_sympy(e) for e in row] for row in expr.rows])
    if isinstance(expr, UnevaluatedIntegral):
        return sp.Integral(to_sympy(expr.expr), sp.Symbol(expr.var, real=True))
    raise TypeError(f"no SymPy form for {type(expr).__name__}")
