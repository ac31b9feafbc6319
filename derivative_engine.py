"""
Symbolic differentiation.

    engine = DerivativeEngine()
    result, steps = engine.differentiate(parse("x^2 sin(x)"), "x")

Rules are applied structurally and the raw result is simplified once at the
end.  Every rule application appends one readable line to `steps` once its
operands are done, so inner rules are listed before the rule that uses them:

    power rule: d/dx[x^2] = 2x
    sin rule: d/dx[sin(x)] = cos(x)
    product rule: d/dx[x^2*sin(x)] = 2x*sin(x) + x^2*cos(x)
    d/dx[x^2*sin(x)] = 2x*sin(x) + x^2*cos(x)

The last line is always ``d/dx[input] = result``.
"""
from typing import List, Tuple

from abc_engines import MathEngine
from elementary_engine import ElementaryEngine
from errors import DIFF_UNIMPLEMENTED, InternalInvariantViolation, UnimplementedNode
from expression_printer import to_display_string
from expression_tree import (
    Add, Constant, Div, Equation, Expression, Func, Limit, Matrix, Mul, Neg,
    Number, Pow, Series, Sub, Tensor, UnevaluatedIntegral, Variable, depends_on,
    substitute,
)
from expression_tree import depth as tree_depth
from simplify_engine import simplify
from trigonometry_engine import TrigonometryEngine

# Recursion budget; beyond it the tree is returned as an unevaluated diff(...).
MAX_DIFF_DEPTH = 120

_UNSUPPORTED = (Tensor, Matrix, Equation, Limit, Series)


def _outer_derivative(name: str, u: Expression):
    outer = TrigonometryEngine.derivative(name, u)
    if outer is None:
        outer = ElementaryEngine.derivative(name, u)
    return outer


class DerivativeEngine(MathEngine):
    """Differentiates expression trees with respect to one variable."""

    def __init__(self, environment=None):
        super().__init__(environment)
        self.steps: List[str] = []

    def compute(self, expr, var: str = "x"):
        result, _ = self.differentiate(expr, var)
        return result

    def differentiate(self, expr: Expression, var: str) -> Tuple[Expression, List[str]]:
        self.steps = []
        self._add_traceback('differentiate', f'd/d{var}[{expr}]')
        nesting = tree_depth(expr)
        if nesting > MAX_DIFF_DEPTH:
            self._add_traceback('diff_cap', f'nesting {nesting} exceeds {MAX_DIFF_DEPTH}, leaving diff unevaluated')
            result = Func("diff", (expr, Variable(var)))
        else:
            raw = self._d(expr, var, 0)
            result = simplify(raw, environment=self.environment)
        self.steps.append(f"d/d{var}[{to_display_string(expr)}] = {to_display_string(result)}")
        self._add_traceback('differentiate', self.steps[-1])
        return result, list(self.steps)

    def _step(self, rule: str, e: Expression, var: str, result: Expression) -> Expression:
        shown = simplify(result, environment=self.environment)
        self.steps.append(f"{rule}: d/d{var}[{to_display_string(e)}] = {to_display_string(shown)}")
        return result

    # ------------------------------------------------------------------ #
    # Rules
    # ------------------------------------------------------------------ #
    def _d(self, e: Expression, x: str, depth: int) -> Expression:
        if isinstance(e, _UNSUPPORTED):
            raise UnimplementedNode(DIFF_UNIMPLEMENTED, f"cannot differentiate {type(e).__name__}")
        if depth > MAX_DIFF_DEPTH:
            self._add_traceback('diff_cap', f'depth {depth} reached, leaving diff unevaluated')
            return Func("diff", (e, Variable(x)))
        d = depth + 1

        if isinstance(e, Variable):
            return Number(1 if e.name == x else 0)
        if isinstance(e, (Number, Constant)) or not depends_on(e, x):
            if not isinstance(e, (Number, Variable, Constant)):
                self._step("constant rule", e, x, Number(0))
            return Number(0)

        if isinstance(e, Add):
            return self._step("sum rule", e, x, Add(tuple(self._d(t, x, d) for t in e.terms)))
        if isinstance(e, Sub):
            return self._step("difference rule", e, x, Sub(self._d(e.left, x, d), self._d(e.right, x, d)))
        if isinstance(e, Neg):
            return Neg(self._d(e.arg, x, d))
        if isinstance(e, Mul):
            return self._product(e, x, d)
        if isinstance(e, Div):
            f, g = e.left, e.right
            numerator = Sub(Mul((self._d(f, x, d), g)), Mul((f, self._d(g, x, d))))
            return self._step("quotient rule", e, x, Div(numerator, Pow(g, Number(2))))
        if isinstance(e, Pow):
            return self._power(e, x, d)
        if isinstance(e, Func):
            return self._function(e, x, d)
        if isinstance(e, UnevaluatedIntegral):
            if e.var == x:
                return self._step("fundamental theorem", e, x, e.expr)
            return Func("diff", (e, Variable(x)))
        raise InternalInvariantViolation(f"unknown node {type(e).__name__}")

    def _product(self, e: Mul, x: str, d: int) -> Expression:
        terms = []
        for i, f in enumerate(e.factors):
            if not depends_on(f, x):
                continue
            rest = e.factors[:i] + e.factors[i + 1:]
            terms.append(Mul(rest + (self._d(f, x, d),)))
        return self._step("product rule", e, x, Add(tuple(terms)) if len(terms) > 1 else terms[0])

    def _power(self, e: Pow, x: str, d: int) -> Expression:
        base, exp = e.base, e.exp
        if not depends_on(exp, x):
            lowered = Pow(base, Add((exp, Number(-1))))
            return self._step("power rule", e, x, Mul((exp, lowered, self._d(base, x, d))))
        if not depends_on(base, x):
            if base == Variable("e"):
                return self._step("exponential rule", e, x, Mul((e, self._d(exp, x, d))))
            return self._step("exponential rule", e, x, Mul((Func("ln", (base,)), e, self._d(exp, x, d))))
        inner = Add((
            Mul((self._d(exp, x, d), Func("ln", (base,)))),
            Mul((exp, self._d(base, x, d), Pow(base, Number(-1)))),
        ))
        return self._step("general power rule", e, x, Mul((e, inner)))

    def _function(self, e: Func, x: str, d: int) -> Expression:
        if e.name == "diff" and len(e.args) == 2 and isinstance(e.args[1], Variable):
            inner = DerivativeEngine(self.environment)
            first, steps = inner.differentiate(e.args[0], e.args[1].name)
            self.steps.extend(steps)
            return self._d(first, x, d)
        if e.name == "int":
            return self._integral(e, x, d)

        if len(e.args) != 1:
            return self._step("unknown function", e, x, Func("diff", (e, Variable(x))))
        u = e.args[0]

        if e.name == "ln" and isinstance(u, Func) and u.name == "abs" and len(u.args) == 1:
            result = Mul((self._d(u.args[0], x, d), Pow(u.args[0], Number(-1))))
            return self._step("log-abs rule", e, x, result)

        outer = _outer_derivative(e.name, u)
        rule = f"{e.name} rule"
        if outer is None:
            rule = "unknown function"
            outer = Func(e.name + "'", (u,))
            self._add_traceback('placeholder', f"{e.name}' left symbolic")
        if u == Variable(x):
            return self._step(rule, e, x, outer)
        return self._step(f"{rule} with chain rule", e, x, Mul((outer, self._d(u, x, d))))

    def _integral(self, e: Func, x: str, d: int) -> Expression:
        integrand, var = e.args[0], e.args[1]
        if len(e.args) == 2:
            if var.name == x:
                return self._step("fundamental theorem", e, x, integrand)
            return Func("diff", (e, Variable(x)))
        lower, upper = e.args[2], e.args[3]
        if var.name == x or depends_on(integrand, x):
            return Func("diff", (e, Variable(x)))
        # Leibniz: only the limits carry x
        at_upper = substitute(integrand, var, upper)
        at_lower = substitute(integrand, var, lower)
        result = Sub(Mul((at_upper, self._d(upper, x, d))), Mul((at_lower, self._d(lower, x, d))))
        return self._step("fundamental theorem", e, x, result)


def differentiate(expr: Expression, var: str, environment=None) -> Tuple[Expression, List[str]]:
    return DerivativeEngine(environment).differentiate(expr, var)
