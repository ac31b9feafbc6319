"""
Numeric evaluator.

Usage
-----
    evaluator = NumericEvaluator(environment)
    value = evaluator.evaluate(parse("sin(pi/6) + x^2"), {"x": 3})

Literal arithmetic stays exact; a Float appears as soon as an irrational
function value or constant is involved.  Named functions are resolved
through the environment's FunctionRegistry, never by module lookup.
"""
from typing import Dict, Optional

from mpmath import mp

from abc_engines import MathEngine
from errors import NON_NUMERIC, UNBOUND_VARIABLE, UNKNOWN_FUNCTION, CASError, EvaluationError
from exact_arithmetic import ONE, ZERO, ExactNumber, Float, to_exact
from expression_tree import (
    MAX_TREE_DEPTH, Add, Constant, Div, Expression, Func, Mul, Neg, Number, Pow,
    Sub, UnevaluatedIntegral, Variable, walk,
)
from utils.precision_manager import get_dps

# Identifiers with a numeric meaning when left unbound.
_DEFAULT_BINDINGS = {
    'pi': lambda: Float(mp.pi),
    'e':  lambda: Float(mp.e),
}


class NumericEvaluator(MathEngine):
    """Reduces a tree to one ExactNumber under the active precision."""

    def compute(self, expr):
        return self.evaluate(expr)

    def evaluate(self, expr: Expression, bindings: Optional[Dict[str, object]] = None) -> ExactNumber:
        self._add_traceback('evaluate', f'{expr} with {sorted(bindings or {})}')
        with mp.workdps(get_dps()):
            result = self._resolve(expr, dict(bindings or {}), 0)
        self._add_traceback('evaluate_done', str(result))
        return result

    # ──────────────────────────────────────────────────────────────
    # internal helpers
    # ──────────────────────────────────────────────────────────────
    def _binding(self, name: str, bindings, depth: int) -> ExactNumber:
        if name in bindings:
            value = bindings[name]
            number = to_exact(value)
            if number is not None:
                return number
            if isinstance(value, Expression):
                return self._resolve(value, bindings, depth + 1)
            raise EvaluationError(NON_NUMERIC, f"binding for {name!r} is not a number")
        if name in _DEFAULT_BINDINGS:
            return _DEFAULT_BINDINGS[name]()
        raise EvaluationError(UNBOUND_VARIABLE, name)

    def _resolve(self, node: Expression, bindings, depth: int) -> ExactNumber:
        if depth > MAX_TREE_DEPTH:
            raise EvaluationError(NON_NUMERIC, "expression nested too deeply")
        d = depth + 1

        if isinstance(node, Number):
            return node.value
        if isinstance(node, Variable):
            return self._binding(node.name, bindings, depth)
        if isinstance(node, Constant):
            return self._resolve(node.value, bindings, d)
        if isinstance(node, Add):
            total = ZERO
            for term in node.terms:
                total = total + self._resolve(term, bindings, d)
            return total
        if isinstance(node, Mul):
            product = ONE
            for factor in node.factors:
                product = product * self._resolve(factor, bindings, d)
            return product
        if isinstance(node, Sub):
            return self._resolve(node.left, bindings, d) - self._resolve(node.right, bindings, d)
        if isinstance(node, Div):
            return self._resolve(node.left, bindings, d) / self._resolve(node.right, bindings, d)
        if isinstance(node, Neg):
            return -self._resolve(node.arg, bindings, d)
        if isinstance(node, Pow):
            return self._resolve(node.base, bindings, d) ** self._resolve(node.exp, bindings, d)
        if isinstance(node, Func):
            return self._resolve_call(node, bindings, d)
        raise EvaluationError(NON_NUMERIC, f"{type(node).__name__} has no numeric value")

    def _resolve_call(self, node: Func, bindings, depth: int) -> ExactNumber:
        if node.name == 'diff' and len(node.args) == 2 and isinstance(node.args[1], Variable):
            from derivative_engine import DerivativeEngine

            derived, _ = DerivativeEngine(self.environment).differentiate(node.args[0], node.args[1].name)
            if isinstance(derived, Func) and derived.name == 'diff':
                raise EvaluationError(NON_NUMERIC, f"no closed-form derivative for {node.args[0]}")
            return self._resolve(derived, bindings, depth)
        if node.name == 'int':
            if len(node.args) != 4:
                raise EvaluationError(NON_NUMERIC, "an indefinite integral has no numeric value")
            return self._definite(node, bindings, depth)

        fn = self.environment.registry.lookup(node.name)
        if fn is None:
            raise EvaluationError(UNKNOWN_FUNCTION, node.name)
        args = [self._resolve(a, bindings, depth) for a in node.args]
        self._add_traceback('call', node.name)
        return fn(*args)

    def _definite(self, node: Func, bindings, depth: int) -> ExactNumber:
        """Closed form F(b) - F(a) when one exists, otherwise mpmath quadrature."""
        from integral_engine import definite_integral

        integrand, var, lower, upper = node.args
        result = definite_integral(integrand, var.name, lower, upper, environment=self.environment)
        if not any(isinstance(n, UnevaluatedIntegral) or (isinstance(n, Func) and n.name == 'int')
                   for n in walk(result)):
            try:
                return self._resolve(result, bindings, depth)
            except CASError:
                self._add_traceback('quadrature', 'closed form not evaluable, integrating numerically')

        a = self._resolve(lower, bindings, depth).to_mpf()
        b = self._resolve(upper, bindings, depth).to_mpf()

        def f(t):
            local = dict(bindings)
            local[var.name] = Float(t)
            return self._resolve(integrand, local, depth).to_mpf()

        self._add_traceback('quadrature', f'∫ over [{a}, {b}]')
        return self._real_number(mp.quad(f, [a, b]), f'∫({integrand}, {var})')


def evaluate(expr: Expression, bindings: Optional[Dict[str, object]] = None,
             environment=None) -> ExactNumber:
    return NumericEvaluator(environment).evaluate(expr, bindings)
