from typing import List, Optional

from abc_engines import MathEngine
from derivative_engine import DerivativeEngine
from environment import Environment
from expression_parser import parse
from expression_printer import to_display_string
from expression_tree import MAX_TREE_DEPTH, Expression, Func, Limit, Series, Variable, map_children
from integral_engine import IntegralEngine, definite_integral
from limit_engine import LimitEngine
from series_engine import SeriesEngine
from simplify_engine import simplify
from utils.trace_helpers import merge_traceback


class CalculusEngine(MathEngine):
    """Text in, text out: parses, resolves diff/int/series/lim forms innermost-first, simplifies."""

    def __init__(self, environment: Optional[Environment] = None):
        super().__init__(environment)
        self.last_steps: List[str] = []

    def compute(self, expr: str) -> str:
        """Compute a calculus-level expression and return its display string."""
        self._add_traceback('compute_start', expr)
        tree = parse(expr, self.environment)
        self._add_traceback('parsed', to_display_string(tree))
        result = self.evaluate_tree(tree)
        text = to_display_string(result)
        self._add_traceback('result', text)
        return text

    def evaluate_tree(self, tree: Expression) -> Expression:
        self.last_steps = []
        resolved = self._resolve(tree, 0)
        return simplify(resolved, environment=self.environment)

    # ------------------------------------------------------------------ #
    # Direct helpers used by the REPL
    # ------------------------------------------------------------------ #
    def differentiate(self, expr: Expression, var: str) -> Expression:
        engine = DerivativeEngine(self.environment)
        result, steps = engine.differentiate(expr, var)
        self.last_steps = steps
        merge_traceback(self, engine)
        return result

    def integrate(self, expr: Expression, var: str) -> Expression:
        engine = IntegralEngine(self.environment)
        result = engine.integrate(expr, var)
        merge_traceback(self, engine)
        return result

    def series(self, func, var: str, center, order: int) -> Expression:
        engine = SeriesEngine(self.environment)
        result = engine.expand(func, var, center, order)
        merge_traceback(self, engine)
        return result

    def limit(self, expr: Expression, var: str, point) -> Expression:
        engine = LimitEngine(self.environment)
        result = engine.limit(expr, var, point)
        merge_traceback(self, engine)
        return result

    # ------------------------------------------------------------------ #
    # Tree walk
    # ------------------------------------------------------------------ #
    def _resolve(self, node: Expression, depth: int) -> Expression:
        if depth > MAX_TREE_DEPTH:
            return node
        node = map_children(node, lambda k: self._resolve(k, depth + 1))

        if isinstance(node, Func) and node.name == 'diff' and len(node.args) == 2 \
                and isinstance(node.args[1], Variable):
            steps = self.last_steps
            result = self.differentiate(node.args[0], node.args[1].name)
            self.last_steps = steps + self.last_steps
            return result
        if isinstance(node, Func) and node.name == 'int' and isinstance(node.args[1], Variable):
            if len(node.args) == 2:
                return self.integrate(node.args[0], node.args[1].name)
            integrand, var, lower, upper = node.args
            self._add_traceback('integrate', f'definite over [{lower}, {upper}]')
            return definite_integral(integrand, var.name, lower, upper, environment=self.environment)
        if isinstance(node, Series):
            return self.series(node.expr, node.var, node.center, node.order)
        if isinstance(node, Limit):
            return self.limit(node.expr, node.var, node.point)
        return node
