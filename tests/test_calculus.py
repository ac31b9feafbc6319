import os
import sys
import unittest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from calculus_engine import CalculusEngine
from errors import ExpressionSyntaxError
from expression_parser import parse
from expression_tree import Limit, Number, UnevaluatedIntegral, Variable
from simplify_engine import simplify


class FacadeSuite(unittest.TestCase):

    def setUp(self):
        self.engine = CalculusEngine()

    def test_simplify(self):
        self.assertEqual(self.engine.compute("2x + 3x"), "5x")

    def test_derivative_form(self):
        self.assertEqual(self.engine.compute("diff(x^3, x)"), "3x^2")
        self.assertEqual(self.engine.compute("(d/dx)(sin(x))"), "cos(x)")

    def test_integral_forms(self):
        self.assertEqual(self.engine.compute("int(2x, x)"), "x^2")
        self.assertEqual(self.engine.compute("∫(x^2, x, 0, 3)"), "9")

    def test_nested_forms_resolve_innermost_first(self):
        self.assertEqual(self.engine.compute("diff(int(cos(x), x), x)"), "cos(x)")

    def test_unsolved_integral_is_kept(self):
        tree = self.engine.evaluate_tree(parse("int(exp(x^2), x)"))
        self.assertIsInstance(tree, UnevaluatedIntegral)

    def test_limit_form(self):
        self.assertEqual(self.engine.compute("lim(x^2 + 1, x, 2)"), "5")
        self.assertEqual(self.engine.compute("lim(sin(x)/x, x, 0)"), "1")

    def test_unsettled_limit_is_a_marker(self):
        tree = self.engine.evaluate_tree(parse("lim(1/x, x, 0)"))
        self.assertIsInstance(tree, Limit)
        self.assertEqual(self.engine.compute("lim(1/x, x, 0)"), "lim(1/x, x, 0)")

    def test_syntax_error_propagates(self):
        with self.assertRaises(ExpressionSyntaxError):
            self.engine.compute("(x + 1")


class FacadeTraceSuite(unittest.TestCase):

    def test_trace_events(self):
        engine = CalculusEngine()
        engine.compute("diff(x^2, x)")
        steps = [e['step'] for e in engine.traceback_info]
        self.assertEqual(steps[0], 'compute_start')
        self.assertEqual(steps[1], 'parsed')
        self.assertIn('differentiate', steps)
        self.assertEqual(steps[-1], 'result')

    def test_last_steps(self):
        engine = CalculusEngine()
        result = engine.differentiate(parse("sin(x^2)"), "x")
        self.assertEqual(engine.last_steps[-1], "d/dx[sin(x^2)] = 2x*cos(x^2)")
        self.assertEqual(result, simplify(parse("2x*cos(x^2)")))

    def test_last_steps_reset_per_tree(self):
        engine = CalculusEngine()
        engine.compute("diff(x^2, x)")
        self.assertTrue(engine.last_steps)
        engine.compute("x + 1")
        self.assertEqual(engine.last_steps, [])

    def test_direct_helpers(self):
        engine = CalculusEngine()
        self.assertEqual(engine.integrate(parse("0"), "x"), Number(0))
        self.assertEqual(engine.series("sin", "x", 0, 1), Variable("x"))


if __name__ == "__main__":
    unittest.main()
