import os
import sys
import unittest

from mpmath import mp

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from environment import Environment, constants_from_table
from errors import (
    DOMAIN, NON_NUMERIC, UNBOUND_VARIABLE, UNKNOWN_FUNCTION, DivisionByZero, EvaluationError,
)
from exact_arithmetic import Float, Integer, Rational
from expression_parser import parse
from function_registry import default_registry
from numeric_evaluator import NumericEvaluator, evaluate
from utils.precision_manager import reset_dps, set_dps


class ExactEvaluationSuite(unittest.TestCase):

    def test_rational_arithmetic_stays_exact(self):
        result = evaluate(parse("1/3 + 1/6"))
        self.assertEqual(result, Rational(1, 2))
        self.assertTrue(result.is_exact)

    def test_special_angle_snaps(self):
        self.assertEqual(evaluate(parse("sin(pi/6)")), Rational(1, 2))
        self.assertEqual(evaluate(parse("cos(pi)")), Integer(-1))

    def test_bindings(self):
        self.assertEqual(evaluate(parse("x^2 + 1"), {"x": 3}), Integer(10))
        self.assertEqual(evaluate(parse("x*y"), {"x": Rational(1, 2), "y": 4}), Integer(2))

    def test_binding_to_expression(self):
        self.assertEqual(evaluate(parse("x + 1"), {"x": parse("y^2"), "y": 3}), Integer(10))

    def test_irrational_becomes_float(self):
        result = evaluate(parse("exp(1)"))
        self.assertIsInstance(result, Float)
        self.assertAlmostEqual(result.to_mpf(), mp.e, delta=mp.mpf('1e-25'))

    def test_factorial_of_binding(self):
        self.assertEqual(evaluate(parse("factorial(x)"), {"x": 5}), Integer(120))


class CalculusFormSuite(unittest.TestCase):

    def test_diff_at_a_point(self):
        self.assertEqual(evaluate(parse("diff(x^3, x)"), {"x": 2}), Integer(12))

    def test_definite_integral_closed_form(self):
        self.assertEqual(evaluate(parse("∫(x^2, x, 0, 3)")), Integer(9))

    def test_definite_integral_by_quadrature(self):
        evaluator = NumericEvaluator()
        result = evaluator.evaluate(parse("∫(exp(x^2), x, 0, 1)"))
        expected = mp.quad(lambda t: mp.exp(t ** 2), [0, 1])
        self.assertAlmostEqual(result.to_mpf(), expected, delta=mp.mpf('1e-20'))
        self.assertIn('quadrature', [e['step'] for e in evaluator.traceback_info])

    def test_indefinite_integral_has_no_value(self):
        with self.assertRaises(EvaluationError) as ctx:
            evaluate(parse("∫(x, x)"))
        self.assertEqual(ctx.exception.kind, NON_NUMERIC)


class EvaluationErrorSuite(unittest.TestCase):

    def assertKind(self, text, kind, bindings=None):
        with self.assertRaises(EvaluationError) as ctx:
            evaluate(parse(text), bindings)
        self.assertEqual(ctx.exception.kind, kind)

    def test_unbound_variable(self):
        self.assertKind("x + 1", UNBOUND_VARIABLE)

    def test_unknown_function(self):
        self.assertKind("foo(1)", UNKNOWN_FUNCTION)

    def test_division_by_zero(self):
        with self.assertRaises(DivisionByZero):
            evaluate(parse("1/0"))
        with self.assertRaises(ZeroDivisionError):
            evaluate(parse("1/(x - 2)"), {"x": 2})

    def test_domain_errors(self):
        self.assertKind("sqrt(-1)", DOMAIN)
        self.assertKind("ln(0)", DOMAIN)
        self.assertKind("tan(pi/2)", DOMAIN)
        self.assertKind("(-8)^(1/2)", DOMAIN)

    def test_non_numeric_nodes(self):
        self.assertKind("lim(x, x, 0)", NON_NUMERIC)
        self.assertKind("[1, 2]", NON_NUMERIC)


class EnvironmentSuite(unittest.TestCase):

    def test_custom_function(self):
        registry = default_registry().with_function("double", lambda v: v * 2)
        env = Environment().with_functions(registry)
        self.assertEqual(evaluate(parse("double(x)"), {"x": 21}, environment=env), Integer(42))
        with self.assertRaises(EvaluationError):
            evaluate(parse("double(x)"), {"x": 21})

    def test_constants(self):
        table = constants_from_table([{"name": "c", "value": 299792458, "category": "physics"}])
        env = Environment().with_constants(table)
        tree = parse("2c", env)
        self.assertEqual(evaluate(tree, environment=env), Integer(599584916))


class PrecisionSuite(unittest.TestCase):

    def tearDown(self):
        reset_dps()

    def test_higher_precision(self):
        set_dps(50)
        result = evaluate(parse("sqrt(2)"))
        with mp.workdps(50):
            self.assertAlmostEqual(result.to_mpf(), mp.sqrt(2), delta=mp.mpf('1e-45'))


if __name__ == "__main__":
    unittest.main()
