import os
import sys
import unittest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exact_arithmetic import Rational
from expression_parser import parse
from expression_printer import to_display_string
from expression_tree import Add, Func, Mul, Number, Pow, UnevaluatedIntegral, Variable
from simplify_engine import simplify

x = Variable("x")


class DisplaySuite(unittest.TestCase):

    def test_coefficient_is_implicit(self):
        self.assertEqual(to_display_string(simplify(parse("2x + 3x"))), "5x")
        self.assertEqual(to_display_string(Mul((Number(3), Func("sin", (x,))))), "3sin(x)")

    def test_display_capability(self):
        self.assertEqual(parse("x^2").display(), "x^2")
        self.assertEqual(str(parse("x^2")), "x^2")

    def test_unary_minus(self):
        self.assertEqual(to_display_string(parse("-x^2")), "-x^2")
        self.assertEqual(to_display_string(parse("-(x+1)")), "-(x + 1)")

    def test_powers(self):
        self.assertEqual(to_display_string(parse("2^3^2")), "2^3^2")
        self.assertEqual(to_display_string(parse("(2^3)^2")), "(2^3)^2")

    def test_quotients(self):
        self.assertEqual(to_display_string(parse("x/y")), "x/y")
        self.assertEqual(to_display_string(parse("1/(x+1)")), "1/(x + 1)")

    def test_roots(self):
        self.assertEqual(to_display_string(Func("sqrt", (x,))), "√x")
        self.assertEqual(to_display_string(Pow(x, Number(Rational(1, 2)))), "√x")
        self.assertEqual(to_display_string(Pow(Add((x, Number(1))), Number(Rational(1, 2)))), "√(x + 1)")

    def test_calculus_forms(self):
        self.assertEqual(to_display_string(parse("(d/dx)(x^2)")), "(d/dx)(x^2)")
        self.assertEqual(to_display_string(parse("∫(x, x, 0, 1)")), "∫(x, x, 0, 1)")
        self.assertEqual(to_display_string(UnevaluatedIntegral(x, "x")), "∫(x, x)")

    def test_tensors_and_equations(self):
        self.assertEqual(to_display_string(parse("[1, 2, 3]")), "[1, 2, 3]")
        self.assertEqual(to_display_string(parse("x = 2")), "x = 2")


class RoundTripSuite(unittest.TestCase):
    """display(parse(display(parse(s)))) is a fixed point."""

    SAMPLES = [
        "2x + 3",
        "sin(x)^2",
        "a - (b - c)",
        "x^-2 + 1",
        "1/(x+1)",
        "-(x+1)",
        "2^3^2",
        "(d/dx)(x^2)",
        "∫(x, x, 0, 1)",
        "[1, 2, 3]",
        "x = 2",
        "3x*sin(x)/y",
        "√(x + 1)",
    ]

    def test_fixed_point(self):
        for text in self.SAMPLES:
            with self.subTest(text=text):
                once = to_display_string(parse(text))
                twice = to_display_string(parse(once))
                self.assertEqual(once, twice)

    def test_simplified_output_reparses_to_same_tree(self):
        for text in ["2x + 3x", "(x+1)^2", "x*exp(x) - exp(x)", "sin(x)/x"]:
            with self.subTest(text=text):
                tree = simplify(parse(text))
                self.assertEqual(simplify(parse(to_display_string(tree))), tree)


if __name__ == "__main__":
    unittest.main()
