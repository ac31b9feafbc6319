"""
Exact numeric tower: Integer / Rational stay exact and reduced, Float is the
inexact escape hatch and never compares equal to an exact value.
"""
import os
import sys
import unittest

from mpmath import mp

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import DIVIDE_BY_ZERO, DivisionByZero
from exact_arithmetic import (
    Float, Integer, Rational, exact_power, from_decimal_string, make_rational, to_exact,
)


class RationalSuite(unittest.TestCase):

    def test_lowest_terms_and_sign(self):
        self.assertEqual(Rational(2, 4).as_pair(), (1, 2))
        self.assertEqual(Rational(1, -2).as_pair(), (-1, 2))
        self.assertEqual(Rational(-3, -9).as_pair(), (1, 3))

    def test_addition_matches_cross_multiplication(self):
        for a, b, c, d in [(1, 2, 1, 3), (-5, 6, 7, 10), (3, 4, -3, 4), (2, 9, 5, 12)]:
            with self.subTest(a=a, b=b, c=c, d=d):
                self.assertEqual(Rational(a, b) + Rational(c, d), make_rational(a * d + c * b, b * d))

    def test_unit_denominator_collapses_to_integer(self):
        value = Rational(1, 2) + Rational(1, 2)
        self.assertIsInstance(value, Integer)
        self.assertEqual(value, Integer(1))
        self.assertIsInstance(make_rational(6, 3), Integer)

    def test_arithmetic_with_python_ints(self):
        self.assertEqual(Rational(1, 3) * 3, Integer(1))
        self.assertEqual(2 - Rational(1, 2), Rational(3, 2))
        self.assertEqual(1 / Integer(4), Rational(1, 4))

    def test_hash_agrees_with_equality(self):
        self.assertEqual(hash(Integer(3)), hash(make_rational(6, 2)))
        self.assertEqual(len({Rational(1, 2), Rational(2, 4)}), 1)

    def test_ordering(self):
        self.assertLess(Rational(1, 3), Rational(1, 2))
        self.assertGreater(Integer(-1), Rational(-3, 2))


class DivisionSuite(unittest.TestCase):

    def test_exact_zero_division(self):
        with self.assertRaises(DivisionByZero) as ctx:
            Integer(1) / Integer(0)
        self.assertEqual(ctx.exception.kind, DIVIDE_BY_ZERO)

    def test_division_by_zero_is_also_zero_division_error(self):
        with self.assertRaises(ZeroDivisionError):
            Rational(1, 2) / 0

    def test_zero_denominator_rejected(self):
        with self.assertRaises(DivisionByZero):
            Rational(1, 0)


class PowerSuite(unittest.TestCase):

    def test_exact_roots(self):
        self.assertEqual(exact_power(Integer(4), Rational(1, 2)), Integer(2))
        self.assertEqual(exact_power(Rational(8, 27), Rational(2, 3)), Rational(4, 9))
        self.assertEqual(exact_power(Integer(-8), Rational(1, 3)), Integer(-2))

    def test_irrational_root_is_not_folded(self):
        self.assertIsNone(exact_power(Integer(2), Rational(1, 2)))
        self.assertIsNone(exact_power(Integer(-4), Rational(1, 2)))

    def test_negative_exponent(self):
        self.assertEqual(exact_power(Integer(2), Integer(-3)), Rational(1, 8))

    def test_zero_to_the_zero_is_one(self):
        self.assertEqual(exact_power(Integer(0), Integer(0)), Integer(1))

    def test_zero_to_a_negative_power_raises(self):
        with self.assertRaises(DivisionByZero):
            exact_power(Integer(0), Integer(-1))

    def test_inexact_power_falls_back_to_float(self):
        value = Integer(2) ** Rational(1, 2)
        self.assertFalse(value.is_exact)
        self.assertAlmostEqual(value.to_mpf(), mp.sqrt(2), delta=mp.mpf('1e-25'))


class FloatSuite(unittest.TestCase):

    def test_float_never_equals_exact(self):
        self.assertNotEqual(Float(0.5), Rational(1, 2))
        self.assertNotEqual(Float(1), Integer(1))

    def test_float_contaminates(self):
        value = Rational(1, 2) + Float(0.25)
        self.assertIsInstance(value, Float)
        self.assertAlmostEqual(value.to_mpf(), mp.mpf('0.75'), delta=mp.mpf('1e-25'))

    def test_ordering_is_numeric(self):
        self.assertLess(Float(0.4), Rational(1, 2))
        self.assertGreater(Float(0.6), Rational(1, 2))

    def test_to_exact(self):
        self.assertEqual(to_exact(7), Integer(7))
        self.assertIsInstance(to_exact(0.5), Float)
        self.assertIsNone(to_exact(True))
        self.assertIsNone(to_exact("1"))


class DecimalLiteralSuite(unittest.TestCase):

    def test_decimal_strings_are_exact(self):
        self.assertEqual(from_decimal_string("2.50"), Rational(5, 2))
        self.assertEqual(from_decimal_string("0.125"), Rational(1, 8))
        self.assertEqual(from_decimal_string(".5"), Rational(1, 2))
        self.assertEqual(from_decimal_string("42"), Integer(42))

    def test_two_points_rejected(self):
        with self.assertRaises(ValueError):
            from_decimal_string("1.2.3")


if __name__ == "__main__":
    unittest.main()
