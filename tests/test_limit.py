import os
import sys
import unittest
from unittest import mock

from mpmath import mp

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import limit_engine
from exact_arithmetic import make_rational
from expression_parser import parse
from expression_tree import Limit, Number, Variable
from limit_engine import LimitEngine, limit, split_quotient
from simplify_engine import simplify


def lim(text, var="x", point=0):
    return limit(parse(text), var, point)


class SubstitutionSuite(unittest.TestCase):

    def test_continuous_polynomial(self):
        self.assertEqual(lim("x^2 + 1", point=2), Number(5))

    def test_rational_point(self):
        self.assertEqual(lim("x^3", point=make_rational(1, 2)), Number(make_rational(1, 8)))

    def test_constant_expression(self):
        self.assertEqual(lim("y + 3", point=7), simplify(parse("y + 3")))

    def test_nonzero_denominator(self):
        self.assertEqual(lim("(x + 1)/(x + 2)", point=0), Number(make_rational(1, 2)))


class LHopitalSuite(unittest.TestCase):

    def test_sin_over_x(self):
        self.assertEqual(lim("sin(x)/x"), Number(1))

    def test_removable_discontinuity(self):
        self.assertEqual(lim("(x^2 - 1)/(x - 1)", point=1), Number(2))

    def test_repeated_application(self):
        self.assertEqual(lim("(1 - cos(x))/x^2"), Number(make_rational(1, 2)))

    def test_exponential(self):
        self.assertEqual(lim("(exp(x) - 1)/x"), Number(1))

    def test_rule_is_traced(self):
        engine = LimitEngine()
        engine.limit(parse("sin(x)/x"), "x", Number(0))
        self.assertIn('lhopital', [e['step'] for e in engine.traceback_info])

    def test_pass_cap_falls_back_to_numeric(self):
        engine = LimitEngine()
        with mock.patch.object(limit_engine, "MAX_LHOPITAL", 0):
            result = engine.limit(parse("sin(x)/x"), "x", Number(0))
        self.assertEqual(result, Number(1))
        self.assertNotIn('lhopital', [e['step'] for e in engine.traceback_info])


class UnsettledSuite(unittest.TestCase):

    def test_pole_stays_a_marker(self):
        result = lim("1/x")
        self.assertEqual(result, Limit(parse("1/x"), "x", Number(0)))

    def test_jump_stays_a_marker(self):
        self.assertIsInstance(lim("abs(x)/x"), Limit)

    def test_marker_is_traced(self):
        engine = LimitEngine()
        engine.limit(parse("1/x"), "x", Number(0))
        self.assertIn('unevaluated', [e['step'] for e in engine.traceback_info])

    def test_compute_takes_a_limit_node(self):
        self.assertEqual(LimitEngine().compute(parse("lim(x^2, x, 3)")), Number(9))
        with self.assertRaises(TypeError):
            LimitEngine().compute(parse("x"))


class NumericApproachSuite(unittest.TestCase):

    def test_agreeing_sides_snap_to_rational(self):
        engine = LimitEngine()
        with mock.patch.object(limit_engine, "MAX_LHOPITAL", 0):
            result = engine.limit(parse("(x^2 - 4)/(x - 2)"), "x", Number(2))
        self.assertEqual(result, Number(4))

    def test_irrational_value_stays_float(self):
        engine = LimitEngine()
        with mock.patch.object(limit_engine, "MAX_LHOPITAL", 0):
            result = engine.limit(parse("(exp(x) - e)/(x - 1)"), "x", Number(1))
        self.assertIsInstance(result, Number)
        self.assertAlmostEqual(result.value.to_mpf(), mp.e, delta=mp.mpf('1e-10'))


class QuotientSplitSuite(unittest.TestCase):

    def test_split(self):
        x = Variable("x")
        numer, denom = split_quotient(parse("sin(x)/x"))
        self.assertEqual((numer, denom), (parse("sin(x)"), x))
        self.assertEqual(split_quotient(x), (x, None))


if __name__ == "__main__":
    unittest.main()
