"""
Parser: grammar shape, sugar forms and structured syntax errors.
"""
import os
import sys
import unittest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import (
    BAD_INTEGRAL, BAD_LIMIT, BAD_SERIES, EMPTY_INPUT, FUNCTION_MISSING_ARGS,
    MISSING_OPERAND, RAGGED_TENSOR, UNEXPECTED_TOKEN, UNMATCHED_BRACKET,
    UNMATCHED_PAREN, ExpressionSyntaxError,
)
from exact_arithmetic import Rational
from expression_parser import parse
from expression_tree import (
    Add, Equation, Func, Limit, Mul, Neg, Number, Pow, Series, Tensor, Variable,
)

x, y = Variable("x"), Variable("y")


class PrecedenceSuite(unittest.TestCase):

    def test_product_binds_tighter_than_sum(self):
        self.assertEqual(parse("1+2*3"), Add((Number(1), Mul((Number(2), Number(3))))))

    def test_unary_minus_binds_at_power_level(self):
        self.assertEqual(parse("-x^2"), Neg(Pow(x, Number(2))))

    def test_power_is_right_associative(self):
        self.assertEqual(parse("2^3^2"), Pow(Number(2), Pow(Number(3), Number(2))))

    def test_negative_exponent(self):
        self.assertEqual(parse("x^-2+1"), Add((Pow(x, Neg(Number(2))), Number(1))))

    def test_subtraction_and_division_are_nary(self):
        self.assertEqual(parse("x-y"), Add((x, Neg(y))))
        self.assertEqual(parse("x/y"), Mul((x, Pow(y, Number(-1)))))
        self.assertEqual(parse("x-y+1"), Add((x, Neg(y), Number(1))))

    def test_implicit_multiplication(self):
        self.assertEqual(parse("2x"), Mul((Number(2), x)))
        self.assertEqual(parse("3sin(x)"), Mul((Number(3), Func("sin", (x,)))))

    def test_decimal_is_exact(self):
        self.assertEqual(parse("0.5"), Number(Rational(1, 2)))

    def test_equation(self):
        self.assertEqual(parse("x = 2"), Equation(x, Number(2)))


class SugarSuite(unittest.TestCase):

    def test_literal_factorial_folds(self):
        self.assertEqual(parse("5!"), Number(120))
        self.assertEqual(parse("x!"), Func("factorial", (x,)))

    def test_prefix_root(self):
        self.assertEqual(parse("√x"), Func("sqrt", (x,)))

    def test_derivative_forms_agree(self):
        expected = Func("diff", (Pow(x, Number(2)), x))
        self.assertEqual(parse("(d/dx)(x^2)"), expected)
        self.assertEqual(parse("diff(x^2, x)"), expected)
        self.assertEqual(parse("derivative(x^2, x)"), expected)

    def test_integrals(self):
        self.assertEqual(parse("∫(x, x)"), Func("int", (x, x)))
        self.assertEqual(parse("int(x, x, 0, 1)"), Func("int", (x, x, Number(0), Number(1))))

    def test_integral_of_constant_folds(self):
        self.assertEqual(parse("∫(3, x)"), Mul((Number(3), x)))
        self.assertEqual(parse("∫(y, x, 1, 2)"), Mul((y, Add((Number(2), Neg(Number(1)))))))

    def test_series_forms(self):
        expected = Series(Func("sin", (x,)), "x", Number(0), 5)
        self.assertEqual(parse('series("sin", x, 0, 5)'), expected)
        self.assertEqual(parse("series(sin, x, 0, 5)"), expected)
        self.assertEqual(parse("series(x^2, x, 1, 3)"), Series(Pow(x, Number(2)), "x", Number(1), 3))

    def test_limit(self):
        self.assertEqual(parse("lim(x^2, x, 0)"), Limit(Pow(x, Number(2)), "x", Number(0)))

    def test_nested_tensor(self):
        t = parse("[[1,2],[3,4]]")
        self.assertIsInstance(t, Tensor)
        self.assertEqual(t.elements[1], Tensor((Number(3), Number(4))))

    def test_juxtaposed_tensors_are_rows(self):
        self.assertEqual(parse("[1,2][3,4]"), parse("[[1,2],[3,4]]"))
        self.assertEqual(parse("2[1,2][3,4]"), parse("2*[[1,2],[3,4]]"))
        self.assertEqual(parse("[[1,2][3,4]]"), parse("[[1,2],[3,4]]"))


class ParserErrorSuite(unittest.TestCase):

    def assertSyntaxError(self, text, kind):
        with self.assertRaises(ExpressionSyntaxError) as ctx:
            parse(text)
        self.assertEqual(ctx.exception.kind, kind, msg=text)
        return ctx.exception

    def test_unmatched_parens(self):
        self.assertSyntaxError("(1+2", UNMATCHED_PAREN)
        self.assertSyntaxError("1+2)", UNMATCHED_PAREN)

    def test_unmatched_bracket(self):
        self.assertSyntaxError("[1,2", UNMATCHED_BRACKET)

    def test_missing_operand(self):
        err = self.assertSyntaxError("1+", MISSING_OPERAND)
        self.assertEqual(err.position, 2)
        self.assertSyntaxError("()", MISSING_OPERAND)
        self.assertSyntaxError("*2", MISSING_OPERAND)

    def test_empty(self):
        self.assertSyntaxError("", EMPTY_INPUT)
        self.assertSyntaxError("   ", EMPTY_INPUT)

    def test_function_without_arguments(self):
        self.assertSyntaxError("f()", FUNCTION_MISSING_ARGS)

    def test_string_outside_series(self):
        self.assertSyntaxError('sin("x")', UNEXPECTED_TOKEN)

    def test_bad_integral(self):
        self.assertSyntaxError("∫(x)", BAD_INTEGRAL)
        self.assertSyntaxError("int(x, 2)", BAD_INTEGRAL)

    def test_bad_series(self):
        self.assertSyntaxError("series(sin, x, 0)", BAD_SERIES)
        self.assertSyntaxError("series(sin, x, 0, -1)", BAD_SERIES)
        self.assertSyntaxError("series(sin, x, 0, 1.5)", BAD_SERIES)

    def test_bad_limit(self):
        self.assertSyntaxError("lim(x, 1, 2)", BAD_LIMIT)

    def test_ragged_tensor(self):
        self.assertSyntaxError("[[1,2],[3]]", RAGGED_TENSOR)
        self.assertSyntaxError("[[1,2],3]", RAGGED_TENSOR)

    def test_error_carries_token_context(self):
        err = self.assertSyntaxError("2 + * 3", MISSING_OPERAND)
        self.assertTrue(err.context)


if __name__ == "__main__":
    unittest.main()
