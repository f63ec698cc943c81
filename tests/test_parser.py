"""Unit tests for the expression model and parser module."""

import math
import unittest

import pytest
import sympy as sp

from aljabar_pkg.expr import (
    BinaryOp,
    BinaryOpType,
    Equation,
    FunctionCall,
    IndexAccess,
    Number,
    NumberArray,
    Variable,
    expression_depth,
    format_double,
    negate,
)
from aljabar_pkg.parser import (
    format_fraction,
    format_number,
    format_superscript,
    format_values,
    is_balanced,
    parse_equation,
    parse_expression,
    parse_expression_or_equation,
    prettify_expr,
    preprocess,
    split_top_level_commas,
    to_sympy,
)
from aljabar_pkg.types import InvalidEquationError, ParseError, Span, ValidationError


class TestPreprocess(unittest.TestCase):
    """Test input validation."""

    def test_strips_whitespace(self):
        self.assertEqual(preprocess("  2+2 "), "2+2")

    def test_empty_input(self):
        with self.assertRaises(ValidationError) as ctx:
            preprocess("   ")
        self.assertEqual(ctx.exception.code, "EMPTY_INPUT")

    def test_too_long(self):
        with self.assertRaises(ValidationError) as ctx:
            preprocess("x" * 10001)
        self.assertEqual(ctx.exception.code, "TOO_LONG")

    def test_unbalanced(self):
        with self.assertRaises(ValidationError) as ctx:
            preprocess("(2+3")
        self.assertEqual(ctx.exception.code, "UNBALANCED")

    def test_is_balanced(self):
        self.assertEqual(is_balanced("(a[1])"), (True, None))
        self.assertEqual(is_balanced("(]"), (False, 1))
        self.assertEqual(is_balanced("a)"), (False, 1))


class TestParsing(unittest.TestCase):
    """Test precedence, implicit multiplication and node construction."""

    def test_precedence(self):
        self.assertEqual(str(parse_expression("2 + 3 * 4")), "2 + 3*4")
        self.assertEqual(
            parse_expression("2 + 3 * 4"),
            BinaryOp(
                Number(2),
                BinaryOp(Number(3), Number(4), BinaryOpType.MUL),
                BinaryOpType.ADD,
            ),
        )

    def test_implicit_multiplication(self):
        self.assertEqual(
            parse_expression("2x"), BinaryOp(Number(2), Variable("x"), BinaryOpType.MUL)
        )
        self.assertEqual(
            parse_expression("3(x+1)"),
            BinaryOp(
                Number(3),
                BinaryOp(Variable("x"), Number(1), BinaryOpType.ADD),
                BinaryOpType.MUL,
            ),
        )
        self.assertEqual(
            parse_expression("(x)(y)"),
            BinaryOp(Variable("x"), Variable("y"), BinaryOpType.MUL),
        )

    def test_unary_minus_binds_looser_than_power(self):
        expected = negate(BinaryOp(Variable("x"), Number(2), BinaryOpType.POW))
        self.assertEqual(parse_expression("-x^2"), expected)

    def test_power_is_right_associative(self):
        self.assertEqual(
            parse_expression("2^3^2"),
            BinaryOp(
                Number(2),
                BinaryOp(Number(3), Number(2), BinaryOpType.POW),
                BinaryOpType.POW,
            ),
        )

    def test_minimal_parentheses(self):
        self.assertEqual(str(parse_expression("(a - b) - (c - d)")), "a - b - (c - d)")
        self.assertEqual(str(parse_expression("(2^3)^2")), "(2^3)^2")
        self.assertEqual(str(parse_expression("a / (b * c)")), "a/(b*c)")

    def test_function_call(self):
        expr = parse_expression("sqrt(x + 1)")
        self.assertIsInstance(expr, FunctionCall)
        self.assertEqual(expr.name, "sqrt")
        self.assertEqual(expr.args, (BinaryOp(Variable("x"), Number(1), BinaryOpType.ADD),))

    def test_unknown_name_before_paren_multiplies(self):
        self.assertEqual(
            parse_expression("f(2)"), BinaryOp(Variable("f"), Number(2), BinaryOpType.MUL)
        )

    def test_array_literal(self):
        self.assertEqual(parse_expression("[1, -2, 3]"), NumberArray((1.0, -2.0, 3.0)))
        self.assertEqual(str(parse_expression("[1, -2.5]")), "[1, -2.5]")

    def test_array_literal_rejects_variables(self):
        with self.assertRaises(ParseError):
            parse_expression("[1, x]")

    def test_index_access(self):
        self.assertEqual(parse_expression("a[1]"), IndexAccess(Variable("a"), 1))
        with self.assertRaises(ParseError):
            parse_expression("a[1.5]")

    def test_reserved_keyword(self):
        with self.assertRaises(ParseError) as ctx:
            parse_expression("solve + 1")
        self.assertEqual(ctx.exception.code, "RESERVED_KEYWORD")

    def test_syntax_error_has_caret(self):
        with self.assertRaises(ParseError) as ctx:
            parse_expression("2 + * 3")
        lines = ctx.exception.format().splitlines()
        self.assertTrue(lines[0].startswith("Error: "))
        self.assertEqual(lines[1], "  2 + * 3")
        self.assertEqual(lines[2], "      ^")

    def test_stray_equals_in_expression(self):
        with self.assertRaises(ParseError):
            parse_expression("x = 1")

    def test_spans_cover_source(self):
        expr = parse_expression("x + 10")
        self.assertEqual(expr.span, Span(0, 6))
        self.assertEqual(expr.right.span, Span(4, 6))


class TestDepthLimits(unittest.TestCase):
    """Test the bound on expression nesting."""

    def test_deep_parentheses(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_expression("(" * 300 + "1" + ")" * 300)
        self.assertEqual(ctx.exception.code, "TOO_DEEP")

    def test_long_chain(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_expression(" + ".join(["1"] * 1500))
        self.assertEqual(ctx.exception.code, "TOO_DEEP")

    def test_repeated_signs(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_expression("-" * 500 + "x")
        self.assertEqual(ctx.exception.code, "TOO_DEEP")

    def test_deep_equation_side(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_equation("x = " + " + ".join(["1"] * 1500))
        self.assertEqual(ctx.exception.code, "TOO_DEEP")

    def test_within_limit(self):
        self.assertEqual(parse_expression("(" * 100 + "7" + ")" * 100), Number(7))
        expr = parse_expression(" + ".join(["1"] * 120))
        self.assertEqual(expression_depth(expr), 120)

    def test_expression_depth(self):
        self.assertEqual(expression_depth(Number(1)), 1)
        self.assertEqual(expression_depth(parse_expression("sqrt(x + 1) * 2")), 4)
        self.assertEqual(expression_depth(parse_expression("a[0]")), 2)


class TestEquations(unittest.TestCase):
    def test_parse_equation(self):
        eq = parse_equation("2x + 1 = 5")
        self.assertIsInstance(eq, Equation)
        self.assertEqual(eq.rhs, Number(5))
        self.assertEqual(str(eq), "2*x + 1 = 5")

    def test_missing_equals(self):
        with self.assertRaises(InvalidEquationError):
            parse_equation("2x + 1")

    def test_two_equals(self):
        with self.assertRaises(InvalidEquationError):
            parse_equation("x = 1 = 2")

    def test_expression_or_equation(self):
        self.assertIsInstance(parse_expression_or_equation("x = 1"), Equation)
        self.assertEqual(parse_expression_or_equation("x"), Variable("x"))


class TestFormatting:
    """Test number and expression formatting helpers."""

    def test_format_double(self):
        assert format_double(2.5) == "2.5"
        assert format_double(3.0) == "3"
        assert format_double(1 / 3) == "0.333333"
        assert format_double(-1e-13) == "0"

    def test_format_number(self):
        assert format_number(14.0) == "14"
        assert format_number(1 / 3) == "0.333333"
        assert format_number(-1e-15) == "0"
        assert format_number(1 / 3, precision=3) == "0.333"

    def test_format_fraction(self):
        assert format_fraction(0.5) == "1/2"
        assert format_fraction(-2 / 3) == "-2/3"
        assert format_fraction(2.0) == "2"
        assert format_fraction(math.pi) == "3.14159"

    def test_format_values(self):
        assert format_values([1.0, 0.5]) == "1, 0.5"
        assert format_values([0.5, -2.0], as_fraction=True) == "1/2, -2"

    def test_superscripts(self):
        assert format_superscript("x**2 + y^-1") == "x² + y⁻¹"
        assert prettify_expr("x**2 + 2*x") == "x² + 2×x"

    def test_split_top_level_commas(self):
        assert split_top_level_commas("x+y=3, x-y=1") == ["x+y=3", "x-y=1"]
        assert split_top_level_commas("[1, 2], 3; 4") == ["[1, 2]", "3", "4"]

    def test_to_sympy(self):
        x = sp.Symbol("x")
        converted = to_sympy(parse_expression("2x^2 + log(100) - ln(1)"))
        assert float(converted.subs(x, 3)) == pytest.approx(20.0)

    def test_to_sympy_rejects_arrays(self):
        with pytest.raises(TypeError):
            to_sympy(parse_expression("[1, 2]"))
