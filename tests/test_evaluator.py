"""Tests for numeric evaluation."""

import math
import unittest

import pytest

from aljabar_pkg.context import Context
from aljabar_pkg.evaluator import Evaluator, Value, evaluate, evaluate_scalar
from aljabar_pkg.expr import Variable
from aljabar_pkg.parser import parse_expression
from aljabar_pkg.types import (
    CircularReferenceError,
    EvaluationError,
    UndefinedVariableError,
    ValidationError,
)


def ev(text, context=None):
    return Evaluator(context, text).evaluate(parse_expression(text))


class TestScalarEvaluation(unittest.TestCase):
    """Test scalar arithmetic and built-in functions."""

    def test_arithmetic(self):
        self.assertEqual(ev("2 + 3 * 4").scalar, 14.0)
        self.assertEqual(ev("(2 + 3) * 4").scalar, 20.0)
        self.assertEqual(ev("2^3^2").scalar, 512.0)
        self.assertEqual(ev("-2^2").scalar, -4.0)
        self.assertEqual(ev("7 / 2").scalar, 3.5)

    def test_functions(self):
        self.assertEqual(ev("sqrt(16)").scalar, 4.0)
        self.assertEqual(ev("abs(-3)").scalar, 3.0)
        self.assertEqual(ev("log(1000)").scalar, pytest.approx(3.0))
        self.assertEqual(ev("ln(exp(2))").scalar, pytest.approx(2.0))
        self.assertEqual(ev("floor(2.7) + ceil(2.1)").scalar, 5.0)
        self.assertAlmostEqual(ev("sin(0) + cos(0)").scalar, 1.0)

    def test_division_by_zero(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("1 / 0")
        self.assertEqual(ctx.exception.message, "division by zero")
        self.assertEqual(ctx.exception.format().splitlines()[2], "  ^^^^^")

    def test_domain_errors(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("sqrt(-1)")
        self.assertEqual(ctx.exception.message, "sqrt of negative number (-1)")
        with self.assertRaises(EvaluationError):
            ev("log(0)")
        with self.assertRaises(EvaluationError):
            ev("ln(-2)")

    def test_invalid_power(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("(-8)^0.5")
        self.assertTrue(ctx.exception.message.startswith("invalid power"))

    def test_overflow_is_infinite(self):
        self.assertTrue(math.isinf(ev("exp(1000)").scalar))

    def test_wrong_arity(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("sqrt(1, 2)")
        self.assertEqual(
            ctx.exception.message, "function 'sqrt' expects 1 argument, got 2"
        )


class TestVectorEvaluation(unittest.TestCase):
    """Test broadcasting and element-wise operations."""

    def test_broadcast(self):
        self.assertEqual(ev("[1, 2, 3] * 2").vector, (2.0, 4.0, 6.0))
        self.assertEqual(ev("10 - [1, 2]").vector, (9.0, 8.0))

    def test_elementwise(self):
        self.assertEqual(ev("[1, 2] + [10, 20]").vector, (11.0, 22.0))

    def test_size_mismatch(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("[1, 2] + [1, 2, 3]")
        self.assertEqual(ctx.exception.message, "vector size mismatch: 2 vs 3")

    def test_function_maps(self):
        self.assertEqual(ev("sqrt([4, 9])").vector, (2.0, 3.0))

    def test_function_domain_error_names_element(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("sqrt([4, -1])")
        self.assertEqual(
            ctx.exception.message, "sqrt: domain error at element [1] (value = -1)"
        )

    def test_single_element_array_is_scalar(self):
        self.assertTrue(ev("[5]").is_scalar)

    def test_str(self):
        self.assertEqual(str(ev("[1, 2.5]")), "[1, 2.5]")
        self.assertEqual(str(ev("1/3")), "0.333333")


class TestContextEvaluation(unittest.TestCase):
    def setUp(self):
        self.ctx = Context()

    def test_variables(self):
        self.ctx.set_value("x", 4)
        self.ctx.set("y", parse_expression("2x + 3"))
        self.assertEqual(evaluate_scalar(parse_expression("y + 1"), self.ctx), 12.0)

    def test_undefined(self):
        with self.assertRaises(UndefinedVariableError) as ctx:
            ev("x + 1", self.ctx)
        self.assertEqual(ctx.exception.message, "undefined variable: x")

    def test_no_context(self):
        with self.assertRaises(UndefinedVariableError):
            evaluate(Variable("x"))

    def test_circular(self):
        self.ctx.set("a", Variable("b"))
        self.ctx.set("b", Variable("a"))
        with self.assertRaises(CircularReferenceError):
            ev("a", self.ctx)

    def test_indexing(self):
        self.ctx.set_array("a", [1, 2])
        self.assertEqual(ev("a[1]", self.ctx).scalar, 2.0)
        with self.assertRaises(EvaluationError) as ctx:
            ev("a[5]", self.ctx)
        self.assertEqual(
            ctx.exception.message, "index 5 out of range (array 'a' has 2 elements)"
        )

    def test_index_into_scalar(self):
        with self.assertRaises(EvaluationError) as ctx:
            ev("(2)[0]", self.ctx)
        self.assertEqual(ctx.exception.message, "cannot index into non-array expression")

    def test_long_sum(self):
        self.assertEqual(ev(" + ".join(["1"] * 120)).scalar, 120.0)

    def test_nesting_through_bindings_is_bounded(self):
        self.ctx.set("s", parse_expression(" + ".join(["1"] * 100)))
        with self.assertRaises(ValidationError) as ctx:
            ev("s + " + " + ".join(["1"] * 100), self.ctx)
        self.assertEqual(ctx.exception.code, "TOO_DEEP")


def test_value_as_scalar():
    assert Value.of_vector([7]).as_scalar() == 7.0
    with pytest.raises(EvaluationError):
        Value.of_vector([1, 2]).as_scalar()
    assert Value.of(3).to_vector() == [3.0]
