"""Tests for linear form collection."""

import unittest

import pytest

from aljabar_pkg.context import Context
from aljabar_pkg.expr import difference
from aljabar_pkg.linear_collector import LinearCollector, LinearForm, collect_linear
from aljabar_pkg.parser import parse_equation, parse_expression
from aljabar_pkg.types import EvaluationError, NonLinearError


def linear(text, context=None, isolated=False):
    return collect_linear(parse_expression(text), context, isolated)


class TestLinearForm(unittest.TestCase):
    def test_arithmetic(self):
        form = LinearForm.var("x", 2) + LinearForm.const(3) - LinearForm.var("y")
        self.assertEqual(form.coeffs, {"x": 2.0, "y": -1.0})
        self.assertEqual(form.constant, 3.0)
        doubled = form * 2
        self.assertEqual(doubled.get_coeff("x"), 4.0)
        self.assertEqual(doubled.get_coeff("z"), 0.0)

    def test_simplify_drops_negligible(self):
        form = LinearForm({"x": 1e-14, "y": 1.0}, 1e-13).simplify()
        self.assertEqual(form.coeffs, {"y": 1.0})
        self.assertEqual(form.constant, 0.0)
        self.assertEqual(form.variables(), ["y"])

    def test_str(self):
        self.assertEqual(str(LinearForm({"x": 2.0}, -1.0)), "2*x + -1")


class TestLinearCollection(unittest.TestCase):
    """Test collecting linear forms from expressions."""

    def test_simple(self):
        form = linear("2x + 3")
        self.assertEqual(form.coeffs, {"x": 2.0})
        self.assertEqual(form.constant, 3.0)

    def test_equation_difference(self):
        form = collect_linear(difference(parse_equation("2x + 3 = x - 1")))
        self.assertEqual(form.coeffs, {"x": 1.0})
        self.assertEqual(form.constant, 4.0)

    def test_distribution_and_division(self):
        form = linear("3(x + 2y)/2 - 1")
        self.assertEqual(form.coeffs, {"x": 1.5, "y": 3.0})
        self.assertEqual(form.constant, -1.0)

    def test_constant_functions_fold(self):
        form = linear("sqrt(9)*x + 2^3")
        self.assertEqual(form.coeffs, {"x": 3.0})
        self.assertEqual(form.constant, 8.0)

    def test_cancelling_terms(self):
        form = linear("x - x + 5")
        self.assertTrue(form.is_constant())
        self.assertEqual(form.constant, 5.0)

    def test_power_one_and_zero(self):
        self.assertEqual(linear("x^1").coeffs, {"x": 1.0})
        self.assertEqual(linear("x^0").constant, 1.0)

    def test_division_by_zero(self):
        with self.assertRaises(EvaluationError):
            linear("x / 0")


@pytest.mark.parametrize(
    "text,fragment",
    [
        ("x*y", "multiplication of variables"),
        ("x^2", "raised to power 2"),
        ("1/x", "division by variable"),
        ("2^x", "variable exponent"),
        ("sin(x)", "function 'sin'"),
        ("[1, 2] + x", "array with 2 elements"),
    ],
)
def test_nonlinear_terms(text, fragment):
    with pytest.raises(NonLinearError) as excinfo:
        linear(text)
    assert fragment in excinfo.value.message


def test_classify_reports_instead_of_raising():
    result = LinearCollector().classify(parse_expression("x^2 + 1"))
    assert not result.ok
    assert result.form is None
    assert isinstance(result.error, NonLinearError)
    assert LinearCollector().classify(parse_expression("x + 1")).ok


class TestContextSubstitution:
    def setup_method(self):
        self.ctx = Context()
        self.ctx.set_value("a", 3)
        self.ctx.set("y", parse_expression("2x + 1"))

    def test_bound_variables_substituted(self):
        form = linear("a*x + y", self.ctx)
        assert form.coeffs == {"x": 5.0}
        assert form.constant == 1.0

    def test_isolated_keeps_names(self):
        collector = LinearCollector(self.ctx, isolated=True)
        form = collector.collect(parse_expression("a + x"))
        assert form.coeffs == {"a": 1.0, "x": 1.0}
        assert collector.shadowed_variables == {"a"}

    def test_indexed_array(self):
        self.ctx.set_array("v", [10, 20])
        form = linear("x + v[1]", self.ctx)
        assert form.constant == 20.0

    def test_unresolvable_index(self):
        with pytest.raises(NonLinearError):
            linear("x + w[0]", self.ctx)


def test_simplify_is_idempotent():
    form = LinearForm({"x": 2.0, "y": 1e-13}, 5e-13)
    once = LinearForm(dict(form.coeffs), form.constant).simplify()
    twice = LinearForm(dict(once.coeffs), once.constant).simplify()
    assert once == twice
    assert once.coeffs == {"x": 2.0}
