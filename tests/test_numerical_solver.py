"""Tests for the multi-start Newton solver, checked against SymPy."""

import math

import pytest
import sympy as sp

from aljabar_pkg.context import Context
from aljabar_pkg.expr import difference
from aljabar_pkg.numerical_solver import (
    NewtonStatus,
    NumericalSolver,
    is_same_root,
    snap_root,
)
from aljabar_pkg.parser import parse_equation, parse_expression, to_sympy
from aljabar_pkg.types import NoSolutionError, SolverDivergedError


def sympy_real_roots(text):
    """Reference roots of a polynomial equation, computed symbolically."""
    equation = parse_equation(text)
    poly = to_sympy(difference(equation))
    return sorted(float(r) for r in sp.real_roots(sp.Poly(poly, sp.Symbol("x"))))


class TestSnapping:
    def test_snap_integer(self):
        assert snap_root(1.9999999999) == 2.0
        assert snap_root(-3.00000000001) == -3.0

    def test_snap_fraction(self):
        assert snap_root(0.33333333333) == pytest.approx(1 / 3, abs=1e-15)
        assert snap_root(-0.1250000000001) == -0.125

    def test_leaves_irrational(self):
        assert snap_root(math.sqrt(2)) == math.sqrt(2)

    def test_same_root(self):
        assert is_same_root(1.0, 1.0000001)
        assert not is_same_root(1.0, 1.001)
        assert is_same_root(1e6, 1e6 + 0.5)


class TestNewton:
    def test_converges(self):
        solver = NumericalSolver()
        outcome = solver.newton(parse_expression("x^2 - 2"), "x", 1.0)
        assert outcome.status is NewtonStatus.CONVERGED
        assert outcome.root == pytest.approx(math.sqrt(2))

    def test_eval_error(self):
        solver = NumericalSolver()
        outcome = solver.newton(parse_expression("sqrt(x) + 1"), "x", -1.0)
        assert outcome.status is NewtonStatus.EVAL_ERROR

    def test_derivative(self):
        solver = NumericalSolver()
        assert solver.derivative(parse_expression("x^3"), "x", 2.0) == pytest.approx(12.0)
        assert math.isnan(solver.derivative(parse_expression("sqrt(x)"), "x", 0.0))


@pytest.mark.parametrize(
    "text",
    [
        "x^3 - 6x^2 + 11x - 6 = 0",
        "x^3 = 2",
        "x^4 - 5x^2 + 4 = 0",
        "x^5 - x = 0",
    ],
)
def test_polynomial_roots_match_sympy(text):
    result = NumericalSolver(None, text).solve(parse_equation(text), "x")
    assert result.values == pytest.approx(sympy_real_roots(text), abs=1e-7)


def test_transcendental_root_matches_sympy():
    x = sp.Symbol("x")
    expected = float(sp.nsolve(sp.cos(x) - x, x, 0.5))
    result = NumericalSolver().solve(parse_equation("cos(x) = x"), "x")
    assert result.values == pytest.approx([expected], abs=1e-8)


def test_context_is_expanded_and_untouched():
    ctx = Context()
    ctx.set_value("k", 8)
    result = NumericalSolver(ctx).solve(parse_equation("x^3 = k"), "x")
    assert result.values == pytest.approx([2.0])
    assert not ctx.has("x")


def test_all_diverged():
    with pytest.raises(SolverDivergedError) as excinfo:
        NumericalSolver().find_roots(parse_expression("exp(x) + 1"), "x")
    assert excinfo.value.message == "numerical solver diverged from all 23 starting points"


def test_never_evaluable():
    with pytest.raises(NoSolutionError):
        NumericalSolver().find_roots(parse_expression("sqrt(x) + 1"), "x")
