"""Tests for single-equation solving and solve flags."""

import unittest

import pytest

from aljabar_pkg import config
from aljabar_pkg.context import Context
from aljabar_pkg.domain import collect_constraints
from aljabar_pkg.parser import parse_equation, parse_expression
from aljabar_pkg.solver import EquationSolver, SolveFlags, apply_solve_flags, parse_solve_flag
from aljabar_pkg.types import (
    DomainError,
    EvaluationError,
    InfiniteSolutionsError,
    InvalidEquationError,
    MultipleUnknownsError,
    NoSolutionError,
    NonLinearError,
    SolveResult,
    SolverDivergedError,
)


def solve(text, context=None):
    return EquationSolver(context, text).solve(parse_equation(text))


class TestLinearSolving(unittest.TestCase):
    """Test the linear strategy."""

    def test_simple(self):
        result = solve("2x + 3 = 7")
        self.assertEqual(result.variable, "x")
        self.assertEqual(result.values, [2.0])

    def test_both_sides(self):
        self.assertEqual(solve("2x + 3 = x - 1").values, [-4.0])

    def test_contradiction(self):
        with self.assertRaises(NoSolutionError):
            solve("x + 1 = x + 2")

    def test_identity(self):
        with self.assertRaises(InfiniteSolutionsError):
            solve("2(x + 1) = 2x + 2")

    def test_constant_equations(self):
        with self.assertRaises(InfiniteSolutionsError):
            solve("1 = 1")
        with self.assertRaises(NoSolutionError):
            solve("1 = 2")

    def test_multiple_unknowns(self):
        with self.assertRaises(MultipleUnknownsError) as ctx:
            solve("x + y = 3")
        self.assertEqual(ctx.exception.unknowns, ["x", "y"])
        self.assertEqual(ctx.exception.message, "multiple unknowns in equation (x, y)")

    def test_context_substitution(self):
        ctx = Context()
        ctx.set_value("a", 2)
        ctx.set("b", parse_expression("a + 1"))
        self.assertEqual(solve("a*x + b = 9", ctx).values, [3.0])

    def test_division_by_zero_variable(self):
        ctx = Context()
        ctx.set_value("a", 0)
        with self.assertRaises(EvaluationError):
            solve("x / a = 1", ctx)


class TestQuadraticSolving(unittest.TestCase):
    def test_two_roots_sorted(self):
        self.assertEqual(solve("x^2 - 5x + 6 = 0").values, [2.0, 3.0])

    def test_double_root(self):
        self.assertEqual(solve("x^2 - 4x + 4 = 0").values, [2.0])

    def test_product_form(self):
        self.assertEqual(solve("(x - 1)(x + 2) = 0").values, [-2.0, 1.0])

    def test_negative_discriminant(self):
        with self.assertRaises(NoSolutionError) as ctx:
            solve("x^2 = -1")
        self.assertEqual(
            ctx.exception.message, "no real solution (discriminant = -4 < 0)"
        )

    def test_cross_term_is_multiple_unknowns(self):
        with self.assertRaises(MultipleUnknownsError):
            solve("x*y = 4")


@pytest.mark.parametrize(
    "a,b",
    [(1, 0), (2, 3), (-3, 7), (0.5, -1.25), (4, -10), (-7.5, -2), (1000, 1), (3, 0.001)],
)
def test_linear_round_trip(a, b):
    result = solve(f"{a}*x + {b} = 0")
    assert result.values == [pytest.approx(-b / a, abs=1e-9)]
    assert a * result.values[0] + b == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize(
    "a,b,c",
    [(1, -5, 6), (2, 3, -2), (-1, 2, 3), (0.5, -1, -4), (3, 0, -12), (1, 1, -1), (-2, -7, 4)],
)
def test_quadratic_two_roots(a, b, c):
    values = solve(f"{a}*x^2 + {b}*x + {c} = 0").values
    assert len(values) == 2
    assert values[0] < values[1]
    assert values[0] + values[1] == pytest.approx(-b / a, rel=1e-9, abs=1e-9)
    assert values[0] * values[1] == pytest.approx(c / a, rel=1e-9, abs=1e-9)


@pytest.mark.parametrize("a,b,c", [(1, -4, 4), (4, 12, 9), (-1, 2, -1), (0.25, 1, 1)])
def test_quadratic_double_root(a, b, c):
    assert solve(f"{a}*x^2 + {b}*x + {c} = 0").values == [pytest.approx(-b / (2 * a))]


@pytest.mark.parametrize("a,b,c", [(1, 0, 1), (2, 1, 3), (-1, 1, -1)])
def test_quadratic_negative_discriminant(a, b, c):
    with pytest.raises(NoSolutionError) as excinfo:
        solve(f"{a}*x^2 + {b}*x + {c} = 0")
    assert "discriminant" in excinfo.value.message


class TestNumericalFallback:
    def test_cubic(self):
        assert solve("x^3 - x = 0").values == pytest.approx([-1.0, 0.0, 1.0], abs=1e-9)

    def test_exponential(self):
        assert solve("2^x = 8").values == pytest.approx([3.0])

    def test_diverges(self):
        with pytest.raises(SolverDivergedError):
            solve("exp(x) = -1")

    def test_no_solution_in_domain(self):
        with pytest.raises(NoSolutionError):
            solve("sqrt(x) = -1")

    def test_disabled(self, monkeypatch):
        monkeypatch.setattr(config, "NUMERIC_FALLBACK_ENABLED", False)
        with pytest.raises(NonLinearError):
            solve("x^3 = 8")

    def test_explicit_strategies(self):
        solver = EquationSolver()
        with pytest.raises(NonLinearError):
            solver.solve_linear(parse_equation("x^2 = 4"))
        assert solver.solve_quadratic(parse_equation("x^2 = 4")).values == [-2.0, 2.0]


class TestSolveFor(unittest.TestCase):
    def setUp(self):
        self.ctx = Context()
        self.ctx.set_value("y", 1)
        self.solver = EquationSolver(self.ctx)
        self.equation = parse_equation("x + y = 3")

    def test_target_solved(self):
        self.assertEqual(self.solver.solve_for(self.equation, "x").values, [2.0])

    def test_target_bound_in_context(self):
        with self.assertRaises(InvalidEquationError):
            self.solver.solve_for(self.equation, "y")

    def test_target_missing(self):
        with self.assertRaises(InvalidEquationError) as ctx:
            self.solver.solve_for(self.equation, "z")
        self.assertEqual(ctx.exception.message, "variable 'z' not found in equation")

    def test_other_unknowns_remain(self):
        with self.assertRaises(MultipleUnknownsError):
            EquationSolver().solve_for(parse_equation("x + w = 3"), "x")


@pytest.mark.parametrize(
    "flag,values,kept,removed",
    [
        (SolveFlags.ALL, [-2.0, 2.0], [-2.0, 2.0], 0),
        (SolveFlags.POSITIVE, [-2.0, 0.0, 2.0], [2.0], 2),
        (SolveFlags.NEGATIVE, [-2.0, 0.0, 2.0], [-2.0], 2),
        (SolveFlags.NONNEG, [-2.0, 0.0, 2.0], [0.0, 2.0], 1),
        (SolveFlags.INTEGER, [1.5, 2.0], [2.0], 1),
    ],
)
def test_apply_solve_flags(flag, values, kept, removed):
    assert apply_solve_flags(values, flag) == (kept, removed)


def test_parse_solve_flag():
    assert parse_solve_flag("Positive") is SolveFlags.POSITIVE
    assert parse_solve_flag("int") is SolveFlags.INTEGER
    assert parse_solve_flag("nonnegative") is SolveFlags.NONNEG
    assert parse_solve_flag("bogus") is SolveFlags.ALL


def test_product_of_same_variable_is_quadratic():
    assert solve("x*x = 4").values == [-2.0, 2.0]


class TestDomainFiltering:
    def setup_method(self):
        self.solver = EquationSolver()
        self.domain = collect_constraints(parse_expression("1/(x - 3)"))

    def test_invalid_root_dropped(self):
        result = self.solver.filter_domain(SolveResult("x", [1.0, 3.0]), self.domain)
        assert result.values == [1.0]

    def test_every_root_invalid(self):
        with pytest.raises(DomainError) as excinfo:
            self.solver.filter_domain(SolveResult("x", [3.0]), self.domain)
        assert len(excinfo.value.rejections) == 1
