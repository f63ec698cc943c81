"""Tests for linear systems and the augmented matrix."""

import unittest

import numpy as np
import pytest

from aljabar_pkg.context import Context
from aljabar_pkg.linear_collector import LinearForm
from aljabar_pkg.linear_system import AugmentedMatrix, LinearSystem, build_linear_system
from aljabar_pkg.parser import parse_equation
from aljabar_pkg.types import NonLinearError, SolutionType


def system_of(*texts, context=None, variables=None):
    return build_linear_system([parse_equation(t) for t in texts], context, variables)


class TestLinearSystem(unittest.TestCase):
    """Test classification of linear systems."""

    def test_unique(self):
        solution = system_of("x + y = 3", "x - y = 1").solve()
        self.assertIs(solution.type, SolutionType.UNIQUE)
        self.assertEqual(solution.variables, ["x", "y"])
        self.assertAlmostEqual(solution.value_of("x"), 2.0)
        self.assertAlmostEqual(solution.value_of("y"), 1.0)

    def test_three_variables(self):
        solution = system_of(
            "x + y + z = 6", "2x - y + z = 3", "x + 2y - z = 2"
        ).solve()
        self.assertIs(solution.type, SolutionType.UNIQUE)
        np.testing.assert_allclose(solution.values, [1.0, 2.0, 3.0], atol=1e-9)

    def test_inconsistent(self):
        solution = system_of("x + y = 1", "x + y = 2").solve()
        self.assertIs(solution.type, SolutionType.NO_SOLUTION)

    def test_dependent(self):
        solution = system_of("x + y = 1", "2x + 2y = 2").solve()
        self.assertIs(solution.type, SolutionType.INFINITE)
        self.assertEqual(solution.free_variables, ["y"])

    def test_underdetermined(self):
        solution = system_of("x + y + z = 1").solve()
        self.assertIs(solution.type, SolutionType.INFINITE)
        self.assertEqual(solution.free_variables, ["y", "z"])

    def test_overdetermined_consistent(self):
        solution = system_of("x = 1", "y = 2", "x + y = 3").solve()
        self.assertIs(solution.type, SolutionType.UNIQUE)

    def test_context(self):
        ctx = Context()
        ctx.set_value("a", 2)
        solution = system_of("x + a*y = 5", "x - y = -1", context=ctx).solve()
        self.assertEqual(solution.variables, ["x", "y"])
        np.testing.assert_allclose(solution.values, [1.0, 2.0], atol=1e-9)

    def test_explicit_order(self):
        system = system_of("x + y + z = 6", "y = 2", "z = 3", variables=["z", "x"])
        self.assertEqual(system.variables, ["z", "x", "y"])
        solution = system.solve()
        self.assertAlmostEqual(solution.value_of("x"), 1.0)

    def test_nonlinear_equation_reported(self):
        with self.assertRaises(NonLinearError) as ctx:
            system_of("x + y = 1", "x*y = 2")
        self.assertTrue(ctx.exception.message.startswith("equation 2: "))

    def test_empty_system(self):
        self.assertIs(LinearSystem().solve().type, SolutionType.INFINITE)

    def test_constant_equations(self):
        system = LinearSystem()
        system.add_equation(LinearForm.const(0.0))
        self.assertIs(system.solve().type, SolutionType.UNIQUE)
        system.add_equation(LinearForm.const(1.0))
        self.assertIs(system.solve().type, SolutionType.NO_SOLUTION)


def test_to_dict():
    solution = system_of("x + y = 3", "x - y = 1").solve()
    data = solution.to_dict()
    assert data["type"] == "unique"
    assert data["values"]["x"] == pytest.approx(2.0)


def test_rref_and_pivots():
    matrix = AugmentedMatrix(2, 2)
    matrix.data[:] = [[2.0, 4.0, 6.0], [1.0, 3.0, 4.0]]
    assert matrix.to_rref() == [0, 1]
    np.testing.assert_allclose(matrix.data, [[1.0, 0.0, 1.0], [0.0, 1.0, 1.0]], atol=1e-12)
    assert not matrix.is_inconsistent()
    assert matrix.find_pivot(2, 0) is None


def test_matrix_to_string():
    matrix = AugmentedMatrix(1, 2)
    matrix.data[0] = [1.0, -2.0, 3.0]
    assert str(matrix) == "[    1.000   -2.000 |    3.000 ]"
