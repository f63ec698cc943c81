"""Systems of linear equations, solved by Gauss-Jordan elimination.

Each equation is stored as the normalized linear form of ``lhs - rhs``; row
``r`` of the augmented matrix holds its coefficients and ``-constant`` on the
right-hand side.
"""

from __future__ import annotations

import numpy as np

from . import config
from .context import Context
from .expr import Equation, difference
from .linear_collector import LinearCollector, LinearForm
from .logging_config import get_logger
from .types import NonLinearError, SolutionType, SystemSolution

logger = get_logger("linear_system")


class AugmentedMatrix:
    """``[A | b]`` with ``rows`` equations over ``cols`` variables."""

    EPSILON = config.ZERO_TOLERANCE

    def __init__(self, rows: int, cols: int):
        self.rows = rows
        self.cols = cols
        self.data = np.zeros((rows, cols + 1), dtype=float)

    def rhs(self, row: int) -> float:
        return float(self.data[row, self.cols])

    def find_pivot(self, row: int, col: int) -> int | None:
        """Row at or below ``row`` with the largest ``|value|`` in ``col``, if above EPSILON."""
        if row >= self.rows:
            return None
        column = np.abs(self.data[row:, col])
        best = int(np.argmax(column))
        if column[best] <= self.EPSILON:
            return None
        return row + best

    def to_rref(self) -> list[int]:
        """Reduce in place to reduced row echelon form; returns the pivot columns."""
        pivot_cols: list[int] = []
        current = 0
        for col in range(self.cols):
            if current >= self.rows:
                break
            pivot_row = self.find_pivot(current, col)
            if pivot_row is None:
                continue
            if pivot_row != current:
                self.data[[current, pivot_row]] = self.data[[pivot_row, current]]
            self.data[current] /= self.data[current, col]

            for r in range(self.rows):
                factor = self.data[r, col]
                if r != current and abs(factor) > self.EPSILON:
                    self.data[r] -= factor * self.data[current]

            pivot_cols.append(col)
            current += 1

        self.data[np.abs(self.data) < self.EPSILON] = 0.0
        return pivot_cols

    def is_inconsistent(self) -> bool:
        """Is there a row ``[0 ... 0 | b]`` with ``b != 0``?"""
        for r in range(self.rows):
            coeffs_zero = np.all(np.abs(self.data[r, : self.cols]) <= self.EPSILON)
            if coeffs_zero and abs(self.data[r, self.cols]) > self.EPSILON:
                return True
        return False

    def to_string(self) -> str:
        lines = []
        for r in range(self.rows):
            coeffs = " ".join(f"{v:8.3f}" for v in self.data[r, : self.cols])
            lines.append(f"[ {coeffs} | {self.data[r, self.cols]:8.3f} ]")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_string()


class LinearSystem:
    """Accumulates normalized linear forms and classifies the system."""

    def __init__(self):
        self.equations: list[LinearForm] = []
        self.variables: list[str] = []

    def add_equation(self, form: LinearForm) -> None:
        """Add ``form`` (meaning ``form = 0``); new variables are appended in order seen."""
        self.equations.append(form)
        for name in form.variables():
            if name not in self.variables:
                self.variables.append(name)

    def set_variables(self, names: list[str]) -> None:
        self.variables = list(names)

    def sort_variables(self) -> None:
        self.variables.sort()

    def num_equations(self) -> int:
        return len(self.equations)

    def num_variables(self) -> int:
        return len(self.variables)

    def clear(self) -> None:
        self.equations.clear()
        self.variables.clear()

    def empty(self) -> bool:
        return not self.equations

    def build_matrix(self) -> AugmentedMatrix:
        matrix = AugmentedMatrix(len(self.equations), len(self.variables))
        for r, form in enumerate(self.equations):
            for c, name in enumerate(self.variables):
                matrix.data[r, c] = form.get_coeff(name)
            matrix.data[r, matrix.cols] = -form.constant
        return matrix

    def solve(self) -> SystemSolution:
        variables = list(self.variables)
        if not self.equations:
            return SystemSolution(SolutionType.INFINITE, variables, [], variables)

        if not variables:
            if any(abs(form.constant) > config.ZERO_TOLERANCE for form in self.equations):
                return SystemSolution(SolutionType.NO_SOLUTION, variables)
            return SystemSolution(SolutionType.UNIQUE, variables)

        matrix = self.build_matrix()
        pivot_cols = matrix.to_rref()
        logger.debug(f"RREF of {matrix.rows}x{matrix.cols} system:\n{matrix}")

        if matrix.is_inconsistent():
            return SystemSolution(SolutionType.NO_SOLUTION, variables)

        if len(pivot_cols) < len(variables):
            pivots = set(pivot_cols)
            free = [name for c, name in enumerate(variables) if c not in pivots]
            return SystemSolution(SolutionType.INFINITE, variables, [], free)

        values = [0.0] * len(variables)
        for i, col in enumerate(pivot_cols):
            values[col] = matrix.rhs(i)
        return SystemSolution(SolutionType.UNIQUE, variables, values)


def build_linear_system(
    equations: list[Equation],
    context: Context | None = None,
    variables: list[str] | None = None,
    input_text: str | None = None,
) -> LinearSystem:
    """Collect each equation's linear form into a :class:`LinearSystem`.

    Variables are ordered alphabetically unless ``variables`` gives an explicit
    order; names missing from an explicit order are appended alphabetically.

    Raises:
        NonLinearError: Naming the 1-based index of the first non-linear equation
    """
    system = LinearSystem()
    for i, equation in enumerate(equations, start=1):
        result = LinearCollector(context, input_text).classify(difference(equation))
        if not result.ok:
            raise NonLinearError(f"equation {i}: {result.error.message}")
        system.add_equation(result.form)

    if variables:
        ordered = list(variables)
        ordered.extend(sorted(name for name in system.variables if name not in ordered))
        system.set_variables(ordered)
    else:
        system.sort_variables()
    return system
