"""Newton-Raphson for systems of ``n`` equations in ``n`` unknowns.

The Jacobian is estimated by central differences and each Newton step solves
``J·Δ = f`` by Gaussian elimination with partial pivoting. Starting points are
a fixed grid (two unknowns only) followed by seeded pseudo-random points, so
results are reproducible.
"""

from __future__ import annotations

import math

import numpy as np

from . import config
from .context import Context
from .evaluator import Evaluator
from .expr import Equation
from .logging_config import get_logger
from .numerical_solver import snap_root
from .types import InvalidEquationError, MathError, NonlinearSolution, SolutionType

logger = get_logger("nonlinear_system")


def gaussian_solve(matrix: np.ndarray, rhs: np.ndarray) -> np.ndarray | None:
    """Solve ``matrix @ x = rhs``; None when a pivot falls below the singular threshold."""
    a = np.array(matrix, dtype=float)
    b = np.array(rhs, dtype=float)
    n = len(b)

    for col in range(n):
        max_row = col + int(np.argmax(np.abs(a[col:, col])))
        if abs(a[max_row, col]) < config.SINGULAR_PIVOT:
            return None
        if max_row != col:
            a[[col, max_row]] = a[[max_row, col]]
            b[[col, max_row]] = b[[max_row, col]]
        for row in range(col + 1, n):
            factor = a[row, col] / a[col, col]
            a[row, col:] -= factor * a[col, col:]
            b[row] -= factor * b[col]

    x = np.zeros(n)
    for i in range(n - 1, -1, -1):
        x[i] = (b[i] - a[i, i + 1 :] @ x[i + 1 :]) / a[i, i]
    return x


def starting_points(n: int) -> list[np.ndarray]:
    """Grid over SYSTEM_GRID² when ``n == 2``, then the seeded random points."""
    starts: list[np.ndarray] = []
    if n == 2:
        for a in config.SYSTEM_GRID:
            for b in config.SYSTEM_GRID:
                starts.append(np.array([a, b]))
    rng = np.random.default_rng(config.SYSTEM_RANDOM_SEED)
    limit = config.SYSTEM_RANDOM_RANGE
    for point in rng.uniform(-limit, limit, size=(config.SYSTEM_RANDOM_STARTS, n)):
        starts.append(point)
    return starts


def is_same_solution(a, b, tol: float = config.ROOT_DEDUP_TOLERANCE) -> bool:
    return len(a) == len(b) and all(abs(x - y) <= tol for x, y in zip(a, b))


class NonlinearSystemSolver:
    """Multi-start Newton-Raphson over a read-only context.

    Args:
        context: Bindings for every name that is not being solved for
        input_text: Source text attached to errors
    """

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text
        self._scratch = context.copy() if context is not None else Context()

    def eval_equation(self, equation: Equation, variables: list[str], values) -> float:
        """Residual ``lhs - rhs`` with ``variables`` bound to ``values``."""
        for name, value in zip(variables, values):
            self._scratch.set_value(name, float(value))
        evaluator = Evaluator(self._scratch, self.input_text)
        return evaluator.evaluate_scalar(equation.lhs) - evaluator.evaluate_scalar(equation.rhs)

    def residuals(self, equations: list[Equation], variables: list[str], x) -> np.ndarray:
        return np.array([self.eval_equation(eq, variables, x) for eq in equations])

    def jacobian(self, equations: list[Equation], variables: list[str], x: np.ndarray) -> np.ndarray:
        """Central-difference Jacobian; entries that fail to evaluate are 0."""
        n = len(variables)
        jac = np.zeros((n, n))
        for i, equation in enumerate(equations):
            for j in range(n):
                h = max(config.DERIVATIVE_STEP, abs(x[j]) * config.DERIVATIVE_STEP)
                xp = x.copy()
                xm = x.copy()
                xp[j] += h
                xm[j] -= h
                try:
                    fp = self.eval_equation(equation, variables, xp)
                    fm = self.eval_equation(equation, variables, xm)
                except MathError:
                    continue
                jac[i, j] = (fp - fm) / (2.0 * h)
        return jac

    def newton_system(
        self, equations: list[Equation], variables: list[str], x0: np.ndarray
    ) -> np.ndarray | None:
        """Iterate from ``x0``; None on evaluation failure, singular Jacobian or divergence."""
        x = np.array(x0, dtype=float)
        for _ in range(config.SYSTEM_MAX_ITERATIONS):
            try:
                f = self.residuals(equations, variables, x)
            except MathError:
                return None
            if np.max(np.abs(f)) < config.SYSTEM_TOLERANCE:
                return x

            delta = gaussian_solve(self.jacobian(equations, variables, x), f)
            if delta is None:
                return None

            max_step = float(np.max(np.abs(delta)))
            damping = config.SYSTEM_MAX_STEP / max_step if max_step > config.SYSTEM_MAX_STEP else 1.0
            x = x - damping * delta

            if np.any(np.isnan(x)) or np.any(np.abs(x) > config.NEWTON_DIVERGENCE_LIMIT):
                return None
        return None

    def _verified(self, equations: list[Equation], variables: list[str], x: np.ndarray) -> bool:
        try:
            residuals = self.residuals(equations, variables, x)
        except MathError:
            return False
        return bool(np.all(np.abs(residuals) <= config.ROOT_VERIFY_TOLERANCE))

    def solve(self, equations: list[Equation], variables: list[str]) -> NonlinearSolution:
        """Find every distinct solution reachable from the starting points.

        Raises:
            InvalidEquationError: If the number of equations differs from the
                number of unknowns
        """
        n = len(variables)
        if len(equations) != n or n == 0:
            raise InvalidEquationError(
                f"nonlinear system needs as many equations as unknowns "
                f"(got {len(equations)} equations, {n} unknowns)"
            )

        solutions: list[list[float]] = []
        starts = starting_points(n)
        for x0 in starts:
            x = self.newton_system(equations, variables, x0)
            if x is None or not self._verified(equations, variables, x):
                continue
            snapped = [snap_root(float(v), config.SYSTEM_SNAP_TOLERANCE) for v in x]
            if not any(is_same_solution(snapped, existing) for existing in solutions):
                solutions.append(snapped)

        logger.debug(f"nonlinear system: {len(solutions)} solution(s) from {len(starts)} starts")
        if not solutions:
            return NonlinearSolution(SolutionType.NO_SOLUTION, list(variables))
        return NonlinearSolution(
            SolutionType.UNIQUE, list(variables), list(solutions[0]), solutions
        )
