"""Multi-start damped Newton-Raphson for equations in one unknown.

``f(x) = lhs - rhs`` is iterated from a fixed battery of starting points.
Each converged candidate is re-verified, snapped to a nearby integer or
simple fraction, and deduplicated; domain constraints are applied last.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from . import config
from .context import Context
from .domain import DomainConstraint, filter_roots
from .evaluator import Evaluator
from .expr import Equation, Expr, difference
from .logging_config import get_logger
from .types import MathError, NoSolutionError, SolveResult, SolverDivergedError

logger = get_logger("numerical_solver")


class NewtonStatus(Enum):
    CONVERGED = "converged"
    DIVERGED = "diverged"
    EVAL_ERROR = "eval_error"


@dataclass(frozen=True)
class NewtonOutcome:
    status: NewtonStatus
    root: float = math.nan


def snap_root(x: float, tol: float = config.ROOT_SNAP_TOLERANCE) -> float:
    """Snap ``x`` to the nearest integer, or fraction with denominator 2..8, within ``tol``."""
    rounded = round(x)
    if abs(x - rounded) < tol:
        return float(rounded)
    for denom in range(2, config.SNAP_MAX_DENOMINATOR + 1):
        scaled = x * denom
        rounded_scaled = round(scaled)
        if abs(scaled - rounded_scaled) < tol:
            return rounded_scaled / denom
    return x


def is_same_root(a: float, b: float, tol: float = config.ROOT_DEDUP_TOLERANCE) -> bool:
    """Absolute tolerance, or relative tolerance once the values exceed 1 in magnitude."""
    if abs(a - b) < tol:
        return True
    scale = max(abs(a), abs(b))
    return scale > 1.0 and abs(a - b) / scale < tol


class NumericalSolver:
    """Finds real roots of ``lhs = rhs`` in one variable numerically.

    Args:
        context: Bindings visible while evaluating (copied, never modified)
        input_text: Source text attached to errors
    """

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text
        self._scratch = context.copy() if context is not None else Context()

    def eval_at(self, expr: Expr, var: str, value: float) -> float:
        self._scratch.set_value(var, value)
        return Evaluator(self._scratch, self.input_text).evaluate_scalar(expr)

    def derivative(self, expr: Expr, var: str, x: float) -> float:
        """Central difference; NaN when either side fails to evaluate."""
        h = max(config.DERIVATIVE_STEP, abs(x) * config.DERIVATIVE_STEP)
        try:
            forward = self.eval_at(expr, var, x + h)
            backward = self.eval_at(expr, var, x - h)
        except MathError:
            return math.nan
        return (forward - backward) / (2.0 * h)

    def newton(self, expr: Expr, var: str, x0: float) -> NewtonOutcome:
        x = x0
        for _ in range(config.NEWTON_MAX_ITERATIONS):
            try:
                fx = self.eval_at(expr, var, x)
            except MathError:
                return NewtonOutcome(NewtonStatus.EVAL_ERROR)
            if math.isnan(fx):
                return NewtonOutcome(NewtonStatus.DIVERGED)
            if abs(fx) < config.NEWTON_TOLERANCE:
                return NewtonOutcome(NewtonStatus.CONVERGED, x)

            dfx = self.derivative(expr, var, x)
            if math.isnan(dfx) or abs(dfx) < config.DERIVATIVE_FLOOR:
                x += config.NEWTON_PERTURBATION
                continue

            step = fx / dfx
            if abs(step) > config.NEWTON_MAX_STEP:
                step = math.copysign(config.NEWTON_MAX_STEP, step)
            x -= step

            if math.isnan(x) or abs(x) > config.NEWTON_DIVERGENCE_LIMIT:
                return NewtonOutcome(NewtonStatus.DIVERGED)

        try:
            fx = self.eval_at(expr, var, x)
        except MathError:
            return NewtonOutcome(NewtonStatus.DIVERGED)
        if abs(fx) < config.NEWTON_ACCEPT_TOLERANCE:
            return NewtonOutcome(NewtonStatus.CONVERGED, x)
        return NewtonOutcome(NewtonStatus.DIVERGED)

    def find_roots(self, f_expr: Expr, var: str) -> list[float]:
        """Sorted distinct roots of ``f_expr = 0``.

        Raises:
            NoSolutionError: If nothing converged to a verified root
            SolverDivergedError: If every starting point diverged
        """
        roots: list[float] = []
        diverged = 0
        eval_errors = 0
        inconclusive = 0

        for x0 in config.STARTING_POINTS:
            outcome = self.newton(f_expr, var, x0)
            if outcome.status is NewtonStatus.EVAL_ERROR:
                eval_errors += 1
                continue
            if outcome.status is NewtonStatus.DIVERGED or not math.isfinite(outcome.root):
                diverged += 1
                continue

            try:
                check = self.eval_at(f_expr, var, outcome.root)
            except MathError:
                eval_errors += 1
                continue
            if not abs(check) <= config.ROOT_VERIFY_TOLERANCE:
                inconclusive += 1
                continue

            root = snap_root(outcome.root)
            if not any(is_same_root(root, existing) for existing in roots):
                roots.append(root)

        total = len(config.STARTING_POINTS)
        logger.debug(
            f"Newton battery for {var}: {len(roots)} roots, {diverged} diverged, "
            f"{eval_errors} eval errors, {inconclusive} inconclusive"
        )
        if not roots:
            if eval_errors == total:
                raise NoSolutionError(
                    "equation could not be evaluated at any starting point "
                    "(possible domain issue)",
                    input_text=self.input_text,
                )
            if diverged == total:
                raise SolverDivergedError(
                    f"numerical solver diverged from all {total} starting points",
                    input_text=self.input_text,
                )
            raise NoSolutionError(
                f"no real solution found (tried {total} starting points: "
                f"{diverged} diverged, {eval_errors} eval errors, "
                f"{inconclusive} inconclusive)",
                input_text=self.input_text,
            )
        return sorted(roots)

    def solve(
        self,
        equation: Equation,
        var: str,
        domain: list[DomainConstraint] | None = None,
    ) -> SolveResult:
        """Solve ``equation`` for ``var``; other bound names are expanded first."""
        f_expr = difference(equation)
        if self.context is not None:
            others = self.context.copy()
            others.unset(var)
            f_expr = others.expand(f_expr)

        roots = self.find_roots(f_expr, var)
        if domain:
            roots = filter_roots(roots, domain, var, self.context, self.input_text)
        return SolveResult(variable=var, values=roots, has_solution=True)
