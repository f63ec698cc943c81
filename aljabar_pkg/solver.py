"""Single-equation solving.

:class:`EquationSolver` tries three strategies in order:

1. Linear: collect ``lhs - rhs`` as a linear form and solve ``a·x + b = 0``.
2. Quadratic: only when the linear collector rejected a term as non-linear.
3. Numerical: only when the quadratic collector rejected a term too.

Classification failures drive the fallback through
:class:`~aljabar_pkg.linear_collector.Classification` results rather than
exceptions. Every other error, :class:`MultipleUnknownsError` in particular,
ends the solve immediately. Domain constraints filter the roots of every
strategy.
"""

from __future__ import annotations

import math
from enum import Enum

from . import config
from .context import Context
from .domain import DomainConstraint, collect_domain, filter_roots
from .evaluator import Evaluator
from .expr import Equation, difference, format_double
from .linear_collector import LinearCollector, LinearForm
from .logging_config import get_logger
from .numerical_solver import NumericalSolver
from .quadratic_collector import QuadraticCollector, QuadraticForm
from .substitution import free_variables
from .types import (
    CircularReferenceError,
    EvaluationError,
    InfiniteSolutionsError,
    InvalidEquationError,
    MultipleUnknownsError,
    NoSolutionError,
    SolveResult,
)

logger = get_logger("solver")

EPS = config.ZERO_TOLERANCE


class SolveFlags(Enum):
    """Post-solve filters a user can request, e.g. ``solve positive x^2 = 4``."""

    ALL = "all"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONNEG = "nonneg"
    INTEGER = "integer"


_FLAG_WORDS = {
    "positive": SolveFlags.POSITIVE,
    "negative": SolveFlags.NEGATIVE,
    "nonneg": SolveFlags.NONNEG,
    "nonnegative": SolveFlags.NONNEG,
    "integer": SolveFlags.INTEGER,
    "int": SolveFlags.INTEGER,
}


def parse_solve_flag(word: str) -> SolveFlags:
    """Map a flag keyword to :class:`SolveFlags`; unknown words give ``ALL``."""
    return _FLAG_WORDS.get(word.lower(), SolveFlags.ALL)


def apply_solve_flags(values: list[float], flag: SolveFlags) -> tuple[list[float], int]:
    """Filter ``values`` by ``flag``.

    Returns:
        (kept values, number of values removed)
    """
    if flag is SolveFlags.ALL or not values:
        return list(values), 0
    if flag is SolveFlags.POSITIVE:
        kept = [v for v in values if v > EPS]
    elif flag is SolveFlags.NEGATIVE:
        kept = [v for v in values if v < -EPS]
    elif flag is SolveFlags.NONNEG:
        kept = [v for v in values if v >= -EPS]
    else:
        kept = [v for v in values if abs(v - round(v)) < config.INTEGER_TOLERANCE]
    return kept, len(values) - len(kept)


def _constant_outcome(constant: float) -> InfiniteSolutionsError | NoSolutionError:
    """Error for an equation that reduced to ``constant = 0``."""
    if abs(constant) < EPS:
        return InfiniteSolutionsError("equation is always true (0 = 0)")
    return NoSolutionError(f"equation has no solution ({format_double(constant)} != 0)")


class EquationSolver:
    """Solves one equation in one unknown against a read-only context.

    Args:
        context: Variable bindings (never modified)
        input_text: Source text attached to errors
    """

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text

    def solve(self, equation: Equation) -> SolveResult:
        """Solve ``equation`` for its single unknown.

        Raises:
            MultipleUnknownsError: More than one unresolved variable
            NoSolutionError, InfiniteSolutionsError: Contradiction or identity
            DomainError: Every root violates a domain constraint
            SolverDivergedError: Numerical fallback diverged everywhere
            NonLinearError: Numerical fallback is disabled and the equation is
                neither linear nor quadratic
        """
        domain = collect_domain(equation.lhs, equation.rhs)
        normalized = difference(equation)

        linear = LinearCollector(self.context, self.input_text).classify(normalized)
        if linear.ok:
            return self.filter_domain(self.solve_linear_form(linear.form), domain)
        logger.debug(f"linear form rejected ({linear.error}), trying quadratic")

        quadratic = QuadraticCollector(self.context, self.input_text).classify(normalized)
        if quadratic.ok:
            return self.filter_domain(self.solve_quadratic_form(quadratic.form), domain)
        logger.debug(f"quadratic form rejected ({quadratic.error}), trying numerical")

        if not config.NUMERIC_FALLBACK_ENABLED:
            raise quadratic.error
        return self.solve_numerical(equation, domain)

    def solve_linear(self, equation: Equation) -> SolveResult:
        """Linear strategy alone; raises NonLinearError for non-linear equations."""
        collector = LinearCollector(self.context, self.input_text)
        return self.solve_linear_form(collector.collect(difference(equation)))

    def solve_linear_form(self, form: LinearForm) -> SolveResult:
        unknowns = form.variables()
        if not unknowns:
            raise _constant_outcome(form.constant)
        if len(unknowns) > 1:
            raise MultipleUnknownsError(unknowns)

        var = unknowns[0]
        a = form.get_coeff(var)
        b = form.constant
        if abs(a) < EPS:
            if abs(b) < EPS:
                raise InfiniteSolutionsError(f"equation has infinite solutions (0*{var} = 0)")
            raise NoSolutionError(
                f"equation has no solution (0*{var} = {format_double(-b)})"
            )
        return SolveResult(variable=var, values=[-b / a])

    def solve_quadratic(self, equation: Equation) -> SolveResult:
        """Quadratic strategy alone; raises NonLinearError beyond degree two."""
        collector = QuadraticCollector(self.context, self.input_text)
        return self.solve_quadratic_form(collector.collect(difference(equation)))

    def solve_quadratic_form(self, form: QuadraticForm) -> SolveResult:
        unknowns = form.all_variables()
        if not unknowns:
            raise _constant_outcome(form.constant)
        if len(unknowns) > 1:
            raise MultipleUnknownsError(unknowns)

        var = unknowns[0]
        a = form.get_quad_coeff(var)
        b = form.get_linear_coeff(var)
        c = form.constant

        if abs(a) < EPS:
            if abs(b) < EPS:
                if abs(c) < EPS:
                    raise InfiniteSolutionsError("equation has infinite solutions")
                raise NoSolutionError("equation has no solution")
            return SolveResult(variable=var, values=[-c / b])

        discriminant = b * b - 4 * a * c
        if discriminant < -EPS:
            raise NoSolutionError(
                f"no real solution (discriminant = {format_double(discriminant)} < 0)"
            )
        if abs(discriminant) < EPS:
            return SolveResult(variable=var, values=[-b / (2 * a)])

        sqrt_d = math.sqrt(discriminant)
        x1 = (-b - sqrt_d) / (2 * a)
        x2 = (-b + sqrt_d) / (2 * a)
        return SolveResult(variable=var, values=sorted([x1, x2]))

    def filter_domain(
        self, result: SolveResult, domain: list[DomainConstraint]
    ) -> SolveResult:
        """Drop roots violating ``domain``; raises DomainError if none survive."""
        if not domain or not result.has_solution:
            return result
        values = filter_roots(result.values, domain, result.variable, self.context, self.input_text)
        dropped = len(result.values) - len(values)
        if dropped:
            logger.info(f"{dropped} root(s) of {result.variable} excluded by domain constraints")
        return SolveResult(variable=result.variable, values=values, has_solution=True)

    def solve_numerical(
        self, equation: Equation, domain: list[DomainConstraint] | None = None
    ) -> SolveResult:
        """Numerical strategy: expand the context, find the single free variable, iterate."""
        lhs, rhs = equation.lhs, equation.rhs
        if self.context is not None:
            try:
                lhs = self.context.expand(lhs)
                rhs = self.context.expand(rhs)
            except (CircularReferenceError, EvaluationError):
                lhs, rhs = equation.lhs, equation.rhs

        unknowns = sorted(free_variables(lhs) | free_variables(rhs))
        if not unknowns:
            evaluator = Evaluator(self.context, self.input_text)
            left = evaluator.evaluate_scalar(lhs)
            right = evaluator.evaluate_scalar(rhs)
            if abs(left - right) < EPS:
                raise InfiniteSolutionsError("equation is always true")
            raise NoSolutionError("equation has no solution")
        if len(unknowns) > 1:
            raise MultipleUnknownsError(unknowns)

        expanded = Equation(lhs, rhs, equation.span)
        solver = NumericalSolver(self.context, self.input_text)
        return solver.solve(expanded, unknowns[0], domain or [])

    def solve_for(self, equation: Equation, target: str) -> SolveResult:
        """Solve for ``target`` specifically, substituting every other bound name.

        Raises:
            InvalidEquationError: ``target`` does not occur in the equation, or the
                context already defines it
            MultipleUnknownsError: Other unknowns remain besides ``target``
        """
        normalized = difference(equation)
        present = LinearCollector(None, self.input_text, isolated=True).classify(normalized)
        if present.ok:
            mentioned = set(present.form.variables())
        else:
            mentioned = free_variables(normalized)
        if target not in mentioned:
            raise InvalidEquationError(
                f"variable '{target}' not found in equation", input_text=self.input_text
            )

        collected = LinearCollector(self.context, self.input_text).classify(normalized)
        if collected.ok:
            unknowns = set(collected.form.variables())
        else:
            lookup = self.context.make_lookup() if self.context is not None else None
            expanded = self.context.expand(normalized) if self.context is not None else normalized
            unknowns = free_variables(expanded, lookup)

        if unknowns == {target}:
            return self.solve(equation)
        if target not in unknowns:
            raise InvalidEquationError(
                f"variable '{target}' was substituted from context; cannot solve for it",
                input_text=self.input_text,
            )
        raise MultipleUnknownsError(sorted(unknowns))
