"""Type definitions: source spans, the error hierarchy and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Span:
    """Half-open character range ``[start, end)`` into the source text."""

    start: int = 0
    end: int = 0

    @property
    def length(self) -> int:
        return self.end - self.start

    def empty(self) -> bool:
        return self.start >= self.end

    def merge(self, other: Span) -> Span:
        """Return the smallest span covering both spans."""
        return Span(min(self.start, other.start), max(self.end, other.end))


def format_error_at_span(message: str, input_text: str, span: Span) -> str:
    """Render an error message followed by the input line and a caret underline.

    Args:
        message: Error message
        input_text: Source text the span points into
        span: Offending range

    Returns:
        Multi-line string, e.g. ``"Error: ...\\n  2 + * 3\\n      ^"``
    """
    start = max(0, min(span.start, len(input_text)))
    width = max(1, span.end - start)
    return f"Error: {message}\n  {input_text}\n  {' ' * start}{'^' * width}"


class MathError(Exception):
    """Base class for every error raised by the algebra engine."""

    default_code = "MATH_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        span: Span | None = None,
        input_text: str | None = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.span = span
        self.input_text = input_text
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def format(self) -> str:
        """Human-readable form, with a caret marker when the source is known."""
        if self.span is not None and self.input_text and not self.span.empty():
            return format_error_at_span(self.message, self.input_text, self.span)
        return f"Error: {self.message}"


class ValidationError(MathError):
    """Raised when input validation fails."""

    default_code = "VALIDATION_ERROR"


class ParseError(MathError):
    """Raised when parsing fails."""

    default_code = "PARSE_ERROR"


class EvaluationError(MathError):
    """Raised for arithmetic failures: division by zero, domain errors, bad indices."""

    default_code = "EVALUATION_ERROR"


class UndefinedVariableError(MathError):
    """Raised when a variable has no binding in the context."""

    default_code = "UNDEFINED_VARIABLE"

    def __init__(self, var_name: str, span: Span | None = None):
        self.var_name = var_name
        super().__init__(f"undefined variable: {var_name}", span=span)


class CircularReferenceError(MathError):
    """Raised when variable bindings refer back to themselves."""

    default_code = "CIRCULAR_REFERENCE"

    def __init__(self, message: str, var_name: str | None = None):
        self.var_name = var_name
        super().__init__(message)


class NonLinearError(MathError):
    """Raised when a term cannot be represented in the requested algebraic form."""

    default_code = "NON_LINEAR"


class MultipleUnknownsError(MathError):
    """Raised when an equation has more than one unresolved variable."""

    default_code = "MULTIPLE_UNKNOWNS"

    def __init__(self, unknowns: list[str]):
        self.unknowns = list(unknowns)
        super().__init__(f"multiple unknowns in equation ({', '.join(self.unknowns)})")


class NoSolutionError(MathError):
    default_code = "NO_SOLUTION"


class InfiniteSolutionsError(MathError):
    default_code = "INFINITE_SOLUTIONS"


class DomainError(MathError):
    """Raised when every candidate root violates a domain constraint."""

    default_code = "DOMAIN_ERROR"

    def __init__(self, message: str, rejections: list[str] | None = None):
        self.rejections = list(rejections or [])
        super().__init__(message)


class SolverDivergedError(MathError):
    default_code = "SOLVER_DIVERGED"


class InvalidEquationError(MathError):
    default_code = "INVALID_EQUATION"


class SolutionType(Enum):
    """Classification of a system of equations."""

    UNIQUE = "unique"
    NO_SOLUTION = "no_solution"
    INFINITE = "infinite"


@dataclass
class SolveResult:
    """Roots of a single equation in one unknown."""

    variable: str
    values: list[float] = field(default_factory=list)
    has_solution: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "variable": self.variable,
            "values": list(self.values),
            "has_solution": self.has_solution,
        }


@dataclass
class SystemSolution:
    """Outcome of a linear system solve."""

    type: SolutionType
    variables: list[str] = field(default_factory=list)
    values: list[float] = field(default_factory=list)
    free_variables: list[str] = field(default_factory=list)

    def value_of(self, name: str) -> float:
        return self.values[self.variables.index(name)]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "type": self.type.value,
            "variables": list(self.variables),
        }
        if self.type is SolutionType.UNIQUE:
            result_dict["values"] = dict(zip(self.variables, self.values))
        if self.free_variables:
            result_dict["free_variables"] = list(self.free_variables)
        return result_dict


@dataclass
class NonlinearSolution:
    """Outcome of a nonlinear system solve; ``values`` is the first of ``all_solutions``."""

    type: SolutionType
    variables: list[str] = field(default_factory=list)
    values: list[float] = field(default_factory=list)
    all_solutions: list[list[float]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {
            "type": self.type.value,
            "variables": list(self.variables),
        }
        if self.all_solutions:
            result_dict["solutions"] = [
                dict(zip(self.variables, sol)) for sol in self.all_solutions
            ]
        return result_dict


@dataclass
class EvalResult:
    """Result of evaluating an expression through the public API."""

    ok: bool
    value: str | None = None
    values: list[float] | None = None
    symbolic: str | None = None
    free_symbols: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "type": "value"}
        if self.value is not None:
            result_dict["value"] = self.value
        if self.values is not None:
            result_dict["values"] = self.values
        if self.symbolic is not None:
            result_dict["symbolic"] = self.symbolic
        if self.free_symbols is not None:
            result_dict["free_symbols"] = self.free_symbols
        if self.error is not None:
            result_dict["error"] = self.error
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r})"
        parts = [f"ok={self.ok}"]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        if self.symbolic is not None:
            parts.append(f"symbolic={self.symbolic!r}")
        if self.free_symbols is not None:
            parts.append(f"free_symbols={self.free_symbols!r}")
        return f"EvalResult({', '.join(parts)})"


@dataclass
class EquationResult:
    """Result of solving one equation through the public API."""

    ok: bool
    variable: str | None = None
    values: list[float] | None = None
    formatted: list[str] | None = None
    filtered: int = 0
    unknowns: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "type": "equation"}
        if self.variable is not None:
            result_dict["variable"] = self.variable
        if self.values is not None:
            result_dict["values"] = self.values
        if self.formatted is not None:
            result_dict["formatted"] = self.formatted
        if self.filtered:
            result_dict["filtered"] = self.filtered
        if self.unknowns is not None:
            result_dict["unknowns"] = self.unknowns
        if self.error is not None:
            result_dict["error"] = self.error
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        """Return string representation of the result."""
        if not self.ok:
            return f"EquationResult(ok=False, error={self.error!r})"
        return f"EquationResult(ok=True, variable={self.variable!r}, values={self.values!r})"


@dataclass
class SystemResult:
    """Result of solving a system of equations through the public API."""

    ok: bool
    method: str | None = None  # "linear" or "nonlinear"
    solution_type: str | None = None
    variables: list[str] | None = None
    solutions: list[dict[str, float]] | None = None
    free_variables: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "type": "system"}
        if self.method is not None:
            result_dict["method"] = self.method
        if self.solution_type is not None:
            result_dict["solution_type"] = self.solution_type
        if self.variables is not None:
            result_dict["variables"] = self.variables
        if self.solutions is not None:
            result_dict["solutions"] = self.solutions
        if self.free_variables:
            result_dict["free_variables"] = self.free_variables
        if self.error is not None:
            result_dict["error"] = self.error
            result_dict["error_code"] = self.error_code
        return result_dict


@dataclass
class SimplifyResult:
    """Result of bringing an equation into canonical form through the public API."""

    ok: bool
    canonical: str | None = None
    warnings: list[str] | None = None
    verdict: str | None = None  # "no_solution" or "infinite_solutions"
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok, "type": "simplify"}
        if self.canonical is not None:
            result_dict["canonical"] = self.canonical
        if self.warnings:
            result_dict["warnings"] = self.warnings
        if self.verdict is not None:
            result_dict["verdict"] = self.verdict
        if self.error is not None:
            result_dict["error"] = self.error
            result_dict["error_code"] = self.error_code
        return result_dict
