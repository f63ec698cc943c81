"""Canonical linear form of equations: ``Ax + By + Cz = D``."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import config
from .context import Context
from .expr import Equation, Expr, format_double
from .linear_collector import LinearCollector, LinearForm
from .parser import format_fraction
from .substitution import free_variables


@dataclass
class SimplifyOptions:
    var_order: list[str] = field(default_factory=list)
    isolated: bool = False
    as_fraction: bool = False
    show_zero_coeffs: bool = False


@dataclass
class CanonicalEquation:
    """A normalized linear form together with its rendered text."""

    form: LinearForm
    var_order: list[str]
    canonical: str
    warnings: list[str] = field(default_factory=list)

    def is_no_solution(self) -> bool:
        return self.form.is_constant() and abs(self.form.constant) > config.ZERO_TOLERANCE

    def is_infinite_solutions(self) -> bool:
        return self.form.is_constant() and abs(self.form.constant) < config.ZERO_TOLERANCE

    def __str__(self) -> str:
        return self.canonical


def _format_magnitude(value: float, as_fraction: bool) -> str:
    return format_fraction(value) if as_fraction else format_double(value)


def format_coefficient(coeff: float, as_fraction: bool = False) -> str:
    """Coefficient text for a variable term; a unit coefficient is elided."""
    if abs(coeff - 1.0) < config.ZERO_TOLERANCE:
        return ""
    return _format_magnitude(coeff, as_fraction)


def _format_terms(
    form: LinearForm, var_order: list[str], as_fraction: bool, show_zero: bool
) -> list[str]:
    parts: list[str] = []
    for var in var_order:
        coeff = form.get_coeff(var)
        is_zero = abs(coeff) < config.ZERO_TOLERANCE
        if is_zero and not show_zero:
            continue
        if parts:
            parts.append(" - " if coeff < 0 else " + ")
        elif coeff < 0:
            parts.append("-")
        if is_zero:
            parts.append(f"0{var}")
        else:
            parts.append(f"{format_coefficient(abs(coeff), as_fraction)}{var}")
    return parts


def format_canonical(form: LinearForm, var_order: list[str], options: SimplifyOptions) -> str:
    """Render ``form`` as ``terms = D`` where ``D`` is the negated constant."""
    parts = _format_terms(form, var_order, options.as_fraction, options.show_zero_coeffs)
    lhs = "".join(parts) if parts else "0"
    rhs = -form.constant
    if abs(rhs) < config.ZERO_TOLERANCE:
        rhs = 0.0
    return f"{lhs} = {_format_magnitude(rhs, options.as_fraction)}"


def format_expression(form: LinearForm, var_order: list[str], options: SimplifyOptions) -> str:
    """Render ``form`` as a sum of terms followed by its constant."""
    parts = _format_terms(form, var_order, options.as_fraction, False)
    constant = form.constant
    if abs(constant) > config.ZERO_TOLERANCE or not parts:
        if parts:
            parts.append(" - " if constant < 0 else " + ")
        elif constant < 0:
            parts.append("-")
        parts.append(_format_magnitude(abs(constant), options.as_fraction))
    return "".join(parts)


def _variable_order(form: LinearForm, options: SimplifyOptions) -> list[str]:
    if options.var_order:
        return list(options.var_order)
    return sorted(form.variables())


class Simplifier:
    """Normalizes linear equations and expressions against a context.

    Args:
        context: Bindings substituted unless ``isolated`` is requested
        input_text: Source text attached to errors
    """

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text

    def _collector(self, options: SimplifyOptions) -> LinearCollector:
        context = None if options.isolated else self.context
        return LinearCollector(context, self.input_text)

    def shadow_warnings(self, equation: Equation) -> list[str]:
        """One warning per equation name that a context binding would replace."""
        if self.context is None:
            return []
        names = free_variables(equation.lhs) | free_variables(equation.rhs)
        return [
            f"'{name}' in expression shadows context variable "
            f"(use --isolated to keep as variable)"
            for name in sorted(names)
            if self.context.has(name)
        ]

    def simplify(
        self, equation: Equation, options: SimplifyOptions | None = None
    ) -> CanonicalEquation:
        """Bring ``lhs = rhs`` to ``Σ coeff·var = D``.

        Raises:
            NonLinearError: If either side is not linear after substitution
        """
        if options is None:
            options = SimplifyOptions()
        warnings = [] if options.isolated else self.shadow_warnings(equation)

        collector = self._collector(options)
        form = (collector.collect(equation.lhs) - collector.collect(equation.rhs)).simplify()
        var_order = _variable_order(form, options)
        return CanonicalEquation(form, var_order, format_canonical(form, var_order, options), warnings)

    def simplify_expression(
        self, expr: Expr, options: SimplifyOptions | None = None
    ) -> CanonicalEquation:
        if options is None:
            options = SimplifyOptions()
        form = self._collector(options).collect(expr)
        var_order = _variable_order(form, options)
        return CanonicalEquation(form, var_order, format_expression(form, var_order, options))


def simplify_expression(
    expr: Expr, options: SimplifyOptions | None = None, context: Context | None = None
) -> CanonicalEquation:
    return Simplifier(context).simplify_expression(expr, options)
