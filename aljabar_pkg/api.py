"""Public API for Aljabar - returns structured objects without side effects.

Every function takes an optional :class:`~aljabar_pkg.context.Context` that is
read but never modified, and reports failures through ``ok=False`` instead of
raising.
"""

from __future__ import annotations

import sympy as sp

from . import config
from .context import Context
from .evaluator import Evaluator
from .expr import Equation, Expr
from .linear_system import build_linear_system
from .logging_config import get_logger
from .nonlinear_system import NonlinearSystemSolver
from .parser import (
    format_value,
    format_values,
    parse_equation,
    parse_expression,
    split_top_level_commas,
    to_sympy,
)
from .simplify import Simplifier, SimplifyOptions
from .solver import EquationSolver, SolveFlags, apply_solve_flags
from .substitution import free_variables
from .types import (
    EquationResult,
    EvalResult,
    MathError,
    MultipleUnknownsError,
    NonLinearError,
    SimplifyResult,
    SolutionType,
    SystemResult,
    UndefinedVariableError,
)

logger = get_logger("api")


def _symbolic_form(expr: Expr, input_text: str) -> str:
    """Linear canonical text when possible, otherwise SymPy's expanded form."""
    try:
        return Simplifier(None, input_text).simplify_expression(expr).canonical
    except NonLinearError:
        return str(sp.expand(to_sympy(expr)))


def evaluate(text: str, context: Context | None = None) -> EvalResult:
    """Evaluate an expression.

    Args:
        text: Expression string (e.g., "2+2", "sqrt(16) + x")
        context: Variable bindings

    Returns:
        EvalResult with the formatted value, or the expanded symbolic form
        when unbound variables remain

    Example:
        >>> from aljabar_pkg.api import evaluate
        >>> evaluate("2 + 3 * 4").value
        '14'
        >>> evaluate("2x + x + 1").symbolic
        '3x + 1'
    """
    if context is None:
        context = Context()
    try:
        expr = parse_expression(text)
        try:
            value = Evaluator(context, text).evaluate(expr)
        except UndefinedVariableError as exc:
            expanded = context.expand(expr)
            try:
                symbolic = _symbolic_form(expanded, text)
            except TypeError:
                raise exc from None
            return EvalResult(
                ok=True,
                symbolic=symbolic,
                free_symbols=sorted(free_variables(expanded)),
            )
    except MathError as exc:
        return EvalResult(ok=False, error=exc.message, error_code=exc.code)

    if value.is_scalar:
        return EvalResult(ok=True, value=format_value(value.scalar, config.FRACTION_MODE))
    values = list(value.to_vector())
    formatted = format_values(values, config.FRACTION_MODE)
    return EvalResult(ok=True, value=f"[{formatted}]", values=values)


def solve_equation(
    text: str,
    context: Context | None = None,
    find_var: str | None = None,
    flag: SolveFlags = SolveFlags.ALL,
) -> EquationResult:
    """Solve a single equation in one unknown.

    Args:
        text: Equation string (e.g., "2x + 4 = 0", "x^2 = 4")
        context: Variable bindings
        find_var: Solve for this variable specifically
        flag: Keep only roots matching this filter

    Returns:
        EquationResult with the roots; ``filtered`` counts roots removed by ``flag``

    Example:
        >>> from aljabar_pkg.api import solve_equation
        >>> solve_equation("x^2 - 4 = 0").values
        [-2.0, 2.0]
        >>> solve_equation("x^2 - 4 = 0", flag=SolveFlags.POSITIVE).values
        [2.0]
    """
    try:
        equation = parse_equation(text)
        solver = EquationSolver(context, text)
        if find_var:
            result = solver.solve_for(equation, find_var)
        else:
            result = solver.solve(equation)
    except MultipleUnknownsError as exc:
        return EquationResult(
            ok=False, unknowns=exc.unknowns, error=exc.message, error_code=exc.code
        )
    except MathError as exc:
        return EquationResult(ok=False, error=exc.message, error_code=exc.code)

    kept, removed = apply_solve_flags(result.values, flag)
    return EquationResult(
        ok=True,
        variable=result.variable,
        values=kept,
        formatted=[format_value(v, config.FRACTION_MODE) for v in kept],
        filtered=removed,
    )


def _parse_equations(equations: list[str] | str) -> list[Equation]:
    if isinstance(equations, str):
        equations = split_top_level_commas(equations)
    return [parse_equation(eq) for eq in equations]


def _order(names: set[str], variables: list[str] | None) -> list[str]:
    if not variables:
        return sorted(names)
    ordered = list(variables)
    ordered.extend(sorted(name for name in names if name not in ordered))
    return ordered


def _solve_nonlinear(
    parsed: list[Equation], context: Context, variables: list[str] | None
) -> SystemResult | None:
    """Nonlinear fallback; None when the expanded system is not square."""
    expanded = [Equation(context.expand(eq.lhs), context.expand(eq.rhs), eq.span) for eq in parsed]
    unknowns: set[str] = set()
    for eq in expanded:
        unknowns |= free_variables(eq.lhs) | free_variables(eq.rhs)
    order = _order(unknowns, variables)
    if len(order) != len(expanded):
        return None

    solution = NonlinearSystemSolver(context).solve(expanded, order)
    return SystemResult(
        ok=True,
        method="nonlinear",
        solution_type=solution.type.value,
        variables=order,
        solutions=[dict(zip(order, values)) for values in solution.all_solutions],
    )


def solve_system(
    equations: list[str] | str,
    context: Context | None = None,
    variables: list[str] | None = None,
) -> SystemResult:
    """Solve a system of equations.

    Linear systems are solved exactly by Gauss-Jordan elimination. When any
    equation is non-linear and the system has as many equations as unknowns,
    multi-start Newton-Raphson is used instead.

    Args:
        equations: Equation strings, or one comma-separated string
            (e.g., "x+y=3, x-y=1")
        context: Variable bindings
        variables: Explicit variable order

    Returns:
        SystemResult with one dict per solution

    Example:
        >>> from aljabar_pkg.api import solve_system
        >>> solve_system("x+y=3, x-y=1").solutions
        [{'x': 2.0, 'y': 1.0}]
    """
    if context is None:
        context = Context()
    try:
        parsed = _parse_equations(equations)
        try:
            system = build_linear_system(parsed, context, variables)
        except NonLinearError as exc:
            logger.debug(f"linear assembly failed ({exc.message}), trying nonlinear solver")
            result = _solve_nonlinear(parsed, context, variables)
            if result is None:
                raise
            return result
        solution = system.solve()
    except MathError as exc:
        return SystemResult(ok=False, error=exc.message, error_code=exc.code)

    solutions = None
    if solution.type is SolutionType.UNIQUE:
        solutions = [dict(zip(solution.variables, solution.values))]
    return SystemResult(
        ok=True,
        method="linear",
        solution_type=solution.type.value,
        variables=solution.variables,
        solutions=solutions,
        free_variables=solution.free_variables,
    )


def simplify_equation(
    text: str,
    context: Context | None = None,
    isolated: bool = False,
    variables: list[str] | None = None,
    as_fraction: bool = False,
) -> SimplifyResult:
    """Bring a linear equation to the canonical form ``Ax + By = D``.

    Example:
        >>> from aljabar_pkg.api import simplify_equation
        >>> simplify_equation("2x + 3 = x - 1").canonical
        'x = -4'
    """
    options = SimplifyOptions(
        var_order=list(variables or []), isolated=isolated, as_fraction=as_fraction
    )
    try:
        equation = parse_equation(text)
        result = Simplifier(context, text).simplify(equation, options)
    except MathError as exc:
        return SimplifyResult(ok=False, error=exc.message, error_code=exc.code)

    verdict = None
    if result.is_no_solution():
        verdict = "no_solution"
    elif result.is_infinite_solutions():
        verdict = "infinite_solutions"
    return SimplifyResult(
        ok=True, canonical=result.canonical, warnings=result.warnings, verdict=verdict
    )
