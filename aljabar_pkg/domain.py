"""Domain constraints: side conditions a root must satisfy.

Every division contributes ``denominator != 0``, every single-argument
``sqrt`` contributes ``argument >= 0`` and every ``log``/``ln`` contributes
``argument > 0``, whether or not the surrounding equation is linear. A
constraint holds its own reference to the guarded subtree; trees are
immutable, so the constraint stays valid independently of the equation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from . import config
from .context import Context
from .evaluator import Evaluator
from .expr import BinaryOp, BinaryOpType, Expr, FunctionCall, IndexAccess, format_double
from .types import DomainError, MathError


class ConstraintKind(Enum):
    DIV_BY_ZERO = "div_by_zero"
    SQRT_NEG = "sqrt_neg"
    LOG_NON_POS = "log_non_pos"


@dataclass(frozen=True)
class DomainConstraint:
    kind: ConstraintKind
    expr: Expr
    description: str


def collect_constraints(expr: Expr) -> list[DomainConstraint]:
    """Constraints of ``expr`` in depth-first order, children before parents."""
    constraints: list[DomainConstraint] = []
    _walk(expr, constraints)
    return constraints


def _walk(node: Expr, out: list[DomainConstraint]) -> None:
    if isinstance(node, IndexAccess):
        _walk(node.target, out)
    elif isinstance(node, BinaryOp):
        _walk(node.left, out)
        _walk(node.right, out)
        if node.op is BinaryOpType.DIV:
            out.append(
                DomainConstraint(
                    ConstraintKind.DIV_BY_ZERO, node.right, f"denominator {node.right} != 0"
                )
            )
    elif isinstance(node, FunctionCall):
        for arg in node.args:
            _walk(arg, out)
        if len(node.args) != 1:
            return
        arg = node.args[0]
        if node.name == "sqrt":
            out.append(
                DomainConstraint(ConstraintKind.SQRT_NEG, arg, f"sqrt argument {arg} >= 0")
            )
        elif node.name in ("ln", "log"):
            out.append(
                DomainConstraint(
                    ConstraintKind.LOG_NON_POS, arg, f"{node.name} argument {arg} > 0"
                )
            )


def collect_domain(lhs: Expr, rhs: Expr) -> list[DomainConstraint]:
    """Constraints from both sides of an equation, left side first."""
    return collect_constraints(lhs) + collect_constraints(rhs)


def validate_root(
    constraints: list[DomainConstraint],
    var: str,
    value: float,
    context: Context | None = None,
    input_text: str | None = None,
) -> str:
    """Check a candidate root against every constraint.

    The candidate is bound in a temporary copy of ``context``; the caller's
    context is never touched. A guard that fails to evaluate counts as a
    violation.

    Returns:
        "" when every constraint holds, otherwise the first violation's description
    """
    temp = context.copy() if context is not None else Context()
    temp.set_value(var, value)
    evaluator = Evaluator(temp, input_text)
    at = f"{var} = {format_double(value)}"

    for constraint in constraints:
        try:
            guard = evaluator.evaluate_scalar(constraint.expr)
        except MathError:
            return constraint.description

        if constraint.kind is ConstraintKind.DIV_BY_ZERO:
            if abs(guard) < config.ZERO_TOLERANCE:
                return f"{constraint.description} (division by zero at {at})"
        elif constraint.kind is ConstraintKind.SQRT_NEG:
            if guard < -config.ZERO_TOLERANCE:
                return f"{constraint.description} (negative at {at})"
        elif guard <= config.ZERO_TOLERANCE:
            return f"{constraint.description} (non-positive at {at})"
    return ""


def filter_roots(
    roots: list[float],
    constraints: list[DomainConstraint],
    var: str,
    context: Context | None = None,
    input_text: str | None = None,
) -> list[float]:
    """Keep the roots that satisfy every constraint.

    Raises:
        DomainError: If every root is excluded; one reason per rejected root
    """
    if not constraints:
        return list(roots)
    valid: list[float] = []
    rejections: list[str] = []
    for root in roots:
        reason = validate_root(constraints, var, root, context, input_text)
        if reason:
            rejections.append(f"{format_double(root)} excluded: {reason}")
        else:
            valid.append(root)
    if not valid:
        message = "all roots excluded by domain constraints"
        message += "".join(f"\n  {r}" for r in rejections)
        raise DomainError(message, rejections)
    return valid
