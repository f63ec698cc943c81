"""Constant folding: replace all-numeric subtrees with their values.

``(2*7 + 1)^2 - 4 + 9`` folds to ``230``; ``2*x + 3*4`` folds to ``2*x + 12``.
Operations that would fail or produce a non-finite result are left unfolded so
the evaluator can report them with a proper error.
"""

from __future__ import annotations

import math

from .evaluator import apply_scalar_function, apply_scalar_op
from .expr import BinaryOp, BinaryOpType, Expr, FunctionCall, IndexAccess, Number, NumberArray
from .types import EvaluationError

_DIVISOR_FLOOR = 1e-15


def _try_op(op: BinaryOpType, left: float, right: float) -> float | None:
    if op is BinaryOpType.DIV and abs(right) < _DIVISOR_FLOOR:
        return None
    try:
        value = apply_scalar_op(left, right, op)
    except EvaluationError:
        return None
    return value if math.isfinite(value) else None


def _try_function(name: str, x: float) -> float | None:
    try:
        value = apply_scalar_function(name, x)
    except EvaluationError:
        return None
    return value if math.isfinite(value) else None


def _fold_all(results: list[float | None]) -> tuple[float, ...] | None:
    if any(v is None for v in results):
        return None
    return tuple(results)


def fold_constants(expr: Expr) -> Expr:
    """Return a new tree with every foldable numeric subtree evaluated."""
    if isinstance(expr, IndexAccess):
        target = fold_constants(expr.target)
        if isinstance(target, NumberArray) and expr.index < target.size:
            return Number(target.values[expr.index], expr.span)
        return IndexAccess(target, expr.index, expr.span)

    if isinstance(expr, FunctionCall):
        args = tuple(fold_constants(a) for a in expr.args)
        if len(args) == 1:
            arg = args[0]
            if isinstance(arg, Number):
                value = _try_function(expr.name, arg.value)
                if value is not None:
                    return Number(value, expr.span)
            elif isinstance(arg, NumberArray):
                mapped = _fold_all([_try_function(expr.name, v) for v in arg.values])
                if mapped is not None:
                    return NumberArray(mapped, expr.span)
        return FunctionCall(expr.name, args, expr.span)

    if isinstance(expr, BinaryOp):
        left = fold_constants(expr.left)
        right = fold_constants(expr.right)
        op = expr.op
        folded: tuple[float, ...] | None = None

        if isinstance(left, Number) and isinstance(right, Number):
            value = _try_op(op, left.value, right.value)
            if value is not None:
                return Number(value, expr.span)
        elif isinstance(left, Number) and isinstance(right, NumberArray):
            folded = _fold_all([_try_op(op, left.value, v) for v in right.values])
        elif isinstance(left, NumberArray) and isinstance(right, Number):
            folded = _fold_all([_try_op(op, v, right.value) for v in left.values])
        elif (
            isinstance(left, NumberArray)
            and isinstance(right, NumberArray)
            and left.size == right.size
        ):
            folded = _fold_all(
                [_try_op(op, lv, rv) for lv, rv in zip(left.values, right.values)]
            )

        if folded is not None:
            return NumberArray(folded, expr.span)
        return BinaryOp(left, right, op, expr.span)

    return expr
