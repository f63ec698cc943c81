"""Numeric evaluation of expression trees.

Values are scalars or vectors. Binary operations broadcast a scalar over a
vector and combine equal-length vectors element-wise; functions map over
vector elements.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from . import config
from .context import Context
from .expr import (
    BinaryOp,
    BinaryOpType,
    Expr,
    FunctionCall,
    IndexAccess,
    Number,
    NumberArray,
    Variable,
    format_double,
)
from .types import (
    CircularReferenceError,
    EvaluationError,
    UndefinedVariableError,
    ValidationError,
)


@dataclass(frozen=True)
class Value:
    """A scalar (``vector is None``) or a vector of floats."""

    scalar: float = 0.0
    vector: tuple[float, ...] | None = None

    @classmethod
    def of(cls, number: float) -> Value:
        return cls(scalar=float(number))

    @classmethod
    def of_vector(cls, values) -> Value:
        return cls(vector=tuple(float(v) for v in values))

    @property
    def is_scalar(self) -> bool:
        return self.vector is None

    @property
    def is_vector(self) -> bool:
        return self.vector is not None

    @property
    def size(self) -> int:
        return 1 if self.vector is None else len(self.vector)

    def as_scalar(self) -> float:
        """The scalar value; single-element vectors are accepted."""
        if self.vector is None:
            return self.scalar
        if len(self.vector) == 1:
            return self.vector[0]
        raise EvaluationError(
            f"cannot convert vector with {len(self.vector)} elements to scalar"
        )

    def to_vector(self) -> list[float]:
        return [self.scalar] if self.vector is None else list(self.vector)

    def __str__(self) -> str:
        if self.vector is None:
            return format_double(self.scalar)
        return "[" + ", ".join(format_double(v) for v in self.vector) + "]"


def apply_scalar_op(left: float, right: float, op: BinaryOpType) -> float:
    if op is BinaryOpType.ADD:
        return left + right
    if op is BinaryOpType.SUB:
        return left - right
    if op is BinaryOpType.MUL:
        return left * right
    if op is BinaryOpType.DIV:
        if right == 0:
            raise EvaluationError("division by zero")
        return left / right
    try:
        return math.pow(left, right)
    except OverflowError:
        return math.inf
    except ValueError:
        raise EvaluationError(
            f"invalid power ({format_double(left)}^{format_double(right)})"
        ) from None


def apply_scalar_function(name: str, x: float) -> float:
    """Apply a built-in function to a scalar.

    Raises:
        EvaluationError: On domain errors (sqrt of a negative, log of a
            non-positive) and unknown function names
    """
    if name == "sqrt":
        if x < 0:
            raise EvaluationError(f"sqrt of negative number ({format_double(x)})")
        return math.sqrt(x)
    if name == "abs":
        return abs(x)
    if name == "sin":
        return math.sin(x)
    if name == "cos":
        return math.cos(x)
    if name == "tan":
        return math.tan(x)
    if name == "log":
        if x <= 0:
            raise EvaluationError("log of non-positive number")
        return math.log10(x)
    if name == "ln":
        if x <= 0:
            raise EvaluationError("ln of non-positive number")
        return math.log(x)
    if name == "exp":
        try:
            return math.exp(x)
        except OverflowError:
            return math.inf
    if name == "floor":
        return float(math.floor(x)) if math.isfinite(x) else x
    if name == "ceil":
        return float(math.ceil(x)) if math.isfinite(x) else x
    raise EvaluationError(f"unknown function '{name}'")


def apply_binary(left: Value, right: Value, op: BinaryOpType) -> Value:
    if left.is_scalar and right.is_scalar:
        return Value.of(apply_scalar_op(left.scalar, right.scalar, op))
    if left.is_scalar:
        return Value.of_vector(apply_scalar_op(left.scalar, v, op) for v in right.vector)
    if right.is_scalar:
        return Value.of_vector(apply_scalar_op(v, right.scalar, op) for v in left.vector)
    if len(left.vector) != len(right.vector):
        raise EvaluationError(
            f"vector size mismatch: {len(left.vector)} vs {len(right.vector)}"
        )
    return Value.of_vector(
        apply_scalar_op(lv, rv, op) for lv, rv in zip(left.vector, right.vector)
    )


def apply_function(name: str, arg: Value) -> Value:
    if arg.is_scalar:
        return Value.of(apply_scalar_function(name, arg.scalar))
    out = []
    for i, v in enumerate(arg.vector):
        try:
            out.append(apply_scalar_function(name, v))
        except EvaluationError:
            raise EvaluationError(
                f"{name}: domain error at element [{i}] (value = {format_double(v)})"
            ) from None
    return Value.of_vector(out)


class Evaluator:
    """Evaluates expressions against an optional context.

    Args:
        context: Variable bindings; None means every variable is undefined
        input_text: Source text, attached to errors for caret diagnostics
    """

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text
        self._evaluating: set[str] = set()
        self._level = 0

    def evaluate(self, expr: Expr) -> Value:
        try:
            return self._eval(expr)
        except (EvaluationError, UndefinedVariableError, CircularReferenceError) as e:
            if e.input_text is None and self.input_text is not None:
                e.input_text = self.input_text
            raise

    def evaluate_scalar(self, expr: Expr) -> float:
        return self.evaluate(expr).as_scalar()

    def _fail(self, message: str, node: Expr) -> EvaluationError:
        return EvaluationError(message, span=node.span, input_text=self.input_text)

    def _eval(self, expr: Expr) -> Value:
        # stored bindings count toward the nesting of the expression using them
        if self._level >= config.MAX_EXPRESSION_DEPTH:
            raise ValidationError(
                f"expression too deeply nested (more than {config.MAX_EXPRESSION_DEPTH} levels)",
                "TOO_DEEP",
                input_text=self.input_text,
            )
        self._level += 1
        try:
            return self._eval_node(expr)
        finally:
            self._level -= 1

    def _eval_node(self, expr: Expr) -> Value:
        if isinstance(expr, Number):
            return Value.of(expr.value)
        if isinstance(expr, NumberArray):
            if expr.size == 1:
                return Value.of(expr.values[0])
            return Value.of_vector(expr.values)
        if isinstance(expr, Variable):
            return self._eval_variable(expr)
        if isinstance(expr, BinaryOp):
            left = self._eval(expr.left)
            right = self._eval(expr.right)
            try:
                return apply_binary(left, right, expr.op)
            except EvaluationError as e:
                raise self._fail(e.message, expr) from None
        if isinstance(expr, FunctionCall):
            if len(expr.args) != 1:
                raise self._fail(
                    f"function '{expr.name}' expects 1 argument, got {len(expr.args)}", expr
                )
            arg = self._eval(expr.args[0])
            try:
                return apply_function(expr.name, arg)
            except EvaluationError as e:
                raise self._fail(e.message, expr) from None
        if isinstance(expr, IndexAccess):
            return self._eval_index(expr)
        raise TypeError(f"unknown expression node: {type(expr).__name__}")

    def _eval_variable(self, node: Variable) -> Value:
        stored = None if self.context is None else self.context.get_expr(node.name)
        if stored is None:
            raise UndefinedVariableError(node.name, node.span)
        if node.name in self._evaluating:
            raise CircularReferenceError(
                f"circular variable reference involving '{node.name}'", var_name=node.name
            )
        self._evaluating.add(node.name)
        try:
            return self._eval(stored)
        finally:
            self._evaluating.discard(node.name)

    def _eval_index(self, node: IndexAccess) -> Value:
        target = node.target
        if isinstance(target, Variable) and self.context is not None:
            stored = self.context.get_expr(target.name)
            if isinstance(stored, NumberArray):
                if node.index < stored.size:
                    return Value.of(stored.values[node.index])
                raise self._fail(
                    f"index {node.index} out of range "
                    f"(array '{target.name}' has {stored.size} elements)",
                    node,
                )

        value = self._eval(target)
        if value.is_vector:
            if node.index < value.size:
                return Value.of(value.vector[node.index])
            raise self._fail(
                f"index {node.index} out of range (array has {value.size} elements)", node
            )
        raise self._fail("cannot index into non-array expression", node)


def evaluate(expr: Expr, context: Context | None = None) -> Value:
    return Evaluator(context).evaluate(expr)


def evaluate_scalar(expr: Expr, context: Context | None = None) -> float:
    return Evaluator(context).evaluate_scalar(expr)
