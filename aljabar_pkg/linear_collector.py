"""Linear form collection.

:class:`LinearCollector` turns an expression into ``Σ cᵢ·vᵢ + k`` or reports
the first term that is not linear. Context-bound variables are expanded and
collected through, unless the collector runs in isolated mode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from . import config
from .context import Context
from .evaluator import apply_scalar_function, apply_scalar_op
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
from .types import CircularReferenceError, EvaluationError, NonLinearError

F = TypeVar("F")


@dataclass
class LinearForm:
    """``Σ coeffs[v]·v + constant``."""

    coeffs: dict[str, float] = field(default_factory=dict)
    constant: float = 0.0

    @classmethod
    def const(cls, value: float) -> LinearForm:
        return cls({}, float(value))

    @classmethod
    def var(cls, name: str, coeff: float = 1.0) -> LinearForm:
        return cls({name: coeff}, 0.0)

    def get_coeff(self, name: str) -> float:
        return self.coeffs.get(name, 0.0)

    def variables(self) -> list[str]:
        """Sorted names whose coefficient is not negligible."""
        return sorted(
            name for name, c in self.coeffs.items() if abs(c) > config.ZERO_TOLERANCE
        )

    def is_constant(self) -> bool:
        return not self.variables()

    def __add__(self, other: LinearForm) -> LinearForm:
        coeffs = dict(self.coeffs)
        for name, c in other.coeffs.items():
            coeffs[name] = coeffs.get(name, 0.0) + c
        return LinearForm(coeffs, self.constant + other.constant)

    def __sub__(self, other: LinearForm) -> LinearForm:
        return self + (-other)

    def __mul__(self, scalar: float) -> LinearForm:
        return LinearForm(
            {name: c * scalar for name, c in self.coeffs.items()}, self.constant * scalar
        )

    __rmul__ = __mul__

    def __neg__(self) -> LinearForm:
        return self * -1.0

    def simplify(self, epsilon: float = config.ZERO_TOLERANCE) -> LinearForm:
        """Drop negligible coefficients and snap a negligible constant to 0, in place."""
        self.coeffs = {name: c for name, c in self.coeffs.items() if abs(c) >= epsilon}
        if abs(self.constant) < epsilon:
            self.constant = 0.0
        return self

    def __str__(self) -> str:
        terms = [f"{format_double(c)}*{name}" for name, c in sorted(self.coeffs.items())]
        terms.append(format_double(self.constant))
        return " + ".join(terms)


@dataclass
class Classification(Generic[F]):
    """Outcome of trying to represent an expression in an algebraic form.

    Exactly one of ``form`` and ``error`` is set.
    """

    form: F | None = None
    error: NonLinearError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fold_constant_call(name: str, x: float, node: FunctionCall, input_text: str | None) -> float:
    """Apply a built-in to a constant argument inside a collector."""
    if name not in config.BUILTIN_FUNCTIONS:
        raise NonLinearError(f"unknown function '{name}'", span=node.span, input_text=input_text)
    try:
        return apply_scalar_function(name, x)
    except EvaluationError as e:
        raise EvaluationError(e.message, span=node.span, input_text=input_text) from None


def resolve_indexed_constant(node: IndexAccess, context: Context | None) -> float | None:
    """Value of ``arr[i]`` when ``arr`` is a context variable holding an array."""
    target = node.target
    if not isinstance(target, Variable) or context is None or not context.has(target.name):
        return None
    stored = context.get_expr(target.name)
    if isinstance(stored, NumberArray):
        if node.index < stored.size:
            return stored.values[node.index]
        return None
    try:
        expanded = context.expand(stored)
    except (CircularReferenceError, EvaluationError):
        return None
    if isinstance(expanded, NumberArray) and node.index < expanded.size:
        return expanded.values[node.index]
    return None


class FormCollector(Generic[F]):
    """Shared driver: ``collect`` raises on unrepresentable terms, ``classify`` reports them."""

    def collect(self, expr: Expr) -> F:
        raise NotImplementedError

    def classify(self, expr: Expr) -> Classification[F]:
        try:
            return Classification(form=self.collect(expr))
        except NonLinearError as e:
            return Classification(error=e)


class LinearCollector(FormCollector[LinearForm]):
    """Collects a :class:`LinearForm` from an expression.

    Args:
        context: Bindings to substitute (None to treat every name as unknown)
        input_text: Source text attached to errors
        isolated: Keep context-bound names as variables instead of substituting
    """

    def __init__(
        self,
        context: Context | None = None,
        input_text: str | None = None,
        isolated: bool = False,
    ):
        self.context = context
        self.input_text = input_text
        self.isolated = isolated
        self.shadowed_variables: set[str] = set()

    def collect(self, expr: Expr) -> LinearForm:
        self.shadowed_variables = set()
        return self._visit(expr).simplify()

    def _nonlinear(self, message: str, node: Expr) -> NonLinearError:
        return NonLinearError(message, span=node.span, input_text=self.input_text)

    def _visit(self, node: Expr) -> LinearForm:
        if isinstance(node, Number):
            return LinearForm.const(node.value)
        if isinstance(node, Variable):
            return self._visit_variable(node)
        if isinstance(node, FunctionCall):
            return self._visit_function(node)
        if isinstance(node, NumberArray):
            if node.size == 1:
                return LinearForm.const(node.values[0])
            raise self._nonlinear(
                f"cannot use array with {node.size} elements in equation (use [index])", node
            )
        if isinstance(node, IndexAccess):
            value = resolve_indexed_constant(node, self.context)
            if value is None:
                raise self._nonlinear("cannot resolve indexed access in equation", node)
            return LinearForm.const(value)
        if isinstance(node, BinaryOp):
            return self._visit_binary(node)
        raise TypeError(f"unknown expression node: {type(node).__name__}")

    def _visit_variable(self, node: Variable) -> LinearForm:
        bound = self.context is not None and self.context.has(node.name)
        if bound and not self.isolated:
            try:
                expanded = self.context.expand(self.context.get_expr(node.name))
            except (CircularReferenceError, EvaluationError):
                expanded = None
            if expanded is not None:
                return self._visit(expanded)
        if bound and self.isolated:
            self.shadowed_variables.add(node.name)
        return LinearForm.var(node.name)

    def _visit_function(self, node: FunctionCall) -> LinearForm:
        values = []
        for arg in node.args:
            form = self._visit(arg)
            if not form.is_constant():
                break
            values.append(form.constant)
        else:
            if len(values) == 1:
                return LinearForm.const(
                    fold_constant_call(node.name, values[0], node, self.input_text)
                )
        raise self._nonlinear(
            f"non-linear term: function '{node.name}' applied to variable expression", node
        )

    def _visit_binary(self, node: BinaryOp) -> LinearForm:
        left = self._visit(node.left)
        right = self._visit(node.right)
        op = node.op

        if op is BinaryOpType.ADD:
            return left + right
        if op is BinaryOpType.SUB:
            return left - right
        if op is BinaryOpType.MUL:
            if left.is_constant():
                return right * left.constant
            if right.is_constant():
                return left * right.constant
            raise self._nonlinear("non-linear term: multiplication of variables", node)
        if op is BinaryOpType.DIV:
            if not right.is_constant():
                raise self._nonlinear("non-linear term: division by variable", node)
            if abs(right.constant) < config.ZERO_TOLERANCE:
                raise EvaluationError(
                    "division by zero", span=node.right.span, input_text=self.input_text
                )
            return left * (1.0 / right.constant)

        if not right.is_constant():
            raise self._nonlinear("non-linear term: variable exponent", node)
        exponent = right.constant
        if abs(exponent) < config.ZERO_TOLERANCE:
            return LinearForm.const(1.0)
        if abs(exponent - 1.0) < config.ZERO_TOLERANCE:
            return left
        if not left.is_constant():
            raise self._nonlinear(
                f"non-linear term: variable raised to power {format_double(exponent)}", node
            )
        return LinearForm.const(apply_scalar_op(left.constant, exponent, BinaryOpType.POW))


def collect_linear(
    expr: Expr, context: Context | None = None, isolated: bool = False
) -> LinearForm:
    return LinearCollector(context, isolated=isolated).collect(expr)
