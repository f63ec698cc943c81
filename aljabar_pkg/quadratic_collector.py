"""Quadratic form collection.

Like :mod:`~aljabar_pkg.linear_collector`, but products of linear forms in the
same single variable and squares of single-variable linear forms are
representable. Cross terms such as ``x*y`` are rejected rather than dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from . import config
from .context import Context
from .evaluator import apply_scalar_op
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
from .linear_collector import FormCollector, fold_constant_call, resolve_indexed_constant
from .types import CircularReferenceError, EvaluationError, NonLinearError


def _merge(target: dict[str, float], source: dict[str, float], scale: float = 1.0) -> None:
    for name, c in source.items():
        target[name] = target.get(name, 0.0) + c * scale


def _significant(coeffs: dict[str, float]) -> list[str]:
    return sorted(name for name, c in coeffs.items() if abs(c) > config.ZERO_TOLERANCE)


@dataclass
class QuadraticForm:
    """``Σ quadratic_coeffs[v]·v² + Σ linear_coeffs[v]·v + constant``."""

    quadratic_coeffs: dict[str, float] = field(default_factory=dict)
    linear_coeffs: dict[str, float] = field(default_factory=dict)
    constant: float = 0.0

    @classmethod
    def const(cls, value: float) -> QuadraticForm:
        return cls({}, {}, float(value))

    @classmethod
    def linear(cls, name: str, coeff: float = 1.0) -> QuadraticForm:
        return cls({}, {name: coeff}, 0.0)

    @classmethod
    def quadratic(cls, name: str, coeff: float = 1.0) -> QuadraticForm:
        return cls({name: coeff}, {}, 0.0)

    def get_quad_coeff(self, name: str) -> float:
        return self.quadratic_coeffs.get(name, 0.0)

    def get_linear_coeff(self, name: str) -> float:
        return self.linear_coeffs.get(name, 0.0)

    def quad_variables(self) -> list[str]:
        return _significant(self.quadratic_coeffs)

    def linear_variables(self) -> list[str]:
        return _significant(self.linear_coeffs)

    def all_variables(self) -> list[str]:
        return sorted(set(self.quad_variables()) | set(self.linear_variables()))

    def is_linear(self) -> bool:
        return not self.quad_variables()

    def is_constant(self) -> bool:
        return not self.quad_variables() and not self.linear_variables()

    def __add__(self, other: QuadraticForm) -> QuadraticForm:
        result = QuadraticForm(
            dict(self.quadratic_coeffs), dict(self.linear_coeffs), self.constant + other.constant
        )
        _merge(result.quadratic_coeffs, other.quadratic_coeffs)
        _merge(result.linear_coeffs, other.linear_coeffs)
        return result

    def __sub__(self, other: QuadraticForm) -> QuadraticForm:
        return self + (-other)

    def __mul__(self, scalar: float) -> QuadraticForm:
        return QuadraticForm(
            {name: c * scalar for name, c in self.quadratic_coeffs.items()},
            {name: c * scalar for name, c in self.linear_coeffs.items()},
            self.constant * scalar,
        )

    __rmul__ = __mul__

    def __neg__(self) -> QuadraticForm:
        return self * -1.0

    def simplify(self, epsilon: float = config.ZERO_TOLERANCE) -> QuadraticForm:
        """Drop negligible coefficients and snap a negligible constant to 0, in place."""
        self.quadratic_coeffs = {
            name: c for name, c in self.quadratic_coeffs.items() if abs(c) >= epsilon
        }
        self.linear_coeffs = {
            name: c for name, c in self.linear_coeffs.items() if abs(c) >= epsilon
        }
        if abs(self.constant) < epsilon:
            self.constant = 0.0
        return self


class QuadraticCollector(FormCollector[QuadraticForm]):
    """Collects a :class:`QuadraticForm`, always substituting context bindings."""

    def __init__(self, context: Context | None = None, input_text: str | None = None):
        self.context = context
        self.input_text = input_text

    def collect(self, expr: Expr) -> QuadraticForm:
        return self._visit(expr).simplify()

    def _nonlinear(self, message: str, node: Expr) -> NonLinearError:
        return NonLinearError(message, span=node.span, input_text=self.input_text)

    def _visit(self, node: Expr) -> QuadraticForm:
        if isinstance(node, Number):
            return QuadraticForm.const(node.value)
        if isinstance(node, Variable):
            if self.context is not None and self.context.has(node.name):
                try:
                    expanded = self.context.expand(self.context.get_expr(node.name))
                except (CircularReferenceError, EvaluationError):
                    expanded = None
                if expanded is not None:
                    return self._visit(expanded)
            return QuadraticForm.linear(node.name)
        if isinstance(node, FunctionCall):
            values = []
            for arg in node.args:
                form = self._visit(arg)
                if not form.is_constant():
                    break
                values.append(form.constant)
            else:
                if len(values) == 1:
                    return QuadraticForm.const(
                        fold_constant_call(node.name, values[0], node, self.input_text)
                    )
            raise self._nonlinear(
                f"non-linear term: function '{node.name}' applied to variable expression",
                node,
            )
        if isinstance(node, NumberArray):
            if node.size == 1:
                return QuadraticForm.const(node.values[0])
            raise self._nonlinear(
                f"cannot use array with {node.size} elements in equation (use [index])", node
            )
        if isinstance(node, IndexAccess):
            value = resolve_indexed_constant(node, self.context)
            if value is None:
                raise self._nonlinear("cannot resolve indexed access in equation", node)
            return QuadraticForm.const(value)
        if isinstance(node, BinaryOp):
            return self._visit_binary(node)
        raise TypeError(f"unknown expression node: {type(node).__name__}")

    def _visit_binary(self, node: BinaryOp) -> QuadraticForm:
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
            if left.is_linear() and right.is_linear():
                return self._multiply_linear(left, right, node)
            raise self._nonlinear("non-linear term: higher-order multiplication", node)
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
            return QuadraticForm.const(1.0)
        if abs(exponent - 1.0) < config.ZERO_TOLERANCE:
            return left
        if abs(exponent - 2.0) < config.ZERO_TOLERANCE and left.is_linear():
            return self._square_linear(left, node)
        if left.is_constant():
            return QuadraticForm.const(
                apply_scalar_op(left.constant, exponent, BinaryOpType.POW)
            )
        raise self._nonlinear(
            f"non-linear term: variable raised to power {format_double(exponent)}", node
        )

    def _multiply_linear(
        self, left: QuadraticForm, right: QuadraticForm, node: BinaryOp
    ) -> QuadraticForm:
        """``(a·x + b)(c·x + d) = ac·x² + (ad + bc)·x + bd``."""
        result = QuadraticForm.const(left.constant * right.constant)
        _merge(result.linear_coeffs, right.linear_coeffs, left.constant)
        _merge(result.linear_coeffs, left.linear_coeffs, right.constant)
        for lname in left.linear_variables():
            for rname in right.linear_variables():
                if lname != rname:
                    raise self._nonlinear(
                        f"non-linear term: product of different variables ({lname} * {rname})",
                        node,
                    )
                result.quadratic_coeffs[lname] = (
                    result.get_quad_coeff(lname)
                    + left.linear_coeffs[lname] * right.linear_coeffs[rname]
                )
        return result

    def _square_linear(self, form: QuadraticForm, node: BinaryOp) -> QuadraticForm:
        """``(a·x + b)² = a²·x² + 2ab·x + b²``."""
        names = form.linear_variables()
        if len(names) > 1:
            raise self._nonlinear("non-linear term: squaring multi-variable expression", node)
        if not names:
            return QuadraticForm.const(form.constant * form.constant)
        name = names[0]
        a = form.get_linear_coeff(name)
        b = form.constant
        return QuadraticForm({name: a * a}, {name: 2 * a * b}, b * b)


def collect_quadratic(expr: Expr, context: Context | None = None) -> QuadraticForm:
    return QuadraticCollector(context).collect(expr)
