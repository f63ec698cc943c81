"""Expression tree used by the parser, evaluator and solvers.

Nodes are frozen dataclasses. Transformations (substitution, constant folding)
always build new trees, so subtrees may be shared freely between trees.
Each node carries a :class:`~aljabar_pkg.types.Span` for diagnostics only;
spans take no part in equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .types import Span


def format_double(value: float) -> str:
    """Format a float with six decimals, trailing zeros stripped.

    Values closer to zero than ``1e-12`` print as ``0``.
    """
    if abs(value) < 1e-12:
        value = 0.0
    text = f"{value:.6f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


class BinaryOpType(Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    POW = "^"

    @property
    def precedence(self) -> int:
        if self in (BinaryOpType.ADD, BinaryOpType.SUB):
            return 1
        if self in (BinaryOpType.MUL, BinaryOpType.DIV):
            return 2
        return 3


@dataclass(frozen=True)
class Number:
    value: float
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __str__(self) -> str:
        return format_double(self.value)


@dataclass(frozen=True)
class NumberArray:
    values: tuple[float, ...]
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))

    @property
    def size(self) -> int:
        return len(self.values)

    def __str__(self) -> str:
        return "[" + ", ".join(format_double(v) for v in self.values) + "]"


@dataclass(frozen=True)
class Variable:
    name: str
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BinaryOp:
    left: Expr
    right: Expr
    op: BinaryOpType
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __str__(self) -> str:
        prec = self.op.precedence
        left_str = str(self.left)
        right_str = str(self.right)

        if isinstance(self.left, BinaryOp):
            lp = self.left.op.precedence
            # ^ is right-associative, so an equal-precedence left child needs parentheses
            if lp < prec or (lp == prec and self.op is BinaryOpType.POW):
                left_str = f"({left_str})"
        elif (
            self.op is BinaryOpType.POW
            and isinstance(self.left, Number)
            and self.left.value < 0
        ):
            left_str = f"({left_str})"

        if isinstance(self.right, BinaryOp):
            rp = self.right.op.precedence
            if rp < prec or (
                rp == prec and self.op in (BinaryOpType.SUB, BinaryOpType.DIV)
            ):
                right_str = f"({right_str})"

        if self.op in (BinaryOpType.ADD, BinaryOpType.SUB):
            return f"{left_str} {self.op.value} {right_str}"
        return f"{left_str}{self.op.value}{right_str}"


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: tuple[Expr, ...]
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class IndexAccess:
    target: Expr
    index: int
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __str__(self) -> str:
        return f"{self.target}[{self.index}]"


Expr = Union[Number, NumberArray, Variable, BinaryOp, FunctionCall, IndexAccess]


@dataclass(frozen=True)
class Equation:
    """``lhs = rhs``. Not an expression node; it cannot be nested."""

    lhs: Expr
    rhs: Expr
    span: Span = field(default_factory=Span, compare=False, repr=False)

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


def binary(left: Expr, right: Expr, op: BinaryOpType) -> BinaryOp:
    """Build a BinaryOp whose span covers both operands."""
    return BinaryOp(left, right, op, left.span.merge(right.span))


def negate(expr: Expr, span: Span | None = None) -> BinaryOp:
    """Unary minus, represented as ``0 - expr``."""
    span = span if span is not None else expr.span
    return BinaryOp(Number(0.0, span), expr, BinaryOpType.SUB, span.merge(expr.span))


def difference(equation: Equation) -> BinaryOp:
    """``lhs - rhs``, the normalized form every solver works on."""
    return binary(equation.lhs, equation.rhs, BinaryOpType.SUB)


def children(expr: Expr) -> tuple[Expr, ...]:
    if isinstance(expr, BinaryOp):
        return (expr.left, expr.right)
    if isinstance(expr, FunctionCall):
        return expr.args
    if isinstance(expr, IndexAccess):
        return (expr.target,)
    return ()


def expression_depth(expr: Expr) -> int:
    """Number of levels in the tree; a leaf has depth 1.

    Walks with an explicit stack so arbitrarily deep trees can be measured.
    """
    deepest = 0
    stack = [(expr, 1)]
    while stack:
        node, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in children(node))
    return deepest
