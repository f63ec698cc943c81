"""Variable substitution (expansion) and free-variable collection.

Expansion replaces every variable the lookup resolves with its bound
expression, recursively, and returns a new tree. Cycles are reported as
:class:`~aljabar_pkg.types.CircularReferenceError`, either immediately through
the set of names currently being expanded, or through the bound on nested
binding lookups. The expanded tree itself is limited to
``MAX_EXPRESSION_DEPTH`` levels.
"""

from __future__ import annotations

from typing import Callable, Optional

from . import config
from .expr import BinaryOp, Expr, FunctionCall, IndexAccess, Number, NumberArray, Variable
from .types import CircularReferenceError, EvaluationError, ValidationError

Lookup = Callable[[str], Optional[Expr]]


class Expander:
    """Expands variable references against a lookup function.

    Args:
        lookup: Returns the expression bound to a name, or None if unbound
        max_depth: Maximum chain of bindings expanded inside one another
    """

    def __init__(self, lookup: Lookup, max_depth: int | None = None):
        self.lookup = lookup
        self.max_depth = config.MAX_EXPANSION_DEPTH if max_depth is None else max_depth
        self._depth = 0
        self._level = 0
        self._expanding: set[str] = set()

    def expand(self, expr: Expr) -> Expr:
        if self._level >= config.MAX_EXPRESSION_DEPTH:
            raise ValidationError(
                "expression too deeply nested after substitution "
                f"(more than {config.MAX_EXPRESSION_DEPTH} levels)",
                "TOO_DEEP",
            )
        self._level += 1
        try:
            return self._expand_node(expr)
        finally:
            self._level -= 1

    def _expand_node(self, expr: Expr) -> Expr:
        if isinstance(expr, (Number, NumberArray)):
            return expr
        if isinstance(expr, Variable):
            return self._expand_variable(expr)
        if isinstance(expr, BinaryOp):
            return BinaryOp(self.expand(expr.left), self.expand(expr.right), expr.op, expr.span)
        if isinstance(expr, FunctionCall):
            return FunctionCall(
                expr.name, tuple(self.expand(arg) for arg in expr.args), expr.span
            )
        if isinstance(expr, IndexAccess):
            target = self.expand(expr.target)
            if isinstance(target, NumberArray):
                if expr.index < target.size:
                    return Number(target.values[expr.index], expr.span)
                raise EvaluationError(
                    f"index {expr.index} out of range (array has {target.size} elements)",
                    span=expr.span,
                )
            return IndexAccess(target, expr.index, expr.span)
        raise TypeError(f"unknown expression node: {type(expr).__name__}")

    def _expand_variable(self, node: Variable) -> Expr:
        stored = self.lookup(node.name)
        if stored is None:
            return node
        if node.name in self._expanding:
            raise CircularReferenceError(
                f"circular variable reference detected involving '{node.name}'",
                var_name=node.name,
            )
        if self._depth >= self.max_depth:
            raise CircularReferenceError(
                "maximum expansion depth exceeded (possible circular reference)"
            )
        self._expanding.add(node.name)
        self._depth += 1
        try:
            return self.expand(stored)
        finally:
            self._depth -= 1
            self._expanding.discard(node.name)


def expand_expr(expr: Expr, lookup: Lookup, max_depth: int | None = None) -> Expr:
    """Expand all resolvable variables in ``expr``, returning a new tree."""
    return Expander(lookup, max_depth).expand(expr)


def free_variables(expr: Expr, lookup: Lookup | None = None) -> set[str]:
    """Collect variable names in ``expr`` without expanding anything.

    Args:
        expr: Expression to scan
        lookup: When given, names it resolves are not reported

    Returns:
        Set of variable names, including those inside index targets
    """
    names: set[str] = set()
    stack = [expr]
    while stack:
        node = stack.pop()
        if isinstance(node, Variable):
            if lookup is None or lookup(node.name) is None:
                names.add(node.name)
        elif isinstance(node, BinaryOp):
            stack.append(node.left)
            stack.append(node.right)
        elif isinstance(node, FunctionCall):
            stack.extend(node.args)
        elif isinstance(node, IndexAccess):
            stack.append(node.target)
    return names
