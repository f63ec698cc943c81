"""Variable bindings for a session.

A :class:`Context` maps names to expressions, not numbers: ``set y 2*x + 3``
stores the expression, so a later change to ``x`` is seen by ``y``. Plain
values are stored as :class:`~aljabar_pkg.expr.Number` nodes.
"""

from __future__ import annotations

from typing import Iterator

from .dependency_graph import DependencyGraph
from .expr import Expr, Number, NumberArray
from .substitution import Lookup, expand_expr, free_variables
from .types import EvaluationError, UndefinedVariableError


class Context:
    def __init__(self):
        self._variables: dict[str, Expr] = {}
        self._graph = DependencyGraph()

    def copy(self) -> Context:
        """Independent copy; expressions are immutable and shared."""
        clone = Context()
        clone._variables = dict(self._variables)
        clone._graph = self._graph.copy()
        return clone

    def set(self, name: str, expr: Expr) -> None:
        """Bind ``name`` to ``expr``. Callers check :meth:`would_cycle` first."""
        self._graph.add_variable(name, free_variables(expr))
        self._variables[name] = expr

    def set_value(self, name: str, value: float) -> None:
        self._graph.add_variable(name, ())
        self._variables[name] = Number(float(value))

    def set_array(self, name: str, values: list[float]) -> None:
        self._graph.add_variable(name, ())
        self._variables[name] = NumberArray(tuple(values))

    def get_expr(self, name: str) -> Expr | None:
        return self._variables.get(name)

    def get(self, name: str) -> float:
        """Numeric value of a variable bound to a plain number.

        Raises:
            UndefinedVariableError: If ``name`` is unbound
            EvaluationError: If ``name`` is bound to a non-numeric expression
        """
        expr = self._variables.get(name)
        if expr is None:
            raise UndefinedVariableError(name)
        if isinstance(expr, Number):
            return expr.value
        raise EvaluationError(f"variable '{name}' is symbolic, not numeric")

    def has(self, name: str) -> bool:
        return name in self._variables

    def unset(self, name: str) -> bool:
        self._graph.remove_variable(name)
        return self._variables.pop(name, None) is not None

    def clear(self) -> None:
        self._variables.clear()
        self._graph.clear()

    def all_names(self) -> list[str]:
        return sorted(self._variables)

    def make_lookup(self) -> Lookup:
        return self._variables.get

    def expand(self, expr: Expr) -> Expr:
        """Expand every bound variable in ``expr`` using this context's bindings."""
        return expand_expr(expr, self.make_lookup())

    def would_cycle(self, name: str, expr: Expr) -> bool:
        """Would binding ``name`` to ``expr`` create a circular reference?"""
        return self._graph.would_cycle(name, free_variables(expr))

    def dependents_of(self, name: str) -> set[str]:
        return self._graph.dependents_of(name)

    def transitive_deps(self, name: str) -> set[str]:
        return self._graph.transitive_deps(name)

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    def size(self) -> int:
        return len(self._variables)

    def empty(self) -> bool:
        return not self._variables

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def __len__(self) -> int:
        return len(self._variables)

    def __iter__(self) -> Iterator[str]:
        return iter(self.all_names())
