"""Variable dependency tracking.

``edges[a] = {b, c}`` means ``a`` depends on ``b`` and ``c`` (as created by
``set a b + c``). A reverse index of dependents is kept consistent with the
forward edges on every mutation.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable


class DependencyGraph:
    """Directed graph of variable -> variables it depends on."""

    def __init__(self):
        self.edges: dict[str, set[str]] = {}
        self.reverse_edges: dict[str, set[str]] = {}

    def copy(self) -> DependencyGraph:
        clone = DependencyGraph()
        clone.edges = {name: set(deps) for name, deps in self.edges.items()}
        clone.reverse_edges = {name: set(deps) for name, deps in self.reverse_edges.items()}
        return clone

    def _drop_reverse_entries(self, name: str) -> None:
        for old_dep in self.edges.get(name, ()):
            dependents = self.reverse_edges.get(old_dep)
            if dependents is not None:
                dependents.discard(name)
                if not dependents:
                    del self.reverse_edges[old_dep]

    def add_variable(self, name: str, deps: Iterable[str]) -> None:
        """Register ``name`` with its direct dependencies, replacing any previous set."""
        self._drop_reverse_entries(name)
        new_deps = set(deps)
        self.edges[name] = new_deps
        for dep in new_deps:
            self.reverse_edges.setdefault(dep, set()).add(name)

    def remove_variable(self, name: str) -> None:
        """Forget ``name``'s dependencies.

        Variables that depend on ``name`` keep their edges, so
        ``reverse_edges[name]`` stays as it is; ``name`` is merely undefined
        for them now.
        """
        if name in self.edges:
            self._drop_reverse_entries(name)
            del self.edges[name]

    def clear(self) -> None:
        self.edges.clear()
        self.reverse_edges.clear()

    def _reaches(self, node: str, target: str, visited: set[str]) -> bool:
        stack = [node]
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(self.edges.get(current, ()))
        return False

    def would_cycle(self, name: str, new_deps: Iterable[str]) -> bool:
        """Would giving ``name`` the dependencies ``new_deps`` create a cycle?

        The graph is not modified.
        """
        new_deps = set(new_deps)
        if name in new_deps:
            return True
        visited: set[str] = set()
        return any(self._reaches(dep, name, visited) for dep in sorted(new_deps))

    def dependencies_of(self, name: str) -> set[str]:
        return set(self.edges.get(name, ()))

    def dependents_of(self, name: str) -> set[str]:
        return set(self.reverse_edges.get(name, ()))

    def transitive_deps(self, name: str) -> set[str]:
        """Every variable ``name`` depends on, directly or indirectly."""
        visited: set[str] = set()
        stack = list(self.edges.get(name, ()))
        while stack:
            dep = stack.pop()
            if dep in visited:
                continue
            visited.add(dep)
            stack.extend(self.edges.get(dep, ()))
        return visited

    def topological_order(self) -> list[str]:
        """All nodes ordered so that dependencies come before dependents.

        Returns an empty list when the graph contains a cycle.
        """
        nodes: set[str] = set(self.edges)
        for deps in self.edges.values():
            nodes.update(deps)

        out_degree = {node: len(self.edges.get(node, ())) for node in nodes}
        queue = deque(sorted(node for node in nodes if out_degree[node] == 0))
        order: list[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for dependent in sorted(self.reverse_edges.get(node, ())):
                out_degree[dependent] -= 1
                if out_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) != len(nodes):
            return []
        return order

    def has(self, name: str) -> bool:
        return name in self.edges or name in self.reverse_edges

    def size(self) -> int:
        return len(self.edges)

    def empty(self) -> bool:
        return not self.edges

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return self.size()
