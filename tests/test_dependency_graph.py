"""Tests for the variable dependency graph."""

import unittest

from aljabar_pkg.dependency_graph import DependencyGraph


class TestDependencyGraph(unittest.TestCase):
    def setUp(self):
        self.graph = DependencyGraph()

    def test_add_and_query(self):
        self.graph.add_variable("y", ["x"])
        self.graph.add_variable("z", ["x", "y"])
        self.assertEqual(self.graph.dependencies_of("z"), {"x", "y"})
        self.assertEqual(self.graph.dependents_of("x"), {"y", "z"})
        self.assertIn("x", self.graph)
        self.assertEqual(len(self.graph), 2)

    def test_replacing_dependencies_updates_reverse_edges(self):
        self.graph.add_variable("y", ["x"])
        self.graph.add_variable("y", ["w"])
        self.assertEqual(self.graph.dependents_of("x"), set())
        self.assertEqual(self.graph.dependents_of("w"), {"y"})

    def test_remove_keeps_dependents_edges(self):
        self.graph.add_variable("x", [])
        self.graph.add_variable("y", ["x"])
        self.graph.remove_variable("x")
        self.assertEqual(self.graph.dependencies_of("y"), {"x"})
        self.graph.remove_variable("y")
        self.assertTrue(self.graph.empty())

    def assert_edges_mirrored(self):
        for name, deps in self.graph.edges.items():
            for dep in deps:
                self.assertIn(name, self.graph.reverse_edges.get(dep, set()))
        for dep, dependents in self.graph.reverse_edges.items():
            for name in dependents:
                self.assertIn(dep, self.graph.edges.get(name, set()))

    def test_remove_keeps_reverse_edges_mirrored(self):
        self.graph.add_variable("x", [])
        self.graph.add_variable("y", ["x"])
        self.graph.remove_variable("x")
        self.assert_edges_mirrored()
        self.assertEqual(self.graph.dependents_of("x"), {"y"})
        self.assertEqual(self.graph.topological_order(), ["x", "y"])

    def test_redefine_after_remove_keeps_dependents(self):
        self.graph.add_variable("x", [])
        self.graph.add_variable("y", ["x"])
        self.graph.remove_variable("x")
        self.graph.add_variable("x", [])
        self.assert_edges_mirrored()
        self.assertEqual(self.graph.dependents_of("x"), {"y"})

    def test_would_cycle(self):
        self.graph.add_variable("y", ["x"])
        self.graph.add_variable("z", ["y"])
        self.assertTrue(self.graph.would_cycle("x", ["z"]))
        self.assertTrue(self.graph.would_cycle("x", ["x"]))
        self.assertFalse(self.graph.would_cycle("w", ["z"]))
        # the query does not modify the graph
        self.assertEqual(self.graph.dependencies_of("x"), set())

    def test_transitive_deps(self):
        self.graph.add_variable("y", ["x"])
        self.graph.add_variable("z", ["y", "w"])
        self.assertEqual(self.graph.transitive_deps("z"), {"x", "y", "w"})
        self.assertEqual(self.graph.transitive_deps("x"), set())

    def test_topological_order(self):
        self.graph.add_variable("y", ["x"])
        self.graph.add_variable("z", ["y"])
        self.assertEqual(self.graph.topological_order(), ["x", "y", "z"])

    def test_topological_order_with_cycle(self):
        self.graph.add_variable("a", ["b"])
        self.graph.add_variable("b", ["a"])
        self.assertEqual(self.graph.topological_order(), [])

    def test_clear(self):
        self.graph.add_variable("y", ["x"])
        self.graph.clear()
        self.assertEqual(self.graph.size(), 0)
        self.assertFalse(self.graph.has("x"))
