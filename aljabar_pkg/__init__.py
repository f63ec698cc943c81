"""Aljabar package: parser, evaluator, equation and system solvers, session and CLI."""

__all__ = [
    "api",
    "cli",
    "config",
    "constant_folder",
    "context",
    "dependency_graph",
    "domain",
    "evaluator",
    "expr",
    "linear_collector",
    "linear_system",
    "logging_config",
    "nonlinear_system",
    "numerical_solver",
    "parser",
    "quadratic_collector",
    "session",
    "simplify",
    "solver",
    "substitution",
    "types",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "solve_equation",
    "solve_system",
    "simplify_equation",
]
