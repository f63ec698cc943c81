"""Centralized configuration for Aljabar.

This module defines:
- Input validation limits (length, expression depth, expansion depth)
- Output formatting defaults (precision, fraction mode)
- Numeric tolerances and iteration caps used by the solvers
- The built-in function table and reserved command words

Configuration can be overridden via:
- CLI flags (see cli.py)
- Environment variables (prefixed with ALJABAR_)

The solver tolerances below are fixed module constants rather than environment
settings: several of them decide whether a term counts as "vanished" and changing
them changes which strategy solves an equation.
"""

import os
import re

try:
    import importlib.metadata

    VERSION = importlib.metadata.version("aljabar")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("ALJABAR_MAX_INPUT_LENGTH", "10000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("ALJABAR_MAX_EXPRESSION_DEPTH", "150")
)  # tree levels, before and after substitution
MAX_EXPANSION_DEPTH = int(
    os.getenv("ALJABAR_MAX_EXPANSION_DEPTH", "100")
)  # nested variable substitutions

# Output configuration
OUTPUT_PRECISION = int(os.getenv("ALJABAR_OUTPUT_PRECISION", "6"))
FRACTION_MODE = os.getenv("ALJABAR_FRACTION_MODE", "false").lower() == "true"
FRACTION_MAX_DENOMINATOR = int(os.getenv("ALJABAR_FRACTION_MAX_DENOMINATOR", "10000"))

# Solver configuration
NUMERIC_FALLBACK_ENABLED = (
    os.getenv("ALJABAR_NUMERIC_FALLBACK_ENABLED", "true").lower() == "true"
)

# "Is this zero" threshold for coefficients, pivots and domain guards
ZERO_TOLERANCE = 1e-12

# Single-variable Newton-Raphson
NEWTON_MAX_ITERATIONS = 200
NEWTON_TOLERANCE = 1e-12
NEWTON_ACCEPT_TOLERANCE = 1e-8  # residual accepted after the iteration cap
NEWTON_MAX_STEP = 100.0
NEWTON_DIVERGENCE_LIMIT = 1e12
NEWTON_PERTURBATION = 0.1
DERIVATIVE_FLOOR = 1e-15
DERIVATIVE_STEP = 1e-8
ROOT_VERIFY_TOLERANCE = 1e-6
ROOT_DEDUP_TOLERANCE = 1e-6
ROOT_SNAP_TOLERANCE = 1e-9
SNAP_MAX_DENOMINATOR = 8
INTEGER_TOLERANCE = 1e-9

STARTING_POINTS = (
    0.0, 1.0, -1.0, 2.0, -2.0, 3.0, -3.0, 5.0, -5.0, 10.0, -10.0,
    0.5, -0.5, 0.1, -0.1, 7.0, -7.0, 20.0, -20.0, 50.0, -50.0, 100.0, -100.0,
)

# Multi-variable Newton-Raphson
SYSTEM_MAX_ITERATIONS = 200
SYSTEM_TOLERANCE = 1e-10
SYSTEM_MAX_STEP = 50.0
SYSTEM_SNAP_TOLERANCE = 1e-8
SINGULAR_PIVOT = 1e-15
SYSTEM_RANDOM_STARTS = 50
SYSTEM_RANDOM_SEED = 42
SYSTEM_RANDOM_RANGE = 10.0
SYSTEM_GRID = (0.0, 1.0, -1.0, 2.0, -2.0, 3.0, -3.0, 4.0, -4.0, 5.0, -5.0)

# Built-in single-argument functions
BUILTIN_FUNCTIONS = frozenset(
    {"sqrt", "abs", "sin", "cos", "tan", "log", "ln", "exp", "floor", "ceil"}
)

# Words reserved for REPL commands; they cannot name variables
RESERVED_KEYWORDS = frozenset(
    {
        "simplify",
        "solve",
        "set",
        "unset",
        "clear",
        "help",
        "exit",
        "quit",
        "config",
        "env",
        "let",
        "vars",
        "print",
    }
)

VAR_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
