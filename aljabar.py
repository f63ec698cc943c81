#!/usr/bin/env python3
"""
Aljabar - Algebraic Equation Solver

Main entry point for the Aljabar calculator and equation solver.
This file serves as a thin wrapper that delegates all functionality
to the aljabar_pkg package.

Copyright (c) 2025 Muhammad Akhiel al Syahbana
All rights reserved.

Usage:
    python aljabar.py                       # Interactive REPL
    python aljabar.py -e "2+2"              # Evaluate expression
    python aljabar.py -e "solve 2x + 4 = 0" # Solve an equation
    python aljabar.py -f script.txt         # Run a script of commands
    python aljabar.py --help                # Show help
"""

from __future__ import annotations

import sys


def main() -> int:
    """
    Main entry point for Aljabar.

    Delegates all functionality to the aljabar_pkg.cli module,
    which handles argument parsing, command dispatch, and output formatting.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        from aljabar_pkg.cli import main_entry

        return main_entry(sys.argv[1:])
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        return 1
    except ImportError as e:
        print(f"Error: Failed to import aljabar_pkg: {e}")
        print("Please ensure all dependencies are installed: pip install -e .")
        return 1


if __name__ == "__main__":
    sys.exit(main())
