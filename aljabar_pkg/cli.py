from __future__ import annotations

import argparse
import json
from typing import Any

from .config import VERSION
from .logging_config import get_logger, setup_logging
from .session import Session, format_result, run_lines

logger = get_logger("cli")


def print_result_pretty(res: dict[str, Any], output_format: str = "human") -> None:
    """Print result in specified format.

    Args:
        res: Result dictionary
        output_format: "json" for JSON output, "human" for human-readable
    """
    if output_format == "json":
        print(json.dumps(res, indent=2, ensure_ascii=False))
        return
    for line in format_result(res):
        try:
            print(line)
        except UnicodeEncodeError:
            # Consoles without UTF-8 cannot show superscripts or ×
            print(line.encode("ascii", "replace").decode("ascii"))


def run_script(
    lines: list[str], output_format: str = "human", session: Session | None = None
) -> int:
    """Run ``lines`` in one session and print every result.

    Returns:
        Exit code: 1 when any line failed, 0 otherwise
    """
    if session is None:
        session = Session()
    exit_code = 0
    for res in run_lines(session, lines):
        if not res.get("ok"):
            exit_code = 1
        print_result_pretty(res, output_format=output_format)
    return exit_code


def repl_loop(output_format: str = "human") -> None:
    """Interactive REPL loop with graceful interrupt handling."""
    try:
        import readline  # noqa: F401
    except ImportError:
        # readline not available on Windows - that's fine
        pass

    print("Aljabar - type 'help' for commands, 'quit' to exit.")
    session = Session()
    while not session.finished:
        try:
            raw = input(session.prompt())
        except KeyboardInterrupt:
            if session.in_system_mode:
                for res in session.handle("cancel"):
                    print_result_pretty(res, output_format)
                continue
            print("\nGoodbye.")
            break
        except EOFError:
            for res in session.flush():
                print_result_pretty(res, output_format)
            print("\nGoodbye.")
            break
        try:
            results = session.handle(raw)
        except Exception:
            logger.exception(f"Unexpected error handling {raw!r}")
            print("Error: internal error (see log for details)")
            continue
        for res in results:
            print_result_pretty(res, output_format)


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for Aljabar CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(prog="aljabar")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Run one line and exit; separate several lines with ';'",
        dest="eval_expr",
    )
    parser.add_argument(
        "-f",
        "--file",
        type=str,
        help="Run the commands in a script file and exit",
        dest="script",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "human"],
        default="human",
        help="Output format: json (machine-readable) or human (human-readable)",
    )
    parser.add_argument(
        "-p", "--precision", type=int, help="Set output precision (significant digits)"
    )
    parser.add_argument(
        "--fraction", action="store_true", help="Show results as fractions when exact"
    )
    parser.add_argument(
        "--no-numeric-fallback",
        action="store_true",
        help="Disable numeric root-finding fallback",
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    args = parser.parse_args(argv)

    output_format = args.format

    setup_logging(level=args.log_level, log_file=args.log_file)

    # Apply CLI configuration overrides
    import aljabar_pkg.config as _config

    if args.no_numeric_fallback:
        _config.NUMERIC_FALLBACK_ENABLED = False
    if args.precision and args.precision > 0:
        _config.OUTPUT_PRECISION = int(args.precision)
    if args.fraction:
        _config.FRACTION_MODE = True

    if args.version:
        print(VERSION)
        return 0

    if args.script:
        try:
            with open(args.script, encoding="utf-8") as handle:
                lines = handle.read().splitlines()
        except OSError as exc:
            print(f"Error: cannot open file '{args.script}': {exc.strerror}")
            return 1
        if output_format == "human":
            print(f"[Running {args.script}]")
        exit_code = run_script(lines, output_format)
        if output_format == "human":
            print(f"[Finished {args.script}]")
        return exit_code

    if args.eval_expr is not None:
        expr = args.eval_expr.strip()
        # Remove ">>>" prompt if present
        if expr.startswith(">>>"):
            expr = expr[3:].strip()
        if not expr:
            print("Error: Empty input. Please enter a valid expression, equation, or command.")
            return 1
        return run_script(expr.split(";"), output_format)

    repl_loop(output_format=output_format)
    return 0


if __name__ == "__main__":
    """Allow running the CLI module directly with python -m aljabar_pkg.cli"""
    import sys

    sys.exit(main_entry())
