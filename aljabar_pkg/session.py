"""Line-oriented command session shared by the REPL and ``--eval``.

:meth:`Session.handle` turns one input line into result dictionaries (the
same shape the public API's ``to_dict()`` produces); :func:`format_result`
renders a result for humans. Multi-line input (``solve`` system mode and
``let (a, b) = solve {`` blocks) is buffered across calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from . import api, config
from .constant_folder import fold_constants
from .context import Context
from .evaluator import Evaluator
from .expr import Equation, Number, NumberArray, format_double
from .logging_config import get_logger
from .parser import (
    format_fraction,
    parse_equation,
    parse_expression,
    parse_expression_or_equation,
    prettify_expr,
    split_top_level_commas,
)
from .simplify import Simplifier
from .solver import SolveFlags, parse_solve_flag
from .substitution import free_variables
from .types import MathError

logger = get_logger("session")

Result = dict[str, Any]

HINTS = {
    "MULTIPLE_UNKNOWNS": "use 'solve' alone for multi-variable systems, or set to define variables",
    "DOMAIN_ERROR": "some roots were excluded because they violate the equation's domain "
    "(e.g. division by zero)",
    "SOLVER_DIVERGED": "the equation may have no real roots, or roots outside the search "
    "range [-100, 100]",
}

HELP_TOPICS = {
    "set": [
        "Set variable",
        "",
        "Usage:",
        "  set <variable> <expression>",
        "",
        "Examples:",
        "  set x 5",
        "  set y 2*x + 3",
    ],
    "unset": ["Remove variable", "", "Usage:", "  unset <variable>"],
    "vars": ["Show all defined variables", "", "Usage:", "  vars"],
    "clear": ["Clear all variables", "", "Usage:", "  clear"],
    "solve": [
        "Solve equations",
        "",
        "Usage:",
        "  solve <lhs> = <rhs>           Solve single equation",
        "  solve positive <lhs> = <rhs>  Keep positive roots (also negative, nonneg, integer)",
        "  solve <eq1>, <eq2>            Solve a system on one line",
        "  solve                         Multi-equation mode: one equation per line,",
        "                                empty line to solve",
        "",
        "Options:",
        "  --vars x y z                  Specify variable order",
        "  --fraction                    Display results as fractions",
    ],
    "simplify": [
        "Simplify to canonical form",
        "",
        "Usage:",
        "  simplify <lhs> = <rhs> [--vars x y] [--isolated] [--fraction]",
        "",
        "Example:",
        "  simplify 4x + 8y = 16 --fraction",
    ],
    "let": [
        "Store a result",
        "",
        "Usage:",
        "  let <variable> = <expression>",
        "  let <variable> = solve <equation>",
        "  let (<var1>, <var2>) = solve { <eq1>, <eq2> }",
    ],
    "print": ["Evaluate and show an expression", "", "Usage:", "  print <expression>"],
}

HELP_OVERVIEW = [
    "Aljabar - Commands",
    "==================",
    "",
    "  <expression>                Evaluate (e.g., 2 + 3 * 4)",
    "  <lhs> = <rhs>               Check whether both sides are equal",
    "  set <var> <expr>            Set variable",
    "  unset <var>                 Remove variable",
    "  clear                       Clear all variables",
    "  vars                        Show all variables",
    "  solve <lhs> = <rhs>         Solve single equation",
    "  solve                       Multi-equation mode",
    "  simplify <lhs> = <rhs>      Simplify to canonical form",
    "  let <var> = ...             Store a value or solution",
    "  print <expr>                Evaluate and show an expression",
    "  help [command]              Show help",
    "  exit, quit, q               Quit",
]


@dataclass
class CommandFlags:
    """Trailing ``--vars``/``--isolated``/``--fraction`` flags of a command."""

    expression: str = ""
    vars: list[str] = field(default_factory=list)
    isolated: bool = False
    fraction: bool = False


def parse_flags(text: str) -> CommandFlags:
    """Split ``text`` into the expression before the first ``--`` and its flags."""
    start = text.find("--")
    if start == -1:
        return CommandFlags(expression=text.strip())

    flags = CommandFlags(expression=text[:start].strip())
    tokens = text[start:].split()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "--vars":
            while i + 1 < len(tokens) and not tokens[i + 1].startswith("--"):
                i += 1
                flags.vars.append(tokens[i])
        elif token == "--isolated":
            flags.isolated = True
        elif token == "--fraction":
            flags.fraction = True
        i += 1
    return flags


def strip_comment(line: str) -> str:
    pos = line.find("#")
    if pos != -1:
        line = line[:pos]
    return line.strip()


def validate_name(name: str) -> str | None:
    """Error message for an unusable variable name, None when it is fine."""
    if not config.VAR_NAME_RE.match(name):
        return f"invalid variable name '{name}'"
    if name in config.RESERVED_KEYWORDS or name in config.BUILTIN_FUNCTIONS:
        return f"'{name}' is a reserved keyword"
    return None


def _ok(kind: str, **fields: Any) -> Result:
    return {"ok": True, "type": kind, **fields}


def _fail(kind: str, message: str, code: str | None = None, **fields: Any) -> Result:
    return {"ok": False, "type": kind, "error": message, "error_code": code, **fields}


def _from_exception(kind: str, exc: MathError) -> Result:
    res = _fail(kind, exc.message, exc.code, detail=exc.format())
    if exc.code in HINTS:
        res["hint"] = HINTS[exc.code]
    return res


def _info(message: str) -> Result:
    return _ok("info", message=message)


def _usage(message: str) -> Result:
    return _ok("usage", message=message)


@dataclass
class _PendingSystem:
    """Equations collected line by line until a blank line (or ``}``)."""

    flags: CommandFlags
    lines: list[str] = field(default_factory=list)
    targets: list[str] | None = None  # set for ``let (a, b) = solve {``


class Session:
    """Owns a :class:`Context` and executes commands one line at a time.

    Args:
        context: Bindings to start from (a fresh context when omitted)
        as_fraction: Show results as fractions by default
    """

    def __init__(self, context: Context | None = None, as_fraction: bool | None = None):
        self.context = context if context is not None else Context()
        self.as_fraction = config.FRACTION_MODE if as_fraction is None else as_fraction
        self.finished = False
        self._pending: _PendingSystem | None = None

    @property
    def in_system_mode(self) -> bool:
        return self._pending is not None

    def prompt(self) -> str:
        """``>>> `` normally, ``system[n]> `` while collecting equations."""
        if self._pending is not None:
            return f"system[{len(self._pending.lines) + 1}]> "
        return ">>> "

    def execute(self, line: str) -> list[str]:
        """Execute ``line`` and return the human-readable output lines."""
        output: list[str] = []
        for res in self.handle(line):
            output.extend(format_result(res))
        return output

    def flush(self) -> list[Result]:
        """Solve a pending system as if a blank line had been entered."""
        if self._pending is None:
            return []
        return self._finish_system()

    def handle(self, line: str) -> list[Result]:
        """Execute ``line`` and return its result dictionaries."""
        text = strip_comment(line)
        if self._pending is not None:
            return self._handle_system_line(text)
        if not text:
            return []

        logger.debug(f"command: {text}")
        word, _, rest = text.partition(" ")
        rest = rest.strip()

        if text in ("exit", "quit", "q"):
            self.finished = True
            return []
        if word == "help":
            return [self._help(rest)]
        if word == "set":
            return [self._set(rest)]
        if word == "unset":
            return [self._unset(rest)]
        if text == "clear":
            count = self.context.size()
            self.context.clear()
            return [_ok("clear", count=count)]
        if text == "vars":
            return [self._vars()]
        if word == "solve":
            return self._solve(rest)
        if word == "simplify":
            return [self._simplify(rest)]
        if word == "let":
            return self._let(rest)
        if word == "print":
            return [self._print(rest)]
        return [self._evaluate(text)]

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _help(self, topic: str) -> Result:
        if not topic:
            return _ok("help", lines=HELP_OVERVIEW)
        if topic not in HELP_TOPICS:
            return _fail("help", f"unknown help topic: '{topic}'")
        return _ok("help", lines=HELP_TOPICS[topic])

    def _set(self, args: str) -> Result:
        name, _, value_text = args.partition(" ")
        value_text = value_text.strip()
        if not name or not value_text:
            return _usage("set <variable> <value>")
        problem = validate_name(name)
        if problem:
            return _fail("set", problem, "INVALID_NAME")
        try:
            expr = parse_expression(value_text)
        except MathError as exc:
            return _from_exception("set", exc)
        if self.context.would_cycle(name, expr):
            return _fail("set", "circular variable reference detected", "CIRCULAR_REFERENCE")
        self.context.set(name, expr)
        return _ok("set", name=name, display=str(expr))

    def _unset(self, name: str) -> Result:
        if not name:
            return _usage("unset <variable>")
        dependents = sorted(self.context.dependents_of(name))
        if not self.context.unset(name):
            return _fail("unset", f"variable '{name}' not found")
        res = _ok("unset", name=name)
        if dependents:
            res["warnings"] = [f"'{name}' is still used by: {', '.join(dependents)}"]
        return res

    def _vars(self) -> Result:
        variables: dict[str, str] = {}
        for name in self.context.all_names():
            expr = self.context.get_expr(name)
            display = str(fold_constants(expr))
            if free_variables(expr):
                try:
                    value = Evaluator(self.context).evaluate(expr)
                    display = f"{display}  (= {value})"
                except MathError:
                    pass
            variables[name] = display
        return _ok("vars", variables=variables)

    def _store(self, name: str, values: list[float]) -> list[Result]:
        """Bind ``name`` to a number, or an array for several values."""
        results: list[Result] = []
        dependents = sorted(self.context.dependents_of(name))
        if dependents:
            message = f"storing '{name}' overwrites a symbolic dependency used by: {', '.join(dependents)}"
            results.append(_ok("warning", message=message))
        if len(values) == 1:
            self.context.set_value(name, values[0])
        else:
            self.context.set_array(name, values)
        results.append(_ok("stored", name=name, values=list(values)))
        return results

    # ------------------------------------------------------------------
    # Solving
    # ------------------------------------------------------------------

    def _substitution_steps(self, equation: Equation, input_text: str) -> Result | None:
        """Symbolic bindings used by ``equation`` and the reduced equation they give."""
        names = sorted(free_variables(equation.lhs) | free_variables(equation.rhs))
        substitutions = {}
        for name in names:
            stored = self.context.get_expr(name)
            if stored is not None and free_variables(stored):
                substitutions[name] = str(stored)
        if not substitutions:
            return None

        res = _ok("substitution", substitutions=substitutions)
        expanded = Equation(
            self.context.expand(equation.lhs), self.context.expand(equation.rhs), equation.span
        )
        try:
            res["reduced"] = Simplifier(None, input_text).simplify(expanded).canonical
        except MathError:
            pass
        return res

    def _solve(self, args: str) -> list[Result]:
        if not args or args.startswith("--"):
            self._pending = _PendingSystem(parse_flags(args))
            return [_info("Enter equations (empty line to solve):")]

        flags = parse_flags(args)
        equations = split_top_level_commas(flags.expression)
        if len(equations) > 1:
            return self._system_results(equations, flags)

        flag = SolveFlags.ALL
        eq_text = flags.expression
        first, _, remainder = eq_text.partition(" ")
        if remainder and parse_solve_flag(first) is not SolveFlags.ALL:
            flag = parse_solve_flag(first)
            eq_text = remainder.strip()

        results: list[Result] = []
        try:
            steps = self._substitution_steps(parse_equation(eq_text), eq_text)
        except MathError as exc:
            return [_from_exception("equation", exc)]
        if steps is not None:
            results.append(steps)

        outcome = api.solve_equation(eq_text, self.context, flag=flag)
        res = outcome.to_dict()
        if not outcome.ok:
            res.update(self._hint(outcome.error_code))
        res["fraction"] = flags.fraction or self.as_fraction
        results.append(res)
        return results

    def _hint(self, code: str | None) -> Result:
        return {"hint": HINTS[code]} if code in HINTS else {}

    def _handle_system_line(self, text: str) -> list[Result]:
        pending = self._pending
        if text == "cancel":
            self._pending = None
            return [_info("Cancelled.")]

        closing = pending.targets is not None and "}" in text
        if closing:
            text = text[: text.index("}")].strip()
        if text:
            try:
                parse_equation(text)
            except MathError as exc:
                return [_from_exception("system", exc), _info("Try again or type 'cancel' to abort.")]
            pending.lines.append(text)
        if closing or (pending.targets is None and not text):
            return self._finish_system()
        return []

    def _finish_system(self) -> list[Result]:
        pending = self._pending
        self._pending = None
        if not pending.lines:
            return [_info("No equations entered.")]
        if pending.targets is not None:
            return self._destructure(pending.targets, pending.lines)
        return self._system_results(pending.lines, pending.flags)

    def _system_results(self, equations: list[str], flags: CommandFlags) -> list[Result]:
        outcome = api.solve_system(equations, self.context, flags.vars or None)
        res = outcome.to_dict()
        res["fraction"] = flags.fraction or self.as_fraction
        if not outcome.ok:
            return [res]

        res["equation_count"] = len(equations)
        n_vars = len(outcome.variables)
        if outcome.method == "linear":
            if len(equations) < n_vars:
                res["warnings"] = ["fewer equations than variables (may have infinite solutions)"]
            elif len(equations) > n_vars:
                res["warnings"] = ["more equations than variables (may be inconsistent)"]
        return [res]

    def _destructure(self, targets: list[str], equations: list[str]) -> list[Result]:
        results = self._system_results(equations, CommandFlags())
        res = results[0]
        if not res["ok"] or not res.get("solutions"):
            return results
        variables = res["variables"]
        if len(targets) != len(variables):
            results.append(
                _fail(
                    "let",
                    f"destructure count mismatch: declared {len(targets)} variables "
                    f"but system has {len(variables)}",
                )
            )
            return results
        if len(res["solutions"]) > 1:
            results.append(_info(f"  ({len(res['solutions'])} solution sets found, using first)"))
        first = res["solutions"][0]
        for target, var in zip(targets, variables):
            results.extend(self._store(target, [first[var]]))
        return results

    # ------------------------------------------------------------------
    # let / print / simplify / evaluate
    # ------------------------------------------------------------------

    def _let(self, args: str) -> list[Result]:
        if args.startswith("("):
            return self._let_destructure(args)

        name, eq, rest = args.partition("=")
        name = name.strip()
        rest = rest.strip()
        if not eq or not name or not rest:
            return [_usage("let <variable> = <expression> | solve <equation>")]
        problem = validate_name(name)
        if problem:
            return [_fail("let", problem, "INVALID_NAME")]

        if rest.startswith("solve ") or rest == "solve":
            eq_text = rest[len("solve") :].strip()
            if not eq_text:
                return [_usage("let <variable> = solve <equation>")]
            outcome = api.solve_equation(eq_text, self.context)
            res = outcome.to_dict()
            res["fraction"] = self.as_fraction
            if not outcome.ok:
                res.update(self._hint(outcome.error_code))
                return [res]
            return [res, *self._store(name, outcome.values)]

        try:
            expr = parse_expression(rest)
            folded = fold_constants(self.context.expand(expr))
        except MathError as exc:
            return [_from_exception("let", exc)]
        if isinstance(folded, Number):
            return self._store(name, [folded.value])
        if isinstance(folded, NumberArray):
            return self._store(name, list(folded.values))
        if self.context.would_cycle(name, folded):
            return [_fail("let", "circular variable reference detected", "CIRCULAR_REFERENCE")]
        self.context.set(name, folded)
        return [_ok("set", name=name, display=str(folded))]

    def _let_destructure(self, args: str) -> list[Result]:
        usage = _usage("let (<var1>, <var2>, ...) = solve { <equations> }")
        close = args.find(")")
        if close == -1:
            return [usage]
        targets = [part.strip() for part in args[1:close].split(",") if part.strip()]
        if not targets:
            return [_fail("let", "no variable names in destructure")]
        for target in targets:
            problem = validate_name(target)
            if problem:
                return [_fail("let", problem, "INVALID_NAME")]

        after = args[close + 1 :].strip()
        if not after.startswith("="):
            return [usage]
        after = after[1:].strip()
        if not after.startswith("solve"):
            return [usage]
        body = after[len("solve") :].strip()
        if not body.startswith("{"):
            return [usage]
        body = body[1:].strip()

        if "}" in body:
            equations = split_top_level_commas(body[: body.index("}")])
            if not equations:
                return [_fail("let", "no equations provided for system solve")]
            return self._destructure(targets, equations)

        self._pending = _PendingSystem(CommandFlags(), targets=targets)
        if body:
            self._pending.lines.extend(split_top_level_commas(body))
        return [_info("Enter equations ('}' to close block):")]

    def _print(self, args: str) -> Result:
        if not args:
            return _usage("print <expression>")
        try:
            expr = parse_expression(args)
        except MathError as exc:
            return _from_exception("print", exc)
        try:
            value = Evaluator(self.context, args).evaluate(expr)
            return _ok("print", expression=str(expr), display=str(value))
        except MathError as exc:
            try:
                folded = fold_constants(self.context.expand(expr))
            except MathError:
                return _from_exception("print", exc)
            return _ok("print", expression=str(expr), display=str(folded))

    def _simplify(self, args: str) -> Result:
        usage = _usage("simplify <lhs> = <rhs> [--vars x y] [--isolated] [--fraction]")
        flags = parse_flags(args)
        if not flags.expression:
            return usage
        outcome = api.simplify_equation(
            flags.expression,
            self.context,
            isolated=flags.isolated,
            variables=flags.vars or None,
            as_fraction=flags.fraction or self.as_fraction,
        )
        return outcome.to_dict()

    def _evaluate(self, text: str) -> Result:
        try:
            parsed = parse_expression_or_equation(text)
        except MathError as exc:
            return _from_exception("value", exc)
        if isinstance(parsed, Equation):
            try:
                evaluator = Evaluator(self.context, text)
                lhs = evaluator.evaluate_scalar(parsed.lhs)
                rhs = evaluator.evaluate_scalar(parsed.rhs)
            except MathError as exc:
                return _from_exception("comparison", exc)
            return _ok("comparison", lhs=lhs, rhs=rhs, equal=abs(lhs - rhs) < config.ZERO_TOLERANCE)

        outcome = api.evaluate(text, self.context)
        res = outcome.to_dict()
        if not outcome.ok:
            res.update(self._hint(outcome.error_code))
        return res


# ----------------------------------------------------------------------
# Human-readable rendering
# ----------------------------------------------------------------------


def _format_solution_value(value: float, as_fraction: bool) -> str:
    return format_fraction(value) if as_fraction else format_double(value)


def _render_equation(res: Result) -> list[str]:
    lines: list[str] = []
    if res.get("filtered"):
        if not res.get("values"):
            return ["no solutions match the requested filter"]
        lines.append(f"{res['filtered']} root(s) excluded by filter")
    as_fraction = res.get("fraction", False)
    values = ", ".join(_format_solution_value(v, as_fraction) for v in res.get("values", []))
    lines.append("Solution:")
    lines.append(f"  {res['variable']} = {values}")
    return lines


def _render_system(res: Result) -> list[str]:
    lines = [f"Warning: {w}" for w in res.get("warnings", [])]
    variables = res.get("variables", [])
    if "equation_count" in res:
        lines.append(f"System: {res['equation_count']} equation(s), {len(variables)} variable(s)")

    kind = res.get("solution_type")
    if kind == "no_solution":
        if res.get("method") == "nonlinear":
            lines.append("Error: no solution found for nonlinear system")
        else:
            lines.append("No solution (inconsistent system)")
        return lines
    if kind == "infinite":
        lines.append("Infinite solutions")
        if res.get("free_variables"):
            lines.append(f"Free variables: {', '.join(res['free_variables'])}")
        return lines

    as_fraction = res.get("fraction", False)
    solutions = res.get("solutions") or []
    for i, solution in enumerate(solutions):
        lines.append("Solution:" if len(solutions) == 1 else f"Solution {i + 1}:")
        for name in variables:
            lines.append(f"  {name} = {_format_solution_value(solution[name], as_fraction)}")
    return lines


def _render_simplify(res: Result) -> list[str]:
    lines = [f"Warning: {w}" for w in res.get("warnings", [])]
    lines.extend(["Canonical form:", f"  {res['canonical']}"])
    verdict = res.get("verdict")
    if verdict == "no_solution":
        lines.append("  => no solution")
    elif verdict == "infinite_solutions":
        lines.append("  => infinite solutions")
    return lines


def format_result(res: Result) -> list[str]:
    """Human-readable lines for one result dictionary."""
    if not res.get("ok"):
        lines = (res.get("detail") or f"Error: {res.get('error')}").splitlines()
        if res.get("hint"):
            lines.append(f"Hint: {res['hint']}")
        return lines

    kind = res.get("type")
    if kind in ("info", "help"):
        return res["lines"] if "lines" in res else [res["message"]]
    if kind == "usage":
        return [f"Usage: {res['message']}"]
    if kind == "warning":
        return [f"Warning: {res['message']}"]
    if kind == "set":
        return [f"{res['name']} = {res['display']}"]
    if kind == "unset":
        return [f"Warning: {w}" for w in res.get("warnings", [])] + [f"Removed: {res['name']}"]
    if kind == "clear":
        return [f"Cleared {res['count']} variable(s)"]
    if kind == "vars":
        if not res["variables"]:
            return ["No variables defined."]
        return ["Variables:"] + [f"  {name} = {shown}" for name, shown in res["variables"].items()]
    if kind == "stored":
        values = res["values"]
        if len(values) == 1:
            return [f"  (stored: {res['name']} = {format_double(values[0])})"]
        return [f"  (stored: {res['name']} as array with {len(values)} solutions)"]
    if kind == "substitution":
        lines = ["Substituting:"]
        lines.extend(f"  {name} = {expr}" for name, expr in res["substitutions"].items())
        if res.get("reduced"):
            lines.append(f"  => {res['reduced']}")
        return lines
    if kind == "equation":
        return _render_equation(res)
    if kind == "system":
        return _render_system(res)
    if kind == "simplify":
        return _render_simplify(res)
    if kind == "comparison":
        verdict = "true" if res["equal"] else "false"
        return [f"{format_double(res['lhs'])} = {format_double(res['rhs'])} ({verdict})"]
    if kind == "print":
        return [f"{res['expression']} = {res['display']}"]
    if kind == "value":
        if res.get("symbolic") is not None:
            return [prettify_expr(res["symbolic"])]
        return [res["value"]]
    return [str(res)]


def run_lines(session: Session, lines: list[str]) -> list[Result]:
    """Run ``lines`` through ``session``, solving any system left open at the end."""
    results: list[Result] = []
    for line in lines:
        results.extend(session.handle(line))
        if session.finished:
            break
    results.extend(session.flush())
    return results


__all__ = [
    "CommandFlags",
    "Session",
    "format_result",
    "parse_flags",
    "run_lines",
]
