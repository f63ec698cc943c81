"""Input parsing and result formatting module.

This module handles:
- Input validation (length, emptiness, balanced brackets)
- Tokenizing and precedence-climbing parsing into the expression tree
- Result formatting (numbers, fractions, superscripts, symbolic display)

Grammar, lowest precedence first::

    equation       := expression "=" expression
    expression     := multiplicative (("+" | "-") multiplicative)*
    multiplicative := unary (("*" | "/")? unary)*      # juxtaposition multiplies
    unary          := ("-" | "+") unary | power
    power          := postfix ("^" unary)?             # right-associative
    postfix        := primary ("[" INT "]")*
    primary        := NUMBER | NAME | NAME "(" args ")" | "(" expression ")"
                    | "[" constant ("," constant)* "]"

``-x^2`` therefore parses as ``-(x^2)`` and ``2^3^2`` as ``2^(3^2)``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any

import sympy as sp

from . import config
from .expr import (
    BinaryOp,
    BinaryOpType,
    Equation,
    Expr,
    FunctionCall,
    IndexAccess,
    Number,
    NumberArray,
    Variable,
    expression_depth,
    negate,
)
from .types import InvalidEquationError, ParseError, Span, ValidationError

# Token kinds
NUMBER = "number"
IDENT = "identifier"
OP = "operator"
END = "end of input"

_OPERATORS = "+-*/^()[],="


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    span: Span
    value: float = 0.0


def is_balanced(input_str: str) -> tuple[bool, int | None]:
    """Check if parentheses/brackets are balanced. Returns (is_balanced, error_position)."""
    pairs = {"(": ")", "[": "]"}
    stack: list[tuple[str, int]] = []  # (char, position)
    for i, char in enumerate(input_str):
        if char in pairs:
            stack.append((char, i))
        elif char in pairs.values():
            if not stack:
                return False, i
            opening, _ = stack.pop()
            if pairs[opening] != char:
                return False, i
    if stack:
        return False, stack[0][1]
    return True, None


def preprocess(input_str: str) -> str:
    """Validate raw input and return it stripped.

    Raises:
        ValidationError: EMPTY_INPUT, TOO_LONG or UNBALANCED
    """
    text = input_str.strip() if input_str else ""
    if not text:
        raise ValidationError("empty input", "EMPTY_INPUT")
    if len(text) > config.MAX_INPUT_LENGTH:
        raise ValidationError(
            f"input too long ({len(text)} characters, maximum {config.MAX_INPUT_LENGTH})",
            "TOO_LONG",
        )
    balanced, pos = is_balanced(text)
    if not balanced:
        raise ValidationError(
            f"unbalanced parentheses or brackets at position {pos}",
            "UNBALANCED",
            span=Span(pos, pos + 1),
            input_text=text,
        )
    return text


def tokenize(text: str) -> list[Token]:
    """Split input into tokens; the list always ends with an END token."""
    tokens: list[Token] = []
    pos = 0
    n = len(text)
    while pos < n:
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue
        start = pos
        if ch.isdigit() or ch == ".":
            seen_dot = False
            while pos < n and (text[pos].isdigit() or (text[pos] == "." and not seen_dot)):
                if text[pos] == ".":
                    seen_dot = True
                pos += 1
            literal = text[start:pos]
            if literal == ".":
                raise ParseError("invalid number", span=Span(start, pos), input_text=text)
            tokens.append(Token(NUMBER, literal, Span(start, pos), float(literal)))
            continue
        if ch.isalpha() or ch == "_":
            while pos < n and (text[pos].isalnum() or text[pos] == "_"):
                pos += 1
            name = text[start:pos]
            if name in config.RESERVED_KEYWORDS:
                raise ParseError(
                    f"'{name}' is a reserved keyword",
                    "RESERVED_KEYWORD",
                    span=Span(start, pos),
                    input_text=text,
                )
            tokens.append(Token(IDENT, name, Span(start, pos)))
            continue
        if ch in _OPERATORS:
            pos += 1
            tokens.append(Token(OP, ch, Span(start, pos)))
            continue
        raise ParseError(
            f"unexpected character '{ch}'", span=Span(start, start + 1), input_text=text
        )
    tokens.append(Token(END, "", Span(n, n)))
    return tokens


def check_depth(expr: Expr, input_text: str | None = None) -> Expr:
    """Reject trees deeper than ``MAX_EXPRESSION_DEPTH`` levels.

    Raises:
        ValidationError: TOO_DEEP
    """
    if expression_depth(expr) > config.MAX_EXPRESSION_DEPTH:
        raise _too_deep(input_text)
    return expr


def _too_deep(input_text: str | None) -> ValidationError:
    return ValidationError(
        f"expression too deeply nested (more than {config.MAX_EXPRESSION_DEPTH} levels)",
        "TOO_DEEP",
        input_text=input_text,
    )


def _constant_value(expr: Expr) -> float | None:
    """Value of a literal number or a negated literal number."""
    if isinstance(expr, Number):
        return expr.value
    if (
        isinstance(expr, BinaryOp)
        and expr.op is BinaryOpType.SUB
        and isinstance(expr.left, Number)
        and expr.left.value == 0.0
        and isinstance(expr.right, Number)
    ):
        return -expr.right.value
    return None


class Parser:
    """Precedence-climbing parser over the token stream of one input line."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0
        self._nesting = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != END:
            self.pos += 1
        return token

    def _at(self, text: str) -> bool:
        return self.current.kind == OP and self.current.text == text

    def _error(self, message: str, span: Span | None = None) -> ParseError:
        return ParseError(message, span=span or self.current.span, input_text=self.text)

    def _expect(self, text: str, message: str) -> Token:
        if not self._at(text):
            raise self._error(message)
        return self._advance()

    def _describe_current(self) -> str:
        token = self.current
        return token.kind if token.kind == END else token.text

    def parse_expression(self) -> Expr:
        left = self._parse_multiplicative()
        while self._at("+") or self._at("-"):
            op = BinaryOpType.ADD if self._advance().text == "+" else BinaryOpType.SUB
            right = self._parse_multiplicative()
            left = BinaryOp(left, right, op, left.span.merge(right.span))
        return left

    def _starts_implicit_factor(self) -> bool:
        token = self.current
        return token.kind in (NUMBER, IDENT) or (token.kind == OP and token.text == "(")

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while True:
            if self._at("*") or self._at("/"):
                op = BinaryOpType.MUL if self._advance().text == "*" else BinaryOpType.DIV
            elif self._starts_implicit_factor():
                op = BinaryOpType.MUL
            else:
                return left
            right = self._parse_unary()
            left = BinaryOp(left, right, op, left.span.merge(right.span))

    def _parse_unary(self) -> Expr:
        # every parenthesis, argument list, sign and exponent passes through here
        if self._nesting >= config.MAX_EXPRESSION_DEPTH:
            raise _too_deep(self.text)
        self._nesting += 1
        try:
            if self._at("-"):
                op_span = self._advance().span
                operand = self._parse_unary()
                return negate(operand, op_span)
            if self._at("+"):
                self._advance()
                return self._parse_unary()
            return self._parse_power()
        finally:
            self._nesting -= 1

    def _parse_power(self) -> Expr:
        base = self._parse_postfix(self._parse_primary())
        if self._at("^"):
            self._advance()
            exponent = self._parse_unary()
            return BinaryOp(base, exponent, BinaryOpType.POW, base.span.merge(exponent.span))
        return base

    def _parse_postfix(self, expr: Expr) -> Expr:
        while self._at("["):
            self._advance()
            token = self.current
            if token.kind != NUMBER:
                raise self._error("expected integer index inside []")
            if token.value != int(token.value):
                raise self._error("array index must be a non-negative integer")
            self._advance()
            end = self._expect("]", "expected ']'")
            expr = IndexAccess(expr, int(token.value), expr.span.merge(end.span))
        return expr

    def _parse_array_literal(self) -> Expr:
        start = self._advance().span
        values: list[float] = []
        if not self._at("]"):
            while True:
                element = self.parse_expression()
                value = _constant_value(element)
                if value is None:
                    raise self._error(
                        "array literal elements must be numeric constants", element.span
                    )
                values.append(value)
                if not self._at(","):
                    break
                self._advance()
        end = self._expect("]", "expected ']'")
        return NumberArray(tuple(values), start.merge(end.span))

    def _parse_primary(self) -> Expr:
        token = self.current
        if token.kind == NUMBER:
            self._advance()
            return Number(token.value, token.span)
        if token.kind == IDENT:
            self._advance()
            if token.text in config.BUILTIN_FUNCTIONS and self._at("("):
                self._advance()
                args: list[Expr] = []
                if not self._at(")"):
                    args.append(self.parse_expression())
                    while self._at(","):
                        self._advance()
                        args.append(self.parse_expression())
                end = self._expect(")", "expected ')' after function arguments")
                return FunctionCall(token.text, tuple(args), token.span.merge(end.span))
            return Variable(token.text, token.span)
        if self._at("("):
            start = self._advance().span
            inner = self.parse_expression()
            end = self._expect(")", "expected ')'")
            return _with_span(inner, start.merge(end.span))
        if self._at("["):
            return self._parse_array_literal()
        raise self._error(f"unexpected token '{self._describe_current()}'")

    def expect_end(self) -> None:
        if self.current.kind != END:
            raise self._error(f"unexpected token '{self._describe_current()}'")


def _with_span(expr: Expr, span: Span) -> Expr:
    """Copy of ``expr`` whose span covers the surrounding parentheses."""
    return replace(expr, span=span)


def parse_expression(text: str) -> Expr:
    """Parse a single expression.

    Raises:
        ValidationError: If the input fails preprocessing
        ParseError: On syntax errors (including a stray '=')
    """
    text = preprocess(text)
    parser = Parser(text)
    expr = parser.parse_expression()
    parser.expect_end()
    return check_depth(expr, text)


def parse_equation(text: str) -> Equation:
    """Parse ``lhs = rhs``.

    Raises:
        InvalidEquationError: If the input has no '=' or more than one
        ParseError: On syntax errors in either side
    """
    text = preprocess(text)
    count = text.count("=")
    if count == 0:
        raise InvalidEquationError("expected '=' in equation", input_text=text)
    if count > 1:
        second = text.index("=", text.index("=") + 1)
        raise InvalidEquationError(
            "equation must contain exactly one '='",
            span=Span(second, second + 1),
            input_text=text,
        )
    parser = Parser(text)
    lhs = parser.parse_expression()
    parser._expect("=", "expected '='")
    rhs = parser.parse_expression()
    parser.expect_end()
    check_depth(lhs, text)
    check_depth(rhs, text)
    return Equation(lhs, rhs, lhs.span.merge(rhs.span))


def parse_expression_or_equation(text: str) -> Expr | Equation:
    """Parse an equation when the input contains '=', an expression otherwise."""
    if "=" in text:
        return parse_equation(text)
    return parse_expression(text)


def split_top_level_commas(input_str: str) -> list[str]:
    """Split on commas and semicolons that are not inside (), [] or {}."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for char in input_str:
        if char in ",;" and depth == 0:
            part = "".join(current).strip()
            if part:
                parts.append(part)
            current = []
            continue
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(0, depth - 1)
        current.append(char)
    last = "".join(current).strip()
    if last:
        parts.append(last)
    return parts


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def superscriptify(input_str: str) -> str:
    """Convert a numeric string to Unicode superscript characters ("-2" -> "⁻²")."""
    mapping = {
        "0": "⁰",
        "1": "¹",
        "2": "²",
        "3": "³",
        "4": "⁴",
        "5": "⁵",
        "6": "⁶",
        "7": "⁷",
        "8": "⁸",
        "9": "⁹",
        "-": "⁻",
    }
    return "".join(mapping.get(char, char) for char in input_str)


def format_superscript(expr_str: str) -> str:
    """Replace integer powers (``x**2`` or ``x^2``) with Unicode superscripts."""
    return re.sub(r"(?:\*\*|\^)(\-?\d+)", lambda m: superscriptify(m.group(1)), expr_str)


def format_number(val: Any, precision: int | None = None) -> str:
    """Format a numeric value with the given number of significant digits.

    Args:
        val: Numeric value to format
        precision: Significant digits (default: config.OUTPUT_PRECISION)

    Returns:
        Formatted string, with ``-0`` normalized to ``0``
    """
    if precision is None:
        precision = config.OUTPUT_PRECISION
    try:
        number = float(val)
        if abs(number) < config.ZERO_TOLERANCE:
            number = 0.0
        fmt = "{:." + str(int(precision)) + "g}"
        return fmt.format(number)
    except (ValueError, TypeError, OverflowError):
        return str(val)


def format_fraction(value: float, max_denominator: int | None = None) -> str:
    """Render ``value`` as a reduced fraction when one is close enough.

    Falls back to :func:`format_number` for values without a small rational form.
    """
    if max_denominator is None:
        max_denominator = config.FRACTION_MAX_DENOMINATOR
    try:
        rational = sp.Rational(value).limit_denominator(max_denominator)
    except (TypeError, ValueError):
        return format_number(value)
    if abs(float(rational) - value) > 1e-9 * max(1.0, abs(value)):
        return format_number(value)
    return str(rational)


def format_value(value: float, as_fraction: bool = False) -> str:
    return format_fraction(value) if as_fraction else format_number(value)


def format_values(values: list[float], as_fraction: bool = False) -> str:
    return ", ".join(format_value(v, as_fraction) for v in values)


def prettify_expr(expr_str: str) -> str:
    """Make a SymPy expression string more readable: superscripts, ``×`` and ``√``."""
    result = format_superscript(expr_str)
    result = re.sub(r"sqrt\(([^)]+)\)", r"√(\1)", result)
    return result.replace("*", "×")


_SYMPY_FUNCTIONS = {
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "log": lambda arg: sp.log(arg, 10),
    "ln": sp.log,
    "exp": sp.exp,
    "floor": sp.floor,
    "ceil": sp.ceiling,
}


def to_sympy(expr: Expr) -> sp.Expr:
    """Convert an expression tree to a SymPy expression for symbolic display.

    Raises:
        TypeError: For arrays and index access, which have no scalar symbolic form
    """
    if isinstance(expr, Number):
        return sp.nsimplify(expr.value, rational=True)
    if isinstance(expr, Variable):
        return sp.Symbol(expr.name)
    if isinstance(expr, BinaryOp):
        left = to_sympy(expr.left)
        right = to_sympy(expr.right)
        if expr.op is BinaryOpType.ADD:
            return left + right
        if expr.op is BinaryOpType.SUB:
            return left - right
        if expr.op is BinaryOpType.MUL:
            return left * right
        if expr.op is BinaryOpType.DIV:
            return left / right
        return left**right
    if isinstance(expr, FunctionCall):
        if len(expr.args) != 1:
            raise TypeError(f"function '{expr.name}' expects 1 argument")
        return _SYMPY_FUNCTIONS[expr.name](to_sympy(expr.args[0]))
    raise TypeError(f"no symbolic form for {type(expr).__name__}")
