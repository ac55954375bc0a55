"""Calculator skill: a small recursive-descent evaluator for math expressions"""

import math
import re
from typing import Callable, Dict, List, Tuple, Union

from ..core.errors import InvalidExpression

Number = Union[int, float]

# Exact integer powers are only computed while the result stays this small
MAX_EXACT_DIGITS = 308
MAX_INT_BITS = 4096

# Only digits, operators, parentheses, commas, identifiers and whitespace
_ALLOWED = re.compile(r'^[\d\s\+\-\*\/\^\%\(\)\.\,a-zA-Z_]+$')

_TOKEN = re.compile(r'\s*(?:(\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)|(\*\*|[+\-*/^%(),])|([A-Za-z_]\w*))')

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
}


def _exact_power_fits(base: int, exponent: int) -> bool:
    if not 0 <= exponent <= 1024:
        return False
    return abs(base) <= 1 or exponent * math.log10(abs(base)) <= MAX_EXACT_DIGITS


def _bounded(value: Number) -> Number:
    if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
        raise InvalidExpression("Result is too large")
    return value


def _log(x, base=None):
    return math.log(x) if base is None else math.log(x, base)


def _round(x, digits=0):
    return round(x, int(digits))


FUNCTIONS: Dict[str, Tuple[Callable, int, int]] = {
    # name: (function, min args, max args); -1 means variadic
    "sqrt": (math.sqrt, 1, 1),
    "sin": (math.sin, 1, 1),
    "cos": (math.cos, 1, 1),
    "tan": (math.tan, 1, 1),
    "asin": (math.asin, 1, 1),
    "acos": (math.acos, 1, 1),
    "atan": (math.atan, 1, 1),
    "log": (_log, 1, 2),
    "ln": (math.log, 1, 1),
    "log10": (math.log10, 1, 1),
    "log2": (math.log2, 1, 1),
    "exp": (math.exp, 1, 1),
    "abs": (abs, 1, 1),
    "round": (_round, 1, 2),
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "min": (min, 1, -1),
    "max": (max, 1, -1),
    "pow": (math.pow, 2, 2),
}


def _tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match or match.end() == pos:
            raise InvalidExpression(f"Unexpected character at position {pos}: {text[pos:pos + 1]!r}")
        number, op, name = match.groups()
        if number is not None:
            tokens.append(("num", number))
        elif op is not None:
            tokens.append(("op", op))
        else:
            tokens.append(("name", name))
        pos = match.end()
    return tokens


class _Parser:
    """
    Grammar:
        expr   := term (("+" | "-") term)*
        term   := unary (("*" | "/" | "%") unary)*
        unary  := ("+" | "-") unary | power
        power  := atom (("^" | "**") unary)?
        atom   := NUMBER | NAME | NAME "(" args ")" | "(" expr ")"
    """

    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else (None, None)

    def take(self, value: str = None):
        kind, text = self.peek()
        if kind is None:
            raise InvalidExpression("Unexpected end of expression")
        if value is not None and text != value:
            raise InvalidExpression(f"Expected '{value}' but found '{text}'")
        self.pos += 1
        return kind, text

    def parse(self) -> Number:
        if not self.tokens:
            raise InvalidExpression("Empty expression")
        value = self.expr()
        if self.pos != len(self.tokens):
            raise InvalidExpression(f"Unexpected token '{self.peek()[1]}'")
        return value

    def expr(self) -> Number:
        value = self.term()
        while self.peek()[1] in ("+", "-"):
            _, op = self.take()
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def term(self) -> Number:
        value = self.unary()
        while self.peek()[1] in ("*", "/", "%"):
            _, op = self.take()
            rhs = self.unary()
            if op == "*":
                value = _bounded(value * rhs)
            else:
                if rhs == 0:
                    raise InvalidExpression("Division by zero")
                try:
                    value = value / rhs if op == "/" else math.fmod(value, rhs)
                except OverflowError as e:
                    raise InvalidExpression(str(e))
        return value

    def unary(self) -> Number:
        if self.peek()[1] in ("+", "-"):
            _, op = self.take()
            value = self.unary()
            return -value if op == "-" else value
        return self.power()

    def power(self) -> Number:
        base = self.atom()
        if self.peek()[1] in ("^", "**"):
            self.take()
            exponent = self.unary()  # right-associative
            try:
                if isinstance(base, int) and isinstance(exponent, int) and _exact_power_fits(base, exponent):
                    return base ** exponent
                return math.pow(base, exponent)
            except (OverflowError, ValueError) as e:
                raise InvalidExpression(str(e))
        return base

    def atom(self) -> Number:
        kind, text = self.take()
        if kind == "num":
            return float(text) if any(c in text for c in ".eE") else int(text)
        if kind == "op" and text == "(":
            value = self.expr()
            self.take(")")
            return value
        if kind == "name":
            name = text.lower()
            if self.peek()[1] == "(":
                return self.call(name)
            if name in CONSTANTS:
                return CONSTANTS[name]
            raise InvalidExpression(f"Unknown identifier: {text}")
        raise InvalidExpression(f"Unexpected token '{text}'")

    def call(self, name: str) -> Number:
        if name not in FUNCTIONS:
            raise InvalidExpression(f"Unknown function: {name}")
        func, min_args, max_args = FUNCTIONS[name]
        self.take("(")
        args = []
        if self.peek()[1] != ")":
            args.append(self.expr())
            while self.peek()[1] == ",":
                self.take()
                args.append(self.expr())
        self.take(")")

        if len(args) < min_args or (max_args != -1 and len(args) > max_args):
            raise InvalidExpression(f"Wrong number of arguments for {name}()")
        try:
            return func(*args)
        except (ValueError, OverflowError, ZeroDivisionError) as e:
            raise InvalidExpression(f"{name}(): {e}")


def evaluate(expression: str) -> Number:
    """Evaluate an expression without executing any code."""
    if not expression or not _ALLOWED.match(expression):
        raise InvalidExpression("Invalid characters in expression")
    value = _Parser(_tokenize(expression)).parse()
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidExpression("Result is not a finite number")
    return value


def format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


async def calculator(ctx, expression: str) -> str:
    """
    Perform mathematical calculations. Supports basic arithmetic, exponents and common math functions.

    Args:
        expression: Math expression to evaluate (e.g., "2 + 2", "sqrt(16)", "sin(pi/2)", "15 * 7")
    """
    result = evaluate(expression.strip())
    return f"{expression.strip()} = {format_number(result)}"
