"""calculate - arithmetic over a restricted grammar.

Expressions are parsed, never executed as code:

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | NUMBER | "(" expr ")"
"""

import math
import re
from typing import Any

from shared.models import ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import error_result, text_result, user_prefix

MAX_EXPRESSION_LENGTH = 1000
MAX_DEPTH = 100

TOKEN_RE = re.compile(r"\s*(?:(\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)|(.))")

# Typographic operators people paste in
OPERATOR_ALIASES = {"×": "*", "÷": "/", "−": "-"}

TOOL = ToolDescriptor(
    name="calculate",
    description="Perform basic math calculations",
    input_schema=object_schema(
        {
            "expression": {
                "type": "string",
                "description": "Arithmetic expression using numbers, + - * / and parentheses"
            }
        },
        required=["expression"]
    )
)


class CalculationError(ValueError):
    """The expression is malformed or cannot be evaluated."""
    pass


def tokenize(expression: str) -> list[str | float]:
    """Split an expression into numbers and single-character operators."""
    tokens: list[str | float] = []
    for number, symbol in TOKEN_RE.findall(expression):
        if number:
            tokens.append(float(number))
        elif symbol.strip():
            symbol = OPERATOR_ALIASES.get(symbol, symbol)
            if symbol not in "+-*/()":
                raise CalculationError(f"Unexpected character '{symbol}'")
            tokens.append(symbol)
    return tokens


class ArithmeticParser:
    """Recursive-descent evaluator for the calculator grammar."""

    def __init__(self, tokens: list[str | float]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    def _peek(self) -> str | float | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> str | float | None:
        token = self._peek()
        self.pos += 1
        return token

    def parse(self) -> float:
        if not self.tokens:
            raise CalculationError("Empty expression")
        value = self._expr()
        if self._peek() is not None:
            raise CalculationError(f"Unexpected token '{self._peek()}'")
        return value

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._take() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> float:
        value = self._factor()
        while self._peek() in ("*", "/"):
            if self._take() == "*":
                value *= self._factor()
            else:
                divisor = self._factor()
                if divisor == 0:
                    raise CalculationError("Division by zero")
                value /= divisor
        return value

    def _factor(self) -> float:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise CalculationError("Expression is nested too deeply")
        try:
            token = self._take()
            if token == "-":
                return -self._factor()
            if token == "+":
                return self._factor()
            if isinstance(token, float):
                return token
            if token == "(":
                value = self._expr()
                if self._take() != ")":
                    raise CalculationError("Missing closing parenthesis")
                return value
            if token is None:
                raise CalculationError("Unexpected end of expression")
            raise CalculationError(f"Unexpected token '{token}'")
        finally:
            self.depth -= 1


def evaluate(expression: str) -> float:
    """
    Evaluate an arithmetic expression.

    Raises:
        CalculationError: If the expression is invalid
    """
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise CalculationError("Expression is too long")
    value = ArithmeticParser(tokenize(expression)).parse()
    if not math.isfinite(value):
        raise CalculationError("Result is too large")
    return value


def format_number(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(round(value, 12))


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    expression = arguments.get("expression")
    if not expression or not isinstance(expression, str):
        return error_result("Expression parameter is required and must be a string")

    try:
        value = evaluate(expression)
    except CalculationError as e:
        return error_result(f'Error calculating "{expression}": {e}')

    return text_result(f"{user_prefix(context)}{expression} = {format_number(value)}")
