"""Integer arithmetic expression evaluator.

Grammar (no whitespace allowed inside an expression)::

    expression := term (('+' | '-') term)*
    term       := factor (('*' | '/') factor)*
    factor     := '(' expression ')' | ('+' | '-') factor | number
    number     := digit+

Division truncates toward zero.
"""

from __future__ import annotations

__all__ = ["CalculatorError", "evaluate"]

_DIGITS = frozenset("0123456789")


class CalculatorError(ValueError):
    """Raised when an expression cannot be evaluated."""


def _divide(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def _peek(self) -> str | None:
        return self.text[self.pos] if self.pos < len(self.text) else None

    def expression(self) -> int:
        result = self.term()
        while (op := self._peek()) in ("+", "-"):
            self.pos += 1
            right = self.term()
            result = result + right if op == "+" else result - right
        return result

    def term(self) -> int:
        result = self.factor()
        while (op := self._peek()) in ("*", "/"):
            self.pos += 1
            right = self.factor()
            if op == "*":
                result *= right
            else:
                if right == 0:
                    raise CalculatorError("Division by zero")
                result = _divide(result, right)
        return result

    def factor(self) -> int:
        negative = False
        while (char := self._peek()) in ("+", "-"):
            if char == "-":
                negative = not negative
            self.pos += 1

        char = self._peek()
        if char is None:
            raise CalculatorError("Unexpected end of expression")

        if char == "(":
            self.pos += 1
            result = self.expression()
            if self._peek() != ")":
                raise CalculatorError("Missing closing parenthesis")
            self.pos += 1
        else:
            result = self.number()

        return -result if negative else result

    def number(self) -> int:
        start = self.pos
        while (char := self._peek()) is not None and char in _DIGITS:
            self.pos += 1
        if self.pos == start:
            raise CalculatorError("Expected number")
        return int(self.text[start:self.pos])


def evaluate(expression: str) -> int:
    """Evaluate an integer expression, raising CalculatorError if it is invalid."""
    parser = _Parser(expression)
    result = parser.expression()
    if parser.pos < len(expression):
        raise CalculatorError("Unexpected character in expression")
    return result