"""
Arithmetic Calculator for Computed Columns
==========================================
Evaluates an expression whose column references have already been replaced
by their values, e.g. ``(5000-1200) / 1000`` or ``'Block ' & 3``.

Grammar (lowest to highest precedence)::

    expression     = concatenation
    concatenation  = additive { "&" additive }
    additive       = multiplicative { ("+" | "-") multiplicative }
    multiplicative = unary { ("*" | "/") unary }
    unary          = "-" unary | primary
    primary        = NUMBER | STRING | "(" expression ")"

Strings are single-quoted; a doubled quote ('') inside a string is a literal
quote. Results always come back as text, since they get substituted into
further expressions.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Union

from .errors import EvaluationError, ExpressionParseError

Number = Union[int, float]


class TokenType(Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    AMPERSAND = "&"
    LPAREN = "("
    RPAREN = ")"
    EOF = "EOF"


_SYMBOLS = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "&": TokenType.AMPERSAND,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
}


@dataclass
class Token:
    type: TokenType
    value: Any
    position: int


class Lexer:
    """Tokenizer for calculator expressions."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch == "'":
                self._read_string()
            elif ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
                self._read_number()
            elif ch in _SYMBOLS:
                self.tokens.append(Token(_SYMBOLS[ch], ch, self.pos))
                self.pos += 1
            else:
                raise ExpressionParseError(f"Unexpected character {ch!r}", self.source, self.pos)

        self.tokens.append(Token(TokenType.EOF, None, self.pos))
        return self.tokens

    def _peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return ""

    def _read_string(self):
        start = self.pos
        self.pos += 1  # opening quote
        chars = []
        while True:
            if self.pos >= len(self.source):
                raise ExpressionParseError("Unterminated string", self.source, start)
            ch = self.source[self.pos]
            if ch == "'":
                if self._peek(1) == "'":
                    chars.append("'")
                    self.pos += 2
                    continue
                self.pos += 1
                break
            chars.append(ch)
            self.pos += 1
        self.tokens.append(Token(TokenType.STRING, "".join(chars), start))

    def _read_number(self):
        start = self.pos
        is_float = False
        while self._peek().isdigit():
            self.pos += 1
        if self._peek() == ".":
            is_float = True
            self.pos += 1
            while self._peek().isdigit():
                self.pos += 1
        # Exponent only if digits follow, so "2e" stays an error
        if self._peek() in ("e", "E"):
            offset = 1
            if self._peek(1) in ("+", "-"):
                offset = 2
            if self._peek(offset).isdigit():
                is_float = True
                self.pos += offset
                while self._peek().isdigit():
                    self.pos += 1
        text = self.source[start:self.pos]
        value = float(text) if is_float else int(text)
        if isinstance(value, float) and not math.isfinite(value):
            raise EvaluationError(f"Number {text!r} is out of range")
        self.tokens.append(Token(TokenType.NUMBER, value, start))


class _Evaluator:
    """Recursive descent parser that evaluates as it goes."""

    def __init__(self, tokens: List[Token], source: str):
        self.tokens = tokens
        self.source = source
        self.pos = 0

    def run(self):
        if self._check(TokenType.EOF):
            raise ExpressionParseError("Empty expression", self.source, 0)
        value = self._concatenation()
        if not self._check(TokenType.EOF):
            tok = self._current()
            raise ExpressionParseError(f"Unexpected {tok.value!r}", self.source, tok.position)
        return value

    # Token helpers

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TokenType.EOF:
            self.pos += 1
        return tok

    # Grammar rules

    def _concatenation(self):
        left = self._additive()
        while self._check(TokenType.AMPERSAND):
            self._advance()
            right = self._additive()
            left = render(left) + render(right)
        return left

    def _additive(self):
        left = self._multiplicative()
        while self._check(TokenType.PLUS) or self._check(TokenType.MINUS):
            op = self._advance().value
            right = self._multiplicative()
            left = _arithmetic(op, left, right)
        return left

    def _multiplicative(self):
        left = self._unary()
        while self._check(TokenType.STAR) or self._check(TokenType.SLASH):
            op = self._advance().value
            right = self._unary()
            left = _arithmetic(op, left, right)
        return left

    def _unary(self):
        if self._check(TokenType.MINUS):
            self._advance()
            operand = self._unary()
            if not _is_number(operand):
                raise EvaluationError(f"Can't negate {operand!r}")
            return -operand
        return self._primary()

    def _primary(self):
        tok = self._current()
        if tok.type in (TokenType.NUMBER, TokenType.STRING):
            self._advance()
            return tok.value
        if tok.type == TokenType.LPAREN:
            self._advance()
            value = self._concatenation()
            if not self._check(TokenType.RPAREN):
                raise ExpressionParseError("Expected ')'", self.source, self._current().position)
            self._advance()
            return value
        if tok.type == TokenType.EOF:
            raise ExpressionParseError("Unexpected end of expression", self.source, tok.position)
        raise ExpressionParseError(f"Unexpected {tok.value!r}", self.source, tok.position)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _arithmetic(op: str, left, right) -> Number:
    if not (_is_number(left) and _is_number(right)):
        raise EvaluationError(f"Can't apply '{op}' to {left!r} and {right!r}")
    if op == "+":
        result = left + right
    elif op == "-":
        result = left - right
    elif op == "*":
        result = left * right
    else:
        if right == 0:
            raise EvaluationError("Division by zero")
        result = left / right
    if isinstance(result, float) and not math.isfinite(result):
        raise EvaluationError(f"Non-finite result for {left!r} {op} {right!r}")
    return result


def render(value) -> str:
    """Text form of a calculator value: ints without '.0', floats via repr."""
    if isinstance(value, float):
        return repr(value)
    return str(value)


class Calculator:
    """
    Stateless evaluator for substituted column expressions.

    Example::

        >>> Calculator().compute("(3+2)*4")
        '20'
    """

    def evaluate(self, expression: str):
        """Parse and evaluate, returning the raw int/float/str value."""
        text = str(expression)
        tokens = Lexer(text).tokenize()
        return _Evaluator(tokens, text).run()

    def compute(self, expression: str) -> str:
        return render(self.evaluate(expression))
