"""
Tokenizer for the formula language.

Token kinds: NUMBER, STRING, IDENT, OP and a final EOF.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, List

from .errors import FormulaSyntaxError

NUMBER = "NUMBER"
STRING = "STRING"
IDENT = "IDENT"
OP = "OP"
EOF = "EOF"

# Longest operators first.
OPERATORS = ["==", "!=", "<=", ">=", "<", ">", "+", "-", "*", "/", "%", "(", ")", ","]

# ASCII digits only; str.isdigit() also accepts superscripts and other scripts.
_DIGITS = "0123456789"
_NUMBER_RE = re.compile(r"([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'"}


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int

    def is_op(self, *ops: str) -> bool:
        return self.kind == OP and self.value in ops


def tokenize(source: str) -> List[Token]:
    """Split a formula into tokens, ending with an EOF token."""
    tokens: List[Token] = []
    i = 0
    length = len(source)

    while i < length:
        char = source[i]

        if char.isspace():
            i += 1
            continue

        if char in _DIGITS or (char == "." and i + 1 < length and source[i + 1] in _DIGITS):
            match = _NUMBER_RE.match(source, i)
            if match is None:
                raise FormulaSyntaxError(f"Invalid number at {char!r}", i)
            tokens.append(Token(NUMBER, _number_value(match.group(0), i), i))
            i = match.end()
            continue

        if char in "\"'":
            value, end = _read_string(source, i)
            tokens.append(Token(STRING, value, i))
            i = end
            continue

        match = _IDENT_RE.match(source, i)
        if match:
            tokens.append(Token(IDENT, match.group(0), i))
            i = match.end()
            continue

        for op in OPERATORS:
            if source.startswith(op, i):
                tokens.append(Token(OP, op, i))
                i += len(op)
                break
        else:
            raise FormulaSyntaxError(f"Unexpected character {char!r}", i)

    tokens.append(Token(EOF, None, length))
    return tokens


def _number_value(text: str, pos: int) -> Any:
    try:
        value = float(text) if any(c in text for c in ".eE") else int(text)
    except ValueError:
        # int() refuses overly long digit strings
        raise FormulaSyntaxError("Number is too long", pos)
    if isinstance(value, float) and math.isinf(value):
        raise FormulaSyntaxError("Number is out of range", pos)
    return value


def _read_string(source: str, start: int) -> tuple:
    """Read a quoted string starting at `start`; returns (value, next index)."""
    quote = source[start]
    chars = []
    i = start + 1

    while i < len(source):
        char = source[i]
        if char == "\\" and i + 1 < len(source):
            nxt = source[i + 1]
            chars.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if char == quote:
            return "".join(chars), i + 1
        chars.append(char)
        i += 1

    raise FormulaSyntaxError("Unterminated string", start)
