"""Tokenizer for rate and termination expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from ..errors import ExpressionSyntaxError

NUMBER = "NUMBER"
STRING = "STRING"
IDENT = "IDENT"
OP = "OP"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
COMMA = "COMMA"
END = "END"


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    pos: int = 0


# Order matters: multi-character operators before their prefixes.
_PATTERNS = [
    ("WHITESPACE", r"\s+"),
    (NUMBER, r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"),
    (STRING, r'"[^"]*"|\'[^\']*\''),
    (IDENT, r"\$?[A-Za-z_][A-Za-z0-9_]*"),
    (OP, r"&&|\|\||<=|>=|==|!=|[-+*/%<>!?:]"),
    (LPAREN, r"\("),
    (RPAREN, r"\)"),
    (LBRACKET, r"\["),
    (RBRACKET, r"\]"),
    (COMMA, r","),
]

_MASTER = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _PATTERNS))


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _MASTER.match(text, pos)
        if match is None:
            raise ExpressionSyntaxError(f"Unexpected character {text[pos]!r}", text, pos)
        kind = match.lastgroup
        value = match.group(kind)
        if kind == STRING:
            value = value[1:-1]
        if kind != "WHITESPACE":
            tokens.append(Token(kind, value, pos))
        pos = match.end()
    tokens.append(Token(END, "", len(text)))
    return tokens


__all__ = [
    "Token",
    "tokenize",
    "NUMBER",
    "STRING",
    "IDENT",
    "OP",
    "LPAREN",
    "RPAREN",
    "LBRACKET",
    "RBRACKET",
    "COMMA",
    "END",
]
