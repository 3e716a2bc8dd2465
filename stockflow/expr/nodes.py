"""AST node types produced by :mod:`stockflow.expr.parser`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class String:
    value: str


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Logical:
    """Short-circuiting ``&&`` / ``||``."""

    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Ternary:
    condition: "Node"
    then: "Node"
    otherwise: "Node"


@dataclass(frozen=True)
class Call:
    func: str
    args: Tuple["Node", ...]


@dataclass(frozen=True)
class ListLiteral:
    items: Tuple["Node", ...]


Node = Union[Number, String, Name, Unary, Binary, Logical, Ternary, Call, ListLiteral]


__all__ = [
    "Number",
    "String",
    "Name",
    "Unary",
    "Binary",
    "Logical",
    "Ternary",
    "Call",
    "ListLiteral",
    "Node",
]
