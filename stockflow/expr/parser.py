"""Recursive-descent parser for the expression language.

Precedence, lowest first::

    ternary      a ? b : c            (right associative)
    or           a || b
    and          a && b
    equality     == !=
    comparison   < > <= >=
    additive     + -
    term         * / %
    unary        ! - +
    postfix      name(args)
    atom         number, "string", name, (expr), [items]
"""

from __future__ import annotations

from typing import List, Tuple

from ..errors import ExpressionSyntaxError
from . import lexer
from .lexer import Token
from .nodes import Binary, Call, ListLiteral, Logical, Name, Node, Number, String, Ternary, Unary


class Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens: List[Token] = lexer.tokenize(text)
        self.pos = 0

    def parse(self) -> Node:
        if self.current.type == lexer.END:
            raise ExpressionSyntaxError("Empty expression", self.text, 0)
        node = self.ternary()
        if self.current.type != lexer.END:
            self._fail(f"Unexpected token {self.current.value!r}")
        return node

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != lexer.END:
            self.pos += 1
        return token

    def _is_op(self, *ops: str) -> bool:
        token = self.current
        return token.type == lexer.OP and token.value in ops

    def _expect(self, kind: str, value: str | None = None) -> Token:
        token = self.current
        if token.type != kind or (value is not None and token.value != value):
            self._fail(f"Expected {value or kind}, found {token.value or 'end of input'!r}")
        return self.advance()

    def _fail(self, message: str) -> None:
        raise ExpressionSyntaxError(message, self.text, self.current.pos)

    def ternary(self) -> Node:
        condition = self.logical_or()
        if self._is_op("?"):
            self.advance()
            then = self.ternary()
            self._expect(lexer.OP, ":")
            otherwise = self.ternary()
            return Ternary(condition, then, otherwise)
        return condition

    def logical_or(self) -> Node:
        node = self.logical_and()
        while self._is_op("||"):
            self.advance()
            node = Logical("||", node, self.logical_and())
        return node

    def logical_and(self) -> Node:
        node = self.equality()
        while self._is_op("&&"):
            self.advance()
            node = Logical("&&", node, self.equality())
        return node

    def equality(self) -> Node:
        node = self.comparison()
        while self._is_op("==", "!="):
            op = self.advance().value
            node = Binary(op, node, self.comparison())
        return node

    def comparison(self) -> Node:
        node = self.additive()
        while self._is_op("<", ">", "<=", ">="):
            op = self.advance().value
            node = Binary(op, node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.term()
        while self._is_op("+", "-"):
            op = self.advance().value
            node = Binary(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self._is_op("*", "/", "%"):
            op = self.advance().value
            node = Binary(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self._is_op("!", "-", "+"):
            op = self.advance().value
            return Unary(op, self.unary())
        return self.postfix()

    def postfix(self) -> Node:
        token = self.current
        if token.type == lexer.IDENT and self.tokens[self.pos + 1].type == lexer.LPAREN:
            self.advance()
            self.advance()
            args = self._sequence(lexer.RPAREN)
            return Call(token.value, args)
        return self.atom()

    def atom(self) -> Node:
        token = self.current
        if token.type == lexer.NUMBER:
            self.advance()
            return Number(float(token.value))
        if token.type == lexer.STRING:
            self.advance()
            return String(token.value)
        if token.type == lexer.IDENT:
            self.advance()
            return Name(token.value)
        if token.type == lexer.LPAREN:
            self.advance()
            node = self.ternary()
            self._expect(lexer.RPAREN)
            return node
        if token.type == lexer.LBRACKET:
            self.advance()
            return ListLiteral(self._sequence(lexer.RBRACKET))
        self._fail(f"Unexpected token {token.value or 'end of input'!r}")
        raise AssertionError("unreachable")

    def _sequence(self, closer: str) -> Tuple[Node, ...]:
        items: List[Node] = []
        if self.current.type == closer:
            self.advance()
            return ()
        while True:
            items.append(self.ternary())
            if self.current.type == lexer.COMMA:
                self.advance()
                continue
            self._expect(closer)
            return tuple(items)


def parse(text: str) -> Node:
    """Parse ``text`` into an AST, raising :class:`ExpressionSyntaxError`."""

    return Parser(text).parse()


__all__ = ["Parser", "parse"]
