"""
Recursive-descent parser for the formula language.

Grammar (lowest precedence first):

    expr       := comparison
    comparison := additive (("==" | "!=" | "<" | "<=" | ">" | ">=") additive)?
    additive   := term (("+" | "-") term)*
    term       := unary (("*" | "/" | "%") unary)*
    unary      := "-" unary | "not" unary | primary
    primary    := NUMBER | STRING | "true" | "false"
                | IDENT "(" [expr ("," expr)*] ")" | IDENT | "(" expr ")"

prop("Name") is recognised here and becomes a PropRef node.
"""

from functools import lru_cache
from typing import List, Set

from .ast import (
    BinaryOp,
    BooleanLiteral,
    Call,
    Name,
    Node,
    NumberLiteral,
    PropRef,
    StringLiteral,
    UnaryOp,
)
from .errors import FormulaSyntaxError
from .lexer import EOF, IDENT, NUMBER, STRING, Token, tokenize

COMPARISON_OPS = ("==", "!=", "<", "<=", ">", ">=")


class Parser:
    """Parses a token list into a single expression tree."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != EOF:
            self.index += 1
        return token

    def expect_op(self, op: str) -> Token:
        token = self.current
        if not token.is_op(op):
            raise FormulaSyntaxError(f"Expected {op!r}", token.pos)
        return self.advance()

    def parse(self) -> Node:
        if self.current.kind == EOF:
            raise FormulaSyntaxError("Empty formula", 0)
        node = self.expression()
        if self.current.kind != EOF:
            raise FormulaSyntaxError(f"Unexpected {self.current.value!r}", self.current.pos)
        return node

    def expression(self) -> Node:
        return self.comparison()

    def comparison(self) -> Node:
        left = self.additive()
        if self.current.is_op(*COMPARISON_OPS):
            op = self.advance().value
            right = self.additive()
            left = BinaryOp(op, left, right)
            if self.current.is_op(*COMPARISON_OPS):
                raise FormulaSyntaxError("Comparisons cannot be chained", self.current.pos)
        return left

    def additive(self) -> Node:
        node = self.term()
        while self.current.is_op("+", "-"):
            op = self.advance().value
            node = BinaryOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.current.is_op("*", "/", "%"):
            op = self.advance().value
            node = BinaryOp(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self.current.is_op("-"):
            self.advance()
            return UnaryOp("-", self.unary())
        if self.current.is_op("+"):
            self.advance()
            return self.unary()
        if self.current.kind == IDENT and self.current.value == "not":
            # not(x) and not x read the same
            self.advance()
            return UnaryOp("not", self.unary())
        return self.primary()

    def primary(self) -> Node:
        token = self.current

        if token.kind == NUMBER:
            self.advance()
            return NumberLiteral(token.value)

        if token.kind == STRING:
            self.advance()
            return StringLiteral(token.value)

        if token.kind == IDENT:
            self.advance()
            if token.value in ("true", "false"):
                return BooleanLiteral(token.value == "true")
            if self.current.is_op("("):
                return self.call(token)
            return Name(token.value)

        if token.is_op("("):
            self.advance()
            node = self.expression()
            self.expect_op(")")
            return node

        if token.kind == EOF:
            raise FormulaSyntaxError("Unexpected end of formula", token.pos)
        raise FormulaSyntaxError(f"Unexpected {token.value!r}", token.pos)

    def call(self, name: Token) -> Node:
        self.expect_op("(")
        args: List[Node] = []
        if not self.current.is_op(")"):
            args.append(self.expression())
            while self.current.is_op(","):
                self.advance()
                args.append(self.expression())
        self.expect_op(")")

        if name.value == "prop":
            if len(args) != 1 or not isinstance(args[0], StringLiteral):
                raise FormulaSyntaxError("prop() takes a property name string", name.pos)
            return PropRef(args[0].value)

        return Call(name.value, tuple(args))


def parse(source: str) -> Node:
    """Parse a formula into an AST. Raises FormulaSyntaxError."""
    try:
        return Parser(tokenize(source)).parse()
    except RecursionError:
        raise FormulaSyntaxError("Formula is nested too deeply")


_cache_size = 256
_cached_parse = lru_cache(maxsize=_cache_size)(parse)


def parse_cached(source: str) -> Node:
    """parse() behind an LRU cache."""
    return _cached_parse(source)


def set_cache_size(size: int) -> None:
    """Resize (and clear) the parse cache."""
    global _cache_size, _cached_parse
    if size != _cache_size:
        _cache_size = size
        _cached_parse = lru_cache(maxsize=size)(parse)


def dependencies(node: Node) -> Set[str]:
    """Property names referenced by prop(...) anywhere in the tree."""
    return {n.name for n in node.walk() if isinstance(n, PropRef)}
