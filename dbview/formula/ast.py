"""
Formula AST.

Nodes are immutable so parsed formulas can be cached and shared.

Example:
    'prop("Price") * 2'  ->  BinaryOp('*', PropRef('Price'), NumberLiteral(2))
"""

from dataclasses import dataclass
from typing import Iterator, Tuple, Union


class Node:
    """Base class for formula AST nodes."""

    def children(self) -> Tuple["Node", ...]:
        return ()

    def walk(self) -> Iterator["Node"]:
        """Yield this node and all of its descendants, depth first."""
        # Iterative: operator chains can nest deeper than the recursion limit.
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))


@dataclass(frozen=True)
class NumberLiteral(Node):
    value: Union[int, float]


@dataclass(frozen=True)
class StringLiteral(Node):
    value: str


@dataclass(frozen=True)
class BooleanLiteral(Node):
    value: bool


@dataclass(frozen=True)
class PropRef(Node):
    """prop("Name"): a sibling property looked up by display name."""
    name: str


@dataclass(frozen=True)
class Name(Node):
    """A bare identifier (constants such as pi and e)."""
    identifier: str


@dataclass(frozen=True)
class Call(Node):
    name: str
    args: Tuple[Node, ...]

    def children(self) -> Tuple[Node, ...]:
        return self.args


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str  # '-' or 'not'
    operand: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


@dataclass(frozen=True)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)
