"""
Formula evaluator.

Walks a parsed formula against a map of property display names to values.
Evaluation is pure: it reads the property map and never modifies it.
Problems raise FormulaError, which evaluate_formula turns into None.
"""

import math
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

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
from .errors import FormulaError
from .functions import CONSTANTS, get_function
from .values import as_number, check_finite, compare, equal, truthy

# Maximum nesting of evaluated nodes.
MAX_DEPTH = 200


class Evaluator:
    """
    Evaluates formula ASTs.

    Args:
        properties: Property display name -> stored value
        now: Clock for now()/today(); defaults to the current time
    """

    def __init__(self, properties: Mapping[str, Any], now: Optional[datetime] = None):
        self.properties = properties
        self.now = now or datetime.now()
        self._depth = 0
        self._dispatch: Dict[type, Callable[[Any], Any]] = {
            NumberLiteral: self._literal,
            StringLiteral: self._literal,
            BooleanLiteral: self._literal,
            PropRef: self._prop,
            Name: self._name,
            Call: self._call,
            UnaryOp: self._unary,
            BinaryOp: self._binary,
        }

    def evaluate(self, node: Node) -> Any:
        handler = self._dispatch.get(type(node))
        if handler is None:
            raise FormulaError(f"Cannot evaluate {type(node).__name__}")
        self._depth += 1
        try:
            if self._depth > MAX_DEPTH:
                raise FormulaError("Formula is nested too deeply")
            return handler(node)
        finally:
            self._depth -= 1

    def _literal(self, node) -> Any:
        return node.value

    def _prop(self, node: PropRef) -> Any:
        if node.name not in self.properties:
            raise FormulaError(f"Unknown property: {node.name}")
        return self.properties[node.name]

    def _name(self, node: Name) -> Any:
        if node.identifier in CONSTANTS:
            return CONSTANTS[node.identifier]
        raise FormulaError(f"Unknown name: {node.identifier}")

    def _call(self, node: Call) -> Any:
        fn = get_function(node.name)
        fn.check_arity(len(node.args))
        if fn.lazy:
            thunks = [lambda arg=arg: self.evaluate(arg) for arg in node.args]
            return fn.func(self, *thunks)
        args = [self.evaluate(arg) for arg in node.args]
        return fn.func(self, *args)

    def _unary(self, node: UnaryOp) -> Any:
        value = self.evaluate(node.operand)
        if node.op == "-":
            return -as_number(value)
        if node.op == "not":
            return not truthy(value)
        raise FormulaError(f"Unknown operator: {node.op}")

    def _binary(self, node: BinaryOp) -> Any:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        op = node.op

        if op == "==":
            return equal(left, right)
        if op == "!=":
            return not equal(left, right)
        if op == "<":
            return compare(left, right) < 0
        if op == "<=":
            return compare(left, right) <= 0
        if op == ">":
            return compare(left, right) > 0
        if op == ">=":
            return compare(left, right) >= 0

        a, b = as_number(left), as_number(right)
        if op == "+":
            return check_finite(a + b)
        if op == "-":
            return check_finite(a - b)
        if op == "*":
            return check_finite(a * b)
        if op == "/":
            if b == 0:
                raise FormulaError("Division by zero")
            return check_finite(a / b)
        if op == "%":
            if b == 0:
                raise FormulaError("Modulo by zero")
            return math.fmod(a, b) if isinstance(a, float) or isinstance(b, float) else a % b
        raise FormulaError(f"Unknown operator: {op}")
