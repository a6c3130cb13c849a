"""
Formula engine for computed properties.

A formula is a small expression over sibling properties:

    prop("Price") * prop("Quantity")
    if(prop("Done"), "finished", concat(prop("Progress"), "%"))
    dateBetween(prop("Due"), today(), "days") > 7

Formulas are parsed once into an AST (and cached), then evaluated per cell.
evaluate_formula never raises: syntax errors, unknown properties and values
of the wrong type all produce None, which format_formula_result renders as ''.

Example usage:

    from dbview.formula import evaluate_formula, format_formula_result

    result = evaluate_formula('prop("Price") * 2', {"Price": 10})
    format_formula_result(result)   # '20'
"""

import logging
from datetime import date, datetime
from typing import Any, Mapping, Optional, Set, Union

from .ast import Node
from .errors import FormulaError, FormulaSyntaxError
from .evaluator import Evaluator
from .functions import FUNCTIONS
from .parser import dependencies, parse, parse_cached, set_cache_size
from .values import as_text

logger = logging.getLogger(__name__)

FormulaResult = Union[int, float, str, bool, None]


def _to_result(value: Any) -> FormulaResult:
    """Reduce an evaluated value to a scalar result."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, (datetime, date)):
        return as_text(value)
    if isinstance(value, (list, tuple)):
        return as_text(value)
    return str(value)


def evaluate_formula(expression: str, property_map: Mapping[str, Any],
                     now: Optional[datetime] = None) -> FormulaResult:
    """
    Evaluate a formula against property values keyed by display name.

    Args:
        expression: Formula source
        property_map: Property display name -> value
        now: Clock for now()/today() (for deterministic rendering/tests)

    Returns:
        int, float, str, bool, or None when the formula is blank or fails
    """
    if not expression or not expression.strip():
        return None

    try:
        tree = parse_cached(expression)
        return _to_result(Evaluator(property_map, now=now).evaluate(tree))
    except FormulaError as e:
        logger.debug(f"Formula {expression!r} failed: {e}")
        return None
    except (RecursionError, ArithmeticError, ValueError, TypeError) as e:
        logger.debug(f"Formula {expression!r} failed: {type(e).__name__}: {e}")
        return None


def format_formula_result(result: FormulaResult) -> str:
    """
    Display text for a formula result.

    None renders as '', booleans as 'true'/'false', whole numbers without a
    decimal point and other numbers at full precision.
    """
    if result is None:
        return ""
    if isinstance(result, bool):
        return "true" if result else "false"
    if isinstance(result, int):
        return str(result)
    if isinstance(result, float):
        return str(int(result)) if result.is_integer() else repr(result)
    return str(result)


def formula_dependencies(expression: str) -> Set[str]:
    """Property names a formula reads; empty when it does not parse."""
    if not expression or not expression.strip():
        return set()
    try:
        return dependencies(parse_cached(expression))
    except FormulaError:
        return set()


def validate_formula(expression: str) -> Optional[str]:
    """Syntax error message for a formula, or None when it parses."""
    try:
        parse_cached(expression)
    except FormulaError as e:
        return str(e)
    return None


__all__ = [
    "FormulaError",
    "FormulaSyntaxError",
    "FormulaResult",
    "FUNCTIONS",
    "Evaluator",
    "Node",
    "evaluate_formula",
    "format_formula_result",
    "formula_dependencies",
    "validate_formula",
    "parse",
    "set_cache_size",
]
