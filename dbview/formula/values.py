"""
Value coercion and comparison rules shared by the evaluator and functions.

Formula values are int, float, str, bool, None, datetime or a list (for
multi-valued properties). Coercions that do not apply raise FormulaError.
"""

import math
from datetime import date, datetime, timezone
from typing import Any, List

from dbview.models import to_datetime, to_number

from .errors import FormulaError

Number = (int, float)


def as_number(value: Any) -> float:
    """
    Coerce a value for arithmetic.

    Empty values count as 0 and booleans as 1/0; strings must be numeric.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Number):
        return value
    if isinstance(value, str):
        number = to_number(value)
        if number is None:
            raise FormulaError(f"{value!r} is not a number")
        return number
    raise FormulaError(f"{type(value).__name__} value is not a number")


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(as_text(v) for v in value)
    return str(value)


def as_datetime(value: Any) -> datetime:
    """Coerce to a naive datetime; aware values are converted to UTC first."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = to_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise FormulaError(f"{value!r} is not a date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def truthy(value: Any) -> bool:
    """Empty values, 0, '' and false are falsy."""
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return bool(value)


def is_blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and not value)


def flatten(args: List[Any]) -> List[Any]:
    """Spread list arguments (multi-valued properties) into their members."""
    flat = []
    for arg in args:
        if isinstance(arg, (list, tuple)):
            flat.extend(arg)
        else:
            flat.append(arg)
    return flat


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Number):
        return True
    return isinstance(value, str) and to_number(value) is not None


def equal(a: Any, b: Any) -> bool:
    """Loose equality: numbers and numeric strings compare numerically."""
    if isinstance(a, bool) or isinstance(b, bool):
        return a is b or (is_blank(a) and is_blank(b))
    if _is_numeric(a) and _is_numeric(b):
        return as_number(a) == as_number(b)
    if isinstance(a, datetime) and isinstance(b, datetime):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if is_blank(a) and is_blank(b):
        return True
    return a == b


def compare(a: Any, b: Any) -> int:
    """
    Ordering for <, <=, >, >=.

    Strings compare lexicographically, dates chronologically, and anything
    else numerically.
    """
    if isinstance(a, str) and isinstance(b, str) and not (_is_numeric(a) and _is_numeric(b)):
        return (a > b) - (a < b)
    if isinstance(a, datetime) or isinstance(b, datetime):
        left, right = as_datetime(a), as_datetime(b)
        return (left > right) - (left < right)
    left, right = as_number(a), as_number(b)
    return (left > right) - (left < right)


def check_finite(value: Any) -> Any:
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise FormulaError("Result is not a finite number")
    return value
