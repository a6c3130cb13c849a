"""
Built-in formula functions.

Functions are registered by name with their arity. Most receive evaluated
arguments; lazy functions (if, and, or) receive zero-argument thunks so they
can short-circuit.

    Math:        sum avg min max round ceil floor abs sqrt pow
    Text:        concat length upper lower replace contains slice
    Dates:       now today dateAdd dateBetween formatDate
    Logic:       if and or empty   (not is a unary operator)
    Comparison:  equal unequal larger largerEq smaller smallerEq
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .errors import FormulaError
from .values import (
    as_datetime,
    as_number,
    as_text,
    compare,
    equal,
    flatten,
    is_blank,
    truthy,
)

if TYPE_CHECKING:
    from .evaluator import Evaluator


@dataclass(frozen=True)
class FormulaFunction:
    name: str
    func: Callable[..., Any]
    min_args: int = 0
    max_args: Optional[int] = None  # None: variadic
    lazy: bool = False

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            raise FormulaError(f"{self.name}() takes {expected} arguments, got {count}")


FUNCTIONS: Dict[str, FormulaFunction] = {}


def function(name: str, min_args: int = 0, max_args: Optional[int] = None,
             lazy: bool = False) -> Callable:
    """Register a formula function."""
    def decorator(func: Callable) -> Callable:
        FUNCTIONS[name] = FormulaFunction(name, func, min_args, max_args, lazy)
        return func
    return decorator


def get_function(name: str) -> FormulaFunction:
    if name not in FUNCTIONS:
        raise FormulaError(f"Unknown function: {name}")
    return FUNCTIONS[name]


CONSTANTS: Dict[str, float] = {"pi": math.pi, "e": math.e}


# =============================================================================
# Math
# =============================================================================

def _numbers(args) -> list:
    return [as_number(a) for a in flatten(list(args))]


@function("sum")
def fn_sum(ev: "Evaluator", *args):
    return sum(_numbers(args))


@function("avg")
def fn_avg(ev: "Evaluator", *args):
    numbers = _numbers(args)
    if not numbers:
        return 0
    return sum(numbers) / len(numbers)


@function("min", 1)
def fn_min(ev: "Evaluator", *args):
    numbers = _numbers(args)
    if not numbers:
        raise FormulaError("min() of no values")
    return min(numbers)


@function("max", 1)
def fn_max(ev: "Evaluator", *args):
    numbers = _numbers(args)
    if not numbers:
        raise FormulaError("max() of no values")
    return max(numbers)


# Past 15 places a float has no digits left to round.
MAX_ROUND_DECIMALS = 15


@function("round", 1, 2)
def fn_round(ev: "Evaluator", number, decimals=0):
    # Half away from zero, not Python's banker's rounding.
    value = as_number(number)
    places = as_number(decimals)
    if not -MAX_ROUND_DECIMALS <= places <= MAX_ROUND_DECIMALS:
        raise FormulaError(f"round() decimals must be between "
                           f"-{MAX_ROUND_DECIMALS} and {MAX_ROUND_DECIMALS}")
    factor = 10.0 ** int(places)
    try:
        rounded = math.floor(abs(value) * factor + 0.5) / factor
    except OverflowError as e:
        raise FormulaError(f"round() failed: {e}")
    return math.copysign(rounded, value) if value else 0


@function("ceil", 1, 1)
def fn_ceil(ev: "Evaluator", number):
    return math.ceil(as_number(number))


@function("floor", 1, 1)
def fn_floor(ev: "Evaluator", number):
    return math.floor(as_number(number))


@function("abs", 1, 1)
def fn_abs(ev: "Evaluator", number):
    return abs(as_number(number))


@function("sqrt", 1, 1)
def fn_sqrt(ev: "Evaluator", number):
    value = as_number(number)
    if value < 0:
        raise FormulaError("sqrt() of a negative number")
    return math.sqrt(value)


@function("pow", 2, 2)
def fn_pow(ev: "Evaluator", base, exponent):
    try:
        result = math.pow(as_number(base), as_number(exponent))
    except (OverflowError, ValueError) as e:
        raise FormulaError(f"pow() failed: {e}")
    return result


# =============================================================================
# Text
# =============================================================================

@function("concat")
def fn_concat(ev: "Evaluator", *args):
    return "".join(as_text(a) for a in args)


@function("length", 1, 1)
def fn_length(ev: "Evaluator", value):
    if isinstance(value, (list, tuple)):
        return len(value)
    return len(as_text(value))


@function("upper", 1, 1)
def fn_upper(ev: "Evaluator", value):
    return as_text(value).upper()


@function("lower", 1, 1)
def fn_lower(ev: "Evaluator", value):
    return as_text(value).lower()


@function("replace", 3, 3)
def fn_replace(ev: "Evaluator", value, pattern, replacement):
    """Replace every regex match of pattern."""
    try:
        return re.sub(as_text(pattern), as_text(replacement), as_text(value))
    except re.error as e:
        raise FormulaError(f"Invalid pattern {pattern!r}: {e}")


@function("contains", 2, 2)
def fn_contains(ev: "Evaluator", value, search):
    if isinstance(value, (list, tuple)):
        return any(equal(v, search) for v in value)
    return as_text(search) in as_text(value)


@function("slice", 2, 3)
def fn_slice(ev: "Evaluator", value, start, end=None):
    text = as_text(value)
    stop = int(as_number(end)) if end is not None else None
    return text[int(as_number(start)):stop]


# =============================================================================
# Dates
# =============================================================================

# Month and year steps use fixed 30/365-day lengths.
_UNIT_DAYS = {"days": 1, "weeks": 7, "months": 30, "years": 365}


def _unit(value: Any) -> str:
    unit = as_text(value).lower()
    if not unit.endswith("s"):
        unit += "s"
    if unit not in _UNIT_DAYS:
        raise FormulaError(f"Unknown date unit: {value!r}")
    return unit


@function("now", 0, 0)
def fn_now(ev: "Evaluator"):
    return ev.now


@function("today", 0, 0)
def fn_today(ev: "Evaluator"):
    return ev.now.replace(hour=0, minute=0, second=0, microsecond=0)


@function("dateAdd", 2, 3)
def fn_date_add(ev: "Evaluator", value, amount, unit="days"):
    start = as_datetime(value)
    days = as_number(amount) * _UNIT_DAYS[_unit(unit)]
    try:
        return start + timedelta(days=days)
    except OverflowError:
        raise FormulaError("Date out of range")


def _months_between(start: datetime, end: datetime) -> int:
    """Whole calendar months from start to end (negative when end is earlier)."""
    if end < start:
        return -_months_between(end, start)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if (end.day, end.time()) < (start.day, start.time()):
        months -= 1
    return months


@function("dateBetween", 2, 3)
def fn_date_between(ev: "Evaluator", start, end, unit="days"):
    """Whole units from start to end; 0 when either side is not a date."""
    try:
        first, second = as_datetime(start), as_datetime(end)
    except FormulaError:
        return 0
    unit = _unit(unit)
    if unit in ("months", "years"):
        months = _months_between(first, second)
        return months if unit == "months" else int(months / 12)
    delta = second - first
    days = int(delta.total_seconds() / 86400)
    return days if unit == "days" else int(days / 7)


_DATE_TOKENS = [
    ("yyyy", "%Y"), ("yy", "%y"),
    ("MMMM", "%B"), ("MMM", "%b"), ("MM", "%m"),
    ("dd", "%d"), ("EEEE", "%A"), ("EEE", "%a"),
    ("HH", "%H"), ("hh", "%I"), ("mm", "%M"), ("ss", "%S"),
]
_DATE_TOKEN_RE = re.compile("|".join(t for t, _ in _DATE_TOKENS))
_DATE_TOKEN_MAP = dict(_DATE_TOKENS)


@function("formatDate", 1, 2)
def fn_format_date(ev: "Evaluator", value, pattern="yyyy-MM-dd"):
    """Format a date with yyyy/MM/dd style tokens; '' for non-dates."""
    if is_blank(value):
        return ""
    try:
        moment = as_datetime(value)
    except FormulaError:
        return ""
    text = as_text(pattern).replace("%", "%%")
    return moment.strftime(_DATE_TOKEN_RE.sub(lambda m: _DATE_TOKEN_MAP[m.group(0)], text))


# =============================================================================
# Logic
# =============================================================================

@function("if", 2, 3, lazy=True)
def fn_if(ev: "Evaluator", condition, when_true, when_false=None):
    if truthy(condition()):
        return when_true()
    return when_false() if when_false is not None else None


@function("and", 1, lazy=True)
def fn_and(ev: "Evaluator", *thunks):
    return all(truthy(t()) for t in thunks)


@function("or", 1, lazy=True)
def fn_or(ev: "Evaluator", *thunks):
    return any(truthy(t()) for t in thunks)


@function("empty", 1, 1)
def fn_empty(ev: "Evaluator", value):
    return is_blank(value)


# =============================================================================
# Comparison
# =============================================================================

@function("equal", 2, 2)
def fn_equal(ev: "Evaluator", a, b):
    return equal(a, b)


@function("unequal", 2, 2)
def fn_unequal(ev: "Evaluator", a, b):
    return not equal(a, b)


@function("larger", 2, 2)
def fn_larger(ev: "Evaluator", a, b):
    return compare(a, b) > 0


@function("largerEq", 2, 2)
def fn_larger_eq(ev: "Evaluator", a, b):
    return compare(a, b) >= 0


@function("smaller", 2, 2)
def fn_smaller(ev: "Evaluator", a, b):
    return compare(a, b) < 0


@function("smallerEq", 2, 2)
def fn_smaller_eq(ev: "Evaluator", a, b):
    return compare(a, b) <= 0
