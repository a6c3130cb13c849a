"""
Filter engine for database views.

A FilterGroup is a flat AND/OR combination of Filters. Each Filter names a
column, an operator and a comparand; it is compiled against the column's
type into a Condition, and the condition is evaluated against the page's
stored value.

Operators available per type (see get_operators_for_type):

    text/url/email/phone   equals, does_not_equal, contains, does_not_contain,
                           starts_with, ends_with, is_empty, is_not_empty
    number                 equals, does_not_equal, greater_than, less_than,
                           greater_than_or_equal_to, less_than_or_equal_to,
                           is_empty, is_not_empty
    select/multi-select    is, is_not, contains, does_not_contain,
                           is_empty, is_not_empty
    date                   equals, before, after, on_or_before, on_or_after,
                           is_empty, is_not_empty
    checkbox               is_checked, is_not_checked
    relation/files/...     contains, does_not_contain, is_empty, is_not_empty

Filters never raise on user data: values that do not coerce, operators that
do not fit the column and columns that no longer exist all make the filter
fail closed (the page is excluded).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dbview.models import (
    Page,
    Property,
    PropertyType,
    ValueKind,
    ensure_exhaustive,
    find_property,
    is_empty,
    read_value,
    schema_for,
    to_date,
    to_list,
    to_number,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Operators
# =============================================================================

EQUALS = "equals"
DOES_NOT_EQUAL = "does_not_equal"
CONTAINS = "contains"
DOES_NOT_CONTAIN = "does_not_contain"
STARTS_WITH = "starts_with"
ENDS_WITH = "ends_with"
IS_EMPTY = "is_empty"
IS_NOT_EMPTY = "is_not_empty"
GREATER_THAN = "greater_than"
LESS_THAN = "less_than"
GREATER_THAN_OR_EQUAL_TO = "greater_than_or_equal_to"
LESS_THAN_OR_EQUAL_TO = "less_than_or_equal_to"
IS = "is"
IS_NOT = "is_not"
BEFORE = "before"
AFTER = "after"
ON_OR_BEFORE = "on_or_before"
ON_OR_AFTER = "on_or_after"
IS_CHECKED = "is_checked"
IS_NOT_CHECKED = "is_not_checked"

UNARY_OPERATORS = frozenset({IS_EMPTY, IS_NOT_EMPTY, IS_CHECKED, IS_NOT_CHECKED})

_EMPTINESS = [(IS_EMPTY, "Is empty"), (IS_NOT_EMPTY, "Is not empty")]

_OPERATORS: Dict[ValueKind, List[Tuple[str, str]]] = {
    ValueKind.TEXT: [
        (EQUALS, "Is"),
        (DOES_NOT_EQUAL, "Is not"),
        (CONTAINS, "Contains"),
        (DOES_NOT_CONTAIN, "Does not contain"),
        (STARTS_WITH, "Starts with"),
        (ENDS_WITH, "Ends with"),
    ] + _EMPTINESS,
    ValueKind.NUMBER: [
        (EQUALS, "="),
        (DOES_NOT_EQUAL, "≠"),
        (GREATER_THAN, ">"),
        (LESS_THAN, "<"),
        (GREATER_THAN_OR_EQUAL_TO, "≥"),
        (LESS_THAN_OR_EQUAL_TO, "≤"),
    ] + _EMPTINESS,
    ValueKind.OPTION: [
        (IS, "Is"),
        (IS_NOT, "Is not"),
        (CONTAINS, "Contains"),
        (DOES_NOT_CONTAIN, "Does not contain"),
    ] + _EMPTINESS,
    ValueKind.DATE: [
        (EQUALS, "Is"),
        (BEFORE, "Is before"),
        (AFTER, "Is after"),
        (ON_OR_BEFORE, "Is on or before"),
        (ON_OR_AFTER, "Is on or after"),
    ] + _EMPTINESS,
    ValueKind.CHECKBOX: [
        (IS_CHECKED, "Is checked"),
        (IS_NOT_CHECKED, "Is not checked"),
    ],
    ValueKind.LIST: [
        (CONTAINS, "Contains"),
        (DOES_NOT_CONTAIN, "Does not contain"),
    ] + _EMPTINESS,
}
# Multi-select shares the select operator set.
_OPERATORS[ValueKind.OPTIONS] = _OPERATORS[ValueKind.OPTION]

ensure_exhaustive(_OPERATORS, ValueKind, "filter operator table")


def _kind_of(prop_type: Union[str, PropertyType]) -> ValueKind:
    try:
        return PropertyType.from_string(prop_type).kind
    except ValueError:
        return ValueKind.TEXT


def get_operators_for_type(prop_type: Union[str, PropertyType]) -> List[Dict[str, str]]:
    """
    Operators offered for a property type, in display order.

    Unknown types get the text operators.

    Returns:
        List of {'value': operator, 'label': display label}
    """
    return [{"value": op, "label": label} for op, label in _OPERATORS[_kind_of(prop_type)]]


def operator_values(prop_type: Union[str, PropertyType]) -> List[str]:
    return [op for op, _ in _OPERATORS[_kind_of(prop_type)]]


def is_unary_operator(operator: str) -> bool:
    """Unary operators ignore the filter's value."""
    return operator in UNARY_OPERATORS


# =============================================================================
# Filters
# =============================================================================

class FilterCondition(Enum):
    AND = "AND"
    OR = "OR"

    @classmethod
    def from_string(cls, s: Union[str, "FilterCondition"]) -> "FilterCondition":
        if isinstance(s, FilterCondition):
            return s
        value = str(s).strip().upper()
        if value in ("AND", "ALL"):
            return cls.AND
        if value in ("OR", "ANY"):
            return cls.OR
        raise ValueError(f"Unknown filter condition: {s}")


@dataclass(frozen=True)
class Filter:
    """A single condition: {id, propertyId, operator, value}."""
    property_id: str
    operator: str
    value: Any = None
    id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "value", _freeze(self.value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Filter":
        return cls(
            id=str(data.get("id", "")),
            property_id=str(data.get("propertyId", data.get("property_id", ""))),
            operator=str(data.get("operator", "")),
            value=data.get("value"),
        )

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {
            "id": self.id,
            "propertyId": self.property_id,
            "operator": self.operator,
            "value": value,
        }


@dataclass(frozen=True)
class FilterGroup:
    """A flat AND/OR combination of filters. No filters matches every page."""
    condition: FilterCondition = FilterCondition.AND
    filters: Tuple[Filter, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "condition", FilterCondition.from_string(self.condition))
        object.__setattr__(self, "filters", tuple(self.filters))

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FilterGroup":
        if not data:
            return cls()
        return cls(
            condition=FilterCondition.from_string(data.get("condition", "AND")),
            filters=tuple(
                f if isinstance(f, Filter) else Filter.from_dict(f)
                for f in data.get("filters") or []
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition.value,
            "filters": [f.to_dict() for f in self.filters],
        }


def _freeze(value: Any) -> Any:
    """Lists become tuples so filters stay hashable."""
    if isinstance(value, list):
        return tuple(value)
    return value


def coerce_group(group: Union[FilterGroup, Mapping[str, Any], None]) -> FilterGroup:
    if isinstance(group, FilterGroup):
        return group
    return FilterGroup.from_dict(group)


# =============================================================================
# Conditions
# =============================================================================

class Condition(ABC):
    """A compiled filter: a predicate over one stored value."""

    @abstractmethod
    def evaluate(self, value: Any) -> bool:
        """Evaluate this condition against a stored value."""
        pass


@dataclass
class Never(Condition):
    """Fails closed."""
    reason: str = ""

    def evaluate(self, value: Any) -> bool:
        return False


@dataclass
class Existence(Condition):
    """is_empty / is_not_empty."""
    exists: bool

    def evaluate(self, value: Any) -> bool:
        return not is_empty(value) if self.exists else is_empty(value)


@dataclass
class TextCondition(Condition):
    """Case-insensitive text comparison; empty values compare as ''."""
    op: str
    pattern: str

    def evaluate(self, value: Any) -> bool:
        s = _text(value).casefold()
        p = self.pattern.casefold()

        if self.op == EQUALS:
            return s == p
        elif self.op == DOES_NOT_EQUAL:
            return s != p
        elif self.op == CONTAINS:
            return p in s
        elif self.op == DOES_NOT_CONTAIN:
            return p not in s
        elif self.op == STARTS_WITH:
            return s.startswith(p)
        elif self.op == ENDS_WITH:
            return s.endswith(p)
        return False


@dataclass
class NumberCondition(Condition):
    """Numeric comparison; a stored value that is not a number never matches."""
    op: str
    value: float

    _OP_MAP = {
        EQUALS: lambda a, b: a == b,
        DOES_NOT_EQUAL: lambda a, b: a != b,
        GREATER_THAN: lambda a, b: a > b,
        LESS_THAN: lambda a, b: a < b,
        GREATER_THAN_OR_EQUAL_TO: lambda a, b: a >= b,
        LESS_THAN_OR_EQUAL_TO: lambda a, b: a <= b,
    }

    def evaluate(self, value: Any) -> bool:
        number = to_number(value)
        if number is None or self.op not in self._OP_MAP:
            return False
        return self._OP_MAP[self.op](number, self.value)


@dataclass
class OptionCondition(Condition):
    """
    Option membership for select (scalar id) and multi-select (list of ids).

    'is' and 'contains' test that any wanted option is set; 'is_not' and
    'does_not_contain' are their negations.
    """
    op: str
    option_ids: Tuple[Any, ...]

    def evaluate(self, value: Any) -> bool:
        selected = to_list(value)
        hit = any(option in selected for option in self.option_ids)
        if self.op in (IS, CONTAINS):
            return hit
        elif self.op in (IS_NOT, DOES_NOT_CONTAIN):
            return not hit
        return False


@dataclass
class DateCondition(Condition):
    """Calendar date comparison; time of day is ignored."""
    op: str
    day: Any  # datetime.date

    _OP_MAP = {
        EQUALS: lambda a, b: a == b,
        BEFORE: lambda a, b: a < b,
        AFTER: lambda a, b: a > b,
        ON_OR_BEFORE: lambda a, b: a <= b,
        ON_OR_AFTER: lambda a, b: a >= b,
    }

    def evaluate(self, value: Any) -> bool:
        day = to_date(value)
        if day is None or self.op not in self._OP_MAP:
            return False
        return self._OP_MAP[self.op](day, self.day)


@dataclass
class CheckboxCondition(Condition):
    checked: bool

    def evaluate(self, value: Any) -> bool:
        return (value is True) == self.checked


@dataclass
class ListCondition(Condition):
    """Case-insensitive membership over a list value (scalars are wrapped)."""
    op: str
    items: Tuple[str, ...]

    def evaluate(self, value: Any) -> bool:
        members = {_text(v).casefold() for v in to_list(value)}
        hit = any(item.casefold() in members for item in self.items)
        if self.op == CONTAINS:
            return hit
        elif self.op == DOES_NOT_CONTAIN:
            return not hit
        return False


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(_text(v) for v in value)
    return str(value)


# =============================================================================
# Compilation
# =============================================================================

def _text_condition(prop: Property, flt: Filter) -> Condition:
    return TextCondition(flt.operator, _text(flt.value))


def _number_condition(prop: Property, flt: Filter) -> Condition:
    comparand = to_number(flt.value)
    if comparand is None:
        logger.debug(f"Filter {flt.id or flt.property_id}: {flt.value!r} is not a number")
        return Never("comparand is not a number")
    return NumberCondition(flt.operator, comparand)


def _option_condition(prop: Property, flt: Filter) -> Condition:
    wanted = []
    for candidate in to_list(flt.value):
        if prop.option_by_id(candidate) is None:
            by_name = prop.option_by_name(candidate)
            if by_name is not None:
                candidate = by_name.id
        wanted.append(candidate)
    return OptionCondition(flt.operator, tuple(wanted))


def _date_condition(prop: Property, flt: Filter) -> Condition:
    day = to_date(flt.value)
    if day is None:
        logger.debug(f"Filter {flt.id or flt.property_id}: {flt.value!r} is not a date")
        return Never("comparand is not a date")
    return DateCondition(flt.operator, day)


def _checkbox_condition(prop: Property, flt: Filter) -> Condition:
    return CheckboxCondition(flt.operator == IS_CHECKED)


def _list_condition(prop: Property, flt: Filter) -> Condition:
    return ListCondition(flt.operator, tuple(_text(v) for v in to_list(flt.value)))


_COMPILERS: Dict[ValueKind, Callable[[Property, Filter], Condition]] = {
    ValueKind.TEXT: _text_condition,
    ValueKind.NUMBER: _number_condition,
    ValueKind.OPTION: _option_condition,
    ValueKind.OPTIONS: _option_condition,
    ValueKind.DATE: _date_condition,
    ValueKind.CHECKBOX: _checkbox_condition,
    ValueKind.LIST: _list_condition,
}

ensure_exhaustive(_COMPILERS, ValueKind, "filter compiler table")


def compile_filter(flt: Filter, prop: Optional[Property]) -> Condition:
    """
    Compile a filter against its column.

    A missing column (stale reference) only satisfies is_empty; an operator
    outside the column type's set never matches.
    """
    if prop is None:
        if flt.operator == IS_EMPTY:
            return Existence(exists=False)
        return Never("unknown property")

    if flt.operator not in operator_values(prop.type):
        logger.debug(
            f"Operator {flt.operator!r} is not valid for {prop.type.value} "
            f"property {prop.id!r}"
        )
        return Never("invalid operator")

    if flt.operator == IS_EMPTY:
        return Existence(exists=False)
    if flt.operator == IS_NOT_EMPTY:
        return Existence(exists=True)

    return _COMPILERS[prop.kind](prop, flt)


# =============================================================================
# Evaluation
# =============================================================================

def evaluate_filter(page: Page, flt: Filter,
                    properties: Optional[Iterable[Property]] = None) -> bool:
    """Evaluate one filter against a page."""
    prop = find_property(flt.property_id, schema_for(page, properties))
    condition = compile_filter(flt, prop)
    value = read_value(page, prop) if prop is not None else None
    return condition.evaluate(value)


class _CompiledGroup:
    """
    A filter group compiled once per schema.

    Pages of one database share their parent's schema, so compiled conditions
    are reused across pages keyed by the schema's identity.
    """

    def __init__(self, group: FilterGroup, properties: Optional[Iterable[Property]]):
        self.group = group
        self.properties = list(properties) if properties is not None else None
        self._compiled: Dict[int, List[Tuple[Optional[Property], Condition]]] = {}

    def _conditions(self, page: Page) -> List[Tuple[Optional[Property], Condition]]:
        schema = self.properties if self.properties is not None else page.properties
        key = id(schema)
        if key not in self._compiled:
            compiled = []
            for flt in self.group.filters:
                prop = find_property(flt.property_id, schema)
                compiled.append((prop, compile_filter(flt, prop)))
            self._compiled[key] = compiled
        return self._compiled[key]

    def matches(self, page: Page) -> bool:
        results = (
            condition.evaluate(read_value(page, prop) if prop is not None else None)
            for prop, condition in self._conditions(page)
        )
        if self.group.condition == FilterCondition.AND:
            return all(results)
        return any(results)


def apply_filters(pages: Sequence[Page],
                  group: Union[FilterGroup, Mapping[str, Any], None],
                  properties: Optional[Iterable[Property]] = None) -> List[Page]:
    """
    Filter pages by a filter group, preserving input order.

    Args:
        pages: Row pages to filter
        group: FilterGroup (or its persisted dict shape)
        properties: Schema to type the filters with; defaults to each page's
            own properties

    Returns:
        New list of the matching pages
    """
    group = coerce_group(group)
    if not group.filters:
        return list(pages)

    compiled = _CompiledGroup(group, properties)
    return [page for page in pages if compiled.matches(page)]
