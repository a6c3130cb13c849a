"""
Sort engine for database views.

An ordered list of Sorts defines one composite comparator: the first sort
whose comparison is non-zero decides, and pages that tie on every sort keep
their input order (Python's sort is stable).

Missing values (empty, or not coercible to the column's kind) always sort
after defined values. 'descending' only reverses the order among defined
values; it never moves the missing ones to the top.
"""

from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dbview.models import (
    Page,
    Property,
    ValueKind,
    ensure_exhaustive,
    find_property,
    infer_kind,
    is_empty,
    lookup_value,
    read_value,
    schema_for,
    to_list,
    to_number,
    to_timestamp,
)


# =============================================================================
# Sort specification
# =============================================================================

class SortDirection(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def from_string(cls, s: Union[str, "SortDirection"]) -> "SortDirection":
        if isinstance(s, SortDirection):
            return s
        value = str(s).strip().lower()
        if value in ("ascending", "asc"):
            return cls.ASCENDING
        if value in ("descending", "desc"):
            return cls.DESCENDING
        raise ValueError(f"Unknown sort direction: {s}")


@dataclass(frozen=True)
class Sort:
    """One sort key: {id, propertyId, direction}."""
    property_id: str
    direction: SortDirection = SortDirection.ASCENDING
    id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "direction", SortDirection.from_string(self.direction))

    @classmethod
    def parse(cls, s: str) -> "Sort":
        """Parse 'property' or 'property:desc' (also 'property desc')."""
        text = s.strip()
        if ":" in text:
            prop, _, direction = text.rpartition(":")
        else:
            parts = text.split()
            prop = parts[0] if parts else ""
            direction = parts[1] if len(parts) > 1 else "ascending"
        return cls(property_id=prop.strip(), direction=direction.strip() or "ascending")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Sort":
        return cls(
            id=str(data.get("id", "")),
            property_id=str(data.get("propertyId", data.get("property_id", ""))),
            direction=data.get("direction", "ascending"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "propertyId": self.property_id,
            "direction": self.direction.value,
        }

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESCENDING


def coerce_sorts(sorts: Optional[Iterable[Union[Sort, Mapping[str, Any]]]]) -> List[Sort]:
    return [s if isinstance(s, Sort) else Sort.from_dict(s) for s in sorts or ()]


# =============================================================================
# Sort keys
# =============================================================================

# A key is None when the value is missing; otherwise a comparable value.
KeyFunc = Callable[[Any, Optional[Property]], Any]


def _text_key(value: Any, prop: Optional[Property]) -> Optional[str]:
    if is_empty(value):
        return None
    return str(value).casefold()


def _number_key(value: Any, prop: Optional[Property]) -> Optional[float]:
    return to_number(value)


def _option_key(value: Any, prop: Optional[Property]) -> Optional[str]:
    if is_empty(value):
        return None
    if isinstance(value, (list, tuple)):
        return _options_key(value, prop)
    name = prop.option_name(value) if prop is not None else str(value)
    return name.casefold()


def _options_key(value: Any, prop: Optional[Property]) -> Optional[str]:
    members = to_list(value)
    if not members:
        return None
    names = [prop.option_name(v) if prop is not None else str(v) for v in members]
    return ", ".join(names).casefold()


def _date_key(value: Any, prop: Optional[Property]) -> Optional[float]:
    return to_timestamp(value)


def _checkbox_key(value: Any, prop: Optional[Property]) -> Optional[int]:
    if not isinstance(value, bool):
        return None
    return 1 if value else 0


def _list_key(value: Any, prop: Optional[Property]) -> Optional[str]:
    members = to_list(value)
    if not members:
        return None
    return ", ".join(str(v) for v in members).casefold()


_KEYS: Dict[ValueKind, KeyFunc] = {
    ValueKind.TEXT: _text_key,
    ValueKind.NUMBER: _number_key,
    ValueKind.OPTION: _option_key,
    ValueKind.OPTIONS: _options_key,
    ValueKind.DATE: _date_key,
    ValueKind.CHECKBOX: _checkbox_key,
    ValueKind.LIST: _list_key,
}

ensure_exhaustive(_KEYS, ValueKind, "sort key table")


def sort_key(page: Page, sort: Sort,
             properties: Optional[Iterable[Property]] = None) -> Any:
    """
    Comparable key of a page for one sort, or None when the value is missing.

    Columns absent from the schema are typed by their Python value.
    """
    prop = find_property(sort.property_id, schema_for(page, properties))
    if prop is not None:
        return _KEYS[prop.kind](read_value(page, prop), prop)

    value = lookup_value(page, sort.property_id)
    if is_empty(value):
        return None
    return _KEYS[infer_kind(value)](value, None)


# =============================================================================
# Comparison
# =============================================================================

def compare_keys(a: Any, b: Any, descending: bool = False) -> int:
    """
    Compare two sort keys.

    None (missing) is greater than everything regardless of direction;
    direction only flips the comparison of two defined keys.
    """
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    # Mixed kinds in one column (e.g. inferred per page): numbers before text.
    left, right = _ranked(a), _ranked(b)
    result = (left > right) - (left < right)
    return -result if descending else result


def _ranked(key: Any) -> Tuple[int, Any]:
    if isinstance(key, (int, float)):
        return (0, key)
    if isinstance(key, str):
        return (1, key)
    return (2, str(key))


def apply_sorts(pages: Sequence[Page],
                sorts: Optional[Iterable[Union[Sort, Mapping[str, Any]]]],
                properties: Optional[Iterable[Property]] = None) -> List[Page]:
    """
    Sort pages by an ordered list of sorts.

    Args:
        pages: Row pages to sort
        sorts: Sorts (or their persisted dict shapes), highest precedence first
        properties: Schema to type the sort columns with; defaults to each
            page's own properties

    Returns:
        New list; ties on every sort keep their input order
    """
    sorts = coerce_sorts(sorts)
    if not sorts or not pages:
        return list(pages)

    schema = list(properties) if properties is not None else None

    # Keys are computed once per page, not once per comparison.
    keyed: List[Tuple[List[Any], Page]] = [
        ([sort_key(page, s, schema) for s in sorts], page)
        for page in pages
    ]

    def compare(left: Tuple[List[Any], Page], right: Tuple[List[Any], Page]) -> int:
        for index, s in enumerate(sorts):
            result = compare_keys(left[0][index], right[0][index], s.descending)
            if result != 0:
                return result
        return 0

    ordered = sorted(keyed, key=cmp_to_key(compare))
    return [page for _, page in ordered]


# =============================================================================
# Grouping
# =============================================================================

NO_VALUE_GROUP = "__none__"


def group_pages(pages: Sequence[Page], property_id: str) -> Dict[str, List[Page]]:
    """
    Group pages by the value of a column, for board views.

    Multi-valued columns place a page under each of its values; pages without
    a value go under '__none__'. Groups keep first-seen order.
    """
    grouped: Dict[str, List[Page]] = {}
    for page in pages:
        value = lookup_value(page, property_id)
        keys = [str(v) for v in to_list(value)] or [NO_VALUE_GROUP]
        for key in keys:
            grouped.setdefault(key, []).append(page)
    return grouped
