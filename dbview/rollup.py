"""
Rollup calculator.

A rollup aggregates one property across the pages a relation points at.
The related pages are passed in already fetched; this module never loads
anything itself.

Functions:
- count: number of related pages found
- sum / avg / min / max: over the values that are numbers (others skipped)
- show_original: the raw values, as a list
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from dbview.models import (
    Page,
    Property,
    PropertyType,
    find_property,
    is_empty,
    schema_for,
    to_list,
    to_number,
)

logger = logging.getLogger(__name__)

RollupResult = Union[int, float, List[Any]]


class RollupFunction(Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    SHOW_ORIGINAL = "show_original"

    @classmethod
    def from_string(cls, s: Union[str, "RollupFunction"]) -> "RollupFunction":
        if isinstance(s, RollupFunction):
            return s
        value = str(s).strip().lower()
        if value == "average":
            value = "avg"
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown rollup function: {s}")


def collect_related(relation_ids: Iterable[Any], related_pages: Sequence[Page]) -> List[Page]:
    """
    Related pages in relation order.

    Ids without a loaded page are skipped; duplicate ids count once.
    """
    by_id: Dict[str, Page] = {page.id: page for page in related_pages}
    collected = []
    seen = set()
    for related_id in relation_ids or ():
        key = str(related_id)
        if key in seen or key not in by_id:
            continue
        seen.add(key)
        collected.append(by_id[key])
    return collected


def _numeric_values(values: Iterable[Any]) -> List[float]:
    numbers = []
    for value in values:
        for member in to_list(value):
            number = to_number(member)
            if number is not None:
                numbers.append(number)
    return numbers


def calculate_rollup(relation_ids: Iterable[Any],
                     related_pages: Sequence[Page],
                     rollup_property: str,
                     fn: Union[str, RollupFunction]) -> RollupResult:
    """
    Aggregate a property over related pages.

    Args:
        relation_ids: Page ids stored in the relation property
        related_pages: Already-fetched pages the ids may refer to
        rollup_property: Key of the value to read on each related page
        fn: Aggregation function

    Returns:
        A number, or the list of raw values for show_original. Aggregating
        nothing numeric yields 0.
    """
    try:
        function = RollupFunction.from_string(fn)
    except ValueError:
        logger.debug(f"Unknown rollup function {fn!r}")
        return 0

    pages = collect_related(relation_ids, related_pages)

    if function == RollupFunction.COUNT:
        return len(pages)

    values = [page.property_values.get(rollup_property) for page in pages]

    if function == RollupFunction.SHOW_ORIGINAL:
        original = []
        for value in values:
            original.extend(v for v in to_list(value) if not is_empty(v))
        return original

    numbers = _numeric_values(values)
    if not numbers:
        return 0

    if function == RollupFunction.SUM:
        return sum(numbers)
    elif function == RollupFunction.AVG:
        return sum(numbers) / len(numbers)
    elif function == RollupFunction.MIN:
        return min(numbers)
    elif function == RollupFunction.MAX:
        return max(numbers)
    return 0


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_rollup_result(value: RollupResult, fn: Union[str, RollupFunction]) -> str:
    """
    Display text for a rollup result.

    count reads '3 items', avg is shown with two decimals and show_original
    lists the values separated by commas.
    """
    try:
        function = RollupFunction.from_string(fn)
    except ValueError:
        function = None

    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)

    if function == RollupFunction.COUNT:
        return "1 item" if value == 1 else f"{value} items"

    if isinstance(value, bool):
        return str(value).lower()

    if isinstance(value, (int, float)):
        if function == RollupFunction.AVG:
            return f"{value:.2f}"
        return _format_number(value)

    return "" if value is None else str(value)


def resolve_rollup(page: Page, prop: Property, related_pages: Sequence[Page],
                   properties: Optional[Iterable[Property]] = None) -> RollupResult:
    """
    Compute a rollup property's value for one page.

    Reads the relation column named by prop.rollup_relation on the page and
    aggregates prop.rollup_property over the related pages. A missing or
    non-relation column yields 0.
    """
    schema = schema_for(page, properties)
    relation = find_property(prop.rollup_relation or "", schema)
    if relation is None or relation.type != PropertyType.RELATION:
        logger.debug(f"Rollup {prop.id!r} has no relation column {prop.rollup_relation!r}")
        return 0
    if not prop.rollup_property:
        return 0

    relation_ids = to_list(page.property_values.get(relation.id))
    return calculate_rollup(
        relation_ids,
        related_pages,
        prop.rollup_property,
        prop.rollup_function or RollupFunction.COUNT,
    )
