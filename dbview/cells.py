"""
Cell values for rendering.

Formula and rollup columns are not stored; they are resolved here, per cell,
when a view is drawn. Everything else is read from the page as stored.
"""

import math
from typing import Any, Dict, Iterable, Optional, Sequence

from dbview.formula import evaluate_formula, format_formula_result
from dbview.models import (
    Page,
    Property,
    PropertyType,
    ValueKind,
    ensure_exhaustive,
    is_empty,
    read_value,
    schema_for,
    to_datetime,
    to_list,
    to_number,
)
from dbview.rollup import format_rollup_result, resolve_rollup


def formula_property_map(page: Page, properties: Optional[Iterable[Property]] = None) -> Dict[str, Any]:
    """Display name -> stored value for every column of the page's schema."""
    return {prop.name: read_value(page, prop) for prop in schema_for(page, properties)}


def cell_value(page: Page, prop: Property,
               related_pages: Optional[Sequence[Page]] = None,
               properties: Optional[Iterable[Property]] = None) -> Any:
    """
    Value of one cell.

    Formula columns evaluate their formula against the page's other values.
    Rollup columns aggregate over related_pages; when related pages were not
    loaded (None) the stored value is shown instead.
    """
    if prop.type == PropertyType.FORMULA:
        return evaluate_formula(prop.formula or "", formula_property_map(page, properties))
    if prop.type == PropertyType.ROLLUP:
        if related_pages is None:
            stored = read_value(page, prop)
            return 0 if is_empty(stored) else stored
        return resolve_rollup(page, prop, related_pages, properties)
    return read_value(page, prop)


def progress_percent(value: Any, maximum: Optional[float]) -> int:
    """Share of max as a whole percentage, clamped to 0-100."""
    number = to_number(value) or 0
    limit = maximum or 100
    percentage = min(100.0, max(0.0, number / limit * 100))
    return int(math.floor(percentage + 0.5))


def _format_text(value: Any, prop: Property, date_format: str) -> str:
    return "" if is_empty(value) else str(value)


def _format_number(value: Any, prop: Property, date_format: str) -> str:
    if prop.type == PropertyType.PROGRESS:
        return f"{progress_percent(value, prop.max)}%"
    if prop.type == PropertyType.FORMULA:
        return format_formula_result(value)
    if prop.type == PropertyType.ROLLUP:
        return format_rollup_result(value, prop.rollup_function or "count")
    if is_empty(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _format_option(value: Any, prop: Property, date_format: str) -> str:
    return ", ".join(prop.option_name(v) for v in to_list(value))


def _format_date(value: Any, prop: Property, date_format: str) -> str:
    if is_empty(value):
        return ""
    parsed = to_datetime(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(date_format)


def _format_checkbox(value: Any, prop: Property, date_format: str) -> str:
    return "true" if value is True else "false"


def _format_list(value: Any, prop: Property, date_format: str) -> str:
    return ", ".join(str(v) for v in to_list(value))


_FORMATTERS = {
    ValueKind.TEXT: _format_text,
    ValueKind.NUMBER: _format_number,
    ValueKind.OPTION: _format_option,
    ValueKind.OPTIONS: _format_option,
    ValueKind.DATE: _format_date,
    ValueKind.CHECKBOX: _format_checkbox,
    ValueKind.LIST: _format_list,
}

ensure_exhaustive(_FORMATTERS, ValueKind, "cell formatters")


def format_cell(page: Page, prop: Property,
                related_pages: Optional[Sequence[Page]] = None,
                properties: Optional[Iterable[Property]] = None,
                date_format: str = "%Y-%m-%d") -> str:
    """
    Display text of one cell.

    Options show their names, checkboxes 'true'/'false', progress 'N%' of
    max, dates in date_format and lists comma-joined.
    """
    value = cell_value(page, prop, related_pages, properties)
    return _FORMATTERS[prop.kind](value, prop, date_format)
