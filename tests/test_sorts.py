"""
Tests for the sort engine.
"""

import pytest

from dbview.models import Page, Property, PropertyType
from dbview.query.sorts import (
    NO_VALUE_GROUP,
    Sort,
    SortDirection,
    apply_sorts,
    compare_keys,
    group_pages,
    sort_key,
)


def ids(pages):
    return [page.id for page in pages]


class TestSortShapes:
    """Test Sort parsing and persisted shape."""

    def test_parse_colon_form(self):
        sort = Sort.parse("priority:desc")
        assert sort.property_id == "priority"
        assert sort.direction == SortDirection.DESCENDING

    def test_parse_space_form(self):
        assert Sort.parse("due asc").direction == SortDirection.ASCENDING

    def test_parse_default_ascending(self):
        sort = Sort.parse("title")
        assert sort.property_id == "title"
        assert not sort.descending

    def test_invalid_direction(self):
        with pytest.raises(ValueError):
            Sort.parse("title:sideways")

    def test_dict_shape(self):
        sort = Sort.from_dict({"id": "s1", "propertyId": "due", "direction": "descending"})
        assert sort.descending
        assert sort.to_dict() == {"id": "s1", "propertyId": "due", "direction": "descending"}


class TestCompareKeys:
    """Missing keys sort last in both directions."""

    def test_defined_values(self):
        assert compare_keys(1, 2) < 0
        assert compare_keys(1, 2, descending=True) > 0
        assert compare_keys(2, 2) == 0

    def test_missing_is_last_ascending(self):
        assert compare_keys(None, 1) > 0
        assert compare_keys(1, None) < 0

    def test_missing_is_last_descending(self):
        assert compare_keys(None, 1, descending=True) > 0
        assert compare_keys(1, None, descending=True) < 0

    def test_both_missing_tie(self):
        assert compare_keys(None, None) == 0

    def test_mixed_types_put_numbers_before_text(self):
        assert compare_keys(10, "abc") < 0
        assert compare_keys("abc", 10) > 0
        assert compare_keys(10, "abc", descending=True) > 0

    def test_mixed_types_order_is_transitive(self):
        assert compare_keys(9, 10) < 0
        assert compare_keys(10, "5a") < 0
        assert compare_keys(9, "5a") < 0

    @pytest.mark.parametrize("values", [
        [10, "5a", 9],
        ["5a", 9, 10],
        [9, 10, "5a"],
    ])
    def test_mixed_column_sorts_the_same_from_any_order(self, values):
        pages = [Page(id=str(v), property_values={"v": v}) for v in values]
        assert ids(apply_sorts(pages, [Sort("v")])) == ["9", "10", "5a"]


class TestApplySorts:
    """Test composite sorting."""

    def test_no_sorts_returns_copy(self, task_pages):
        result = apply_sorts(task_pages, [])
        assert result == task_pages
        assert result is not task_pages

    def test_priority_desc_then_title(self, task_pages):
        result = apply_sorts(task_pages, [
            Sort("priority", "descending"),
            Sort("title", "ascending"),
        ])
        assert ids(result) == ["p2", "p3", "p1", "p4", "p5"]

    def test_ascending_missing_last_and_stable(self, task_pages):
        result = apply_sorts(task_pages, [Sort("priority")])
        assert ids(result) == ["p4", "p1", "p2", "p3", "p5"]

    def test_descending_missing_last(self, task_pages):
        result = apply_sorts(task_pages, [Sort("due", "descending")])
        assert ids(result) == ["p1", "p2", "p3", "p4", "p5"]

    def test_idempotent(self, task_pages):
        sorts = [Sort("status"), Sort("priority", "descending")]
        once = apply_sorts(task_pages, sorts)
        assert apply_sorts(once, sorts) == once

    def test_ties_keep_input_order(self, task_pages):
        reversed_pages = list(reversed(task_pages))
        result = apply_sorts(reversed_pages, [Sort("priority", "descending")])
        assert ids(result) == ["p3", "p2", "p1", "p4", "p5"]

    def test_select_sorts_by_option_name(self, task_pages):
        result = apply_sorts(task_pages, [Sort("status")])
        # Doing < Done < To do; p4 has no status
        assert ids(result) == ["p2", "p3", "p1", "p5", "p4"]

    def test_checkbox_false_before_true(self, task_pages):
        assert ids(apply_sorts(task_pages, [Sort("done")])) == ["p1", "p2", "p3", "p4", "p5"]
        assert ids(apply_sorts(task_pages, [Sort("done", "desc")])) == ["p3", "p1", "p2", "p4", "p5"]

    def test_text_is_case_insensitive(self):
        pages = [Page(id="1", title="banana"), Page(id="2", title="Apple"), Page(id="3", title="cherry")]
        assert ids(apply_sorts(pages, [Sort("title")])) == ["2", "1", "3"]

    def test_accepts_persisted_dicts(self, task_pages):
        result = apply_sorts(task_pages, [{"propertyId": "priority", "direction": "descending"}])
        assert ids(result)[:2] == ["p2", "p3"]

    def test_column_outside_schema_is_inferred(self):
        pages = [
            Page(id="1", property_values={"n": 10}),
            Page(id="2", property_values={"n": 9}),
            Page(id="3", property_values={}),
        ]
        assert ids(apply_sorts(pages, [Sort("n")])) == ["2", "1", "3"]

    def test_numeric_strings_sort_as_numbers(self):
        schema = [Property(id="n", name="N", type=PropertyType.NUMBER)]
        pages = [
            Page(id="1", property_values={"n": "10"}, properties=schema),
            Page(id="2", property_values={"n": "9"}, properties=schema),
            Page(id="3", property_values={"n": "n/a"}, properties=schema),
        ]
        assert ids(apply_sorts(pages, [Sort("n")])) == ["2", "1", "3"]

    def test_does_not_mutate_input(self, task_pages):
        before = ids(task_pages)
        apply_sorts(task_pages, [Sort("priority")])
        assert ids(task_pages) == before


class TestSortKey:
    """Test per-kind sort keys."""

    def test_multi_select_key_uses_names(self, task_pages):
        assert sort_key(task_pages[1], Sort("tags")) == "bug, ui"

    def test_empty_multi_select_is_missing(self, task_pages):
        assert sort_key(task_pages[2], Sort("tags")) is None

    def test_stale_column_is_missing(self, task_pages):
        assert sort_key(task_pages[0], Sort("deleted")) is None


class TestGroupPages:
    """Test board grouping."""

    def test_group_by_multi_select(self, task_pages):
        grouped = group_pages(task_pages, "tags")
        assert list(grouped) == ["t-docs", "t-bug", "t-ui", NO_VALUE_GROUP]
        assert ids(grouped["t-ui"]) == ["p2", "p4"]
        assert ids(grouped[NO_VALUE_GROUP]) == ["p3", "p5"]

    def test_group_by_select(self, task_pages):
        grouped = group_pages(task_pages, "status")
        assert ids(grouped["opt-todo"]) == ["p1", "p5"]
        assert ids(grouped[NO_VALUE_GROUP]) == ["p4"]
