"""
Tests for dbview/rollup.py
"""

import pytest

from dbview.models import Page, Property, PropertyType
from dbview.rollup import (
    RollupFunction,
    calculate_rollup,
    collect_related,
    format_rollup_result,
    resolve_rollup,
)


def related(*values):
    """Related pages r0, r1, ... with the given 'v' values."""
    return [Page(id=f"r{i}", property_values={"v": value}) for i, value in enumerate(values)]


class TestRollupFunction:

    def test_from_string(self):
        assert RollupFunction.from_string("sum") == RollupFunction.SUM
        assert RollupFunction.from_string("average") == RollupFunction.AVG
        assert RollupFunction.from_string("SHOW_ORIGINAL") == RollupFunction.SHOW_ORIGINAL

    def test_unknown(self):
        with pytest.raises(ValueError):
            RollupFunction.from_string("median")


class TestCollectRelated:

    def test_keeps_relation_order(self):
        pages = related(1, 2, 3)
        assert [p.id for p in collect_related(["r2", "r0"], pages)] == ["r2", "r0"]

    def test_skips_unloaded_and_duplicate_ids(self):
        pages = related(1, 2)
        assert [p.id for p in collect_related(["r1", "gone", "r1"], pages)] == ["r1"]


class TestCalculateRollup:
    """Test aggregation over related pages."""

    def test_count_with_no_ids_is_zero(self):
        assert calculate_rollup([], related(1, 2), "v", "count") == 0

    def test_count_counts_found_pages(self):
        assert calculate_rollup(["r0", "r1", "missing"], related(1, None), "v", "count") == 2

    def test_sum(self):
        assert calculate_rollup(["r0", "r1", "r2"], related(1, 2, 3), "v", "sum") == 6

    def test_avg_skips_non_numeric(self):
        pages = related(10, "bad", 20)
        assert calculate_rollup(["r0", "r1", "r2"], pages, "v", "avg") == 15

    def test_numeric_strings_count(self):
        assert calculate_rollup(["r0", "r1"], related("2.5", 1), "v", "sum") == 3.5

    def test_min_max(self):
        pages = related(4, -1, 9)
        ids = ["r0", "r1", "r2"]
        assert calculate_rollup(ids, pages, "v", "min") == -1
        assert calculate_rollup(ids, pages, "v", "max") == 9

    def test_nothing_numeric_is_zero(self):
        pages = related("a", None)
        for fn in ("sum", "avg", "min", "max"):
            assert calculate_rollup(["r0", "r1"], pages, "v", fn) == 0

    def test_booleans_are_not_numbers(self):
        assert calculate_rollup(["r0", "r1"], related(True, 2), "v", "sum") == 2

    def test_show_original(self):
        pages = related("a", ["b", "c"], None, "")
        result = calculate_rollup(["r0", "r1", "r2", "r3"], pages, "v", "show_original")
        assert result == ["a", "b", "c"]

    def test_unknown_function_is_zero(self):
        assert calculate_rollup(["r0"], related(5), "v", "median") == 0

    def test_does_not_mutate_related_pages(self):
        pages = related(1, 2)
        before = [p.to_dict() for p in pages]
        calculate_rollup(["r0", "r1"], pages, "v", "sum")
        assert [p.to_dict() for p in pages] == before


class TestFormatRollupResult:

    def test_count(self):
        assert format_rollup_result(3, "count") == "3 items"
        assert format_rollup_result(1, "count") == "1 item"
        assert format_rollup_result(0, "count") == "0 items"

    def test_avg_two_decimals(self):
        assert format_rollup_result(15, "avg") == "15.00"
        assert format_rollup_result(2 / 3, "average") == "0.67"

    def test_sum_whole_numbers(self):
        assert format_rollup_result(6.0, "sum") == "6"
        assert format_rollup_result(3.5, "sum") == "3.5"

    def test_show_original_joined(self):
        assert format_rollup_result(["a", "b"], "show_original") == "a, b"


class TestResolveRollup:
    """Test rollup columns read through the page's relation column."""

    def test_resolve_sum(self, task_pages, task_properties, subtask_pages):
        hours = task_properties[-1]
        assert resolve_rollup(task_pages[0], hours, subtask_pages) == 5.5

    def test_resolve_nothing_numeric(self, task_pages, task_properties, subtask_pages):
        hours = task_properties[-1]
        assert resolve_rollup(task_pages[1], hours, subtask_pages) == 0

    def test_missing_relation_column(self, task_pages):
        prop = Property(id="r", name="R", type=PropertyType.ROLLUP,
                        rollup_relation="deleted", rollup_property="estimate",
                        rollup_function="sum")
        assert resolve_rollup(task_pages[0], prop, []) == 0

    def test_relation_must_be_relation_type(self, task_pages):
        prop = Property(id="r", name="R", type=PropertyType.ROLLUP,
                        rollup_relation="tags", rollup_property="estimate",
                        rollup_function="count")
        assert resolve_rollup(task_pages[0], prop, []) == 0

    def test_default_function_is_count(self, task_pages, subtask_pages):
        prop = Property(id="r", name="R", type=PropertyType.ROLLUP,
                        rollup_relation="subtasks", rollup_property="estimate")
        assert resolve_rollup(task_pages[0], prop, subtask_pages) == 2
