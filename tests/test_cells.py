"""
Tests for dbview/cells.py: per-cell resolution and display text.
"""

import pytest

from dbview.cells import cell_value, format_cell, formula_property_map, progress_percent
from dbview.models import BUILTIN_PROPERTIES, Page, Property, PropertyType


@pytest.fixture
def props(task_properties):
    return {prop.id: prop for prop in task_properties}


class TestFormulaPropertyMap:

    def test_keys_are_display_names(self, task_pages):
        values = formula_property_map(task_pages[0])
        assert values["Priority"] == 2
        assert values["Status"] == "opt-todo"
        assert values["Done?"] is False

    def test_unset_columns_are_none(self, task_pages):
        values = formula_property_map(task_pages[4])
        assert "Priority" in values
        assert values["Priority"] is None

    def test_attribute_columns(self):
        schema = [Property(id="made", name="Made", type=PropertyType.CREATED_TIME)]
        page = Page(id="x", created_time="2024-01-01", properties=schema)
        assert formula_property_map(page) == {"Made": "2024-01-01"}


class TestCellValue:

    def test_stored_value(self, task_pages, props):
        assert cell_value(task_pages[1], props["priority"]) == 5

    def test_formula_column(self, task_pages, props):
        assert cell_value(task_pages[0], props["score"]) == 4

    def test_formula_with_empty_input(self, task_pages, props):
        assert cell_value(task_pages[4], props["score"]) == 0

    def test_broken_formula_is_none(self, task_pages):
        prop = Property(id="f", name="F", type=PropertyType.FORMULA, formula='prop("Nope") + 1')
        assert cell_value(task_pages[0], prop) is None

    def test_rollup_column(self, task_pages, props, subtask_pages):
        assert cell_value(task_pages[0], props["hours"], subtask_pages) == 5.5

    def test_rollup_without_related_pages_uses_stored(self, task_pages, props):
        assert cell_value(task_pages[0], props["hours"]) == 0
        page = Page(id="x", property_values={"hours": 12}, properties=task_pages[0].properties)
        assert cell_value(page, props["hours"]) == 12


class TestFormatCell:

    def test_select_shows_option_name(self, task_pages, props):
        assert format_cell(task_pages[0], props["status"]) == "To do"
        assert format_cell(task_pages[3], props["status"]) == ""

    def test_multi_select_joined(self, task_pages, props):
        assert format_cell(task_pages[1], props["tags"]) == "Bug, UI"

    def test_checkbox(self, task_pages, props):
        assert format_cell(task_pages[2], props["done"]) == "true"
        assert format_cell(task_pages[0], props["done"]) == "false"
        assert format_cell(task_pages[3], props["done"]) == "false"

    def test_progress(self, task_pages, props):
        assert format_cell(task_pages[0], props["progress"]) == "50%"
        assert format_cell(task_pages[1], props["progress"]) == "0%"

    def test_date(self, task_pages, props):
        assert format_cell(task_pages[0], props["due"]) == "2024-03-01"
        assert format_cell(task_pages[0], props["due"], date_format="%d/%m/%Y") == "01/03/2024"
        assert format_cell(task_pages[4], props["due"]) == ""

    def test_created_time(self, task_pages):
        assert format_cell(task_pages[0], BUILTIN_PROPERTIES["created_time"]) == "2024-01-01"

    def test_list(self, task_pages, props):
        assert format_cell(task_pages[1], props["assignees"]) == "bob, alice"

    def test_text_and_number(self, task_pages, props):
        assert format_cell(task_pages[0], props["notes"]) == "First draft"
        assert format_cell(task_pages[3], props["notes"]) == ""
        assert format_cell(task_pages[0], props["priority"]) == "2"

    def test_formula(self, task_pages, props):
        assert format_cell(task_pages[1], props["score"]) == "10"

    def test_rollup(self, task_pages, props, subtask_pages):
        assert format_cell(task_pages[0], props["hours"], subtask_pages) == "5.5"

    def test_count_rollup(self, task_pages, subtask_pages):
        prop = Property(id="n", name="N", type=PropertyType.ROLLUP,
                        rollup_relation="subtasks", rollup_property="estimate",
                        rollup_function="count")
        assert format_cell(task_pages[0], prop, subtask_pages) == "2 items"


class TestProgressPercent:

    @pytest.mark.parametrize("value,maximum,expected", [
        (5, 10, 50),
        (150, 100, 100),
        (-5, 100, 0),
        (1, 3, 33),
        (2, 3, 67),
        (40, None, 40),
        ("abc", 10, 0),
        (None, 10, 0),
    ])
    def test_progress_percent(self, value, maximum, expected):
        assert progress_percent(value, maximum) == expected
