"""
Tests for dbview/models.py

Tests the property type model including:
- PropertyType parsing and the type -> value kind table
- Property and Page persisted shapes
- Built-in page columns and schema lookup
- Value helpers (emptiness, number and date coercion)
"""
import pytest
from datetime import date, datetime, timezone
from enum import Enum

from dbview.models import (
    BUILTIN_PROPERTIES,
    Page,
    Property,
    PropertyType,
    SelectOption,
    ValueKind,
    ensure_exhaustive,
    find_property,
    infer_kind,
    is_empty,
    lookup_value,
    read_value,
    to_date,
    to_datetime,
    to_list,
    to_number,
    to_timestamp,
)


class TestPropertyType:
    """Test PropertyType parsing and kinds."""

    def test_from_string_uses_stored_values(self):
        assert PropertyType.from_string("multi-select") == PropertyType.MULTI_SELECT
        assert PropertyType.from_string("created_time") == PropertyType.CREATED_TIME

    def test_from_string_accepts_underscore_spelling(self):
        assert PropertyType.from_string("multi_select") == PropertyType.MULTI_SELECT

    def test_from_string_rejects_unknown(self):
        with pytest.raises(ValueError):
            PropertyType.from_string("hologram")

    def test_every_type_has_a_kind(self):
        for prop_type in PropertyType:
            assert isinstance(prop_type.kind, ValueKind)

    @pytest.mark.parametrize("prop_type,kind", [
        ("text", ValueKind.TEXT),
        ("url", ValueKind.TEXT),
        ("number", ValueKind.NUMBER),
        ("progress", ValueKind.NUMBER),
        ("formula", ValueKind.NUMBER),
        ("rollup", ValueKind.NUMBER),
        ("select", ValueKind.OPTION),
        ("multi-select", ValueKind.OPTIONS),
        ("date", ValueKind.DATE),
        ("last_edited_time", ValueKind.DATE),
        ("checkbox", ValueKind.CHECKBOX),
        ("relation", ValueKind.LIST),
        ("person", ValueKind.LIST),
        ("created_by", ValueKind.LIST),
    ])
    def test_kind_table(self, prop_type, kind):
        assert PropertyType.from_string(prop_type).kind == kind

    def test_computed_types(self):
        assert PropertyType.FORMULA.is_computed
        assert PropertyType.ROLLUP.is_computed
        assert not PropertyType.NUMBER.is_computed


class TestEnsureExhaustive:
    """Dispatch tables must cover every enum member."""

    def test_complete_table_passes(self):
        class Color(Enum):
            RED = 1
            BLUE = 2

        ensure_exhaustive({Color.RED: 1, Color.BLUE: 2}, Color, "colors")

    def test_missing_member_raises(self):
        class Color(Enum):
            RED = 1
            BLUE = 2

        with pytest.raises(RuntimeError, match="BLUE"):
            ensure_exhaustive({Color.RED: 1}, Color, "colors")


class TestProperty:
    """Test Property definitions."""

    def test_from_dict_reads_camel_case(self):
        prop = Property.from_dict({
            "id": "hours", "name": "Hours", "type": "rollup",
            "rollupRelation": "subtasks", "rollupProperty": "estimate",
            "rollupFunction": "sum",
        })
        assert prop.type == PropertyType.ROLLUP
        assert prop.rollup_relation == "subtasks"
        assert prop.rollup_property == "estimate"
        assert prop.rollup_function == "sum"

    def test_to_dict_omits_unset_fields(self):
        prop = Property(id="n", name="N", type=PropertyType.NUMBER)
        assert prop.to_dict() == {"id": "n", "name": "N", "type": "number"}

    def test_option_lookup(self, task_properties):
        status = task_properties[0]
        assert status.option_by_id("opt-done").name == "Done"
        assert status.option_by_name("to DO").id == "opt-todo"
        assert status.option_by_name("nope") is None

    def test_option_name_falls_back_to_id(self, task_properties):
        status = task_properties[0]
        assert status.option_name("opt-doing") == "Doing"
        assert status.option_name("gone") == "gone"

    def test_select_option_round_trip(self):
        option = SelectOption.from_dict({"id": "a", "name": "A", "color": "red"})
        assert option.to_dict() == {"id": "a", "name": "A", "color": "red"}


class TestPage:
    """Test Page loading and value reads."""

    def test_from_dict_uses_given_schema(self, task_properties):
        page = Page.from_dict({"id": "x", "title": "X", "propertyValues": {"priority": 1}},
                              task_properties)
        assert page.properties == task_properties
        assert page.get("priority") == 1

    def test_from_dict_reads_embedded_schema(self):
        page = Page.from_dict({
            "id": "x",
            "properties": [{"id": "n", "name": "N", "type": "number"}],
        })
        assert page.properties[0].type == PropertyType.NUMBER

    def test_from_dict_does_not_share_values(self):
        values = {"a": 1}
        page = Page.from_dict({"id": "x", "propertyValues": values})
        page.property_values["a"] = 2
        assert values == {"a": 1}

    def test_value_keys_become_strings(self):
        """YAML reads keys like `1:` as ints; property ids are strings."""
        page = Page(id="x", property_values={1: "a", "x": "b"})
        assert page.property_values == {"1": "a", "x": "b"}
        page = Page.from_dict({"id": "y", "propertyValues": {2: True}})
        assert page.get("2") is True

    def test_to_dict_camel_case(self):
        page = Page(id="x", title="X", created_time="2024-01-01", parent_id="db")
        data = page.to_dict()
        assert data["createdTime"] == "2024-01-01"
        assert data["parentId"] == "db"
        assert "lastEditedTime" not in data


class TestSchemaLookup:
    """Test property resolution and built-in columns."""

    def test_find_property_in_schema(self, task_properties):
        assert find_property("priority", task_properties).name == "Priority"

    def test_find_builtin(self):
        assert find_property("title", []) is BUILTIN_PROPERTIES["title"]
        assert find_property("created_time", None).type == PropertyType.CREATED_TIME

    def test_stale_property_is_none(self, task_properties):
        assert find_property("deleted-column", task_properties) is None

    def test_title_reads_page_attribute(self, task_pages):
        assert read_value(task_pages[0], BUILTIN_PROPERTIES["title"]) == "Write docs"

    def test_attribute_types_read_page(self):
        prop = Property(id="made", name="Made", type=PropertyType.CREATED_TIME)
        page = Page(id="x", created_time="2024-01-01T00:00:00Z")
        assert read_value(page, prop) == "2024-01-01T00:00:00Z"

    def test_lookup_value_without_schema(self, task_pages):
        assert lookup_value(task_pages[0], "priority") == 2
        assert lookup_value(task_pages[0], "title") == "Write docs"
        assert lookup_value(task_pages[0], "missing") is None


class TestValueHelpers:
    """Test value coercion helpers."""

    @pytest.mark.parametrize("value", [None, "", [], ()])
    def test_empty_values(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", [0, False, "0", ["a"], " "])
    def test_non_empty_values(self, value):
        assert not is_empty(value)

    def test_to_number(self):
        assert to_number(3) == 3
        assert to_number("2.5") == 2.5
        assert to_number(" 7 ") == 7
        assert to_number("abc") is None
        assert to_number(True) is None
        assert to_number(None) is None
        assert to_number("nan") is None
        assert to_number(float("nan")) is None

    def test_to_datetime_formats(self):
        assert to_datetime("2024-03-01") == datetime(2024, 3, 1)
        assert to_datetime("2024/03/01") == datetime(2024, 3, 1)
        assert to_datetime("2024-03-01T10:00:00Z").tzinfo is not None
        assert to_datetime(date(2024, 3, 1)) == datetime(2024, 3, 1)
        assert to_datetime("not a date") is None
        assert to_datetime(True) is None

    def test_to_datetime_epoch_millis(self):
        parsed = to_datetime(0)
        assert parsed == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_to_timestamp_treats_naive_as_utc(self):
        assert to_timestamp("1970-01-02") == 86400
        assert to_timestamp("1970-01-02T00:00:00Z") == 86400

    def test_to_date_drops_time(self):
        assert to_date("2024-03-01T23:59:00") == date(2024, 3, 1)

    def test_to_list(self):
        assert to_list(None) == []
        assert to_list("a") == ["a"]
        assert to_list(["a", "b"]) == ["a", "b"]

    def test_infer_kind(self):
        assert infer_kind(True) == ValueKind.CHECKBOX
        assert infer_kind(3) == ValueKind.NUMBER
        assert infer_kind(["a"]) == ValueKind.LIST
        assert infer_kind("a") == ValueKind.TEXT
