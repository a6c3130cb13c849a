"""
Property type model for dbview.

Every other module reads page values through this vocabulary:

- PropertyType: the column types a database page can declare
- ValueKind: the value representation each type stores (the dispatch tag
  used by the filter, sort and cell engines)
- Property / SelectOption: column definitions
- Page: a row page with its property values and the parent's schema

Values are stored loosely (str, number, bool, list of str, None) and only get
their meaning from the property type.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

PropertyValue = Union[str, int, float, bool, List[str], None]


# =============================================================================
# Types
# =============================================================================

class ValueKind(Enum):
    """How values of a property type are represented and compared."""
    TEXT = "text"
    NUMBER = "number"
    OPTION = "option"      # single option id
    OPTIONS = "options"    # list of option ids
    DATE = "date"
    CHECKBOX = "checkbox"
    LIST = "list"          # relation ids, files, people


class PropertyType(Enum):
    """Column types of a database page."""
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi-select"
    DATE = "date"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    PERSON = "person"
    FILES = "files"
    FORMULA = "formula"
    RELATION = "relation"
    ROLLUP = "rollup"
    CREATED_TIME = "created_time"
    CREATED_BY = "created_by"
    LAST_EDITED_TIME = "last_edited_time"
    LAST_EDITED_BY = "last_edited_by"
    PROGRESS = "progress"

    @classmethod
    def from_string(cls, s: Union[str, "PropertyType"]) -> "PropertyType":
        """Parse a property type, accepting 'multi_select' for 'multi-select'."""
        if isinstance(s, PropertyType):
            return s
        value = str(s).strip().lower()
        if value == "multi_select":
            value = "multi-select"
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown property type: {s}")

    @property
    def kind(self) -> ValueKind:
        return _TYPE_KINDS[self]

    @property
    def is_computed(self) -> bool:
        """Formula and rollup values are derived at render time, never stored."""
        return self in (PropertyType.FORMULA, PropertyType.ROLLUP)

    @property
    def reads_page_attribute(self) -> bool:
        """Metadata types read the page itself rather than property_values."""
        return self in _ATTRIBUTE_TYPES


_TYPE_KINDS: Dict[PropertyType, ValueKind] = {
    PropertyType.TEXT: ValueKind.TEXT,
    PropertyType.URL: ValueKind.TEXT,
    PropertyType.EMAIL: ValueKind.TEXT,
    PropertyType.PHONE: ValueKind.TEXT,
    PropertyType.NUMBER: ValueKind.NUMBER,
    PropertyType.PROGRESS: ValueKind.NUMBER,
    PropertyType.FORMULA: ValueKind.NUMBER,
    PropertyType.ROLLUP: ValueKind.NUMBER,
    PropertyType.SELECT: ValueKind.OPTION,
    PropertyType.MULTI_SELECT: ValueKind.OPTIONS,
    PropertyType.DATE: ValueKind.DATE,
    PropertyType.CREATED_TIME: ValueKind.DATE,
    PropertyType.LAST_EDITED_TIME: ValueKind.DATE,
    PropertyType.CHECKBOX: ValueKind.CHECKBOX,
    PropertyType.RELATION: ValueKind.LIST,
    PropertyType.FILES: ValueKind.LIST,
    PropertyType.PERSON: ValueKind.LIST,
    PropertyType.CREATED_BY: ValueKind.LIST,
    PropertyType.LAST_EDITED_BY: ValueKind.LIST,
}

_ATTRIBUTE_TYPES = {
    PropertyType.CREATED_TIME: "created_time",
    PropertyType.LAST_EDITED_TIME: "last_edited_time",
    PropertyType.CREATED_BY: "created_by",
    PropertyType.LAST_EDITED_BY: "last_edited_by",
}


def ensure_exhaustive(table: Dict[Any, Any], enum_cls: type, where: str) -> None:
    """
    Check a dispatch table covers every member of an enum.

    Engines call this at import time so that a new ValueKind or PropertyType
    fails loudly instead of silently falling through.
    """
    missing = [m for m in enum_cls if m not in table]
    if missing:
        names = ", ".join(m.name for m in missing)
        raise RuntimeError(f"{where} does not handle {enum_cls.__name__}: {names}")


ensure_exhaustive(_TYPE_KINDS, PropertyType, "PropertyType.kind")


# =============================================================================
# Column definitions
# =============================================================================

@dataclass(frozen=True)
class SelectOption:
    """An option of a select or multi-select property."""
    id: str
    name: str
    color: str = "default"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectOption":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            color=data.get("color") or "default",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass(frozen=True)
class Property:
    """
    A column definition on a database page.

    Only the config fields relevant to the type are set: options for
    select/multi-select, formula for formula, relation_to for relation,
    rollup_* for rollup and max/progress_color for progress.
    """
    id: str
    name: str
    type: PropertyType = PropertyType.TEXT
    options: tuple = ()
    formula: Optional[str] = None
    relation_to: Optional[str] = None
    rollup_relation: Optional[str] = None
    rollup_property: Optional[str] = None
    rollup_function: Optional[str] = None
    max: Optional[float] = None
    progress_color: Optional[str] = None

    @property
    def kind(self) -> ValueKind:
        return self.type.kind

    def option_by_id(self, option_id: Any) -> Optional[SelectOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def option_by_name(self, name: Any) -> Optional[SelectOption]:
        if not isinstance(name, str):
            return None
        wanted = name.casefold()
        for option in self.options:
            if option.name.casefold() == wanted:
                return option
        return None

    def option_name(self, option_id: Any) -> str:
        """Display name of an option id, or the id itself when unknown."""
        option = self.option_by_id(option_id)
        return option.name if option else str(option_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Property":
        """Build a property from its persisted (camelCase) shape."""
        max_value = data.get("max")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            type=PropertyType.from_string(data.get("type", "text")),
            options=tuple(SelectOption.from_dict(o) for o in data.get("options") or []),
            formula=data.get("formula"),
            relation_to=data.get("relationTo", data.get("relation_to")),
            rollup_relation=data.get("rollupRelation", data.get("rollup_relation")),
            rollup_property=data.get("rollupProperty", data.get("rollup_property")),
            rollup_function=data.get("rollupFunction", data.get("rollup_function")),
            max=float(max_value) if max_value is not None else None,
            progress_color=data.get("progressColor", data.get("progress_color")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type.value}
        if self.options:
            data["options"] = [o.to_dict() for o in self.options]
        optional = {
            "formula": self.formula,
            "relationTo": self.relation_to,
            "rollupRelation": self.rollup_relation,
            "rollupProperty": self.rollup_property,
            "rollupFunction": self.rollup_function,
            "max": self.max,
            "progressColor": self.progress_color,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


# Page attributes addressable as columns even when the schema lacks them.
BUILTIN_PROPERTIES: Dict[str, Property] = {
    "title": Property(id="title", name="Title", type=PropertyType.TEXT),
    "created_time": Property(id="created_time", name="Created time",
                             type=PropertyType.CREATED_TIME),
    "last_edited_time": Property(id="last_edited_time", name="Last edited time",
                                 type=PropertyType.LAST_EDITED_TIME),
    "created_by": Property(id="created_by", name="Created by",
                           type=PropertyType.CREATED_BY),
    "last_edited_by": Property(id="last_edited_by", name="Last edited by",
                               type=PropertyType.LAST_EDITED_BY),
}


# =============================================================================
# Pages
# =============================================================================

@dataclass
class Page:
    """A row page of a database view."""
    id: str
    title: str = ""
    property_values: Dict[str, PropertyValue] = field(default_factory=dict)
    properties: List[Property] = field(default_factory=list)
    parent_id: Optional[str] = None
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None

    def __post_init__(self):
        # Property ids are strings; YAML reads keys like `1:` as ints.
        if any(not isinstance(key, str) for key in self.property_values):
            self.property_values = {str(k): v for k, v in self.property_values.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  properties: Optional[List[Property]] = None) -> "Page":
        """Build a page from its persisted (camelCase) shape."""
        if properties is None:
            properties = [Property.from_dict(p) for p in data.get("properties") or []]
        values = data.get("propertyValues", data.get("property_values")) or {}
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            property_values=dict(values),
            properties=list(properties),
            parent_id=data.get("parentId", data.get("parent_id")),
            created_time=_as_text(data.get("createdTime", data.get("created_time"))),
            last_edited_time=_as_text(data.get("lastEditedTime", data.get("last_edited_time"))),
            created_by=data.get("createdBy", data.get("created_by")),
            last_edited_by=data.get("lastEditedBy", data.get("last_edited_by")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "propertyValues": dict(self.property_values),
        }
        optional = {
            "parentId": self.parent_id,
            "createdTime": self.created_time,
            "lastEditedTime": self.last_edited_time,
            "createdBy": self.created_by,
            "lastEditedBy": self.last_edited_by,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    def get(self, property_id: str) -> PropertyValue:
        return self.property_values.get(property_id)


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# =============================================================================
# Schema lookup
# =============================================================================

def find_property(property_id: str,
                  properties: Optional[Iterable[Property]]) -> Optional[Property]:
    """
    Find a column by id in a schema, falling back to built-in page columns.

    Returns None for stale references (a deleted column).
    """
    for prop in properties or ():
        if prop.id == property_id:
            return prop
    return BUILTIN_PROPERTIES.get(property_id)


def schema_for(page: Page, properties: Optional[Iterable[Property]] = None) -> List[Property]:
    """The schema to type a page's values with: explicit, else the page's own."""
    if properties is not None:
        return list(properties)
    return page.properties


def read_value(page: Page, prop: Property) -> PropertyValue:
    """Read the stored value of a column, honouring page-attribute types."""
    if prop.type.reads_page_attribute:
        stored = page.property_values.get(prop.id)
        if stored is not None:
            return stored
        return getattr(page, _ATTRIBUTE_TYPES[prop.type])
    if prop.id == "title" and prop.id not in page.property_values:
        return page.title
    return page.property_values.get(prop.id)


def lookup_value(page: Page, property_id: str) -> PropertyValue:
    """Read a value by id without a schema (stored value or built-in attribute)."""
    if property_id in page.property_values:
        return page.property_values[property_id]
    builtin = BUILTIN_PROPERTIES.get(property_id)
    if builtin is not None:
        return read_value(page, builtin)
    return None


# =============================================================================
# Value helpers
# =============================================================================

def is_empty(value: Any) -> bool:
    """Empty means missing, None, '' or an empty list. 0 and False are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a value to a number, or None when it is not numeric.

    Booleans are not numbers here; numeric strings are.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return number
    return None


DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y"]


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a stored date value into a datetime, or None.

    Accepts datetime/date objects, ISO 8601 strings (with 'Z'), a few plain
    date formats and epoch milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            pass
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(s, fmt)
            except ValueError:
                continue
    return None


def to_timestamp(value: Any) -> Optional[float]:
    """Seconds since the epoch; naive datetimes are taken as UTC."""
    parsed = to_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def to_date(value: Any) -> Optional[date]:
    """Calendar date of a stored value; time of day is dropped."""
    parsed = to_datetime(value)
    return parsed.date() if parsed else None


def to_list(value: Any) -> List[Any]:
    """Treat a value as a list: lists as-is, empties as [], scalars wrapped."""
    if is_empty(value):
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def infer_kind(value: Any) -> ValueKind:
    """Guess a kind from a Python value, for columns missing from the schema."""
    if isinstance(value, bool):
        return ValueKind.CHECKBOX
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, (datetime, date)):
        return ValueKind.DATE
    return ValueKind.TEXT
