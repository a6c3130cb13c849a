"""
Saved views.

A saved view is the persisted snapshot of a view's type, filters and sorts,
attached to the parent database page:

    {"id": "v1", "name": "Open tasks", "viewType": "board",
     "filters": {"condition": "AND", "filters": [...]},
     "sorts": [{"id": "s1", "propertyId": "due", "direction": "ascending"}]}
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .filters import FilterGroup, coerce_group
from .sorts import Sort, coerce_sorts


class ViewType(Enum):
    TABLE = "table"
    BOARD = "board"
    CALENDAR = "calendar"
    GALLERY = "gallery"
    LIST = "list"
    TIMELINE = "timeline"
    CHART = "chart"

    @classmethod
    def from_string(cls, s: Union[str, "ViewType"]) -> "ViewType":
        if isinstance(s, ViewType):
            return s
        value = str(s).strip().lower()
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown view type: {s}")


@dataclass(frozen=True)
class SavedView:
    """A named, persisted view: type + filter group + sorts."""
    name: str
    view_type: ViewType = ViewType.TABLE
    filters: FilterGroup = field(default_factory=FilterGroup)
    sorts: Tuple[Sort, ...] = field(default_factory=tuple)
    id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "view_type", ViewType.from_string(self.view_type))
        object.__setattr__(self, "filters", coerce_group(self.filters))
        object.__setattr__(self, "sorts", tuple(coerce_sorts(self.sorts)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: Optional[str] = None) -> "SavedView":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", name or "")),
            view_type=data.get("viewType", data.get("view_type", "table")),
            filters=coerce_group(data.get("filters")),
            sorts=tuple(coerce_sorts(data.get("sorts"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "viewType": self.view_type.value,
            "filters": self.filters.to_dict(),
            "sorts": [s.to_dict() for s in self.sorts],
        }
