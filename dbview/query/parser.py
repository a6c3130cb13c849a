"""
YAML/JSON loader for saved views and workspace snapshots.

A workspace snapshot holds one database: its schema, its row pages, its
saved views and (optionally) the pages its relations point at.

Example YAML:

    properties:
      - {id: status, name: Status, type: select,
         options: [{id: todo, name: To do}, {id: done, name: Done}]}
      - {id: priority, name: Priority, type: number}
      - {id: total, name: Total, type: formula, formula: 'prop("Priority") * 2'}

    pages:
      - id: p1
        title: Write docs
        propertyValues: {status: todo, priority: 2}

    views:
      open:
        viewType: board
        filters:
          condition: AND
          filters:
            - {propertyId: status, operator: is_not, value: done}
        sorts: priority desc, title

    related:
      - id: r1
        title: Sub-task
        propertyValues: {hours: 3}

Saved views accept the persisted JSON shape, plus two shorthands: a plain
list of filters (joined with `match: all|any`) and sorts written as
"prop desc, other" strings.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from dbview.models import Page, Property

from .filters import FilterGroup
from .sorts import Sort
from .views import SavedView


class ParseError(Exception):
    """Error parsing a saved view or workspace definition."""
    pass


@dataclass
class Workspace:
    """A loaded database snapshot."""
    properties: List[Property] = field(default_factory=list)
    pages: List[Page] = field(default_factory=list)
    views: Dict[str, SavedView] = field(default_factory=dict)
    related: List[Page] = field(default_factory=list)
    name: str = ""

    def page(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def view(self, name: str) -> SavedView:
        if name not in self.views:
            raise ParseError(f"Unknown view: {name}")
        return self.views[name]


def _parse_filters(filter_def: Any, match: Any) -> FilterGroup:
    if filter_def is None:
        return FilterGroup()
    if isinstance(filter_def, dict):
        return FilterGroup.from_dict(filter_def)
    if isinstance(filter_def, list):
        for item in filter_def:
            if not isinstance(item, dict):
                raise ParseError(f"Invalid filter item: {item}")
        return FilterGroup.from_dict({"condition": match or "AND", "filters": filter_def})
    raise ParseError(f"Invalid filter definition: {filter_def}")


def _parse_sorts(sort_def: Any) -> List[Sort]:
    if sort_def is None:
        return []
    if isinstance(sort_def, str):
        return [Sort.parse(part) for part in sort_def.split(",") if part.strip()]
    if isinstance(sort_def, dict):
        return [Sort.from_dict(sort_def)]
    if isinstance(sort_def, list):
        result = []
        for item in sort_def:
            if isinstance(item, str):
                result.extend(_parse_sorts(item))
            elif isinstance(item, dict):
                result.append(Sort.from_dict(item))
            else:
                raise ParseError(f"Invalid sort item: {item}")
        return result
    raise ParseError(f"Invalid sort definition: {sort_def}")


def parse_saved_view(definition: Mapping[str, Any], name: Optional[str] = None) -> SavedView:
    """
    Parse a single saved view definition.

    Args:
        definition: Dictionary containing the view
        name: Name to use when the definition carries none

    Returns:
        SavedView
    """
    if not isinstance(definition, dict):
        raise ParseError(f"View definition must be a dictionary, got {type(definition)}")

    try:
        filters = _parse_filters(definition.get("filters", definition.get("filter")),
                                 definition.get("match"))
        sorts = _parse_sorts(definition.get("sorts", definition.get("sort")))
        return SavedView(
            id=str(definition.get("id", name or "")),
            name=str(definition.get("name", name or "")),
            view_type=definition.get("viewType", definition.get("view_type", "table")),
            filters=filters,
            sorts=tuple(sorts),
        )
    except ParseError:
        raise
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        label = f" {name!r}" if name else ""
        raise ParseError(f"Invalid view{label}: {e}") from e


def _parse_views(data: Any) -> Dict[str, SavedView]:
    views = {}
    if data is None:
        return views
    if isinstance(data, dict):
        for name, definition in data.items():
            views[str(name)] = parse_saved_view(definition, str(name))
    elif isinstance(data, list):
        for definition in data:
            view = parse_saved_view(definition)
            views[view.name or view.id] = view
    else:
        raise ParseError(f"Views must be a dictionary or list, got {type(data)}")
    return views


def _load(text: str, source: str) -> Any:
    """Parse YAML (a superset of JSON) or, for .json sources, strict JSON."""
    try:
        if source.endswith(".json"):
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ParseError(f"Could not parse {source}: {e}") from e


def parse_views_string(text: str) -> Dict[str, SavedView]:
    """
    Parse YAML or JSON text holding saved views.

    Args:
        text: A mapping of view name to definition, or a list of definitions

    Returns:
        Dictionary mapping view names to SavedView objects
    """
    data = _load(text, "<string>")
    if not isinstance(data, (dict, list)):
        raise ParseError(f"Views must be a dictionary or list, got {type(data)}")
    return _parse_views(data)


def parse_views_file(path: Union[str, Path]) -> Dict[str, SavedView]:
    path = Path(path)
    if not path.exists():
        raise ParseError(f"Views file not found: {path}")
    data = _load(path.read_text(encoding="utf-8"), path.name)
    if not isinstance(data, (dict, list)):
        raise ParseError(f"Views file must contain a dictionary or list, got {type(data)}")
    return _parse_views(data)


def parse_workspace(data: Any) -> Workspace:
    """Build a Workspace from already-decoded data."""
    if not isinstance(data, dict):
        raise ParseError(f"Workspace must be a dictionary, got {type(data)}")

    try:
        properties = [Property.from_dict(p) for p in data.get("properties") or []]
        pages = [Page.from_dict(p, properties) for p in data.get("pages") or []]
        related = [Page.from_dict(p) for p in data.get("related") or []]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise ParseError(f"Invalid workspace: {e}") from e

    return Workspace(
        properties=properties,
        pages=pages,
        views=_parse_views(data.get("views")),
        related=related,
        name=str(data.get("name", "")),
    )


def load_workspace(path: Union[str, Path]) -> Workspace:
    """
    Load a workspace snapshot from a YAML or JSON file.

    Args:
        path: Path to the snapshot

    Returns:
        Workspace

    Raises:
        ParseError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ParseError(f"Workspace file not found: {path}")
    return parse_workspace(_load(path.read_text(encoding="utf-8"), path.name))
