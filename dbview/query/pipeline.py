"""
Query pipeline: filter, then sort.

build_view is the single entry point view renderers call. Results are
memoized on the deep value of (pages, filter group, sorts, schema), so
re-rendering with unchanged inputs is a cache hit, and any change to the
inputs is a miss that recomputes everything from scratch.

Formulas and rollups are not a pipeline stage; they are resolved per cell
(see dbview.cells).
"""

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dbview.models import Page, Property

from .filters import FilterGroup, apply_filters, coerce_group
from .sorts import Sort, apply_sorts, coerce_sorts
from .views import SavedView

logger = logging.getLogger(__name__)


def fingerprint(pages: Sequence[Page], group: FilterGroup, sorts: Sequence[Sort],
                properties: Optional[Iterable[Property]] = None) -> str:
    """
    Digest of the deep value of a pipeline's inputs.

    Pages sharing one schema object serialize it once.
    """
    schemas: Dict[int, int] = {}
    schema_dumps: List[Any] = []
    page_dumps: List[Any] = []

    for page in pages:
        key = id(page.properties)
        if key not in schemas:
            schemas[key] = len(schema_dumps)
            schema_dumps.append([p.to_dict() for p in page.properties])
        page_dumps.append([page.to_dict(), schemas[key]])

    payload = {
        "pages": page_dumps,
        "schemas": schema_dumps,
        "filters": group.to_dict(),
        "sorts": [s.to_dict() for s in sorts],
        "properties": None if properties is None else [p.to_dict() for p in properties],
    }
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha1(encoded).hexdigest()


class ViewCache:
    """
    Bounded LRU of pipeline results.

    Entries hold result positions rather than page objects, so a hit is
    mapped onto the pages passed in the current call.
    """

    def __init__(self, max_size: int = 128):
        self.max_size = max_size
        self._entries: "OrderedDict[str, Tuple[int, ...]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Tuple[int, ...]]:
        with self._lock:
            positions = self._entries.get(key)
            if positions is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return positions

    def put(self, key: str, positions: Tuple[int, ...]) -> None:
        if self.max_size <= 0:
            return
        with self._lock:
            self._entries[key] = positions
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


_default_cache: Optional[ViewCache] = None


def get_view_cache() -> ViewCache:
    """The shared cache, sized from configuration on first use."""
    global _default_cache
    if _default_cache is None:
        from dbview.config import get_config
        _default_cache = ViewCache(get_config().view_cache_size)
    return _default_cache


def reset_view_cache() -> None:
    global _default_cache
    _default_cache = None


def _positions(pages: Sequence[Page], result: Sequence[Page]) -> Tuple[int, ...]:
    """Input positions of the result pages (a page listed twice keeps both)."""
    slots: Dict[int, List[int]] = {}
    for index, page in enumerate(pages):
        slots.setdefault(id(page), []).append(index)
    return tuple(slots[id(page)].pop(0) for page in result)


def build_view(pages: Sequence[Page],
               filter_group: Union[FilterGroup, Mapping[str, Any], None] = None,
               sorts: Optional[Iterable[Union[Sort, Mapping[str, Any]]]] = None,
               properties: Optional[Iterable[Property]] = None,
               cache: Optional[ViewCache] = None) -> List[Page]:
    """
    Filter then sort pages for a view, memoized.

    Args:
        pages: Row pages of the database
        filter_group: FilterGroup or its persisted dict shape
        sorts: Sorts or their persisted dict shapes
        properties: Schema override; defaults to each page's own properties
        cache: Cache to use; defaults to the shared cache

    Returns:
        New list of the visible pages in display order
    """
    group = coerce_group(filter_group)
    sort_list = coerce_sorts(sorts)
    schema = list(properties) if properties is not None else None
    cache = cache if cache is not None else get_view_cache()

    key = fingerprint(pages, group, sort_list, schema)
    positions = cache.get(key)
    if positions is not None:
        logger.debug(f"View cache hit {key[:8]} ({len(positions)} rows)")
        return [pages[i] for i in positions]

    result = apply_sorts(apply_filters(pages, group, schema), sort_list, schema)
    cache.put(key, _positions(pages, result))
    logger.debug(f"View cache miss {key[:8]}: {len(result)}/{len(pages)} rows")
    return result


def apply_view(pages: Sequence[Page], view: Union[SavedView, Mapping[str, Any]],
               properties: Optional[Iterable[Property]] = None,
               cache: Optional[ViewCache] = None) -> List[Page]:
    """Build a saved view's rows."""
    if not isinstance(view, SavedView):
        view = SavedView.from_dict(view)
    return build_view(pages, view.filters, view.sorts, properties, cache)
