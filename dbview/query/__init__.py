"""
dbview query layer: filtering, sorting and saved views.

Example usage:

    from dbview.query import build_view, load_workspace

    ws = load_workspace('tasks.yaml')

    rows = build_view(
        ws.pages,
        {'condition': 'AND',
         'filters': [{'propertyId': 'status', 'operator': 'is', 'value': 'todo'}]},
        [{'propertyId': 'priority', 'direction': 'descending'},
         {'propertyId': 'title', 'direction': 'ascending'}],
    )

    # Or a saved view from the workspace
    rows = apply_view(ws.pages, ws.view('open'))
"""

# Filters
from .filters import (
    Filter,
    FilterCondition,
    FilterGroup,
    Condition,
    apply_filters,
    compile_filter,
    evaluate_filter,
    get_operators_for_type,
    is_unary_operator,
    operator_values,
)

# Sorts
from .sorts import (
    NO_VALUE_GROUP,
    Sort,
    SortDirection,
    apply_sorts,
    group_pages,
    sort_key,
)

# Saved views
from .views import (
    SavedView,
    ViewType,
)

# Pipeline
from .pipeline import (
    ViewCache,
    apply_view,
    build_view,
    get_view_cache,
    reset_view_cache,
)

# Parser
from .parser import (
    ParseError,
    Workspace,
    load_workspace,
    parse_saved_view,
    parse_views_file,
    parse_views_string,
    parse_workspace,
)

__all__ = [
    # Filters
    'Filter',
    'FilterCondition',
    'FilterGroup',
    'Condition',
    'apply_filters',
    'compile_filter',
    'evaluate_filter',
    'get_operators_for_type',
    'is_unary_operator',
    'operator_values',

    # Sorts
    'NO_VALUE_GROUP',
    'Sort',
    'SortDirection',
    'apply_sorts',
    'group_pages',
    'sort_key',

    # Saved views
    'SavedView',
    'ViewType',

    # Pipeline
    'ViewCache',
    'apply_view',
    'build_view',
    'get_view_cache',
    'reset_view_cache',

    # Parser
    'ParseError',
    'Workspace',
    'load_workspace',
    'parse_saved_view',
    'parse_views_file',
    'parse_views_string',
    'parse_workspace',
]
