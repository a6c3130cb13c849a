"""
dbview - database view query engine

Filters, sorts, formulas and rollups for the rows of a database view, the
part of a Notion-style workspace that decides which pages a view shows, in
what order, and what its computed columns read.

Design Principles:
- Pure functions over plain data; inputs are never mutated
- User data never raises on the render path: bad values fail closed
- Engines dispatch on a value kind table checked at import time

Example Usage:
    >>> from dbview import build_view, evaluate_formula, load_workspace
    >>> ws = load_workspace("tasks.yaml")
    >>> rows = build_view(ws.pages, ws.view("open").filters, ws.view("open").sorts)
    >>> evaluate_formula('prop("Price") * 2', {"Price": 10})
    20
"""

__version__ = "0.1.0"
__author__ = "dbview Contributors"

# Configuration
from dbview.config import DbviewConfig, get_config, init_config

# Models
from dbview.models import Page, Property, PropertyType, SelectOption, ValueKind

# Engines
from dbview.query import (
    Filter,
    FilterGroup,
    SavedView,
    Sort,
    ViewCache,
    apply_filters,
    apply_sorts,
    apply_view,
    build_view,
    get_operators_for_type,
    load_workspace,
)
from dbview.formula import evaluate_formula, format_formula_result
from dbview.rollup import RollupFunction, calculate_rollup, format_rollup_result, resolve_rollup
from dbview.cells import cell_value, format_cell, formula_property_map

__all__ = [
    # Configuration
    "DbviewConfig",
    "get_config",
    "init_config",
    # Models
    "Page",
    "Property",
    "PropertyType",
    "SelectOption",
    "ValueKind",
    # Query
    "Filter",
    "FilterGroup",
    "SavedView",
    "Sort",
    "ViewCache",
    "apply_filters",
    "apply_sorts",
    "apply_view",
    "build_view",
    "get_operators_for_type",
    "load_workspace",
    # Formula
    "evaluate_formula",
    "format_formula_result",
    # Rollup
    "RollupFunction",
    "calculate_rollup",
    "format_rollup_result",
    "resolve_rollup",
    # Cells
    "cell_value",
    "format_cell",
    "formula_property_map",
]
