#!/usr/bin/env python3
"""
dbview - query database views from the command line.

Loads a workspace snapshot (YAML or JSON), runs saved or ad-hoc filters and
sorts over its rows, and evaluates formulas.
"""
import sys
import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from dbview.cells import cell_value, format_cell, formula_property_map
from dbview.config import get_config, init_config
from dbview.formula import evaluate_formula, format_formula_result, set_cache_size, validate_formula
from dbview.models import Page, Property
from dbview.query import (
    Filter,
    FilterCondition,
    FilterGroup,
    Sort,
    ViewCache,
    Workspace,
    build_view,
    get_operators_for_type,
    is_unary_operator,
    load_workspace,
)

logger = logging.getLogger(__name__)

console = Console()


def parse_scalar(text: str) -> Any:
    """Read a command-line value: JSON literals (numbers, true, lists) or plain text."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_filter_arg(text: str, index: int = 0) -> Filter:
    """Parse PROP:OP[:VALUE]; the value may itself contain colons."""
    parts = text.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid filter {text!r}, expected PROP:OP[:VALUE]")
    prop, operator = parts[0].strip(), parts[1].strip()
    value = parse_scalar(parts[2]) if len(parts) == 3 else None
    if value is None and not is_unary_operator(operator):
        raise ValueError(f"Filter {text!r} needs a value")
    return Filter(property_id=prop, operator=operator, value=value, id=f"cli-{index}")


def parse_assignment(text: str) -> tuple:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Invalid assignment {text!r}, expected NAME=VALUE")
    return name, parse_scalar(value)


def row_dict(page: Page, schema: Sequence[Property], related: Sequence[Page]) -> Dict[str, Any]:
    """A page's resolved cells keyed by column name."""
    data: Dict[str, Any] = {"id": page.id, "title": page.title}
    for prop in schema:
        data[prop.name] = cell_value(page, prop, related)
    return data


def output_rows(pages: List[Page], workspace: Workspace, format: str = "table",
                title: Optional[str] = None):
    """Output view rows in the specified format."""
    config = get_config()
    schema = workspace.properties

    if format == "json":
        data = [row_dict(page, schema, workspace.related) for page in pages]
        print(json.dumps(data, indent=2, default=str))
        return

    table = Table(title=title or workspace.name or "View")
    table.add_column("Title", style="green")
    for prop in schema:
        table.add_column(prop.name, style="cyan" if prop.type.is_computed else None)

    for page in pages:
        cells = [format_cell(page, prop, workspace.related, date_format=config.date_format)
                 for prop in schema]
        table.add_row(page.title, *cells)

    console.print(table)
    console.print(f"[dim]{len(pages)} of {len(workspace.pages)} rows[/dim]")


def cmd_view(args):
    """Filter and sort a workspace's rows."""
    config = get_config()
    path = args.workspace or config.workspace_file
    if not path:
        raise ValueError("No workspace file given (argument or workspace_file config)")

    workspace = load_workspace(path)

    group = FilterGroup()
    sorts: List[Sort] = []
    title = None
    if args.view:
        saved = workspace.view(args.view)
        group, sorts, title = saved.filters, list(saved.sorts), saved.name

    if args.filter:
        group = FilterGroup(
            condition=FilterCondition.from_string(args.match),
            filters=tuple(parse_filter_arg(f, i) for i, f in enumerate(args.filter)),
        )
    if args.sort:
        sorts = [Sort.parse(s) for s in args.sort]

    cache = ViewCache(config.view_cache_size)
    pages = build_view(workspace.pages, group, sorts, cache=cache)
    logger.debug(f"View matched {len(pages)} of {len(workspace.pages)} rows")

    output_rows(pages, workspace, args.output, title)


def cmd_formula(args):
    """Evaluate a formula."""
    error = validate_formula(args.expression)
    if error:
        raise ValueError(f"Invalid formula: {error}")

    values: Dict[str, Any] = {}
    if args.workspace:
        workspace = load_workspace(args.workspace)
        if not args.page:
            raise ValueError("--page is required with --workspace")
        page = workspace.page(args.page)
        if page is None:
            raise ValueError(f"Page not found: {args.page}")
        values.update(formula_property_map(page, workspace.properties))

    for assignment in args.set or []:
        name, value = parse_assignment(assignment)
        values[name] = value

    result = evaluate_formula(args.expression, values)

    if args.output == "json":
        print(json.dumps({"expression": args.expression, "result": result}))
    else:
        print(format_formula_result(result))


def cmd_operators(args):
    """List filter operators for a property type."""
    operators = get_operators_for_type(args.type)

    if args.output == "json":
        print(json.dumps(operators, indent=2))
        return

    table = Table(title=f"Operators for {args.type}")
    table.add_column("Operator", style="cyan")
    table.add_column("Label", style="green")
    for op in operators:
        table.add_row(op["value"], op["label"])
    console.print(table)


def cmd_config(args):
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            from dataclasses import asdict
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "init":
        config_path = Path(args.key) if args.key else Path.home() / ".config" / "dbview" / "config.toml"
        config.save(config_path)
        console.print(f"[green]Created config at {config_path}[/green]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbview",
        description="dbview - filter, sort and compute database views",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Rows of a saved view
  dbview view tasks.yaml --view open

  # Ad-hoc filters and sorts
  dbview view tasks.yaml --filter status:is:done --filter priority:greater_than:2 --match any
  dbview -o json view tasks.yaml --sort priority:desc --sort title

  # Formulas
  dbview formula 'prop("Price") * prop("Qty")' --set Price=10 --set Qty=3
  dbview formula 'prop("Total")' --workspace tasks.yaml --page p1

  # Operators for a column type
  dbview operators multi-select

Configuration:
  Config file: ~/.config/dbview/config.toml, ./dbview.toml
  Environment: DBVIEW_WORKSPACE_FILE, DBVIEW_OUTPUT_FORMAT, DBVIEW_LOG_LEVEL
        """
    )

    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-o", "--output", choices=["table", "json"], help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    view_parser = subparsers.add_parser("view", help="Filter and sort a workspace's rows")
    view_parser.add_argument("workspace", nargs="?", help="Workspace file (YAML or JSON)")
    view_parser.add_argument("--view", help="Saved view name")
    view_parser.add_argument("--filter", action="append", metavar="PROP:OP[:VALUE]",
                             help="Filter (repeatable; replaces the saved view's filters)")
    view_parser.add_argument("--match", choices=["all", "any"], default="all",
                             help="Combine filters with AND (all) or OR (any)")
    view_parser.add_argument("--sort", action="append", metavar="PROP[:asc|desc]",
                             help="Sort (repeatable; replaces the saved view's sorts)")
    view_parser.set_defaults(func=cmd_view)

    formula_parser = subparsers.add_parser("formula", help="Evaluate a formula")
    formula_parser.add_argument("expression", help="Formula expression")
    formula_parser.add_argument("--workspace", help="Workspace file to read values from")
    formula_parser.add_argument("--page", help="Page id within the workspace")
    formula_parser.add_argument("--set", action="append", metavar="NAME=VALUE",
                                help="Property value (repeatable)")
    formula_parser.set_defaults(func=cmd_formula)

    operators_parser = subparsers.add_parser("operators", help="List filter operators for a type")
    operators_parser.add_argument("type", help="Property type, e.g. number or multi-select")
    operators_parser.set_defaults(func=cmd_operators)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "init"], help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key (show) or target path (init)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        get_config(reload=True, config_file=Path(args.config))
    config = init_config(output_format=args.output)

    level = logging.DEBUG if args.verbose else getattr(logging, str(config.log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    set_cache_size(config.formula_cache_size)
    if not config.color_output:
        console.no_color = True

    if not args.output:
        args.output = config.output_format

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
