import os
import pytest
from datetime import datetime

from dbview import config as config_module
from dbview.models import Page, Property
from dbview.query import pipeline


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's config files, env and shared caches."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("DBVIEW_"):
            monkeypatch.delenv(key)
    config_module._config = None
    pipeline.reset_view_cache()
    yield
    config_module._config = None
    pipeline.reset_view_cache()


@pytest.fixture
def task_properties():
    """Schema of a small task database."""
    return [
        Property.from_dict({
            "id": "status", "name": "Status", "type": "select",
            "options": [
                {"id": "opt-todo", "name": "To do", "color": "gray"},
                {"id": "opt-doing", "name": "Doing", "color": "blue"},
                {"id": "opt-done", "name": "Done", "color": "green"},
            ],
        }),
        Property.from_dict({
            "id": "tags", "name": "Tags", "type": "multi-select",
            "options": [
                {"id": "t-bug", "name": "Bug", "color": "red"},
                {"id": "t-docs", "name": "Docs", "color": "yellow"},
                {"id": "t-ui", "name": "UI", "color": "purple"},
            ],
        }),
        Property.from_dict({"id": "priority", "name": "Priority", "type": "number"}),
        Property.from_dict({"id": "due", "name": "Due", "type": "date"}),
        Property.from_dict({"id": "done", "name": "Done?", "type": "checkbox"}),
        Property.from_dict({"id": "notes", "name": "Notes", "type": "text"}),
        Property.from_dict({"id": "assignees", "name": "Assignees", "type": "person"}),
        Property.from_dict({"id": "progress", "name": "Progress", "type": "progress", "max": 10}),
        Property.from_dict({
            "id": "score", "name": "Score", "type": "formula",
            "formula": 'prop("Priority") * 2',
        }),
        Property.from_dict({
            "id": "subtasks", "name": "Subtasks", "type": "relation", "relationTo": "db-sub",
        }),
        Property.from_dict({
            "id": "hours", "name": "Hours", "type": "rollup",
            "rollupRelation": "subtasks", "rollupProperty": "estimate",
            "rollupFunction": "sum",
        }),
    ]


@pytest.fixture
def task_pages(task_properties):
    """Five task pages sharing one schema."""
    rows = [
        {
            "id": "p1", "title": "Write docs",
            "propertyValues": {
                "status": "opt-todo", "tags": ["t-docs"], "priority": 2,
                "due": "2024-03-01", "done": False, "notes": "First draft",
                "assignees": ["alice"], "progress": 5, "subtasks": ["s1", "s2"],
            },
            "createdTime": "2024-01-01T09:00:00Z",
        },
        {
            "id": "p2", "title": "Fix login bug",
            "propertyValues": {
                "status": "opt-doing", "tags": ["t-bug", "t-ui"], "priority": 5,
                "due": "2024-02-15", "done": False, "notes": "Crash on submit",
                "assignees": ["bob", "alice"], "subtasks": ["s3"],
            },
            "createdTime": "2024-01-02T09:00:00Z",
        },
        {
            "id": "p3", "title": "Release",
            "propertyValues": {
                "status": "opt-done", "tags": [], "priority": 5,
                "due": "2024-01-20", "done": True,
            },
            "createdTime": "2024-01-03T09:00:00Z",
        },
        {
            "id": "p4", "title": "Polish UI",
            "propertyValues": {"tags": ["t-ui"], "priority": 1, "notes": ""},
            "createdTime": "2024-01-04T09:00:00Z",
        },
        {
            "id": "p5", "title": "Backlog idea",
            "propertyValues": {"status": "opt-todo"},
            "createdTime": "2024-01-05T09:00:00Z",
        },
    ]
    return [Page.from_dict(row, task_properties) for row in rows]


@pytest.fixture
def subtask_pages():
    """Pages of the related subtask database."""
    schema = [Property.from_dict({"id": "estimate", "name": "Estimate", "type": "number"})]
    return [
        Page.from_dict({"id": "s1", "title": "Outline", "propertyValues": {"estimate": 2}}, schema),
        Page.from_dict({"id": "s2", "title": "Draft", "propertyValues": {"estimate": 3.5}}, schema),
        Page.from_dict({"id": "s3", "title": "Repro", "propertyValues": {"estimate": "bad"}}, schema),
    ]


@pytest.fixture
def fixed_now():
    return datetime(2024, 2, 1, 12, 0, 0)


WORKSPACE_YAML = """
name: Tasks
properties:
  - id: status
    name: Status
    type: select
    options:
      - {id: opt-todo, name: To do}
      - {id: opt-done, name: Done}
  - {id: priority, name: Priority, type: number}
  - {id: total, name: Total, type: formula, formula: 'prop("Priority") * 10'}
  - {id: subtasks, name: Subtasks, type: relation}
  - {id: count, name: Count, type: rollup, rollupRelation: subtasks,
     rollupProperty: estimate, rollupFunction: count}

pages:
  - id: a
    title: Alpha
    propertyValues: {status: opt-todo, priority: 1, subtasks: [r1, r2]}
  - id: b
    title: Bravo
    propertyValues: {status: opt-done, priority: 3}
  - id: c
    title: Charlie
    propertyValues: {status: opt-todo, priority: 2}

views:
  open:
    viewType: board
    filters:
      condition: AND
      filters:
        - {id: f1, propertyId: status, operator: is_not, value: opt-done}
    sorts: priority desc
  everything:
    sorts:
      - {propertyId: title, direction: descending}

related:
  - id: r1
    title: One
    propertyValues: {estimate: 1}
  - id: r2
    title: Two
    propertyValues: {estimate: 2}
"""


@pytest.fixture
def workspace_file(tmp_path):
    path = tmp_path / "tasks.yaml"
    path.write_text(WORKSPACE_YAML, encoding="utf-8")
    return path
