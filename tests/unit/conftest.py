"""Shared test fixtures."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from nexlearn.core.graph.store import GraphStore
from nexlearn.core.importer.json_reader import parse_project_data
from nexlearn.models.node import Edge, Node, NodeMetadata, Position, Project

T0 = datetime(2024, 1, 1, tzinfo=UTC)

ARTICLE_MD = """\
Intro paragraph.

# Python
Python is great for scripting.

## Typing
Use type hints.

```python
### not a heading
```

## Tooling
FastAPI for web services.

# Rust
Rust is fast.
"""

PROJECT_DUMP: dict[str, Any] = {
    "id": "p1",
    "userId": "u1",
    "name": "Languages",
    "settings": {"theme": "dark", "defaultLanguage": "en-US", "autoSave": False},
    "metadata": {"createdAt": "2024-01-01T00:00:00+00:00", "updatedAt": "2024-01-02T00:00:00Z"},
    "nodes": [
        {
            "id": "root",
            "theme": "Languages",
            "summary": "Programming languages",
            "contentMd": ARTICLE_MD,
            "annotations": [
                {
                    "id": "a1",
                    "range": {"start": 0, "end": 5},
                    "text": "opening",
                    "author": "me",
                    "timestamp": "2024-01-01T00:00:00Z",
                    "type": "comment",
                },
                {
                    "id": "a2",
                    "text": "Rust is fast",
                    "author": "me",
                    "timestamp": 1704067200000,
                    "type": "favorite",
                },
            ],
            "animations": [
                {"id": "anim1", "filePath": "", "meta": {"note": "type hints", "status": "generating"}}
            ],
            "position": {"x": 0, "y": 0},
            "metadata": {"createdAt": "2024-01-01T00:00:00Z", "updatedAt": "2024-01-01T00:00:00Z", "version": 2},
            "status": "completed",
        },
        {
            "id": "py",
            "parentId": "root",
            "theme": "Python",
            "summary": "A scripting language",
            "contentMd": "# Python\nbody",
            "position": {"x": 10, "y": 150},
            "status": "completed",
        },
        {
            "id": "rs",
            "parentId": "root",
            "theme": "Rust",
            "summary": "A systems language",
            "contentMd": "",
            "position": {"x": 260, "y": 150},
            "status": "idle",
        },
        {
            "id": "wasm",
            "theme": "WebAssembly",
            "summary": "Portable bytecode",
            "position": {"x": 500, "y": 0},
        },
    ],
    "edges": [
        {"id": "e1", "fromNodeId": "root", "toNodeId": "py", "fromAnchor": "bottom", "toAnchor": "top"},
        {"id": "e2", "fromNodeId": "rs", "toNodeId": "wasm", "meta": {"label": "compiles to", "weight": 2}},
        {"id": "e3", "fromNodeId": "rs", "toNodeId": "ghost"},
    ],
}


def make_node(node_id: str, *, parent_id: str | None = None, **kwargs: Any) -> Node:
    """Build a node with sensible defaults."""
    return Node(
        id=node_id,
        project_id="p1",
        theme=kwargs.pop("theme", node_id.upper()),
        position=kwargs.pop("position", Position(0, 0)),
        metadata=kwargs.pop("metadata", NodeMetadata(created_at=T0, updated_at=T0)),
        parent_id=parent_id,
        **kwargs,
    )


def make_edge(edge_id: str, from_id: str, to_id: str) -> Edge:
    return Edge(id=edge_id, project_id="p1", from_node_id=from_id, to_node_id=to_id)


@pytest.fixture
def project() -> Project:
    """The sample project, parsed and normalized."""
    return parse_project_data(PROJECT_DUMP)


@pytest.fixture
def store(project: Project) -> GraphStore:
    return GraphStore(nodes=project.nodes, edges=project.edges)


@pytest.fixture
def family_store() -> GraphStore:
    """root -> (a, b, c); a -> a1; plus an edge-only child root -> x."""
    nodes = (
        make_node("root", summary="the root"),
        make_node("a", parent_id="root", summary="first"),
        make_node("b", parent_id="root", summary="second"),
        make_node("c", parent_id="root", summary="third"),
        make_node("a1", parent_id="a", summary="nested"),
        make_node("x", summary="linked"),
    )
    edges = (make_edge("e-root-x", "root", "x"), make_edge("e-root-a", "root", "a"))
    return GraphStore(nodes=nodes, edges=edges)


@pytest.fixture
def project_file(tmp_path: Path) -> Path:
    path = tmp_path / "project.json"
    path.write_text(json.dumps(PROJECT_DUMP, ensure_ascii=False))
    return path
