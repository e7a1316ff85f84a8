"""Render a project's node tree as one Markdown document."""

import io
from datetime import UTC, datetime

from nexlearn.config import EXPORT_MAX_HEADING_LEVEL, EXPORT_MIN_HEADING_LEVEL
from nexlearn.models.node import Project


def render_project_as_markdown(project: Project, *, exported_at: datetime | None = None) -> str:
    """Flatten the parent_id tree into headed sections.

    Walks depth-first from the roots (nodes without a parent) in node order.
    A node at depth d gets a heading of level ``d + 2`` clamped to [2, 6],
    followed by its summary and content and a ``---`` separator. Each node is
    emitted once.

    Args:
        project: The project to export.
        exported_at: Timestamp written under the title (defaults to now).

    Returns:
        Markdown string.
    """
    nodes_by_id = {n.id: n for n in project.nodes}
    children_by_parent: dict[str | None, list[str]] = {}
    for node in project.nodes:
        children_by_parent.setdefault(node.parent_id or None, []).append(node.id)

    stamp = exported_at or datetime.now(tz=UTC)

    out = io.StringIO()
    out.write(f"# {project.name}\n\n")
    out.write(f"导出时间：{stamp:%Y-%m-%d %H:%M:%S}\n\n")

    visited: set[str] = set()
    todo = [(root_id, 0) for root_id in reversed(children_by_parent.get(None, []))]
    while todo:
        node_id, depth = todo.pop()
        if node_id in visited:
            continue
        visited.add(node_id)
        node = nodes_by_id.get(node_id)
        if node is None:
            continue

        level = min(EXPORT_MAX_HEADING_LEVEL, max(EXPORT_MIN_HEADING_LEVEL, depth + 2))
        out.write(f"{'#' * level} {node.theme}\n\n")
        if node.summary:
            out.write(f"{node.summary}\n\n")
        if node.content_md:
            out.write(f"{node.content_md}\n\n")
        out.write("---\n\n")

        children = children_by_parent.get(node_id, [])
        todo.extend((child_id, depth + 1) for child_id in reversed(children))

    return out.getvalue()
