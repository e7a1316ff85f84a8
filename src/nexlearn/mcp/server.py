"""MCP server exposing knowledge-graph reading and annotation tools."""

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from nexlearn.config import resolve_project_file
from nexlearn.core.document.headings import extract_section_view, project_node, unmap_range
from nexlearn.core.document.overlay import render_node_content
from nexlearn.core.document.ranges import validate_range
from nexlearn.core.export.json_writer import (
    annotation_to_dict,
    dump_project,
    mindmap_to_dict,
    toc_item_to_dict,
)
from nexlearn.core.graph.context import build_node_context
from nexlearn.core.graph.store import GraphStore, Workspace
from nexlearn.core.importer.loader import load_project_file
from nexlearn.errors import ProjectImportError
from nexlearn.models.node import (
    ANNOTATION_TYPES,
    Annotation,
    Node,
    Project,
    ProjectMetadata,
    TextRange,
)


def _breadcrumbs_str(store: GraphStore, node: Node) -> str:
    """Ancestor themes from the root down to the parent, joined by ' > '."""
    crumbs: list[str] = []
    seen = {node.id}
    current = store.parent(node)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        crumbs.append(current.theme[:40])
        current = store.parent(current)
    return " > ".join(reversed(crumbs))


def _not_found(node_id: str) -> dict[str, Any]:
    return {"error": f"Node '{node_id}' not found."}


# --- Core functions (testable without MCP context) ---


def nexlearn_list_nodes(store: GraphStore) -> dict[str, Any]:
    """List all nodes with their tree position and generation status."""
    return {
        "nodes": [
            {
                "id": n.id,
                "theme": n.theme,
                "parent_id": n.parent_id,
                "status": n.status,
                "depth": store.depth(n),
                "child_count": len(store.children(n.id)),
            }
            for n in store.nodes
        ],
        "count": len(store.nodes),
        "edge_count": len(store.edges),
    }


def nexlearn_read_node(
    store: GraphStore,
    *,
    node_id: str,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a node's document.

    Args:
        node_id: Node ID to read.
        output_format: "markdown" (raw text) or "overlay" (annotations and
            animations embedded as inline markup).
    """
    node = store.get_node(node_id)
    if node is None:
        return _not_found(node_id)

    if output_format == "overlay":
        content = render_node_content(node.content_md, node.annotations, node.animations)
    else:
        content = node.content_md

    estimated_tokens = len(content) // 4
    result: dict[str, Any] = {
        "node_id": node.id,
        "theme": node.theme,
        "summary": node.summary,
        "status": node.status,
        "content": content,
        "breadcrumbs": _breadcrumbs_str(store, node),
        "annotation_count": len(node.annotations),
        "estimated_tokens": estimated_tokens,
    }
    if estimated_tokens > 5000:
        result["warning"] = (
            f"Large result (~{estimated_tokens} tokens). "
            "Consider reading single sections with nexlearn_read_section_tool."
        )
    return result


def nexlearn_get_outline(store: GraphStore, *, node_id: str) -> dict[str, Any]:
    """Get a node's table of contents and mind-map."""
    node = store.get_node(node_id)
    if node is None:
        return _not_found(node_id)
    projections = project_node(node)
    return {
        "node_id": node.id,
        "toc": [toc_item_to_dict(t) for t in projections.toc],
        "mindmap": mindmap_to_dict(projections.mindmap),
    }


def nexlearn_read_section(
    store: GraphStore,
    *,
    node_id: str,
    section_id: str,
    output_format: str = "overlay",
) -> dict[str, Any]:
    """Read one section of a node with its annotations remapped.

    Args:
        node_id: Node ID.
        section_id: "root" or a mind-map id from nexlearn_get_outline.
        output_format: "markdown" or "overlay".
    """
    node = store.get_node(node_id)
    if node is None:
        return _not_found(node_id)
    view = extract_section_view(node, section_id)
    if view is None:
        return {"error": f"Section '{section_id}' not found in node '{node_id}'."}

    if output_format == "overlay":
        content = render_node_content(view.markdown, view.annotations, view.animations)
    else:
        content = view.markdown
    return {
        "node_id": node.id,
        "section_id": section_id,
        "content": content,
        "start_char": view.bounds.start_char,
        "end_char": view.bounds.end_char,
        "prefix_length": len(view.bounds.prefix),
        "annotations": [annotation_to_dict(a) for a in view.annotations],
    }


def nexlearn_get_node_context(
    store: GraphStore,
    *,
    node_id: str,
    visible_text: str | None = None,
) -> dict[str, Any]:
    """Get a node's parent, siblings and children (parentId and edge union)."""
    node = store.get_node(node_id)
    if node is None:
        return _not_found(node_id)
    context = build_node_context(store, node, visible_text=visible_text)
    return {
        "node": {"id": node.id, "theme": node.theme, "depth": store.depth(node)},
        "breadcrumbs": _breadcrumbs_str(store, node),
        "context": context.to_payload(),
    }


def nexlearn_add_annotation(
    workspace: Workspace,
    *,
    node_id: str,
    start: int,
    end: int,
    text: str,
    annotation_type: str | None = None,
    author: str = "assistant",
    section_id: str | None = None,
) -> dict[str, Any]:
    """Anchor a new annotation to a range of a node's content.

    Args:
        node_id: Node ID.
        start: Range start (inclusive).
        end: Range end (exclusive).
        text: Annotation note.
        annotation_type: highlight, comment, note or favorite.
        author: Annotation author.
        section_id: When set, start/end are offsets into that section's
            standalone view and are mapped back to the document.
    """
    node = workspace.store.get_node(node_id)
    if node is None:
        return _not_found(node_id)
    if annotation_type is not None and annotation_type not in ANNOTATION_TYPES:
        return {"error": f"Invalid annotation type '{annotation_type}'."}

    text_range: TextRange | None = TextRange(start=start, end=end)
    if section_id is not None:
        view = extract_section_view(node, section_id)
        if view is None:
            return {"error": f"Section '{section_id}' not found in node '{node_id}'."}
        text_range = unmap_range(view.bounds, text_range)

    if text_range is None or not validate_range(text_range, len(node.content_md)):
        return {"error": f"Invalid range [{start}, {end}) for node '{node_id}'."}

    annotation = Annotation(
        id=str(uuid.uuid4()),
        range=text_range,
        text=text,
        original_text=node.content_md[text_range.start : text_range.end],
        author=author,
        timestamp=datetime.now(tz=UTC),
        type=annotation_type,  # type: ignore[arg-type]
    )
    workspace.apply(
        workspace.store.update_node(node_id, annotations=(*node.annotations, annotation))
    )
    return {"node_id": node_id, "annotation": annotation_to_dict(annotation)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    workspace: Workspace
    project: Project
    project_file: Path
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def current_project(self) -> Project:
        return replace(self.project, nodes=self.workspace.store.nodes, edges=self.workspace.store.edges)


def _empty_project() -> Project:
    now = datetime.now(tz=UTC)
    return Project(
        id=str(uuid.uuid4()),
        user_id="anonymous",
        name="默认项目",
        metadata=ProjectMetadata(created_at=now, updated_at=now),
    )


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load the project file on startup."""
    project_file = resolve_project_file()

    if project_file.exists():
        try:
            project = load_project_file(project_file)
        except ProjectImportError as e:
            logger.error("Cannot load project, starting empty: {}", e)
            project = _empty_project()
    else:
        logger.warning("Project file not found: {}, starting empty", project_file)
        project = _empty_project()

    workspace = Workspace(GraphStore(nodes=project.nodes, edges=project.edges))
    yield ServerContext(workspace=workspace, project=project, project_file=project_file)


mcp_server = FastMCP(
    "nexlearn",
    instructions="""\
nexlearn is a graph of knowledge nodes. Each node holds a Markdown document
with user annotations (highlights, comments, notes, favorites) and links to
interactive animations.

## Best Practice

1. List nodes with nexlearn_list_nodes_tool to find node ids.
2. Use nexlearn_get_outline_tool to see a document's headings before reading it.
3. Read long documents one section at a time with nexlearn_read_section_tool.
4. Use nexlearn_get_node_context_tool to see parent, siblings and children.

Annotation offsets are character offsets into the node's raw Markdown. When
annotating from a section view, pass its section_id so offsets are mapped back.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def nexlearn_list_nodes_tool(ctx: Context) -> dict[str, Any]:
    """List all knowledge nodes with depth, status and child count."""
    return nexlearn_list_nodes(_ctx(ctx).workspace.store)


@mcp_server.tool()
async def nexlearn_read_node_tool(
    ctx: Context,
    node_id: str,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a node's Markdown document.

    Args:
        node_id: Node ID to read.
        output_format: "markdown" (raw) or "overlay" (annotations embedded).
    """
    return nexlearn_read_node(_ctx(ctx).workspace.store, node_id=node_id, output_format=output_format)


@mcp_server.tool()
async def nexlearn_get_outline_tool(ctx: Context, node_id: str) -> dict[str, Any]:
    """Get a node's table of contents and heading mind-map.

    Mind-map ids can be passed as section_id to nexlearn_read_section_tool.

    Args:
        node_id: Node ID.
    """
    return nexlearn_get_outline(_ctx(ctx).workspace.store, node_id=node_id)


@mcp_server.tool()
async def nexlearn_read_section_tool(
    ctx: Context,
    node_id: str,
    section_id: str,
    output_format: str = "overlay",
) -> dict[str, Any]:
    """Read one heading section of a node.

    Args:
        node_id: Node ID.
        section_id: "root" (text before the first heading) or a mind-map id.
        output_format: "markdown" or "overlay".
    """
    return nexlearn_read_section(
        _ctx(ctx).workspace.store,
        node_id=node_id,
        section_id=section_id,
        output_format=output_format,
    )


@mcp_server.tool()
async def nexlearn_get_node_context_tool(
    ctx: Context,
    node_id: str,
    visible_text: str | None = None,
) -> dict[str, Any]:
    """Get a node with its parent, siblings and children.

    Args:
        node_id: Node ID.
        visible_text: Text the user is currently looking at, if any.
    """
    return nexlearn_get_node_context(
        _ctx(ctx).workspace.store, node_id=node_id, visible_text=visible_text
    )


@mcp_server.tool()
async def nexlearn_add_annotation_tool(
    ctx: Context,
    node_id: str,
    start: int,
    end: int,
    text: str,
    annotation_type: str | None = None,
    section_id: str | None = None,
) -> dict[str, Any]:
    """Add an annotation to a range of a node's content and save the project.

    Args:
        node_id: Node ID.
        start: Range start (inclusive character offset).
        end: Range end (exclusive).
        text: Annotation note.
        annotation_type: highlight, comment, note or favorite.
        section_id: Section the offsets refer to, if taken from a section view.
    """
    server_ctx = _ctx(ctx)
    async with server_ctx.write_lock:
        result = nexlearn_add_annotation(
            server_ctx.workspace,
            node_id=node_id,
            start=start,
            end=end,
            text=text,
            annotation_type=annotation_type,
            section_id=section_id,
        )
        if "error" not in result:
            server_ctx.project_file.parent.mkdir(parents=True, exist_ok=True)
            dump_project(server_ctx.current_project(), server_ctx.project_file)
    return result


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from nexlearn.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
