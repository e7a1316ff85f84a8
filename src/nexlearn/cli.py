"""CLI for nexlearn projects (outline, render, context, export, MCP server)."""

import asyncio
import json as json_mod
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from nexlearn.config import resolve_project_file
from nexlearn.core.document.headings import extract_section_view, project_node
from nexlearn.core.document.overlay import render_node_content
from nexlearn.core.export.json_writer import dump_project, mindmap_to_dict, project_to_dict
from nexlearn.core.export.markdown import render_project_as_markdown
from nexlearn.core.graph.context import build_node_context
from nexlearn.core.graph.layout import tree_layout
from nexlearn.core.graph.store import GraphStore, Workspace
from nexlearn.core.importer.loader import load_project_file
from nexlearn.errors import GenerationInProgressError, ProjectImportError
from nexlearn.logging_config import configure_logging
from nexlearn.models.node import MindMap, Node, Position, Project

app = typer.Typer(help="nexlearn: browse and export knowledge-node projects.")

ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", "-p", help="Project file (.json or .md)"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_project(project_file: Path | None) -> Project:
    """Load the project, exiting with status 1 on failure."""
    path = project_file or resolve_project_file()
    if not path.exists():
        logger.error("Project file not found: {}", path)
        raise typer.Exit(1)
    try:
        return load_project_file(path)
    except ProjectImportError as e:
        logger.error("Import failed: {}", e)
        raise typer.Exit(1) from e


def _find_node(project: Project, node_id: str) -> Node:
    node = GraphStore(nodes=project.nodes, edges=project.edges).get_node(node_id)
    if node is None:
        typer.echo(f"Node '{node_id}' not found.")
        raise typer.Exit(1)
    return node


def _echo_mindmap(mindmap: MindMap, node_id: str, depth: int = 0) -> None:
    node = mindmap.get(node_id)
    if node is None:
        return
    marks = "".join(
        flag
        for flag, on in (
            ("*", node.stats.has_favorites),
            ("@", node.stats.has_annotations),
            ("~", node.stats.has_animations),
        )
        if on
    )
    typer.echo(f"{'    ' * depth}- {node.text}{' ' + marks if marks else ''}  [id={node.id}]")
    for child_id in node.children:
        _echo_mindmap(mindmap, child_id, depth + 1)


@app.command()
def nodes(project: ProjectOption = None) -> None:
    """List nodes as an indented parent/child tree."""
    proj = _open_project(project)
    store = GraphStore(nodes=proj.nodes, edges=proj.edges)
    typer.echo(f"{proj.name}: {len(store.nodes)} nodes, {len(store.edges)} edges\n")

    ids = store.node_ids()
    children_by_parent: dict[str | None, list[Node]] = {}
    for node in store.nodes:
        parent_id = node.parent_id if node.parent_id in ids else None
        children_by_parent.setdefault(parent_id, []).append(node)

    # Nodes caught in a parent_id cycle are listed last, as top-level entries.
    tops = children_by_parent.get(None, [])
    seen: set[str] = set()
    for top in [*tops, *store.nodes]:
        todo = [(top, 0)]
        while todo:
            node, depth = todo.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            typer.echo(f"{'    ' * depth}- {node.theme} ({node.status})  [id={node.id}]")
            todo.extend((c, depth + 1) for c in reversed(children_by_parent.get(node.id, [])))


@app.command()
def toc(
    node_id: str = typer.Argument(..., help="Node ID"),
    project: ProjectOption = None,
) -> None:
    """Print a node's table of contents."""
    node = _find_node(_open_project(project), node_id)
    for item in project_node(node).toc:
        typer.echo(f"{'  ' * (item.level - 1)}{item.text}  #{item.anchor}")


@app.command()
def mindmap(
    node_id: str = typer.Argument(..., help="Node ID"),
    project: ProjectOption = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Print a node's heading mind-map (* favorites, @ annotations, ~ animations)."""
    node = _find_node(_open_project(project), node_id)
    projections = project_node(node)
    if output_json:
        typer.echo(json_mod.dumps(mindmap_to_dict(projections.mindmap), ensure_ascii=False, indent=2))
        return
    _echo_mindmap(projections.mindmap, projections.mindmap.nodes[0].id)


@app.command()
def render(
    node_id: str = typer.Argument(..., help="Node ID"),
    project: ProjectOption = None,
) -> None:
    """Print a node's content with annotations and animations embedded."""
    node = _find_node(_open_project(project), node_id)
    typer.echo(render_node_content(node.content_md, node.annotations, node.animations))


@app.command()
def section(
    node_id: str = typer.Argument(..., help="Node ID"),
    section_id: str = typer.Argument(..., help="'root' or a mind-map id"),
    project: ProjectOption = None,
    raw: bool = typer.Option(False, "--raw", help="Do not embed annotations"),
) -> None:
    """Print one section of a node, standalone."""
    node = _find_node(_open_project(project), node_id)
    view = extract_section_view(node, section_id)
    if view is None:
        typer.echo(f"Section '{section_id}' not found.")
        raise typer.Exit(1)
    if raw:
        typer.echo(view.markdown)
    else:
        typer.echo(render_node_content(view.markdown, view.annotations, view.animations))


@app.command()
def context(
    node_id: str = typer.Argument(..., help="Node ID"),
    visible_text: Annotated[
        str | None,
        typer.Option("--visible-text", "-t", help="Text currently shown to the user"),
    ] = None,
    project: ProjectOption = None,
) -> None:
    """Print the neighborhood payload sent to content generation."""
    proj = _open_project(project)
    node = _find_node(proj, node_id)
    store = GraphStore(nodes=proj.nodes, edges=proj.edges)
    payload = build_node_context(store, node, visible_text=visible_text).to_payload()
    typer.echo(json_mod.dumps(payload, ensure_ascii=False, indent=2))


@app.command(name="export-markdown")
def export_markdown(
    project: ProjectOption = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout"),
    ] = None,
) -> None:
    """Export the whole project as one Markdown document."""
    md = render_project_as_markdown(_open_project(project))
    if output:
        output.write_text(md, encoding="utf-8")
        logger.info("Wrote {}", output)
    else:
        typer.echo(md)


@app.command(name="export-json")
def export_json(
    project: ProjectOption = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to file instead of stdout"),
    ] = None,
) -> None:
    """Export the normalized project as JSON."""
    proj = _open_project(project)
    if output:
        dump_project(proj, output)
        logger.info("Wrote {}", output)
    else:
        typer.echo(json_mod.dumps(project_to_dict(proj), ensure_ascii=False, indent=2))


@app.command()
def layout(
    root_id: str = typer.Argument(..., help="Root node of the tree to place"),
    project: ProjectOption = None,
    x: float = typer.Option(0.0, "--x", help="Root x position"),
    y: float = typer.Option(0.0, "--y", help="Root y position"),
) -> None:
    """Auto-place a subtree and save the project."""
    path = project or resolve_project_file()
    proj = _open_project(path)
    _find_node(proj, root_id)
    store = tree_layout(GraphStore(nodes=proj.nodes, edges=proj.edges), root_id, Position(x, y))
    dump_project(replace(proj, nodes=store.nodes, edges=store.edges), path)
    typer.echo(f"Placed subtree of {root_id}, saved {path}")


@app.command()
def generate(
    node_id: str = typer.Argument(..., help="Node ID"),
    description: Annotated[
        str | None,
        typer.Option("--description", "-d", help="Extra guidance for generation"),
    ] = None,
    language: str = typer.Option("zh-CN", "--language", "-l", help="Content language"),
    length: str = typer.Option("medium", "--length", help="short, medium or long"),
    project: ProjectOption = None,
) -> None:
    """Generate a node's content through the backend and save the project."""
    from nexlearn.api import GenerationApi
    from nexlearn.core.generation import generate_node

    path = project or resolve_project_file()
    proj = _open_project(path)
    _find_node(proj, node_id)

    workspace = Workspace(GraphStore(nodes=proj.nodes, edges=proj.edges))
    try:
        store = asyncio.run(
            generate_node(
                workspace,
                GenerationApi(),
                node_id,
                description=description,
                language=language,
                length=length,
            )
        )
    except GenerationInProgressError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e

    dump_project(replace(proj, nodes=store.nodes, edges=store.edges), path)
    node = store.get_node(node_id)
    status = node.status if node else "deleted"
    typer.echo(f"Node {node_id}: {status}")
    if status == "error":
        raise typer.Exit(1)


@app.command()
def check(project: ProjectOption = None) -> None:
    """Load and normalize a project file, reporting what was found."""
    proj = _open_project(project)
    typer.echo(f"OK: {proj.name} ({len(proj.nodes)} nodes, {len(proj.edges)} edges)")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from nexlearn.mcp.server import run_mcp_server

    run_mcp_server()
