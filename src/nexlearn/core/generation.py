"""Per-node content generation: idle -> generating -> completed | error."""

import asyncio
from dataclasses import replace
from typing import Any

from loguru import logger

from nexlearn.core.document.headings import parse_toc
from nexlearn.core.graph.context import build_node_context
from nexlearn.core.graph.store import GraphStore, Workspace
from nexlearn.errors import GenerationInProgressError, NodeNotFoundError
from nexlearn.models.node import GenerationResult
from nexlearn.protocols import GenerationProtocol


def begin_generation(store: GraphStore, node_id: str) -> GraphStore:
    """Mark a node as generating.

    Raises:
        NodeNotFoundError: The node does not exist.
        GenerationInProgressError: The node is already generating.
    """
    node = store.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    if node.status == "generating":
        msg = f"Node {node_id!r} is already generating"
        raise GenerationInProgressError(msg)
    return store.update_node(node_id, status="generating", progress=None)


def complete_generation(store: GraphStore, node_id: str, result: GenerationResult) -> GraphStore:
    """Store generated content, refresh the stored TOC and bump the version."""
    node = store.get_node(node_id)
    if node is None:
        logger.warning("Generation finished for deleted node {}, discarding", node_id)
        return store
    return store.update_node(
        node_id,
        summary=result.summary,
        content_md=result.content_md,
        toc=parse_toc(result.content_md),
        status="completed",
        progress=100,
        metadata=replace(node.metadata, version=node.metadata.version + 1),
    )


def fail_generation(store: GraphStore, node_id: str) -> GraphStore:
    """Mark a node as failed. Its content is left as it was."""
    if store.get_node(node_id) is None:
        return store
    return store.update_node(node_id, status="error", progress=None)


def build_generation_request(
    store: GraphStore,
    node_id: str,
    *,
    description: str | None = None,
    language: str = "zh-CN",
    length: str = "medium",
) -> dict[str, Any]:
    """Build the request body sent to the generation backend."""
    node = store.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    context = build_node_context(store, node, visible_text=description)
    request: dict[str, Any] = {
        "theme": node.theme,
        "language": language,
        "length": length,
        "context": context.to_payload(),
    }
    if description and description.strip():
        request["description"] = description.strip()
    return request


async def generate_node(
    workspace: Workspace,
    client: GenerationProtocol,
    node_id: str,
    *,
    description: str | None = None,
    language: str = "zh-CN",
    length: str = "medium",
) -> GraphStore:
    """Generate content for a node.

    The transition into ``generating`` is applied before the first await.
    The terminal transition is applied to whatever snapshot the workspace
    holds when the backend answers, so a late answer overwrites newer edits.

    Args:
        workspace: Holder of the current snapshot; updated in place.
        client: Generation backend. Called in a worker thread.
        node_id: Node to generate.
        description: Extra guidance, also sent as the visible text.
        language: Content language.
        length: "short", "medium" or "long".

    Returns:
        The snapshot after the terminal transition.
    """
    request = build_generation_request(
        workspace.store, node_id, description=description, language=language, length=length
    )
    workspace.apply(begin_generation(workspace.store, node_id))
    logger.info("Generating content for node {}", node_id)

    try:
        result = await asyncio.to_thread(client.generate_node, node_id, request)
    except Exception:
        logger.exception("Generation failed for node {}", node_id)
        return workspace.apply(fail_generation(workspace.store, node_id))

    logger.info("Generated content for node {} ({} chars)", node_id, len(result.content_md))
    return workspace.apply(complete_generation(workspace.store, node_id, result))
