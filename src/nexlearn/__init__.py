"""Knowledge-node graph with annotated Markdown documents."""

from nexlearn.core.document.headings import build_projections, remap_range, unmap_range
from nexlearn.core.document.overlay import OverlayEntity, apply_overlay
from nexlearn.core.graph.context import build_node_context
from nexlearn.core.graph.store import GraphStore, Workspace
from nexlearn.protocols import GenerationProtocol

__all__ = [
    "GenerationProtocol",
    "GraphStore",
    "OverlayEntity",
    "Workspace",
    "apply_overlay",
    "build_node_context",
    "build_projections",
    "remap_range",
    "unmap_range",
]
