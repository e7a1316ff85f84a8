"""Domain models for the knowledge graph."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

NodeStatus = Literal["idle", "generating", "completed", "error"]
AnchorPosition = Literal["top", "bottom"]
AnnotationType = Literal["highlight", "comment", "note", "favorite"]
Theme = Literal["light", "dark"]

NODE_STATUSES: tuple[str, ...] = ("idle", "generating", "completed", "error")
ANCHOR_POSITIONS: tuple[str, ...] = ("top", "bottom")
ANNOTATION_TYPES: tuple[str, ...] = ("highlight", "comment", "note", "favorite")


@dataclass(frozen=True)
class Position:
    """A point on the canvas."""

    x: float
    y: float


@dataclass(frozen=True)
class TextRange:
    """A half-open, 0-based character span ``[start, end)``."""

    start: int
    end: int

    def shifted(self, delta: int) -> "TextRange":
        return TextRange(start=self.start + delta, end=self.end + delta)


@dataclass(frozen=True)
class Annotation:
    """User-authored metadata anchored to a range of a node's content."""

    id: str
    text: str
    author: str
    timestamp: datetime
    range: TextRange | None = None
    original_text: str | None = None
    type: AnnotationType | None = None


@dataclass(frozen=True)
class Animation:
    """An interactive animation linked to a span of a node's content.

    ``meta`` may hold ``range`` (a TextRange), ``status`` and ``note`` (the
    selected text, used when the range is missing).
    """

    id: str
    file_path: str = ""
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def range(self) -> TextRange | None:
        value = self.meta.get("range")
        return value if isinstance(value, TextRange) else None

    @property
    def status(self) -> str | None:
        return self.meta.get("status")


@dataclass(frozen=True)
class TocItem:
    """A heading found in a node's Markdown."""

    level: int
    text: str
    anchor: str
    line_index: int


@dataclass(frozen=True)
class NodeMetadata:
    created_at: datetime
    updated_at: datetime
    version: int = 1


@dataclass(frozen=True)
class Node:
    """A unit of knowledge content with its own Markdown document."""

    id: str
    project_id: str
    theme: str
    position: Position
    metadata: NodeMetadata
    parent_id: str | None = None
    summary: str = ""
    content_md: str = ""
    toc: tuple[TocItem, ...] = ()
    annotations: tuple[Annotation, ...] = ()
    favorites: bool = False
    animations: tuple[Animation, ...] = ()
    status: NodeStatus = "idle"
    progress: int | None = None


@dataclass(frozen=True)
class EdgeMeta:
    type: str | None = None
    weight: float | None = None
    label: str | None = None


@dataclass(frozen=True)
class Edge:
    """A directed connection between two nodes, independent of parentage."""

    id: str
    project_id: str
    from_node_id: str
    to_node_id: str
    from_anchor: AnchorPosition = "bottom"
    to_anchor: AnchorPosition = "top"
    meta: EdgeMeta = EdgeMeta()


@dataclass(frozen=True)
class ProjectSettings:
    theme: Theme = "light"
    default_language: str = "zh-CN"
    auto_save: bool = True
    show_grid: bool = True
    snap_to_grid: bool = False


@dataclass(frozen=True)
class ProjectMetadata:
    created_at: datetime
    updated_at: datetime
    last_opened_at: datetime | None = None


@dataclass(frozen=True)
class Project:
    """A user's full workspace: nodes, edges and settings."""

    id: str
    user_id: str
    name: str
    metadata: ProjectMetadata
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    settings: ProjectSettings = ProjectSettings()


@dataclass(frozen=True)
class MindMapStats:
    has_annotations: bool = False
    has_favorites: bool = False
    has_animations: bool = False


@dataclass(frozen=True)
class MindMapNode:
    """A heading (or the synthetic root) in a document's mind-map."""

    id: str
    text: str
    parent_id: str | None = None
    children: tuple[str, ...] = ()
    anchor: str | None = None
    has_content: bool = False
    stats: MindMapStats = MindMapStats()


@dataclass(frozen=True)
class MindMapEdge:
    id: str
    from_id: str
    to_id: str


@dataclass(frozen=True)
class MindMap:
    nodes: tuple[MindMapNode, ...]
    edges: tuple[MindMapEdge, ...]

    def get(self, node_id: str) -> MindMapNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)


@dataclass(frozen=True)
class Projections:
    """Derived views of a document, recomputed on every read."""

    toc: tuple[TocItem, ...]
    mindmap: MindMap


@dataclass(frozen=True)
class SectionBounds:
    """Character bounds of one section plus the prefix shown before it."""

    section_id: str
    start_char: int
    end_char: int
    start_line: int
    end_line: int
    prefix: str = ""


@dataclass(frozen=True)
class SectionView:
    """A section rendered standalone, with entity ranges remapped into it."""

    bounds: SectionBounds
    markdown: str
    annotations: tuple[Annotation, ...]
    animations: tuple[Animation, ...]


@dataclass(frozen=True)
class NodeSummary:
    id: str
    theme: str
    summary: str


@dataclass(frozen=True)
class NodeContext:
    """A node's graph neighborhood, as handed to content generation."""

    node_id: str
    parent: NodeSummary | None
    siblings: tuple[NodeSummary, ...]
    children: tuple[NodeSummary, ...]
    visible_text: str | None = None
    node_tree: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase shape expected by the generation backend."""

        def summary(s: NodeSummary) -> dict[str, str]:
            return {"id": s.id, "theme": s.theme, "summary": s.summary}

        payload: dict[str, Any] = {
            "siblingNodes": [summary(s) for s in self.siblings],
            "childNodes": [summary(c) for c in self.children],
        }
        if self.visible_text is not None:
            payload["visibleText"] = self.visible_text
        if self.node_tree is not None:
            payload["nodeTree"] = self.node_tree
        if self.parent is not None:
            payload["parentNode"] = summary(self.parent)
        return payload


@dataclass(frozen=True)
class GenerationResult:
    """Content produced by the generation backend for one node."""

    summary: str
    content_md: str
