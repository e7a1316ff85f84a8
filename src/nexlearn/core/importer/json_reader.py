"""Parse project JSON dumps into domain models."""

import math
import uuid
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from nexlearn.core.graph.store import GraphStore
from nexlearn.errors import ProjectImportError
from nexlearn.models.node import (
    ANCHOR_POSITIONS,
    ANNOTATION_TYPES,
    NODE_STATUSES,
    Animation,
    Annotation,
    Edge,
    EdgeMeta,
    Node,
    NodeMetadata,
    Position,
    Project,
    ProjectMetadata,
    ProjectSettings,
    TextRange,
    TocItem,
)

DEFAULT_NODE_THEME = "未命名"
DEFAULT_PROJECT_NAME = "导入项目"


def _new_id() -> str:
    return str(uuid.uuid4())


def _str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return isinstance(value, int) or math.isfinite(value)


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO string or epoch milliseconds; fall back to now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    if _number(value):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (ValueError, OverflowError, OSError):
            logger.debug("Timestamp out of range: {}", value)
    return datetime.now(tz=UTC)


def parse_range(raw: Any) -> TextRange | None:
    if not isinstance(raw, dict):
        return None
    start, end = raw.get("start"), raw.get("end")
    if not (_number(start) and _number(end)):
        return None
    return TextRange(start=int(start), end=int(end))


def parse_annotation(raw: Any) -> Annotation:
    """Normalize an annotation record. Unknown types become None."""
    if not isinstance(raw, dict):
        return Annotation(id=_new_id(), text="", author="unknown", timestamp=parse_datetime(None))
    ann_type = raw.get("type")
    return Annotation(
        id=_str(raw.get("id"), _new_id()),
        range=parse_range(raw.get("range")),
        text=_str(raw.get("text"), ""),
        original_text=_opt_str(raw.get("originalText")),
        author=_str(raw.get("author"), "unknown"),
        timestamp=parse_datetime(raw.get("timestamp")),
        type=ann_type if ann_type in ANNOTATION_TYPES else None,
    )


def parse_animation(raw: Any) -> Animation | None:
    if not isinstance(raw, dict):
        return None
    meta = dict(raw["meta"]) if isinstance(raw.get("meta"), dict) else {}
    if "range" in meta:
        meta["range"] = parse_range(meta["range"])
        if meta["range"] is None:
            del meta["range"]
    return Animation(
        id=_str(raw.get("id"), _new_id()),
        file_path=_str(raw.get("filePath"), ""),
        meta=meta,
    )


def _parse_toc_item(raw: Any, index: int) -> TocItem | None:
    if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
        return None
    level = raw.get("level")
    return TocItem(
        level=int(level) if _number(level) else 1,
        text=raw["text"],
        anchor=_str(raw.get("anchor"), ""),
        line_index=int(raw["lineIndex"]) if _number(raw.get("lineIndex")) else index,
    )


def parse_node(raw: Any, project_id: str) -> Node:
    """Normalize a node record, filling defaults for missing fields."""
    now = datetime.now(tz=UTC)
    if not isinstance(raw, dict):
        return Node(
            id=_new_id(),
            project_id=project_id,
            theme=DEFAULT_NODE_THEME,
            position=Position(100, 100),
            metadata=NodeMetadata(created_at=now, updated_at=now),
            status="completed",
        )

    metadata = raw["metadata"] if isinstance(raw.get("metadata"), dict) else {}
    position = raw["position"] if isinstance(raw.get("position"), dict) else {}
    toc_raw = raw["toc"] if isinstance(raw.get("toc"), list) else []
    annotations_raw = raw["annotations"] if isinstance(raw.get("annotations"), list) else []
    animations_raw = raw["animations"] if isinstance(raw.get("animations"), list) else []
    status = raw.get("status")
    progress = raw.get("progress")
    version = metadata.get("version")

    return Node(
        id=_str(raw.get("id"), _new_id()),
        project_id=project_id,
        parent_id=_opt_str(raw.get("parentId")) or None,
        theme=_str(raw.get("theme"), DEFAULT_NODE_THEME),
        summary=_str(raw.get("summary"), ""),
        content_md=_str(raw.get("contentMd"), ""),
        toc=tuple(t for t in (_parse_toc_item(r, i) for i, r in enumerate(toc_raw)) if t),
        annotations=tuple(parse_annotation(a) for a in annotations_raw),
        favorites=raw.get("favorites") is True,
        animations=tuple(a for a in (parse_animation(r) for r in animations_raw) if a),
        position=Position(
            x=position["x"] if _number(position.get("x")) else 100,
            y=position["y"] if _number(position.get("y")) else 100,
        ),
        metadata=NodeMetadata(
            created_at=parse_datetime(metadata.get("createdAt")),
            updated_at=parse_datetime(metadata.get("updatedAt")),
            version=int(version) if _number(version) else 1,
        ),
        status=status if status in NODE_STATUSES else "completed",
        progress=int(progress) if _number(progress) else None,
    )


def parse_edge(raw: Any, project_id: str) -> Edge | None:
    """Normalize an edge record; None when it lacks endpoints."""
    if not isinstance(raw, dict):
        return None
    from_id, to_id = raw.get("fromNodeId"), raw.get("toNodeId")
    if not isinstance(from_id, str) or not isinstance(to_id, str):
        return None
    meta = raw["meta"] if isinstance(raw.get("meta"), dict) else {}
    from_anchor = raw.get("fromAnchor")
    to_anchor = raw.get("toAnchor")
    return Edge(
        id=_str(raw.get("id"), _new_id()),
        project_id=project_id,
        from_node_id=from_id,
        to_node_id=to_id,
        from_anchor=from_anchor if from_anchor in ANCHOR_POSITIONS else "bottom",
        to_anchor=to_anchor if to_anchor in ANCHOR_POSITIONS else "top",
        meta=EdgeMeta(
            type=_opt_str(meta.get("type")),
            weight=meta["weight"] if _number(meta.get("weight")) else None,
            label=_opt_str(meta.get("label")),
        ),
    )


def parse_settings(raw: Any, defaults: ProjectSettings) -> ProjectSettings:
    if not isinstance(raw, dict):
        return defaults
    theme = raw.get("theme")
    return ProjectSettings(
        theme=theme if theme in ("light", "dark") else defaults.theme,
        default_language=_str(raw.get("defaultLanguage"), defaults.default_language),
        auto_save=raw["autoSave"] if isinstance(raw.get("autoSave"), bool) else defaults.auto_save,
        show_grid=raw["showGrid"] if isinstance(raw.get("showGrid"), bool) else True,
        snap_to_grid=raw["snapToGrid"] if isinstance(raw.get("snapToGrid"), bool) else False,
    )


def parse_project_data(
    data: Any,
    *,
    user_id: str = "anonymous",
    default_settings: ProjectSettings = ProjectSettings(),
) -> Project:
    """Parse a full project dump.

    Records are normalized field by field. Edges whose endpoints do not exist
    are dropped.

    Args:
        data: Decoded JSON document.
        user_id: Owner of the imported project.
        default_settings: Settings used where the dump has none.

    Returns:
        The normalized Project.

    Raises:
        ProjectImportError: The root is not an object, or nodes/edges are
            present but not lists.
    """
    if not isinstance(data, dict):
        msg = "Project root must be a JSON object"
        raise ProjectImportError(msg)

    for key in ("nodes", "edges"):
        if key in data and not isinstance(data[key], list):
            msg = f"Project field {key!r} must be a list"
            raise ProjectImportError(msg)

    project_id = _str(data.get("id"), _new_id())
    nodes = tuple(parse_node(n, project_id) for n in data.get("nodes", []))
    edges = tuple(e for e in (parse_edge(r, project_id) for r in data.get("edges", [])) if e)

    store = GraphStore(nodes=nodes, edges=edges).normalized()
    metadata = data["metadata"] if isinstance(data.get("metadata"), dict) else {}

    project = Project(
        id=project_id,
        user_id=_str(data.get("userId"), user_id),
        name=_str(data.get("name"), DEFAULT_PROJECT_NAME),
        nodes=store.nodes,
        edges=store.edges,
        settings=parse_settings(data.get("settings"), default_settings),
        metadata=ProjectMetadata(
            created_at=parse_datetime(metadata.get("createdAt")),
            updated_at=parse_datetime(metadata.get("updatedAt")),
            last_opened_at=(
                parse_datetime(metadata["lastOpenedAt"]) if metadata.get("lastOpenedAt") else None
            ),
        ),
    )
    logger.debug(
        "Parsed project {} ({} nodes, {} edges)", project.name, len(project.nodes), len(project.edges)
    )
    return project
