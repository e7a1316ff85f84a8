"""Serialize projects to the JSON wire format."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from nexlearn.models.node import (
    Animation,
    Annotation,
    Edge,
    MindMap,
    Node,
    Project,
    TextRange,
    TocItem,
)


def _iso(value: datetime) -> str:
    return value.isoformat()


def range_to_dict(text_range: TextRange) -> dict[str, int]:
    return {"start": text_range.start, "end": text_range.end}


def toc_item_to_dict(item: TocItem) -> dict[str, Any]:
    return {"level": item.level, "text": item.text, "anchor": item.anchor, "lineIndex": item.line_index}


def mindmap_to_dict(mindmap: MindMap) -> dict[str, Any]:
    """Derived mind-map in the shape the renderer consumes."""
    return {
        "nodes": [
            {
                "id": n.id,
                "text": n.text,
                "parentId": n.parent_id,
                "children": list(n.children),
                "anchor": n.anchor,
                "hasContent": n.has_content,
                "stats": {
                    "hasAnnotations": n.stats.has_annotations,
                    "hasFavorites": n.stats.has_favorites,
                    "hasAnimations": n.stats.has_animations,
                },
            }
            for n in mindmap.nodes
        ],
        "edges": [{"id": e.id, "fromId": e.from_id, "toId": e.to_id} for e in mindmap.edges],
    }


def annotation_to_dict(annotation: Annotation) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": annotation.id,
        "text": annotation.text,
        "author": annotation.author,
        "timestamp": _iso(annotation.timestamp),
    }
    if annotation.range is not None:
        out["range"] = range_to_dict(annotation.range)
    if annotation.original_text is not None:
        out["originalText"] = annotation.original_text
    if annotation.type is not None:
        out["type"] = annotation.type
    return out


def animation_to_dict(animation: Animation) -> dict[str, Any]:
    meta = {
        k: range_to_dict(v) if isinstance(v, TextRange) else v for k, v in animation.meta.items()
    }
    return {"id": animation.id, "filePath": animation.file_path, "meta": meta}


def node_to_dict(node: Node) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": node.id,
        "projectId": node.project_id,
        "theme": node.theme,
        "summary": node.summary,
        "contentMd": node.content_md,
        "toc": [toc_item_to_dict(t) for t in node.toc],
        "annotations": [annotation_to_dict(a) for a in node.annotations],
        "favorites": node.favorites,
        "animations": [animation_to_dict(a) for a in node.animations],
        "position": {"x": node.position.x, "y": node.position.y},
        "metadata": {
            "createdAt": _iso(node.metadata.created_at),
            "updatedAt": _iso(node.metadata.updated_at),
            "version": node.metadata.version,
        },
        "status": node.status,
    }
    if node.parent_id is not None:
        out["parentId"] = node.parent_id
    if node.progress is not None:
        out["progress"] = node.progress
    return out


def edge_to_dict(edge: Edge) -> dict[str, Any]:
    meta = {
        k: v
        for k, v in (("type", edge.meta.type), ("weight", edge.meta.weight), ("label", edge.meta.label))
        if v is not None
    }
    return {
        "id": edge.id,
        "projectId": edge.project_id,
        "fromNodeId": edge.from_node_id,
        "toNodeId": edge.to_node_id,
        "fromAnchor": edge.from_anchor,
        "toAnchor": edge.to_anchor,
        "meta": meta,
    }


def project_to_dict(project: Project, *, exported_at: datetime | None = None) -> dict[str, Any]:
    """Full project dump: nodes, edges, settings and metadata."""
    metadata: dict[str, Any] = {
        "createdAt": _iso(project.metadata.created_at),
        "updatedAt": _iso(project.metadata.updated_at),
    }
    if project.metadata.last_opened_at is not None:
        metadata["lastOpenedAt"] = _iso(project.metadata.last_opened_at)
    settings = project.settings
    return {
        "id": project.id,
        "userId": project.user_id,
        "name": project.name,
        "nodes": [node_to_dict(n) for n in project.nodes],
        "edges": [edge_to_dict(e) for e in project.edges],
        "settings": {
            "theme": settings.theme,
            "defaultLanguage": settings.default_language,
            "autoSave": settings.auto_save,
            "showGrid": settings.show_grid,
            "snapToGrid": settings.snap_to_grid,
        },
        "metadata": metadata,
        "exportedAt": _iso(exported_at or datetime.now(tz=UTC)),
    }


def dump_project(project: Project, path: Path) -> None:
    """Write a project dump to path."""
    path.write_text(
        json.dumps(project_to_dict(project), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
