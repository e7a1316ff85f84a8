"""Merge range-tagged annotations and animations into inline markup."""

import html
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from nexlearn.core.document.ranges import resolve_range, validate_range
from nexlearn.models.node import Animation, Annotation, TextRange

OverlayKind = Literal["highlight", "comment", "favorite", "animation"]

# Everything the engine inserts; used by strip_overlay.
_OVERLAY_TAG_RE = re.compile(
    r'<span id="fav-[^"]*" class="favorite-highlight" data-favorite-id="[^"]*">'
    r'|<span class="annotation-highlight" title="[^"]*">'
    r'|<span class="animation-link" data-animation-id="[^"]*" data-animation-status="[^"]*">'
    r'|<a href="highlight:true">'
    r"|</span>|</a>"
)


@dataclass(frozen=True)
class OverlayEntity:
    """A range-tagged thing to embed in the rendered text."""

    range: TextRange
    kind: OverlayKind
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _Marker:
    index: int
    is_end: bool
    seq: int
    entity: OverlayEntity

    def sort_key(self) -> tuple[int, int, int, int]:
        # Ends before starts. Among ends, the latest opened closes first;
        # among starts, the widest range opens first.
        if self.is_end:
            return (self.index, 0, -self.entity.range.start, -self.seq)
        return (self.index, 1, -self.entity.range.end, self.seq)


def _annotation_kind(annotation: Annotation) -> OverlayKind:
    if annotation.type == "favorite":
        return "favorite"
    if annotation.type == "highlight":
        return "highlight"
    # comment, note and untyped legacy records share the comment style
    return "comment"


def entities_from_node(
    content: str,
    annotations: Iterable[Annotation] = (),
    animations: Iterable[Animation] = (),
) -> list[OverlayEntity]:
    """Collect overlay entities for a document, resolving their ranges.

    A missing or stale range falls back to the first occurrence of the
    annotation text, or of ``meta["note"]`` for animations.
    Entities that cannot be resolved are dropped.
    """
    entities: list[OverlayEntity] = []

    for anno in annotations:
        resolved = resolve_range(content, anno.range, anno.text)
        if resolved is None:
            continue
        entities.append(
            OverlayEntity(
                range=resolved,
                kind=_annotation_kind(anno),
                payload={"id": anno.id, "text": anno.text},
            )
        )

    for anim in animations:
        note = anim.meta.get("note")
        resolved = resolve_range(content, anim.range, note if isinstance(note, str) else None)
        if resolved is None:
            continue
        entities.append(
            OverlayEntity(
                range=resolved,
                kind="animation",
                payload={"id": anim.id, "status": anim.status or "completed"},
            )
        )

    return entities


def _open_tag(entity: OverlayEntity) -> str:
    payload = entity.payload
    if entity.kind == "favorite":
        fav_id = html.escape(str(payload.get("id", "")), quote=True)
        return f'<span id="fav-{fav_id}" class="favorite-highlight" data-favorite-id="{fav_id}">'
    if entity.kind == "comment":
        title = html.escape(str(payload.get("text", "")), quote=True)
        return f'<span class="annotation-highlight" title="{title}">'
    if entity.kind == "highlight":
        return '<a href="highlight:true">'
    anim_id = html.escape(str(payload.get("id", "")), quote=True)
    status = html.escape(str(payload.get("status", "completed")), quote=True)
    return (
        f'<span class="animation-link" data-animation-id="{anim_id}" '
        f'data-animation-status="{status}">'
    )


def _close_tag(entity: OverlayEntity) -> str:
    return "</a>" if entity.kind == "highlight" else "</span>"


def apply_overlay(text: str, entities: Sequence[OverlayEntity]) -> str:
    """Embed entities into text as nested inline markup.

    Each entity yields a start and an end marker. Markers are swept in offset
    order; at equal offsets end markers come first, so adjacent regions are
    closed before the next one opens. Entities with invalid ranges are skipped.

    Args:
        text: The document text.
        entities: Entities whose ranges index into text.

    Returns:
        Markup that reduces to ``text`` once the inserted tags are removed.
    """
    if not text:
        return ""

    markers: list[_Marker] = []
    for seq, entity in enumerate(entities):
        if not validate_range(entity.range, len(text)):
            continue
        markers.append(_Marker(index=entity.range.start, is_end=False, seq=seq, entity=entity))
        markers.append(_Marker(index=entity.range.end, is_end=True, seq=seq, entity=entity))

    if not markers:
        return text

    markers.sort(key=_Marker.sort_key)

    parts: list[str] = []
    last_index = 0
    for marker in markers:
        if marker.index > last_index:
            parts.append(text[last_index : marker.index])
            last_index = marker.index
        parts.append(_close_tag(marker.entity) if marker.is_end else _open_tag(marker.entity))

    if last_index < len(text):
        parts.append(text[last_index:])

    return "".join(parts)


def render_node_content(
    content: str,
    annotations: Iterable[Annotation] = (),
    animations: Iterable[Animation] = (),
) -> str:
    """Render a node's content with all of its annotations and animations."""
    return apply_overlay(content, entities_from_node(content, annotations, animations))


def strip_overlay(markup: str) -> str:
    """Remove every tag inserted by apply_overlay."""
    return _OVERLAY_TAG_RE.sub("", markup)
