"""Derive a heading hierarchy (TOC, mind-map, sections) from Markdown."""

import re
from collections.abc import Iterable
from dataclasses import replace

from nexlearn.config import MAX_TOC_LEVEL, MINDMAP_ROOT_ID
from nexlearn.models.node import (
    Animation,
    Annotation,
    MindMap,
    MindMapEdge,
    MindMapNode,
    MindMapStats,
    Node,
    Projections,
    SectionBounds,
    SectionView,
    TextRange,
    TocItem,
)

_HEADING_RE = re.compile(rf"^(#{{1,{MAX_TOC_LEVEL}}})\s+(.+)$")
_FENCE = "```"


def _slugify(text: str) -> str:
    return re.sub(r"\s+", "-", text).lower()


def parse_toc(markdown: str) -> tuple[TocItem, ...]:
    """Extract headings from Markdown, ignoring fenced code blocks.

    A line whose stripped form starts with a triple backtick toggles the fence
    state and is never itself a heading.
    """
    if not markdown:
        return ()

    toc: list[TocItem] = []
    in_fence = False
    for index, raw in enumerate(markdown.split("\n")):
        line = raw.strip()
        if line.startswith(_FENCE):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_RE.match(line)
        if not match:
            continue
        level = len(match.group(1))
        text = match.group(2).strip()
        if not text:
            continue
        toc.append(TocItem(level=level, text=text, anchor=f"h{level}-{_slugify(text)}", line_index=index))

    return tuple(toc)


def line_start_offsets(markdown: str) -> list[int]:
    """Return the char offset of each line start, plus the end-of-text sentinel.

    The sentinel is ``len(markdown) + 1`` (as if the text ended with a newline),
    so ``offsets[i + 1] - offsets[i]`` is always line length plus one.
    """
    offsets = [0]
    total = 0
    for line in markdown.split("\n"):
        total += len(line) + 1
        offsets.append(total)
    return offsets


def _mindmap_ids(toc: tuple[TocItem, ...]) -> list[str]:
    """Anchors, made unique so repeated headings still get distinct ids."""
    seen: dict[str, int] = {}
    ids: list[str] = []
    for item in toc:
        count = seen.get(item.anchor, 0)
        seen[item.anchor] = count + 1
        ids.append(item.anchor if count == 0 else f"{item.anchor}-{count}")
    return ids


def _entity_starts_within(text_range: TextRange | None, start_char: int, end_char: int) -> bool:
    return text_range is not None and start_char <= text_range.start < end_char


def _section_stats(
    start_char: int,
    end_char: int,
    annotations: tuple[Annotation, ...],
    animations: tuple[Animation, ...],
) -> MindMapStats:
    in_section = [a for a in annotations if _entity_starts_within(a.range, start_char, end_char)]
    return MindMapStats(
        has_annotations=any(a.type != "favorite" for a in in_section),
        has_favorites=any(a.type == "favorite" for a in in_section),
        has_animations=any(
            _entity_starts_within(a.range, start_char, end_char) for a in animations
        ),
    )


def build_projections(
    markdown: str,
    *,
    title: str = "",
    annotations: Iterable[Annotation] = (),
    animations: Iterable[Animation] = (),
) -> Projections:
    """Build the table of contents and mind-map of a document in one pass.

    Headings attach to the nearest strictly shallower heading on a stack
    seeded with a synthetic root (level 0). Headings of equal level become
    siblings. Every mind-map node is decorated with whether its section holds
    annotations, favorites or animations (by range start).

    Args:
        markdown: The document text.
        title: Text of the synthetic root node.
        annotations: Annotations of the document.
        animations: Animations of the document.

    Returns:
        Projections with the flat TOC and the mind-map tree.
    """
    annotations = tuple(annotations)
    animations = tuple(animations)
    toc = parse_toc(markdown)
    lines = markdown.split("\n")
    offsets = line_start_offsets(markdown)
    ids = _mindmap_ids(toc)

    first_heading_line = toc[0].line_index if toc else len(lines)
    root_end_char = offsets[first_heading_line]

    parent_of: dict[str, str | None] = {MINDMAP_ROOT_ID: None}
    children_of: dict[str, list[str]] = {MINDMAP_ROOT_ID: []}
    edges: list[MindMapEdge] = []
    pending: list[MindMapNode] = [
        MindMapNode(
            id=MINDMAP_ROOT_ID,
            text=title,
            has_content=any(line.strip() for line in lines[:first_heading_line]),
            stats=_section_stats(0, root_end_char, annotations, animations),
        )
    ]

    stack: list[tuple[int, str]] = [(0, MINDMAP_ROOT_ID)]
    for index, item in enumerate(toc):
        node_id = ids[index]
        while len(stack) > 1 and stack[-1][0] >= item.level:
            stack.pop()
        parent_id = stack[-1][1]

        end_line = toc[index + 1].line_index if index + 1 < len(toc) else len(lines)
        # Stats include the heading line itself, so marks on the title count.
        start_char = offsets[item.line_index]
        end_char = offsets[end_line]

        parent_of[node_id] = parent_id
        children_of[node_id] = []
        children_of[parent_id].append(node_id)
        edges.append(MindMapEdge(id=f"edge-{parent_id}-{node_id}", from_id=parent_id, to_id=node_id))
        pending.append(
            MindMapNode(
                id=node_id,
                text=item.text,
                parent_id=parent_id,
                anchor=item.anchor,
                has_content=any(line.strip() for line in lines[item.line_index + 1 : end_line]),
                stats=_section_stats(start_char, end_char, annotations, animations),
            )
        )
        stack.append((item.level, node_id))

    nodes = tuple(replace(n, children=tuple(children_of[n.id])) for n in pending)
    return Projections(toc=toc, mindmap=MindMap(nodes=nodes, edges=tuple(edges)))


def project_node(node: Node) -> Projections:
    """Projections for a node's current content and entities."""
    return build_projections(
        node.content_md,
        title=node.theme,
        annotations=node.annotations,
        animations=node.animations,
    )


def section_bounds(markdown: str, section_id: str, *, title: str = "") -> SectionBounds | None:
    """Locate a section by mind-map id.

    The root section covers everything before the first heading and is shown
    behind a synthetic ``# {title}`` heading. A heading section runs from its
    heading line to the next heading line (exclusive) or the end of the text.
    Returns None for an unknown id.
    """
    toc = parse_toc(markdown)
    lines = markdown.split("\n")
    offsets = line_start_offsets(markdown)
    text_end = len(markdown)

    if section_id == MINDMAP_ROOT_ID:
        first_heading_line = toc[0].line_index if toc else len(lines)
        return SectionBounds(
            section_id=section_id,
            start_char=0,
            end_char=min(offsets[first_heading_line], text_end),
            start_line=0,
            end_line=first_heading_line,
            prefix=f"# {title}\n\n",
        )

    ids = _mindmap_ids(toc)
    if section_id not in ids:
        return None

    index = ids.index(section_id)
    item = toc[index]
    end_line = toc[index + 1].line_index if index + 1 < len(toc) else len(lines)
    return SectionBounds(
        section_id=section_id,
        start_char=offsets[item.line_index],
        end_char=min(offsets[end_line], text_end),
        start_line=item.line_index,
        end_line=end_line,
    )


def extract_section(markdown: str, bounds: SectionBounds) -> str:
    """Return the section's text as shown standalone (prefix included)."""
    lines = markdown.split("\n")
    return bounds.prefix + "\n".join(lines[bounds.start_line : bounds.end_line])


def remap_range(bounds: SectionBounds, text_range: TextRange) -> TextRange | None:
    """Map a document range into the standalone section view.

    Only ranges that start inside the section are kept.
    """
    if not bounds.start_char <= text_range.start < bounds.end_char:
        return None
    return text_range.shifted(len(bounds.prefix) - bounds.start_char)


def unmap_range(bounds: SectionBounds, text_range: TextRange) -> TextRange | None:
    """Map a range from the standalone section view back into the document.

    Inverse of remap_range. Ranges starting inside the synthetic prefix or
    ending past the section have no document counterpart and yield None.
    """
    section_end = len(bounds.prefix) + bounds.end_char - bounds.start_char
    if text_range.start < len(bounds.prefix) or text_range.end > section_end:
        return None
    return text_range.shifted(bounds.start_char - len(bounds.prefix))


def extract_section_view(node: Node, section_id: str) -> SectionView | None:
    """Extract one section of a node with its annotations and animations remapped."""
    bounds = section_bounds(node.content_md, section_id, title=node.theme)
    if bounds is None:
        return None

    annotations: list[Annotation] = []
    for anno in node.annotations:
        if anno.range is None:
            continue
        remapped = remap_range(bounds, anno.range)
        if remapped is not None:
            annotations.append(replace(anno, range=remapped))

    animations: list[Animation] = []
    for anim in node.animations:
        if anim.range is None:
            continue
        remapped = remap_range(bounds, anim.range)
        if remapped is not None:
            animations.append(replace(anim, meta={**anim.meta, "range": remapped}))

    return SectionView(
        bounds=bounds,
        markdown=extract_section(node.content_md, bounds),
        annotations=tuple(annotations),
        animations=tuple(animations),
    )
