"""Tests for TOC, mind-map and section projections."""

from datetime import UTC, datetime

from nexlearn.core.document.headings import (
    build_projections,
    extract_section,
    extract_section_view,
    line_start_offsets,
    parse_toc,
    remap_range,
    section_bounds,
    unmap_range,
)
from nexlearn.models.node import Animation, Annotation, TextRange
from tests.unit.conftest import ARTICLE_MD, make_node

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _anno(anno_id: str, start: int, end: int, anno_type: str | None = "comment") -> Annotation:
    return Annotation(
        id=anno_id,
        text=anno_id,
        author="me",
        timestamp=T0,
        range=TextRange(start, end),
        type=anno_type,  # type: ignore[arg-type]
    )


def test_parse_toc_levels_anchors_and_lines() -> None:
    toc = parse_toc(ARTICLE_MD)
    assert [(t.level, t.text, t.anchor, t.line_index) for t in toc] == [
        (1, "Python", "h1-python", 2),
        (2, "Typing", "h2-typing", 5),
        (2, "Tooling", "h2-tooling", 12),
        (1, "Rust", "h1-rust", 15),
    ]


def test_parse_toc_ignores_headings_inside_fences() -> None:
    md = "# Real\n```\n### not a heading\n```\n## After"
    assert [t.text for t in parse_toc(md)] == ["Real", "After"]


def test_parse_toc_accepts_level_four_only() -> None:
    md = "#### Four\n##### Five\n#NoSpace\n#   \n   ## Indented  "
    toc = parse_toc(md)
    assert [(t.level, t.text) for t in toc] == [(4, "Four"), (2, "Indented")]


def test_parse_toc_slug_collapses_whitespace() -> None:
    toc = parse_toc("## Hello   Big World")
    assert toc[0].anchor == "h2-hello-big-world"


def test_parse_toc_empty_document() -> None:
    assert parse_toc("") == ()


def test_line_start_offsets_include_sentinel() -> None:
    assert line_start_offsets("ab\nc") == [0, 3, 5]


def test_projection_hierarchy_for_h1_with_two_h2() -> None:
    projections = build_projections("# A\n## B\n## C", title="Doc")
    mindmap = projections.mindmap
    root = mindmap.get("root")
    a = mindmap.get("h1-a")
    b = mindmap.get("h2-b")
    c = mindmap.get("h2-c")
    assert root is not None and a is not None and b is not None and c is not None

    assert len(projections.toc) == 3
    assert root.parent_id is None
    assert a.parent_id == "root"
    assert b.parent_id == "h1-a"
    assert c.parent_id == "h1-a"
    assert root.children == ("h1-a",)
    assert a.children == ("h2-b", "h2-c")
    assert {(e.from_id, e.to_id) for e in mindmap.edges} == {
        ("root", "h1-a"),
        ("h1-a", "h2-b"),
        ("h1-a", "h2-c"),
    }


def test_projection_skipped_level_attaches_to_nearest_shallower() -> None:
    mindmap = build_projections("## Deep first\n# Top\n### Skip\n## Mid").mindmap
    parents = {n.id: n.parent_id for n in mindmap.nodes}
    assert parents["h2-deep-first"] == "root"
    assert parents["h1-top"] == "root"
    assert parents["h3-skip"] == "h1-top"
    assert parents["h2-mid"] == "h1-top"


def test_duplicate_headings_get_unique_ids() -> None:
    mindmap = build_projections("# Notes\n# Notes").mindmap
    assert [n.id for n in mindmap.nodes] == ["root", "h1-notes", "h1-notes-1"]
    assert mindmap.nodes[2].anchor == "h1-notes"


def test_root_has_content_only_with_text_before_first_heading() -> None:
    assert build_projections("intro\n# H").mindmap.nodes[0].has_content
    assert not build_projections("\n  \n# H").mindmap.nodes[0].has_content


def test_has_content_ignores_the_heading_line() -> None:
    mindmap = build_projections("# Empty\n\n# Full\ntext").mindmap
    assert not mindmap.get("h1-empty").has_content  # type: ignore[union-attr]
    assert mindmap.get("h1-full").has_content  # type: ignore[union-attr]


def test_section_stats_flag_annotations_favorites_and_animations() -> None:
    # Offsets: "Python" section starts at 18, "Typing" at 59, "Rust" at 157.
    projections = build_projections(
        ARTICLE_MD,
        title="Languages",
        annotations=[_anno("c1", 27, 33), _anno("f1", 164, 168, "favorite")],
        animations=[Animation(id="an1", meta={"range": TextRange(69, 72)})],
    )
    stats = {n.id: n.stats for n in projections.mindmap.nodes}
    assert stats["h1-python"].has_annotations
    assert not stats["h1-python"].has_favorites
    assert stats["h2-typing"].has_animations
    assert not stats["h2-tooling"].has_animations
    assert stats["h1-rust"].has_favorites
    assert not stats["h1-rust"].has_annotations
    assert not stats["root"].has_annotations


def test_section_stats_count_marks_on_the_heading_line() -> None:
    projections = build_projections("# Head\nbody", annotations=[_anno("c1", 2, 6)])
    assert projections.mindmap.get("h1-head").stats.has_annotations  # type: ignore[union-attr]


def test_section_remap_places_annotation_inside_extracted_text() -> None:
    content = "pre\n# H\nbody"
    bounds = section_bounds(content, "h1-h")
    assert bounds is not None
    extracted = extract_section(content, bounds)
    assert extracted == "# H\nbody"

    original = TextRange(content.index("body"), content.index("body") + 4)
    remapped = remap_range(bounds, original)
    assert remapped is not None
    assert extracted[remapped.start : remapped.end] == "body"
    assert unmap_range(bounds, remapped) == original


def test_root_section_prepends_title_heading() -> None:
    content = "pre\n# H\nbody"
    bounds = section_bounds(content, "root", title="Doc")
    assert bounds is not None
    assert bounds.prefix == "# Doc\n\n"
    assert (bounds.start_char, bounds.end_char) == (0, 4)
    extracted = extract_section(content, bounds)
    assert extracted == "# Doc\n\npre"

    remapped = remap_range(bounds, TextRange(0, 3))
    assert remapped is not None
    assert extracted[remapped.start : remapped.end] == "pre"
    assert unmap_range(bounds, remapped) == TextRange(0, 3)


def test_remap_excludes_ranges_starting_outside_section() -> None:
    content = "pre\n# H\nbody\n# Next\nmore"
    bounds = section_bounds(content, "h1-h")
    assert bounds is not None
    assert remap_range(bounds, TextRange(0, 3)) is None
    assert remap_range(bounds, TextRange(content.index("more"), len(content))) is None


def test_unmap_rejects_ranges_in_synthetic_prefix() -> None:
    bounds = section_bounds("pre", "root", title="Doc")
    assert bounds is not None
    assert unmap_range(bounds, TextRange(0, 3)) is None


def test_unmap_rejects_ranges_running_past_the_section() -> None:
    content = "pre\n# H\nbody\n# Next\nmore"
    bounds = section_bounds(content, "h1-h")
    assert bounds is not None
    assert unmap_range(bounds, TextRange(4, 8)) == TextRange(8, 12)
    # Would reach into "# Next" if shifted blindly.
    assert unmap_range(bounds, TextRange(4, 12)) is None


def test_section_bounds_unknown_id() -> None:
    assert section_bounds("# H", "h1-missing") is None


def test_root_section_without_headings_covers_everything() -> None:
    bounds = section_bounds("just text\nmore", "root", title="T")
    assert bounds is not None
    assert (bounds.start_char, bounds.end_char) == (0, len("just text\nmore"))


def test_extract_section_view_remaps_entities() -> None:
    content = "intro\n# H\nbody text"
    node = make_node(
        "n",
        theme="Doc",
        content_md=content,
        annotations=(
            _anno("in", content.index("body"), content.index("body") + 4),
            _anno("out", 0, 5),
            Annotation(id="legacy", text="body", author="me", timestamp=T0),
        ),
        animations=(
            Animation(id="an1", meta={"range": TextRange(content.index("text"), len(content))}),
        ),
    )
    view = extract_section_view(node, "h1-h")
    assert view is not None
    assert view.markdown == "# H\nbody text"
    assert [a.id for a in view.annotations] == ["in"]
    rng = view.annotations[0].range
    assert rng is not None and view.markdown[rng.start : rng.end] == "body"
    anim_range = view.animations[0].range
    assert anim_range is not None and view.markdown[anim_range.start : anim_range.end] == "text"
    # Stored ranges on the node are unchanged.
    assert node.annotations[0].range == TextRange(content.index("body"), content.index("body") + 4)


def test_extract_section_view_unknown_section() -> None:
    assert extract_section_view(make_node("n", content_md="# H"), "nope") is None
