"""Tests for domain models."""

from dataclasses import FrozenInstanceError

import pytest

from nexlearn.models.node import Animation, MindMap, MindMapNode, TextRange
from tests.unit.conftest import make_node


def test_nodes_are_immutable() -> None:
    node = make_node("n")
    with pytest.raises(FrozenInstanceError):
        node.theme = "changed"  # type: ignore[misc]


def test_text_range_shifted() -> None:
    assert TextRange(3, 7).shifted(10) == TextRange(13, 17)
    assert TextRange(3, 7).shifted(-3) == TextRange(0, 4)


def test_animation_range_and_status_come_from_meta() -> None:
    animation = Animation(id="a", meta={"range": TextRange(1, 2), "status": "completed"})
    assert animation.range == TextRange(1, 2)
    assert animation.status == "completed"

    bare = Animation(id="b", meta={"range": {"start": 1, "end": 2}})
    assert bare.range is None
    assert bare.status is None


def test_mindmap_get() -> None:
    mindmap = MindMap(nodes=(MindMapNode(id="root", text="T"),), edges=())
    assert mindmap.get("root") is not None
    assert mindmap.get("other") is None
