"""Assemble a node's graph neighborhood for content generation."""

from nexlearn.core.graph.store import GraphStore
from nexlearn.models.node import Node, NodeContext, NodeSummary

PARENT_TAG = "[父]"
SIBLING_TAG = "[兄弟]"
CHILD_TAG = "[子]"


def _summarize(node: Node) -> NodeSummary:
    return NodeSummary(id=node.id, theme=node.theme, summary=node.summary)


def build_node_context(
    store: GraphStore,
    node: Node,
    visible_text: str | None = None,
) -> NodeContext:
    """Collect parent, siblings and children of a node.

    Children use the parent_id/edge union. The flattened ``node_tree`` lists
    each neighbor on one line, tagged with its role.

    Args:
        store: Graph snapshot.
        node: The node to describe.
        visible_text: Text currently visible to the user, if any.

    Returns:
        NodeContext. ``visible_text`` is None when blank, ``node_tree`` is
        None when the node has no neighbors.
    """
    parent = store.parent(node)
    siblings = store.siblings(node)
    children = store.children(node.id)

    lines: list[str] = []
    if parent is not None:
        lines.append(f"{PARENT_TAG} {parent.theme}: {parent.summary}")
    lines.extend(f"{SIBLING_TAG} {s.theme}: {s.summary}" for s in siblings)
    lines.extend(f"{CHILD_TAG} {c.theme}: {c.summary}" for c in children)

    return NodeContext(
        node_id=node.id,
        parent=_summarize(parent) if parent is not None else None,
        siblings=tuple(_summarize(s) for s in siblings),
        children=tuple(_summarize(c) for c in children),
        visible_text=visible_text if visible_text and visible_text.strip() else None,
        node_tree="\n".join(lines) if lines else None,
    )
