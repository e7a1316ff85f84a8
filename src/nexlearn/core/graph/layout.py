"""Automatic tree placement and subtree translation."""

from dataclasses import replace

from nexlearn.config import NODE_SPACING_X, NODE_SPACING_Y
from nexlearn.core.graph.store import GraphStore
from nexlearn.models.node import Position


def tree_layout(
    store: GraphStore,
    root_id: str,
    origin: Position = Position(0, 0),
) -> GraphStore:
    """Place a node's subtree as a centered top-down tree.

    The root goes to origin. Each node's children (parent_id and edge union)
    are spread horizontally under it, centered, one level lower. A node
    reachable twice is placed only the first time.

    Args:
        store: Graph snapshot.
        root_id: Node to lay out from.
        origin: Position of the root.

    Returns:
        A snapshot with updated positions. Unchanged if root_id is unknown.
    """
    if store.get_node(root_id) is None:
        return store

    positions: dict[str, Position] = {root_id: origin}
    todo = [root_id]
    while todo:
        parent_id = todo.pop()
        parent_pos = positions[parent_id]
        children = [c for c in store.children(parent_id) if c.id not in positions]
        start_x = parent_pos.x - (len(children) - 1) * NODE_SPACING_X / 2
        child_y = parent_pos.y + NODE_SPACING_Y
        for i, child in enumerate(children):
            positions[child.id] = Position(start_x + i * NODE_SPACING_X, child_y)
        # Depth-first: the first child's subtree is placed before its siblings'.
        todo.extend(c.id for c in reversed(children))

    return replace(
        store,
        nodes=tuple(
            replace(n, position=positions[n.id]) if n.id in positions else n for n in store.nodes
        ),
    )


def move_node(store: GraphStore, node_id: str, position: Position) -> GraphStore:
    """Move a node and translate all of its descendants by the same delta.

    Descendants are found through ``children`` transitively. This is a
    convenience for dragging; nodes remain free to move independently later.
    """
    node = store.get_node(node_id)
    if node is None:
        return store

    dx = position.x - node.position.x
    dy = position.y - node.position.y

    descendants: set[str] = set()
    todo = [node_id]
    while todo:
        current = todo.pop()
        for child in store.children(current):
            if child.id != node_id and child.id not in descendants:
                descendants.add(child.id)
                todo.append(child.id)

    moved = store.update_node(node_id, position=position)
    return replace(
        moved,
        nodes=tuple(
            replace(n, position=Position(n.position.x + dx, n.position.y + dy))
            if n.id in descendants
            else n
            for n in moved.nodes
        ),
    )
