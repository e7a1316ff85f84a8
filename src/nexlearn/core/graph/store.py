"""Immutable node/edge graph snapshots and their mutations."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from nexlearn.models.node import Edge, Node


@dataclass(frozen=True)
class GraphStore:
    """A snapshot of the node set and edge set.

    Entities reference each other by id only. Every mutation returns a new
    snapshot and leaves this one untouched.

    Tree shape is expressed twice: by ``Node.parent_id`` and by edges. The
    parent_id relation is canonical for parent, siblings and depth; edges only
    widen the ``children`` query.
    """

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    # --- Lookups ---

    def get_node(self, node_id: str) -> Node | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_edge(self, edge_id: str) -> Edge | None:
        return next((e for e in self.edges if e.id == edge_id), None)

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    # --- Node mutations ---

    def add_node(self, node: Node) -> "GraphStore":
        if self.get_node(node.id) is not None:
            logger.warning("Node with id {} already exists, not adding", node.id)
            return self
        return replace(self, nodes=(*self.nodes, node))

    def update_node(self, node_id: str, **changes: Any) -> "GraphStore":
        """Replace fields of a node and stamp its ``updated_at``.

        Unknown ids leave the snapshot unchanged.
        """
        node = self.get_node(node_id)
        if node is None:
            logger.warning("Cannot update missing node {}", node_id)
            return self

        metadata = changes.pop("metadata", node.metadata)
        updated = replace(
            node,
            **changes,
            metadata=replace(metadata, updated_at=datetime.now(tz=UTC)),
        )
        return replace(self, nodes=tuple(updated if n.id == node_id else n for n in self.nodes))

    def delete_node(self, node_id: str) -> "GraphStore":
        """Remove a node and every edge where it is source or target."""
        return replace(
            self,
            nodes=tuple(n for n in self.nodes if n.id != node_id),
            edges=tuple(
                e for e in self.edges if e.from_node_id != node_id and e.to_node_id != node_id
            ),
        )

    # --- Edge mutations ---

    def add_edge(self, edge: Edge) -> "GraphStore":
        """Add an edge.

        An edge whose id already exists is ignored (not overwritten). An edge
        whose endpoints are not both present is dropped.
        """
        if self.get_edge(edge.id) is not None:
            logger.warning("Edge with id {} already exists, not adding", edge.id)
            return self
        ids = self.node_ids()
        if edge.from_node_id not in ids or edge.to_node_id not in ids:
            logger.warning(
                "Dropping edge {}: endpoint missing ({} -> {})",
                edge.id, edge.from_node_id, edge.to_node_id,
            )
            return self
        return replace(self, edges=(*self.edges, edge))

    def update_edge(self, edge_id: str, **changes: Any) -> "GraphStore":
        if self.get_edge(edge_id) is None:
            logger.warning("Cannot update missing edge {}", edge_id)
            return self
        return replace(
            self,
            edges=tuple(replace(e, **changes) if e.id == edge_id else e for e in self.edges),
        )

    def delete_edge(self, edge_id: str) -> "GraphStore":
        return replace(self, edges=tuple(e for e in self.edges if e.id != edge_id))

    def normalized(self) -> "GraphStore":
        """Drop edges referencing missing nodes."""
        ids = self.node_ids()
        kept = tuple(e for e in self.edges if e.from_node_id in ids and e.to_node_id in ids)
        if len(kept) != len(self.edges):
            logger.info("Dropped {} orphaned edges", len(self.edges) - len(kept))
        return replace(self, edges=kept)

    # --- Queries ---

    def parent(self, node: Node) -> Node | None:
        if not node.parent_id:
            return None
        return self.get_node(node.parent_id)

    def siblings(self, node: Node) -> tuple[Node, ...]:
        """Other nodes sharing the node's parent_id. Roots have no siblings."""
        if not node.parent_id:
            return ()
        return tuple(n for n in self.nodes if n.parent_id == node.parent_id and n.id != node.id)

    def children(self, node_id: str) -> tuple[Node, ...]:
        """Union of parent_id children and targets of outgoing edges.

        The two relations may disagree; a node found through both is listed
        once. Order follows the node set.
        """
        child_ids = {n.id for n in self.nodes if n.parent_id == node_id}
        child_ids.update(e.to_node_id for e in self.edges if e.from_node_id == node_id)
        return tuple(n for n in self.nodes if n.id in child_ids)

    def depth(self, node: Node) -> int:
        """Number of parent_id hops to a root. Stops at a missing parent or a cycle."""
        depth = 0
        seen = {node.id}
        current = node
        while current.parent_id:
            parent = self.get_node(current.parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            depth += 1
            current = parent
        return depth

    def roots(self) -> tuple[Node, ...]:
        return tuple(n for n in self.nodes if not n.parent_id)

    def node_edges(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(e for e in self.edges if node_id in (e.from_node_id, e.to_node_id))

    def incoming_edges(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(e for e in self.edges if e.to_node_id == node_id)

    def outgoing_edges(self, node_id: str) -> tuple[Edge, ...]:
        return tuple(e for e in self.edges if e.from_node_id == node_id)

    def has_edge_between(self, a: str, b: str) -> bool:
        """True if an edge connects a and b in either direction."""
        return any({e.from_node_id, e.to_node_id} == {a, b} for e in self.edges)


@dataclass
class Workspace:
    """The call site's handle on the current graph snapshot.

    Holds the latest snapshot; ``apply`` swaps in the result of a mutation.
    """

    store: GraphStore = field(default_factory=GraphStore)

    def apply(self, store: GraphStore) -> GraphStore:
        self.store = store
        return store
