"""Exceptions raised by the knowledge-graph core."""


class NexlearnError(Exception):
    """Base class for all package errors."""


class NodeNotFoundError(NexlearnError, KeyError):
    """A node id does not exist in the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node {self.node_id!r} not found"


class GenerationInProgressError(NexlearnError):
    """Content generation was requested for a node that is already generating."""


class ProjectImportError(NexlearnError):
    """A project file could not be imported. Nothing was committed."""
