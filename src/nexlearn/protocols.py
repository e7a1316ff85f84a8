"""Protocols for dependency injection in the generation flow."""

from typing import Any, Protocol, runtime_checkable

from nexlearn.models.node import GenerationResult


@runtime_checkable
class GenerationProtocol(Protocol):
    """Protocol for content-generation backends."""

    def generate_node(self, node_id: str, request: dict[str, Any]) -> GenerationResult:
        """Generate summary and Markdown content for a node."""
        ...
