"""Fake implementations for testing content generation."""

from typing import Any

from nexlearn.models.node import GenerationResult


class FakeGenerationClient:
    """In-memory fake for GenerationApi.

    Returns a predefined result (or raises a predefined error) and records
    all calls for assertions.
    """

    def __init__(
        self,
        result: GenerationResult | None = None,
        *,
        error: Exception | None = None,
    ) -> None:
        self.result = result or GenerationResult(summary="generated", content_md="# Title\nbody")
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def generate_node(self, node_id: str, request: dict[str, Any]) -> GenerationResult:
        """Record the call, then return the result or raise the error."""
        self.calls.append((node_id, request))
        if self.error is not None:
            raise self.error
        return self.result
