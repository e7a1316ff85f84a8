"""HTTP client for the content-generation backend."""

import json
import logging
from typing import Any

import requests

from nexlearn.config import API_TOKEN_FILES, resolve_api_url
from nexlearn.models.node import GenerationResult


class GenerationApi:
    """Calls ``POST {base_url}/nodes/{id}/generate`` on the backend."""

    def __init__(self, *, base_url: str | None = None, timeout: float = 120.0) -> None:
        self.base_url = (base_url or resolve_api_url()).rstrip("/")
        self.timeout = timeout
        self.sess = requests.Session()
        self.logger = logging.getLogger("api")

        self.api_token: str | None = None
        for token_path in API_TOKEN_FILES:
            try:
                self.api_token = token_path.read_text(encoding="utf-8").strip()
                break
            except FileNotFoundError:
                pass

        if self.api_token:
            self.sess.headers["Authorization"] = f"Bearer {self.api_token}"

        self.logger.debug(
            f"API ready: base_url {self.base_url!r}, token {'set' if self.api_token else 'unset'}"
        )

    def call(self, path: str, args: dict[str, Any]) -> dict[str, Any]:
        """POST args as JSON, return the ``data`` member of the response envelope."""
        self.logger.debug(f"Making request: {path!r} {repr(args)[:32]}")

        r = self.sess.post(
            f"{self.base_url}/{path}",
            data=json.dumps(args),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        rv: dict[str, Any] = r.json()
        if not rv.get("success") or rv.get("data") is None:
            error = rv.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            msg = f"API call failed: {path!r} -> {error or rv.get('message')!r}"
            raise RuntimeError(msg)
        data: dict[str, Any] = rv["data"]
        return data

    def generate_node(self, node_id: str, request: dict[str, Any]) -> GenerationResult:
        """Generate content for a node."""
        data = self.call(f"nodes/{node_id}/generate", request)
        return GenerationResult(
            summary=data.get("summary") or "",
            content_md=data.get("contentMd") or "",
        )
