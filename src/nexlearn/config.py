"""Configuration constants for nexlearn."""

import os
from pathlib import Path

# Tree layout spacing, in canvas units.
NODE_SPACING_X: float = 250
NODE_SPACING_Y: float = 150

# Root of the synthetic mind-map node representing pre-heading content.
MINDMAP_ROOT_ID = "root"

# Deepest heading level picked up by the table of contents.
MAX_TOC_LEVEL = 4

# Heading levels used by the flattened Markdown export.
EXPORT_MIN_HEADING_LEVEL = 2
EXPORT_MAX_HEADING_LEVEL = 6

# Environment overrides.
PROJECT_FILE_ENV = "NEXLEARN_PROJECT_FILE"
API_URL_ENV = "NEXLEARN_API_URL"

DEFAULT_API_URL = "http://localhost:3001/api"

# API token location. First file found is used.
API_TOKEN_FILES: list[Path] = [
    Path("~/.config/nexlearn-token.txt").expanduser(),
    Path("~/.config/secret/nexlearn-token.txt").expanduser(),
]

# Project files. First file which is found is used.
PROJECT_FILES: list[Path] = [
    Path("~/.local/share/nexlearn/project.json").expanduser(),
    Path("~/.nexlearn/project.json").expanduser(),
]


def resolve_project_file() -> Path:
    """Return the project file from the environment or the first existing default."""
    env = os.environ.get(PROJECT_FILE_ENV)
    if env:
        return Path(env).expanduser()
    for candidate in PROJECT_FILES:
        if candidate.is_file():
            return candidate
    return PROJECT_FILES[0]


def resolve_api_url() -> str:
    return os.environ.get(API_URL_ENV, DEFAULT_API_URL).rstrip("/")
