"""Load projects from JSON dumps or plain Markdown files."""

import json
import uuid
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from nexlearn.core.document.headings import parse_toc
from nexlearn.core.importer.json_reader import DEFAULT_PROJECT_NAME, parse_project_data
from nexlearn.errors import ProjectImportError
from nexlearn.models.node import (
    Node,
    NodeMetadata,
    Position,
    Project,
    ProjectMetadata,
    ProjectSettings,
)

DEFAULT_MARKDOWN_THEME = "导入内容"


def project_from_markdown(
    markdown: str,
    *,
    user_id: str = "anonymous",
    settings: ProjectSettings = ProjectSettings(),
) -> Project:
    """Wrap a Markdown document in a single-node project.

    The first non-blank line names the project when it is a heading.
    """
    now = datetime.now(tz=UTC)
    first_line = next((line for line in markdown.split("\n") if line.strip()), "")
    title = first_line.lstrip("#").strip() if first_line.startswith("#") else ""
    project_id = str(uuid.uuid4())

    node = Node(
        id=str(uuid.uuid4()),
        project_id=project_id,
        theme=title or DEFAULT_MARKDOWN_THEME,
        content_md=markdown,
        toc=parse_toc(markdown),
        position=Position(100, 100),
        metadata=NodeMetadata(created_at=now, updated_at=now),
        status="completed",
    )
    return Project(
        id=project_id,
        user_id=user_id,
        name=title or DEFAULT_PROJECT_NAME,
        nodes=(node,),
        settings=settings,
        metadata=ProjectMetadata(created_at=now, updated_at=now),
    )


def load_project_file(path: Path, *, user_id: str = "anonymous") -> Project:
    """Load a project from a ``.md`` or JSON file.

    Either the whole project loads or nothing does.

    Raises:
        ProjectImportError: The file is missing, unreadable, not valid JSON,
            or structurally not a project.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read {path}: {e.strerror or e}"
        raise ProjectImportError(msg) from e

    if path.suffix.lower() in (".md", ".markdown"):
        project = project_from_markdown(text, user_id=user_id)
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON in {path.name}: {e.msg} (line {e.lineno})"
            raise ProjectImportError(msg) from e
        project = parse_project_data(data, user_id=user_id)

    logger.info(
        "Loaded project {} from {} ({} nodes, {} edges)",
        project.name, path.name, len(project.nodes), len(project.edges),
    )
    return project
