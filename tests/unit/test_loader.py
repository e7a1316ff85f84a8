"""Tests for loading project files."""

from dataclasses import replace
from pathlib import Path

import pytest

from nexlearn.core.document.headings import parse_toc
from nexlearn.core.export.json_writer import dump_project
from nexlearn.core.importer.loader import load_project_file, project_from_markdown
from nexlearn.errors import ProjectImportError
from tests.unit.conftest import ARTICLE_MD


def test_load_json_project(project_file: Path) -> None:
    project = load_project_file(project_file)
    assert project.name == "Languages"
    assert len(project.nodes) == 4
    assert len(project.edges) == 2


def test_load_markdown_file(tmp_path: Path) -> None:
    path = tmp_path / "notes.md"
    path.write_text("# My Notes\n\nSome text.\n## Part\nmore")
    project = load_project_file(path, user_id="me")
    assert project.name == "My Notes"
    assert project.user_id == "me"
    (node,) = project.nodes
    assert node.theme == "My Notes"
    assert node.status == "completed"
    assert [t.text for t in node.toc] == ["My Notes", "Part"]
    assert node.project_id == project.id


def test_markdown_without_heading_gets_default_names() -> None:
    project = project_from_markdown(ARTICLE_MD)
    assert project.name == "导入项目"
    assert project.nodes[0].theme == "导入内容"
    assert project.nodes[0].content_md == ARTICLE_MD


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ProjectImportError, match="Invalid JSON"):
        load_project_file(path)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ProjectImportError, match="Cannot read"):
        load_project_file(tmp_path / "missing.json")


def test_wrong_shape_raises(tmp_path: Path) -> None:
    path = tmp_path / "list.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ProjectImportError):
        load_project_file(path)


def test_saved_toc_survives_reload(project_file: Path, tmp_path: Path) -> None:
    project = load_project_file(project_file)
    node = replace(project.nodes[1], toc=parse_toc("# A\nbody\n## B"))
    path = tmp_path / "saved.json"
    dump_project(replace(project, nodes=(project.nodes[0], node, *project.nodes[2:])), path)

    reloaded = load_project_file(path)

    assert reloaded.nodes[1].toc == node.toc
    assert [t.anchor for t in reloaded.nodes[1].toc] == ["h1-a", "h2-b"]


def test_out_of_range_numbers_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "numbers.json"
    path.write_text(
        '{"metadata": {"createdAt": 1e20}, "nodes": [{"id": "n",'
        ' "metadata": {"updatedAt": -1e30, "version": NaN},'
        ' "position": {"x": Infinity, "y": 3},'
        ' "toc": [{"level": Infinity, "text": "T", "lineIndex": -Infinity}]}]}'
    )

    project = load_project_file(path)

    (node,) = project.nodes
    assert project.metadata.created_at.tzinfo is not None
    assert node.metadata.version == 1
    assert (node.position.x, node.position.y) == (100, 3)
    assert (node.toc[0].level, node.toc[0].line_index) == (1, 0)
