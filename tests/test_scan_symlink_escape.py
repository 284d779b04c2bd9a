from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from scan.files import _build_gitignore_matcher, find_files, find_given_files, find_python_files

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_find_python_files_skips_symlinked_dirs(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "app").mkdir()
    (repo_root / "app" / "views.py").write_text("print('ok')\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "leak.py").write_text("print('leak')\n", encoding="utf-8")

    symlink_dir = repo_root / "linked"
    symlink_dir.symlink_to(external_root, target_is_directory=True)

    results = [
        path.relative_to(repo_root).as_posix() for path in find_python_files(repo_root)
    ]

    assert "app/views.py" in results
    assert "linked/leak.py" not in results


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_nested_gitignore_skips_symlinked_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "app").mkdir()
    (repo_root / "app" / "views.py").write_text("print('ok')\n", encoding="utf-8")
    (repo_root / ".gitignore").write_text("*.bin\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "outside.gitignore").write_text(
        "app/views.py\n", encoding="utf-8"
    )

    symlink_gitignore = repo_root / "linked.gitignore"
    symlink_gitignore.symlink_to(external_root / "outside.gitignore")

    matcher = _build_gitignore_matcher(repo_root, nested_gitignore=True)
    assert matcher is not None
    assert matcher(str(repo_root / "app" / "views.py")) is False


def test_find_files_skips_scratch_dir_and_gitignored(tmp_path: Path) -> None:
    (tmp_path / "templates").mkdir()
    (tmp_path / "templates" / "page.html").write_text("x\n", encoding="utf-8")
    (tmp_path / "templates" / "draft.html").write_text("x\n", encoding="utf-8")
    (tmp_path / "templates" / "notes.md").write_text("x\n", encoding="utf-8")
    (tmp_path / ".jinjastan").mkdir()
    (tmp_path / ".jinjastan" / "stale.html").write_text("x\n", encoding="utf-8")
    (tmp_path / ".gitignore").write_text("draft.html\n", encoding="utf-8")

    results = [
        path.relative_to(tmp_path).as_posix()
        for path in find_files(tmp_path, suffixes=[".html"], root=tmp_path)
    ]

    assert results == ["templates/page.html"]


def test_find_files_applies_include_and_exclude(tmp_path: Path) -> None:
    for name in ("a.html", "b.j2", "skip.html"):
        (tmp_path / name).write_text("x\n", encoding="utf-8")

    results = [
        path.name
        for path in find_files(
            tmp_path,
            suffixes=[".html", ".j2"],
            include_patterns=["*.html", "*.j2"],
            exclude_patterns=["skip.*"],
        )
    ]

    assert results == ["a.html", "b.j2"]


def test_find_given_files_expands_directories_and_dedupes(tmp_path: Path) -> None:
    (tmp_path / "pages").mkdir()
    (tmp_path / "pages" / "b.html").write_text("x\n", encoding="utf-8")
    (tmp_path / "pages" / "a.html").write_text("x\n", encoding="utf-8")
    (tmp_path / "style.css").write_text("x\n", encoding="utf-8")

    results = find_given_files(
        [tmp_path / "pages" / "b.html", tmp_path / "pages", tmp_path / "style.css"],
        suffixes=[".html"],
    )

    assert [path.name for path in results] == ["b.html", "a.html"]
