"""File scanning utilities for templates and application code."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator


def _should_include_file(
    path: Path,
    directory: Path,
    scratch_dir: str,
    gitignore_matches: Callable[[str], bool] | None,
    include_patterns: list[str] | None,
    exclude_patterns: list[str] | None,
) -> bool:
    """Check if a file should be included based on all filtering rules."""
    if not path.is_file() or path.is_symlink():
        return False

    if not _is_within_root(path, directory):
        return False

    try:
        rel_path = path.relative_to(directory)
    except ValueError:
        return False

    rel_path_str = rel_path.as_posix()

    if scratch_dir and rel_path.parts and rel_path.parts[0] == scratch_dir:
        return False

    if gitignore_matches is not None and gitignore_matches(str(path)):
        return False

    if include_patterns and not any(
        fnmatch(rel_path_str, pat) for pat in include_patterns
    ):
        return False

    has_excluded_match = exclude_patterns and any(
        fnmatch(rel_path_str, pat) for pat in exclude_patterns
    )
    return not has_excluded_match


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _iter_gitignore_files(root: Path) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    gitignore_paths = [root / ".gitignore"]
    gitignore_paths.extend(root.rglob(".gitignore"))
    unique_paths = {
        path for path in gitignore_paths if path.is_file() and not path.is_symlink()
    }
    return sorted(unique_paths, key=lambda p: p.relative_to(root).as_posix())


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def find_files(
    directory: Path,
    *,
    suffixes: Iterable[str],
    root: Path | None = None,
    scratch_dir: str = ".jinjastan",
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    nested_gitignore: bool = False,
) -> Iterator[Path]:
    """Find all files with one of the given suffixes, respecting .gitignore.

    Args:
        directory: Directory to search
        suffixes: File suffixes to match (e.g. ``[".html", ".j2"]``)
        root: Repository root used for .gitignore, include/exclude patterns
            and the scratch directory (default: ``directory``)
        scratch_dir: Top-level directory name to skip (default ".jinjastan")
        include_patterns: Optional list of fnmatch patterns; if provided,
            files must match at least one pattern to be included
        exclude_patterns: Optional list of fnmatch patterns; files matching
            any pattern are excluded

    Yields:
        Path objects for each file found, sorted lexicographically by
        relative path for deterministic ordering.
    """
    if root is None:
        root = directory
    if not directory.is_dir():
        return

    wanted = tuple(suffixes)
    gitignore_matches = _build_gitignore_matcher(
        root,
        nested_gitignore=nested_gitignore,
    )

    matched_files = [
        path
        for path in directory.rglob("*")
        if path.name.endswith(wanted)
        and _should_include_file(
            path,
            root,
            scratch_dir,
            gitignore_matches,
            include_patterns,
            exclude_patterns,
        )
    ]

    matched_files.sort(key=lambda p: p.relative_to(root).as_posix())

    yield from matched_files


def find_python_files(
    directory: Path,
    *,
    scratch_dir: str = ".jinjastan",
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    nested_gitignore: bool = False,
) -> Iterator[Path]:
    """Find all application Python files under a directory."""
    yield from find_files(
        directory,
        suffixes=[".py"],
        scratch_dir=scratch_dir,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
        nested_gitignore=nested_gitignore,
    )


def find_given_files(paths: Iterable[Path], *, suffixes: Iterable[str]) -> list[Path]:
    """Expand explicitly given files and directories into matching files.

    Given files are kept as long as their suffix matches; directories are
    searched recursively. The result is deduplicated, keeping first-seen order.
    """
    wanted = tuple(suffixes)
    seen: set[Path] = set()
    found: list[Path] = []
    for given in paths:
        if given.is_dir():
            candidates = sorted(
                (p for p in given.rglob("*") if p.is_file() and p.name.endswith(wanted)),
                key=lambda p: p.relative_to(given).as_posix(),
            )
        elif given.is_file() and given.name.endswith(wanted):
            candidates = [given]
        else:
            candidates = []
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved not in seen:
                seen.add(resolved)
                found.append(resolved)
    return found


__all__ = [
    "_should_include_file",
    "find_files",
    "find_given_files",
    "find_python_files",
]
