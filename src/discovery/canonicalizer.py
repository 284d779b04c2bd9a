"""Canonical template identifiers."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import TemplateNotFound

if TYPE_CHECKING:
    from jinja2 import Environment


class UnableToCanonicalizeTemplate(Exception):
    """Raised when a template name or path does not resolve to a file."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Unable to resolve template {name!r}: {reason}")


class TemplateCanonicalizer:
    """Turns logical names and filesystem paths into template identifiers.

    A template identifier is the resolved absolute path of the template file,
    so two references are equal iff they point at the same file once
    symlinks and search paths are taken into account.
    """

    def __init__(self, environment: Environment) -> None:
        self._environment = environment
        self._names: dict[str, Path] = {}

    def canonicalize_name(self, name: str) -> Path:
        """Resolve a logical name through the environment's loader."""
        cached = self._names.get(name)
        if cached is not None:
            return cached

        loader = self._environment.loader
        if loader is None:
            raise UnableToCanonicalizeTemplate(name, "no template loader configured")

        try:
            _source, filename, _uptodate = loader.get_source(self._environment, name)
        except TemplateNotFound as exc:
            raise UnableToCanonicalizeTemplate(name, "template not found") from exc

        if filename is None:
            raise UnableToCanonicalizeTemplate(name, "loader did not report a file")

        resolved = Path(filename).resolve()
        self._names[name] = resolved
        return resolved

    def canonicalize_path(self, path: Path) -> Path:
        """Resolve a filesystem path to a template identifier."""
        try:
            resolved = path.resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise UnableToCanonicalizeTemplate(str(path), str(exc)) from exc
        if not resolved.is_file():
            raise UnableToCanonicalizeTemplate(str(path), "not a file")
        return resolved

    def canonicalize(self, reference: str) -> Path:
        """Resolve a reference that may be a logical name or a file path.

        Logical names win; absolute paths that exist are accepted as-is.
        """
        try:
            return self.canonicalize_name(reference)
        except UnableToCanonicalizeTemplate:
            candidate = Path(reference)
            if candidate.is_absolute() and candidate.is_file():
                return self.canonicalize_path(candidate)
            raise


__all__ = ["TemplateCanonicalizer", "UnableToCanonicalizeTemplate"]
