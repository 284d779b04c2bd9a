"""Baseline generation and suppression.

A baseline records the diagnostics a project has accepted, so that only
new ones fail a run. Entries are keyed by (message, identifier, template
path); paths are stored relative to the baseline file so the file can be
committed and used from any checkout.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
from pydantic import ValidationError

from contract.baseline import BaselineEntry, BaselineFile
from rules.config import BASELINE_EXTENSION
from utils import relative_posix

if TYPE_CHECKING:
    from collections.abc import Sequence

    from diagnostics.models import ResolvedDiagnostic

logger = logging.getLogger(__name__)

Signature = tuple[str, str | None, Path]


class BaselineFormatError(Exception):
    """Raised when a baseline file cannot be read or has the wrong shape."""


class InternalConsistencyError(Exception):
    """Raised when a pipeline invariant does not hold."""


def check_baseline_path(path: Path) -> None:
    if path.suffix != BASELINE_EXTENSION:
        msg = f"Baseline file must have {BASELINE_EXTENSION} extension: {path}"
        raise BaselineFormatError(msg)


def generate_baseline(
    diagnostics: Sequence[ResolvedDiagnostic], baseline_dir: Path
) -> list[BaselineEntry]:
    """Count suppressible diagnostics per signature.

    Raises:
        InternalConsistencyError: If a suppressible diagnostic has no
            template location; such diagnostics can never be matched.
    """
    counts: Counter[tuple[str, str | None, str]] = Counter()
    for diagnostic in diagnostics:
        if not diagnostic.can_be_suppressed:
            continue
        template = diagnostic.template
        if template is None:
            msg = f"Suppressible diagnostic without a template location: {diagnostic.message}"
            raise InternalConsistencyError(msg)
        counts[(diagnostic.message, diagnostic.identifier, relative_posix(template, baseline_dir))] += 1

    entries = [
        BaselineEntry(message=message, identifier=identifier, template_path=path, count=count)
        for (message, identifier, path), count in counts.items()
    ]
    entries.sort(key=lambda entry: (entry.template_path, entry.message, entry.identifier or ""))
    return entries


def dump_baseline(entries: Sequence[BaselineEntry], path: Path) -> None:
    """Write (or replace) a baseline file."""
    check_baseline_path(path)
    document = BaselineFile(errors=list(entries))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(
        orjson.dumps(
            document.model_dump(),
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS | orjson.OPT_APPEND_NEWLINE,
        )
    )
    logger.debug("Wrote %d baseline entries to %s", len(entries), path)


def load_baseline(path: Path) -> BaselineFile:
    check_baseline_path(path)
    try:
        return BaselineFile.model_validate(orjson.loads(path.read_bytes()))
    except OSError as exc:
        msg = f"Unable to read baseline {path}: {exc}"
        raise BaselineFormatError(msg) from exc
    except orjson.JSONDecodeError as exc:
        msg = f"Invalid JSON in baseline {path}: {exc}"
        raise BaselineFormatError(msg) from exc
    except ValidationError as exc:
        msg = f"Invalid baseline {path}: {exc}"
        raise BaselineFormatError(msg) from exc


class BaselineErrorFilter:
    """Drops diagnostics whose signature is recorded in a baseline.

    Suppression is by existence of the signature, not by count.
    """

    def __init__(self, signatures: set[Signature]) -> None:
        self._signatures = signatures

    @classmethod
    def empty(cls) -> BaselineErrorFilter:
        return cls(set())

    @classmethod
    def from_file(cls, path: Path) -> BaselineErrorFilter:
        baseline = load_baseline(path)
        directory = path.parent
        return cls(
            {
                (entry.message, entry.identifier, (directory / entry.template_path).resolve())
                for entry in baseline.errors
            }
        )

    def __len__(self) -> int:
        return len(self._signatures)

    def is_baselined(self, diagnostic: ResolvedDiagnostic) -> bool:
        template = diagnostic.template
        if not diagnostic.can_be_suppressed or template is None:
            return False
        return (diagnostic.message, diagnostic.identifier, template) in self._signatures

    def filter(self, diagnostics: Sequence[ResolvedDiagnostic]) -> list[ResolvedDiagnostic]:
        return [diagnostic for diagnostic in diagnostics if not self.is_baselined(diagnostic)]


__all__ = [
    "BaselineErrorFilter",
    "BaselineFormatError",
    "InternalConsistencyError",
    "check_baseline_path",
    "dump_baseline",
    "generate_baseline",
    "load_baseline",
]
