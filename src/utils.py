"""Shared utilities for jinjastan."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path

_NON_IDENTIFIER = re.compile(r"\W+")
_DIGITS = re.compile(r"(\d+)")


def relative_posix(path: str | Path, base: str | Path) -> str:
    """Return ``path`` relative to ``base`` as a POSIX string.

    Unlike :meth:`Path.relative_to`, the result may walk up with ``..`` when
    ``path`` lies outside ``base``.

    Examples:
        >>> relative_posix("/repo/templates/base.html", "/repo")
        'templates/base.html'
        >>> relative_posix("/repo/templates/base.html", "/repo/baselines")
        '../templates/base.html'
    """
    return Path(os.path.relpath(Path(path), Path(base))).as_posix()


def generated_file_name(template: Path) -> str:
    """Return a unique, importable Python file name for a template.

    The name keeps a readable trace of the template file name and appends a
    short digest of its canonical path, so two templates sharing a base name
    never write to the same scratch file.

    Examples:
        >>> generated_file_name(Path("/repo/templates/child.html"))[:11]
        'child_html_'
    """
    readable = _NON_IDENTIFIER.sub("_", template.name).strip("_") or "template"
    if readable[0].isdigit():
        readable = f"t_{readable}"
    digest = hashlib.sha1(str(template).encode("utf-8")).hexdigest()[:8]
    return f"{readable}_{digest}.py"


def natural_key(text: str) -> tuple[str | int, ...]:
    """Sort key that orders runs of digits by value.

    Examples:
        >>> sorted(["page10.py", "page2.py"], key=natural_key)
        ['page2.py', 'page10.py']
    """
    return tuple(int(part) if index % 2 else part for index, part in enumerate(_DIGITS.split(text)))
