"""Layout of generated Python modules.

Compiled and flattened units share one layout::

    <header imports>
    # jinjastan: context
    <one declaration per template variable>
    # jinjastan: end context


    def _jt_render() -> str:
        <block function definitions>
        _jt_out: list[str] = []
        <body>
        return "".join(_jt_out)

Every generated statement occupies exactly one physical line, so units can
be re-indented and spliced line by line.
"""

from __future__ import annotations

import builtins
import keyword
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

O = TypeVar("O")

INDENT = "    "

CONTEXT_START = "# jinjastan: context"
CONTEXT_END = "# jinjastan: end context"

RENDER_FUNCTION = "_jt_render"
OUTPUT_BUFFER = "_jt_out"
BLOCK_PREFIX = "_jt_block_"
SUPER_SUFFIX = "__super"

PROLOGUE = f"{OUTPUT_BUFFER}: list[str] = []"
EPILOGUE = f'return "".join({OUTPUT_BUFFER})'

HEADER_IMPORTS = (
    "from __future__ import annotations",
    "",
    "import typing",
    "",
    "from jinjastan_runtime import filters as _jt_filters",
    "from jinjastan_runtime import runtime as _jt_rt",
    "from jinjastan_runtime import tests as _jt_tests",
    "",
)

_BUILTIN_NAMES = frozenset(dir(builtins))


@dataclass(frozen=True)
class CodeLine(Generic[O]):
    """One generated statement, its nesting level and where it came from."""

    indent: int
    code: str
    origin: O | None = None

    def shifted(self, levels: int) -> CodeLine[O]:
        return CodeLine(self.indent + levels, self.code, self.origin)


def python_identifier(name: str) -> str:
    """Return a usable Python variable name for a template variable."""
    if keyword.iskeyword(name):
        return f"{name}_"
    return name


def runtime_attribute(name: str) -> str:
    """Return the runtime attribute for a filter or test name.

    Names that are Python keywords or shadow builtins get a trailing
    underscore (``int`` -> ``int_``, ``in`` -> ``in_``).
    """
    if keyword.iskeyword(name) or name in _BUILTIN_NAMES:
        return f"{name}_"
    return name


def block_function(name: str, level: int = 0) -> str:
    """Name of the function implementing a block ``level`` parents up."""
    return f"{BLOCK_PREFIX}{name}{SUPER_SUFFIX * level}"


def context_declaration(name: str, annotation: str = "typing.Any") -> str:
    return f"{python_identifier(name)}: {annotation}"


def render_module(
    *,
    title: str,
    context: Sequence[str],
    definitions: Iterable[CodeLine[O]],
    body: Iterable[CodeLine[O]],
) -> tuple[str, dict[int, O]]:
    """Render a unit and return its source text and line -> origin map.

    Args:
        title: First comment line of the module
        context: Lines of the context section (between the markers)
        definitions: Statements hoisted to the top of the render function
        body: Statements of the render function, after the prologue

    Returns:
        The module source and a map from 1-based generated line numbers to
        the origin of every line that has one.
    """
    lines: list[str] = [f"# {title}", *HEADER_IMPORTS]
    lines.append(CONTEXT_START)
    lines.extend(context)
    lines.append(CONTEXT_END)
    lines.extend(["", "", f"def {RENDER_FUNCTION}() -> str:"])

    source_map: dict[int, O] = {}

    def emit(line: CodeLine[O]) -> None:
        lines.append(f"{INDENT * (line.indent + 1)}{line.code}")
        if line.origin is not None:
            source_map[len(lines)] = line.origin

    for line in definitions:
        emit(line)
    emit(CodeLine(0, PROLOGUE))
    for line in body:
        emit(line)
    emit(CodeLine(0, EPILOGUE))

    return "\n".join(lines) + "\n", source_map


__all__ = [
    "BLOCK_PREFIX",
    "CONTEXT_END",
    "CONTEXT_START",
    "EPILOGUE",
    "INDENT",
    "OUTPUT_BUFFER",
    "PROLOGUE",
    "RENDER_FUNCTION",
    "SUPER_SUFFIX",
    "CodeLine",
    "block_function",
    "context_declaration",
    "python_identifier",
    "render_module",
    "runtime_attribute",
]
