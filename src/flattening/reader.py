"""Tree-sitter reading of compiled units.

Splits a compiled module's render function into block definitions and body
statements, and finds the ``_jt_rt.extends`` / ``_jt_rt.include`` directives
the flattener replaces.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from tree_sitter import Language, Node, Parser
from tree_sitter_python import language as get_python_language

from compilation.codegen import BLOCK_PREFIX, EPILOGUE, INDENT, PROLOGUE, RENDER_FUNCTION, CodeLine
from diagnostics.models import SourceChain

if TYPE_CHECKING:
    from compilation.results import CompiledUnit

_PARSER: Parser | None = None

_DIRECTIVES = {"_jt_rt.extends": "extends", "_jt_rt.include": "include"}


def _get_parser() -> Parser:
    """Initialize and return the Tree-sitter parser with Python language."""
    global _PARSER
    if _PARSER is None:
        lang = Language(get_python_language())
        _PARSER = Parser(lang)

    return _PARSER


class UnreadableUnit(Exception):
    """A compiled unit whose structure is not the one the compiler emits."""


@dataclass(frozen=True)
class Directive:
    kind: Literal["extends", "include"]
    target: Path
    buffer: str | None = None


@dataclass(frozen=True)
class Segment:
    """A line of a compiled unit, plus the directive it holds, if any."""

    line: CodeLine[SourceChain]
    directive: Directive | None = None


@dataclass
class ReadUnit:
    definitions: dict[str, list[Segment]] = field(default_factory=dict)
    body: list[Segment] = field(default_factory=list)


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf8")


def _render_body(root: Node) -> Node:
    for child in root.children:
        if child.type == "function_definition" and _text(child.child_by_field_name("name")) == RENDER_FUNCTION:
            body = child.child_by_field_name("body")
            if body is not None:
                return body
    msg = f"no {RENDER_FUNCTION}() function"
    raise UnreadableUnit(msg)


def _directive(call: Node) -> Directive | None:
    kind = _DIRECTIVES.get(_text(call.child_by_field_name("function")))
    if kind is None:
        return None

    arguments = call.child_by_field_name("arguments")
    literal = next(
        (child for child in (arguments.named_children if arguments else []) if child.type == "string"),
        None,
    )
    if literal is None:
        msg = f"{kind} directive without a template path"
        raise UnreadableUnit(msg)
    target = Path(ast.literal_eval(_text(literal)))

    if kind == "extends":
        return Directive("extends", target)

    # <buffer>.append(_jt_rt.include("..."))
    outer = call.parent.parent if call.parent is not None else None
    function = outer.child_by_field_name("function") if outer is not None else None
    if function is None or function.type != "attribute":
        msg = "include directive outside of an append"
        raise UnreadableUnit(msg)
    return Directive("include", target, _text(function.child_by_field_name("object")))


def _find_directives(node: Node, found: dict[int, Directive]) -> None:
    if node.type == "call":
        directive = _directive(node)
        if directive is not None:
            found[node.start_point[0]] = directive
            return
    for child in node.children:
        _find_directives(child, found)


def read_unit(unit: CompiledUnit) -> ReadUnit:
    """Split a compiled unit into block definitions and body segments.

    Raises:
        UnreadableUnit: If the source does not have the compiled layout.
    """
    source_bytes = unit.source.encode("utf8")
    tree = _get_parser().parse(source_bytes)
    if tree.root_node.has_error:
        msg = f"{unit.python_file} is not valid Python"
        raise UnreadableUnit(msg)

    lines = unit.source.splitlines()
    body = _render_body(tree.root_node)
    directives: dict[int, Directive] = {}
    _find_directives(body, directives)

    def segments(node: Node) -> list[Segment]:
        result: list[Segment] = []
        for row in range(node.start_point[0], node.end_point[0] + 1):
            text = lines[row]
            code = text.lstrip(" ")
            if not code:
                continue
            indent = (len(text) - len(code)) // len(INDENT) - 1
            location = unit.source_map.get(row + 1)
            origin = SourceChain.of(location) if location is not None else None
            result.append(Segment(CodeLine(indent, code, origin), directives.get(row)))
        return result

    read = ReadUnit()
    for statement in body.named_children:
        if statement.type == "comment":
            continue
        if statement.type == "function_definition":
            name = _text(statement.child_by_field_name("name"))
            if name.startswith(BLOCK_PREFIX):
                read.definitions[name[len(BLOCK_PREFIX) :]] = segments(statement)
                continue
        if _text(statement) in (PROLOGUE, EPILOGUE):
            continue
        read.body.extend(segments(statement))
    return read


__all__ = ["Directive", "ReadUnit", "Segment", "UnreadableUnit", "read_unit"]
