"""Template -> Python compilation.

Each template becomes one module whose ``_jt_render`` function mirrors the
template's control flow. Expressions keep their Python shape so the type
checker sees attribute access, calls and operators exactly where the
template uses them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from itertools import chain
from typing import TYPE_CHECKING

from jinja2 import TemplateSyntaxError, nodes

from compilation.codegen import (
    EPILOGUE,
    OUTPUT_BUFFER,
    PROLOGUE,
    CodeLine,
    block_function,
    context_declaration,
    python_identifier,
    render_module,
)
from compilation.expressions import ExpressionCompiler, UnsupportedExpression
from compilation.results import CompiledUnit
from diagnostics.models import SourceLocation
from discovery.canonicalizer import UnableToCanonicalizeTemplate
from discovery.dependencies import constant_template_names
from discovery.environment import parse_template
from jinjastan_runtime.runtime import GLOBALS
from utils import generated_file_name

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from jinja2 import Environment

    from discovery.canonicalizer import TemplateCanonicalizer

logger = logging.getLogger(__name__)

Line = CodeLine[SourceLocation]

# Names Jinja2 provides inside templates without them being passed in.
IMPLICIT_NAMES = frozenset({"loop", "caller", "varargs", "kwargs", "self", "super"})


class CompilationError(Exception):
    """A template that cannot be translated."""

    def __init__(self, template: Path, message: str, lineno: int | None = None) -> None:
        self.template = template
        self.message = message
        self.lineno = lineno
        where = str(template) if lineno is None else f"{template}:{lineno}"
        super().__init__(f"{where}: {message}")


@dataclass(frozen=True)
class _Scope:
    """Where generated statements go: nesting level and output buffer."""

    indent: int
    buffer: str
    expressions: ExpressionCompiler
    top_level: bool = False

    def nested(self) -> _Scope:
        return replace(self, indent=self.indent + 1, top_level=False)

    def function(self, indent: int) -> _Scope:
        return replace(self, indent=indent, buffer=OUTPUT_BUFFER, top_level=False)


def context_variables(ast: nodes.Template) -> tuple[str, ...]:
    """Names a template reads without defining them, sorted.

    A name assigned anywhere in the template counts as defined everywhere,
    which keeps the analysis independent of statement order.
    """
    loads: set[str] = set()
    stores: set[str] = set()
    for name in ast.find_all(nodes.Name):
        (loads if name.ctx == "load" else stores).add(name.name)
    for ref in ast.find_all(nodes.NSRef):
        loads.add(ref.name)
    for macro in ast.find_all(nodes.Macro):
        stores.add(macro.name)
    for imported in ast.find_all(nodes.Import):
        stores.add(imported.target)
    for imported in ast.find_all(nodes.FromImport):
        for item in imported.names:
            stores.add(item[1] if isinstance(item, tuple) else item)
    return tuple(sorted(loads - stores - IMPLICIT_NAMES - GLOBALS))


class _UnitBuilder:
    def __init__(self, template: Path, canonicalizer: TemplateCanonicalizer) -> None:
        self.template = template
        self.canonicalizer = canonicalizer
        self.blocks: dict[str, list[Line]] = {}
        self.parent: Path | None = None
        self.includes: list[Path] = []
        self._counter = 0

    def next_id(self) -> int:
        self._counter += 1
        return self._counter

    def fail(self, message: str, node: nodes.Node) -> CompilationError:
        return CompilationError(self.template, message, node.lineno)

    def line(self, scope: _Scope, code: str, node: nodes.Node, *, extra: int = 0) -> Line:
        return CodeLine(scope.indent + extra, code, SourceLocation(self.template, node.lineno))

    def body(self, statements: Sequence[nodes.Node], scope: _Scope) -> list[Line]:
        lines: list[Line] = []
        for statement in statements:
            lines.extend(self.statement(statement, scope))
        return lines

    def suite(self, statements: Sequence[nodes.Node], scope: _Scope, owner: nodes.Node) -> list[Line]:
        """Compile an indented Python block, which may never be empty."""
        lines = self.body(statements, scope)
        return lines or [self.line(scope, "pass", owner)]

    def statement(self, node: nodes.Node, scope: _Scope) -> list[Line]:
        handler: Callable[[nodes.Node, _Scope], list[Line]] | None = getattr(
            self, f"_stmt_{type(node).__name__}", None
        )
        if handler is None:
            msg = f"Unsupported template construct: {type(node).__name__}"
            raise self.fail(msg, node)
        return handler(node, scope)

    def function(
        self,
        header: str,
        statements: Sequence[nodes.Node],
        scope: _Scope,
        owner: nodes.Node,
        expressions: ExpressionCompiler | None = None,
    ) -> list[Line]:
        """A nested function rendering ``statements`` into its own buffer."""
        inner = scope.function(scope.indent + 1)
        if expressions is not None:
            inner = replace(inner, expressions=expressions)
        return [
            self.line(scope, header, owner),
            CodeLine(inner.indent, PROLOGUE),
            *self.body(statements, inner),
            CodeLine(inner.indent, EPILOGUE),
        ]

    def parameters(self, node: nodes.Macro | nodes.CallBlock, *, allow_caller: bool) -> str:
        expressions = ExpressionCompiler()
        defaults: list[str | None] = [None] * (len(node.args) - len(node.defaults))
        defaults.extend(expressions.compile(default) for default in node.defaults)

        params = [
            f"{python_identifier(arg.name)}: typing.Any = {default or 'None'}"
            for arg, default in zip(node.args, defaults)
        ]
        declared = {arg.name for arg in node.args}
        used = {
            name.name
            for name in node.find_all(nodes.Name)
            if name.ctx == "load" and name.name not in declared
        }
        uses_caller = allow_caller and "caller" in used
        if "varargs" in used:
            params.append("*varargs: typing.Any")
        elif uses_caller:
            params.append("*")
        if uses_caller:
            params.append("caller: _jt_rt.Caller = _jt_rt.no_caller")
        if "kwargs" in used:
            params.append("**kwargs: typing.Any")
        return ", ".join(params)

    def resolve(self, node: nodes.Extends | nodes.Include) -> Path | None:
        """Resolve a static extends/include target to its identifier."""
        names = constant_template_names(node.template)
        if names is None:
            return None
        for name in names:
            try:
                return self.canonicalizer.canonicalize_name(name)
            except UnableToCanonicalizeTemplate:
                continue
        if isinstance(node, nodes.Include) and node.ignore_missing:
            return None
        msg = f"Unable to resolve template {', '.join(names)!r}"
        raise self.fail(msg, node)

    def _stmt_Output(self, node: nodes.Output, scope: _Scope) -> list[Line]:
        lines: list[Line] = []
        for child in node.nodes:
            if isinstance(child, nodes.TemplateData):
                if child.data.strip():
                    lines.append(self.line(scope, f"{scope.buffer}.append({child.data!r})", child))
                continue
            value = scope.expressions.compile(child)
            lines.append(self.line(scope, f"{scope.buffer}.append(str({value}))", child))
        return lines

    def _stmt_For(self, node: nodes.For, scope: _Scope) -> list[Line]:
        expressions = scope.expressions
        iterable = expressions.compile(node.iter)
        target = expressions.target(node.target)
        if isinstance(node.target, nodes.Tuple):
            target = f"({target})"

        inner = scope.nested()
        lines = [self.line(scope, f"for loop, {target} in _jt_rt.loop({iterable}):", node)]
        if node.test is not None:
            lines.append(self.line(inner, f"if not {expressions.compile(node.test)}:", node))
            lines.append(self.line(inner, "continue", node, extra=1))
        lines.extend(self.suite(node.body, inner, node))

        if node.else_:
            lines.append(self.line(scope, f"if _jt_rt.empty({iterable}):", node))
            lines.extend(self.suite(node.else_, inner, node))
        return lines

    def _stmt_If(self, node: nodes.If, scope: _Scope) -> list[Line]:
        expressions = scope.expressions
        inner = scope.nested()
        lines = [self.line(scope, f"if {expressions.compile(node.test)}:", node)]
        lines.extend(self.suite(node.body, inner, node))
        for branch in node.elif_:
            lines.append(self.line(scope, f"elif {expressions.compile(branch.test)}:", branch))
            lines.extend(self.suite(branch.body, inner, branch))
        if node.else_:
            lines.append(self.line(scope, "else:", node.else_[0]))
            lines.extend(self.suite(node.else_, inner, node))
        return lines

    def _stmt_Assign(self, node: nodes.Assign, scope: _Scope) -> list[Line]:
        target = scope.expressions.target(node.target)
        value = scope.expressions.compile(node.node)
        return [self.line(scope, f"{target} = {value}", node)]

    def _stmt_AssignBlock(self, node: nodes.AssignBlock, scope: _Scope) -> list[Line]:
        buffer = f"_jt_buf{self.next_id()}"
        captured = f'"".join({buffer})'
        if node.filter is not None:
            captured = scope.expressions.compile(node.filter, filter_input=captured)
        target = scope.expressions.target(node.target)
        return [
            self.line(scope, f"{buffer}: list[str] = []", node),
            *self.body(node.body, replace(scope, buffer=buffer)),
            self.line(scope, f"{target} = {captured}", node),
        ]

    def _stmt_FilterBlock(self, node: nodes.FilterBlock, scope: _Scope) -> list[Line]:
        buffer = f"_jt_buf{self.next_id()}"
        filtered = scope.expressions.compile(node.filter, filter_input=f'"".join({buffer})')
        return [
            self.line(scope, f"{buffer}: list[str] = []", node),
            *self.body(node.body, replace(scope, buffer=buffer)),
            self.line(scope, f"{scope.buffer}.append({filtered})", node),
        ]

    def _stmt_Macro(self, node: nodes.Macro, scope: _Scope) -> list[Line]:
        params = self.parameters(node, allow_caller=True)
        header = f"def {python_identifier(node.name)}({params}) -> str:"
        return self.function(header, node.body, scope, node)

    def _stmt_CallBlock(self, node: nodes.CallBlock, scope: _Scope) -> list[Line]:
        caller = f"_jt_caller_{self.next_id()}"
        params = self.parameters(node, allow_caller=False)
        lines = self.function(f"def {caller}({params}) -> str:", node.body, scope, node)
        call = scope.expressions.call(node.call, [f"caller={caller}"])
        lines.append(self.line(scope, f"{scope.buffer}.append(str({call}))", node))
        return lines

    def _stmt_Block(self, node: nodes.Block, scope: _Scope) -> list[Line]:
        if node.name in self.blocks:
            raise self.fail(f"Block {node.name!r} defined twice", node)
        # Reserve the slot so outer blocks precede the blocks nested in them.
        self.blocks[node.name] = []
        definition_scope = _Scope(indent=0, buffer=OUTPUT_BUFFER, expressions=scope.expressions)
        self.blocks[node.name] = self.function(
            f"def {block_function(node.name)}() -> str:",
            node.body,
            definition_scope,
            node,
            expressions=ExpressionCompiler(block=node.name),
        )
        return [self.line(scope, f"{scope.buffer}.append({block_function(node.name)}())", node)]

    def _stmt_Extends(self, node: nodes.Extends, scope: _Scope) -> list[Line]:
        if not scope.top_level:
            raise self.fail("extends is only supported at the top level of a template", node)
        if self.parent is not None:
            raise self.fail("Template extends more than one parent", node)
        parent = self.resolve(node)
        if parent is None:
            raise self.fail("Dynamic extends targets are not supported", node)
        self.parent = parent
        return [self.line(scope, f"_jt_rt.extends({str(parent)!r})", node)]

    def _stmt_Include(self, node: nodes.Include, scope: _Scope) -> list[Line]:
        if constant_template_names(node.template) is None:
            target = scope.expressions.compile(node.template)
            return [self.line(scope, f"{scope.buffer}.append(_jt_rt.include_dynamic({target}))", node)]
        included = self.resolve(node)
        if included is None:
            return []
        self.includes.append(included)
        return [self.line(scope, f"{scope.buffer}.append(_jt_rt.include({str(included)!r}))", node)]

    def _stmt_Import(self, node: nodes.Import, scope: _Scope) -> list[Line]:
        template = scope.expressions.compile(node.template)
        target = python_identifier(node.target)
        return [self.line(scope, f"{target} = _jt_rt.import_template({template})", node)]

    def _stmt_FromImport(self, node: nodes.FromImport, scope: _Scope) -> list[Line]:
        template = scope.expressions.compile(node.template)
        lines: list[Line] = []
        for item in node.names:
            name, alias = item if isinstance(item, tuple) else (item, item)
            code = f"{python_identifier(alias)} = _jt_rt.import_template({template}).{name}"
            lines.append(self.line(scope, code, node))
        return lines

    def _stmt_With(self, node: nodes.With, scope: _Scope) -> list[Line]:
        lines = [
            self.line(
                scope,
                f"{scope.expressions.target(target)} = {scope.expressions.compile(value)}",
                node,
            )
            for target, value in zip(node.targets, node.values)
        ]
        lines.extend(self.body(node.body, scope))
        return lines

    def _stmt_Scope(self, node: nodes.Scope, scope: _Scope) -> list[Line]:
        return self.body(node.body, scope)

    def _stmt_ScopedEvalContextModifier(
        self, node: nodes.ScopedEvalContextModifier, scope: _Scope
    ) -> list[Line]:
        return self.body(node.body, scope)

    def _stmt_EvalContextModifier(self, node: nodes.EvalContextModifier, scope: _Scope) -> list[Line]:
        return []

    def _stmt_ExprStmt(self, node: nodes.ExprStmt, scope: _Scope) -> list[Line]:
        return [self.line(scope, scope.expressions.compile(node.node), node)]

    def _stmt_Continue(self, node: nodes.Continue, scope: _Scope) -> list[Line]:
        return [self.line(scope, "continue", node)]

    def _stmt_Break(self, node: nodes.Break, scope: _Scope) -> list[Line]:
        return [self.line(scope, "break", node)]


class TemplateCompiler:
    """Compiles templates into Python modules written to a scratch directory."""

    def __init__(self, environment: Environment, canonicalizer: TemplateCanonicalizer) -> None:
        self._environment = environment
        self._canonicalizer = canonicalizer

    def compile(self, template: Path, directory: Path) -> CompiledUnit:
        """Compile one template.

        Raises:
            CompilationError: If the template cannot be parsed or uses a
                construct that has no translation.
        """
        try:
            ast = parse_template(self._environment, template)
        except TemplateSyntaxError as exc:
            raise CompilationError(template, exc.message or "Syntax error", exc.lineno) from exc
        except OSError as exc:
            raise CompilationError(template, str(exc)) from exc

        builder = _UnitBuilder(template, self._canonicalizer)
        root_scope = _Scope(
            indent=0,
            buffer=OUTPUT_BUFFER,
            expressions=ExpressionCompiler(),
            top_level=True,
        )
        try:
            body = builder.body(ast.body, root_scope)
        except UnsupportedExpression as exc:
            raise CompilationError(template, str(exc), exc.lineno) from exc

        variables = context_variables(ast)
        source, source_map = render_module(
            title=f"Generated by jinjastan from {template}. Do not edit.",
            context=[context_declaration(name) for name in variables],
            definitions=chain.from_iterable(builder.blocks.values()),
            body=body,
        )

        python_file = directory / generated_file_name(template)
        python_file.write_text(source, encoding="utf-8")
        logger.debug("Compiled %s -> %s", template, python_file)

        return CompiledUnit(
            template=template,
            python_file=python_file,
            source=source,
            source_map=source_map,
            context_variables=variables,
            parent=builder.parent,
            includes=tuple(builder.includes),
        )


__all__ = ["IMPLICIT_NAMES", "CompilationError", "TemplateCompiler", "context_variables"]
