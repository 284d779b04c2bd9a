"""mypy plugin recording template render calls.

Loaded by mypy in collection mode (``plugins = typecheck.plugin``). For every
call to a configured render function whose template name is a string
literal, the plugin appends two records to the file named by
``JINJASTAN_COLLECT_FILE``: the call site, and the inferred type of every
variable passed to the template.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from mypy.nodes import CallExpr, DictExpr, MemberExpr, StrExpr
from mypy.plugin import FunctionContext, MethodContext, Plugin
from mypy.types import (
    AnyType,
    CallableType,
    Instance,
    LiteralType,
    NoneType,
    TupleType,
    TypedDictType,
    TypeType,
    UnionType,
    get_proper_type,
)

from contract.payloads import (
    ContextPayload,
    RenderPayload,
    TemplateContextRecord,
    TemplateRenderRecord,
    VariablePayload,
    encode_collected,
)
from typecheck.mypy_runner import COLLECT_FILE_ENV, RENDER_FUNCTIONS_ENV

if TYPE_CHECKING:
    from collections.abc import Callable

    from mypy.nodes import Expression
    from mypy.types import Type

ANY = "typing.Any"


def format_annotation(typ: Type) -> tuple[str, list[str]]:
    """Return an importable annotation for ``typ`` and the modules it needs.

    Types with no faithful spelling (type variables, local classes, partial
    types) degrade to ``typing.Any``.
    """
    modules: set[str] = set()
    text = _format(typ, modules)
    return text, sorted(modules)


def _format(typ: Type, modules: set[str]) -> str:
    proper = get_proper_type(typ)

    if isinstance(proper, NoneType):
        return "None"

    if isinstance(proper, LiteralType):
        return _format(proper.fallback, modules)

    if isinstance(proper, Instance):
        fullname = proper.type.fullname
        if not all(part.isidentifier() for part in fullname.split(".")):
            modules.add("typing")
            return ANY
        modules.add(proper.type.module_name)
        if not proper.args:
            return fullname
        arguments = ", ".join(_format(arg, modules) for arg in proper.args)
        return f"{fullname}[{arguments}]"

    if isinstance(proper, UnionType):
        parts: list[str] = []
        for item in proper.items:
            part = _format(item, modules)
            if part not in parts:
                parts.append(part)
        if ANY in parts:
            return ANY
        return " | ".join(parts)

    if isinstance(proper, TupleType):
        modules.add("builtins")
        if not proper.items:
            return "builtins.tuple[()]"
        return f"builtins.tuple[{', '.join(_format(item, modules) for item in proper.items)}]"

    if isinstance(proper, TypedDictType):
        modules.update({"builtins", "typing"})
        return f"builtins.dict[builtins.str, {ANY}]"

    if isinstance(proper, TypeType):
        modules.add("builtins")
        return f"builtins.type[{_format(proper.item, modules)}]"

    if isinstance(proper, CallableType):
        modules.add("typing")
        return f"typing.Callable[..., {_format(proper.ret_type, modules)}]"

    modules.add("typing")
    return ANY


def _template_name(call: CallExpr) -> tuple[str, Expression] | None:
    """The literal template name of a render call, and the expression holding it.

    ``render_template("page.html", ...)`` names it in the first argument;
    ``env.get_template("page.html").render(...)`` in the receiver.
    """
    if call.args and isinstance(call.args[0], StrExpr) and call.arg_names[0] is None:
        return call.args[0].value, call.args[0]
    callee = call.callee
    if isinstance(callee, MemberExpr) and isinstance(callee.expr, CallExpr):
        receiver = callee.expr
        if receiver.args and isinstance(receiver.args[0], StrExpr):
            return receiver.args[0].value, receiver.args[0]
    return None


class TemplateCollectorPlugin(Plugin):
    """Records render calls; never changes inferred types."""

    def _render_functions(self) -> frozenset[str]:
        configured = os.environ.get(RENDER_FUNCTIONS_ENV, "")
        return frozenset(name.strip() for name in configured.split(",") if name.strip())

    def get_function_hook(self, fullname: str) -> Callable[[FunctionContext], Type] | None:
        if fullname in self._render_functions():
            return self._on_function
        return None

    def get_method_hook(self, fullname: str) -> Callable[[MethodContext], Type] | None:
        if fullname in self._render_functions():
            return self._on_method
        return None

    def _on_function(self, ctx: FunctionContext) -> Type:
        self._record(ctx)
        return ctx.default_return_type

    def _on_method(self, ctx: MethodContext) -> Type:
        self._record(ctx)
        return ctx.default_return_type

    def _record(self, ctx: FunctionContext | MethodContext) -> None:
        collect_file = os.environ.get(COLLECT_FILE_ENV)
        call = ctx.context
        if not collect_file or not isinstance(call, CallExpr):
            return
        found = _template_name(call)
        if found is None:
            return
        template, template_expr = found

        variables: list[VariablePayload] = []
        for expressions, names, types in zip(ctx.args, ctx.arg_names, ctx.arg_types):
            for expression, name, typ in zip(expressions, names, types):
                if expression is template_expr:
                    continue
                if name is not None:
                    variables.append(self._variable(name, typ))
                elif isinstance(expression, DictExpr):
                    for key, value in expression.items:
                        if isinstance(key, StrExpr):
                            variables.append(
                                self._variable(key.value, ctx.api.get_expression_type(value))
                            )

        file = ctx.api.path
        render = RenderPayload(template=template, start_line=call.line)
        context = ContextPayload(template=template, start_line=call.line, variables=variables)
        with open(collect_file, "ab") as handle:
            handle.write(
                encode_collected(
                    TemplateRenderRecord(collector="template_render", file=file, data=render)
                )
            )
            handle.write(
                encode_collected(
                    TemplateContextRecord(collector="template_context", file=file, data=context)
                )
            )

    @staticmethod
    def _variable(name: str, typ: Type) -> VariablePayload:
        if isinstance(get_proper_type(typ), AnyType):
            return VariablePayload(name=name, type=ANY, modules=["typing"])
        annotation, modules = format_annotation(typ)
        return VariablePayload(name=name, type=annotation, modules=modules)


def plugin(version: str) -> type[Plugin]:
    del version
    return TemplateCollectorPlugin


__all__ = ["TemplateCollectorPlugin", "format_annotation", "plugin"]
