"""Translation of Jinja2 expressions into Python expressions."""

from __future__ import annotations

import keyword
from typing import TYPE_CHECKING

from jinja2 import nodes

from compilation.codegen import block_function, python_identifier, runtime_attribute
from jinjastan_runtime.runtime import GLOBALS

if TYPE_CHECKING:
    from collections.abc import Sequence

# Globals implemented by the runtime rather than by Python builtins.
_RUNTIME_GLOBALS = GLOBALS - {"range", "dict"}

_COMPARISONS = {
    "eq": "==",
    "ne": "!=",
    "gt": ">",
    "gteq": ">=",
    "lt": "<",
    "lteq": "<=",
    "in": "in",
    "notin": "not in",
}

# Tests spelled as operators (``x is == y``, ``x is < y``).
_OPERATOR_TESTS = {
    "==": "eq",
    "!=": "ne",
    "<": "lt",
    "<=": "le",
    ">": "gt",
    ">=": "ge",
}


class UnsupportedExpression(Exception):
    """Raised for expression nodes with no Python counterpart."""

    def __init__(self, node: nodes.Node, reason: str | None = None) -> None:
        self.node = node
        self.lineno = node.lineno
        super().__init__(reason or f"Unsupported expression: {type(node).__name__}")


class ExpressionCompiler:
    """Compile a Jinja2 expression tree into Python source.

    ``block`` is the name of the block being compiled, if any; it is what
    ``super()`` refers to.
    """

    def __init__(self, *, block: str | None = None) -> None:
        self.block = block

    def compile(self, node: nodes.Expr, *, filter_input: str | None = None) -> str:
        """Return the Python source of ``node``.

        ``filter_input`` replaces the missing operand of filters used in
        ``{% filter %}`` blocks and ``{% set %}`` block assignments.
        """
        method = getattr(self, f"_visit_{type(node).__name__}", None)
        if method is None:
            raise UnsupportedExpression(node)
        return method(node, filter_input)

    def target(self, node: nodes.Expr) -> str:
        """Compile an assignment target (``for`` loops, ``set``)."""
        if isinstance(node, nodes.Name):
            return python_identifier(node.name)
        if isinstance(node, nodes.Tuple):
            items = [self.target(item) for item in node.items]
            return ", ".join(items) + ("," if len(items) == 1 else "")
        if isinstance(node, nodes.NSRef):
            return f"{python_identifier(node.name)}.{node.attr}"
        raise UnsupportedExpression(node, "Unsupported assignment target")

    def call(self, node: nodes.Call, extra: Sequence[str] = ()) -> str:
        """Compile a call, appending ``extra`` already-compiled arguments."""
        if isinstance(node.node, nodes.Name) and node.node.name == "super":
            if self.block is None:
                raise UnsupportedExpression(node, "super() used outside of a block")
            return f"{block_function(self.block, 1)}()"
        function = self.compile(node.node)
        arguments = self._arguments(node.args, node.kwargs, node.dyn_args, node.dyn_kwargs)
        arguments.extend(extra)
        return f"{function}({', '.join(arguments)})"

    def _arguments(
        self,
        args: Sequence[nodes.Expr],
        kwargs: Sequence[nodes.Keyword],
        dyn_args: nodes.Expr | None,
        dyn_kwargs: nodes.Expr | None,
    ) -> list[str]:
        result = [self.compile(arg) for arg in args]
        if dyn_args is not None:
            result.append(f"*{self.compile(dyn_args)}")
        unusual: list[str] = []
        for kwarg in kwargs:
            value = self.compile(kwarg.value)
            if keyword.iskeyword(kwarg.key):
                unusual.append(f"{kwarg.key!r}: {value}")
            else:
                result.append(f"{kwarg.key}={value}")
        if unusual:
            result.append(f"**{{{', '.join(unusual)}}}")
        if dyn_kwargs is not None:
            result.append(f"**{self.compile(dyn_kwargs)}")
        return result

    def _visit_Name(self, node: nodes.Name, filter_input: str | None) -> str:
        if node.name in _RUNTIME_GLOBALS:
            return f"_jt_rt.{node.name}"
        return python_identifier(node.name)

    def _visit_NSRef(self, node: nodes.NSRef, filter_input: str | None) -> str:
        return f"{python_identifier(node.name)}.{node.attr}"

    def _visit_Const(self, node: nodes.Const, filter_input: str | None) -> str:
        return repr(node.value)

    def _visit_TemplateData(self, node: nodes.TemplateData, filter_input: str | None) -> str:
        return repr(node.data)

    def _visit_Tuple(self, node: nodes.Tuple, filter_input: str | None) -> str:
        items = [self.compile(item) for item in node.items]
        if len(items) == 1:
            return f"({items[0]},)"
        return f"({', '.join(items)})"

    def _visit_List(self, node: nodes.List, filter_input: str | None) -> str:
        return f"[{', '.join(self.compile(item) for item in node.items)}]"

    def _visit_Dict(self, node: nodes.Dict, filter_input: str | None) -> str:
        pairs = (f"{self.compile(pair.key)}: {self.compile(pair.value)}" for pair in node.items)
        return f"{{{', '.join(pairs)}}}"

    def _visit_Getattr(self, node: nodes.Getattr, filter_input: str | None) -> str:
        if isinstance(node.node, nodes.Name) and node.node.name == "self":
            return block_function(node.attr)
        owner = self.compile(node.node)
        if keyword.iskeyword(node.attr):
            return f"getattr({owner}, {node.attr!r})"
        return f"{owner}.{node.attr}"

    def _visit_Getitem(self, node: nodes.Getitem, filter_input: str | None) -> str:
        return f"{self.compile(node.node)}[{self.compile(node.arg)}]"

    def _visit_Slice(self, node: nodes.Slice, filter_input: str | None) -> str:
        parts = [
            "" if part is None else self.compile(part)
            for part in (node.start, node.stop, node.step)
        ]
        if not parts[2]:
            return f"{parts[0]}:{parts[1]}"
        return ":".join(parts)

    def _visit_Call(self, node: nodes.Call, filter_input: str | None) -> str:
        return self.call(node)

    def _visit_Filter(self, node: nodes.Filter, filter_input: str | None) -> str:
        if node.node is None:
            if filter_input is None:
                raise UnsupportedExpression(node, f"Filter {node.name!r} has no input")
            operand = filter_input
        else:
            operand = self.compile(node.node, filter_input=filter_input)
        arguments = self._arguments(node.args, node.kwargs, node.dyn_args, node.dyn_kwargs)
        return f"_jt_filters.{runtime_attribute(node.name)}({', '.join([operand, *arguments])})"

    def _visit_Test(self, node: nodes.Test, filter_input: str | None) -> str:
        name = _OPERATOR_TESTS.get(node.name, node.name)
        operand = self.compile(node.node, filter_input=filter_input)
        arguments = self._arguments(node.args, node.kwargs, node.dyn_args, node.dyn_kwargs)
        return f"_jt_tests.{runtime_attribute(name)}({', '.join([operand, *arguments])})"

    def _visit_CondExpr(self, node: nodes.CondExpr, filter_input: str | None) -> str:
        otherwise = "None" if node.expr2 is None else self.compile(node.expr2)
        return f"({self.compile(node.expr1)} if {self.compile(node.test)} else {otherwise})"

    def _visit_Compare(self, node: nodes.Compare, filter_input: str | None) -> str:
        parts = [self.compile(node.expr)]
        for operand in node.ops:
            parts.append(_COMPARISONS[operand.op])
            parts.append(self.compile(operand.expr))
        return f"({' '.join(parts)})"

    def _visit_Concat(self, node: nodes.Concat, filter_input: str | None) -> str:
        return f"_jt_rt.concat({', '.join(self.compile(item) for item in node.nodes)})"

    def _visit_MarkSafe(self, node: nodes.MarkSafe, filter_input: str | None) -> str:
        return self.compile(node.expr)

    def _visit_MarkSafeIfAutoescape(
        self, node: nodes.MarkSafeIfAutoescape, filter_input: str | None
    ) -> str:
        return self.compile(node.expr)

    def _visit_ContextReference(self, node: nodes.Expr, filter_input: str | None) -> str:
        return "_jt_rt.context()"

    _visit_DerivedContextReference = _visit_ContextReference

    def _binary(self, node: nodes.BinExpr) -> str:
        return f"({self.compile(node.left)} {node.operator} {self.compile(node.right)})"

    def _unary(self, node: nodes.UnaryExpr) -> str:
        operand = self.compile(node.node)
        if node.operator == "not":
            return f"(not {operand})"
        return f"({node.operator}{operand})"

    def _visit_Add(self, node: nodes.Add, filter_input: str | None) -> str:
        return self._binary(node)

    _visit_Sub = _visit_Mul = _visit_Div = _visit_FloorDiv = _visit_Add
    _visit_Mod = _visit_Pow = _visit_And = _visit_Or = _visit_Add

    def _visit_Not(self, node: nodes.Not, filter_input: str | None) -> str:
        return self._unary(node)

    _visit_Neg = _visit_Pos = _visit_Not


__all__ = ["ExpressionCompiler", "UnsupportedExpression"]
