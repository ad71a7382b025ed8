"""AST-based source instrumentation for Python modules.

Every statement, function entry and ``if`` arm gets a counter call. Counter
keys are assigned in traversal order, so the same source always produces the
same instrumented code.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from suitecov.core.model.summary import FileCoverage

if TYPE_CHECKING:
    from collections.abc import Iterable

HIT_NAME = "__suitecov_hit__"
DECLARE_NAME = "__suitecov_declare__"
RUNTIME_MODULE = "suitecov.providers._runtime"

_FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


@dataclass(slots=True)
class Counters:
    """Counter keys discovered in one module."""

    statements: dict[str, int] = field(default_factory=dict)
    functions: list[str] = field(default_factory=list)
    branches: list[str] = field(default_factory=list)


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _is_future_import(stmt: ast.stmt) -> bool:
    return isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__"


class _Instrumenter(ast.NodeTransformer):
    def __init__(self, path: str, ignore_class_methods: Iterable[str] = ()) -> None:
        self.path = path
        self.ignored = frozenset(ignore_class_methods)
        self.counters = Counters()
        self._scopes: list[str] = ["module"]

    # -- counter calls -----------------------------------------------------

    def _hit(self, kind: str, key: str, at: ast.stmt) -> ast.stmt:
        call = ast.Expr(
            value=ast.Call(
                func=ast.Name(id=HIT_NAME, ctx=ast.Load()),
                args=[ast.Constant(self.path), ast.Constant(kind), ast.Constant(key)],
                keywords=[],
            )
        )
        return ast.copy_location(call, at)

    def _is_ignored(self, stmt: ast.stmt) -> bool:
        return self._scopes[-1] == "class" and isinstance(stmt, _FUNCTION_NODES) and stmt.name in self.ignored

    def instrument_body(self, body: list[ast.stmt]) -> list[ast.stmt]:
        out: list[ast.stmt] = []
        for stmt in body:
            if self._is_ignored(stmt):
                out.append(stmt)
                continue
            key = str(len(self.counters.statements))
            self.counters.statements[key] = stmt.lineno
            out.append(self._hit("s", key, stmt))
            out.append(self.visit(stmt))
        return out

    # -- traversal ---------------------------------------------------------

    def generic_visit(self, node: ast.AST) -> ast.AST:
        for name, value in ast.iter_fields(node):
            if not isinstance(value, list) or not value:
                continue
            if all(isinstance(v, ast.stmt) for v in value):
                setattr(node, name, self.instrument_body(value))
            elif all(isinstance(v, ast.excepthandler | ast.match_case) for v in value):
                for item in value:
                    self.generic_visit(item)
        return node

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.AST:
        docstring = node.body[:1] if _is_docstring(node.body[0]) else []
        rest = node.body[len(docstring) :]
        self._scopes.append("class")
        try:
            body = self.instrument_body(rest) if rest else []
        finally:
            self._scopes.pop()
        node.body = [*docstring, *body] or [ast.Pass()]
        return node

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> ast.AST:
        key = f"{node.name}:{node.lineno}"
        self.counters.functions.append(key)
        docstring = node.body[:1] if _is_docstring(node.body[0]) else []
        rest = node.body[len(docstring) :]
        self._scopes.append("function")
        try:
            body = self.instrument_body(rest) if rest else []
        finally:
            self._scopes.pop()
        node.body = [*docstring, self._hit("f", key, node), *body]
        return node

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:
        return self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AST:
        return self._visit_function(node)

    def visit_If(self, node: ast.If) -> ast.AST:
        taken, other = f"{node.lineno}:0", f"{node.lineno}:1"
        self.counters.branches.extend((taken, other))
        self.generic_visit(node)
        node.body.insert(0, self._hit("b", taken, node))
        node.orelse.insert(0, self._hit("b", other, node))
        return node


def _split_prologue(body: list[ast.stmt]) -> tuple[list[ast.stmt], list[ast.stmt]]:
    """Separate a module docstring and ``__future__`` imports from the rest."""
    idx = 0
    if body and _is_docstring(body[0]):
        idx = 1
    while idx < len(body) and _is_future_import(body[idx]):
        idx += 1
    return body[:idx], body[idx:]


def _header(path: str, counters: Counters) -> list[ast.stmt]:
    source = (
        f"from {RUNTIME_MODULE} import declare as {DECLARE_NAME}, hit as {HIT_NAME}\n"
        f"{DECLARE_NAME}({path!r}, {counters.statements!r}, {counters.functions!r}, {counters.branches!r})\n"
    )
    return ast.parse(source).body


def instrument(source: str, path: str, *, ignore_class_methods: Iterable[str] = ()) -> tuple[str, Counters]:
    """Return instrumented *source* and the counters it declares.

    Raises ``SyntaxError`` when *source* does not parse.
    """
    tree = ast.parse(source, filename=path)
    prologue, rest = _split_prologue(tree.body)
    instrumenter = _Instrumenter(path, ignore_class_methods)
    body = instrumenter.instrument_body(rest)
    tree.body = [*prologue, *_header(path, instrumenter.counters), *body]
    ast.fix_missing_locations(tree)
    return ast.unparse(tree), instrumenter.counters


def analyze(source: str, path: str, *, ignore_class_methods: Iterable[str] = ()) -> FileCoverage:
    """Return zero-hit coverage for a module that was never executed."""
    _, counters = instrument(source, path, ignore_class_methods=ignore_class_methods)
    return FileCoverage(
        path=path,
        statements=dict.fromkeys(counters.statements, 0),
        functions=dict.fromkeys(counters.functions, 0),
        branches=dict.fromkeys(counters.branches, 0),
        lines={str(line): 0 for line in counters.statements.values()},
    )


@dataclass(slots=True)
class CodeMap:
    """Function bodies and ``if`` arms of a module, keyed like :class:`Counters`."""

    # function key -> (first body line, last line)
    functions: dict[str, tuple[int, int]] = field(default_factory=dict)
    # ``if`` line -> first line of its body
    branches: dict[int, int] = field(default_factory=dict)


def code_map(source: str, path: str) -> CodeMap:
    """Locate every function and ``if`` in *source* without instrumenting it.

    Raises ``SyntaxError`` when *source* does not parse.
    """
    layout = CodeMap()
    for node in ast.walk(ast.parse(source, filename=path)):
        if isinstance(node, _FUNCTION_NODES):
            end = node.end_lineno or node.body[-1].lineno
            layout.functions[f"{node.name}:{node.lineno}"] = (node.body[0].lineno, end)
        elif isinstance(node, ast.If):
            layout.branches[node.lineno] = node.body[0].lineno
    return layout


__all__ = ["CodeMap", "Counters", "analyze", "code_map", "instrument"]
