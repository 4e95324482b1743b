"""
Small AST helpers shared by the evidence collectors.
"""

from __future__ import annotations

import ast
from typing import Any, Iterator

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef

_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)

SELF_NAMES = ("self", "cls")

_NO_VALUE = object()


def walk_local(root: ast.AST) -> Iterator[ast.AST]:
    """Like ast.walk, but does not descend into nested functions or classes."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        for child in ast.iter_child_nodes(node):
            if isinstance(child, _SCOPE_NODES):
                continue
            stack.append(child)


def local_nodes(root: ast.AST, node_type: type | tuple[type, ...]) -> list[Any]:
    """Nodes of ``node_type`` in the same scope as ``root``, in source order."""
    found = [n for n in walk_local(root) if isinstance(n, node_type)]
    found.sort(key=lambda n: (getattr(n, "lineno", 0), getattr(n, "col_offset", 0)))
    return found


def body_statements(func: FunctionNode) -> list[ast.stmt]:
    """Function body without its docstring."""
    body = list(func.body)
    if (
        body
        and isinstance(body[0], ast.Expr)
        and isinstance(body[0].value, ast.Constant)
        and isinstance(body[0].value.value, str)
    ):
        body = body[1:]
    return body


def dotted_name(node: ast.AST) -> str | None:
    """Return ``a.b.c`` for Name/Attribute chains, None for anything else."""
    parts = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if isinstance(node, ast.Name):
        parts.append(node.id)
        return ".".join(reversed(parts))
    return None


def call_name(call: ast.Call) -> str | None:
    return dotted_name(call.func)


def is_name(node: ast.AST, name: str) -> bool:
    return isinstance(node, ast.Name) and node.id == name


def literal_value(node: ast.AST, default: Any = _NO_VALUE) -> Any:
    """Evaluate a literal node; return ``default`` (or raise) when it isn't one."""
    try:
        return ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
        if default is _NO_VALUE:
            raise ValueError(f"not a literal: {ast.unparse(node)}") from None
        return default


def yaml_safe(value: Any) -> Any:
    """Convert literal values into types a safe YAML dumper accepts."""
    if isinstance(value, (tuple, set, frozenset)):
        items = [yaml_safe(v) for v in value]
        return items if isinstance(value, tuple) else sorted(items, key=repr)
    if isinstance(value, list):
        return [yaml_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): yaml_safe(v) for k, v in value.items()}
    if isinstance(value, bytes):
        return value.decode("latin-1")
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


def raises(body: list[ast.stmt]) -> bool:
    """True if a block raises at its top level."""
    return any(isinstance(stmt, ast.Raise) for stmt in body)


def raising_guards(func: FunctionNode) -> Iterator[tuple[ast.expr, ast.Raise | None]]:
    """Yield (condition-that-fails, raise) pairs for guard clauses.

    ``if cond: raise ...`` yields ``cond``; ``assert cond`` yields ``not cond``
    with no raise node.
    """
    for node in local_nodes(func, (ast.If, ast.Assert)):
        if isinstance(node, ast.If) and raises(node.body):
            raise_node = next(s for s in node.body if isinstance(s, ast.Raise))
            yield node.test, raise_node
        elif isinstance(node, ast.Assert):
            yield ast.UnaryOp(op=ast.Not(), operand=node.test), None


def message_text(raise_node: ast.Raise | None) -> str:
    """Best-effort text of the message passed to a raised exception."""
    if raise_node is None or raise_node.exc is None:
        return ""
    exc = raise_node.exc
    if isinstance(exc, ast.Call):
        pieces = []
        for arg in exc.args:
            if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                pieces.append(arg.value)
            elif isinstance(arg, ast.JoinedStr):
                for part in arg.values:
                    if isinstance(part, ast.Constant):
                        pieces.append(str(part.value))
                    elif isinstance(part, ast.FormattedValue):
                        pieces.append(ast.unparse(part.value))
        return " ".join(pieces)
    return ""


def negate(node: ast.expr) -> ast.expr:
    """Negate a condition, unwrapping an existing ``not``."""
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
        return node.operand
    return ast.UnaryOp(op=ast.Not(), operand=node)


COMPARE_SYMBOLS = {
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
    ast.Eq: "==",
    ast.NotEq: "!=",
}


def compare_symbol(op: ast.cmpop) -> str | None:
    return COMPARE_SYMBOLS.get(type(op))
