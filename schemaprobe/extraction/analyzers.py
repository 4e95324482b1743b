"""
Auxiliary per-callable analyzers whose results ride along in the schema's
``analysis`` block: control-flow complexity, side effects, return-value risk
and accessor detection.
"""

from __future__ import annotations

import ast
from typing import Any

from schemaprobe.extraction.returns import ReturnShapes
from schemaprobe.extraction.utils import (
    FunctionNode,
    body_statements,
    call_name,
    dotted_name,
    is_name,
    local_nodes,
    walk_local,
)
from schemaprobe.types import CallableUnit, ErrorConvention, ParamType, ReturnSpec

LOW_COMPLEXITY = 3
MODERATE_COMPLEXITY = 7

_DECISION_NODES = (ast.If, ast.For, ast.AsyncFor, ast.While, ast.IfExp, ast.ExceptHandler, ast.Assert)
_NESTING_NODES = (ast.If, ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith, ast.Try, ast.Match)


def _nesting_depth(nodes: list[ast.stmt], depth: int = 0) -> int:
    deepest = depth
    for node in nodes:
        if isinstance(node, _NESTING_NODES):
            children: list[ast.stmt] = []
            for attr in ("body", "orelse", "finalbody"):
                children.extend(getattr(node, attr, []) or [])
            for handler in getattr(node, "handlers", []) or []:
                children.extend(handler.body)
            for case in getattr(node, "cases", []) or []:
                children.extend(case.body)
            deepest = max(deepest, _nesting_depth(children, depth + 1))
    return deepest


def analyze_complexity(func: FunctionNode) -> dict[str, Any]:
    score = 1
    branching = 0
    for node in walk_local(func):
        if isinstance(node, _DECISION_NODES):
            score += 1
        if isinstance(node, (ast.If, ast.IfExp)):
            branching += 1
        elif isinstance(node, ast.BoolOp):
            score += len(node.values) - 1
        elif isinstance(node, ast.comprehension):
            score += len(node.ifs)
        elif isinstance(node, ast.match_case):
            score += 1
            branching += 1
    statements = body_statements(func)
    tail = statements[-1] if statements else None
    early_returns = sum(1 for ret in local_nodes(func, ast.Return) if ret is not tail)
    exception_paths = len(local_nodes(func, (ast.Raise, ast.ExceptHandler)))
    if score <= LOW_COMPLEXITY:
        level = "low"
    elif score <= MODERATE_COMPLEXITY:
        level = "moderate"
    else:
        level = "high"
    return {
        "cyclomatic_score": score,
        "branching_points": branching,
        "early_returns": early_returns,
        "exception_paths": exception_paths,
        "nesting_depth": _nesting_depth(statements),
        "complexity_level": level,
    }


IO_CALLS = frozenset({"print", "open", "input", "sys.stdout.write", "sys.stderr.write", "os.write"})
IO_METHODS = frozenset({"write_text", "write_bytes", "read_text", "read_bytes", "touch", "unlink", "mkdir"})
EXTERNAL_PREFIXES = ("subprocess.", "os.system", "os.popen", "os.exec", "os.spawn", "shutil.")
ENV_MUTATORS = frozenset({"update", "setdefault", "pop", "clear", "__setitem__"})
MUTATING_METHODS = frozenset(
    {"append", "extend", "insert", "pop", "remove", "clear", "update", "setdefault", "add", "discard", "sort"}
)


def _self_field(node: ast.expr) -> str | None:
    """``self.x``, ``self.x[...]`` or ``self.x.y`` -> ``x``."""
    while isinstance(node, ast.Subscript):
        node = node.value
    while isinstance(node, ast.Attribute):
        if is_name(node.value, "self"):
            return node.attr
        node = node.value
    return None


def analyze_side_effects(func: FunctionNode) -> dict[str, Any]:
    mutated: set[str] = set()
    globals_touched: set[str] = set()
    io: set[str] = set()
    external: set[str] = set()

    for node in walk_local(func):
        targets: list[ast.expr] = []
        if isinstance(node, ast.Assign):
            targets = list(node.targets)
        elif isinstance(node, (ast.AugAssign, ast.AnnAssign)):
            targets = [node.target]
        elif isinstance(node, ast.Delete):
            targets = list(node.targets)
        elif isinstance(node, ast.Global):
            globals_touched.update(node.names)
        for target in targets:
            field = _self_field(target)
            if field is not None:
                mutated.add(field)
            if isinstance(target, ast.Subscript) and dotted_name(target.value) == "os.environ":
                globals_touched.add("os.environ")

        if isinstance(node, ast.Call):
            name = call_name(node) or ""
            if name in IO_CALLS:
                io.add(name)
            elif isinstance(node.func, ast.Attribute) and node.func.attr in IO_METHODS:
                io.add(node.func.attr)
            if name.startswith(EXTERNAL_PREFIXES):
                external.add(name)
            if name == "os.putenv" or (name.startswith("os.environ.") and name.rsplit(".", 1)[-1] in ENV_MUTATORS):
                globals_touched.add("os.environ")
            if isinstance(node.func, ast.Attribute) and node.func.attr in MUTATING_METHODS:
                field = _self_field(node.func.value)
                if field is not None:
                    mutated.add(field)

    if globals_touched or io or external:
        purity = "impure"
    elif mutated:
        purity = "self_mutating"
    else:
        purity = "pure"
    return {
        "mutates_self": sorted(mutated),
        "globals": sorted(globals_touched),
        "io": sorted(io),
        "external_calls": sorted(external),
        "purity_level": purity,
    }


CONTEXT_STABILITY_PENALTY = 25
CONTEXT_CONSISTENCY_PENALTY = 15
MIXED_SELF_PENALTY = 30
IMPLICIT_NONE_PENALTY = 20
SENTINEL_PENALTY = 10
EMPTY_COLLECTION_PENALTY = 15
SWALLOWED_EXCEPTION_PENALTY = 20
BOOLEAN_BONUS = 5


def analyze_return_meta(spec: ReturnSpec, shapes: ReturnShapes) -> dict[str, Any]:
    """Score how predictable a callable's return values are (0-100 each)."""
    stability = 100
    consistency = 100
    flags = []
    if spec.context_sensitive:
        stability -= CONTEXT_STABILITY_PENALTY
        consistency -= CONTEXT_CONSISTENCY_PENALTY
        flags.append("context_sensitive")
    if shapes.returns_self and shapes.returns_other:
        consistency -= MIXED_SELF_PENALTY
        flags.append("mixed_return_types")
    if shapes.value_returns and (shapes.bare_returns or shapes.falls_off_end):
        stability -= IMPLICIT_NONE_PENALTY
        flags.append("implicit_none")
    if spec.error_convention is ErrorConvention.IMPLICIT_NONE or spec.error_convention is ErrorConvention.SENTINEL:
        stability -= SENTINEL_PENALTY
        flags.append("none_on_error" if spec.error_convention is ErrorConvention.IMPLICIT_NONE else "sentinel_on_error")
    if shapes.empty_collection_in_guard:
        consistency -= EMPTY_COLLECTION_PENALTY
        flags.append("empty_collection_on_error")
    if shapes.swallows_exceptions:
        stability -= SWALLOWED_EXCEPTION_PENALTY
        flags.append("exception_swallowing")
    if spec.type is ParamType.BOOLEAN:
        stability += BOOLEAN_BONUS
    return {
        "stability_score": max(0, min(100, stability)),
        "consistency_score": max(0, min(100, consistency)),
        "risk_flags": flags,
    }


def detect_accessor(unit: CallableUnit) -> dict[str, Any] | None:
    """Recognise plain getters, setters and combined get/set methods."""
    func = unit.node
    if func is None or unit.class_name is None:
        return None
    args = [a.arg for a in list(func.args.posonlyargs) + list(func.args.args)]
    if not args or args[0] != "self":
        return None
    params = args[1:]
    statements = body_statements(func)

    if not params and len(statements) == 1 and isinstance(statements[0], ast.Return):
        field = _self_field(statements[0].value) if statements[0].value is not None else None
        if field is not None and isinstance(statements[0].value, ast.Attribute):
            return {"type": "getter", "field": field}

    if len(params) != 1:
        return None
    param = params[0]

    assigned = None
    for stmt in statements:
        if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1 and is_name(stmt.value, param):
            assigned = _self_field(stmt.targets[0])
    returns_self = any(is_name(r.value, "self") for r in local_nodes(func, ast.Return) if r.value is not None)
    only_assign_and_return = all(
        isinstance(s, ast.Assign) or (isinstance(s, ast.Return) and (s.value is None or is_name(s.value, "self")))
        for s in statements
    )
    if assigned is not None and only_assign_and_return:
        accessor = {"type": "setter", "field": assigned}
        if returns_self:
            accessor["chainable"] = True
        return accessor

    # if value is not None: self.x = value; return self.x
    if func.args.defaults and len(statements) == 2:
        guard, ret = statements
        if (
            isinstance(guard, ast.If)
            and isinstance(ret, ast.Return)
            and ret.value is not None
            and len(guard.body) == 1
            and isinstance(guard.body[0], ast.Assign)
            and is_name(guard.body[0].value, param)
        ):
            field = _self_field(guard.body[0].targets[0])
            if field is not None and _self_field(ret.value) == field:
                return {"type": "getset", "field": field}
    return None
