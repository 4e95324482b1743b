"""
Return-value evidence.

The return type is decided by a weighted vote over every ``return`` in the
function body, seeded by the documented type. A separate boolean score,
built from docstring phrasing, the function name and 0/1 returns, can
promote a vague vote winner to ``boolean``. The shape summary computed along
the way feeds the return-risk analyzer.
"""

from __future__ import annotations

import ast
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from schemaprobe.extraction.docstrings import returns_text
from schemaprobe.extraction.utils import (
    FunctionNode,
    body_statements,
    call_name,
    dotted_name,
    is_name,
    local_nodes,
    walk_local,
    yaml_safe,
)
from schemaprobe.source_model import SourceModel
from schemaprobe.types import CallableUnit, ErrorConvention, ParamType, ReturnSpec

DOC_VOTE_WEIGHT = 3
CONSTRUCTION_VOTE_WEIGHT = 2

BOOLEAN_THRESHOLD = 40
BOOLEAN_DOC_WEIGHT = 40
BOOLEAN_NAME_WEIGHT = 30
BOOLEAN_LITERAL_WEIGHT = 20
BOOLEAN_LITERAL_CAP = 40
BOOLEAN_TERNARY_WEIGHT = 30

BOOLEAN_PREFIXES = ("is_", "has_", "can_", "should_", "contains_", "exists_")
BOOLEAN_SUFFIXES = ("_ok",)
BOOLEAN_OVERRIDABLE = frozenset(
    {ParamType.SCALAR, ParamType.ARRAY, ParamType.NONE, ParamType.UNKNOWN, ParamType.INTEGER}
)

DOC_TYPE_WORDS = [
    (re.compile(r"\b(bool|boolean|true or false|true/false)\b", re.I), ParamType.BOOLEAN),
    (re.compile(r"\b(int|integer|count|number of)\b", re.I), ParamType.INTEGER),
    (re.compile(r"\b(float|number|numeric)\b", re.I), ParamType.NUMBER),
    (re.compile(r"\b(str|string|text)\b", re.I), ParamType.STRING),
    (re.compile(r"\b(list|array|tuple|sequence)\b", re.I), ParamType.ARRAY),
    (re.compile(r"\b(dict|hash|mapping|map)\b", re.I), ParamType.MAP),
    (re.compile(r"\b(self|instance|object)\b", re.I), ParamType.OBJECT),
    (re.compile(r"\bnothing\b|^\s*none\b", re.I), ParamType.NONE),
]
DOC_SUCCESS_RE = re.compile(r"\b(1|true)\s+(on|if|for)\s+success\b", re.I)
DOC_FAILURE_RE = re.compile(r"\b(0|false|none)\s+(on|if|for)\s+(failure|error)\b", re.I)
DOC_RAISES_RE = re.compile(r"\b(raises|dies|croaks|throws)\b.*\b(error|failure|invalid)\b", re.I)
DOC_BOOLEAN_RE = re.compile(r"\b(true|false|boolean|bool|on success|on failure|whether)\b", re.I)

LITERAL_TYPES = [
    (bool, ParamType.BOOLEAN),
    (str, ParamType.STRING),
    (bytes, ParamType.STRING),
    (int, ParamType.INTEGER),
    (float, ParamType.NUMBER),
]
BUILTIN_CALL_TYPES = {
    "len": ParamType.INTEGER,
    "int": ParamType.INTEGER,
    "sum": ParamType.NUMBER,
    "float": ParamType.NUMBER,
    "round": ParamType.NUMBER,
    "str": ParamType.STRING,
    "repr": ParamType.STRING,
    "format": ParamType.STRING,
    "bool": ParamType.BOOLEAN,
    "isinstance": ParamType.BOOLEAN,
    "all": ParamType.BOOLEAN,
    "any": ParamType.BOOLEAN,
    "list": ParamType.ARRAY,
    "sorted": ParamType.ARRAY,
    "tuple": ParamType.ARRAY,
    "set": ParamType.ARRAY,
    "dict": ParamType.MAP,
}


@dataclass
class ReturnShapes:
    """What the ``return`` statements of a function look like."""

    types: list[ParamType] = field(default_factory=list)
    value_returns: int = 0
    bare_returns: int = 0
    multi_value: bool = False
    single_value: bool = False
    returns_self: bool = False
    returns_other: bool = False
    empty_collection_in_guard: bool = False
    none_in_guard: bool = False
    sentinel_in_guard: bool = False
    raises: bool = False
    swallows_exceptions: bool = False
    falls_off_end: bool = False
    literal_bool_returns: int = 0
    ternary_bool: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "value_returns": self.value_returns,
            "bare_returns": self.bare_returns,
            "multi_value": self.multi_value,
            "returns_self": self.returns_self,
            "raises": self.raises,
        }


def _is_bool_literal(node: ast.expr | None) -> bool:
    return (
        isinstance(node, ast.Constant)
        and (node.value is True or node.value is False or (type(node.value) is int and node.value in (0, 1)))
    )


def _is_empty_collection(node: ast.expr) -> bool:
    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        return not node.elts
    if isinstance(node, ast.Dict):
        return not node.keys
    return False


def _guard_returns(func: FunctionNode) -> list[ast.Return]:
    """Returns that sit inside an ``if`` body which is not the function's tail."""
    guarded = []
    statements = body_statements(func)
    for index, stmt in enumerate(statements):
        if not isinstance(stmt, ast.If) or index == len(statements) - 1:
            continue
        for node in walk_local(stmt):
            if isinstance(node, ast.Return) and node in stmt.body:
                guarded.append(node)
    return guarded


class ReturnAnalyzer:
    """Analyse the return behaviour of one callable."""

    def __init__(self, unit: CallableUnit, model: SourceModel):
        self.unit = unit
        self.model = model
        self.func = unit.node
        self.returns: list[ast.Return] = local_nodes(self.func, ast.Return) if self.func else []
        self.assignments = self._last_assignments()

    def _last_assignments(self) -> dict[str, ast.expr]:
        assigned: dict[str, ast.expr] = {}
        if self.func is None:
            return assigned
        for node in local_nodes(self.func, ast.Assign):
            for target in node.targets:
                if isinstance(target, ast.Name):
                    assigned[target.id] = node.value
        return assigned

    def _is_construction(self, node: ast.expr) -> str | None:
        """Return the class built by ``node``, if it is a construction expression."""
        if not isinstance(node, ast.Call):
            return None
        func = node.func
        if is_name(func, "cls"):
            return self.unit.class_name or "cls"
        if isinstance(func, ast.Call) and call_name(func) == "type" and func.args and is_name(func.args[0], "self"):
            return self.unit.class_name or "self"
        if dotted_name(func) == "self.__class__":
            return self.unit.class_name or "self"
        name = dotted_name(func)
        if name and name in self.model.classes:
            return name
        return None

    def classify(self, node: ast.expr | None, depth: int = 0) -> tuple[ParamType, str | None, int]:
        """Return (type, class, vote weight) for one returned expression."""
        if node is None or (isinstance(node, ast.Constant) and node.value is None):
            return ParamType.NONE, None, 1
        if isinstance(node, ast.Constant):
            for python_type, param_type in LITERAL_TYPES:
                if isinstance(node.value, python_type):
                    return param_type, None, 1
            return ParamType.SCALAR, None, 1
        if isinstance(node, ast.JoinedStr):
            return ParamType.STRING, None, 1
        if isinstance(node, (ast.List, ast.ListComp, ast.Set, ast.SetComp, ast.Tuple, ast.GeneratorExp)):
            return ParamType.ARRAY, None, 1
        if isinstance(node, (ast.Dict, ast.DictComp)):
            return ParamType.MAP, None, 1
        if isinstance(node, (ast.Compare, ast.BoolOp)) or (
            isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not)
        ):
            if isinstance(node, ast.BoolOp):
                return ParamType.SCALAR, None, 1
            return ParamType.BOOLEAN, None, 1
        if is_name(node, "self"):
            return ParamType.OBJECT, self.unit.class_name, 1
        constructed = self._is_construction(node)
        if constructed is not None:
            return ParamType.OBJECT, constructed, CONSTRUCTION_VOTE_WEIGHT
        if isinstance(node, ast.Call):
            name = call_name(node)
            if name in BUILTIN_CALL_TYPES:
                return BUILTIN_CALL_TYPES[name], None, 1
            if name and name.endswith((".join", ".format", ".strip", ".lower", ".upper")):
                return ParamType.STRING, None, 1
            return ParamType.SCALAR, None, 1
        if isinstance(node, ast.IfExp):
            return self.classify(node.body, depth)
        if isinstance(node, ast.Name) and depth < 3 and node.id in self.assignments:
            return self.classify(self.assignments[node.id], depth + 1)
        return ParamType.SCALAR, None, 1

    def shapes(self) -> ReturnShapes:
        shapes = ReturnShapes()
        if self.func is None:
            return shapes
        guarded = set(map(id, _guard_returns(self.func)))
        for ret in self.returns:
            value = ret.value
            if value is None or (isinstance(value, ast.Constant) and value.value is None):
                shapes.bare_returns += 1
                if id(ret) in guarded:
                    shapes.none_in_guard = True
                continue
            shapes.value_returns += 1
            param_type, _, _ = self.classify(value)
            shapes.types.append(param_type)
            if isinstance(value, ast.Tuple) and len(value.elts) > 1:
                shapes.multi_value = True
            else:
                shapes.single_value = True
            if is_name(value, "self"):
                shapes.returns_self = True
            else:
                shapes.returns_other = True
            if _is_bool_literal(value):
                shapes.literal_bool_returns += 1
            if isinstance(value, ast.IfExp) and _is_bool_literal(value.body) and _is_bool_literal(value.orelse):
                shapes.ternary_bool = True
            if id(ret) in guarded:
                if _is_empty_collection(value):
                    shapes.empty_collection_in_guard = True
                elif isinstance(value, ast.Constant):
                    shapes.sentinel_in_guard = True
        shapes.raises = bool(local_nodes(self.func, ast.Raise))
        for handler in local_nodes(self.func, ast.ExceptHandler):
            if not any(isinstance(n, ast.Raise) for n in walk_local(handler)):
                shapes.swallows_exceptions = True
        statements = body_statements(self.func)
        shapes.falls_off_end = bool(statements) and not isinstance(statements[-1], (ast.Return, ast.Raise))
        return shapes

    def _from_documentation(self, spec: ReturnSpec) -> None:
        text = returns_text(self.unit.doc)
        self.doc_text = text
        if not text:
            return
        if DOC_SUCCESS_RE.search(text):
            spec.type = ParamType.BOOLEAN
            spec.value = True if "true" in DOC_SUCCESS_RE.search(text).group(1).lower() else 1
        failure = DOC_FAILURE_RE.search(text)
        if failure:
            word = failure.group(1).lower()
            spec.alt_value = {"0": 0, "false": False, "none": None}[word]
        if DOC_RAISES_RE.search(text):
            spec.lives = True
        if spec.type is None:
            for pattern, param_type in DOC_TYPE_WORDS:
                if pattern.search(text):
                    spec.type = param_type
                    break

    def _vote(self, spec: ReturnSpec) -> None:
        votes: Counter[ParamType] = Counter()
        classes: dict[ParamType, str] = {}
        if spec.type is not None:
            votes[spec.type] += DOC_VOTE_WEIGHT
        for ret in self.returns:
            param_type, class_name, weight = self.classify(ret.value)
            votes[param_type] += weight
            if class_name and param_type not in classes:
                classes[param_type] = class_name
        if not votes:
            return
        candidates = {t: n for t, n in votes.items() if t is not ParamType.NONE} or dict(votes)
        # Ties go to the more specific type, then alphabetically.
        winner = max(candidates, key=lambda t: (candidates[t], t is not ParamType.SCALAR, t.value))
        spec.type = winner
        if winner in classes:
            spec.class_name = classes[winner]

        value_returns = [r for r in self.returns if r.value is not None]
        if len(self.returns) == 1 and value_returns:
            value = value_returns[0].value
            if isinstance(value, ast.Constant) and value.value is not None:
                spec.value = yaml_safe(value.value)

    def boolean_score(self, shapes: ReturnShapes) -> int:
        score = 0
        if self.doc_text and DOC_BOOLEAN_RE.search(self.doc_text):
            score += BOOLEAN_DOC_WEIGHT
        name = self.unit.name.lstrip("_")
        if name.startswith(BOOLEAN_PREFIXES) or name.endswith(BOOLEAN_SUFFIXES):
            score += BOOLEAN_NAME_WEIGHT
        score += min(shapes.literal_bool_returns * BOOLEAN_LITERAL_WEIGHT, BOOLEAN_LITERAL_CAP)
        if shapes.ternary_bool:
            score += BOOLEAN_TERNARY_WEIGHT
        return score

    def analyze(self) -> tuple[ReturnSpec, ReturnShapes]:
        spec = ReturnSpec()
        self.doc_text = ""
        self._from_documentation(spec)
        doc_type = spec.type
        self._vote(spec)

        shapes = self.shapes()
        spec.returns_self = shapes.returns_self
        spec.boolean_score = self.boolean_score(shapes)
        if spec.boolean_score >= BOOLEAN_THRESHOLD and spec.type is not ParamType.BOOLEAN:
            doc_declared_other = doc_type is not None and doc_type is not ParamType.BOOLEAN
            object_with_class = spec.type is ParamType.OBJECT and spec.class_name
            if not doc_declared_other and not object_with_class and (spec.type is None or spec.type in BOOLEAN_OVERRIDABLE):
                spec.type = ParamType.BOOLEAN
                spec.class_name = None

        spec.context_sensitive = shapes.multi_value and shapes.single_value
        if shapes.raises:
            spec.error_convention = ErrorConvention.RAISES
        elif shapes.sentinel_in_guard or shapes.empty_collection_in_guard:
            spec.error_convention = ErrorConvention.SENTINEL
        elif shapes.none_in_guard and shapes.value_returns:
            spec.error_convention = ErrorConvention.IMPLICIT_NONE
        return spec, shapes


def analyze_returns(unit: CallableUnit, model: SourceModel) -> tuple[ReturnSpec, ReturnShapes]:
    return ReturnAnalyzer(unit, model).analyze()
