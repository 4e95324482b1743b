"""
Cross-parameter relationships inferred from guard clauses.

Every ``if <cond>: raise`` (and every ``assert``, read as "raise when not")
is examined for pairs of declared parameters. The guard's condition is
normalised into a conjunction of operand facts (set, unset, compared with a
literal) and the pair's facts decide the relationship kind. The error
message can add or refine a relationship ("a requires b", "cannot use both").
"""

from __future__ import annotations

import ast
import logging
import re
from itertools import permutations
from typing import Any, NamedTuple

from schemaprobe.extraction.utils import (
    FunctionNode,
    compare_symbol,
    is_name,
    literal_value,
    message_text,
    raising_guards,
    yaml_safe,
)
from schemaprobe.types import Relationship, RelationshipKind, dedupe_relationships

logger = logging.getLogger(__name__)

EXCLUSIVE_MESSAGE_RE = re.compile(
    r"\b(both|together|mutually exclusive|only one|cannot|can't|not both)\b", re.I
)
NEGATED_VALUE_OPERATOR = {"!=": "==", "==": "!=", "<": ">=", "<=": ">", ">": "<=", ">=": "<"}


class Fact(NamedTuple):
    param: str
    state: str  # "set", "unset" or "cmp"
    operator: str | None = None
    value: Any = None


def _dependency_patterns(a: str, b: str) -> list[re.Pattern[str]]:
    ea, eb = re.escape(a), re.escape(b)
    return [
        re.compile(rf"\b{ea}\b.*\b(requires|depends on|needs)\b.*\b{eb}\b", re.I),
        re.compile(rf"\b{eb}\b.*\bis required (when|with|if)\b.*\b{ea}\b", re.I),
    ]


class RelationshipDetector:
    """Detect relationships among ``names`` in one function."""

    def __init__(self, func: FunctionNode, names: list[str], kwarg: str | None = None):
        self.func = func
        self.names = list(names)
        self.kwarg = kwarg if kwarg is not None else (func.args.kwarg.arg if func.args.kwarg else None)

    def _param(self, node: ast.AST) -> str | None:
        if isinstance(node, ast.Name) and node.id in self.names:
            return node.id
        if self.kwarg is None:
            return None
        key = None
        if isinstance(node, ast.Subscript) and is_name(node.value, self.kwarg):
            key = node.slice
        elif (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and is_name(node.func.value, self.kwarg)
            and node.func.attr == "get"
            and node.args
        ):
            key = node.args[0]
        if isinstance(key, ast.Constant) and key.value in self.names:
            return key.value
        return None

    def _fact(self, node: ast.expr) -> Fact | None:
        param = self._param(node)
        if param is not None:
            return Fact(param, "set")
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
            inner = self._fact(node.operand)
            if inner is None:
                return None
            if inner.state == "set":
                return Fact(inner.param, "unset")
            if inner.state == "unset":
                return Fact(inner.param, "set")
            return None
        if not isinstance(node, ast.Compare) or len(node.ops) != 1:
            return None
        op, right = node.ops[0], node.comparators[0]
        # "a" in kwargs / "a" not in kwargs
        if isinstance(op, (ast.In, ast.NotIn)) and self.kwarg and is_name(right, self.kwarg):
            if isinstance(node.left, ast.Constant) and node.left.value in self.names:
                return Fact(node.left.value, "set" if isinstance(op, ast.In) else "unset")
            return None
        param = self._param(node.left)
        if param is None:
            return None
        if isinstance(right, ast.Constant) and right.value is None:
            if isinstance(op, ast.Is):
                return Fact(param, "unset")
            if isinstance(op, ast.IsNot):
                return Fact(param, "set")
            return None
        symbol = compare_symbol(op)
        value = literal_value(right, default=None)
        if symbol is None or value is None:
            return None
        return Fact(param, "cmp", symbol, yaml_safe(value))

    def _facts(self, condition: ast.expr) -> list[Fact]:
        """Flatten a failing condition into a conjunction of facts."""
        if isinstance(condition, ast.UnaryOp) and isinstance(condition.op, ast.Not):
            inner = condition.operand
            # not (a or b) == not a and not b
            if isinstance(inner, ast.BoolOp) and isinstance(inner.op, ast.Or):
                condition = ast.BoolOp(
                    op=ast.And(),
                    values=[ast.UnaryOp(op=ast.Not(), operand=v) for v in inner.values],
                )
        if isinstance(condition, ast.BoolOp) and isinstance(condition.op, ast.And):
            operands = condition.values
        else:
            operands = [condition]
        facts = []
        for operand in operands:
            fact = self._fact(operand)
            if fact is not None:
                facts.append(fact)
        return facts

    def _from_facts(self, first: Fact, second: Fact) -> Relationship | None:
        a, b = first.param, second.param
        if first.state == "set" and second.state == "set":
            return Relationship(
                RelationshipKind.MUTUALLY_EXCLUSIVE,
                params=(a, b),
                description=f"Cannot specify both {a} and {b}",
            )
        if first.state == "unset" and second.state == "unset":
            return Relationship(
                RelationshipKind.REQUIRED_GROUP,
                params=(a, b),
                description=f"Must specify either {a} or {b}",
            )
        if first.state == "set" and second.state == "unset":
            return Relationship(
                RelationshipKind.CONDITIONAL_REQUIREMENT,
                if_param=a,
                then_param=b,
                description=f"When {a} is specified, {b} is required",
            )
        if first.state == "set" and second.state == "cmp":
            operator = NEGATED_VALUE_OPERATOR[second.operator]
            return Relationship(
                RelationshipKind.VALUE_CONSTRAINT,
                if_param=a,
                then_param=b,
                operator=operator,
                value=second.value,
                description=f"When {a} is specified, {b} must be {operator} {second.value}",
            )
        if first.state == "cmp" and first.operator == "==" and second.state == "unset":
            return Relationship(
                RelationshipKind.VALUE_CONDITIONAL,
                if_param=a,
                then_param=b,
                value=first.value,
                description=f"When {a} equals {first.value!r}, {b} is required",
            )
        return None

    def _from_message(self, a: str, b: str, message: str, facts: list[Fact]) -> list[Relationship]:
        found = []
        mentioned = {fact.param for fact in facts}
        if a in mentioned and b in mentioned:
            for pattern in _dependency_patterns(a, b):
                if pattern.search(message):
                    found.append(
                        Relationship(
                            RelationshipKind.DEPENDENCY,
                            if_param=a,
                            then_param=b,
                            description=f"{a} requires {b}",
                        )
                    )
                    break
        names_present = re.search(rf"\b{re.escape(a)}\b", message) and re.search(rf"\b{re.escape(b)}\b", message)
        if names_present and EXCLUSIVE_MESSAGE_RE.search(message) and not found:
            if all(fact.state == "set" for fact in facts if fact.param in (a, b)) and mentioned >= {a, b}:
                found.append(
                    Relationship(
                        RelationshipKind.MUTUALLY_EXCLUSIVE,
                        params=(a, b),
                        description=f"Cannot specify both {a} and {b}",
                    )
                )
        return found

    def detect(self) -> list[Relationship]:
        relationships: list[Relationship] = []
        for condition, raise_node in raising_guards(self.func):
            facts = self._facts(condition)
            if len(facts) < 2:
                continue
            message = message_text(raise_node)
            by_param = {fact.param: fact for fact in facts}
            for a, b in permutations(by_param, 2):
                from_message = self._from_message(a, b, message, facts)
                dependency = any(r.kind is RelationshipKind.DEPENDENCY for r in from_message)
                relationships.extend(from_message)
                relationship = self._from_facts(by_param[a], by_param[b])
                if relationship is None:
                    continue
                if dependency and relationship.kind is RelationshipKind.CONDITIONAL_REQUIREMENT:
                    continue
                relationships.append(relationship)
        unique = dedupe_relationships(relationships)
        if unique:
            logger.debug("Found %d relationships in %s", len(unique), self.func.name)
        return unique


def detect_relationships(func: FunctionNode, names: list[str]) -> list[Relationship]:
    return RelationshipDetector(func, names).detect()
