"""
Fast-mode mutant filtering: drop duplicates and mutants whose outcome is
known without running the tests.
"""

from __future__ import annotations

import ast
import logging
import re

from schemaprobe.mutators.base import Mutant

logger = logging.getLogger(__name__)

IDENTITY_ARITHMETIC_RE = re.compile(r"[+-]\s*0(?![.\dxXoObB])")
DOUBLE_NEGATION_RE = re.compile(r"\bnot\s*\(?\s*not\b")


def _parse_fragment(text: str) -> ast.AST | None:
    try:
        tree = ast.parse(text)
    except SyntaxError:
        return None
    if len(tree.body) != 1:
        return None
    stmt = tree.body[0]
    return stmt.value if isinstance(stmt, ast.Expr) else stmt


def _is_noop(mutant: Mutant) -> bool:
    return mutant.original == mutant.mutated


def _adds_identity_arithmetic(mutant: Mutant) -> bool:
    return bool(IDENTITY_ARITHMETIC_RE.search(mutant.mutated)) and not IDENTITY_ARITHMETIC_RE.search(
        mutant.original
    )


def _double_negation_in_conditional(mutant: Mutant) -> bool:
    if not DOUBLE_NEGATION_RE.search(mutant.mutated):
        return False
    return mutant.operator in ("conditional_inversion", "boolean_negation")


def _negates_bool_literal(mutant: Mutant) -> bool:
    if mutant.operator != "boolean_negation":
        return False
    node = _parse_fragment(mutant.original)
    return (
        isinstance(node, ast.Return)
        and isinstance(node.value, ast.Constant)
        and isinstance(node.value.value, bool)
    )


def _on_comment_line(mutant: Mutant, lines: list[str]) -> bool:
    if 0 < mutant.line <= len(lines):
        return lines[mutant.line - 1].lstrip().startswith("#")
    return False


def _compares_equal_literals(mutant: Mutant) -> bool:
    node = _parse_fragment(mutant.original)
    if not isinstance(node, ast.Compare) or len(node.ops) != 1:
        return False
    left, right = node.left, node.comparators[0]
    return isinstance(left, ast.Constant) and isinstance(right, ast.Constant) and left.value == right.value


REDUNDANCY_CHECKS = (
    ("no-op", _is_noop),
    ("identity arithmetic", _adds_identity_arithmetic),
    ("double negation", _double_negation_in_conditional),
    ("boolean literal negation", _negates_bool_literal),
    ("equal literal comparison", _compares_equal_literals),
)


def filter_mutants(mutants: list[Mutant], source: str) -> list[Mutant]:
    """Return ``mutants`` without duplicates and redundant entries, order kept."""
    lines = source.splitlines()
    seen: set[tuple] = set()
    kept = []
    for mutant in mutants:
        identity = (mutant.line, mutant.original, mutant.key)
        if identity in seen:
            logger.debug("Dropping duplicate mutant %s", mutant.id)
            continue
        seen.add(identity)
        if _on_comment_line(mutant, lines):
            continue
        reason = next((label for label, check in REDUNDANCY_CHECKS if check(mutant)), None)
        if reason is not None:
            logger.debug("Dropping %s mutant %s", reason, mutant.id)
            continue
        kept.append(mutant)
    return kept
