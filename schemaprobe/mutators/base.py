"""
The mutant model shared by every mutation operator.

A mutant never holds a reference into the tree it was found in. Its
transform re-locates the target node by (node type, line, column) in a
freshly parsed tree at apply time, so mutants stay valid across the
parse/unparse cycles of a mutation run.
"""

from __future__ import annotations

import ast
import copy
from dataclasses import dataclass, field
from typing import Callable

Rewrite = Callable[[ast.AST], None]


@dataclass(frozen=True)
class Mutant:
    """One candidate source modification."""

    id: str
    description: str
    line: int
    col: int
    original: str
    mutated: str
    operator: str
    key: tuple = ()
    transform: Callable[[ast.Module], ast.Module] = field(compare=False, repr=False, default=None)

    def apply(self, tree: ast.Module) -> ast.Module:
        return self.transform(tree)

    def to_dict(self, file: str | None = None) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "description": self.description,
            "line": self.line,
        }
        if file is not None:
            data["file"] = file
        return data


def locate(tree: ast.AST, node_type: type[ast.AST], line: int, col: int) -> ast.AST:
    """Find the node of ``node_type`` starting at ``line``/``col``."""
    for node in ast.walk(tree):
        if (
            isinstance(node, node_type)
            and getattr(node, "lineno", None) == line
            and getattr(node, "col_offset", None) == col
        ):
            return node
    raise LookupError(f"no {node_type.__name__} at line {line}, column {col}")


def relocating_transform(
    node_type: type[ast.AST], line: int, col: int, rewrite: Rewrite
) -> Callable[[ast.Module], ast.Module]:
    """Build a transform that rewrites the matching node of a fresh tree in place."""

    def transform(tree: ast.Module) -> ast.Module:
        node = locate(tree, node_type, line, col)
        rewrite(node)
        return ast.fix_missing_locations(tree)

    return transform


def preview(node: ast.AST, rewrite: Rewrite) -> str:
    """Source text of ``node`` after ``rewrite``, without touching ``node``."""
    clone = copy.deepcopy(node)
    rewrite(clone)
    return ast.unparse(ast.fix_missing_locations(clone))


class MutationOperator:
    """Base class: scan a whole module and return its mutants."""

    name = "base"

    def mutants(self, tree: ast.Module, source: str) -> list[Mutant]:
        raise NotImplementedError

    def nodes(self, tree: ast.Module, node_type: type[ast.AST]) -> list[ast.AST]:
        found = [n for n in ast.walk(tree) if isinstance(n, node_type)]
        found.sort(key=lambda n: (n.lineno, n.col_offset))
        return found

    def make(
        self,
        node: ast.AST,
        rewrite: Rewrite,
        mutant_id: str,
        description: str,
        key: tuple,
    ) -> Mutant:
        return Mutant(
            id=mutant_id,
            description=description,
            line=node.lineno,
            col=node.col_offset,
            original=ast.unparse(node),
            mutated=preview(node, rewrite),
            operator=self.name,
            key=key,
            transform=relocating_transform(type(node), node.lineno, node.col_offset, rewrite),
        )
