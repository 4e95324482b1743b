"""
This module provides the source mutation operators used for mutation
testing.

Each operator scans a whole module and yields one mutant per applicable
site (or per alternative, for comparison flips). Mutants are produced in
source order and carry stable ids built from their location.
"""

from __future__ import annotations

import ast

from schemaprobe.mutators.base import Mutant, MutationOperator


class ReturnNoneMutation(MutationOperator):
    """Replace ``return <expr>`` with a bare ``return``."""

    name = "return_none"

    def mutants(self, tree: ast.Module, source: str) -> list[Mutant]:
        found = []
        for node in self.nodes(tree, ast.Return):

            def rewrite(target: ast.AST) -> None:
                target.value = None

            found.append(
                self.make(
                    node,
                    rewrite,
                    f"RETURN_NONE_{node.lineno}_{node.col_offset}",
                    f"Return None instead of the computed value on line {node.lineno}",
                    ("return", "none"),
                )
            )
        return found


class BooleanNegationMutation(MutationOperator):
    """Negate the returned expression: ``return x`` -> ``return not (x)``."""

    name = "boolean_negation"

    def mutants(self, tree: ast.Module, source: str) -> list[Mutant]:
        found = []
        for node in self.nodes(tree, ast.Return):
            value = node.value
            if value is None or (isinstance(value, ast.Constant) and value.value is None):
                continue

            def rewrite(target: ast.AST) -> None:
                target.value = ast.UnaryOp(op=ast.Not(), operand=target.value)

            found.append(
                self.make(
                    node,
                    rewrite,
                    f"BOOL_NEGATION_{node.lineno}_{node.col_offset}",
                    f"Negate the return value on line {node.lineno}",
                    ("return", "not"),
                )
            )
        return found


class NumericBoundaryMutation(MutationOperator):
    """Flip comparison operators, one mutant per alternative.

    The first alternative listed for each operator is its documented
    counterpart (``>`` becomes ``<`` first, ``>=`` becomes ``<=`` first).
    """

    name = "numeric_boundary"

    FLIPS = {
        ast.Gt: [ast.Lt, ast.GtE, ast.LtE, ast.Eq],
        ast.Lt: [ast.Gt, ast.LtE, ast.GtE],
        ast.GtE: [ast.LtE, ast.Gt, ast.Lt],
        ast.LtE: [ast.GtE, ast.Lt, ast.Gt],
        ast.Eq: [ast.NotEq],
    }
    SYMBOLS = {
        ast.Gt: ">",
        ast.Lt: "<",
        ast.GtE: ">=",
        ast.LtE: "<=",
        ast.Eq: "==",
        ast.NotEq: "!=",
    }
    NAMES = {
        ast.Gt: "GT",
        ast.Lt: "LT",
        ast.GtE: "GE",
        ast.LtE: "LE",
        ast.Eq: "EQ",
        ast.NotEq: "NE",
    }

    def mutants(self, tree: ast.Module, source: str) -> list[Mutant]:
        found = []
        for node in self.nodes(tree, ast.Compare):
            for index, op in enumerate(node.ops):
                alternatives = self.FLIPS.get(type(op))
                if not alternatives:
                    continue
                for replacement in alternatives:
                    found.append(self._mutant(node, index, type(op), replacement))
        return found

    def _mutant(
        self, node: ast.Compare, index: int, original: type[ast.cmpop], replacement: type[ast.cmpop]
    ) -> Mutant:
        def rewrite(target: ast.AST) -> None:
            target.ops[index] = replacement()

        before, after = self.SYMBOLS[original], self.SYMBOLS[replacement]
        suffix = f"_{index}" if len(node.ops) > 1 else ""
        return self.make(
            node,
            rewrite,
            f"NUM_BOUNDARY_{node.lineno}_{node.col_offset}{suffix}_{self.NAMES[replacement]}",
            f"Change '{before}' to '{after}' on line {node.lineno}",
            ("compare", index, after),
        )


class ConditionalInversionMutation(MutationOperator):
    """Invert ``if``/``elif`` tests; an already negated test is unwrapped."""

    name = "conditional_inversion"

    def mutants(self, tree: ast.Module, source: str) -> list[Mutant]:
        found = []
        for node in self.nodes(tree, ast.If):

            def rewrite(target: ast.AST) -> None:
                test = target.test
                if isinstance(test, ast.UnaryOp) and isinstance(test.op, ast.Not):
                    target.test = test.operand
                else:
                    target.test = ast.UnaryOp(op=ast.Not(), operand=test)

            found.append(
                self.make(
                    node,
                    rewrite,
                    f"COND_INVERSION_{node.lineno}_{node.col_offset}",
                    f"Invert the condition on line {node.lineno}",
                    ("if", "invert"),
                )
            )
        return found


DEFAULT_OPERATORS = (
    ReturnNoneMutation,
    BooleanNegationMutation,
    NumericBoundaryMutation,
    ConditionalInversionMutation,
)
