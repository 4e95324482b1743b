#!/usr/bin/env python3
"""
Unit tests for schemaprobe/mutators/dedup.py
"""

import ast
import unittest

from schemaprobe.mutators.base import Mutant
from schemaprobe.mutators.dedup import filter_mutants
from schemaprobe.mutators.operators import BooleanNegationMutation

SOURCE = "x = 1\n# just a comment\ny = 2\n"


def mutant(mutant_id, original, mutated, line=1, operator="numeric_boundary", key=()):
    return Mutant(
        id=mutant_id,
        description="test mutant",
        line=line,
        col=0,
        original=original,
        mutated=mutated,
        operator=operator,
        key=key,
    )


class TestFilterMutants(unittest.TestCase):
    """Test fast-mode filtering."""

    def test_useful_mutants_are_kept_in_order(self):
        mutants = [mutant("B", "x > 1", "x < 1", line=3), mutant("A", "x > 1", "x >= 1", line=1, key=(1,))]
        self.assertEqual([m.id for m in filter_mutants(mutants, SOURCE)], ["B", "A"])

    def test_duplicates_are_dropped(self):
        mutants = [
            mutant("A", "x > 1", "x < 1", key=("compare", 0, "<")),
            mutant("B", "x > 1", "x < 1", key=("compare", 0, "<")),
        ]
        self.assertEqual([m.id for m in filter_mutants(mutants, SOURCE)], ["A"])

    def test_noop_mutant(self):
        self.assertEqual(filter_mutants([mutant("A", "x", "x")], SOURCE), [])

    def test_identity_arithmetic(self):
        self.assertEqual(filter_mutants([mutant("A", "x", "x + 0")], SOURCE), [])
        self.assertEqual(len(filter_mutants([mutant("A", "x", "x + 0.5")], SOURCE)), 1)

    def test_double_negation_in_conditional(self):
        doubled = mutant("A", "if not ok:\n    go()", "if not not ok:\n    go()", operator="conditional_inversion")
        self.assertEqual(filter_mutants([doubled], SOURCE), [])

    def test_boolean_literal_negation(self):
        source = "def f():\n    return True\n"
        mutants = BooleanNegationMutation().mutants(ast.parse(source), source)
        self.assertEqual(len(mutants), 1)
        self.assertEqual(filter_mutants(mutants, source), [])

    def test_equal_literal_comparison(self):
        self.assertEqual(filter_mutants([mutant("A", "1 == 1", "1 != 1")], SOURCE), [])

    def test_comment_lines(self):
        self.assertEqual(filter_mutants([mutant("A", "x > 1", "x < 1", line=2)], SOURCE), [])


if __name__ == "__main__":
    unittest.main()
