#!/usr/bin/env python3
"""
Unit tests for schemaprobe/coverage.py
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from schemaprobe.coverage import (
    NullCoverage,
    TraceCoverage,
    select_coverage,
    source_files_of,
)


def classify(x):
    if x > 0:
        return "positive"
    return "other"


def call_classify(x):
    return lambda: classify(x)


def explode(x):
    raise ValueError(f"bad {x}")


class TestNullCoverage(unittest.TestCase):
    def test_result_and_error_isolation(self):
        coverage = NullCoverage()
        ok = coverage.run(lambda: classify(1))
        self.assertEqual(ok.result, "positive")
        self.assertEqual(ok.arcs, frozenset())

        failed = coverage.run(lambda: explode(3))
        self.assertIsInstance(failed.error, ValueError)
        self.assertFalse(coverage.available)


class TestTraceCoverage(unittest.TestCase):
    """Test arc recording with sys.settrace."""

    def setUp(self):
        self.coverage = TraceCoverage([__file__])

    def test_different_branches_give_different_arcs(self):
        positive = self.coverage.run(call_classify(1))
        other = self.coverage.run(call_classify(-1))
        self.assertEqual(positive.result, "positive")
        self.assertEqual(other.result, "other")
        self.assertTrue(positive.arcs)
        self.assertNotEqual(positive.arcs, other.arcs)
        filename = classify.__code__.co_filename
        self.assertTrue(all(arc.startswith(f"{filename}:") for arc in positive.arcs))

    def test_same_branch_is_stable(self):
        first = self.coverage.run(call_classify(2))
        second = self.coverage.run(call_classify(3))
        self.assertEqual(first.arcs, second.arcs)

    def test_arcs_inside_the_target_are_recorded(self):
        first_line = classify.__code__.co_firstlineno
        filename = classify.__code__.co_filename
        arcs = self.coverage.run(call_classify(2)).arcs
        self.assertIn(f"{filename}:{-first_line}->{first_line + 1}", arcs)
        self.assertIn(f"{filename}:{first_line + 1}->{first_line + 2}", arcs)

    def test_errors_are_captured_with_arcs(self):
        execution = self.coverage.run(lambda: explode(1))
        self.assertIsInstance(execution.error, ValueError)
        self.assertTrue(execution.arcs)

    def test_previous_tracer_is_restored(self):
        before = sys.gettrace()
        self.coverage.run(lambda: classify(1))
        self.assertIs(sys.gettrace(), before)

    def test_other_files_are_ignored(self):
        coverage = TraceCoverage(["/nonexistent/elsewhere.py"])
        self.assertEqual(coverage.run(lambda: classify(1)).arcs, frozenset())


class TestSelectCoverage(unittest.TestCase):
    def test_source_files_of(self):
        self.assertEqual(
            [Path(p).resolve() for p in source_files_of(classify)],
            [Path(__file__).resolve()],
        )
        self.assertEqual(source_files_of(len), [])

    def test_builtin_target_gets_null_coverage(self):
        self.assertIsInstance(select_coverage(len), NullCoverage)

    def test_existing_trace_function_gets_null_coverage(self):
        with patch("schemaprobe.coverage.sys.gettrace", return_value=lambda *args: None):
            self.assertIsInstance(select_coverage(classify), NullCoverage)

    def test_python_target_gets_trace_coverage(self):
        with patch("schemaprobe.coverage.sys.gettrace", return_value=None):
            self.assertIsInstance(select_coverage(classify), TraceCoverage)


if __name__ == "__main__":
    unittest.main()
