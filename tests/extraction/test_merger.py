#!/usr/bin/env python3
"""
Unit tests for schemaprobe/extraction/merger.py
"""

import unittest

from schemaprobe.extraction.merger import (
    SchemaMerger,
    input_confidence,
    output_confidence,
    parameter_points,
    review_notes,
)
from schemaprobe.types import Confidence, ParameterSpec, ParamType, ReturnSpec


class TestSchemaMerger(unittest.TestCase):
    """Test source precedence in the merge."""

    def setUp(self):
        self.merger = SchemaMerger()

    def test_documentation_wins_over_code_for_equal_specificity(self):
        merged = self.merger.merge(
            documentation={"a": {"type": ParamType.INTEGER}},
            code={"a": {"type": ParamType.ARRAY}},
            binding={"a": {"position": 0}},
        )
        self.assertIs(merged["a"].type, ParamType.INTEGER)

    def test_more_specific_type_replaces_generic_one(self):
        merged = self.merger.merge(
            documentation={"a": {"type": ParamType.STRING}},
            code={"a": {"type": ParamType.INTEGER, "min": 0}},
            binding={"a": {"position": 0}},
        )
        self.assertIs(merged["a"].type, ParamType.INTEGER)
        self.assertEqual(merged["a"].min, 0)

    def test_lower_sources_fill_empty_fields_only(self):
        merged = self.merger.merge(
            documentation={"a": {"min": 1}},
            code={"a": {"min": 5, "max": 9}},
            binding={},
        )
        self.assertEqual(merged["a"].min, 1)
        self.assertEqual(merged["a"].max, 9)

    def test_position_vote_tie_goes_to_lowest(self):
        merged = self.merger.merge(
            documentation={"a": {"position": 1}},
            code={},
            binding={"a": {"position": 0}},
        )
        self.assertEqual(merged["a"].position, 0)

    def test_first_explicit_optional_wins(self):
        merged = self.merger.merge(
            documentation={"a": {"optional": True}},
            code={"a": {"optional": False}},
            binding={"a": {"position": 0}},
        )
        self.assertTrue(merged["a"].optional)

    def test_evidence_without_optional_means_required(self):
        merged = self.merger.merge(documentation={}, code={}, binding={"b": {"position": 1}})
        self.assertIs(merged["b"].optional, False)

    def test_annotations_rank_between_code_and_binding(self):
        merged = self.merger.merge(
            documentation={},
            code={},
            binding={"when": {"position": 0, "optional": True}},
            annotations={"when": {"type": ParamType.OBJECT, "class_name": "datetime"}},
        )
        self.assertIs(merged["when"].type, ParamType.OBJECT)
        self.assertEqual(merged["when"].class_name, "datetime")

    def test_name_order_follows_binding(self):
        merged = self.merger.merge(
            documentation={"z": {}, "a": {}},
            code={},
            binding={"a": {"position": 0}, "z": {"position": 1}},
        )
        self.assertEqual(list(merged), ["a", "z"])


class TestGuardedDocumentedParameter(unittest.TestCase):
    """A documented, guarded integer plus an undocumented second operand."""

    def test_documented_range_and_guard_merge(self):
        merged = SchemaMerger().merge(
            documentation={"a": {"type": ParamType.INTEGER, "min": 1, "max": 10, "position": 0}},
            code={"a": {"optional": False}},
            binding={"a": {"position": 0}, "b": {"position": 1}},
        )
        a, b = merged["a"], merged["b"]
        self.assertEqual((a.type, a.min, a.max, a.optional), (ParamType.INTEGER, 1, 10, False))
        self.assertIs(b.optional, False)
        self.assertGreaterEqual(input_confidence(merged), Confidence.MEDIUM)


class TestConfidence(unittest.TestCase):
    def test_parameter_points(self):
        spec = ParameterSpec("a", type=ParamType.INTEGER, min=1, max=10, optional=False, position=0)
        self.assertEqual(parameter_points(spec), 90)
        self.assertEqual(parameter_points(ParameterSpec("s", type=ParamType.STRING)), 10)
        self.assertEqual(parameter_points(ParameterSpec("s", type=ParamType.STRING, max=5)), 40)

    def test_input_confidence_levels(self):
        self.assertIs(input_confidence({}), Confidence.NONE)
        self.assertIs(input_confidence({"x": ParameterSpec("x")}), Confidence.VERY_LOW)
        self.assertIs(
            input_confidence({"x": ParameterSpec("x", optional=True)}), Confidence.LOW
        )
        self.assertIs(
            input_confidence({"x": ParameterSpec("x", type=ParamType.INTEGER, position=0)}),
            Confidence.MEDIUM,
        )

    def test_output_confidence(self):
        self.assertIs(output_confidence(ReturnSpec()), Confidence.NONE)
        self.assertIs(output_confidence(ReturnSpec(type=ParamType.INTEGER)), Confidence.MEDIUM)
        self.assertIs(output_confidence(ReturnSpec(type=ParamType.STRING, value="ok")), Confidence.HIGH)

    def test_review_notes(self):
        notes = review_notes({"x": ParameterSpec("x")})
        self.assertEqual(notes, ["x: type unknown - please review", "x: optional status unknown"])


if __name__ == "__main__":
    unittest.main()
