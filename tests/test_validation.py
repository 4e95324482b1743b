#!/usr/bin/env python3
"""
Unit tests for schemaprobe/validation.py
"""

import unittest

from schemaprobe.types import ParameterSpec, ParamType, ReturnSpec, Schema
from schemaprobe.validation import input_is_valid, input_spec_of, is_single_value_spec


class TestSingleValueSpecs(unittest.TestCase):
    """Test validity of one value against one spec."""

    def test_integer_bounds(self):
        spec = {"type": "integer", "min": 1, "max": 100}
        self.assertFalse(input_is_valid(0, spec))
        self.assertTrue(input_is_valid(1, spec))
        self.assertTrue(input_is_valid(100, spec))
        self.assertFalse(input_is_valid(101, spec))

    def test_type_mismatch(self):
        self.assertFalse(input_is_valid("5", {"type": "integer"}))
        self.assertFalse(input_is_valid(True, {"type": "integer"}))
        self.assertTrue(input_is_valid(5, {"type": "number"}))

    def test_string_length_and_pattern(self):
        spec = {"type": "string", "min": 2, "max": 4, "matches": "^[a-z]+$"}
        self.assertTrue(input_is_valid("abc", spec))
        self.assertFalse(input_is_valid("a", spec))
        self.assertFalse(input_is_valid("abcde", spec))
        self.assertFalse(input_is_valid("AB", spec))

    def test_enum(self):
        spec = {"type": "string", "enum": ["r", "w"]}
        self.assertTrue(input_is_valid("r", spec))
        self.assertFalse(input_is_valid("x", spec))

    def test_boolean_accepts_zero_and_one(self):
        self.assertTrue(input_is_valid(1, {"type": "boolean"}))
        self.assertFalse(input_is_valid(2, {"type": "boolean"}))


class TestNamedSpecs(unittest.TestCase):
    def setUp(self):
        self.spec = {
            "name": {"type": "string", "optional": False},
            "limit": {"type": "integer", "min": 0, "optional": True},
        }

    def test_required_parameter_missing(self):
        self.assertFalse(input_is_valid({"limit": 3}, self.spec))

    def test_optional_parameter_may_be_absent_or_none(self):
        self.assertTrue(input_is_valid({"name": "x"}, self.spec))
        self.assertTrue(input_is_valid({"name": "x", "limit": None}, self.spec))

    def test_bad_optional_value(self):
        self.assertFalse(input_is_valid({"name": "x", "limit": -1}, self.spec))

    def test_non_mapping_input(self):
        self.assertFalse(input_is_valid(["x"], self.spec))


class TestInputSpecOf(unittest.TestCase):
    def test_accepts_every_schema_form(self):
        schema = Schema(
            function="f",
            module="m",
            input={"a": ParameterSpec("a", type=ParamType.INTEGER, position=0)},
            output=ReturnSpec(),
        )
        expected = {"a": {"type": "integer", "position": 0}}
        self.assertEqual(input_spec_of(schema), expected)
        self.assertEqual(input_spec_of({"input": expected}), expected)
        self.assertEqual(input_spec_of(expected), expected)
        self.assertEqual(input_spec_of(ParameterSpec("x", type=ParamType.STRING)), {"type": "string"})

    def test_rejects_other_values(self):
        with self.assertRaises(TypeError):
            input_spec_of("integer")

    def test_single_value_detection(self):
        self.assertTrue(is_single_value_spec({"type": "integer"}))
        self.assertFalse(is_single_value_spec({"type": {"type": "string"}}))


if __name__ == "__main__":
    unittest.main()
