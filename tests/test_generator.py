#!/usr/bin/env python3
"""
Unit tests for schemaprobe/generator.py
"""

import random
import unittest

from schemaprobe.generator import InputGenerator, ValueMutator
from schemaprobe.validation import input_is_valid


class TestInputGenerator(unittest.TestCase):
    """Test schema-guided generation."""

    def test_same_seed_same_inputs(self):
        spec = {"a": {"type": "integer"}, "b": {"type": "string", "optional": True}}
        first = InputGenerator(random.Random(7))
        second = InputGenerator(random.Random(7))
        self.assertEqual(
            [first.generate_input(spec) for _ in range(20)],
            [second.generate_input(spec) for _ in range(20)],
        )

    def test_integers_stay_in_range_without_boundary_bias(self):
        generator = InputGenerator(random.Random(1), boundary_probability=0.0)
        spec = {"type": "integer", "min": 1, "max": 100}
        for _ in range(200):
            self.assertTrue(input_is_valid(generator.generate(spec), spec))

    def test_boundary_bias_hits_the_edges(self):
        generator = InputGenerator(random.Random(3), boundary_probability=1.0)
        spec = {"type": "integer", "min": 10, "max": 20}
        values = {generator.generate(spec) for _ in range(200)}
        self.assertIn(10, values)
        self.assertIn(20, values)

    def test_number_boundary_bias(self):
        generator = InputGenerator(random.Random(1), boundary_probability=1.0)
        spec = {"type": "number", "min": 5, "max": 10}
        values = [generator.generate(spec) for _ in range(200)]
        self.assertTrue(set(values) <= {5.0, 6.0, 0.0, -1.0, 1.0, 9.0, 10.0})
        self.assertIn(5.0, values)
        self.assertIn(10.0, values)
        self.assertTrue(all(isinstance(value, float) for value in values))

    def test_numbers_stay_in_range_without_boundary_bias(self):
        generator = InputGenerator(random.Random(1), boundary_probability=0.0)
        spec = {"type": "number", "min": 5, "max": 10}
        for _ in range(200):
            self.assertTrue(5.0 <= generator.generate(spec) <= 10.0)

    def test_string_lengths(self):
        generator = InputGenerator(random.Random(2), boundary_probability=0.0)
        spec = {"type": "string", "min": 3, "max": 5}
        for _ in range(100):
            self.assertIn(len(generator.generate(spec)), (3, 4, 5))

    def test_enum_values_only(self):
        generator = InputGenerator(random.Random(4))
        for _ in range(50):
            self.assertIn(generator.generate({"type": "string", "enum": ["r", "w"]}), ("r", "w"))

    def test_edge_cases_short_circuit(self):
        generator = InputGenerator(random.Random(5), edge_case_probability=1.0)
        spec = {"type": "string", "edge_cases": ["", "\0"]}
        for _ in range(20):
            self.assertIn(generator.generate(spec), ("", "\0"))

    def test_optional_parameters(self):
        spec = {"name": {"type": "string"}, "limit": {"type": "integer", "optional": True}}
        always = InputGenerator(random.Random(6), optional_probability=1.0)
        never = InputGenerator(random.Random(6), optional_probability=0.0)
        self.assertEqual(set(always.generate_input(spec)), {"name", "limit"})
        self.assertEqual(set(never.generate_input(spec)), {"name"})

    def test_objects_and_callables_are_none(self):
        generator = InputGenerator(random.Random(0))
        self.assertIsNone(generator.generate({"type": "object"}))
        self.assertIsNone(generator.generate({"type": "coderef"}))

    def test_arrays_and_maps(self):
        generator = InputGenerator(random.Random(8))
        array = generator.generate({"type": "array", "items": {"type": "boolean"}})
        self.assertIsInstance(array, list)
        self.assertTrue(all(isinstance(item, bool) for item in array))
        mapping = generator.generate({"type": "map", "properties": {"k": {"type": "integer"}}})
        self.assertEqual(list(mapping), ["k"])


class TestValueMutator(unittest.TestCase):
    """Test single-step value mutation."""

    def setUp(self):
        self.mutator = ValueMutator(InputGenerator(random.Random(11)))

    def test_booleans_flip(self):
        self.assertIs(self.mutator.mutate(True), False)

    def test_integer_mutations(self):
        allowed = {6, 4, 10, 2, -5, 0, 2**31 - 1, -(2**31)}
        for _ in range(50):
            self.assertIn(self.mutator.mutate(5), allowed)

    def test_strings_stay_strings(self):
        for _ in range(50):
            self.assertIsInstance(self.mutator.mutate("hello"), str)

    def test_named_input_mutates_one_parameter_and_copies(self):
        original = {"a": 1, "b": "x"}
        spec = {"a": {"type": "integer"}, "b": {"type": "string"}}
        mutated = self.mutator.mutate_input(original, spec)
        self.assertEqual(original, {"a": 1, "b": "x"})
        self.assertEqual(set(mutated), {"a", "b"})
        changed = [key for key in mutated if mutated[key] != original[key]]
        self.assertLessEqual(len(changed), 1)

    def test_empty_named_input_is_regenerated(self):
        spec = {"a": {"type": "integer"}}
        self.assertIn("a", self.mutator.mutate_input({}, spec))

    def test_empty_array_grows(self):
        self.assertEqual(len(self.mutator.mutate([], {"items": {"type": "integer"}})), 1)


if __name__ == "__main__":
    unittest.main()
