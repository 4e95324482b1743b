#!/usr/bin/env python3
"""
Unit tests for schemaprobe/extraction/analyzers.py
"""

import unittest
from textwrap import dedent

from schemaprobe.extraction.analyzers import (
    analyze_complexity,
    analyze_return_meta,
    analyze_side_effects,
    detect_accessor,
)
from schemaprobe.extraction.returns import ReturnShapes
from schemaprobe.source_model import SourceModel
from schemaprobe.types import ErrorConvention, ParamType, ReturnSpec


def units_of(source):
    model = SourceModel.from_source(dedent(source))
    return {unit.qualname: unit for unit in model.callables()}


class TestComplexity(unittest.TestCase):
    def test_branching_function(self):
        unit = units_of(
            """
            def f(x):
                if x > 0 and x < 10:
                    return 1
                for i in range(x):
                    if i:
                        raise ValueError(i)
                return 0
            """
        )["f"]
        result = analyze_complexity(unit.node)
        self.assertEqual(result["cyclomatic_score"], 5)
        self.assertEqual(result["branching_points"], 2)
        self.assertEqual(result["early_returns"], 1)
        self.assertEqual(result["exception_paths"], 1)
        self.assertEqual(result["nesting_depth"], 2)
        self.assertEqual(result["complexity_level"], "moderate")

    def test_straight_line_function(self):
        unit = units_of("def add(a, b):\n    return a + b\n")["add"]
        result = analyze_complexity(unit.node)
        self.assertEqual(result["cyclomatic_score"], 1)
        self.assertEqual(result["complexity_level"], "low")
        self.assertEqual(result["early_returns"], 0)


class TestSideEffects(unittest.TestCase):
    def test_impure_method(self):
        unit = units_of(
            """
            import subprocess

            class Store:
                def save(self, item):
                    self.items.append(item)
                    self.count += 1
                    print("saved")
                    subprocess.run(["sync"])
            """
        )["Store.save"]
        result = analyze_side_effects(unit.node)
        self.assertEqual(result["mutates_self"], ["count", "items"])
        self.assertEqual(result["io"], ["print"])
        self.assertEqual(result["external_calls"], ["subprocess.run"])
        self.assertEqual(result["purity_level"], "impure")

    def test_environment_is_global_state(self):
        unit = units_of(
            """
            import os

            def configure(level):
                os.environ["LEVEL"] = level
            """
        )["configure"]
        result = analyze_side_effects(unit.node)
        self.assertEqual(result["globals"], ["os.environ"])

    def test_pure_and_self_mutating(self):
        units = units_of(
            """
            def add(a, b):
                return a + b

            class Counter:
                def bump(self):
                    self.n += 1
            """
        )
        self.assertEqual(analyze_side_effects(units["add"].node)["purity_level"], "pure")
        self.assertEqual(analyze_side_effects(units["Counter.bump"].node)["purity_level"], "self_mutating")


class TestReturnMeta(unittest.TestCase):
    def test_context_sensitive_penalty(self):
        result = analyze_return_meta(ReturnSpec(context_sensitive=True), ReturnShapes())
        self.assertEqual(result["stability_score"], 75)
        self.assertEqual(result["consistency_score"], 85)
        self.assertEqual(result["risk_flags"], ["context_sensitive"])

    def test_implicit_none_and_sentinel(self):
        shapes = ReturnShapes(value_returns=1, bare_returns=1, none_in_guard=True)
        spec = ReturnSpec(type=ParamType.SCALAR, error_convention=ErrorConvention.IMPLICIT_NONE)
        result = analyze_return_meta(spec, shapes)
        self.assertEqual(result["risk_flags"], ["implicit_none", "none_on_error"])
        self.assertEqual(result["stability_score"], 70)

    def test_boolean_bonus_is_capped(self):
        result = analyze_return_meta(ReturnSpec(type=ParamType.BOOLEAN), ReturnShapes())
        self.assertEqual(result["stability_score"], 100)


class TestAccessors(unittest.TestCase):
    """Test getter, setter and combined accessor detection."""

    def setUp(self):
        self.units = units_of(
            """
            class Person:
                def name(self):
                    return self._name

                def set_name(self, value):
                    self._name = value
                    return self

                def age(self, value=None):
                    if value is not None:
                        self._age = value
                    return self._age

                def greet(self, other):
                    return "hi " + other
            """
        )

    def test_getter(self):
        self.assertEqual(detect_accessor(self.units["Person.name"]), {"type": "getter", "field": "_name"})

    def test_chainable_setter(self):
        self.assertEqual(
            detect_accessor(self.units["Person.set_name"]),
            {"type": "setter", "field": "_name", "chainable": True},
        )

    def test_getset(self):
        self.assertEqual(detect_accessor(self.units["Person.age"]), {"type": "getset", "field": "_age"})

    def test_ordinary_method(self):
        self.assertIsNone(detect_accessor(self.units["Person.greet"]))


if __name__ == "__main__":
    unittest.main()
