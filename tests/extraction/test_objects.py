#!/usr/bin/env python3
"""
Unit tests for schemaprobe/extraction/objects.py
"""

import unittest
from textwrap import dedent

from schemaprobe.extraction.objects import ObjectRequirementResolver
from schemaprobe.source_model import SourceModel


def resolve(source, qualname):
    model = SourceModel.from_source(dedent(source), namespace="pkg.mod")
    unit = next(u for u in model.callables() if u.qualname == qualname)
    return ObjectRequirementResolver(model).resolve(unit)


COUNTER = """
class Counter:
    def __init__(self, start=0):
        self.x = start

    def get(self):
        return self.x
"""


class TestConstructorsAndInstanceMethods(unittest.TestCase):
    """Constructors need no object; instance methods need their own class."""

    def test_constructor_is_a_factory(self):
        self.assertIsNone(resolve(COUNTER, "Counter.__init__"))

    def test_instance_method(self):
        requirement = resolve(COUNTER, "Counter.get")
        self.assertEqual(requirement.class_name, "Counter")
        self.assertEqual(requirement.kind, "own_class")
        constructor = requirement.constructor
        self.assertEqual(constructor.status, "local")
        self.assertEqual(constructor.optional, ["start"])
        self.assertEqual(constructor.required, [])
        self.assertEqual(constructor.defaults, {"start": 0})


class TestResolutionOrder(unittest.TestCase):
    def test_classmethod_factory(self):
        source = """
        class Point:
            def __init__(self, x, y):
                self.x, self.y = x, y

            @classmethod
            def from_pair(cls, pair):
                return cls(*pair)
        """
        self.assertIsNone(resolve(source, "Point.from_pair"))

    def test_singleton_accessor(self):
        source = """
        class Config:
            _instance = None

            @classmethod
            def instance(cls):
                if cls._instance is None:
                    cls._instance = Config()
                return cls._instance
        """
        self.assertIsNone(resolve(source, "Config.instance"))

    def test_inherited_constructor(self):
        source = """
        class Base:
            def __init__(self, name):
                if name is None:
                    raise ValueError("name")
                self.name = name

        class Child(Base):
            def hello(self):
                return self.name
        """
        requirement = resolve(source, "Child.hello")
        self.assertEqual(requirement.class_name, "Child")
        self.assertEqual(requirement.inherits_from, "Base")
        self.assertEqual(requirement.constructor.required, ["name"])
        self.assertEqual(requirement.to_dict()["inherits_from"], "Base")

    def test_none_guard_makes_defaulted_argument_required(self):
        source = """
        class Client:
            def __init__(self, url=None):
                if url is None:
                    raise ValueError("url is required")
                self.url = url

            def ping(self):
                return self.url
        """
        requirement = resolve(source, "Client.ping")
        self.assertEqual(requirement.constructor.required, ["url"])
        self.assertFalse(requirement.constructor.params["url"]["optional"])

    def test_external_class(self):
        source = """
        def fetch(url):
            session = Session()
            if not url:
                raise ValueError("url")
            return session.get(url)
        """
        requirement = resolve(source, "fetch")
        self.assertEqual(requirement.class_name, "Session")
        self.assertEqual(requirement.kind, "external")
        self.assertEqual(requirement.constructor.to_dict(), {"status": "unknown_external"})

    def test_plain_function_needs_nothing(self):
        self.assertIsNone(resolve("def add(a, b):\n    return a + b\n", "add"))


if __name__ == "__main__":
    unittest.main()
