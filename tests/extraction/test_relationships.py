#!/usr/bin/env python3
"""
Unit tests for schemaprobe/extraction/relationships.py
"""

import unittest
from textwrap import dedent

from schemaprobe.extraction.relationships import detect_relationships
from schemaprobe.source_model import SourceModel
from schemaprobe.types import RelationshipKind


def relationships_of(source, names):
    model = SourceModel.from_source(dedent(source))
    return detect_relationships(model.callables()[0].node, names)


class TestRelationshipDetection(unittest.TestCase):
    """Test each relationship kind."""

    def test_mutually_exclusive_collapses_to_one(self):
        found = relationships_of(
            """
            def load(path, data):
                if path and data:
                    raise ValueError("Cannot use both path and data")
            """,
            ["path", "data"],
        )
        self.assertEqual(len(found), 1)
        self.assertIs(found[0].kind, RelationshipKind.MUTUALLY_EXCLUSIVE)
        self.assertEqual(found[0].params, ("path", "data"))

    def test_required_group(self):
        found = relationships_of(
            """
            def lookup(user_id=None, email=None):
                if user_id is None and email is None:
                    raise ValueError("need something to search by")
            """,
            ["user_id", "email"],
        )
        self.assertEqual([r.kind for r in found], [RelationshipKind.REQUIRED_GROUP])

    def test_conditional_requirement(self):
        found = relationships_of(
            """
            def login(user=None, password=None):
                if user and not password:
                    raise ValueError("bad credentials")
            """,
            ["user", "password"],
        )
        self.assertEqual(len(found), 1)
        self.assertIs(found[0].kind, RelationshipKind.CONDITIONAL_REQUIREMENT)
        self.assertEqual((found[0].if_param, found[0].then_param), ("user", "password"))

    def test_dependency_message_replaces_conditional_requirement(self):
        found = relationships_of(
            """
            def login(user=None, password=None):
                if user and not password:
                    raise ValueError("password is required with user")
            """,
            ["user", "password"],
        )
        self.assertEqual(len(found), 1)
        self.assertIs(found[0].kind, RelationshipKind.DEPENDENCY)
        self.assertEqual(found[0].to_dict()["param"], "user")
        self.assertEqual(found[0].to_dict()["requires"], "password")

    def test_value_constraint(self):
        found = relationships_of(
            """
            def log(verbose=False, level=0):
                if verbose and level > 3:
                    raise ValueError("level too high")
            """,
            ["verbose", "level"],
        )
        self.assertEqual(len(found), 1)
        rel = found[0]
        self.assertIs(rel.kind, RelationshipKind.VALUE_CONSTRAINT)
        self.assertEqual((rel.if_param, rel.then_param, rel.operator, rel.value), ("verbose", "level", "<=", 3))

    def test_value_conditional(self):
        found = relationships_of(
            """
            def save(mode, path=None):
                if mode == "file" and path is None:
                    raise ValueError("path needed")
            """,
            ["mode", "path"],
        )
        self.assertEqual(len(found), 1)
        self.assertIs(found[0].kind, RelationshipKind.VALUE_CONDITIONAL)
        self.assertEqual(found[0].value, "file")

    def test_assert_reads_as_failing_when_false(self):
        found = relationships_of(
            """
            def connect(host=None, socket=None):
                assert host or socket
            """,
            ["host", "socket"],
        )
        self.assertEqual([r.kind for r in found], [RelationshipKind.REQUIRED_GROUP])

    def test_kwargs_membership(self):
        found = relationships_of(
            """
            def configure(**options):
                if "fast" in options and "safe" in options:
                    raise ValueError("fast and safe are mutually exclusive")
            """,
            ["fast", "safe"],
        )
        self.assertEqual([r.kind for r in found], [RelationshipKind.MUTUALLY_EXCLUSIVE])

    def test_single_parameter_guard_has_no_relationship(self):
        found = relationships_of(
            """
            def f(a, b):
                if a is None:
                    raise ValueError("a")
                return b
            """,
            ["a", "b"],
        )
        self.assertEqual(found, [])


if __name__ == "__main__":
    unittest.main()
