#!/usr/bin/env python3
"""
Unit tests for schemaprobe/corpus_manager.py
"""

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from schemaprobe.corpus_manager import Corpus
from schemaprobe.errors import CorpusError


class TestCorpus(unittest.TestCase):
    """Test the in-memory corpus."""

    def test_new_branches(self):
        corpus = Corpus()
        corpus.add_entry(1, frozenset({"f:1->2", "f:2->3"}))
        self.assertEqual(corpus.new_branches(frozenset({"f:2->3", "f:3->4"})), {"f:3->4"})

    def test_bugs_are_deduplicated(self):
        corpus = Corpus()
        self.assertTrue(corpus.record_bug({"a": 1}, "ValueError: boom"))
        self.assertFalse(corpus.record_bug({"a": 1}, "ValueError: boom"))
        self.assertTrue(corpus.record_bug({"a": 2}, "ValueError: boom"))
        self.assertEqual(len(corpus.bugs), 2)


class TestCorpusPersistence(unittest.TestCase):
    """Test save/load through a JSON file."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = Path(self.tmpdir.name) / "corpus.json"

    def test_round_trip_keeps_inputs_but_not_coverage(self):
        corpus = Corpus()
        corpus.add_entry({"a": 1, "b": "x"}, frozenset({"f:1->2"}))
        corpus.add_entry(42, frozenset({"f:2->3"}))
        corpus.record_bug(-1, "ValueError: negative")
        corpus.save(self.path, seed=1234)

        loaded = Corpus()
        seed = loaded.load(self.path)
        self.assertEqual(seed, 1234)
        self.assertEqual([e.input for e in loaded.entries], [{"a": 1, "b": "x"}, 42])
        self.assertTrue(all(e.coverage == frozenset() for e in loaded.entries))
        self.assertEqual(loaded.covered, set())
        self.assertEqual([b.to_dict() for b in loaded.bugs], [{"input": -1, "error": "ValueError: negative"}])

    def test_file_layout(self):
        corpus = Corpus()
        corpus.add_entry("abc")
        corpus.save(self.path, seed=7)
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data, {"seed": 7, "corpus": [{"input": "abc"}], "bugs": []})

    def test_save_leaves_no_temporary_files(self):
        Corpus().save(self.path)
        self.assertEqual([p.name for p in Path(self.tmpdir.name).iterdir()], ["corpus.json"])

    def test_unserialisable_input_raises_and_cleans_up(self):
        corpus = Corpus()
        corpus.add_entry(object())
        with self.assertRaises(CorpusError):
            corpus.save(self.path)
        self.assertEqual(list(Path(self.tmpdir.name).iterdir()), [])

    def test_write_failure_raises(self):
        with patch("schemaprobe.corpus_manager.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(CorpusError):
                Corpus().save(self.path)

    def test_load_missing_file(self):
        with self.assertRaises(CorpusError):
            Corpus().load(self.path)

    def test_load_corrupt_file(self):
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(CorpusError):
            Corpus().load(self.path)

    def test_load_wrong_shape(self):
        self.path.write_text("[1, 2]", encoding="utf-8")
        with self.assertRaises(CorpusError):
            Corpus().load(self.path)

    def test_load_malformed_entries(self):
        for content in (
            '{"corpus": [1]}',
            '{"corpus": null}',
            '{"corpus": [], "bugs": ["boom"]}',
            '{"corpus": {"input": 1}}',
        ):
            with self.subTest(content=content):
                self.path.write_text(content, encoding="utf-8")
                corpus = Corpus()
                with self.assertRaises(CorpusError):
                    corpus.load(self.path)
                self.assertEqual(corpus.entries, [])


if __name__ == "__main__":
    unittest.main()
