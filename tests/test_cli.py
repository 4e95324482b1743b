#!/usr/bin/env python3
"""
Unit tests for schemaprobe/cli.py
"""

import io
import json
import os.path
import sys
import tempfile
import unittest
from pathlib import Path
from textwrap import dedent
from unittest.mock import patch

from schemaprobe.cli import main, resolve_target
from schemaprobe.errors import SchemaProbeError

TARGET_MODULE = "schemaprobe_cli_target"

TARGET_SOURCE = dedent(
    """\
    def check(n):
        if n < 0:
            raise ValueError("negative")
        return n


    def explode(n):
        raise RuntimeError("always")
    """
)

SCHEMA = dedent(
    """\
    function: check
    module: schemaprobe_cli_target
    input:
      n:
        type: integer
        min: 0
        position: 0
    output: {}
    """
)


class TestResolveTarget(unittest.TestCase):
    def test_resolves_dotted_attribute(self):
        self.assertIs(resolve_target("os.path:join"), os.path.join)

    def test_rejections(self):
        for spec in ("os.path.join", "os:", ":join", "no_such_module_xyz:f", "os:no_such_attr", "os:sep"):
            with self.subTest(spec=spec):
                with self.assertRaises(SchemaProbeError):
                    resolve_target(spec)


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.root = Path(self.tmpdir.name)


class TestExtractCommand(CliTestCase):
    def test_writes_schemas(self):
        source = self.root / "target.py"
        source.write_text(TARGET_SOURCE, encoding="utf-8")
        out = self.root / "schemas"
        stdout = io.StringIO()
        with patch("sys.stdout", stdout):
            status = main(["extract", str(source), "-o", str(out)])
        self.assertEqual(status, 0)
        self.assertEqual(sorted(p.name for p in out.iterdir()), ["check.yml", "explode.yml"])
        self.assertIn("[+] Wrote 2 schemas", stdout.getvalue())
        self.assertIn("    -> check: ", stdout.getvalue())

    def test_missing_source_is_reported(self):
        stderr = io.StringIO()
        with patch("sys.stderr", stderr):
            status = main(["extract", str(self.root / "missing.py")])
        self.assertEqual(status, 1)
        self.assertIn("[!] Error:", stderr.getvalue())


class TestFuzzCommand(CliTestCase):
    """Fuzz a module written to a temporary directory."""

    def setUp(self):
        super().setUp()
        (self.root / f"{TARGET_MODULE}.py").write_text(TARGET_SOURCE, encoding="utf-8")
        self.schema = self.root / "check.yml"
        self.schema.write_text(SCHEMA, encoding="utf-8")
        path_patch = patch.object(sys, "path", [str(self.root)] + sys.path)
        path_patch.start()
        self.addCleanup(path_patch.stop)
        self.addCleanup(sys.modules.pop, TARGET_MODULE, None)

    def fuzz(self, *extra):
        stdout = io.StringIO()
        with patch("sys.stdout", stdout):
            status = main(["fuzz", *extra, "--schema", str(self.schema), "--iterations", "50", "--seed", "3"])
        return status, stdout.getvalue()

    def test_no_bugs_for_rejected_invalid_inputs(self):
        corpus = self.root / "corpus.json"
        status, output = self.fuzz(f"{TARGET_MODULE}:check", "--corpus", str(corpus))
        self.assertEqual(status, 0)
        report = json.loads(output)
        self.assertEqual(report["bugs_found"], 0)
        self.assertEqual(report["total_iterations"], 50)
        self.assertEqual(json.loads(corpus.read_text(encoding="utf-8"))["seed"], 3)

    def test_bugs_give_nonzero_status(self):
        status, output = self.fuzz(f"{TARGET_MODULE}:explode")
        self.assertEqual(status, 1)
        self.assertGreater(json.loads(output)["bugs_found"], 0)

    def test_bad_target(self):
        stderr = io.StringIO()
        with patch("sys.stderr", stderr):
            status, _ = self.fuzz(f"{TARGET_MODULE}:missing")
        self.assertEqual(status, 1)
        self.assertIn("no attribute", stderr.getvalue())


class TestMutateCommand(CliTestCase):
    def test_arguments_after_separator_form_the_test_command(self):
        with patch("schemaprobe.cli.MutationEngine") as engine_cls, patch("builtins.print"):
            engine_cls.return_value.run.return_value = {"score": 50.0}
            status = main(["mutate", "mod.py", "--fast", "--", "python", "-m", "unittest", "--fast"])
        self.assertEqual(status, 0)
        kwargs = engine_cls.call_args.kwargs
        self.assertEqual(kwargs["test_command"], ["python", "-m", "unittest", "--fast"])
        self.assertEqual(kwargs["level"], "fast")
        self.assertEqual(engine_cls.call_args.args, (Path("mod.py"),))

    def test_default_test_command(self):
        with patch("schemaprobe.cli.MutationEngine") as engine_cls, patch("builtins.print"):
            engine_cls.return_value.run.return_value = {}
            main(["mutate", "mod.py"])
        kwargs = engine_cls.call_args.kwargs
        self.assertEqual(kwargs["level"], "full")
        self.assertEqual(list(kwargs["test_command"])[1:], ["-m", "pytest", "-q"])


class TestMain(unittest.TestCase):
    def test_no_command_prints_help(self):
        stdout = io.StringIO()
        with patch("sys.stdout", stdout):
            self.assertEqual(main([]), 2)
        self.assertIn("extract", stdout.getvalue())

    def test_each_command_reaches_its_runner(self):
        for argv, runner in (
            (["extract", "mod.py"], "run_extract"),
            (["fuzz", "mod:f", "--schema", "f.json"], "run_fuzz"),
            (["mutate", "mod.py"], "run_mutate"),
        ):
            with self.subTest(command=argv[0]):
                with patch(f"schemaprobe.cli.{runner}", return_value=7) as run:
                    self.assertEqual(main(argv), 7)
                self.assertEqual(run.call_args.args[0].command, argv[0])

    def test_errors_from_a_command_exit_with_status_one(self):
        stderr = io.StringIO()
        with patch("schemaprobe.cli.run_mutate", side_effect=SchemaProbeError("workspace gone")):
            with patch("sys.stderr", stderr):
                self.assertEqual(main(["mutate", "mod.py"]), 1)
        self.assertIn("[!] Error: workspace gone", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
