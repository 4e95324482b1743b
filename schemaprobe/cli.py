"""
Command-line entry point for schemaprobe.

    schemaprobe extract FILE [-o DIR] [--include-private]
    schemaprobe fuzz MODULE:FUNC --schema FILE [--iterations N] [--seed S] [--corpus PATH]
    schemaprobe mutate FILE [--lib-dir D] [--fast] [-- TEST_CMD ...]
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from schemaprobe.errors import SchemaProbeError
from schemaprobe.extraction import SchemaExtractor, load_schema
from schemaprobe.fuzzer import DEFAULT_ITERATIONS, CoverageGuidedFuzzer
from schemaprobe.mutators import MutationEngine
from schemaprobe.mutators.engine import DEFAULT_TEST_COMMAND
from schemaprobe.strategy import TestStrategy


def resolve_target(spec: str) -> Callable[..., Any]:
    """Import ``module:attr.path`` and return the callable it names."""
    module_name, sep, attr_path = spec.partition(":")
    if not sep or not module_name or not attr_path:
        raise SchemaProbeError(f"Target must look like MODULE:FUNC, got {spec!r}")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise SchemaProbeError(f"Could not import {module_name}: {e}") from e
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise SchemaProbeError(f"{module_name} has no attribute {attr_path}") from e
    if not callable(target):
        raise SchemaProbeError(f"{spec} is not callable")
    return target


def run_extract(args: argparse.Namespace) -> int:
    extractor = SchemaExtractor(
        args.file,
        output_dir=args.output_dir,
        include_private=args.include_private,
        lib_dir=args.lib_dir,
    )
    schemas = extractor.extract_all()
    print(f"[+] Wrote {len(schemas)} schemas to {args.output_dir}")
    print("[*] Suggested test plan:")
    for name, plan in TestStrategy(schemas).generate_plan().items():
        print(f"    -> {name}: {', '.join(plan)}")
    return 0


def run_fuzz(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    target = resolve_target(args.target)
    fuzzer = CoverageGuidedFuzzer(schema, target, iterations=args.iterations, seed=args.seed)
    if args.corpus is not None and args.corpus.exists():
        fuzzer.load_corpus(args.corpus)
    report = fuzzer.run()
    if args.corpus is not None:
        fuzzer.save_corpus(args.corpus)
    print(json.dumps(report, indent=2, default=repr))
    return 1 if report["bugs_found"] else 0


def run_mutate(args: argparse.Namespace) -> int:
    engine = MutationEngine(
        args.file,
        project_root=args.project_root,
        lib_dir=args.lib_dir,
        test_command=args.test_command or DEFAULT_TEST_COMMAND,
        level="fast" if args.fast else "full",
    )
    report = engine.run()
    print(json.dumps(report, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Infer test schemas from Python source, fuzz callables and mutation-test suites.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Write one schema file per callable")
    extract_parser.add_argument("file", type=Path, help="Python source file to analyse")
    extract_parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("schemas"),
        help="Directory for the schema files (default: schemas)",
    )
    extract_parser.add_argument(
        "--include-private", action="store_true", help="Also extract callables starting with '_'"
    )
    extract_parser.add_argument(
        "--lib-dir", type=Path, default=None, help="Library root used to derive the module namespace"
    )

    # Fuzz command
    fuzz_parser = subparsers.add_parser("fuzz", help="Fuzz a callable against its schema")
    fuzz_parser.add_argument("target", help="Callable to fuzz, as MODULE:FUNC")
    fuzz_parser.add_argument("--schema", type=Path, required=True, help="Schema file for the target")
    fuzz_parser.add_argument(
        "--iterations",
        type=int,
        default=DEFAULT_ITERATIONS,
        help=f"Number of fuzzing iterations (default: {DEFAULT_ITERATIONS})",
    )
    fuzz_parser.add_argument("--seed", type=int, default=None, help="Random seed (default: current time)")
    fuzz_parser.add_argument(
        "--corpus", type=Path, default=None, help="Corpus file to resume from and save to"
    )

    # Mutate command
    mutate_parser = subparsers.add_parser(
        "mutate",
        help="Score a test suite by mutation analysis",
        epilog="Arguments after '--' form the test command (default: python -m pytest -q).",
    )
    mutate_parser.add_argument("file", type=Path, help="Python source file to mutate")
    mutate_parser.add_argument(
        "--project-root",
        type=Path,
        default=Path("."),
        help="Project directory copied into the workspace (default: .)",
    )
    mutate_parser.add_argument(
        "--lib-dir", type=Path, default=None, help="Library root FILE is mirrored under when it lies outside the project"
    )
    mutate_parser.add_argument("--fast", action="store_true", help="Drop redundant mutants first")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse args and dispatch to the selected command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    test_command: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, test_command = argv[:split], argv[split + 1 :]

    parser = build_parser()
    args = parser.parse_args(argv)
    args.test_command = test_command
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    try:
        if args.command == "extract":
            return run_extract(args)
        elif args.command == "fuzz":
            return run_fuzz(args)
        elif args.command == "mutate":
            return run_mutate(args)
        else:
            parser.print_help()
            return 2
    except SchemaProbeError as e:
        print(f"[!] Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
