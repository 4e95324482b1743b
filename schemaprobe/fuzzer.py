"""
Schema-guided, coverage-guided fuzzing of a single Python callable.

The loop seeds the corpus with a few random inputs, then on every iteration
either mutates a corpus entry or generates a fresh input, runs the target
under the selected coverage strategy and keeps the input if it reached new
branches. Failures count as bugs only when the input satisfied the schema;
invalid inputs that fail are expected rejections and are just counted.
"""

from __future__ import annotations

import logging
import random
import re
import time
import warnings
from pathlib import Path
from typing import Any, Callable

from schemaprobe.corpus_manager import Corpus
from schemaprobe.coverage import NullCoverage, TraceCoverage, select_coverage
from schemaprobe.generator import InputGenerator, ValueMutator
from schemaprobe.utils import resource_snapshot
from schemaprobe.validation import input_is_valid, input_spec_of, is_single_value_spec

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 100
SEED_INPUTS = 5
MUTATE_PROBABILITY = 0.7
SAMPLE_PROBABILITY = 0.2

# Warnings with these words are treated as failures of the call.
SOFT_FAILURE_RE = re.compile(r"uninitiali[sz]ed|undefined|invalid", re.I)


class CoverageGuidedFuzzer:
    """Fuzz ``target`` with inputs shaped by an input schema."""

    def __init__(
        self,
        schema: Any,
        target: Callable[..., Any],
        iterations: int = DEFAULT_ITERATIONS,
        seed: int | None = None,
        rng: random.Random | None = None,
        coverage: TraceCoverage | NullCoverage | None = None,
        mutate_probability: float = MUTATE_PROBABILITY,
        sample_probability: float = SAMPLE_PROBABILITY,
        seed_inputs: int = SEED_INPUTS,
    ):
        if target is None or not callable(target):
            raise TypeError("target must be callable")
        self.spec = input_spec_of(schema)
        self.target = target
        self.iterations = iterations
        self.seed = seed if seed is not None else int(time.time())
        self.rng = rng or random.Random(self.seed)
        self.coverage = coverage if coverage is not None else select_coverage(target)
        self.mutate_probability = mutate_probability
        self.sample_probability = sample_probability
        self.seed_inputs = seed_inputs
        self.generator = InputGenerator(self.rng)
        self.mutator = ValueMutator(self.generator)
        self.corpus = Corpus()
        self.stats = {"total": 0, "interesting": 0, "suppressed": 0}

    @property
    def bugs(self):
        return self.corpus.bugs

    def run(self) -> dict[str, Any]:
        """Run the fuzzing loop and return a summary report."""
        logger.info(
            "[*] Fuzzing %s for %d iterations (seed %s, coverage %s).",
            getattr(self.target, "__qualname__", repr(self.target)),
            self.iterations,
            self.seed,
            "on" if self.coverage.available else "off",
        )
        for _ in range(self.seed_inputs):
            self.corpus.add_entry(self.generator.generate_input(self.spec))

        for _ in range(self.iterations):
            if len(self.corpus) and self.rng.random() < self.mutate_probability:
                parent = self.rng.choice(self.corpus.entries)
                candidate = self.mutator.mutate_input(parent.input, self.spec)
            else:
                candidate = self.generator.generate_input(self.spec)
            self.run_one(candidate)
            self.stats["total"] += 1

        report = self.report()
        logger.info(
            "[+] Done: %d interesting inputs, %d branches, %d bugs.",
            report["interesting_inputs"],
            report["branches_covered"],
            report["bugs_found"],
        )
        return report

    def _invoke(self, candidate: Any) -> Any:
        if not is_single_value_spec(self.spec) and isinstance(candidate, dict):
            return self.target(**candidate)
        return self.target(candidate)

    def run_one(self, candidate: Any) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            execution = self.coverage.run(lambda: self._invoke(candidate))

        error = None
        if execution.error is not None:
            error = f"{type(execution.error).__name__}: {execution.error}"
        else:
            for warning in caught:
                if SOFT_FAILURE_RE.search(str(warning.message)):
                    error = f"{warning.category.__name__}: {warning.message}"
                    break

        if error is not None:
            if input_is_valid(candidate, self.spec):
                if self.corpus.record_bug(candidate, error):
                    logger.info("[!] Bug: %s with input %r", error, candidate)
            else:
                self.stats["suppressed"] += 1

        if self._is_interesting(execution.arcs):
            self.corpus.add_entry(candidate, execution.arcs)
            self.stats["interesting"] += 1

    def _is_interesting(self, arcs: frozenset[str]) -> bool:
        if self.coverage.available:
            return bool(self.corpus.new_branches(arcs))
        return self.rng.random() < self.sample_probability

    def report(self) -> dict[str, Any]:
        return {
            "total_iterations": self.stats["total"],
            "interesting_inputs": self.stats["interesting"],
            "corpus_size": len(self.corpus),
            "branches_covered": len(self.corpus.covered),
            "bugs_found": len(self.corpus.bugs),
            "suppressed_failures": self.stats["suppressed"],
            "bugs": [bug.to_dict() for bug in self.corpus.bugs],
            "resources": resource_snapshot(Path.cwd()),
        }

    def save_corpus(self, path: Path | str) -> None:
        self.corpus.save(path, seed=self.seed)

    def load_corpus(self, path: Path | str) -> None:
        self.corpus.load(path)
