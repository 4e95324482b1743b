"""
The mutation engine: generate mutants for one source file, run an external
test command against each of them in an isolated workspace and score the
suite.

The workspace is a copy of the project tree in a temporary directory. The
target file inside it is backed up once; every mutant is applied to a fresh
parse of the workspace file and undone by restoring the backup, so no
mutant ever sees another's edit.
"""

from __future__ import annotations

import ast
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, Iterable, Sequence

from schemaprobe.errors import MutationApplyError, MutationSetupError
from schemaprobe.mutators.base import Mutant, MutationOperator
from schemaprobe.mutators.dedup import filter_mutants
from schemaprobe.mutators.operators import DEFAULT_OPERATORS
from schemaprobe.utils import resource_snapshot

logger = logging.getLogger(__name__)

DEFAULT_TEST_COMMAND = (sys.executable, "-m", "pytest", "-q")
LEVELS = ("full", "fast")
IGNORED_PATTERNS = (
    ".git",
    ".hg",
    ".svn",
    "__pycache__",
    "*.pyc",
    ".venv",
    "venv",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".pytest_cache",
    "*.egg-info",
)


class MutationEngine:
    """Run a mutation analysis of one file against a project's test suite."""

    def __init__(
        self,
        file: Path | str,
        project_root: Path | str = ".",
        lib_dir: Path | str | None = None,
        test_command: Sequence[str] = DEFAULT_TEST_COMMAND,
        level: str = "full",
        operators: Iterable[type[MutationOperator]] = DEFAULT_OPERATORS,
    ):
        if level not in LEVELS:
            raise ValueError(f"level must be one of {LEVELS}, not {level!r}")
        self.file = Path(file)
        self.project_root = Path(project_root)
        self.lib_dir = Path(lib_dir) if lib_dir is not None else None
        self.test_command = list(test_command)
        self.level = level
        self.operators = [operator() for operator in operators]
        self.workspace: Path | None = None
        self._tmpdir: tempfile.TemporaryDirectory | None = None
        try:
            self.source = self.file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise MutationSetupError(f"Could not read {self.file}: {e}") from e

    def __enter__(self) -> MutationEngine:
        self.prepare_workspace()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def generate_mutants(self) -> list[Mutant]:
        try:
            tree = ast.parse(self.source, filename=str(self.file))
        except SyntaxError as e:
            raise MutationSetupError(f"Could not parse {self.file}: {e}") from e
        mutants: list[Mutant] = []
        for operator in self.operators:
            mutants.extend(operator.mutants(tree, self.source))
        mutants.sort(key=lambda m: (m.line, m.col))
        if self.level == "fast":
            before = len(mutants)
            mutants = filter_mutants(mutants, self.source)
            logger.info("[*] Fast mode kept %d of %d mutants.", len(mutants), before)
        return mutants

    def relative_target(self) -> Path:
        """Where the target file lives inside the workspace.

        A file under the project root keeps its place. A file outside it is
        mirrored below the library root: at the library root's own place in
        the project when the project contains it, else under a directory
        named after it.
        """
        file = self.file.resolve()
        root = self.project_root.resolve()
        try:
            return file.relative_to(root)
        except ValueError:
            pass
        if self.lib_dir is None:
            return Path(self.file.name)
        lib_dir = (self.lib_dir if self.lib_dir.is_absolute() else root / self.lib_dir).resolve()
        try:
            inside_lib = file.relative_to(lib_dir)
        except ValueError:
            inside_lib = Path(self.file.name)
        try:
            lib_place = lib_dir.relative_to(root)
        except ValueError:
            lib_place = Path(lib_dir.name)
        return lib_place / inside_lib

    @property
    def target(self) -> Path:
        if self.workspace is None:
            raise MutationSetupError("The workspace has not been prepared")
        target = self.workspace / self.relative_target()
        if not target.resolve().is_relative_to(self.workspace.resolve()):
            raise MutationSetupError(f"Mutation target {target} falls outside the workspace {self.workspace}")
        return target

    @property
    def backup(self) -> Path:
        return self.target.with_name(self.target.name + ".bak")

    def prepare_workspace(self) -> Path:
        """Copy the project into a temporary directory and back up the target."""
        self._tmpdir = tempfile.TemporaryDirectory(prefix="schemaprobe_mut_")
        self.workspace = Path(self._tmpdir.name) / "project"
        try:
            shutil.copytree(
                self.project_root,
                self.workspace,
                ignore=shutil.ignore_patterns(*IGNORED_PATTERNS),
            )
            target = self.target
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.file, target)
            shutil.copy2(target, self.backup)
        except MutationSetupError:
            self.cleanup()
            raise
        except OSError as e:
            self.cleanup()
            raise MutationSetupError(f"Could not prepare the mutation workspace: {e}") from e
        logger.info("[*] Workspace ready at %s", self.workspace)
        return self.workspace

    def apply_mutant(self, mutant: Mutant) -> None:
        """Write the workspace target with ``mutant`` applied."""
        target = self.target
        try:
            tree = ast.parse(target.read_text(encoding="utf-8"), filename=str(target))
            mutated = ast.unparse(mutant.apply(tree))
        except (LookupError, SyntaxError, ValueError, TypeError, AttributeError) as e:
            raise MutationApplyError(mutant.id, str(e)) from e
        try:
            target.write_text(mutated + "\n", encoding="utf-8")
        except OSError as e:
            raise MutationApplyError(mutant.id, f"could not write {target}: {e}") from e

    def revert(self) -> None:
        """Restore the workspace target from its backup."""
        if self.workspace is None or not self.backup.exists():
            raise MutationSetupError(f"Backup of {self.file} is missing; cannot restore")
        shutil.copy2(self.backup, self.target)

    def run_tests(self) -> bool:
        """Run the test command in the workspace; True means the suite passed."""
        env = os.environ.copy()
        env["PYTHONDONTWRITEBYTECODE"] = "1"
        try:
            completed = subprocess.run(
                self.test_command,
                cwd=self.workspace,
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            raise MutationSetupError(f"Could not run test command {self.test_command}: {e}") from e
        return completed.returncode == 0

    def run(self) -> dict[str, Any]:
        """Score the suite: the share of mutants it kills."""
        mutants = self.generate_mutants()
        print(f"[*] Generated {len(mutants)} mutants for {self.file}")
        killed = 0
        survived: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []

        own_workspace = self.workspace is None
        if own_workspace:
            self.prepare_workspace()
        try:
            for mutant in mutants:
                try:
                    self.apply_mutant(mutant)
                except MutationApplyError as e:
                    logger.warning("[!] Could not apply %s: %s", mutant.id, e.reason)
                    errors.append({"id": mutant.id, "line": mutant.line, "error": e.reason})
                    self.revert()
                    continue
                try:
                    passed = self.run_tests()
                finally:
                    self.revert()
                if passed:
                    survived.append(mutant.to_dict(file=str(self.file)))
                    print(f"    -> SURVIVED {mutant.id}: {mutant.description}")
                else:
                    killed += 1
        finally:
            if own_workspace:
                self.cleanup()

        total = len(mutants)
        score = round(killed / total * 100, 2) if total else 0.0
        print(f"[+] Mutation score: {score}% ({killed}/{total} killed)")
        return {
            "file": str(self.file),
            "score": score,
            "total": total,
            "killed": killed,
            "survived": survived,
            "errors": errors,
            "resources": resource_snapshot(self.project_root),
        }

    def cleanup(self) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()
            self._tmpdir = None
        self.workspace = None
