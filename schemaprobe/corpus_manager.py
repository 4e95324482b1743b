"""
The fuzz corpus: inputs worth mutating further, the bugs found so far and
the set of branches already reached in this run.

Only inputs and bugs are persisted. Coverage sets belong to the run that
measured them, so loaded entries start with empty coverage and the branch
set starts empty too.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from pathlib import Path
from typing import Any

from schemaprobe.errors import CorpusError
from schemaprobe.types import BugRecord, CorpusEntry

logger = logging.getLogger(__name__)


def _bug_key(bug: BugRecord) -> str:
    return json.dumps(bug.to_dict(), sort_keys=True, default=repr)


class Corpus:
    """Handle the fuzzer's corpus in memory and on disk."""

    def __init__(self):
        self.entries: list[CorpusEntry] = []
        self.bugs: list[BugRecord] = []
        self.covered: set[str] = set()
        self._bug_keys: set[str] = set()

    def __len__(self) -> int:
        return len(self.entries)

    def new_branches(self, coverage: frozenset[str]) -> set[str]:
        return set(coverage) - self.covered

    def add_entry(self, value: Any, coverage: frozenset[str] = frozenset()) -> CorpusEntry:
        entry = CorpusEntry(input=value, coverage=frozenset(coverage))
        self.entries.append(entry)
        self.covered.update(coverage)
        return entry

    def record_bug(self, value: Any, error: str) -> bool:
        """Record a bug; identical input/error pairs are kept once."""
        bug = BugRecord(input=value, error=error)
        key = _bug_key(bug)
        if key in self._bug_keys:
            return False
        self._bug_keys.add(key)
        self.bugs.append(bug)
        return True

    def to_dict(self, seed: int | None) -> dict[str, Any]:
        return {
            "seed": seed,
            "corpus": [{"input": entry.input} for entry in self.entries],
            "bugs": [bug.to_dict() for bug in self.bugs],
        }

    def save(self, path: Path | str, seed: int | None = None) -> None:
        """Write the corpus as JSON, atomically."""
        path = Path(path)
        tmp_path = path.with_name(f"{path.name}.tmp.{secrets.token_hex(4)}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(seed), f, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as e_unlink:
                    logger.warning("[!] Could not remove temporary corpus file %s: %s", tmp_path, e_unlink)
            raise CorpusError(f"Could not save corpus to {path}: {e}") from e
        logger.info("[+] Saved %d corpus entries and %d bugs to %s", len(self.entries), len(self.bugs), path)

    def load(self, path: Path | str) -> int | None:
        """Append the entries and bugs stored at ``path``; return the stored seed."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CorpusError(f"Could not load corpus from {path}: {e}") from e
        if not isinstance(data, dict):
            raise CorpusError(f"{path} does not contain a corpus")
        corpus = data.get("corpus", [])
        bugs = data.get("bugs", [])
        for key, items in (("corpus", corpus), ("bugs", bugs)):
            if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
                raise CorpusError(f"{path}: '{key}' must be a list of objects")
        for item in corpus:
            self.entries.append(CorpusEntry(input=item.get("input")))
        for item in bugs:
            self.record_bug(item.get("input"), str(item.get("error", "")))
        logger.info("[+] Loaded %d corpus entries from %s", len(corpus), path)
        return data.get("seed")
