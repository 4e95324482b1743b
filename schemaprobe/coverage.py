"""
Branch coverage strategies for the fuzzer.

`TraceCoverage` records line-to-line arcs with ``sys.settrace`` while the
target runs; an arc is reported as ``"file:from->to"``. `NullCoverage` is
used when tracing is not possible (for example under a debugger or another
coverage tool, which own the trace hook) and reports nothing.

Both strategies run the call under error isolation and hand back the
exception instead of raising it, so the fuzzer sees one code path for
either strategy.
"""

from __future__ import annotations

import inspect
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import FrameType
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Execution:
    """Outcome of one traced call."""

    arcs: frozenset[str]
    result: Any = None
    error: Exception | None = None


class NullCoverage:
    """Run the target without instrumentation."""

    available = False

    def run(self, call: Callable[[], Any]) -> Execution:
        try:
            return Execution(frozenset(), result=call())
        except Exception as e:
            return Execution(frozenset(), error=e)


class TraceCoverage:
    """Record executed arcs inside a fixed set of source files."""

    available = True

    def __init__(self, include_files: Iterable[str | Path]):
        self.include_files = {str(Path(f).resolve()) for f in include_files}
        self._resolved: dict[str, bool] = {}

    def _wanted(self, filename: str) -> bool:
        wanted = self._resolved.get(filename)
        if wanted is None:
            try:
                wanted = str(Path(filename).resolve()) in self.include_files
            except OSError:
                wanted = False
            self._resolved[filename] = wanted
        return wanted

    def run(self, call: Callable[[], Any]) -> Execution:
        arcs: set[str] = set()

        def local_tracer(frame: FrameType, event: str, arg: Any):
            # Entry and exit arcs use the negated first line, as coverage.py does.
            if event == "line":
                key = id(frame)
                last = last_lines.get(key, -frame.f_code.co_firstlineno)
                arcs.add(f"{frame.f_code.co_filename}:{last}->{frame.f_lineno}")
                last_lines[key] = frame.f_lineno
            elif event == "return":
                key = id(frame)
                last = last_lines.pop(key, -frame.f_code.co_firstlineno)
                arcs.add(f"{frame.f_code.co_filename}:{last}->-{frame.f_code.co_firstlineno}")
            return local_tracer

        def global_tracer(frame: FrameType, event: str, arg: Any):
            if event == "call" and self._wanted(frame.f_code.co_filename):
                return local_tracer
            return None

        last_lines: dict[int, int] = {}
        previous_tracer = sys.gettrace()
        sys.settrace(global_tracer)
        try:
            result = call()
        except Exception as e:
            return Execution(frozenset(arcs), error=e)
        finally:
            sys.settrace(previous_tracer)
        return Execution(frozenset(arcs), result=result)


def source_files_of(target: Callable[..., Any]) -> list[str]:
    """Source file(s) holding ``target``; empty when it has none (builtins)."""
    unwrapped = inspect.unwrap(target)
    try:
        path = inspect.getsourcefile(unwrapped)
    except TypeError:
        return []
    return [path] if path else []


def select_coverage(target: Callable[..., Any], include_files: Iterable[str | Path] | None = None):
    """Pick the coverage strategy once, at fuzzer construction."""
    files = list(include_files) if include_files is not None else source_files_of(target)
    if not files:
        logger.info("[*] No source file for %r; running without coverage feedback.", target)
        return NullCoverage()
    if sys.gettrace() is not None:
        logger.info("[*] A trace function is already installed; running without coverage feedback.")
        return NullCoverage()
    return TraceCoverage(files)
