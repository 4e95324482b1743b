"""
Merge the per-source evidence maps into one ParameterSpec per name and
score how much the result can be trusted.

Precedence is documentation > code > annotations > parameter list. A lower
source fills fields the higher ones left empty, and may replace a type only
with a strictly more specific one.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from schemaprobe.types import (
    Confidence,
    ParameterSpec,
    ParamType,
    ReturnSpec,
    is_more_specific,
)

TYPE_POINTS = 30
CONSTRAINED_STRING_POINTS = 25
PLAIN_STRING_POINTS = 10
MIN_POINTS = 15
MAX_POINTS = 15
OPTIONAL_POINTS = 20
MATCHES_POINTS = 20
CLASS_POINTS = 25
POSITION_POINTS = 10

HIGH_THRESHOLD = 60
MEDIUM_THRESHOLD = 35
LOW_THRESHOLD = 15

_FILLED_FIELDS = (
    "min",
    "max",
    "matches",
    "enum",
    "semantic",
    "note",
    "default",
    "format",
    "edge_cases",
)


def _vote_position(positions: list[int]) -> int | None:
    """Majority vote; ties go to the lowest position."""
    if not positions:
        return None
    counts = Counter(positions)
    best = max(counts.values())
    return min(p for p, n in counts.items() if n == best)


class SchemaMerger:
    """Combine evidence maps; sources are given highest priority first."""

    def merge(
        self,
        documentation: dict[str, dict[str, Any]],
        code: dict[str, dict[str, Any]],
        binding: dict[str, dict[str, Any]],
        annotations: dict[str, dict[str, Any]] | None = None,
    ) -> dict[str, ParameterSpec]:
        sources = [documentation, code, annotations or {}, binding]
        names: list[str] = []
        for source in (binding, documentation, code, annotations or {}):
            for name in source:
                if name not in names:
                    names.append(name)
        return {name: self._merge_one(name, [s.get(name, {}) for s in sources]) for name in names}

    def _merge_one(self, name: str, entries: list[dict[str, Any]]) -> ParameterSpec:
        spec = ParameterSpec(name=name)

        for entry in entries:
            candidate = ParamType.coerce(entry.get("type"))
            if candidate is None:
                continue
            if spec.type is None or is_more_specific(candidate, spec.type):
                spec.type = candidate
                spec.class_name = entry.get("class_name")

        for entry in entries:
            for field_name in _FILLED_FIELDS:
                if getattr(spec, field_name) is None and entry.get(field_name) is not None:
                    setattr(spec, field_name, entry[field_name])
            if spec.class_name is None and spec.type is ParamType.OBJECT and entry.get("class_name"):
                spec.class_name = entry["class_name"]

        spec.position = _vote_position([e["position"] for e in entries if e.get("position") is not None])

        for entry in entries:
            if entry.get("optional") is not None:
                spec.optional = bool(entry["optional"])
                break
        else:
            if spec.has_evidence():
                spec.optional = False
        return spec


def parameter_points(spec: ParameterSpec) -> int:
    points = 0
    if spec.type is ParamType.STRING:
        constrained = spec.min is not None or spec.max is not None or spec.matches or spec.enum
        points += CONSTRAINED_STRING_POINTS if constrained else PLAIN_STRING_POINTS
    elif spec.type is not None and spec.type is not ParamType.UNKNOWN:
        points += TYPE_POINTS
    if spec.min is not None:
        points += MIN_POINTS
    if spec.max is not None:
        points += MAX_POINTS
    if spec.optional is not None:
        points += OPTIONAL_POINTS
    if spec.matches:
        points += MATCHES_POINTS
    if spec.class_name:
        points += CLASS_POINTS
    if spec.position is not None:
        points += POSITION_POINTS
    return points


def input_confidence(params: dict[str, ParameterSpec]) -> Confidence:
    if not params:
        return Confidence.NONE
    average = sum(parameter_points(p) for p in params.values()) / len(params)
    if average >= HIGH_THRESHOLD:
        return Confidence.HIGH
    if average >= MEDIUM_THRESHOLD:
        return Confidence.MEDIUM
    if average >= LOW_THRESHOLD:
        return Confidence.LOW
    return Confidence.VERY_LOW


def output_confidence(output: ReturnSpec) -> Confidence:
    if output.is_empty():
        return Confidence.NONE
    if output.type is not None and (output.value is not None or output.class_name):
        return Confidence.HIGH
    if output.type is not None:
        return Confidence.MEDIUM
    return Confidence.LOW


def review_notes(params: dict[str, ParameterSpec]) -> list[str]:
    notes = []
    for spec in params.values():
        if spec.type is None:
            notes.append(f"{spec.name}: type unknown - please review")
        if spec.optional is None:
            notes.append(f"{spec.name}: optional status unknown")
    return notes
