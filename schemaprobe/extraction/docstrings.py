"""
Documentation evidence: parameter facts read out of docstrings and the
comment block above a function.

Four layouts are understood, tried from most to least structured:

1. a signature-style heading (``resize(width, height)``) giving positions;
2. a ``Parameters:``/``Args:`` section using ``name - type (constraint), text``,
   Google-style ``name (type, optional): text`` or numpy-style ``name : type``;
3. inline ``name - type (constraint)`` lines anywhere in the text;
4. reST field lists (``:param int name:`` / ``:type name: int``).

The result is a partial map ``name -> {field: value}``; nothing is merged here.
"""

from __future__ import annotations

import re
from typing import Any

from schemaprobe.extraction.constraints import TYPE_ALIASES, normalize_type, parse_constraints
from schemaprobe.extraction.utils import SELF_NAMES
from schemaprobe.types import ParamType

SECTION_RE = re.compile(r"^\s*(parameters|params|arguments|args|inputs?|keyword arguments)\s*:?\s*$", re.I)
ANY_HEADER_RE = re.compile(r"^\s*[A-Z][\w ]*:?\s*$")
UNDERLINE_RE = re.compile(r"^\s*-{3,}\s*$")
HEADING_RE = re.compile(r"^\s*(?:usage:\s*)?(?:[\w.]+\.)?(\w+)\s*\(([^)]*)\)\s*(?:->.*)?$", re.I)

DASH_LINE_RE = re.compile(r"^\s*\$?(\w+)\s*-\s*([\w.]+)(?:\s*\(([^)]+)\))?\s*,?\s*(.*)$")
GOOGLE_LINE_RE = re.compile(r"^\s*\*{0,2}(\w+)\s*\(([^)]+)\)\s*:\s*(.*)$")
NUMPY_LINE_RE = re.compile(r"^\s*(\w+)\s*:\s*([\w.\[\], |]+?)\s*$")
PLAIN_LINE_RE = re.compile(r"^\s*\*{0,2}(\w+)\s*:\s*(.+)$")

REST_PARAM_RE = re.compile(r"^\s*:param\s+(?:([\w.\[\], |]+)\s+)?(\w+)\s*:\s*(.*)$")
REST_TYPE_RE = re.compile(r"^\s*:type\s+(\w+)\s*:\s*(.+)$")

OPTIONAL_RE = re.compile(r"\boptional\b", re.I)
REQUIRED_RE = re.compile(r"\b(required|mandatory)\b", re.I)
SEMANTIC_RE = re.compile(r"\b(email|url|uri|path|filename)\b", re.I)
MATCHES_RE = re.compile(r"\bmatches\s+(?:/(.+?)/|r?(['\"])(.+?)\2)")


def parse_signature_heading(doc: str, func_name: str) -> list[str]:
    """Return parameter names from a ``func_name(a, b)`` heading line, if any."""
    for line in doc.splitlines()[:5]:
        match = HEADING_RE.match(line)
        if match and match.group(1) == func_name:
            names = []
            for raw in match.group(2).split(","):
                name = raw.strip().lstrip("$*").split("=")[0].split(":")[0].strip()
                if name and name not in SELF_NAMES and name.isidentifier():
                    names.append(name)
            return names
    return []


def _section_lines(doc: str) -> list[str]:
    """Return the lines of the first parameter section, without the header."""
    lines = doc.splitlines()
    for index, line in enumerate(lines):
        if not SECTION_RE.match(line):
            continue
        section = []
        rest = lines[index + 1 :]
        if rest and UNDERLINE_RE.match(rest[0]):
            rest = rest[1:]
        header_indent = len(line) - len(line.lstrip())
        blank_run = 0
        for item in rest:
            if not item.strip():
                blank_run += 1
                if blank_run >= 2:
                    break
                continue
            indent = len(item) - len(item.lstrip())
            if ANY_HEADER_RE.match(item) and indent <= header_indent and not DASH_LINE_RE.match(item):
                break
            if blank_run and indent <= header_indent and section:
                break
            blank_run = 0
            section.append(item)
        return section
    return []


def _describe(entry: dict[str, Any], constraint: str, description: str) -> None:
    """Fill optional/semantic/matches/bounds from free text."""
    text = f"{constraint} {description}".strip()
    if OPTIONAL_RE.search(text):
        entry["optional"] = True
    elif REQUIRED_RE.search(text):
        entry["optional"] = False

    bounds = parse_constraints(constraint, entry.get("type"))
    if not bounds:
        bounds = parse_constraints(description, entry.get("type"), allow_range=False)
    for key, value in bounds.items():
        entry.setdefault(key, value)

    semantic = SEMANTIC_RE.search(description)
    if semantic:
        entry["semantic"] = semantic.group(1).lower()
    matches = MATCHES_RE.search(text)
    if matches:
        entry["matches"] = matches.group(1) or matches.group(3)


def _typed_entry(type_token: str) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    tokens = [t.strip() for t in re.split(r"[,|]| or ", type_token) if t.strip()]
    for token in tokens:
        if token.lower() in ("optional", "required", "mandatory", "none"):
            continue
        param_type, class_name = normalize_type(token)
        if param_type is not None:
            entry["type"] = param_type
            if class_name:
                entry["class_name"] = class_name
            break
    return entry


def _parse_section_line(line: str) -> tuple[str, dict[str, Any]] | None:
    match = DASH_LINE_RE.match(line)
    if match:
        name, type_token, constraint, description = match.groups()
        entry = _typed_entry(type_token)
        _describe(entry, constraint or "", description or "")
        return name, entry

    match = GOOGLE_LINE_RE.match(line)
    if match:
        name, inside, description = match.groups()
        entry = _typed_entry(inside)
        _describe(entry, inside, description)
        return name, entry

    match = NUMPY_LINE_RE.match(line)
    if match:
        name, type_token = match.groups()
        entry = _typed_entry(type_token)
        _describe(entry, type_token, "")
        return name, entry

    match = PLAIN_LINE_RE.match(line)
    if match:
        name, description = match.groups()
        entry: dict[str, Any] = {}
        _describe(entry, "", description)
        return name, entry
    return None


def _parse_inline(doc: str) -> dict[str, dict[str, Any]]:
    """``name - type (constraint)`` lines anywhere, only with a known type word."""
    found: dict[str, dict[str, Any]] = {}
    for line in doc.splitlines():
        match = DASH_LINE_RE.match(line)
        if not match:
            continue
        name, type_token, constraint, description = match.groups()
        if type_token.lower() not in TYPE_ALIASES:
            continue
        entry = _typed_entry(type_token)
        _describe(entry, constraint or "", description or "")
        found.setdefault(name, entry)
    return found


def _parse_rest_fields(doc: str) -> dict[str, dict[str, Any]]:
    found: dict[str, dict[str, Any]] = {}
    for line in doc.splitlines():
        match = REST_PARAM_RE.match(line)
        if match:
            type_token, name, description = match.groups()
            entry = found.setdefault(name, {})
            if type_token:
                entry.update(_typed_entry(type_token))
            _describe(entry, "", description)
            continue
        match = REST_TYPE_RE.match(line)
        if match:
            name, type_token = match.groups()
            entry = found.setdefault(name, {})
            typed = _typed_entry(type_token)
            entry.update(typed)
            if OPTIONAL_RE.search(type_token):
                entry["optional"] = True
    return found


def parse_parameter_docs(doc: str, func_name: str) -> dict[str, dict[str, Any]]:
    """Extract documentation evidence for every parameter the text mentions."""
    if not doc:
        return {}
    params: dict[str, dict[str, Any]] = {}

    for line in _section_lines(doc):
        parsed = _parse_section_line(line)
        if parsed is None:
            continue
        name, entry = parsed
        if name in SELF_NAMES or name in params:
            continue
        params[name] = entry

    for name, entry in _parse_inline(doc).items():
        if name not in SELF_NAMES:
            params.setdefault(name, entry)

    for name, entry in _parse_rest_fields(doc).items():
        if name in SELF_NAMES:
            continue
        existing = params.setdefault(name, {})
        for key, value in entry.items():
            existing.setdefault(key, value)

    heading = parse_signature_heading(doc, func_name)
    if heading:
        for position, name in enumerate(heading):
            params.setdefault(name, {})["position"] = position
    else:
        for position, name in enumerate(params):
            params[name].setdefault("position", position)

    return params


RETURNS_SECTION_RE = re.compile(r"^\s*(returns?|yields?|return value)\s*:?\s*(.*)$", re.I)
RETURNS_INLINE_RE = re.compile(r"\breturns?\s+(?:an?\s+|the\s+)?([\w.]+)", re.I)


def returns_text(doc: str) -> str:
    """Text of the ``Returns:`` section, or the sentence around an inline 'returns'."""
    if not doc:
        return ""
    lines = doc.splitlines()
    for index, line in enumerate(lines):
        match = RETURNS_SECTION_RE.match(line)
        if not match:
            continue
        collected = [match.group(2)] if match.group(2) else []
        rest = lines[index + 1 :]
        if rest and UNDERLINE_RE.match(rest[0]):
            rest = rest[1:]
        for item in rest:
            if not item.strip() or (ANY_HEADER_RE.match(item) and item.strip().endswith(":")):
                break
            collected.append(item.strip())
        return " ".join(collected)
    for line in lines:
        if RETURNS_INLINE_RE.search(line):
            return line.strip()
    return ""


def returns_type_word(text: str) -> str | None:
    match = RETURNS_INLINE_RE.search(text)
    return match.group(1) if match else None


def is_known_type(param_type: ParamType | None) -> bool:
    return param_type is not None and param_type is not ParamType.UNKNOWN
