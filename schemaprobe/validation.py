"""
Check a fuzz input against the input schema it was generated from.

An input spec is either a single-value spec (a mapping with a string
``type`` key) or a named map ``{name: spec}`` whose values are single-value
specs.
"""

from __future__ import annotations

import re
from typing import Any

from schemaprobe.types import ParameterSpec, Schema


def is_single_value_spec(spec: Any) -> bool:
    return isinstance(spec, dict) and isinstance(spec.get("type"), str)


def input_spec_of(schema: Any) -> dict[str, Any]:
    """Accept a Schema, a schema dict with an ``input`` key, or a bare input spec."""
    if isinstance(schema, Schema):
        return schema.input_dict()
    if isinstance(schema, ParameterSpec):
        return schema.to_dict()
    if isinstance(schema, dict) and isinstance(schema.get("input"), dict):
        return schema["input"]
    if isinstance(schema, dict):
        return schema
    raise TypeError(f"not an input schema: {schema!r}")


def _type_ok(value: Any, type_name: str | None) -> bool:
    if type_name == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "boolean":
        return isinstance(value, bool) or (type(value) is int and value in (0, 1))
    if type_name == "array":
        return isinstance(value, (list, tuple))
    if type_name == "map":
        return isinstance(value, dict)
    if type_name == "coderef":
        return callable(value)
    if type_name == "object":
        return value is not None
    return True


def _measure(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return None


def value_is_valid(value: Any, spec: dict[str, Any]) -> bool:
    if not _type_ok(value, spec.get("type")):
        return False
    measure = _measure(value)
    if measure is not None:
        if spec.get("min") is not None and measure < spec["min"]:
            return False
        if spec.get("max") is not None and measure > spec["max"]:
            return False
    pattern = spec.get("matches")
    if pattern and isinstance(value, str) and re.search(pattern, value) is None:
        return False
    enum = spec.get("enum")
    if enum is not None and value not in enum:
        return False
    return True


def input_is_valid(value: Any, spec: dict[str, Any]) -> bool:
    """Return True if ``value`` satisfies ``spec``."""
    if is_single_value_spec(spec):
        return value_is_valid(value, spec)
    if not isinstance(value, dict):
        return False
    for name, param in spec.items():
        param = param or {}
        if name not in value:
            if param.get("optional") is False:
                return False
            continue
        if value[name] is None and param.get("optional"):
            continue
        if not value_is_valid(value[name], param):
            return False
    return True
