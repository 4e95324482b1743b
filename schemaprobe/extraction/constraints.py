"""Constraint grammar shared by the documentation and code collectors."""

from __future__ import annotations

import re
from typing import Any

from schemaprobe.types import ParamType

_NUMBER = r"(-?\d+(?:\.\d+)?)"

RANGE_RE = re.compile(rf"{_NUMBER}\s*(?:-|\.\.|to)\s*{_NUMBER}")
MIN_RE = re.compile(rf"\b(?:min(?:imum)?|at\s+least)\b\s*:?\s*(?:of\s+)?{_NUMBER}", re.I)
MAX_RE = re.compile(rf"\b(?:max(?:imum)?|up\s+to|at\s+most)\b\s*:?\s*(?:of\s+)?{_NUMBER}", re.I)
COMPARISON_RE = re.compile(rf"(<=|>=|<|>)\s*{_NUMBER}")
POSITIVE_RE = re.compile(r"(?<![-\w])positive\b", re.I)
NON_NEGATIVE_RE = re.compile(r"\bnon-?negative\b", re.I)

TYPE_ALIASES = {
    "str": ParamType.STRING,
    "string": ParamType.STRING,
    "text": ParamType.STRING,
    "int": ParamType.INTEGER,
    "integer": ParamType.INTEGER,
    "float": ParamType.NUMBER,
    "num": ParamType.NUMBER,
    "number": ParamType.NUMBER,
    "numeric": ParamType.NUMBER,
    "decimal": ParamType.NUMBER,
    "bool": ParamType.BOOLEAN,
    "boolean": ParamType.BOOLEAN,
    "list": ParamType.ARRAY,
    "tuple": ParamType.ARRAY,
    "sequence": ParamType.ARRAY,
    "array": ParamType.ARRAY,
    "arrayref": ParamType.ARRAY,
    "dict": ParamType.MAP,
    "hash": ParamType.MAP,
    "hashref": ParamType.MAP,
    "map": ParamType.MAP,
    "mapping": ParamType.MAP,
    "object": ParamType.OBJECT,
    "obj": ParamType.OBJECT,
    "callable": ParamType.CODEREF,
    "function": ParamType.CODEREF,
    "coderef": ParamType.CODEREF,
    "callback": ParamType.CODEREF,
    "scalar": ParamType.SCALAR,
}

# Builtin names as they appear in isinstance() checks and annotations.
BUILTIN_TYPES = {
    "str": ParamType.STRING,
    "bytes": ParamType.STRING,
    "int": ParamType.INTEGER,
    "float": ParamType.NUMBER,
    "complex": ParamType.NUMBER,
    "Decimal": ParamType.NUMBER,
    "bool": ParamType.BOOLEAN,
    "list": ParamType.ARRAY,
    "tuple": ParamType.ARRAY,
    "set": ParamType.ARRAY,
    "frozenset": ParamType.ARRAY,
    "List": ParamType.ARRAY,
    "Tuple": ParamType.ARRAY,
    "Sequence": ParamType.ARRAY,
    "Iterable": ParamType.ARRAY,
    "dict": ParamType.MAP,
    "Dict": ParamType.MAP,
    "Mapping": ParamType.MAP,
    "MutableMapping": ParamType.MAP,
    "Callable": ParamType.CODEREF,
}

STRICT_ADJUSTMENT = {"<": -1, ">": 1}
INVERTED_OPERATOR = {"<": ">=", "<=": ">", ">": "<=", ">=": "<", "==": "!=", "!=": "=="}
FLIPPED_OPERATOR = {"<": ">", "<=": ">=", ">": "<", ">=": "<=", "==": "==", "!=": "!="}


def parse_number(text: str) -> int | float:
    return float(text) if "." in text else int(text)


def normalize_type(token: str | None) -> tuple[ParamType | None, str | None]:
    """Map a documented type word to (type, class name)."""
    if not token:
        return None, None
    token = token.strip().strip("`'\"")
    alias = TYPE_ALIASES.get(token.lower())
    if alias is not None:
        return alias, None
    head = token.rsplit(".", 1)[-1]
    if head[:1].isupper():
        builtin = BUILTIN_TYPES.get(head)
        if builtin is not None:
            return builtin, None
        return ParamType.OBJECT, token
    return None, None


def bound_from_comparison(
    operator: str, value: int | float, integral: bool
) -> tuple[str, int | float] | None:
    """Turn ``x <op> value`` (a statement about valid values) into a bound.

    Strict operators are made inclusive by one step only when the bound is
    integral; fractional bounds are kept as written.
    """
    if operator not in ("<", "<=", ">", ">="):
        return None
    key = "max" if operator.startswith("<") else "min"
    if operator in STRICT_ADJUSTMENT and integral and isinstance(value, int):
        value += STRICT_ADJUSTMENT[operator]
    return key, value


def parse_constraints(
    text: str, param_type: ParamType | None = None, allow_range: bool = True
) -> dict[str, Any]:
    """Parse ``1-10``, ``min 3``, ``up to 5``, ``positive``, ``>= 0`` and friends."""
    result: dict[str, Any] = {}
    if not text:
        return result
    integral = param_type is not ParamType.NUMBER

    range_match = RANGE_RE.search(text) if allow_range else None
    if range_match:
        result["min"] = parse_number(range_match.group(1))
        result["max"] = parse_number(range_match.group(2))
    else:
        min_match = MIN_RE.search(text)
        if min_match:
            result["min"] = parse_number(min_match.group(1))
        max_match = MAX_RE.search(text)
        if max_match:
            result["max"] = parse_number(max_match.group(1))
        for operator, number in COMPARISON_RE.findall(text):
            bound = bound_from_comparison(operator, parse_number(number), integral)
            if bound is not None:
                result.setdefault(bound[0], bound[1])

    if "min" not in result:
        if NON_NEGATIVE_RE.search(text):
            result["min"] = 0
        elif POSITIVE_RE.search(text):
            result["min"] = 0.01 if param_type is ParamType.NUMBER else 1
    return result
