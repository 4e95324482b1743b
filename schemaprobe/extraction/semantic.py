"""
Semantic type detection.

Passes run per parameter in a fixed order and the first one that matches
ends detection for that parameter:

    datetime object, date string, UNIX timestamp, file handle, file path,
    callback, enumeration.

Enumerations have six alternative shapes (regex alternation, dict lookup,
list/tuple membership, ``match`` dispatch, an if/elif equality chain and set
membership); module-level constants are resolved before matching.
"""

from __future__ import annotations

import ast
import re
from typing import Any, Callable

from schemaprobe.extraction.utils import (
    FunctionNode,
    call_name,
    dotted_name,
    is_name,
    literal_value,
    local_nodes,
    walk_local,
)
from schemaprobe.source_model import SourceModel
from schemaprobe.types import ParamType

DATETIME_METHODS = frozenset({"strftime", "isoformat", "timestamp", "timetuple", "astimezone", "weekday"})
DATETIME_ATTRIBUTES = frozenset({"year", "month", "day", "hour", "minute", "second", "tzinfo"})
DATE_PARSERS = frozenset({"strptime", "fromisoformat"})
TIMESTAMP_CONVERTERS = frozenset(
    {"fromtimestamp", "utcfromtimestamp", "time.gmtime", "time.localtime", "time.ctime", "gmtime", "localtime"}
)
FILEHANDLE_METHODS = frozenset({"read", "readline", "readlines", "write", "writelines", "seek", "tell", "fileno", "flush"})
PATH_FUNCTIONS = frozenset(
    {
        "open",
        "io.open",
        "os.stat",
        "os.remove",
        "os.unlink",
        "os.listdir",
        "os.scandir",
        "os.makedirs",
        "os.mkdir",
        "Path",
        "pathlib.Path",
        "PurePath",
        "shutil.copy",
        "shutil.copyfile",
        "shutil.move",
        "shutil.rmtree",
    }
)

DATE_REGEX_RE = re.compile(r"\\d\{4\}\W{0,2}-?\\d\{2\}")
ALTERNATION_RE = re.compile(r"^\^?\((?:\?:)?([\w\s|.-]+)\)\$?$")
TIMESTAMP_FLOOR = 1_000_000_000
TIMESTAMP_MAX = 2147483647
MIN_EQUALITY_CHAIN = 3


class SemanticTypeDetector:
    """Detect semantic types for the parameters of one function."""

    def __init__(self, func: FunctionNode, model: SourceModel):
        self.func = func
        self.model = model
        self.calls = local_nodes(func, ast.Call)
        self.passes: list[Callable[[str], dict[str, Any] | None]] = [
            self._datetime_object,
            self._date_string,
            self._unix_timestamp,
            self._filehandle,
            self._filepath,
            self._coderef,
            self._enumeration,
        ]

    def detect(self, names: list[str]) -> dict[str, dict[str, Any]]:
        found = {}
        for name in names:
            for detect_pass in self.passes:
                result = detect_pass(name)
                if result:
                    found[name] = result
                    break
        return found

    def _args_mention(self, call: ast.Call, name: str) -> bool:
        return any(is_name(arg, name) for arg in call.args)

    def _datetime_object(self, name: str) -> dict[str, Any] | None:
        for node in walk_local(self.func):
            if isinstance(node, ast.Attribute) and is_name(node.value, name):
                if node.attr in DATETIME_METHODS or node.attr in DATETIME_ATTRIBUTES:
                    return self._datetime_result()
        for call in self.calls:
            if call_name(call) == "isinstance" and len(call.args) == 2 and is_name(call.args[0], name):
                type_name = dotted_name(call.args[1]) or ""
                if type_name.rsplit(".", 1)[-1] == "datetime":
                    return self._datetime_result()
        return None

    def _datetime_result(self) -> dict[str, Any]:
        return {
            "type": ParamType.OBJECT,
            "class_name": "datetime.datetime",
            "semantic": "datetime_object",
            "note": "Pass a datetime.datetime instance",
        }

    def _date_string(self, name: str) -> dict[str, Any] | None:
        for call in self.calls:
            func = call_name(call) or ""
            method = func.rsplit(".", 1)[-1]
            if method in DATE_PARSERS and call.args and is_name(call.args[0], name):
                date_format = "iso8601"
                if method == "strptime" and len(call.args) > 1:
                    fmt = literal_value(self.model.resolve_constant(call.args[1]), default=None)
                    if isinstance(fmt, str):
                        date_format = fmt
                return {
                    "type": ParamType.STRING,
                    "semantic": "date_string",
                    "format": date_format,
                    "note": f"Date string in {date_format} format",
                }
            if method in ("match", "fullmatch", "search") and len(call.args) >= 2 and is_name(call.args[1], name):
                pattern = literal_value(self.model.resolve_constant(call.args[0]), default=None)
                if isinstance(pattern, str) and DATE_REGEX_RE.search(pattern):
                    return {
                        "type": ParamType.STRING,
                        "semantic": "date_string",
                        "format": "iso8601",
                        "matches": pattern,
                        "note": "Date string matched by a regular expression",
                    }
        return None

    def _unix_timestamp(self, name: str) -> dict[str, Any] | None:
        hit = False
        for call in self.calls:
            func = call_name(call) or ""
            if (func in TIMESTAMP_CONVERTERS or func.rsplit(".", 1)[-1] in TIMESTAMP_CONVERTERS) and self._args_mention(
                call, name
            ):
                hit = True
                break
        if not hit:
            for compare in local_nodes(self.func, ast.Compare):
                operands = [compare.left, *compare.comparators]
                if not any(is_name(o, name) for o in operands):
                    continue
                for operand in operands:
                    value = literal_value(self.model.resolve_constant(operand), default=None)
                    if isinstance(value, int) and not isinstance(value, bool) and value >= TIMESTAMP_FLOOR:
                        hit = True
        if not hit:
            return None
        return {
            "type": ParamType.INTEGER,
            "semantic": "unix_timestamp",
            "min": 0,
            "max": TIMESTAMP_MAX,
            "note": "Seconds since the UNIX epoch",
        }

    def _filehandle(self, name: str) -> dict[str, Any] | None:
        for call in self.calls:
            if (
                isinstance(call.func, ast.Attribute)
                and is_name(call.func.value, name)
                and call.func.attr in FILEHANDLE_METHODS
            ):
                return {
                    "type": ParamType.OBJECT,
                    "class_name": "io.IOBase",
                    "semantic": "filehandle",
                    "note": "Open file object",
                }
        return None

    def _filepath(self, name: str) -> dict[str, Any] | None:
        for call in self.calls:
            func = call_name(call) or ""
            if not call.args or not is_name(call.args[0], name):
                continue
            if func in PATH_FUNCTIONS or func.startswith("os.path."):
                return {
                    "type": ParamType.STRING,
                    "semantic": "filepath",
                    "note": "Filesystem path",
                }
        return None

    def _coderef(self, name: str) -> dict[str, Any] | None:
        for call in self.calls:
            if is_name(call.func, name) or (call_name(call) == "callable" and self._args_mention(call, name)):
                return {
                    "type": ParamType.CODEREF,
                    "semantic": "callback",
                    "note": "Callable invoked by the function",
                }
        return None

    def _enumeration(self, name: str) -> dict[str, Any] | None:
        for finder in (
            self._enum_regex,
            self._enum_dict,
            self._enum_sequence,
            self._enum_match,
            self._enum_chain,
            self._enum_set,
        ):
            values = finder(name)
            if values:
                return self._enum_result(values)
        return None

    def _enum_result(self, values: list[Any]) -> dict[str, Any]:
        if all(isinstance(v, str) for v in values):
            value_type = ParamType.STRING
        elif all(isinstance(v, int) and not isinstance(v, bool) for v in values):
            value_type = ParamType.INTEGER
        else:
            value_type = ParamType.SCALAR
        return {
            "type": value_type,
            "enum": values,
            "semantic": "enum",
            "note": "One of: " + ", ".join(str(v) for v in values),
        }

    def _enum_regex(self, name: str) -> list[Any] | None:
        for call in self.calls:
            func = call_name(call) or ""
            if func.rsplit(".", 1)[-1] not in ("match", "fullmatch") or len(call.args) < 2:
                continue
            if not is_name(call.args[1], name):
                continue
            pattern = literal_value(self.model.resolve_constant(call.args[0]), default=None)
            if not isinstance(pattern, str):
                continue
            match = ALTERNATION_RE.match(pattern)
            if match and "|" in match.group(1):
                return [part.strip() for part in match.group(1).split("|")]
        return None

    def _membership_container(self, name: str) -> list[ast.expr]:
        containers = []
        for compare in local_nodes(self.func, ast.Compare):
            if (
                len(compare.ops) == 1
                and isinstance(compare.ops[0], (ast.In, ast.NotIn))
                and is_name(compare.left, name)
            ):
                containers.append(self._unwrap_set_call(self.model.resolve_constant(compare.comparators[0])))
        return containers

    def _unwrap_set_call(self, node: ast.expr) -> ast.expr:
        if isinstance(node, ast.Call) and call_name(node) in ("frozenset", "set", "tuple", "list") and node.args:
            return self.model.resolve_constant(node.args[0])
        return node

    def _constant_elements(self, elements: list[ast.expr | None]) -> list[Any] | None:
        values = []
        for element in elements:
            if not isinstance(element, ast.Constant):
                return None
            values.append(element.value)
        return values or None

    def _enum_dict(self, name: str) -> list[Any] | None:
        for container in self._membership_container(name):
            if isinstance(container, ast.Dict):
                return self._constant_elements(container.keys)
        for node in walk_local(self.func):
            target = None
            if isinstance(node, ast.Subscript) and is_name(node.slice, name):
                target = node.value
            elif (
                isinstance(node, ast.Call)
                and isinstance(node.func, ast.Attribute)
                and node.func.attr == "get"
                and node.args
                and is_name(node.args[0], name)
            ):
                target = node.func.value
            if target is not None:
                resolved = self.model.resolve_constant(target)
                if isinstance(resolved, ast.Dict):
                    return self._constant_elements(resolved.keys)
        return None

    def _enum_sequence(self, name: str) -> list[Any] | None:
        for container in self._membership_container(name):
            if isinstance(container, (ast.List, ast.Tuple)):
                return self._constant_elements(container.elts)
        return None

    def _enum_match(self, name: str) -> list[Any] | None:
        for node in local_nodes(self.func, ast.Match):
            if not is_name(node.subject, name):
                continue
            values = []
            for case in node.cases:
                patterns = case.pattern.patterns if isinstance(case.pattern, ast.MatchOr) else [case.pattern]
                for pattern in patterns:
                    if isinstance(pattern, ast.MatchValue) and isinstance(pattern.value, ast.Constant):
                        values.append(pattern.value.value)
            if values:
                return values
        return None

    def _enum_chain(self, name: str) -> list[Any] | None:
        values: list[Any] = []
        for node in local_nodes(self.func, ast.If):
            test = node.test
            if (
                isinstance(test, ast.Compare)
                and len(test.ops) == 1
                and isinstance(test.ops[0], ast.Eq)
                and is_name(test.left, name)
                and isinstance(test.comparators[0], ast.Constant)
            ):
                value = test.comparators[0].value
                if value not in values:
                    values.append(value)
        return values if len(values) >= MIN_EQUALITY_CHAIN else None

    def _enum_set(self, name: str) -> list[Any] | None:
        for container in self._membership_container(name):
            if isinstance(container, ast.Set):
                return self._constant_elements(container.elts)
        return None


def detect_semantic_types(func: FunctionNode, model: SourceModel, names: list[str]) -> dict[str, dict[str, Any]]:
    return SemanticTypeDetector(func, model).detect(names)
