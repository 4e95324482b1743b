"""
Code evidence: what the body of a function reveals about its parameters.

Three maps come out of here:

* the *binding map*, read from the parameter list (positions and defaults);
* the *annotation map*, read from type annotations;
* the *code map*, read from validation idioms in the body: isinstance checks,
  coercions, container usage, length and range guards, regex checks,
  ``is None`` guards and default-assignment idioms.

Comparisons in a guard that raises describe *invalid* values and are
inverted before they become bounds; comparisons in an ``assert`` describe
valid values and are taken as written.
"""

from __future__ import annotations

import ast
import logging
from typing import Any

from schemaprobe.extraction.constraints import (
    BUILTIN_TYPES,
    FLIPPED_OPERATOR,
    INVERTED_OPERATOR,
    bound_from_comparison,
)
from schemaprobe.extraction.utils import (
    SELF_NAMES,
    FunctionNode,
    call_name,
    compare_symbol,
    dotted_name,
    is_name,
    literal_value,
    local_nodes,
    raises,
    walk_local,
    yaml_safe,
)
from schemaprobe.source_model import SourceModel
from schemaprobe.types import ParamType

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARAMETERS = 20

ARRAY_METHODS = frozenset({"append", "extend", "insert", "pop", "remove", "sort", "reverse", "index", "count"})
MAP_METHODS = frozenset({"items", "keys", "values", "get", "setdefault", "update", "popitem"})
REGEX_FUNCTIONS = {"match", "fullmatch", "search"}
COERCIONS = {
    "int": ParamType.INTEGER,
    "float": ParamType.NUMBER,
    "str": ParamType.STRING,
    "bool": ParamType.BOOLEAN,
    "list": ParamType.ARRAY,
    "tuple": ParamType.ARRAY,
    "dict": ParamType.MAP,
}


def _default_value(node: ast.expr) -> Any:
    value = literal_value(node, default=None)
    if value is None and not (isinstance(node, ast.Constant) and node.value is None):
        return ast.unparse(node)
    return yaml_safe(value)


def binding_map(func: FunctionNode) -> dict[str, dict[str, Any]]:
    """Positions and defaults declared in the parameter list."""
    args = func.args
    positional = list(args.posonlyargs) + list(args.args)
    defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    binding: dict[str, dict[str, Any]] = {}
    position = 0
    for index, (arg, default) in enumerate(zip(positional, defaults)):
        if index == 0 and arg.arg in SELF_NAMES:
            continue
        entry: dict[str, Any] = {"position": position}
        position += 1
        if default is not None:
            entry["optional"] = True
            entry["default"] = _default_value(default)
        binding[arg.arg] = entry
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        entry = {}
        if default is not None:
            entry["optional"] = True
            entry["default"] = _default_value(default)
        else:
            entry["optional"] = False
        binding[arg.arg] = entry
    return binding


def _annotation_type(node: ast.expr) -> tuple[ParamType | None, str | None, bool]:
    """Return (type, class, may_be_none) for an annotation expression."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            node = ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return None, None, False
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        sides = [node.left, node.right]
        nullable = any(isinstance(s, ast.Constant) and s.value is None for s in sides)
        concrete = [s for s in sides if not (isinstance(s, ast.Constant) and s.value is None)]
        if len(concrete) == 1:
            param_type, class_name, inner_nullable = _annotation_type(concrete[0])
            return param_type, class_name, nullable or inner_nullable
        return None, None, nullable
    if isinstance(node, ast.Subscript):
        head = dotted_name(node.value) or ""
        head = head.rsplit(".", 1)[-1]
        if head == "Optional":
            param_type, class_name, _ = _annotation_type(node.slice)
            return param_type, class_name, True
        if head == "Union":
            elements = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
            nullable = any(isinstance(e, ast.Constant) and e.value is None for e in elements)
            concrete = [e for e in elements if not (isinstance(e, ast.Constant) and e.value is None)]
            if len(concrete) == 1:
                param_type, class_name, _ = _annotation_type(concrete[0])
                return param_type, class_name, nullable
            return None, None, nullable
        return BUILTIN_TYPES.get(head), None, False
    name = dotted_name(node)
    if name is None or name in ("Any", "typing.Any", "object"):
        return None, None, False
    head = name.rsplit(".", 1)[-1]
    if head in BUILTIN_TYPES:
        return BUILTIN_TYPES[head], None, False
    if head[:1].isupper():
        return ParamType.OBJECT, name, False
    return None, None, False


def annotation_map(func: FunctionNode) -> dict[str, dict[str, Any]]:
    """Types declared by annotations."""
    args = func.args
    annotated: dict[str, dict[str, Any]] = {}
    for arg in list(args.posonlyargs) + list(args.args) + list(args.kwonlyargs):
        if arg.annotation is None or arg.arg in SELF_NAMES:
            continue
        param_type, class_name, nullable = _annotation_type(arg.annotation)
        entry: dict[str, Any] = {}
        if param_type is not None:
            entry["type"] = param_type
        if class_name:
            entry["class_name"] = class_name
        if nullable:
            entry["optional"] = True
        if entry:
            annotated[arg.arg] = entry
    return annotated


def kwargs_map(func: FunctionNode) -> dict[str, dict[str, Any]]:
    """Named parameters read out of ``**kwargs``."""
    if func.args.kwarg is None:
        return {}
    kwarg = func.args.kwarg.arg
    found: dict[str, dict[str, Any]] = {}
    for node in local_nodes(func, (ast.Subscript, ast.Call)):
        if isinstance(node, ast.Subscript) and is_name(node.value, kwarg):
            key = node.slice
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                found.setdefault(key.value, {"optional": False})
        elif isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute):
            if is_name(node.func.value, kwarg) and node.func.attr in ("get", "pop", "setdefault"):
                if node.args and isinstance(node.args[0], ast.Constant) and isinstance(node.args[0].value, str):
                    entry = found.setdefault(node.args[0].value, {})
                    entry["optional"] = True
                    if len(node.args) > 1:
                        entry["default"] = _default_value(node.args[1])
    return found


class CodePatternAnalyzer:
    """Collect validation evidence for the parameters of one function."""

    def __init__(
        self,
        func: FunctionNode,
        model: SourceModel,
        names: list[str],
        max_parameters: int = DEFAULT_MAX_PARAMETERS,
    ):
        self.func = func
        self.model = model
        if len(names) > max_parameters:
            logger.warning(
                "[!] %s has %d parameters; analysing only the first %d.",
                func.name,
                len(names),
                max_parameters,
            )
        self.names = names[:max_parameters]
        self.evidence: dict[str, dict[str, Any]] = {}

    def _entry(self, name: str) -> dict[str, Any]:
        return self.evidence.setdefault(name, {})

    def _param_of(self, node: ast.AST) -> str | None:
        """Return the analysed parameter a node refers to, or None."""
        if isinstance(node, ast.Name) and node.id in self.names:
            return node.id
        kwarg = self.func.args.kwarg.arg if self.func.args.kwarg else None
        if kwarg is None:
            return None
        key = None
        if isinstance(node, ast.Subscript) and is_name(node.value, kwarg):
            key = node.slice
        elif (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and is_name(node.func.value, kwarg)
            and node.func.attr == "get"
            and node.args
        ):
            key = node.args[0]
        if isinstance(key, ast.Constant) and key.value in self.names:
            return key.value
        return None

    def _set_type(self, name: str, param_type: ParamType, class_name: str | None = None) -> None:
        entry = self._entry(name)
        if "type" in entry:
            return
        entry["type"] = param_type
        if class_name:
            entry["class_name"] = class_name

    def analyze(self) -> dict[str, dict[str, Any]]:
        self._type_checks()
        self._coercions()
        self._container_usage()
        self._guards()
        self._regex_checks()
        self._default_idioms()
        return {name: entry for name, entry in self.evidence.items() if entry}

    def _classify_type_node(self, node: ast.expr) -> tuple[ParamType | None, str | None]:
        if isinstance(node, ast.Tuple):
            kinds = {self._classify_type_node(e)[0] for e in node.elts}
            if kinds == {ParamType.INTEGER, ParamType.NUMBER}:
                return ParamType.NUMBER, None
            if len(kinds) == 1:
                return kinds.pop(), None
            return None, None
        name = dotted_name(node)
        if name is None:
            return None, None
        head = name.rsplit(".", 1)[-1]
        if head in BUILTIN_TYPES:
            return BUILTIN_TYPES[head], None
        if head[:1].isupper():
            return ParamType.OBJECT, name
        return None, None

    def _rejecting_tests(self) -> set[int]:
        """ids of expressions whose truth leads to a raise."""
        rejecting = set()
        for node in local_nodes(self.func, ast.If):
            if raises(node.body):
                for sub in ast.walk(node.test):
                    rejecting.add(id(sub))
        return rejecting

    def _type_checks(self) -> None:
        rejecting = self._rejecting_tests()
        negated = set()
        for node in walk_local(self.func):
            if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
                negated.add(id(node.operand))
        for call in local_nodes(self.func, ast.Call):
            name = call_name(call)
            if name == "isinstance" and len(call.args) == 2:
                param = self._param_of(call.args[0])
                if param is None:
                    continue
                # "if isinstance(x, T): raise" rejects T rather than requiring it.
                if id(call) in rejecting and id(call) not in negated:
                    continue
                param_type, class_name = self._classify_type_node(call.args[1])
                if param_type is not None:
                    self._set_type(param, param_type, class_name)
            elif name == "callable" and len(call.args) == 1:
                param = self._param_of(call.args[0])
                if param is not None:
                    self._set_type(param, ParamType.CODEREF)
        for compare in local_nodes(self.func, ast.Compare):
            # type(x) is list / type(x) == dict
            left = compare.left
            if (
                isinstance(left, ast.Call)
                and call_name(left) == "type"
                and len(left.args) == 1
                and len(compare.ops) == 1
                and isinstance(compare.ops[0], (ast.Is, ast.Eq))
            ):
                param = self._param_of(left.args[0])
                if param is not None:
                    param_type, class_name = self._classify_type_node(compare.comparators[0])
                    if param_type is not None:
                        self._set_type(param, param_type, class_name)

    def _coercions(self) -> None:
        for assign in local_nodes(self.func, ast.Assign):
            if len(assign.targets) != 1 or not isinstance(assign.value, ast.Call):
                continue
            param = self._param_of(assign.targets[0])
            call = assign.value
            if param is None or not call.args or self._param_of(call.args[0]) != param:
                continue
            name = call_name(call)
            if name is None:
                continue
            if name in COERCIONS:
                self._set_type(param, COERCIONS[name])
            elif name.rsplit(".", 1)[-1][:1].isupper():
                self._set_type(param, ParamType.OBJECT, name)

    def _container_usage(self) -> None:
        for node in walk_local(self.func):
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute):
                param = self._param_of(node.func.value)
                if param is None:
                    continue
                if node.func.attr in ARRAY_METHODS:
                    self._set_type(param, ParamType.ARRAY)
                elif node.func.attr in MAP_METHODS:
                    self._set_type(param, ParamType.MAP)
            elif isinstance(node, ast.Subscript) and isinstance(node.ctx, ast.Load):
                param = self._param_of(node.value)
                if param is None or not isinstance(node.slice, ast.Constant):
                    continue
                if isinstance(node.slice.value, str):
                    self._set_type(param, ParamType.MAP)
                elif isinstance(node.slice.value, int):
                    self._set_type(param, ParamType.ARRAY)

    def _bound(self, param: str, operator: str, value: Any, on_length: bool) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return
        entry = self._entry(param)
        if not on_length and "type" not in entry:
            entry["type"] = ParamType.INTEGER if isinstance(value, int) else ParamType.NUMBER
        integral = on_length or entry.get("type") is not ParamType.NUMBER
        bound = bound_from_comparison(operator, value, integral)
        if bound is None:
            return
        key, limit = bound
        entry.setdefault(key, limit)

    def _comparison(self, compare: ast.Compare, valid: bool) -> None:
        """Record bounds from ``compare``; ``valid`` says whether it holds for good input."""
        operands = [compare.left, *compare.comparators]
        for index, op in enumerate(compare.ops):
            symbol = compare_symbol(op)
            if symbol is None:
                continue
            left, right = operands[index], operands[index + 1]
            if not valid:
                symbol = INVERTED_OPERATOR[symbol]
            subject, other = left, right
            if not self._is_subject(left):
                subject, other = right, left
                symbol = FLIPPED_OPERATOR[symbol]
                if not self._is_subject(subject):
                    continue
            value = literal_value(self.model.resolve_constant(other), default=None)
            if value is None:
                continue
            if isinstance(subject, ast.Call):
                self._bound(self._param_of(subject.args[0]), symbol, value, on_length=True)
            else:
                self._bound(self._param_of(subject), symbol, value, on_length=False)

    def _is_subject(self, node: ast.expr) -> bool:
        if isinstance(node, ast.Call) and call_name(node) == "len" and len(node.args) == 1:
            return self._param_of(node.args[0]) is not None
        return self._param_of(node) is not None

    def _required_check(self, node: ast.expr) -> str | None:
        """Return the parameter a rejecting test declares mandatory."""
        if isinstance(node, ast.Compare) and len(node.ops) == 1 and isinstance(node.ops[0], ast.Is):
            if isinstance(node.comparators[0], ast.Constant) and node.comparators[0].value is None:
                return self._param_of(node.left)
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
            return self._param_of(node.operand)
        return None

    def _guards(self) -> None:
        for node in local_nodes(self.func, (ast.If, ast.Assert)):
            if isinstance(node, ast.If):
                if not raises(node.body):
                    continue
                test = node.test
                if isinstance(test, ast.UnaryOp) and isinstance(test.op, ast.Not) and isinstance(
                    test.operand, (ast.Compare, ast.BoolOp)
                ):
                    self._accepting(test.operand)
                    continue
                operands = test.values if isinstance(test, ast.BoolOp) and isinstance(test.op, ast.Or) else [test]
                for operand in operands:
                    required = self._required_check(operand)
                    if required is not None:
                        self._entry(required)["optional"] = False
                    elif isinstance(operand, ast.Compare):
                        self._comparison(operand, valid=False)
            else:
                self._accepting(node.test)

    def _accepting(self, test: ast.expr) -> None:
        """Handle an expression that is true for valid input."""
        operands = test.values if isinstance(test, ast.BoolOp) and isinstance(test.op, ast.And) else [test]
        for operand in operands:
            param = self._param_of(operand)
            if param is not None:
                self._entry(param)["optional"] = False
                continue
            if (
                isinstance(operand, ast.Compare)
                and len(operand.ops) == 1
                and isinstance(operand.ops[0], ast.IsNot)
                and isinstance(operand.comparators[0], ast.Constant)
                and operand.comparators[0].value is None
            ):
                param = self._param_of(operand.left)
                if param is not None:
                    self._entry(param)["optional"] = False
                continue
            if isinstance(operand, ast.Compare):
                self._comparison(operand, valid=True)

    def _pattern_text(self, node: ast.expr) -> str | None:
        node = self.model.resolve_constant(node)
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            return node.value
        if isinstance(node, ast.Call) and call_name(node) in ("re.compile", "compile") and node.args:
            return self._pattern_text(node.args[0])
        return None

    def _regex_checks(self) -> None:
        for call in local_nodes(self.func, ast.Call):
            name = call_name(call)
            if name is None:
                continue
            head, _, method = name.rpartition(".")
            if method not in REGEX_FUNCTIONS:
                continue
            if head == "re" and len(call.args) >= 2:
                pattern, subject = call.args[0], call.args[1]
            elif head and head != "re" and call.args:
                pattern, subject = ast.Name(id=head, ctx=ast.Load()), call.args[0]
            else:
                continue
            param = self._param_of(subject)
            text = self._pattern_text(pattern)
            if param is None or text is None:
                continue
            if method == "fullmatch" and not (text.startswith("^") and text.endswith("$")):
                text = f"^(?:{text})$"
            elif method == "match" and not text.startswith("^"):
                text = f"^{text}"
            entry = self._entry(param)
            entry.setdefault("matches", text)
            entry.setdefault("type", ParamType.STRING)

    def _default_idioms(self) -> None:
        for node in local_nodes(self.func, (ast.Assign, ast.If)):
            if isinstance(node, ast.Assign):
                if len(node.targets) != 1:
                    continue
                param = self._param_of(node.targets[0])
                if param is None:
                    continue
                value = node.value
                # x = x or default
                if (
                    isinstance(value, ast.BoolOp)
                    and isinstance(value.op, ast.Or)
                    and self._param_of(value.values[0]) == param
                ):
                    self._optional_with_default(param, value.values[-1])
                # x = default if x is None else x
                elif isinstance(value, ast.IfExp) and self._none_test(value.test) == param:
                    self._optional_with_default(param, value.body)
                elif isinstance(value, ast.IfExp) and self._not_none_test(value.test) == param:
                    self._optional_with_default(param, value.orelse)
            else:
                # if x is None: x = default
                param = self._none_test(node.test)
                if param is None or raises(node.body):
                    continue
                for stmt in node.body:
                    if (
                        isinstance(stmt, ast.Assign)
                        and len(stmt.targets) == 1
                        and self._param_of(stmt.targets[0]) == param
                    ):
                        self._optional_with_default(param, stmt.value)
                        break

    def _optional_with_default(self, param: str, default: ast.expr) -> None:
        entry = self._entry(param)
        entry.setdefault("optional", True)
        value = literal_value(default, default=None)
        if value is not None:
            entry.setdefault("default", yaml_safe(value))

    def _none_test(self, test: ast.expr) -> str | None:
        if (
            isinstance(test, ast.Compare)
            and len(test.ops) == 1
            and isinstance(test.ops[0], ast.Is)
            and isinstance(test.comparators[0], ast.Constant)
            and test.comparators[0].value is None
        ):
            return self._param_of(test.left)
        if isinstance(test, ast.UnaryOp) and isinstance(test.op, ast.Not):
            return self._param_of(test.operand)
        return None

    def _not_none_test(self, test: ast.expr) -> str | None:
        if (
            isinstance(test, ast.Compare)
            and len(test.ops) == 1
            and isinstance(test.ops[0], ast.IsNot)
            and isinstance(test.comparators[0], ast.Constant)
            and test.comparators[0].value is None
        ):
            return self._param_of(test.left)
        return self._param_of(test)


def code_map(
    func: FunctionNode,
    model: SourceModel,
    names: list[str],
    max_parameters: int = DEFAULT_MAX_PARAMETERS,
) -> dict[str, dict[str, Any]]:
    """Run every code-pattern pass for ``names`` in ``func``."""
    return CodePatternAnalyzer(func, model, names, max_parameters).analyze()
