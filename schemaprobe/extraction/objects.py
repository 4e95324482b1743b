"""
Decide whether a callable must be invoked on an object, and if so which
class to build and with what constructor arguments.

Resolution order, first match wins:

1. factories (constructors and anything that builds its own class);
2. singleton accessors;
3. instance methods, whose constructor is taken from the class itself or,
   without an own ``__init__``, from its first declared base;
4. an external class the function constructs or calls into.
"""

from __future__ import annotations

import ast
import builtins
import logging
import re

from schemaprobe.extraction.code_patterns import annotation_map, binding_map
from schemaprobe.extraction.utils import (
    FunctionNode,
    call_name,
    dotted_name,
    is_name,
    local_nodes,
    raises,
    walk_local,
)
from schemaprobe.source_model import ClassInfo, SourceModel
from schemaprobe.types import CallableUnit, ConstructorParams, ObjectRequirement

logger = logging.getLogger(__name__)

FACTORY_NAMES = frozenset({"__init__", "__new__", "new", "create", "build", "construct", "init"})
FACTORY_PREFIXES = ("create_", "make_", "build_", "new_", "from_")
SINGLETON_NAMES = re.compile(r"^_?(instance|get_instance|shared|shared_instance|singleton|default|get_default|current)$")
SINGLETON_STORE_RE = re.compile(r"^_+(instance|singleton|shared|default)\w*$|^_\w*instance$", re.I)
NON_CLASS_BASES = frozenset({"object", "ABC", "abc.ABC", "Generic", "Protocol", "typing.Generic", "typing.Protocol"})
_BUILTIN_NAMES = frozenset(dir(builtins))


def _is_factory_name(name: str) -> bool:
    return name in FACTORY_NAMES or name.startswith(FACTORY_PREFIXES)


def _is_exception_name(name: str) -> bool:
    head = name.rsplit(".", 1)[-1]
    return head.endswith(("Error", "Exception", "Warning")) or head in _BUILTIN_NAMES


class ObjectRequirementResolver:
    """Resolve the object requirement of callables in one source model."""

    def __init__(self, model: SourceModel):
        self.model = model

    def resolve(self, unit: CallableUnit) -> ObjectRequirement | None:
        func = unit.node
        if func is None:
            return None
        if self._is_factory(unit, func):
            logger.debug("%s is a factory; no object required", unit.qualname)
            return None
        if self._is_singleton(unit, func):
            logger.debug("%s is a singleton accessor; called on the class", unit.qualname)
            return None
        if self._is_instance_method(unit, func):
            return self._own_class_requirement(unit)
        return self._external_requirement(unit, func)

    def _is_factory(self, unit: CallableUnit, func: FunctionNode) -> bool:
        if _is_factory_name(unit.name):
            return True
        for ret in local_nodes(func, ast.Return):
            value = ret.value
            if not isinstance(value, ast.Call):
                continue
            target = value.func
            if is_name(target, "cls") or dotted_name(target) == "self.__class__":
                return True
            if isinstance(target, ast.Call) and call_name(target) == "type":
                return True
            name = dotted_name(target)
            if name and unit.class_name and name == unit.class_name:
                return True
            # return cls.from_dict(...) / return self.create_child(...)
            if isinstance(target, ast.Attribute) and _is_factory_name(target.attr):
                if isinstance(target.value, ast.Name) and target.value.id in ("cls", "self", unit.class_name):
                    return True
        return False

    def _is_singleton(self, unit: CallableUnit, func: FunctionNode) -> bool:
        if not SINGLETON_NAMES.match(unit.name):
            return False
        for node in walk_local(func):
            name = None
            if isinstance(node, ast.Attribute):
                name = node.attr
            elif isinstance(node, ast.Name):
                name = node.id
            if name and SINGLETON_STORE_RE.match(name):
                return True
        # if X is None: X = ...; return X
        for node in local_nodes(func, ast.If):
            test = node.test
            if (
                isinstance(test, ast.Compare)
                and isinstance(test.ops[0], ast.Is)
                and isinstance(test.comparators[0], ast.Constant)
                and test.comparators[0].value is None
                and any(isinstance(s, ast.Assign) for s in node.body)
            ):
                return True
        return False

    def _is_instance_method(self, unit: CallableUnit, func: FunctionNode) -> bool:
        if any(d.rsplit(".", 1)[-1] in ("staticmethod", "classmethod") for d in unit.decorators):
            return False
        args = list(func.args.posonlyargs) + list(func.args.args)
        if args and args[0].arg == "self":
            return True
        for node in walk_local(func):
            # self = args[0]
            if isinstance(node, ast.Assign) and any(is_name(t, "self") for t in node.targets):
                return True
            if isinstance(node, ast.Attribute) and is_name(node.value, "self"):
                return True
        return False

    def _own_class_requirement(self, unit: CallableUnit) -> ObjectRequirement:
        class_name = unit.class_name or unit.namespace
        info = self.model.class_of(unit.class_name)
        requirement = ObjectRequirement(
            class_name=class_name,
            kind="own_class",
            reason="instance method",
        )
        if info is None:
            requirement.constructor = ConstructorParams(status="unknown_external")
            return requirement
        if info.constructor is None:
            parent = self._first_base(info)
            if parent is not None:
                requirement.inherits_from = parent
                requirement.reason = f"instance method; constructor inherited from {parent}"
                requirement.constructor = self.constructor_params(parent)
                return requirement
        requirement.constructor = self.constructor_params(info.name)
        return requirement

    def _first_base(self, info: ClassInfo) -> str | None:
        for base in info.bases:
            if base not in NON_CLASS_BASES:
                return base
        return None

    def constructor_params(self, class_name: str) -> ConstructorParams:
        """Analyse the constructor of ``class_name`` if it is defined locally."""
        info = self.model.class_of(class_name)
        if info is None:
            return ConstructorParams(status="unknown_external")
        ctor = info.constructor
        if ctor is None:
            parent = self._first_base(info)
            if parent is not None and parent != class_name:
                return self.constructor_params(parent)
            return ConstructorParams()

        binding = binding_map(ctor)
        annotations = annotation_map(ctor)
        mandatory = self._none_guarded(ctor)
        result = ConstructorParams()
        for name, entry in binding.items():
            spec = {}
            if name in annotations and "type" in annotations[name]:
                spec["type"] = annotations[name]["type"].value
            if "position" in entry:
                spec["position"] = entry["position"]
            optional = bool(entry.get("optional")) and name not in mandatory
            spec["optional"] = optional
            if "default" in entry:
                result.defaults[name] = entry["default"]
            result.params[name] = spec
            (result.optional if optional else result.required).append(name)
        return result

    def _none_guarded(self, func: FunctionNode) -> set[str]:
        """Names the function raises on when they are None."""
        guarded = set()
        for node in local_nodes(func, ast.If):
            if not raises(node.body):
                continue
            test = node.test
            if (
                isinstance(test, ast.Compare)
                and isinstance(test.ops[0], ast.Is)
                and isinstance(test.left, ast.Name)
                and isinstance(test.comparators[0], ast.Constant)
                and test.comparators[0].value is None
            ):
                guarded.add(test.left.id)
            elif isinstance(test, ast.UnaryOp) and isinstance(test.op, ast.Not) and isinstance(test.operand, ast.Name):
                guarded.add(test.operand.id)
        return guarded

    def _external_requirement(self, unit: CallableUnit, func: FunctionNode) -> ObjectRequirement | None:
        for call in local_nodes(func, ast.Call):
            name = call_name(call)
            if name is None:
                continue
            if isinstance(call.func, ast.Attribute):
                owner = dotted_name(call.func.value)
                if owner and owner[:1].isupper() and owner != unit.class_name and not _is_exception_name(owner):
                    return self._external(owner, f"calls {name}")
            elif name[:1].isupper() and name != unit.class_name and not _is_exception_name(name):
                return self._external(name, f"constructs {name}")
        return None

    def _external(self, class_name: str, reason: str) -> ObjectRequirement:
        constructor = self.constructor_params(class_name)
        return ObjectRequirement(
            class_name=class_name,
            kind="external",
            reason=reason,
            constructor=constructor,
        )
