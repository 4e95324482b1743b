"""Shared type definitions for schemaprobe.

Every record that crosses a module boundary lives here: the callable units
produced by the source model, the per-parameter and return specifications
built by the extractor, relationship and object-requirement records, and the
final frozen Schema. Keeping them in one module avoids circular imports
between the extraction, fuzzing and mutation layers.

Schemas are persisted as plain dicts (YAML on disk). ``to_dict`` emits only
fields that were actually determined, so "absent" keeps meaning "unknown"
after a save/load cycle.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any


class ParamType(str, Enum):
    """Closed set of value types a schema may declare."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    MAP = "map"
    OBJECT = "object"
    CODEREF = "coderef"
    UNKNOWN = "unknown"
    # Return-only members.
    SCALAR = "scalar"
    NONE = "none"

    @classmethod
    def coerce(cls, value: Any) -> ParamType | None:
        if value is None or isinstance(value, ParamType):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


GENERIC_TYPES = frozenset({ParamType.STRING, ParamType.SCALAR, ParamType.UNKNOWN})

_SPECIFICITY = {
    ParamType.UNKNOWN: 0,
    ParamType.NONE: 0,
    ParamType.SCALAR: 1,
    ParamType.STRING: 1,
    ParamType.NUMBER: 2,
}


def specificity(param_type: ParamType | None) -> int:
    """Rank a type by how much it says about a value; unknown ranks lowest."""
    if param_type is None:
        return -1
    return _SPECIFICITY.get(param_type, 3)


def is_more_specific(candidate: ParamType | None, current: ParamType | None) -> bool:
    """Return True if ``candidate`` may replace ``current`` in a merge."""
    return specificity(candidate) > specificity(current)


class CallableKind(str, Enum):
    PLAIN = "plain"
    MODIFIER = "modifier"


@dataclass(frozen=True)
class CallableUnit:
    """One analysable function or method, with the text the collectors read."""

    name: str
    body: str
    doc: str = ""
    kind: CallableKind = CallableKind.PLAIN
    namespace: str = "unknown"
    class_name: str | None = None
    lineno: int = 0
    end_lineno: int = 0
    decorators: tuple[str, ...] = ()
    modifier: str | None = None
    original_method: str | None = None
    node: ast.FunctionDef | ast.AsyncFunctionDef | None = field(
        default=None, compare=False, repr=False
    )

    @property
    def qualname(self) -> str:
        if self.class_name:
            return f"{self.class_name}.{self.name}"
        return self.name

    @property
    def is_private(self) -> bool:
        return self.name.startswith("_") and not (
            self.name.startswith("__") and self.name.endswith("__")
        )


class Confidence(IntEnum):
    """Ordered confidence levels attached to a schema's input and output."""

    NONE = 0
    VERY_LOW = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str | None) -> Confidence:
        if not label:
            return cls.NONE
        return cls[label.upper()]


# Field order used when a spec is written out; keeps schema files stable.
_PARAM_FIELD_ORDER = (
    "type",
    "class",
    "position",
    "optional",
    "default",
    "min",
    "max",
    "matches",
    "enum",
    "semantic",
    "format",
    "edge_cases",
    "note",
)


@dataclass
class ParameterSpec:
    """Everything known about one input parameter; None means undetermined."""

    name: str
    type: ParamType | None = None
    optional: bool | None = None
    position: int | None = None
    min: int | float | None = None
    max: int | float | None = None
    matches: str | None = None
    enum: list[Any] | None = None
    semantic: str | None = None
    note: str | None = None
    class_name: str | None = None
    default: Any = None
    format: str | None = None
    edge_cases: list[Any] | None = None

    def has_evidence(self) -> bool:
        """True if any field besides the name was determined."""
        return any(
            getattr(self, f.name) is not None for f in fields(self) if f.name != "name"
        )

    def to_dict(self) -> dict[str, Any]:
        raw = {
            "type": self.type.value if self.type is not None else None,
            "class": self.class_name,
            "position": self.position,
            "optional": self.optional,
            "default": self.default,
            "min": self.min,
            "max": self.max,
            "matches": self.matches,
            "enum": list(self.enum) if self.enum is not None else None,
            "semantic": self.semantic,
            "format": self.format,
            "edge_cases": list(self.edge_cases) if self.edge_cases is not None else None,
            "note": self.note,
        }
        return {key: raw[key] for key in _PARAM_FIELD_ORDER if raw[key] is not None}

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> ParameterSpec:
        return cls(
            name=name,
            type=ParamType.coerce(data.get("type")),
            optional=data.get("optional"),
            position=data.get("position"),
            min=data.get("min"),
            max=data.get("max"),
            matches=data.get("matches"),
            enum=data.get("enum"),
            semantic=data.get("semantic"),
            note=data.get("note"),
            class_name=data.get("class"),
            default=data.get("default"),
            format=data.get("format"),
            edge_cases=data.get("edge_cases"),
        )


class ErrorConvention(str, Enum):
    IMPLICIT_NONE = "implicit_none"
    SENTINEL = "sentinel"
    RAISES = "raises"


@dataclass
class ReturnSpec:
    """What a callable hands back and how it signals failure."""

    type: ParamType | None = None
    value: Any = None
    alt_value: Any = None
    class_name: str | None = None
    boolean_score: int = 0
    context_sensitive: bool = False
    error_convention: ErrorConvention | None = None
    lives: bool | None = None
    returns_self: bool = False

    def is_empty(self) -> bool:
        return self.type is None and self.value is None and self.class_name is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.type is not None:
            data["type"] = self.type.value
        if self.class_name:
            data["isa"] = self.class_name
        if self.value is not None:
            data["value"] = self.value
        if self.alt_value is not None:
            data["alt_value"] = self.alt_value
        if self.context_sensitive:
            data["context_sensitive"] = True
        if self.error_convention is not None:
            data["error_convention"] = self.error_convention.value
        if self.lives is not None:
            data["_LIVES"] = self.lives
        if self.returns_self:
            data["returns_self"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReturnSpec:
        data = data or {}
        convention = data.get("error_convention")
        return cls(
            type=ParamType.coerce(data.get("type")),
            value=data.get("value"),
            alt_value=data.get("alt_value"),
            class_name=data.get("isa"),
            context_sensitive=bool(data.get("context_sensitive", False)),
            error_convention=ErrorConvention(convention) if convention else None,
            lives=data.get("_LIVES"),
            returns_self=bool(data.get("returns_self", False)),
        )


class RelationshipKind(str, Enum):
    MUTUALLY_EXCLUSIVE = "mutually_exclusive"
    REQUIRED_GROUP = "required_group"
    CONDITIONAL_REQUIREMENT = "conditional_requirement"
    DEPENDENCY = "dependency"
    VALUE_CONSTRAINT = "value_constraint"
    VALUE_CONDITIONAL = "value_conditional"


@dataclass(frozen=True)
class Relationship:
    """A cross-parameter rule inferred from guard clauses.

    ``params`` is used by the symmetric kinds (mutually exclusive, required
    group). The directed kinds use ``if_param``/``then_param``; for a
    dependency ``if_param`` is the dependent and ``then_param`` what it
    requires.
    """

    kind: RelationshipKind
    params: tuple[str, ...] = ()
    if_param: str | None = None
    then_param: str | None = None
    operator: str | None = None
    value: Any = None
    description: str = field(default="", compare=False)

    @property
    def signature(self) -> tuple[str, ...]:
        """Canonical identity: kind plus sorted role-tagged parameter names."""
        if self.kind in (RelationshipKind.MUTUALLY_EXCLUSIVE, RelationshipKind.REQUIRED_GROUP):
            identities = [f"param:{name}" for name in self.params]
        else:
            identities = [f"if:{self.if_param}", f"then:{self.then_param}"]
            if self.operator is not None:
                identities.append(f"op:{self.operator}")
            if self.value is not None:
                identities.append(f"value:{self.value!r}")
        return (self.kind.value, *sorted(identities))

    def to_dict(self) -> dict[str, Any]:
        kind = self.kind
        data: dict[str, Any] = {"type": kind.value}
        if kind is RelationshipKind.MUTUALLY_EXCLUSIVE:
            data["params"] = list(self.params)
        elif kind is RelationshipKind.REQUIRED_GROUP:
            data["params"] = list(self.params)
            data["logic"] = "or"
        elif kind is RelationshipKind.CONDITIONAL_REQUIREMENT:
            data["if"] = self.if_param
            data["then_required"] = self.then_param
        elif kind is RelationshipKind.DEPENDENCY:
            data["param"] = self.if_param
            data["requires"] = self.then_param
        elif kind is RelationshipKind.VALUE_CONSTRAINT:
            data["if"] = self.if_param
            data["then"] = self.then_param
            data["operator"] = self.operator
            data["value"] = self.value
        else:
            data["if"] = self.if_param
            data["equals"] = self.value
            data["then_required"] = self.then_param
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relationship:
        kind = RelationshipKind(data["type"])
        description = data.get("description", "")
        if kind in (RelationshipKind.MUTUALLY_EXCLUSIVE, RelationshipKind.REQUIRED_GROUP):
            return cls(kind, params=tuple(data.get("params", ())), description=description)
        if kind is RelationshipKind.DEPENDENCY:
            return cls(
                kind, if_param=data.get("param"), then_param=data.get("requires"),
                description=description,
            )
        if kind is RelationshipKind.VALUE_CONSTRAINT:
            return cls(
                kind,
                if_param=data.get("if"),
                then_param=data.get("then"),
                operator=data.get("operator"),
                value=data.get("value"),
                description=description,
            )
        if kind is RelationshipKind.VALUE_CONDITIONAL:
            return cls(
                kind,
                if_param=data.get("if"),
                then_param=data.get("then_required"),
                value=data.get("equals"),
                description=description,
            )
        return cls(
            kind, if_param=data.get("if"), then_param=data.get("then_required"),
            description=description,
        )


def dedupe_relationships(relationships: list[Relationship]) -> list[Relationship]:
    """Drop relationships whose canonical signature was already seen."""
    seen: set[tuple[str, ...]] = set()
    unique = []
    for relationship in relationships:
        if relationship.signature in seen:
            continue
        seen.add(relationship.signature)
        unique.append(relationship)
    return unique


@dataclass
class ConstructorParams:
    """Constructor arguments needed to build the object a method runs on."""

    params: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    optional: list[str] = field(default_factory=list)
    defaults: dict[str, Any] = field(default_factory=dict)
    status: str = "local"

    def to_dict(self) -> dict[str, Any]:
        if self.status != "local":
            return {"status": self.status}
        data: dict[str, Any] = {"params": self.params}
        if self.required:
            data["required"] = list(self.required)
        if self.optional:
            data["optional"] = list(self.optional)
        if self.defaults:
            data["defaults"] = dict(self.defaults)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConstructorParams:
        return cls(
            params=data.get("params", {}),
            required=list(data.get("required", [])),
            optional=list(data.get("optional", [])),
            defaults=dict(data.get("defaults", {})),
            status=data.get("status", "local"),
        )


@dataclass
class ObjectRequirement:
    """An instance the callable must be invoked on."""

    class_name: str
    kind: str = "own_class"
    reason: str = ""
    constructor: ConstructorParams | None = None
    inherits_from: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "package": self.class_name,
            "type": self.kind,
            "reason": self.reason,
        }
        if self.constructor is not None:
            data["constructor"] = self.constructor.to_dict()
        if self.inherits_from:
            data["inherits_from"] = self.inherits_from
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ObjectRequirement | None:
        if not data:
            return None
        constructor = data.get("constructor")
        return cls(
            class_name=data["package"],
            kind=data.get("type", "own_class"),
            reason=data.get("reason", ""),
            constructor=ConstructorParams.from_dict(constructor) if constructor else None,
            inherits_from=data.get("inherits_from"),
        )


DEFAULT_TEST_CONFIG = {
    "test_nuls": 0,
    "test_none": 0,
    "test_empty": 1,
    "test_non_ascii": 0,
}


@dataclass(frozen=True)
class Schema:
    """The extracted, merged and scored description of one callable."""

    function: str
    module: str
    input: dict[str, ParameterSpec]
    output: ReturnSpec
    class_name: str | None = None
    kind: CallableKind = CallableKind.PLAIN
    relationships: tuple[Relationship, ...] = ()
    new: ObjectRequirement | None = None
    input_confidence: Confidence = Confidence.NONE
    output_confidence: Confidence = Confidence.NONE
    notes: tuple[str, ...] = ()
    accessor: dict[str, Any] | None = None
    analysis: dict[str, Any] = field(default_factory=dict)
    config: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_TEST_CONFIG))

    def ordered_params(self) -> list[ParameterSpec]:
        """Parameters by position, unpositioned ones last in name order."""
        return sorted(
            self.input.values(),
            key=lambda p: (p.position is None, p.position or 0, p.name),
        )

    def input_dict(self) -> dict[str, dict[str, Any]]:
        return {param.name: param.to_dict() for param in self.ordered_params()}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "function": self.function,
            "module": self.module,
        }
        if self.class_name:
            data["class"] = self.class_name
        data["config"] = dict(self.config)
        data["input"] = self.input_dict()
        data["output"] = self.output.to_dict()
        if self.relationships:
            data["relationships"] = [r.to_dict() for r in self.relationships]
        if self.new is not None:
            data["new"] = self.new.to_dict()
        if self.accessor:
            data["accessor"] = dict(self.accessor)
        if self.analysis:
            data["analysis"] = self.analysis
        data["_confidence"] = {
            "input": self.input_confidence.label,
            "output": self.output_confidence.label,
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        confidence = data.get("_confidence", {})
        return cls(
            function=data["function"],
            module=data.get("module", "unknown"),
            class_name=data.get("class"),
            input={
                name: ParameterSpec.from_dict(name, spec or {})
                for name, spec in (data.get("input") or {}).items()
            },
            output=ReturnSpec.from_dict(data.get("output")),
            relationships=tuple(
                Relationship.from_dict(r) for r in data.get("relationships", [])
            ),
            new=ObjectRequirement.from_dict(data.get("new")),
            input_confidence=Confidence.from_label(confidence.get("input")),
            output_confidence=Confidence.from_label(confidence.get("output")),
            accessor=data.get("accessor"),
            analysis=data.get("analysis", {}),
            config=data.get("config", dict(DEFAULT_TEST_CONFIG)),
        )


@dataclass
class CorpusEntry:
    """An input kept because it reached new branches (or was sampled)."""

    input: Any
    coverage: frozenset[str] = frozenset()


@dataclass(frozen=True)
class BugRecord:
    """A schema-valid input that made the target fail."""

    input: Any
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"input": self.input, "error": self.error}
