"""
The schema extraction driver.

For each callable in a source file it gathers documentation, binding,
annotation, code, semantic and relationship evidence, merges it into
parameter specs, analyses return values and the object requirement, and
writes one YAML schema file per callable.

A failure inside one evidence source is logged and degrades only that
source for that callable. A missing or unparseable source file is fatal.
"""

from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Any, Callable

import yaml

from schemaprobe.errors import SchemaProbeError
from schemaprobe.extraction.analyzers import (
    analyze_complexity,
    analyze_return_meta,
    analyze_side_effects,
    detect_accessor,
)
from schemaprobe.extraction.code_patterns import (
    DEFAULT_MAX_PARAMETERS,
    annotation_map,
    binding_map,
    code_map,
    kwargs_map,
)
from schemaprobe.extraction.docstrings import parse_parameter_docs
from schemaprobe.extraction.merger import (
    SchemaMerger,
    input_confidence,
    output_confidence,
    review_notes,
)
from schemaprobe.extraction.objects import ObjectRequirementResolver
from schemaprobe.extraction.relationships import detect_relationships
from schemaprobe.extraction.returns import ReturnShapes, analyze_returns
from schemaprobe.extraction.semantic import detect_semantic_types
from schemaprobe.source_model import SourceModel
from schemaprobe.types import CallableUnit, ReturnSpec, Schema, is_more_specific

logger = logging.getLogger(__name__)

# Private names that are still worth a schema.
ALLOWED_PRIVATE = frozenset({"_new", "_init", "_build"})
ALLOWED_DUNDERS = frozenset({"__init__", "__new__", "__call__"})


def _apply_semantic(code: dict[str, dict[str, Any]], semantic: dict[str, dict[str, Any]]) -> None:
    """Fold semantic findings into the code map."""
    for name, found in semantic.items():
        entry = code.setdefault(name, {})
        for key, value in found.items():
            if key == "type":
                current = entry.get("type")
                if current is None or is_more_specific(value, current):
                    entry["type"] = value
                    if "class_name" in found:
                        entry["class_name"] = found["class_name"]
            elif key == "class_name":
                continue
            else:
                entry.setdefault(key, value)


class SchemaExtractor:
    """Extract schemas for the callables of one Python source file."""

    def __init__(
        self,
        input_file: Path | str,
        output_dir: Path | str = "schemas",
        include_private: bool = False,
        max_parameters: int = DEFAULT_MAX_PARAMETERS,
        lib_dir: Path | str | None = None,
    ):
        self.input_file = Path(input_file)
        self.output_dir = Path(output_dir)
        self.include_private = include_private
        self.max_parameters = max_parameters
        self.model = SourceModel.from_path(self.input_file, lib_dir=lib_dir)
        self.merger = SchemaMerger()
        self.resolver = ObjectRequirementResolver(self.model)

    def _wanted(self, unit: CallableUnit) -> bool:
        if unit.name in ALLOWED_DUNDERS or unit.name in ALLOWED_PRIVATE:
            return True
        if unit.name.startswith("__") and unit.name.endswith("__"):
            return False
        if unit.name.startswith("_"):
            return self.include_private
        return True

    def extract_all(self, write: bool = True) -> dict[str, Schema]:
        """Extract (and by default write) a schema for every wanted callable."""
        schemas: dict[str, Schema] = {}
        units = [u for u in self.model.callables() if self._wanted(u)]
        print(f"[*] Extracting schemas for {len(units)} callables in {self.input_file}")
        for unit in units:
            schema = self.extract(unit)
            schemas[unit.qualname] = schema
            if write:
                path = self.write_schema(schema)
                print(
                    f"    -> {unit.qualname}: input {schema.input_confidence.label}, "
                    f"output {schema.output_confidence.label} ({path})"
                )
        return schemas

    def _collect(self, label: str, unit: CallableUnit, collector: Callable[[], Any], fallback: Any) -> Any:
        try:
            return collector()
        except Exception as e:
            logger.warning("[!] %s evidence failed for %s: %s", label, unit.qualname, e)
            return fallback

    def extract(self, unit: CallableUnit) -> Schema:
        func = unit.node
        binding = self._collect("Parameter list", unit, lambda: binding_map(func), {})
        annotations = self._collect("Annotation", unit, lambda: annotation_map(func), {})
        named = self._collect("Keyword argument", unit, lambda: kwargs_map(func), {})
        documentation = self._collect(
            "Documentation", unit, lambda: parse_parameter_docs(unit.doc, unit.name), {}
        )
        if func.args.kwarg is None:
            # Without **kwargs the parameter list is authoritative.
            documentation = {k: v for k, v in documentation.items() if k in binding}

        names = list(binding) + [n for n in named if n not in binding]
        code = self._collect(
            "Code pattern", unit, lambda: code_map(func, self.model, names, self.max_parameters), {}
        )
        for name, entry in named.items():
            target = code.setdefault(name, {})
            for key, value in entry.items():
                target.setdefault(key, value)
        semantic = self._collect(
            "Semantic type", unit, lambda: detect_semantic_types(func, self.model, names), {}
        )
        _apply_semantic(code, semantic)
        relationships = self._collect(
            "Relationship", unit, lambda: detect_relationships(func, names), []
        )

        params = self.merger.merge(documentation, code, binding, annotations)
        output, shapes = self._collect(
            "Return value", unit, lambda: analyze_returns(unit, self.model), (ReturnSpec(), ReturnShapes())
        )
        new = self._collect("Object requirement", unit, lambda: self.resolver.resolve(unit), None)
        accessor = self._collect("Accessor", unit, lambda: detect_accessor(unit), None)
        analysis = {
            "complexity": self._collect("Complexity", unit, lambda: analyze_complexity(func), {}),
            "side_effects": self._collect("Side effect", unit, lambda: analyze_side_effects(func), {}),
            "return_meta": self._collect(
                "Return meta", unit, lambda: analyze_return_meta(output, shapes), {}
            ),
        }

        return Schema(
            function=unit.name,
            module=unit.namespace,
            class_name=unit.class_name,
            kind=unit.kind,
            input=params,
            output=output,
            relationships=tuple(relationships),
            new=new,
            input_confidence=input_confidence(params),
            output_confidence=output_confidence(output),
            notes=tuple(review_notes(params)),
            accessor=accessor,
            analysis={k: v for k, v in analysis.items() if v},
        )

    def schema_path(self, schema: Schema) -> Path:
        stem = f"{schema.class_name}.{schema.function}" if schema.class_name else schema.function
        return self.output_dir / f"{stem}.yml"

    def write_schema(self, schema: Schema) -> Path:
        """Write ``schema`` as YAML followed by confidence and review comments."""
        path = self.schema_path(schema)
        text = render_schema(schema, source=self.input_file.as_posix())
        tmp_path = path.with_name(f"{path.name}.tmp.{secrets.token_hex(4)}")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise SchemaProbeError(f"Could not write schema {path}: {e}") from e
        return path


def render_schema(schema: Schema, source: str | None = None) -> str:
    lines = []
    if source:
        lines.append(f"# Schema for {schema.function} extracted from {source}")
    lines.append("---")
    body = yaml.safe_dump(schema.to_dict(), sort_keys=False, default_flow_style=False, allow_unicode=True)
    lines.append(body.rstrip("\n"))
    lines.append(f"# Input confidence: {schema.input_confidence.label}")
    lines.append(f"# Output confidence: {schema.output_confidence.label}")
    if schema.notes:
        lines.append("# Notes:")
        lines.extend(f"#   {note}" for note in schema.notes)
    return "\n".join(lines) + "\n"


def load_schema(path: Path | str) -> Schema:
    """Read a schema file written by :meth:`SchemaExtractor.write_schema`."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SchemaProbeError(f"Could not load schema {path}: {e}") from e
    if not isinstance(data, dict) or "function" not in data:
        raise SchemaProbeError(f"{path} does not contain a schema")
    return Schema.from_dict(data)
