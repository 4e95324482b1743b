"""
This module parses a Python source file once and exposes it to the rest of
schemaprobe as a list of callable units plus a handful of lexical queries.

The collectors never re-read the file: they work on the `ast` nodes and the
source segments held here, and resolve module-level constants and local
classes through the model.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, TypeVar

from schemaprobe.errors import SourceModelError
from schemaprobe.types import CallableKind, CallableUnit

logger = logging.getLogger(__name__)

N = TypeVar("N", bound=ast.AST)

# Decorators that wrap another method and are named after it.
MODIFIER_DECORATORS = ("before", "after", "around")


@dataclass
class ClassInfo:
    """A class defined at module level, with its direct methods."""

    name: str
    bases: list[str]
    methods: dict[str, ast.FunctionDef | ast.AsyncFunctionDef] = field(default_factory=dict)
    node: ast.ClassDef | None = field(default=None, repr=False)

    @property
    def constructor(self) -> ast.FunctionDef | ast.AsyncFunctionDef | None:
        return self.methods.get("__init__")


def namespace_for(path: Path, lib_dir: Path | None = None) -> str:
    """Derive the dotted module name of ``path`` relative to ``lib_dir``."""
    path = Path(path)
    if lib_dir is not None:
        try:
            relative = path.resolve().relative_to(Path(lib_dir).resolve())
        except ValueError:
            relative = Path(path.name)
    else:
        relative = Path(path.name)
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts) or "unknown"


def decorator_name(node: ast.expr) -> str:
    """Return the dotted name of a decorator, without call arguments."""
    if isinstance(node, ast.Call):
        node = node.func
    return ast.unparse(node)


class SourceModel:
    """A parsed Python module."""

    def __init__(self, source: str, path: Path | str | None = None, namespace: str = "unknown"):
        self.source = source
        self.path = Path(path) if path is not None else None
        self.namespace = namespace
        try:
            self.tree = ast.parse(source, filename=str(path or "<source>"))
        except SyntaxError as e:
            raise SourceModelError(f"Could not parse {path or '<source>'}: {e}") from e
        self.lines = source.splitlines()
        self.classes = self._collect_classes()
        self.constants = self._collect_constants()

    @classmethod
    def from_path(cls, path: Path | str, lib_dir: Path | str | None = None) -> SourceModel:
        """Read and parse ``path``; a missing or unreadable file is fatal."""
        path = Path(path)
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceModelError(f"Could not read {path}: {e}") from e
        return cls(
            source,
            path=path,
            namespace=namespace_for(path, Path(lib_dir) if lib_dir is not None else None),
        )

    @classmethod
    def from_source(cls, source: str, namespace: str = "unknown") -> SourceModel:
        return cls(source, namespace=namespace)

    def _collect_classes(self) -> dict[str, ClassInfo]:
        classes = {}
        for node in self.tree.body:
            if not isinstance(node, ast.ClassDef):
                continue
            info = ClassInfo(
                name=node.name,
                bases=[ast.unparse(base) for base in node.bases],
                node=node,
            )
            for item in node.body:
                if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    info.methods[item.name] = item
            classes[node.name] = info
        return classes

    def _collect_constants(self) -> dict[str, ast.expr]:
        """Map module-level ``NAME = <expr>`` assignments to their value node."""
        constants: dict[str, ast.expr] = {}
        for node in self.tree.body:
            if isinstance(node, ast.Assign):
                for target in node.targets:
                    if isinstance(target, ast.Name):
                        constants[target.id] = node.value
            elif isinstance(node, ast.AnnAssign) and node.value is not None:
                if isinstance(node.target, ast.Name):
                    constants[node.target.id] = node.value
        return constants

    def resolve_constant(self, node: ast.expr) -> ast.expr:
        """Follow a bare name to its module-level value, if it has one."""
        if isinstance(node, ast.Name) and node.id in self.constants:
            return self.constants[node.id]
        return node

    def literal(self, node: ast.expr) -> Any:
        """Evaluate a literal (after constant resolution); raise ValueError otherwise."""
        return ast.literal_eval(self.resolve_constant(node))

    def segment(self, node: ast.AST) -> str:
        text = ast.get_source_segment(self.source, node)
        return text if text is not None else ast.unparse(node)

    def find(self, node_type: type[N], root: ast.AST | None = None) -> list[N]:
        """Return every node of ``node_type`` under ``root``, in source order."""
        found = [n for n in ast.walk(root or self.tree) if isinstance(n, node_type)]
        found.sort(key=lambda n: (getattr(n, "lineno", 0), getattr(n, "col_offset", 0)))
        return found

    def find_first(self, node_type: type[N], root: ast.AST | None = None) -> N | None:
        found = self.find(node_type, root)
        return found[0] if found else None

    def class_of(self, name: str | None) -> ClassInfo | None:
        if name is None:
            return None
        return self.classes.get(name)

    def _leading_comments(self, first_line: int) -> list[str]:
        """Collect the contiguous ``#`` comment block right above ``first_line``."""
        comments: list[str] = []
        index = first_line - 2
        while index >= 0:
            stripped = self.lines[index].strip()
            if not stripped.startswith("#"):
                break
            comments.append(stripped.lstrip("#").strip())
            index -= 1
        comments.reverse()
        return comments

    def _make_unit(
        self, node: ast.FunctionDef | ast.AsyncFunctionDef, class_name: str | None
    ) -> CallableUnit:
        decorators = tuple(decorator_name(d) for d in node.decorator_list)
        first_line = min([node.lineno] + [d.lineno for d in node.decorator_list])
        doc_parts = []
        docstring = ast.get_docstring(node)
        if docstring:
            doc_parts.append(docstring)
        comments = self._leading_comments(first_line)
        if comments:
            doc_parts.append("\n".join(comments))

        name = node.name
        kind = CallableKind.PLAIN
        modifier = original = None
        for dec in node.decorator_list:
            dec_name = decorator_name(dec).rsplit(".", 1)[-1]
            if dec_name in MODIFIER_DECORATORS and isinstance(dec, ast.Call) and dec.args:
                target = dec.args[0]
                if isinstance(target, ast.Constant) and isinstance(target.value, str):
                    modifier, original = dec_name, target.value
                    name = f"{modifier}_{original}"
                    kind = CallableKind.MODIFIER
                    break

        return CallableUnit(
            name=name,
            body=self.segment(node),
            doc="\n\n".join(doc_parts),
            kind=kind,
            namespace=self.namespace,
            class_name=class_name,
            lineno=node.lineno,
            end_lineno=node.end_lineno or node.lineno,
            decorators=decorators,
            modifier=modifier,
            original_method=original,
            node=node,
        )

    def callables(self) -> list[CallableUnit]:
        """Return module functions and class methods in source order."""
        units = []
        for node in self.tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                units.append(self._make_unit(node, None))
            elif isinstance(node, ast.ClassDef):
                for item in node.body:
                    if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                        units.append(self._make_unit(item, node.name))
        logger.debug("Found %d callables in %s", len(units), self.path or "<source>")
        return units

    def iter_calls(self, root: ast.AST) -> Iterator[ast.Call]:
        yield from self.find(ast.Call, root)
