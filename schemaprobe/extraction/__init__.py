"""
The `schemaprobe.extraction` package turns a Python source file into one
schema per callable.

It exposes the `SchemaExtractor` driver together with the schema file
loader and the object-requirement resolver for callers that only need
part of the pipeline.
"""

from schemaprobe.extraction.extractor import SchemaExtractor, load_schema, render_schema
from schemaprobe.extraction.merger import SchemaMerger
from schemaprobe.extraction.objects import ObjectRequirementResolver

__all__ = [
    "SchemaExtractor",
    "SchemaMerger",
    "ObjectRequirementResolver",
    "load_schema",
    "render_schema",
]
