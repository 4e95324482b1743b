"""Plan which kinds of tests a schema calls for."""

from __future__ import annotations

from typing import Any

from schemaprobe.types import ParamType, Schema

ACCESSOR_PLANS = {
    "getter": "getter_test",
    "setter": "setter_test",
    "getset": "getset_test",
}


class TestStrategy:
    """Turn a set of schemas into per-callable test plans."""

    __test__ = False  # not a pytest test class

    def __init__(self, schemas: dict[str, Schema]):
        self.schemas = schemas
        self.plans: dict[str, dict[str, bool]] = {}

    def generate_plan(self) -> dict[str, dict[str, bool]]:
        for name in sorted(self.schemas):
            self.plans[name] = plan_for_schema(self.schemas[name])
        return self.plans


def plan_for_schema(schema: Schema) -> dict[str, Any]:
    plan: dict[str, Any] = {}
    output = schema.output
    if output.context_sensitive:
        plan["context_tests"] = True
    if schema.accessor:
        key = ACCESSOR_PLANS.get(schema.accessor.get("type", ""))
        if key:
            plan[key] = True
    if output.type is ParamType.NONE and not schema.accessor:
        plan["void_context_test"] = True
    if output.error_convention is not None or (output.value is not None and output.alt_value is not None):
        plan["error_handling_test"] = True
    if any(p.min is not None or p.max is not None for p in schema.input.values()):
        plan["boundary_tests"] = True
    if output.returns_self:
        plan["chaining_test"] = True
    if not plan:
        plan["basic_test"] = True
    return plan
