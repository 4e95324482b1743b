"""
Schema-guided input generation and value mutation for the fuzzer.

Generation is biased toward boundaries: integers come from a small set of
interesting values part of the time, strings get boundary lengths, and a
spec's declared edge cases short-circuit generation entirely some of the
time. All randomness comes from the injected ``random.Random``.
"""

from __future__ import annotations

import copy
import random
import string
from typing import Any, Callable

from schemaprobe.validation import is_single_value_spec

INT_MIN = -(2**31)
INT_MAX = 2**31
NUM_RANGE = 1e9
MAX_STRING_LENGTH = 64
MAX_ARRAY_LENGTH = 4

EDGE_CASE_PROBABILITY = 0.4
BOUNDARY_PROBABILITY = 0.3
OPTIONAL_PROBABILITY = 0.5

STRING_ALPHABET = string.ascii_letters + string.digits + " \t\n\0"

TRICKY_STRINGS = [
    "",
    " ",
    "\0",
    "\n",
    "\t",
    "a" * 256,
    "null",
    "undefined",
    "'; DROP TABLE foo; --",
    "<script>alert(1)</script>",
]


class InputGenerator:
    """Generate random inputs for single-value or named input specs."""

    def __init__(
        self,
        rng: random.Random | None = None,
        edge_case_probability: float = EDGE_CASE_PROBABILITY,
        boundary_probability: float = BOUNDARY_PROBABILITY,
        optional_probability: float = OPTIONAL_PROBABILITY,
    ):
        self.rng = rng or random.Random()
        self.edge_case_probability = edge_case_probability
        self.boundary_probability = boundary_probability
        self.optional_probability = optional_probability

    def generate_input(self, spec: dict[str, Any]) -> Any:
        """Generate one input for a whole input spec."""
        if is_single_value_spec(spec):
            return self.generate(spec)
        return self.generate_named(spec)

    def generate_named(self, params: dict[str, Any]) -> dict[str, Any]:
        generated = {}
        for name, spec in params.items():
            spec = spec or {}
            if spec.get("optional") and self.rng.random() >= self.optional_probability:
                continue
            generated[name] = self.generate(spec)
        return generated

    def generate(self, spec: dict[str, Any]) -> Any:
        """Generate one value for a single-value spec."""
        edge_cases = spec.get("edge_cases")
        if edge_cases and self.rng.random() < self.edge_case_probability:
            return copy.deepcopy(self.rng.choice(edge_cases))
        if spec.get("enum"):
            return self.rng.choice(spec["enum"])
        generator = self._GENERATORS.get(spec.get("type") or "string", InputGenerator.rand_string)
        return generator(self, spec)

    def rand_int(self, spec: dict[str, Any]) -> int:
        low = int(spec["min"]) if spec.get("min") is not None else INT_MIN
        high = int(spec["max"]) if spec.get("max") is not None else INT_MAX
        if low > high:
            low, high = high, low
        if self.rng.random() < self.boundary_probability:
            return self.rng.choice([low, low + 1, 0, -1, 1, high - 1, high])
        return self.rng.randint(low, high)

    def rand_num(self, spec: dict[str, Any]) -> float:
        low = float(spec["min"]) if spec.get("min") is not None else -NUM_RANGE
        high = float(spec["max"]) if spec.get("max") is not None else NUM_RANGE
        if low > high:
            low, high = high, low
        if self.rng.random() < self.boundary_probability:
            return self.rng.choice([low, low + 1.0, 0.0, -1.0, 1.0, high - 1.0, high])
        return self.rng.uniform(low, high)

    def rand_string(self, spec: dict[str, Any]) -> str:
        low = max(0, int(spec["min"])) if spec.get("min") is not None else 0
        high = int(spec["max"]) if spec.get("max") is not None else MAX_STRING_LENGTH
        if low > high:
            low, high = high, low
        if self.rng.random() < self.boundary_probability:
            length = self.rng.choice([low, low + 1, high - 1, high])
        else:
            length = self.rng.randint(low, high)
        length = max(0, length)
        return "".join(self.rng.choice(STRING_ALPHABET) for _ in range(length))

    def rand_bool(self, spec: dict[str, Any]) -> bool:
        return self.rng.random() < 0.5

    def rand_array(self, spec: dict[str, Any]) -> list[Any]:
        items = spec.get("items") or {"type": "string"}
        return [self.generate(items) for _ in range(self.rng.randint(0, MAX_ARRAY_LENGTH))]

    def rand_map(self, spec: dict[str, Any]) -> dict[str, Any]:
        properties = spec.get("properties") or {}
        return {key: self.generate(value or {}) for key, value in properties.items()}

    def rand_none(self, spec: dict[str, Any]) -> None:
        return None

    _GENERATORS: dict[str, Callable[[InputGenerator, dict[str, Any]], Any]] = {
        "integer": rand_int,
        "number": rand_num,
        "string": rand_string,
        "scalar": rand_string,
        "unknown": rand_string,
        "boolean": rand_bool,
        "array": rand_array,
        "map": rand_map,
        "object": rand_none,
        "coderef": rand_none,
        "none": rand_none,
    }


class ValueMutator:
    """Apply one small random mutation to a previously kept input."""

    def __init__(self, generator: InputGenerator):
        self.generator = generator
        self.rng = generator.rng

    def mutate_input(self, value: Any, spec: dict[str, Any]) -> Any:
        """Mutate a whole input, picking the per-parameter spec for named inputs."""
        value = copy.deepcopy(value)
        if is_single_value_spec(spec):
            return self.mutate(value, spec)
        if not isinstance(value, dict) or not value:
            return self.generator.generate_input(spec)
        key = self.rng.choice(sorted(value))
        value[key] = self.mutate(value[key], spec.get(key) or {})
        return value

    def mutate(self, value: Any, spec: dict[str, Any] | None = None) -> Any:
        spec = spec or {}
        if isinstance(value, bool):
            return not value
        if isinstance(value, int):
            return self.mutate_int(value)
        if isinstance(value, float):
            return self.mutate_num(value)
        if isinstance(value, str):
            return self.mutate_string(value)
        if isinstance(value, list):
            return self.mutate_array(value, spec.get("items") or {})
        if isinstance(value, dict):
            return self.mutate_map(value, spec.get("properties") or {})
        if value is None:
            return self.generator.generate(spec)
        return value

    def mutate_int(self, n: int) -> int:
        operations = [
            lambda: n + 1,
            lambda: n - 1,
            lambda: n * 2,
            lambda: 1 if n == 0 else int(n / 2),
            lambda: -n,
            lambda: 0,
            lambda: 2**31 - 1,
            lambda: -(2**31),
        ]
        return self.rng.choice(operations)()

    def mutate_num(self, n: float) -> float:
        operations = [
            lambda: n + self.rng.uniform(0, 10),
            lambda: n - self.rng.uniform(0, 10),
            lambda: n * (1 + self.rng.random()),
            lambda: 0.0,
            lambda: -n,
        ]
        return self.rng.choice(operations)()

    def mutate_string(self, s: str) -> str:
        operations = [self._bitflip, self._insert, self._delete, self._truncate, self._duplicate, self._tricky]
        return self.rng.choice(operations)(s)

    def _bitflip(self, s: str) -> str:
        if not s:
            return self._insert(s)
        pos = self.rng.randrange(len(s))
        flipped = chr(ord(s[pos]) ^ (1 << self.rng.randrange(8)))
        return s[:pos] + flipped + s[pos + 1 :]

    def _insert(self, s: str) -> str:
        pos = self.rng.randint(0, len(s))
        return s[:pos] + chr(self.rng.randrange(256)) + s[pos:]

    def _delete(self, s: str) -> str:
        if not s:
            return s
        pos = self.rng.randrange(len(s))
        return s[:pos] + s[pos + 1 :]

    def _truncate(self, s: str) -> str:
        return s[: self.rng.randint(0, len(s))]

    def _duplicate(self, s: str) -> str:
        return s * 2

    def _tricky(self, s: str) -> str:
        return self.rng.choice(TRICKY_STRINGS)

    def mutate_array(self, items: list[Any], item_spec: dict[str, Any]) -> list[Any]:
        if not items:
            return [self.generator.generate(item_spec or {"type": "string"})]
        pos = self.rng.randrange(len(items))
        choice = self.rng.randrange(4)
        if choice == 0:
            items[pos] = self.mutate(items[pos], item_spec)
        elif choice == 1:
            items.insert(pos, copy.deepcopy(items[pos]))
        elif choice == 2:
            del items[pos]
        else:
            items = []
        return items

    def mutate_map(self, mapping: dict[str, Any], properties: dict[str, Any]) -> dict[str, Any]:
        if not mapping:
            return mapping
        key = self.rng.choice(sorted(mapping, key=str))
        mapping[key] = self.mutate(mapping[key], properties.get(key) or {})
        return mapping
