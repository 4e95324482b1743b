"""
The `schemaprobe.mutators` package contains the mutation-testing engine and
the library of source mutation operators it applies.

It exposes the `MutationEngine` together with the operator classes and the
`Mutant` record for callers that want to drive the operators directly.
"""

from schemaprobe.mutators.base import Mutant, MutationOperator
from schemaprobe.mutators.dedup import filter_mutants
from schemaprobe.mutators.engine import MutationEngine
from schemaprobe.mutators.operators import (
    DEFAULT_OPERATORS,
    BooleanNegationMutation,
    ConditionalInversionMutation,
    NumericBoundaryMutation,
    ReturnNoneMutation,
)

__all__ = [
    "Mutant",
    "MutationOperator",
    "MutationEngine",
    "filter_mutants",
    "DEFAULT_OPERATORS",
    "BooleanNegationMutation",
    "ConditionalInversionMutation",
    "NumericBoundaryMutation",
    "ReturnNoneMutation",
]
