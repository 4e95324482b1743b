"""Exception hierarchy for schemaprobe.

Setup and persistence problems are fatal and surface as one of these
exceptions. Evidence-gathering problems inside a single callable are not
raised; the extractor logs them and degrades that callable's evidence.
"""


class SchemaProbeError(Exception):
    """Base class for every error raised by schemaprobe."""


class SourceModelError(SchemaProbeError):
    """The source file is missing, unreadable or not valid Python."""


class CorpusError(SchemaProbeError):
    """A fuzz corpus could not be read from or written to disk."""


class MutationSetupError(SchemaProbeError):
    """The mutation workspace or the target's backup copy is unusable."""


class MutationApplyError(SchemaProbeError):
    """A single mutant could not be applied to the workspace file."""

    def __init__(self, mutant_id: str, reason: str):
        super().__init__(f"{mutant_id}: {reason}")
        self.mutant_id = mutant_id
        self.reason = reason
