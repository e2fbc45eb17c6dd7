"""
Typed failures raised by nfmanifest.

Structural problems (identifiers, output layout, sample linkage, data typing)
are hard stops: propagating bad provenance silently is worse than failing
loudly. Optional enrichment never raises; see
:func:`nfmanifest.annotate.annotate_with_samtools_stats`.
"""

from typing import Iterable, Optional


class ManifestError(Exception):
    """Base class for all nfmanifest errors."""


class InvalidIdentifierError(ManifestError, ValueError):
    """A string could not be parsed into a valid identifier."""


class AmbiguousIdentifierError(InvalidIdentifierError):
    """Identifiers that must be unique within a batch were duplicated."""


class SampleSheetParseError(ManifestError, ValueError):
    """Sample sheet could not be parsed into consistent input identifiers."""


class LayoutInferenceError(ManifestError, ValueError):
    """Sample/caller could not be inferred from an output path layout."""


class UnlinkedSampleError(ManifestError, ValueError):
    """Samples present in outputs are not referenced in inputs."""

    def __init__(self, samples: Iterable[str]):
        self.samples = sorted(set(samples))
        super().__init__(
            "Samples present in outputs are not referenced in inputs: "
            f"{', '.join(self.samples)}"
        )


class UnknownOutputKindError(ManifestError, LookupError):
    """No annotation rule is defined for an output kind."""

    def __init__(self, output_kind):
        self.output_kind = output_kind
        super().__init__(f"No annotation rule for output kind: {output_kind!r}")


class UnrecognizedDataTypeError(ManifestError, ValueError):
    """A variant output is not recognizable with the data type rules."""

    def __init__(self, filename: str, file_format: Optional[str]):
        self.filename = filename
        self.file_format = file_format
        super().__init__(
            f"Not recognizable with data assignment rules: {filename} "
            f"(format: {file_format})"
        )
