"""
Annotation Rules

Static lookup from a pipeline output kind to how its files are annotated:
the file-format inference function, the annotator to apply, and the metadata
template whose properties govern inheritance.

This table is the single place that maps pipeline-step identity to
biological semantics. Supporting a new pipeline step means adding one entry
to ``ANNOTATION_RULES``.

Caller/data type notes: DeepVariant is germline variant calling only, Mutect2
is somatic only, while FreeBayes and Strelka2 can be applied to both; see
https://raw.githubusercontent.com/nf-core/sarek/3.4.2//docs/images/sarek_workflow.png

Example Usage:
    >>> from nfmanifest.rules import annotation_rule
    >>> annotation_rule("Strelka2", "template")
    'bts:ProcessedVariantCallsTemplate'
    >>> annotation_rule("SAMtools", "format_as")("S1.markdup.sorted.bam")
    'bam'
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Union
import re

from .exceptions import UnknownOutputKindError


class Workflow(str, Enum):
    """Supported nf-core workflows."""
    RNASEQ = "nf-rnaseq"
    SAREK = "nf-sarek"


class OutputKind(str, Enum):
    """Pipeline steps whose files are classified and annotated as one group."""
    STAR_SALMON = "STAR and Salmon"
    FEATURECOUNTS = "featureCounts"
    SAMTOOLS = "SAMtools"
    CNVKIT = "CNVkit"
    DEEPVARIANT = "DeepVariant"
    STRELKA2 = "Strelka2"
    MUTECT2 = "Mutect2"
    FREEBAYES = "FreeBayes"


class Annotator(Enum):
    """Annotation functions an output kind can be dispatched to."""
    ALIGNED_READS = "annotate_aligned_reads"
    QUANTIFIED_EXPRESSION = "annotate_quantified_expression"
    CALLED_VARIANTS = "annotate_called_variants"


WORKFLOW_OUTPUTS = {
    Workflow.RNASEQ: (OutputKind.STAR_SALMON, OutputKind.FEATURECOUNTS, OutputKind.SAMTOOLS),
    Workflow.SAREK: (
        OutputKind.CNVKIT, OutputKind.DEEPVARIANT, OutputKind.STRELKA2,
        OutputKind.MUTECT2, OutputKind.FREEBAYES,
    ),
}

# Callers that can run tumor-vs-normal; their sample folders read <TUMOR>_vs_<NORMAL>
SOMATIC_CALLERS = (OutputKind.STRELKA2, OutputKind.FREEBAYES, OutputKind.MUTECT2)

TEMPLATE_EXPRESSION = "bts:ProcessedExpressionTemplate"
TEMPLATE_ALIGNED_READS = "bts:ProcessedAlignedReadsTemplate"
TEMPLATE_VARIANT_CALLS = "bts:ProcessedVariantCallsTemplate"


# ============================================================================
# File Format Inference
# ============================================================================

def format_salmon(filename: str) -> str:
    return "sf"


def format_featurecounts(filename: str) -> str:
    return "txt"


def format_last_three(filename: str) -> str:
    """Last three characters of the file name, e.g. ``bam``, ``bai``, ``cns``."""
    return filename[-3:]


def format_variant_calls(filename: str) -> str:
    """``tbi`` for tabix indexes, ``maf`` for (annotated) MAFs, otherwise ``vcf``."""
    if filename.endswith("tbi"):
        return "tbi"
    if re.search(r"\.maf(\.gz)?$", filename):
        return "maf"
    return "vcf"


# ============================================================================
# Rule Table
# ============================================================================

@dataclass(frozen=True)
class AnnotationRule:
    format_as: Callable[[str], str]
    annotate_as: Annotator
    template: str


ANNOTATION_RULES: Dict[OutputKind, AnnotationRule] = {
    OutputKind.STAR_SALMON: AnnotationRule(
        format_salmon, Annotator.QUANTIFIED_EXPRESSION, TEMPLATE_EXPRESSION),
    OutputKind.FEATURECOUNTS: AnnotationRule(
        format_featurecounts, Annotator.QUANTIFIED_EXPRESSION, TEMPLATE_EXPRESSION),
    OutputKind.SAMTOOLS: AnnotationRule(
        format_last_three, Annotator.ALIGNED_READS, TEMPLATE_ALIGNED_READS),
    OutputKind.CNVKIT: AnnotationRule(
        format_last_three, Annotator.CALLED_VARIANTS, TEMPLATE_VARIANT_CALLS),
    OutputKind.DEEPVARIANT: AnnotationRule(
        format_variant_calls, Annotator.CALLED_VARIANTS, TEMPLATE_VARIANT_CALLS),
    OutputKind.STRELKA2: AnnotationRule(
        format_variant_calls, Annotator.CALLED_VARIANTS, TEMPLATE_VARIANT_CALLS),
    OutputKind.MUTECT2: AnnotationRule(
        format_variant_calls, Annotator.CALLED_VARIANTS, TEMPLATE_VARIANT_CALLS),
    OutputKind.FREEBAYES: AnnotationRule(
        format_variant_calls, Annotator.CALLED_VARIANTS, TEMPLATE_VARIANT_CALLS),
}

RULE_FIELDS = ("format_as", "annotate_as", "template")


def as_output_kind(output_kind: Union[str, OutputKind]) -> OutputKind:
    """
    Coerce a label to an :class:`OutputKind`.

    Raises
    ------
    UnknownOutputKindError
        If the label is not a known output kind
    """
    try:
        return OutputKind(output_kind)
    except ValueError:
        raise UnknownOutputKindError(output_kind) from None


def as_workflow(workflow: Union[str, Workflow]) -> Workflow:
    try:
        return Workflow(workflow)
    except ValueError:
        raise ValueError(
            f"Unrecognized workflow: {workflow!r}. "
            f"Expected one of {[w.value for w in Workflow]}"
        ) from None


def annotation_rule(output_kind: Union[str, OutputKind], which: str):
    """
    Look up one field of the annotation rule for an output kind.

    Parameters
    ----------
    output_kind : Union[str, OutputKind]
        Output kind label, e.g. "Strelka2"
    which : str
        One of "format_as", "annotate_as", "template"

    Returns
    -------
    Callable, Annotator or str
        The format inference function, the annotator, or the template id

    Raises
    ------
    UnknownOutputKindError
        If no rule exists for ``output_kind``
    ValueError
        If ``which`` is not a rule field
    """
    if which not in RULE_FIELDS:
        raise ValueError(f"which must be one of {RULE_FIELDS}, got {which!r}")
    rule = ANNOTATION_RULES.get(as_output_kind(output_kind))
    if rule is None:
        raise UnknownOutputKindError(output_kind)
    return getattr(rule, which)


def template_name(template: str) -> str:
    """Template id without its ``bts:`` prefix, used as the manifest Component."""
    return re.sub(r"^bts:", "", template)
