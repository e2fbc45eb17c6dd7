"""
Linking and Annotating Processed Outputs

Links classified outputs to the sample inputs they were derived from, lets
each output inherit annotations from its input, and derives the data-typing
annotations of each output kind.

Key Responsibilities:
1. Linking:
   - Every output sample must be referenced in the inputs; inputs without
     outputs are fine (e.g. samples that failed QC)
2. Inheritance:
   - A processed file inherits the template properties of its FIRST input,
     except properties that obviously should not be inherited (entity
     identity, comments, and the data-typing properties that are always
     recomputed)
3. Data typing per output kind:
   - Aligned reads (SAMtools), optionally enriched with samtools stats
   - Quantified expression (STAR and Salmon, featureCounts)
   - Called variants (CNVkit, DeepVariant, Strelka2, Mutect2, FreeBayes)

Annotated tables are "partial" manifests that can be adjusted further, e.g.
to add comments or batch info.

Example Usage:
    >>> from nfmanifest.annotate import link_io, derive_annotations, annotate_processed
    >>> sample_io = link_io(inputs, outputs["Strelka2"])
    >>> meta = derive_annotations(sample_io, store)
    >>> manifest = annotate_processed(meta, workflow_link="https://nf-co.re/sarek/3.4.2")
"""

from typing import Any, Dict, List, Optional, Union
from pathlib import Path
import logging

import pandas as pd

from .annotations import copy_annotations
from .exceptions import UnknownOutputKindError, UnlinkedSampleError, UnrecognizedDataTypeError
from .find import find_nf_asset, find_parent
from .outputs import SOMATIC_DELIMITER
from .rules import Annotator, OutputKind, Workflow, annotation_rule, as_output_kind, template_name
from .schema import DEFAULT_SCHEMA, get_template_properties
from .store import AnnotationStore, FileIndex
from .utils import read_table

logger = logging.getLogger(__name__)

DATATYPE_ATTRS = ["Component", "fileFormat", "dataType", "dataSubtype"]
ENTITY_ATTRS = ["comments", "entityId", "progressReportNumber"]
IDENTITY_COLUMNS = ["entityId", "Filename", "workflow"]

COPY_NUMBER_FORMATS = ("cns", "cnn", "cnr", "bed", "pdf", "png")

DEFAULT_GENOMIC_REFERENCE = "GRCh38"

# samtools stats (as collected by MultiQC) -> manifest property, following the
# GDC AlignedReads model
SAMTOOLS_STATS_FIELDS = {
    "Sample": "specimenID",
    "insert_size_average": "averageInsertSize",
    "average_length": "averageReadLength",
    "average_quality": "averageBaseQuality",
    "pairs_on_different_chromosomes": "pairsOnDifferentChr",
    "reads_duplicated_percent": "readsDuplicatedPercent",
    "reads_mapped_percent": "readsMappedPercent",
    "raw_total_sequences": "totalReads",
}


def _with_attrs(df: pd.DataFrame, attrs: Dict[str, Any]) -> pd.DataFrame:
    df.attrs = dict(attrs)
    return df


# ============================================================================
# Linking
# ============================================================================

def link_io(inputs: pd.DataFrame, outputs: pd.DataFrame) -> pd.DataFrame:
    """
    Link outputs to their sample inputs.

    Parameters
    ----------
    inputs : pd.DataFrame
        Sample inputs from :func:`~nfmanifest.samplesheet.parse_samplesheet`
    outputs : pd.DataFrame
        One output kind's table from the output classifiers

    Returns
    -------
    pd.DataFrame
        ``outputs`` in original order with the ``input_id`` of each sample
        attached; ``attrs`` carried over from ``outputs``

    Raises
    ------
    UnlinkedSampleError
        If samples present in outputs are not referenced in inputs
    """
    unlinked = set(outputs["sample"]) - set(inputs["sample"])
    if unlinked:
        raise UnlinkedSampleError(unlinked)

    sample_io = outputs.merge(
        inputs[["sample", "input_id"]],
        on="sample",
        how="left",
        validate="many_to_one",
    )
    return _with_attrs(sample_io, outputs.attrs)


# ============================================================================
# Inheritance
# ============================================================================

def _flatten(value: Any) -> Any:
    if isinstance(value, (list, tuple)) and len(value) == 1:
        return value[0]
    return value


def inheritable_properties(template: str, schema: Union[str, Path] = DEFAULT_SCHEMA) -> List[str]:
    """Template properties that a processed file may inherit from its input."""
    props = get_template_properties(template, schema)
    excluded = set(DATATYPE_ATTRS + ENTITY_ATTRS)
    return [p for p in props if p not in excluded]


def derive_annotations(
    sample_io: pd.DataFrame,
    store: AnnotationStore,
    template: Optional[str] = None,
    schema: Union[str, Path] = DEFAULT_SCHEMA,
) -> pd.DataFrame:
    """
    Derive annotations for processed outputs from their inputs.

    A batch is expected to hold a single output kind. If an output has
    several inputs, annotations are inherited from the first. Properties
    missing on the input are simply absent on the result. Nothing is written
    to the store.

    Parameters
    ----------
    sample_io : pd.DataFrame
        Linked table from :func:`link_io`
    store : AnnotationStore
        Store holding the input annotations
    template : str, optional
        Template controlling which properties are inherited. Defaults to the
        rule table's template for the batch's output kind
    schema : Union[str, Path]
        JSON-LD data model

    Returns
    -------
    pd.DataFrame
        Columns ``entityId``, ``Filename``, ``workflow`` (and
        ``workflowLink`` when linked with one), followed by the inherited
        properties in order of first appearance
    """
    output_from = sample_io.attrs.get("output_from")
    if template is None:
        template = annotation_rule(output_from, "template")

    logger.info(f"Deriving annotations for {len(sample_io)} files from {output_from} with {template}")

    props = inheritable_properties(template, schema)

    identity = pd.DataFrame({
        "entityId": sample_io["output_id"].tolist(),
        "Filename": sample_io["output_name"].tolist(),
        "workflow": sample_io["workflow"].tolist(),
    })
    if "workflowLink" in sample_io.columns:
        identity["workflowLink"] = sample_io["workflowLink"].tolist()

    records = []
    for input_ids, output_id in zip(sample_io["input_id"], sample_io["output_id"]):
        record = {"entityId": output_id}
        if isinstance(input_ids, list) and input_ids:
            merged = copy_annotations(store, input_ids[0], output_id, select=props)[output_id]
            for key, value in merged.items():
                if key not in identity.columns:
                    record[key] = _flatten(value)
        records.append(record)

    annotations = pd.DataFrame(records, columns=None if records else ["entityId"])
    metadata = identity.merge(annotations, on="entityId", how="left")

    attrs = dict(sample_io.attrs)
    attrs["template"] = template
    return _with_attrs(metadata, attrs)


# ============================================================================
# Data Typing
# ============================================================================

def _start_annotation(metadata: pd.DataFrame, name: str):
    output_from = metadata.attrs.get("output_from")
    template = template_name(metadata.attrs.get("template") or annotation_rule(output_from, "template"))
    logger.info(f"Running {name} for {output_from}")
    format_as = annotation_rule(output_from, "format_as")
    meta = metadata.copy()
    meta["Component"] = template
    meta["fileFormat"] = [format_as(f) for f in meta["Filename"]]
    return _with_attrs(meta, metadata.attrs)


def annotate_aligned_reads(
    metadata: pd.DataFrame,
    workflow_link: str,
    genomic_reference: str = DEFAULT_GENOMIC_REFERENCE,
    file_index: Optional[FileIndex] = None,
) -> pd.DataFrame:
    """
    Annotate a manifest as aligned reads.

    For nf-rnaseq outputs, samtools stats collected by MultiQC are added when
    ``file_index`` is given and the stats file can be found; otherwise the
    stats fields are left unset.

    Parameters
    ----------
    metadata : pd.DataFrame
        Table from :func:`derive_annotations`
    workflow_link : str
        Link to the most specific part of the workflow generating these data
    genomic_reference : str
        Genomic reference (default: "GRCh38")
    file_index : FileIndex, optional
        Index used to locate the samtools stats asset
    """
    meta = _start_annotation(metadata, "annotate_aligned_reads")
    meta["dataType"] = "AlignedReads"
    meta["dataSubtype"] = "processed"
    meta["workflowLink"] = workflow_link
    meta["genomicReference"] = genomic_reference
    logger.info(f"  * {genomic_reference} used for genomicReference")

    if meta.attrs.get("workflow") == Workflow.RNASEQ.value:
        stats_file = None
        output_dir = meta.attrs.get("output_dir")
        if file_index is not None and output_dir is not None:
            top_level = find_parent(file_index, output_dir)
            if top_level is not None:
                stats_file = find_nf_asset(
                    file_index, top_level, asset="samtools_stats", workflow=Workflow.RNASEQ.value
                )
        meta = annotate_with_samtools_stats(meta, stats_file, file_index=file_index)

    return meta


def annotate_quantified_expression(
    metadata: pd.DataFrame,
    workflow_link: str,
) -> pd.DataFrame:
    """Annotate a manifest as processed expression data from star_salmon."""
    output_kind = as_output_kind(metadata.attrs.get("output_from"))
    if output_kind == OutputKind.STAR_SALMON:
        expression_unit = "TPM"
    elif output_kind == OutputKind.FEATURECOUNTS:
        expression_unit = "Counts"
    else:
        raise UnknownOutputKindError(output_kind.value)

    meta = _start_annotation(metadata, "annotate_quantified_expression")
    meta["dataType"] = "geneExpression"
    meta["dataSubtype"] = "processed"
    meta["expressionUnit"] = expression_unit
    meta["workflowLink"] = workflow_link
    logger.info(f"  * {expression_unit} used for expressionUnit")
    return meta


def assign_variant_data_type(name: str, file_format: str) -> str:
    """
    Data type of a variant calling output.

    Tumor-vs-normal outputs (``_vs_`` in the name) are somatic. ``maf`` are
    annotated variants produced downstream of variant calling.

    Raises
    ------
    UnrecognizedDataTypeError
        If the (name, format) pair is not covered by the rules
    """
    somatic = SOMATIC_DELIMITER in name
    if file_format == "vcf":
        return "SomaticVariants" if somatic else "GermlineVariants"
    if file_format == "maf":
        return "AnnotatedSomaticVariants" if somatic else "AnnotatedGermlineVariants"
    if file_format == "tbi":
        return "dataIndex"
    if file_format in COPY_NUMBER_FORMATS:
        return "CopyNumberVariants"
    raise UnrecognizedDataTypeError(name, file_format)


def annotate_called_variants(
    metadata: pd.DataFrame,
    workflow_link: str,
) -> pd.DataFrame:
    """
    Annotate a manifest as somatic or germline variant data.

    ``vcf`` and ``maf`` share a template with different data types; the data
    type is decided per file.

    Raises
    ------
    UnrecognizedDataTypeError
        If any file cannot be typed
    """
    meta = _start_annotation(metadata, "annotate_called_variants")
    meta["dataType"] = [
        assign_variant_data_type(name, fmt)
        for name, fmt in zip(meta["Filename"], meta["fileFormat"])
    ]
    meta["dataSubtype"] = "processed"
    meta["workflowLink"] = workflow_link
    return meta


def annotate_processed(
    metadata: pd.DataFrame,
    workflow_link: str,
    genomic_reference: str = DEFAULT_GENOMIC_REFERENCE,
    file_index: Optional[FileIndex] = None,
) -> pd.DataFrame:
    """Annotate with the annotator the rule table assigns to the batch's output kind."""
    annotate_as = annotation_rule(metadata.attrs.get("output_from"), "annotate_as")
    if annotate_as == Annotator.ALIGNED_READS:
        return annotate_aligned_reads(
            metadata, workflow_link, genomic_reference=genomic_reference, file_index=file_index
        )
    elif annotate_as == Annotator.QUANTIFIED_EXPRESSION:
        return annotate_quantified_expression(metadata, workflow_link)
    elif annotate_as == Annotator.CALLED_VARIANTS:
        return annotate_called_variants(metadata, workflow_link)
    raise ValueError(f"Unhandled annotator: {annotate_as}")


# ============================================================================
# Samtools Stats
# ============================================================================

def annotate_with_samtools_stats(
    meta: pd.DataFrame,
    samtools_stats_file: Optional[Union[str, Path]] = None,
    file_index: Optional[FileIndex] = None,
) -> pd.DataFrame:
    """
    Add a subset of samtools stats as annotations.

    See http://www.htslib.org/doc/samtools-stats.html; the selection follows
    the Genomic Data Commons (GDC) AlignedReads model. Rows are matched on
    ``specimenID``. When the stats file is not available, or the manifest has
    no ``specimenID``, ``meta`` is returned unchanged.

    Parameters
    ----------
    meta : pd.DataFrame
        Manifest to add stats to
    samtools_stats_file : Union[str, Path], optional
        Path or identifier of ``multiqc_samtools_stats.txt``
    file_index : FileIndex, optional
        Index used when ``samtools_stats_file`` is an identifier
    """
    if samtools_stats_file is None:
        logger.warning("  * SAMtools stats not identified, skipping...")
        return meta
    if "specimenID" not in meta.columns:
        logger.warning("  * No specimenID to match SAMtools stats on, skipping...")
        return meta

    try:
        sam_stats = read_table(samtools_stats_file, file_index=file_index, sep="\t")
    except (OSError, pd.errors.ParserError) as e:
        logger.warning(f"  * SAMtools stats could not be read, skipping... ({e})")
        return meta

    available = [c for c in SAMTOOLS_STATS_FIELDS if c in sam_stats.columns]
    if "Sample" not in available:
        logger.warning("  * SAMtools stats have no 'Sample' column, skipping...")
        return meta

    sam_stats = sam_stats[available].rename(columns=SAMTOOLS_STATS_FIELDS)
    sam_stats = sam_stats.drop_duplicates("specimenID").set_index("specimenID")

    result = meta.copy()
    keys = result["specimenID"].map(lambda v: v if isinstance(v, str) else None)
    for col in sam_stats.columns:
        result[col] = keys.map(pd.to_numeric(sam_stats[col], errors="coerce"))

    logger.info("  * SAMtools stats added")
    return _with_attrs(result, meta.attrs)
