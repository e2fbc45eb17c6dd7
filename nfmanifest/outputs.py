"""
Output Classification

Maps files in a workflow's output folder to the samples (and, for variant
calling, the callers) that produced them, per output kind.

nf-rnaseq (https://nf-co.re/rnaseq/docs/output/#pipeline-overview):
- "STAR and Salmon" selects ``.sf`` files, typically considered the main
  output; the sample is the parent folder name
- "featureCounts" selects ``*.featureCounts.txt`` and
  ``*.featureCounts.txt.summary`` (omitting ``*_mqc.tsv`` custom content);
  the sample is the file name prefix
- "SAMtools" selects the ``.bam``/``.bai`` sorted and indexed by SAMtools;
  the sample is the file name prefix

nf-sarek (https://nf-co.re/sarek): processed outputs have been seen nested
first by sample or first by caller, as ``VariantCalling/<SAMPLE>/<CALLER>`` or
``VariantCalling/<CALLER>/<SAMPLE>``. The starting point is the variant
calling output folder (``VariantCalling`` or ``variant_calling``). Only
``vcf.gz`` (and ``.tbi``) are selected for the single-caller outputs; ``maf``
come from downstream nf-vcf2maf processing, not sarek itself.

Every non-empty result table is tagged in ``DataFrame.attrs`` with
``output_from`` (output kind), ``workflow`` and ``output_dir``.
"""

from typing import Dict, Iterable, Optional, Sequence, Union
import logging
import re

import pandas as pd

from .exceptions import InvalidIdentifierError, LayoutInferenceError
from .find import get_path
from .rules import (
    OutputKind, SOMATIC_CALLERS, WORKFLOW_OUTPUTS, Workflow,
    as_output_kind, as_workflow,
)
from .store import FileIndex, LikeFilter
from .utils import is_valid_identifier, path_extract

logger = logging.getLogger(__name__)

CALLER_PATTERN = re.compile(r"cnvkit|deepvariant|strelka|mutect|freebayes", re.IGNORECASE)
SOMATIC_DELIMITER = "_vs_"

# All rnaseq outputs come from the star_salmon route
RNASEQ_ROUTE = "STAR and Salmon"


# ============================================================================
# Path Filters
# ============================================================================

def rnaseq_filter(output_kind: OutputKind, path: str) -> LikeFilter:
    if output_kind == OutputKind.STAR_SALMON:
        return LikeFilter([f"{path}%.sf"])
    if output_kind == OutputKind.FEATURECOUNTS:
        return LikeFilter([
            f"{path}/featureCounts/%.txt",
            f"{path}/featureCounts/%.txt.summary",
        ])
    if output_kind == OutputKind.SAMTOOLS:
        return LikeFilter([f"{path}/%.bam", f"{path}/%.bai"])
    raise ValueError(f"{output_kind.value} is not an nf-rnaseq output")


def sarek_filter(output_kind: OutputKind, path: str) -> LikeFilter:
    # `like` matching is case-insensitive
    if output_kind == OutputKind.CNVKIT:
        return LikeFilter([f"{path}/%cnvkit%"])
    caller_term = {
        OutputKind.DEEPVARIANT: "deepvariant",
        OutputKind.STRELKA2: "strelka",
        OutputKind.MUTECT2: "mutect",
        OutputKind.FREEBAYES: "freebayes",
    }.get(output_kind)
    if caller_term is None:
        raise ValueError(f"{output_kind.value} is not an nf-sarek output")
    return LikeFilter([
        f"{path}/%{caller_term}%vcf.gz",
        f"{path}/%{caller_term}%vcf.gz.tbi",
    ])


# ============================================================================
# Sample Inference
# ============================================================================

def parent_folder_index(segments: Sequence[str]) -> int:
    """Index of the folder containing the file."""
    return len(segments) - 2


def caller_index(segments: Sequence[str]) -> int:
    """
    Index of the deepest folder segment naming a known variant caller.

    Raises
    ------
    LayoutInferenceError
        If no folder segment names a caller
    """
    for i in range(len(segments) - 2, -1, -1):
        if CALLER_PATTERN.search(segments[i]):
            return i
    raise LayoutInferenceError(
        f"Issue with inferring sample output organization for "
        f"'{'/'.join(segments)}'. Is this non-standard output?"
    )


def sarek_sample_index(segments: Sequence[str]) -> int:
    """
    Index of the sample folder in a sarek variant calling path.

    ``.../<SAMPLE>/<CALLER>/file`` when the caller folder directly holds the
    file, otherwise ``.../<CALLER>/<SAMPLE>/file``.
    """
    file_index = len(segments) - 1
    if file_index - caller_index(segments) == 1:
        return file_index - 2
    return file_index - 1


def tumor_sample(sample: str) -> str:
    """Tumor side of a ``<TUMOR>_vs_<NORMAL>`` sample name."""
    return sample.split(SOMATIC_DELIMITER, 1)[0]


def featurecounts_sample(output_name: str) -> str:
    return re.sub(r"\.(txt|featureCounts).*$", "", output_name)


def samtools_sample(output_name: str) -> str:
    return re.sub(r"\.markdup.*", "", output_name)


# ============================================================================
# Classifiers
# ============================================================================

def _tag(result: pd.DataFrame, output_kind: OutputKind, workflow: Workflow, output_dir: str) -> pd.DataFrame:
    invalid = [i for i in result["output_id"] if not is_valid_identifier(i)]
    if invalid:
        raise InvalidIdentifierError(
            f"Index returned invalid identifiers for {output_kind.value}: {invalid[:5]}"
        )
    result["output_kind"] = output_kind.value
    result.attrs["output_from"] = output_kind.value
    result.attrs["workflow"] = workflow.value
    result.attrs["output_dir"] = output_dir
    return result


def _selected(outputs: Optional[Iterable], workflow: Workflow) -> list:
    if outputs is None:
        return list(WORKFLOW_OUTPUTS[workflow])
    selected = [as_output_kind(o) for o in outputs]
    unsupported = [o.value for o in selected if o not in WORKFLOW_OUTPUTS[workflow]]
    if unsupported:
        raise ValueError(f"Outputs not produced by {workflow.value}: {unsupported}")
    return selected


def map_sample_output_rnaseq(
    output_dir: str,
    file_index: FileIndex,
    outputs: Optional[Iterable[Union[str, OutputKind]]] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Map samples to outputs from nf-rnaseq.

    Parameters
    ----------
    output_dir : str
        Id of the output folder (e.g. ``star_salmon``)
    file_index : FileIndex
        Fileview scoping the outputs
    outputs : Iterable, optional
        Output kinds to select; defaults to all nf-rnaseq outputs

    Returns
    -------
    Dict[str, pd.DataFrame]
        Per output kind, a table with columns ``path``, ``output_name``,
        ``output_id``, ``sample``, ``workflow``, ``output_kind``. Kinds
        with no files are omitted.

    Raises
    ------
    InvalidIdentifierError
        If the index returns an output id that is not a valid identifier
    """
    workflow = Workflow.RNASEQ
    path = get_path(file_index, output_dir)
    logger.info(f"Path: {path}")

    results = {}
    for output_kind in _selected(outputs, workflow):
        result = file_index.query(rnaseq_filter(output_kind, path))
        logger.info(f"Found {len(result)} files for {output_kind.value}")
        if result.empty:
            continue

        result = result.copy()
        if output_kind == OutputKind.STAR_SALMON:
            result["sample"] = path_extract(result["path"], parent_folder_index)
        elif output_kind == OutputKind.FEATURECOUNTS:
            result["sample"] = result["output_name"].map(featurecounts_sample)
        else:
            result["sample"] = result["output_name"].map(samtools_sample)

        result["workflow"] = RNASEQ_ROUTE
        results[output_kind.value] = _tag(result, output_kind, workflow, output_dir)

    return results


def map_sample_output_sarek(
    output_dir: str,
    file_index: FileIndex,
    outputs: Optional[Iterable[Union[str, OutputKind]]] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Map samples to outputs from nf-sarek.

    Typically only a subset of callers was run; selecting them explicitly
    avoids needless queries.

    Parameters
    ----------
    output_dir : str
        Id of the variant calling output folder
    file_index : FileIndex
        Fileview scoping the outputs
    outputs : Iterable, optional
        Callers to select; defaults to CNVkit, DeepVariant, Strelka2,
        Mutect2 and FreeBayes

    Returns
    -------
    Dict[str, pd.DataFrame]
        Per caller, a table with columns ``path``, ``output_name``,
        ``output_id``, ``caller``, ``workflow``, ``sample``, ``output_kind``

    Raises
    ------
    LayoutInferenceError
        If a matched path has no recognizable caller folder
    InvalidIdentifierError
        If the index returns an output id that is not a valid identifier
    """
    workflow = Workflow.SAREK
    path = get_path(file_index, output_dir)
    logger.info(f"Path: {path}")

    results = {}
    for output_kind in _selected(outputs, workflow):
        result = file_index.query(sarek_filter(output_kind, path))
        logger.info(f"Found {len(result)} files for {output_kind.value}")
        if result.empty:
            continue

        result = result.copy()
        result["caller"] = output_kind.value
        result["workflow"] = output_kind.value

        # For tumor-vs-normal somatic calling the sample is the tumor sample
        result["sample"] = path_extract(result["path"], sarek_sample_index)
        if output_kind in SOMATIC_CALLERS and result["sample"].str.contains(SOMATIC_DELIMITER).any():
            logger.info("  - Somatic data present.")
            result["sample"] = result["sample"].map(tumor_sample)

        results[output_kind.value] = _tag(result, output_kind, workflow, output_dir)

    return results


def classify_outputs(
    output_dir: str,
    file_index: FileIndex,
    kinds: Optional[Iterable[Union[str, OutputKind]]] = None,
    workflow: Union[str, Workflow] = Workflow.RNASEQ,
) -> Dict[str, pd.DataFrame]:
    """Classify outputs with the classifier for ``workflow``."""
    workflow = as_workflow(workflow)
    if workflow == Workflow.SAREK:
        return map_sample_output_sarek(output_dir, file_index, kinds)
    return map_sample_output_rnaseq(output_dir, file_index, kinds)
