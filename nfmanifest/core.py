"""
Core Manifest Build Orchestration for nfmanifest

Coordinates the whole build from a samplesheet and a workflow output folder
to one annotated manifest per output kind:

1. Parse the samplesheet into sample inputs
2. Classify workflow outputs per output kind
3. Per output kind: link outputs to inputs, inherit annotations from the
   inputs, then apply the kind's annotator
4. Write manifests, the linkage table and a summary report

Output kinds are independent. With the default ``on_error="collect"`` policy a
failing kind is logged and recorded in ``ProcessedMeta.errors`` while the
remaining kinds are still built; ``on_error="raise"`` aborts on the first
failure.

Example Usage:
    >>> from nfmanifest.core import build_manifests
    >>> result = build_manifests(
    ...     inputs, outputs,
    ...     workflow_link="https://nf-co.re/rnaseq/3.12.0",
    ...     annotation_store=store,
    ... )
    >>> result.manifests["STAR and Salmon"].head()
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
from pathlib import Path
import logging

import pandas as pd

from . import utils
from .annotate import DEFAULT_GENOMIC_REFERENCE, annotate_processed, derive_annotations, link_io
from .config import PipelineConfig, get_default_config
from .outputs import classify_outputs
from .samplesheet import parse_samplesheet, strip_sample_suffix
from .schema import DEFAULT_SCHEMA
from .store import AnnotationStore, FileIndex

logger = logging.getLogger(__name__)


@dataclass
class ProcessedMeta:
    """
    Result of a manifest build.

    Attributes
    ----------
    manifests : Dict[str, pd.DataFrame]
        Annotated manifest per output kind, in build order
    sample_io : pd.DataFrame
        Linkage of every output to its sample and inputs, with the
        ``workflowLink`` used
    errors : Dict[str, str]
        Failure message per output kind that could not be built
    """
    manifests: Dict[str, pd.DataFrame] = field(default_factory=dict)
    sample_io: pd.DataFrame = field(default_factory=pd.DataFrame)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


def build_manifests(
    inputs: pd.DataFrame,
    outputs: Dict[str, pd.DataFrame],
    workflow_link: Optional[str],
    annotation_store: AnnotationStore,
    file_index: Optional[FileIndex] = None,
    schema: Union[str, Path] = DEFAULT_SCHEMA,
    genomic_reference: str = DEFAULT_GENOMIC_REFERENCE,
    add_samtools_stats: bool = True,
    on_error: str = "collect",
) -> ProcessedMeta:
    """
    Build annotated manifests for each output kind.

    Parameters
    ----------
    inputs : pd.DataFrame
        Sample inputs from :func:`~nfmanifest.samplesheet.parse_samplesheet`
    outputs : Dict[str, pd.DataFrame]
        Classified outputs per kind from
        :func:`~nfmanifest.outputs.classify_outputs`
    workflow_link : str, optional
        Link recorded as ``workflowLink`` on every manifest
    annotation_store : AnnotationStore
        Store holding the input annotations; not modified
    file_index : FileIndex, optional
        Index used to locate QC artifacts for enrichment
    schema : Union[str, Path]
        JSON-LD data model
    genomic_reference : str
        Genomic reference for aligned reads (default: "GRCh38")
    add_samtools_stats : bool
        Enrich nf-rnaseq aligned reads with samtools stats (default: True)
    on_error : str
        "collect" (default) or "raise"

    Returns
    -------
    ProcessedMeta
        Manifests per kind, linkage table and per-kind errors

    Raises
    ------
    ValueError
        If ``on_error`` is not recognized
    ManifestError
        With ``on_error="raise"``, the first per-kind failure
    """
    if on_error not in ("collect", "raise"):
        raise ValueError(f"on_error must be 'collect' or 'raise', got {on_error!r}")

    result = ProcessedMeta()
    linked = []

    for output_kind, output_table in outputs.items():
        logger.info(f"Building manifest for {output_kind} ({len(output_table)} files)")
        try:
            sample_io = link_io(inputs, output_table)
            sample_io["workflowLink"] = workflow_link
            linked.append(sample_io)

            meta = derive_annotations(sample_io, annotation_store, schema=schema)
            manifest = annotate_processed(
                meta,
                workflow_link,
                genomic_reference=genomic_reference,
                file_index=file_index if add_samtools_stats else None,
            )
            result.manifests[output_kind] = manifest
            logger.info(f"  ✓ {output_kind}: {len(manifest)} files annotated")

        except Exception as e:
            if on_error == "raise":
                raise
            logger.error(f"  ✗ {output_kind} failed: {e}")
            result.errors[output_kind] = str(e)

    if linked:
        result.sample_io = pd.concat(linked, ignore_index=True)

    return result


# ============================================================================
# Output
# ============================================================================

def manifest_filename(output_kind: str) -> str:
    """
    File name for an output kind's manifest.

    Examples
    --------
    >>> manifest_filename("STAR and Salmon")
    'star_and_salmon_manifest.csv'
    """
    return f"{output_kind.lower().replace(' ', '_')}_manifest.csv"


def _format_cell(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return value


def write_manifests(result: ProcessedMeta, output_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Write manifests as CSV (one per output kind) and the linkage table as TSV.

    Multi-valued annotations are written comma-separated.

    Returns
    -------
    Dict[str, Path]
        Written file per output kind, plus ``sample_io``
    """
    output_path = utils.create_output_directory(output_dir)
    files = {}

    for output_kind, manifest in result.manifests.items():
        path = output_path / manifest_filename(output_kind)
        manifest.apply(lambda col: col.map(_format_cell)).to_csv(path, index=False)
        files[output_kind] = path
        logger.info(f"Manifest written: {path}")

    if not result.sample_io.empty:
        path = output_path / "sample_io.tsv"
        result.sample_io.apply(lambda col: col.map(_format_cell)).to_csv(path, sep='\t', index=False)
        files["sample_io"] = path

    return files


# ============================================================================
# Full Build
# ============================================================================

def run_build(
    samplesheet: Union[str, Path, pd.DataFrame],
    output_dir_id: str,
    file_index: FileIndex,
    annotation_store: AnnotationStore,
    config_obj: Optional[PipelineConfig] = None,
) -> ProcessedMeta:
    """
    Parse, classify and build manifests as configured.

    Parameters
    ----------
    samplesheet : Union[str, Path, pd.DataFrame]
        Samplesheet path, identifier or table
    output_dir_id : str
        Id of the workflow output folder to classify
    file_index : FileIndex
        Fileview scoping the outputs
    annotation_store : AnnotationStore
        Store holding the input annotations
    config_obj : PipelineConfig, optional
        Build configuration (default: uses default configuration)
    """
    cfg = config_obj or get_default_config()

    logger.info("=" * 80)
    logger.info(f"nfmanifest build - {cfg.workflow}")
    logger.info("=" * 80)

    parse_fun = strip_sample_suffix(cfg.samplesheet.sample_suffix_pattern)
    inputs = parse_samplesheet(samplesheet, parse_fun=parse_fun, file_index=file_index)
    outputs = classify_outputs(output_dir_id, file_index, kinds=cfg.outputs, workflow=cfg.workflow)

    result = build_manifests(
        inputs,
        outputs,
        workflow_link=cfg.workflow_link,
        annotation_store=annotation_store,
        file_index=file_index,
        schema=cfg.annotation.schema,
        genomic_reference=cfg.annotation.genomic_reference,
        add_samtools_stats=cfg.annotation.add_samtools_stats,
        on_error=cfg.on_error,
    )

    logger.info("=" * 80)
    logger.info(f"Built {len(result.manifests)} manifests, {len(result.errors)} failed")
    logger.info("=" * 80)
    return result
