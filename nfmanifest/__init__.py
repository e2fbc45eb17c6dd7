"""
nfmanifest: Annotation Manifests for nf-core Workflow Outputs

nfmanifest maps the processed files of an nf-core workflow run (nf-rnaseq,
nf-sarek) back to the sample inputs they were derived from, lets each output
inherit the input's metadata, and adds data-typing annotations per pipeline
step. The result is one reviewable manifest per output kind.

Core functionality includes:
- Samplesheet parsing into sample inputs
- Output classification by workflow layout
- Input-output linking and annotation inheritance
- Per-kind data typing, with samtools stats enrichment for aligned reads
- Submitting reviewed manifests to the annotation store
"""

__version__ = "0.1.0"

from . import core
from . import outputs
from . import samplesheet
from . import utils
from .core import build_manifests, write_manifests
from .outputs import classify_outputs
from .samplesheet import parse_samplesheet

__all__ = [
    "core",
    "outputs",
    "samplesheet",
    "utils",
    "build_manifests",
    "write_manifests",
    "classify_outputs",
    "parse_samplesheet",
]
