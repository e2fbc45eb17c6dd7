"""
Shared fixtures: fileviews laid out like nf-rnaseq and nf-sarek results, a
small JSON-LD data model, and input annotations.
"""

import json
import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from nfmanifest.store import FileviewIndex, InMemoryAnnotationStore


FILEVIEW_COLUMNS = ["id", "name", "type", "parentId", "path", "local_path"]


def _fileview(rows):
    return pd.DataFrame(rows, columns=FILEVIEW_COLUMNS)


# ============================================================================
# Data Model
# ============================================================================

def _template(template_id, props):
    return {
        "@id": template_id,
        "@type": "rdfs:Class",
        "rdfs:label": template_id.split(":", 1)[1],
        "sms:requiresDependency": [{"@id": f"bts:{p}"} for p in props],
    }


SCHEMA_GRAPH = [
    _template("bts:ProcessedAlignedReadsTemplate", [
        "Component", "Filename", "specimenID", "individualID", "assay",
        "fileFormat", "dataType", "dataSubtype", "comments", "entityId",
        "genomicReference",
    ]),
    _template("bts:ProcessedExpressionTemplate", [
        "Component", "Filename", "specimenID", "individualID", "assay", "tissue",
        "fileFormat", "dataType", "expressionUnit", "comments", "entityId",
    ]),
    _template("bts:ProcessedVariantCallsTemplate", [
        "Component", "Filename", "specimenID", "individualID", "assay",
        "fileFormat", "dataType", "comments", "progressReportNumber",
    ]),
    {"@id": "bts:specimenID", "@type": "rdf:Property", "rdfs:label": "specimenID"},
    {"@id": "bts:individualID", "@type": "rdf:Property", "rdfs:label": "individualID"},
]


@pytest.fixture
def schema_file(tmp_path):
    """JSON-LD data model with the three processed-data templates."""
    path = tmp_path / "model.jsonld"
    path.write_text(json.dumps({"@context": {}, "@graph": SCHEMA_GRAPH}))
    return str(path)


# ============================================================================
# nf-rnaseq Layout
# ============================================================================

RNASEQ_ROWS = [
    ("syn1", "Project", "project", None, "Project", None),
    ("syn2", "results", "folder", "syn1", "Project/results", None),
    ("syn3", "star_salmon", "folder", "syn2", "Project/results/star_salmon", None),
    ("syn4", "S1", "folder", "syn3", "Project/results/star_salmon/S1", None),
    ("syn5", "quant.sf", "file", "syn4", "Project/results/star_salmon/S1/quant.sf", None),
    ("syn6", "S2", "folder", "syn3", "Project/results/star_salmon/S2", None),
    ("syn7", "quant.sf", "file", "syn6", "Project/results/star_salmon/S2/quant.sf", None),
    ("syn8", "featureCounts", "folder", "syn3", "Project/results/star_salmon/featureCounts", None),
    ("syn9", "S1.featureCounts.txt", "file", "syn8",
     "Project/results/star_salmon/featureCounts/S1.featureCounts.txt", None),
    ("syn10", "S1.featureCounts.txt.summary", "file", "syn8",
     "Project/results/star_salmon/featureCounts/S1.featureCounts.txt.summary", None),
    ("syn11", "S1_mqc.tsv", "file", "syn8",
     "Project/results/star_salmon/featureCounts/S1_mqc.tsv", None),
    ("syn12", "S1.markdup.sorted.bam", "file", "syn3",
     "Project/results/star_salmon/S1.markdup.sorted.bam", None),
    ("syn13", "S1.markdup.sorted.bam.bai", "file", "syn3",
     "Project/results/star_salmon/S1.markdup.sorted.bam.bai", None),
    ("syn14", "S2.markdup.sorted.bam", "file", "syn3",
     "Project/results/star_salmon/S2.markdup.sorted.bam", None),
    ("syn15", "multiqc", "folder", "syn2", "Project/results/multiqc", None),
    ("syn16", "star_salmon", "folder", "syn15", "Project/results/multiqc/star_salmon", None),
    ("syn17", "multiqc_data", "folder", "syn16", "Project/results/multiqc/star_salmon/multiqc_data", None),
    ("syn18", "multiqc_samtools_stats.txt", "file", "syn17",
     "Project/results/multiqc/star_salmon/multiqc_data/multiqc_samtools_stats.txt",
     "multiqc_samtools_stats.txt"),
    ("syn19", "pipeline_info", "folder", "syn2", "Project/results/pipeline_info", None),
    ("syn20", "software_versions.yml", "file", "syn19",
     "Project/results/pipeline_info/software_versions.yml", "software_versions.yml"),
    ("syn21", "Raw Data", "folder", "syn1", "Project/Raw Data", None),
    ("syn101", "S1_L1_R1.fastq.gz", "file", "syn21", "Project/Raw Data/S1_L1_R1.fastq.gz", None),
    ("syn102", "S1_L1_R2.fastq.gz", "file", "syn21", "Project/Raw Data/S1_L1_R2.fastq.gz", None),
    ("syn103", "S1_L2_R1.fastq.gz", "file", "syn21", "Project/Raw Data/S1_L2_R1.fastq.gz", None),
    ("syn104", "S1_L2_R2.fastq.gz", "file", "syn21", "Project/Raw Data/S1_L2_R2.fastq.gz", None),
    ("syn105", "S2_R1.fastq.gz", "file", "syn21", "Project/Raw Data/S2_R1.fastq.gz", None),
    ("syn106", "S2_R2.fastq.gz", "file", "syn21", "Project/Raw Data/S2_R2.fastq.gz", None),
]

SAMTOOLS_STATS = (
    "Sample\traw_total_sequences\taverage_length\treads_mapped_percent\tinsert_size_standard_deviation\n"
    "S1\t1000\t100.5\t98.2\t12.0\n"
    "S2\t2000\t101.0\t97.0\t11.0\n"
)

SOFTWARE_VERSIONS = (
    "STAR_ALIGN:\n"
    "  star: 2.7.10a\n"
    "Workflow:\n"
    "  Nextflow: 23.04.1\n"
    "  nf-core/rnaseq: 3.12.0\n"
)


@pytest.fixture
def rnaseq_fileview():
    return _fileview(RNASEQ_ROWS)


@pytest.fixture
def rnaseq_index(rnaseq_fileview, tmp_path):
    """nf-rnaseq results with local copies of the MultiQC and version assets."""
    (tmp_path / "multiqc_samtools_stats.txt").write_text(SAMTOOLS_STATS)
    (tmp_path / "software_versions.yml").write_text(SOFTWARE_VERSIONS)
    return FileviewIndex(rnaseq_fileview, base_dir=tmp_path)


@pytest.fixture
def rnaseq_samplesheet():
    """Two lanes of S1 (as S1_T1/S1_T2) and one of S2, referenced by URI."""
    return pd.DataFrame({
        "sample": ["S1_T1", "S1_T2", "S2"],
        "fastq_1": ["synapse://syn101", "synapse://syn103", "synapse://syn105"],
        "fastq_2": ["synapse://syn102", "synapse://syn104", "synapse://syn106"],
        "strandedness": ["auto", "auto", "auto"],
    })


@pytest.fixture
def rnaseq_store():
    return InMemoryAnnotationStore({
        "syn101": {
            "specimenID": "S1", "individualID": "P1", "assay": "rnaSeq",
            "tissue": ["blood"], "fileFormat": "fastq", "dataType": "geneExpression",
            "dataSubtype": "raw", "comments": "lane 1", "Component": "RNASeqTemplate",
            "readPair": 1,
        },
        "syn103": {"specimenID": "S1-lane2", "individualID": "P1"},
        "syn105": {
            "specimenID": "S2", "individualID": "P2", "assay": "rnaSeq",
            "fileFormat": "fastq", "comments": "resequenced",
        },
    })


# ============================================================================
# nf-sarek Layout
# ============================================================================

SAREK_ROWS = [
    ("syn1", "Project", "project", None, "Project", None),
    ("syn2", "results", "folder", "syn1", "Project/results", None),
    ("syn30", "variant_calling", "folder", "syn2", "Project/results/variant_calling", None),
    # caller first: variant_calling/<CALLER>/<SAMPLE>/file
    ("syn31", "strelka", "folder", "syn30", "Project/results/variant_calling/strelka", None),
    ("syn32", "T1_vs_N1", "folder", "syn31", "Project/results/variant_calling/strelka/T1_vs_N1", None),
    ("syn33", "T1_vs_N1.strelka.somatic_snvs.vcf.gz", "file", "syn32",
     "Project/results/variant_calling/strelka/T1_vs_N1/T1_vs_N1.strelka.somatic_snvs.vcf.gz", None),
    ("syn34", "T1_vs_N1.strelka.somatic_snvs.vcf.gz.tbi", "file", "syn32",
     "Project/results/variant_calling/strelka/T1_vs_N1/T1_vs_N1.strelka.somatic_snvs.vcf.gz.tbi", None),
    ("syn42", "T1_vs_N1.strelka.log", "file", "syn32",
     "Project/results/variant_calling/strelka/T1_vs_N1/T1_vs_N1.strelka.log", None),
    # sample first: variant_calling/<SAMPLE>/<CALLER>/file
    ("syn35", "S2", "folder", "syn30", "Project/results/variant_calling/S2", None),
    ("syn36", "deepvariant", "folder", "syn35", "Project/results/variant_calling/S2/deepvariant", None),
    ("syn37", "S2.deepvariant.vcf.gz", "file", "syn36",
     "Project/results/variant_calling/S2/deepvariant/S2.deepvariant.vcf.gz", None),
    ("syn38", "cnvkit", "folder", "syn30", "Project/results/variant_calling/cnvkit", None),
    ("syn39", "S2", "folder", "syn38", "Project/results/variant_calling/cnvkit/S2", None),
    ("syn40", "S2.cns", "file", "syn39", "Project/results/variant_calling/cnvkit/S2/S2.cns", None),
    ("syn21", "Raw Data", "folder", "syn1", "Project/Raw Data", None),
    ("syn201", "T1_R1.fastq.gz", "file", "syn21", "Project/Raw Data/T1_R1.fastq.gz", None),
    ("syn202", "T1_R2.fastq.gz", "file", "syn21", "Project/Raw Data/T1_R2.fastq.gz", None),
    ("syn203", "N1_R1.fastq.gz", "file", "syn21", "Project/Raw Data/N1_R1.fastq.gz", None),
    ("syn204", "N1_R2.fastq.gz", "file", "syn21", "Project/Raw Data/N1_R2.fastq.gz", None),
    ("syn205", "S2_R1.fastq.gz", "file", "syn21", "Project/Raw Data/S2_R1.fastq.gz", None),
    ("syn206", "S2_R2.fastq.gz", "file", "syn21", "Project/Raw Data/S2_R2.fastq.gz", None),
]


@pytest.fixture
def sarek_fileview():
    return _fileview(SAREK_ROWS)


@pytest.fixture
def sarek_index(sarek_fileview):
    return FileviewIndex(sarek_fileview)


@pytest.fixture
def sarek_samplesheet():
    return pd.DataFrame({
        "patient": ["P1", "P1", "P2"],
        "sample": ["T1", "N1", "S2"],
        "lane": ["L1", "L1", "L1"],
        "fastq_1": ["syn201", "syn203", "syn205"],
        "fastq_2": ["syn202", "syn204", "syn206"],
    })


@pytest.fixture
def sarek_store():
    return InMemoryAnnotationStore({
        "syn201": {"specimenID": "T1", "individualID": "P1", "assay": "whole exome sequencing",
                   "comments": "tumor", "progressReportNumber": 2},
        "syn203": {"specimenID": "N1", "individualID": "P1", "assay": "whole exome sequencing"},
        "syn205": {"specimenID": "S2", "individualID": "P2", "assay": "whole exome sequencing"},
    })
