"""
Unit tests for nfmanifest.utils

Tests cover:
1. Identifier parsing from bare values and embedded URIs
2. Batch extraction with uniqueness and missing values
3. Path segment extraction
4. Table reading by path and by identifier
5. Logging setup
"""

import logging

import pandas as pd
import pytest

from nfmanifest.exceptions import AmbiguousIdentifierError, InvalidIdentifierError, ManifestError
from nfmanifest.store import FileviewIndex
from nfmanifest.utils import (
    extract_identifiers,
    extract_segment,
    is_missing,
    is_valid_identifier,
    parse_identifier,
    path_extract,
    read_table,
    setup_logging,
    split_path,
)


# ============================================================================
# Identifier Parsing
# ============================================================================

class TestParseIdentifier:
    """Tests for single-value identifier parsing."""

    def test_bare_identifier(self):
        assert parse_identifier("syn26462036") == "syn26462036"

    def test_bare_identifier_is_trimmed(self):
        assert parse_identifier("  syn26462036\t") == "syn26462036"

    def test_embedded_in_uri(self):
        assert parse_identifier("synapse://syn26462036") == "syn26462036"

    def test_embedded_takes_first_token(self):
        assert parse_identifier("s3://bucket/syn1/syn2.fastq.gz") == "syn1"

    def test_unparseable_raises(self):
        with pytest.raises(InvalidIdentifierError):
            parse_identifier("s3://bucket/sample.fastq.gz")

    def test_error_is_value_error_and_manifest_error(self):
        with pytest.raises(ValueError):
            parse_identifier("not-an-id")
        with pytest.raises(ManifestError):
            parse_identifier("not-an-id")

    def test_is_valid_identifier(self):
        assert is_valid_identifier("syn123")
        assert not is_valid_identifier("syn123.1")
        assert not is_valid_identifier("SYN")
        assert not is_valid_identifier(None)


class TestExtractIdentifiers:
    """Tests for whole-batch identifier extraction."""

    def test_all_bare(self):
        assert extract_identifiers(["syn1", "syn2"]) == ["syn1", "syn2"]

    def test_all_embedded(self):
        values = ["synapse://syn1", "synapse://syn2"]
        assert extract_identifiers(values) == ["syn1", "syn2"]

    def test_mixed_falls_through_to_embedded(self):
        assert extract_identifiers(["syn1", "synapse://syn2"]) == ["syn1", "syn2"]

    def test_missing_values_stay_none(self):
        values = ["syn1", None, float("nan"), "", "syn2"]
        assert extract_identifiers(values) == ["syn1", None, None, None, "syn2"]

    def test_duplicates_rejected(self):
        with pytest.raises(AmbiguousIdentifierError):
            extract_identifiers(["syn1", "synapse://syn1"])

    def test_duplicates_allowed_when_not_unique(self):
        assert extract_identifiers(["syn1", "syn1"], unique=False) == ["syn1", "syn1"]

    def test_unparseable_value_rejected(self):
        with pytest.raises(InvalidIdentifierError) as excinfo:
            extract_identifiers(["syn1", "local/file.fastq.gz"])
        assert "local/file.fastq.gz" in str(excinfo.value)

    def test_is_missing(self):
        assert is_missing(None)
        assert is_missing(float("nan"))
        assert is_missing("  ")
        assert not is_missing("syn1")
        assert not is_missing(0)


# ============================================================================
# Path Handling
# ============================================================================

class TestPathExtraction:
    """Tests for layout-dependent path segment selection."""

    def test_split_path(self):
        assert split_path("a/b/c.txt") == ["a", "b", "c.txt"]

    def test_parent_folder(self):
        segments = split_path("Project/results/star_salmon/S1/quant.sf")
        assert extract_segment(segments, lambda x: len(x) - 2) == "S1"

    def test_index_applied_per_path(self):
        paths = [
            "results/S1/deepvariant/S1.vcf.gz",
            "results/strelka/T1_vs_N1/T1_vs_N1.vcf.gz",
        ]
        index_fun = lambda x: 1 if x[1] != "strelka" else 2  # noqa: E731
        assert path_extract(paths, index_fun) == ["S1", "T1_vs_N1"]


# ============================================================================
# Tabular Files
# ============================================================================

class TestReadTable:
    """Tests for reading tables by path or identifier."""

    def test_csv_read_as_strings(self, tmp_path):
        path = tmp_path / "samplesheet.csv"
        path.write_text("sample,fastq_1\nS1,001\n")
        df = read_table(path)
        assert df.loc[0, "fastq_1"] == "001"

    def test_tsv_separator_inferred(self, tmp_path):
        path = tmp_path / "stats.txt"
        path.write_text("Sample\tvalue\nS1\t1\n")
        df = read_table(path)
        assert list(df.columns) == ["Sample", "value"]

    def test_read_by_identifier(self, tmp_path):
        (tmp_path / "ss.csv").write_text("sample,fastq_1\nS1,syn1\n")
        index = FileviewIndex(
            pd.DataFrame({
                "id": ["syn9"], "name": ["ss.csv"], "type": ["file"],
                "parentId": [None], "path": ["P/ss.csv"], "local_path": ["ss.csv"],
            }),
            base_dir=tmp_path,
        )
        df = read_table("syn9", file_index=index)
        assert df.loc[0, "sample"] == "S1"

    def test_identifier_without_index(self):
        with pytest.raises(FileNotFoundError):
            read_table("syn9")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_table(tmp_path / "missing.csv")


class TestSetupLogging:
    """Tests for logging configuration."""

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "nfmanifest.log"
        logger = setup_logging(log_level="DEBUG", log_file=str(log_file))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert logger.name == "nfmanifest"
        assert logger.level == logging.DEBUG
        assert "hello" in log_file.read_text()
        logger.handlers.clear()

    def test_no_duplicate_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1
        logger.handlers.clear()
