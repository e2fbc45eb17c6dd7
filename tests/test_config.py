"""
Unit tests for nfmanifest.config

Tests cover defaults, validation, nested updates, file round trips and
environment overrides.
"""

import json
from pathlib import Path

import pytest
import yaml

from nfmanifest.config import (
    AnnotationConfig,
    PipelineConfig,
    SampleSheetConfig,
    create_config_template,
    get_default_config,
    load_config_from_env,
    load_config_from_file,
    validate_config,
)


class TestDefaults:
    """Tests for default configuration."""

    def test_defaults(self):
        config = get_default_config()
        assert config.workflow == "nf-rnaseq"
        assert config.outputs is None
        assert config.on_error == "collect"
        assert config.annotation.genomic_reference == "GRCh38"
        assert config.samplesheet.sample_suffix_pattern == "_T[0-9]$"
        assert config.output_dir == Path("manifests")

    def test_frozen(self):
        config = get_default_config()
        with pytest.raises(Exception):
            config.workflow = "nf-sarek"


class TestValidation:
    """Tests for __post_init__ validation."""

    def test_unknown_workflow(self):
        with pytest.raises(ValueError):
            PipelineConfig(workflow="nf-chipseq")

    def test_outputs_must_match_workflow(self):
        with pytest.raises(ValueError, match="not produced by nf-rnaseq"):
            PipelineConfig(outputs=["Strelka2"])

    def test_single_output_string(self):
        config = PipelineConfig(workflow="nf-sarek", outputs="Mutect2")
        assert config.outputs == ["Mutect2"]

    def test_on_error(self):
        with pytest.raises(ValueError, match="on_error"):
            PipelineConfig(on_error="ignore")

    def test_log_level(self):
        with pytest.raises(ValueError):
            PipelineConfig(log_level="VERBOSE")

    def test_invalid_suffix_regex(self):
        with pytest.raises(ValueError):
            SampleSheetConfig(sample_suffix_pattern="_T[")

    def test_empty_reference(self):
        with pytest.raises(ValueError):
            AnnotationConfig(genomic_reference="")

    def test_output_dir_coerced(self):
        assert PipelineConfig(output_dir="out").output_dir == Path("out")


class TestUpdate:
    """Tests for nested updates."""

    def test_nested_update(self):
        config = get_default_config().update(
            workflow="nf-sarek",
            outputs=["Strelka2"],
            annotation__genomic_reference="GRCh37",
        )
        assert config.workflow == "nf-sarek"
        assert config.annotation.genomic_reference == "GRCh37"
        assert config.annotation.add_samtools_stats is True

    def test_original_unchanged(self):
        config = get_default_config()
        config.update(on_error="raise")
        assert config.on_error == "collect"


class TestFiles:
    """Tests for saving and loading configuration files."""

    def test_yaml_round_trip(self, tmp_path):
        config = get_default_config().update(workflow="nf-sarek", outputs=["DeepVariant"])
        path = tmp_path / "config.yaml"
        config.to_yaml(path)

        assert load_config_from_file(path) == config

    def test_json_round_trip(self, tmp_path):
        config = get_default_config().update(workflow_link="https://nf-co.re/rnaseq/3.12.0")
        path = tmp_path / "config.json"
        config.to_json(path)

        assert json.loads(path.read_text())["output_dir"] == "manifests"
        assert load_config_from_file(path) == config

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(yaml.safe_dump({"annotation": {"genomic_reference": "GRCh37"}}))
        config = load_config_from_file(path)
        assert config.annotation.genomic_reference == "GRCh37"
        assert config.workflow == "nf-rnaseq"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config_from_file(path)

    def test_template(self, tmp_path):
        path = tmp_path / "template.yaml"
        create_config_template(path)
        assert yaml.safe_load(path.read_text())["on_error"] == "collect"


class TestEnvironment:
    """Tests for environment overrides."""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("NFMANIFEST_WORKFLOW", "nf-sarek")
        monkeypatch.setenv("NFMANIFEST_OUTPUTS", "Strelka2,Mutect2")
        monkeypatch.setenv("NFMANIFEST_ANNOTATION__ADD_SAMTOOLS_STATS", "false")

        overrides = load_config_from_env()
        assert overrides == {
            "workflow": "nf-sarek",
            "outputs": ["Strelka2", "Mutect2"],
            "annotation__add_samtools_stats": False,
        }

        config = get_default_config().update(**overrides)
        assert config.outputs == ["Strelka2", "Mutect2"]
        assert config.annotation.add_samtools_stats is False


class TestValidateConfig:
    """Tests for configuration warnings."""

    def test_default_warns_about_link(self):
        warnings = validate_config(get_default_config())
        assert any("workflow_link" in w for w in warnings)

    def test_local_schema_missing(self, tmp_path):
        config = get_default_config().update(annotation__schema=str(tmp_path / "none.jsonld"))
        assert any("Schema file not found" in w for w in validate_config(config))

    def test_clean_config(self, schema_file):
        config = get_default_config().update(
            workflow_link="https://nf-co.re/rnaseq/3.12.0",
            annotation__schema=schema_file,
        )
        assert validate_config(config) == []
