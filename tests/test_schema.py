"""
Unit tests for nfmanifest.schema
"""

import json

import pytest

from nfmanifest.schema import get_template_properties, load_schema


class TestTemplateProperties:
    """Tests for reading template properties from a JSON-LD model."""

    def test_properties_in_schema_order(self, schema_file):
        props = get_template_properties("bts:ProcessedVariantCallsTemplate", schema_file)
        assert props == [
            "Component", "Filename", "specimenID", "individualID", "assay",
            "fileFormat", "dataType", "comments", "progressReportNumber",
        ]

    def test_label_preferred_over_id(self, tmp_path):
        path = tmp_path / "model.jsonld"
        path.write_text(json.dumps({"@graph": [
            {"@id": "bts:T", "sms:requiresDependency": [{"@id": "bts:x1"}, {"@id": "bts:y"}]},
            {"@id": "bts:x1", "rdfs:label": "readLength"},
        ]}))
        assert get_template_properties("bts:T", str(path)) == ["readLength", "y"]

    def test_single_dependency(self, tmp_path):
        path = tmp_path / "model.jsonld"
        path.write_text(json.dumps({"@graph": [
            {"@id": "bts:T", "sms:requiresDependency": {"@id": "bts:Component"}},
        ]}))
        assert get_template_properties("bts:T", str(path)) == ["Component"]

    def test_unknown_template(self, schema_file):
        with pytest.raises(KeyError):
            get_template_properties("bts:Nope", schema_file)

    def test_missing_schema_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schema(str(tmp_path / "missing.jsonld"))
