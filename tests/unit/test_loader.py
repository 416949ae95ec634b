"""Tests for the YAML schema loader and its parsing safeguards."""

from __future__ import annotations

from pathlib import Path

import pytest

from pipequery.errors import SchemaLoadError, YAMLSafetyError
from pipequery.models.query import FieldName, Query
from pipequery.models.schema import LeafField, Schema
from pipequery.schema.loader import _MAX_DOCUMENT_SIZE, _MAX_NODE_COUNT, SchemaLoader
from tests.conftest import SAMPLE_SCHEMA_YAML


class TestParse:
    def test_parse_returns_plain_dict(self, loader: SchemaLoader) -> None:
        raw, source_map = loader.parse(SAMPLE_SCHEMA_YAML)
        assert raw["name"] == "flights"
        assert type(raw["fields"]) is list
        assert type(raw["fields"][0]["name"]) is str
        assert len(source_map.paths) > 0

    def test_positions_are_one_based(self, loader: SchemaLoader) -> None:
        _, source_map = loader.parse(SAMPLE_SCHEMA_YAML, "flights.yaml")
        span = source_map.get("name")
        assert span is not None
        assert span.file == "flights.yaml"
        assert (span.line, span.column) == (1, 1)

    def test_sequence_items_have_positions(self, loader: SchemaLoader) -> None:
        _, source_map = loader.parse(SAMPLE_SCHEMA_YAML)
        item = source_map.get("fields[0]")
        first_key = source_map.get("fields[0].name")
        assert item is not None and first_key is not None
        assert item.line == first_key.line

    def test_nearest_walks_up(self, loader: SchemaLoader) -> None:
        _, source_map = loader.parse(SAMPLE_SCHEMA_YAML)
        assert source_map.nearest("fields[0].name.unknown") == source_map.get("fields[0].name")
        assert source_map.nearest("nothing.here") is None

    def test_empty_document(self, loader: SchemaLoader) -> None:
        raw, source_map = loader.parse("")
        assert raw == {}
        assert source_map.paths == []

    def test_syntax_error(self, loader: SchemaLoader) -> None:
        with pytest.raises(SchemaLoadError) as info:
            loader.parse("name: [unclosed\n")
        assert info.value.issues[0].code == "YAML_PARSE_ERROR"


class TestLoad:
    def test_load_string(self, loader: SchemaLoader) -> None:
        schema = loader.load_string(SAMPLE_SCHEMA_YAML)
        assert isinstance(schema, Schema)
        assert schema.name == "flights"
        assert isinstance(schema.find("carrier"), LeafField)
        top = schema.find("top_origins")
        assert isinstance(top, Query)
        assert top.pipeline[0].fields[0] == FieldName(path="origin")

    def test_load_file(self, loader: SchemaLoader, tmp_path: Path) -> None:
        path = tmp_path / "flights.yaml"
        path.write_text(SAMPLE_SCHEMA_YAML, encoding="utf-8")
        schema = loader.load(path)
        assert schema.find("aircraft") is not None

    def test_empty_schema_rejected(self, loader: SchemaLoader) -> None:
        with pytest.raises(SchemaLoadError) as info:
            loader.load_string("")
        assert info.value.issues[0].code == "EMPTY_SCHEMA"

    def test_validation_error_points_at_source(self, loader: SchemaLoader) -> None:
        yaml = "name: broken\nfields:\n  - name: a\n    dataType: colour\n"
        with pytest.raises(SchemaLoadError, match="Schema validation failed") as info:
            loader.load_string(yaml, "broken.yaml")
        issue = info.value.issues[0]
        assert issue.code == "SCHEMA_VALIDATION_ERROR"
        assert issue.path == "fields[0].dataType"
        assert issue.span is not None
        assert issue.span.line == 4

    def test_missing_name(self, loader: SchemaLoader) -> None:
        with pytest.raises(SchemaLoadError):
            loader.load_string("fields:\n  - name: a\n")


class TestAnchorRejection:
    def test_billion_laughs_rejected(self, loader: SchemaLoader) -> None:
        yaml = (
            "a: &a ['lol','lol','lol','lol','lol']\n"
            "b: &b [*a,*a,*a,*a,*a]\n"
            "c: &c [*b,*b,*b,*b,*b]\n"
        )
        with pytest.raises(YAMLSafetyError, match="anchors/aliases"):
            loader.load_string(yaml)

    def test_anchor_in_sequence(self, loader: SchemaLoader) -> None:
        yaml = "fields:\n  - &item1 foo\n  - *item1\n"
        with pytest.raises(YAMLSafetyError, match="anchors/aliases"):
            loader.parse(yaml)

    def test_ampersand_in_comment_not_rejected(self, loader: SchemaLoader) -> None:
        """An & inside a YAML comment must not trigger a false positive."""
        yaml = "# see R&D notes\nname: ok\n"
        raw, _ = loader.parse(yaml)
        assert raw["name"] == "ok"


class TestLimits:
    def test_oversized_document_rejected(self, loader: SchemaLoader) -> None:
        yaml = "name: " + "x" * (_MAX_DOCUMENT_SIZE + 1) + "\n"
        with pytest.raises(YAMLSafetyError, match="maximum size"):
            loader.parse(yaml)

    def test_excessive_node_count_rejected(self, loader: SchemaLoader) -> None:
        lines = [f"k{i}: v" for i in range(_MAX_NODE_COUNT + 1)]
        with pytest.raises(YAMLSafetyError, match="maximum node count"):
            loader.parse("\n".join(lines) + "\n")

    def test_deep_nesting_rejected(self, loader: SchemaLoader) -> None:
        yaml = "".join("  " * i + f"level{i}:\n" for i in range(70))
        yaml += "  " * 70 + "value: deep\n"
        with pytest.raises(YAMLSafetyError, match="maximum nesting depth"):
            loader.parse(yaml)
