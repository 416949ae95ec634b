"""Tests for the query, schema and summary models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from pipequery.models.query import (
    FieldName,
    FieldRef,
    FilterExpression,
    InlineField,
    OrderBy,
    Query,
    RefinedName,
    Stage,
)
from pipequery.models.schema import LeafField, Schema, field_data_type, field_kind
from pipequery.models.types import DataType, ExpressionType, FieldKind, SortDirection, StageType


class TestFieldRefUnion:
    def test_discriminates_on_type(self) -> None:
        adapter = TypeAdapter(FieldRef)
        assert isinstance(adapter.validate_python({"type": "name", "path": "a"}), FieldName)
        refined = adapter.validate_python({"type": "refined", "path": "a", "as": "b"})
        assert isinstance(refined, RefinedName)
        assert refined.alias == "b"
        nested = adapter.validate_python({"type": "query", "name": "q"})
        assert isinstance(nested, Query)
        inline = adapter.validate_python(
            {"type": "expression", "name": "x", "code": "1 + 1", "expressionType": "aggregate"}
        )
        assert isinstance(inline, InlineField)
        assert inline.is_calculation

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TypeAdapter(FieldRef).validate_python({"type": "mystery", "path": "a"})

    def test_display_names(self) -> None:
        assert FieldName(path="aircraft.seats").display_name == "aircraft.seats"
        assert RefinedName(path="carrier").display_name == "carrier"
        assert RefinedName(path="carrier", alias="airline").display_name == "airline"
        assert Query(name="q", alias="renamed").display_name == "renamed"
        assert InlineField(name="x", code="1").display_name == "x"


class TestStageCoercion:
    def test_string_fields_become_names(self) -> None:
        stage = Stage.model_validate({"fields": ["carrier", {"type": "name", "path": "origin"}]})
        assert stage.fields == [FieldName(path="carrier"), FieldName(path="origin")]

    def test_string_filters_become_expressions(self) -> None:
        stage = Stage.model_validate({"filters": ["distance > 100"]})
        assert stage.filters == [FilterExpression(code="distance > 100")]

    def test_order_by_accepts_names_and_positions(self) -> None:
        stage = Stage.model_validate({"orderBy": ["carrier", 2]})
        assert stage.order_by == [OrderBy(field="carrier"), OrderBy(field=2)]

    def test_defaults(self) -> None:
        stage = Stage()
        assert stage.type is StageType.REDUCE
        assert stage.is_empty
        assert stage.limit is None
        assert stage.by is None

    def test_refined_filters_coerced(self) -> None:
        ref = RefinedName.model_validate({"path": "a", "filters": ["a > 1"]})
        assert ref.filters == [FilterExpression(code="a > 1")]


class TestQuery:
    def test_new_query_has_one_empty_stage(self) -> None:
        query = Query(name="q")
        assert len(query.pipeline) == 1
        assert query.pipeline[0].is_empty

    def test_pipelines_are_not_shared(self) -> None:
        first = Query(name="a")
        second = Query(name="b")
        first.pipeline[0].fields.append(FieldName(path="x"))
        assert second.pipeline[0].fields == []

    def test_deep_copy_is_independent(self) -> None:
        query = Query(name="q", pipeline=[Stage(fields=[FieldName(path="x")])])
        copy = query.model_copy(deep=True)
        copy.pipeline[0].fields.append(FieldName(path="y"))
        assert len(query.pipeline[0].fields) == 1

    def test_dump_uses_aliases(self) -> None:
        query = Query(
            name="q",
            alias="shown",
            pipeline=[Stage(order_by=[OrderBy(field="x", direction=SortDirection.DESC)])],
        )
        dumped = query.model_dump(by_alias=True)
        assert dumped["as"] == "shown"
        assert dumped["pipeline"][0]["orderBy"] == [{"field": "x", "direction": "desc"}]
        assert Query.model_validate(dumped) == query


class TestSchema:
    def test_leaf_type_optional(self) -> None:
        schema = Schema.model_validate({"name": "s", "fields": [{"name": "a"}]})
        assert isinstance(schema.fields[0], LeafField)
        assert schema.fields[0].data_type is DataType.STRING

    def test_find(self, schema: Schema) -> None:
        found = schema.find("aircraft")
        assert isinstance(found, Schema)
        assert schema.find("missing") is None

    def test_nested_query_field(self, schema: Schema) -> None:
        found = schema.find("top_origins")
        assert isinstance(found, Query)
        assert found.pipeline[0].limit == 10


class TestFieldKind:
    def test_kinds(self, schema: Schema) -> None:
        assert field_kind(schema.find("carrier")) is FieldKind.DIMENSION
        assert field_kind(schema.find("flight_count")) is FieldKind.MEASURE
        assert field_kind(schema.find("top_origins")) is FieldKind.QUERY
        assert field_kind(schema.find("aircraft")) is FieldKind.SOURCE

    def test_inline_calculation_is_measure(self) -> None:
        inline = InlineField(name="x", code="sum(a)", expression_type=ExpressionType.AGGREGATE)
        assert field_kind(inline) is FieldKind.MEASURE
        assert field_kind(InlineField(name="y", code="a * 2")) is FieldKind.DIMENSION

    def test_analytic_is_calculation(self) -> None:
        leaf = LeafField(name="r", expression_type=ExpressionType.ANALYTIC)
        assert field_kind(leaf) is FieldKind.MEASURE

    def test_data_type_labels(self, schema: Schema) -> None:
        assert field_data_type(schema.find("distance")) == "number"
        assert field_data_type(schema.find("aircraft")) == "struct"
        assert field_data_type(schema.find("by_carrier")) == "query"
