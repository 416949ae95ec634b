"""Query summary models: the structural description handed to the presentation layer."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pipequery.filters import ParsedPredicate
from pipequery.models.query import FieldRef, InlineField, Query
from pipequery.models.schema import LeafField, Schema
from pipequery.models.types import FieldKind, SortDirection

ResolvedField = Annotated[LeafField | Schema | Query | InlineField, Field(discriminator="type")]


class _SummaryModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DataStyleItem(_SummaryModel):
    type: Literal["data_style"] = "data_style"
    renderer: str
    style_key: str
    can_remove: bool
    allowed_renderers: list[str]


class FilterItem(_SummaryModel):
    type: Literal["filter"] = "filter"
    filter_source: str
    filter_index: int
    field_path: str | None = None
    field: ResolvedField | None = None
    parsed: ParsedPredicate | None = None


class FieldItem(_SummaryModel):
    """A schema field referenced by name, possibly refined."""

    type: Literal["field"] = "field"
    name: str
    path: str
    field_index: int
    kind: FieldKind
    field: ResolvedField
    is_refined: bool = False
    is_renamed: bool = False
    filters: list[FilterItem] = []
    styles: list[DataStyleItem] = []
    save_definition: InlineField | None = None
    stages: list[StageSummary] = []


class NestedQueryItem(_SummaryModel):
    """A nested query defined inline in the stage."""

    type: Literal["nested_query_definition"] = "nested_query_definition"
    name: str
    field_index: int
    save_definition: Query | None = None
    stages: list[StageSummary] = []
    styles: list[DataStyleItem] = []


class FieldDefinitionItem(_SummaryModel):
    """An inline expression field."""

    type: Literal["field_definition"] = "field_definition"
    name: str
    field_index: int
    field: InlineField
    source: str
    kind: FieldKind
    save_definition: InlineField | None = None
    styles: list[DataStyleItem] = []


class LimitItem(_SummaryModel):
    type: Literal["limit"] = "limit"
    limit: int


class OrderByField(_SummaryModel):
    """A stage field that can be used as an order-by target."""

    name: str
    field_index: int
    type: str


class OrderByItem(_SummaryModel):
    type: Literal["order_by"] = "order_by"
    by_field: OrderByField
    direction: SortDirection | None = None
    order_by_index: int


class ErrorFieldItem(_SummaryModel):
    """A stage field that could not be resolved against the stage's input schema."""

    type: Literal["error_field"] = "error_field"
    name: str
    field_index: int
    field: FieldRef
    error: str


SummaryItem = Annotated[
    FilterItem
    | FieldItem
    | NestedQueryItem
    | FieldDefinitionItem
    | DataStyleItem
    | LimitItem
    | OrderByItem
    | ErrorFieldItem,
    Field(discriminator="type"),
]


class StageSummary(_SummaryModel):
    items: list[SummaryItem] = []
    order_by_fields: list[OrderByField] = []
    input_source: Schema


class QuerySummary(_SummaryModel):
    stages: list[StageSummary] = []


FieldItem.model_rebuild()
NestedQueryItem.model_rebuild()
StageSummary.model_rebuild()
QuerySummary.model_rebuild()
