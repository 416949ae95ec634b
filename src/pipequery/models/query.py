"""Query tree models: a named pipeline of stages and the field references inside them."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator

from pipequery.models.types import DataType, ExpressionType, SortDirection, StageType


class FilterExpression(BaseModel):
    """A filter condition kept as source text."""

    code: str


class OrderBy(BaseModel):
    """Order-by entry referencing a same-stage field.

    ``field`` is normally the field's display name. An ``int`` is the legacy
    1-based positional form, accepted on input but never produced by edits.
    """

    field: str | int
    direction: SortDirection | None = None


class TopBy(BaseModel):
    """Top-N grouping carried by a stage."""

    field: str


class FieldName(BaseModel):
    """A bare reference to a schema field by dotted path."""

    type: Literal["name"] = "name"
    path: str

    @property
    def display_name(self) -> str:
        return self.path


class RefinedName(BaseModel):
    """A reference to a schema field with a rename and/or private filters."""

    type: Literal["refined"] = "refined"
    path: str
    alias: str | None = Field(None, alias="as")
    filters: list[FilterExpression] = []

    model_config = {"populate_by_name": True}

    @field_validator("filters", mode="before")
    @classmethod
    def _coerce_filters(cls, value: Any) -> Any:
        return _coerce_filter_list(value)

    @property
    def display_name(self) -> str:
        return self.alias or self.path


class InlineField(BaseModel):
    """A self-contained field definition that does not exist in the schema."""

    type: Literal["expression"] = "expression"
    name: str
    alias: str | None = Field(None, alias="as")
    code: str
    data_type: DataType = Field(DataType.NUMBER, alias="dataType")
    expression_type: ExpressionType = Field(ExpressionType.SCALAR, alias="expressionType")

    model_config = {"populate_by_name": True}

    @property
    def display_name(self) -> str:
        return self.alias or self.name

    @property
    def is_calculation(self) -> bool:
        return self.expression_type.is_calculation


class Stage(BaseModel):
    """One pipeline step: fields, filters, limit and ordering."""

    type: StageType = StageType.REDUCE
    fields: list[FieldRef] = []
    filters: list[FilterExpression] = []
    limit: int | None = None
    order_by: list[OrderBy] = Field([], alias="orderBy")
    by: TopBy | None = None

    model_config = {"populate_by_name": True}

    @field_validator("fields", mode="before")
    @classmethod
    def _coerce_fields(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [FieldName(path=item) if isinstance(item, str) else item for item in value]
        return value

    @field_validator("filters", mode="before")
    @classmethod
    def _coerce_filters(cls, value: Any) -> Any:
        return _coerce_filter_list(value)

    @field_validator("order_by", mode="before")
    @classmethod
    def _coerce_order_by(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                OrderBy(field=item) if isinstance(item, (str, int)) else item for item in value
            ]
        return value

    @property
    def is_empty(self) -> bool:
        return not self.fields


class Query(BaseModel):
    """A named pipeline.

    Used for the query being edited, for nested queries inside a stage, and
    for named queries stored in a schema.
    """

    type: Literal["query"] = "query"
    name: str
    alias: str | None = Field(None, alias="as")
    pipeline: list[Stage] = Field(default_factory=lambda: [Stage()])

    model_config = {"populate_by_name": True}

    @property
    def display_name(self) -> str:
        return self.alias or self.name


FieldRef = Annotated[
    FieldName | RefinedName | Query | InlineField,
    Field(discriminator="type"),
]


def _coerce_filter_list(value: Any) -> Any:
    if isinstance(value, list):
        return [FilterExpression(code=item) if isinstance(item, str) else item for item in value]
    return value


Stage.model_rebuild()
Query.model_rebuild()
