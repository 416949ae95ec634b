"""Schema models: the fields a query can draw from, including nested structures and queries."""

from __future__ import annotations

from typing import Annotated, Any, Literal, assert_never

from pydantic import BaseModel, Field, field_validator

from pipequery.models.query import InlineField, Query
from pipequery.models.types import DataType, ExpressionType, FieldKind


class LeafField(BaseModel):
    """A dimension or calculation defined by the schema."""

    type: Literal["leaf"] = "leaf"
    name: str
    data_type: DataType = Field(DataType.STRING, alias="dataType")
    expression_type: ExpressionType = Field(ExpressionType.SCALAR, alias="expressionType")
    code: str | None = None

    model_config = {"populate_by_name": True}

    @property
    def is_calculation(self) -> bool:
        return self.expression_type.is_calculation


class Schema(BaseModel):
    """A named structure with an ordered field list.

    The same model describes the root schema a query runs against and any
    nested structure reachable from it.
    """

    type: Literal["struct"] = "struct"
    name: str
    fields: list[SchemaField] = []

    @field_validator("fields", mode="before")
    @classmethod
    def _default_leaf_type(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                {**item, "type": "leaf"} if isinstance(item, dict) and "type" not in item else item
                for item in value
            ]
        return value

    def find(self, name: str) -> SchemaField | None:
        """Return the first field whose display name is ``name``, if any."""
        for candidate in self.fields:
            if definition_name(candidate) == name:
                return candidate
        return None


SchemaField = Annotated[LeafField | Schema | Query, Field(discriminator="type")]

# Anything a field reference can resolve to.
FieldDef = LeafField | Schema | Query | InlineField


def definition_name(definition: FieldDef) -> str:
    """The name a definition is referenced by: its alias when it has one."""
    return getattr(definition, "alias", None) or definition.name


def field_kind(definition: FieldDef) -> FieldKind:
    """Classify a resolved field definition."""
    match definition:
        case Schema():
            return FieldKind.SOURCE
        case Query():
            return FieldKind.QUERY
        case LeafField() | InlineField():
            return FieldKind.MEASURE if definition.is_calculation else FieldKind.DIMENSION
        case _:
            assert_never(definition)


def field_data_type(definition: FieldDef) -> str:
    """The type label reported for a definition in order-by listings."""
    match definition:
        case LeafField() | InlineField():
            return definition.data_type.value
        case Schema():
            return "struct"
        case Query():
            return "query"
        case _:
            assert_never(definition)


Schema.model_rebuild()
