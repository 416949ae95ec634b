"""Pydantic domain models for pipequery."""

from pipequery.models.errors import SchemaIssue, SourceSpan
from pipequery.models.path import PathHop, StagePath
from pipequery.models.query import (
    FieldName,
    FieldRef,
    FilterExpression,
    InlineField,
    OrderBy,
    Query,
    RefinedName,
    Stage,
    TopBy,
)
from pipequery.models.schema import FieldDef, LeafField, Schema, field_kind
from pipequery.models.types import (
    DataType,
    ExpressionType,
    FieldKind,
    SortDirection,
    StageType,
)

__all__ = [
    "DataType",
    "ExpressionType",
    "FieldDef",
    "FieldKind",
    "FieldName",
    "FieldRef",
    "FilterExpression",
    "InlineField",
    "LeafField",
    "OrderBy",
    "PathHop",
    "Query",
    "RefinedName",
    "Schema",
    "SchemaIssue",
    "SortDirection",
    "SourceSpan",
    "Stage",
    "StageType",
    "StagePath",
    "TopBy",
    "field_kind",
]
