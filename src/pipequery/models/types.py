"""Enumerations shared by schema and query models."""

from __future__ import annotations

from enum import StrEnum


class DataType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    JSON = "json"
    UNSUPPORTED = "unsupported"


class ExpressionType(StrEnum):
    SCALAR = "scalar"
    AGGREGATE = "aggregate"
    ANALYTIC = "analytic"

    @property
    def is_calculation(self) -> bool:
        """Aggregates and analytic expressions are calculations; scalars are not."""
        return self is not ExpressionType.SCALAR


class FieldKind(StrEnum):
    """What a field definition is, as seen by the query builder and the presentation layer."""

    DIMENSION = "dimension"
    MEASURE = "measure"
    QUERY = "query"
    SOURCE = "source"


class StageType(StrEnum):
    REDUCE = "reduce"
    PROJECT = "project"
    INDEX = "index"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"
