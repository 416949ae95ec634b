"""Shared test fixtures for pipequery."""

from __future__ import annotations

import pytest

from pipequery.editor.builder import QueryBuilder
from pipequery.models.query import Query, Stage
from pipequery.models.schema import LeafField, Schema
from pipequery.models.types import DataType
from pipequery.schema.loader import SchemaLoader
from pipequery.schema.navigator import SchemaNavigator
from pipequery.settings import Settings

SAMPLE_SCHEMA_YAML = """\
name: flights
fields:
  - name: carrier
    dataType: string
  - name: origin
    dataType: string
  - name: distance
    dataType: number
  - name: dep_time
    dataType: timestamp
  - name: flight_count
    dataType: number
    expressionType: aggregate
    code: count()
  - name: total_distance
    dataType: number
    expressionType: aggregate
    code: sum(distance)
  - name: aircraft
    type: struct
    fields:
      - name: tail_num
      - name: seats
        dataType: number
      - name: model_info
        type: struct
        fields:
          - name: manufacturer
  - name: top_origins
    type: query
    pipeline:
      - fields:
          - origin
          - flight_count
        filters:
          - distance > 100
        limit: 10
        orderBy:
          - field: flight_count
            direction: desc
  - name: carrier_rollup
    type: query
    pipeline:
      - fields:
          - carrier
          - flight_count
      - fields:
          - flight_count
  - name: by_carrier
    type: query
    pipeline:
      - fields:
          - carrier
          - flight_count
"""


@pytest.fixture
def loader() -> SchemaLoader:
    return SchemaLoader()


@pytest.fixture
def navigator() -> SchemaNavigator:
    return SchemaNavigator()


@pytest.fixture
def schema(loader: SchemaLoader) -> Schema:
    """The flights sample schema."""
    return loader.load_string(SAMPLE_SCHEMA_YAML)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def builder(schema: Schema, settings: Settings) -> QueryBuilder:
    """A builder holding a blank query against the flights schema."""
    return QueryBuilder(schema, settings=settings)


@pytest.fixture
def people() -> Schema:
    """Two plain dimensions, nothing nested."""
    return Schema(
        name="people",
        fields=[
            LeafField(name="age", data_type=DataType.NUMBER),
            LeafField(name="name", data_type=DataType.STRING),
        ],
    )


@pytest.fixture
def aliased_people(people: Schema) -> Schema:
    """``people`` plus a stored query known by its alias."""
    people.fields.append(
        Query(name="by_age", alias="age_groups", pipeline=[Stage(fields=["age"])])
    )
    return people
