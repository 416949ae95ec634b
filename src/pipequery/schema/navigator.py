"""Schema navigation: resolves dotted field paths and projects schemas through stages."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, assert_never

from pipequery.errors import FieldNotFoundError, InvalidPathError, QueryBuilderError
from pipequery.models.query import FieldName, FieldRef, InlineField, Query, RefinedName, Stage
from pipequery.models.schema import FieldDef, LeafField, Schema, SchemaField
from pipequery.models.types import DataType, StageType

logger = logging.getLogger("pipequery.schema")

# Output of an index stage, regardless of its input.
_INDEX_OUTPUT_FIELDS: tuple[tuple[str, DataType], ...] = (
    ("field_name", DataType.STRING),
    ("field_path", DataType.STRING),
    ("field_value", DataType.STRING),
    ("field_type", DataType.STRING),
    ("weight", DataType.NUMBER),
)


class SchemaAlgebra(Protocol):
    """Computes the schema a stage produces from the schema it reads."""

    def next_schema(self, schema: Schema, stage: Stage) -> Schema: ...


def output_name(ref: FieldRef) -> str:
    """Name of the column a field reference produces in its stage's output."""
    match ref:
        case FieldName(path=path):
            return path.rsplit(".", 1)[-1]
        case RefinedName(path=path, alias=alias):
            return alias or path.rsplit(".", 1)[-1]
        case Query() | InlineField():
            return ref.display_name
        case _:
            assert_never(ref)


class SchemaNavigator:
    """Resolves field paths against a schema, descending into structures and nested queries."""

    def __init__(self, algebra: SchemaAlgebra | None = None) -> None:
        self._algebra = algebra if algebra is not None else ReduceAlgebra(self)

    @property
    def algebra(self) -> SchemaAlgebra:
        return self._algebra

    def resolve_field(self, schema: Schema, path: str) -> SchemaField:
        """Find the definition of the field at dotted ``path``.

        Non-terminal segments must name a structure (descended into directly)
        or a nested query (replaced by the schema its pipeline produces).
        """
        parts = path.split(".")
        if any(not part for part in parts):
            raise FieldNotFoundError(path, path)
        current = schema
        for part in parts[:-1]:
            found = current.find(part)
            match found:
                case None:
                    raise FieldNotFoundError(path, part)
                case Schema():
                    current = found
                case Query():
                    current = self.project_pipeline(current, found.pipeline)
                case LeafField():
                    raise InvalidPathError(
                        f"'{part}' in '{path}' is not a structure or query"
                    )
                case _:
                    assert_never(found)
        found = current.find(parts[-1])
        if found is None:
            raise FieldNotFoundError(path, parts[-1])
        return found

    def project_schema(self, schema: Schema, stage: Stage) -> Schema:
        return self._algebra.next_schema(schema, stage)

    def project_pipeline(self, schema: Schema, pipeline: Iterable[Stage]) -> Schema:
        """Project ``schema`` through every stage of ``pipeline`` in order."""
        for stage in pipeline:
            schema = self.project_schema(schema, stage)
        return schema

    def field_def_for(self, ref: FieldRef, schema: Schema) -> FieldDef:
        """The definition a stage field stands for, read against the stage's input schema."""
        match ref:
            case FieldName(path=path) | RefinedName(path=path):
                return self.resolve_field(schema, path)
            case Query() | InlineField():
                return ref
            case _:
                assert_never(ref)


class ReduceAlgebra:
    """Default schema algebra for reduce and project stages.

    Every stage field becomes one output field. Calculations turn into plain
    scalar columns and nested queries into structures holding their own
    output fields.
    """

    def __init__(self, navigator: SchemaNavigator) -> None:
        self._navigator = navigator

    def next_schema(self, schema: Schema, stage: Stage) -> Schema:
        if stage.type is StageType.INDEX:
            return Schema(
                name=schema.name,
                fields=[LeafField(name=name, data_type=dt) for name, dt in _INDEX_OUTPUT_FIELDS],
            )
        fields: list[SchemaField] = []
        for ref in stage.fields:
            try:
                definition = self._navigator.field_def_for(ref, schema)
            except QueryBuilderError as exc:
                logger.info("Leaving '%s' out of the stage output: %s", ref.display_name, exc)
                continue
            fields.append(self._output_field(ref, definition, schema))
        return Schema(name=schema.name, fields=fields)

    def _output_field(self, ref: FieldRef, definition: FieldDef, schema: Schema) -> SchemaField:
        name = output_name(ref)
        match definition:
            case LeafField() | InlineField():
                return LeafField(name=name, data_type=definition.data_type)
            case Query():
                projected = self._navigator.project_pipeline(schema, definition.pipeline)
                return Schema(name=name, fields=projected.fields)
            case Schema():
                return definition.model_copy(update={"name": name}, deep=True)
            case _:
                assert_never(definition)
