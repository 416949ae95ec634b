"""Text projection: renders a query tree as query source text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import assert_never

from pipequery.errors import QueryBuilderError
from pipequery.filters import ComparisonFilterParser, FilterParser
from pipequery.models.query import FieldName, FieldRef, InlineField, Query, RefinedName, Stage
from pipequery.models.schema import FieldDef, Schema, field_kind
from pipequery.models.summary import QuerySummary
from pipequery.models.types import FieldKind, StageType
from pipequery.render.clauses import filter_fragments, order_by_code, refined_fragments
from pipequery.render.fragments import INDENT, NEWLINE, OUTDENT, Fragment, render_fragments
from pipequery.render.identifiers import quote_identifier, quote_path, snake_to_title
from pipequery.render.summary import SummaryBuilder
from pipequery.schema.navigator import SchemaNavigator
from pipequery.settings import Settings
from pipequery.styles import DataStyles

logger = logging.getLogger("pipequery.render")

NEST = "nest"
AGGREGATE = "aggregate"
GROUP_BY = "group_by"


@dataclass
class FieldCode:
    """Rendered fragments for one stage field and the property block it belongs in."""

    property: str
    fragments: list[Fragment]


def property_for(definition: FieldDef) -> str:
    match field_kind(definition):
        case FieldKind.QUERY:
            return NEST
        case FieldKind.MEASURE:
            return AGGREGATE
        case FieldKind.DIMENSION | FieldKind.SOURCE:
            return GROUP_BY


class QueryWriter:
    """Read-only projections of one query tree against one schema.

    Produces query source text in three modes (bound to the schema, defined
    inside the schema, wrapped in a documentation block) and the structural
    summary consumed by the presentation layer.
    """

    def __init__(
        self,
        query: Query,
        schema: Schema,
        *,
        navigator: SchemaNavigator | None = None,
        filter_parser: FilterParser | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._query = query
        self._schema = schema
        self._navigator = navigator or SchemaNavigator()
        self._filter_parser = filter_parser or ComparisonFilterParser()
        self._settings = settings or Settings()

    @property
    def query(self) -> Query:
        return self._query

    @property
    def schema(self) -> Schema:
        return self._schema

    # -- text modes ----------------------------------------------------------

    def get_query_string_for_model(self) -> str:
        """``query: <name> is <schema> -> { ... }``."""
        return self._render(self.query_fragments(for_source=False, name=self._query.name))

    def get_query_string_for_source(self, name: str) -> str:
        """``query: <name> is { ... }``, for a query defined inside the schema."""
        return self._render(self.query_fragments(for_source=True, name=name))

    def get_query_string_for_markdown(self, renderer: str | None, model_path: str) -> str:
        """Model text wrapped in a documentation comment block and a code fence."""
        settings = self._settings
        fragments: list[Fragment] = [f"<!-- {settings.docs_block_tag}", NEWLINE, INDENT]
        fragments.extend([f'name="{snake_to_title(self._query.name)}"', NEWLINE])
        fragments.extend([f'description="{settings.docs_description}"', NEWLINE])
        if renderer:
            fragments.extend([f'renderer="{renderer}"', NEWLINE])
        fragments.extend([f'model="{model_path}"', NEWLINE, OUTDENT, "-->", NEWLINE])
        fragments.extend([f"```{settings.code_fence_language}", NEWLINE])
        fragments.extend(self.query_fragments(for_source=False, name=self._query.name))
        fragments.extend([NEWLINE, "```"])
        return self._render(fragments)

    def get_query_summary(self, styles: DataStyles) -> QuerySummary:
        builder = SummaryBuilder(
            self._query,
            self._schema,
            navigator=self._navigator,
            filter_parser=self._filter_parser,
            settings=self._settings,
        )
        return builder.build(styles)

    # -- fragment generation -------------------------------------------------

    def query_fragments(self, *, for_source: bool, name: str | None) -> list[Fragment]:
        head = ["query:"]
        if name is not None:
            head.append(f"{quote_identifier(name)} is")
        if not for_source:
            head.append(quote_identifier(self._schema.name))
        fragments: list[Fragment] = [" ".join(head)]
        source = self._schema
        for index, stage in enumerate(self._query.pipeline):
            if not for_source or index > 0:
                fragments.append(" ->")
            fragments.extend(self.stage_fragments(stage, source))
            source = self._navigator.project_schema(source, stage)
        return fragments

    def stage_fragments(self, stage: Stage, source: Schema) -> list[Fragment]:
        """``{ ... }`` for one stage read against its input schema ``source``."""
        fragments: list[Fragment] = [" {", NEWLINE, INDENT]
        if stage.filters:
            fragments.append("where:")
            fragments.extend(filter_fragments(stage.filters))

        # One block per run of fields sharing a property; never reorder fields.
        current_property: str | None = None
        current_values: list[list[Fragment]] = []
        for ref in stage.fields:
            code = self.field_code(ref, source)
            if code is None:
                continue
            if current_property is not None and code.property != current_property:
                fragments.extend(self._property_block(current_property, current_values))
                current_values = []
            current_property = code.property
            current_values.append(code.fragments)
        if current_property is not None:
            fragments.extend(self._property_block(current_property, current_values))

        if stage.limit is not None:
            fragments.extend([f"limit: {stage.limit}", NEWLINE])
        if stage.type is StageType.REDUCE and stage.order_by:
            terms = ", ".join(order_by_code(entry) for entry in stage.order_by)
            fragments.extend([f"order_by: {terms}", NEWLINE])
        fragments.extend([OUTDENT, "}"])
        return fragments

    def field_code(self, ref: FieldRef, source: Schema) -> FieldCode | None:
        try:
            definition = self._navigator.field_def_for(ref, source)
        except QueryBuilderError as exc:
            logger.warning("Leaving '%s' out of the query text: %s", ref.display_name, exc)
            return None
        match ref:
            case FieldName(path=path):
                return FieldCode(property_for(definition), [quote_path(path)])
            case RefinedName():
                return FieldCode(property_for(definition), refined_fragments(ref))
            case Query():
                return FieldCode(NEST, self._nested_query_fragments(ref, source))
            case InlineField(code=code):
                return FieldCode(
                    property_for(definition),
                    [f"{quote_identifier(ref.display_name)} is {code}"],
                )
            case _:
                assert_never(ref)

    def _nested_query_fragments(self, query: Query, source: Schema) -> list[Fragment]:
        fragments: list[Fragment] = [f"{quote_identifier(query.display_name)} is"]
        stage_source = source
        for index, stage in enumerate(query.pipeline):
            if index > 0:
                fragments.append(" ->")
            fragments.extend(self.stage_fragments(stage, stage_source))
            stage_source = self._navigator.project_schema(stage_source, stage)
        return fragments

    @staticmethod
    def _property_block(property_name: str, values: list[list[Fragment]]) -> list[Fragment]:
        if not values:
            return []
        if len(values) == 1:
            return [f"{property_name}: ", *values[0], NEWLINE]
        fragments: list[Fragment] = [f"{property_name}:", NEWLINE, INDENT]
        for value in values:
            fragments.extend(value)
            fragments.append(NEWLINE)
        fragments.append(OUTDENT)
        return fragments

    def _render(self, fragments: list[Fragment]) -> str:
        return render_fragments(fragments, tab_width=self._settings.tab_width)
