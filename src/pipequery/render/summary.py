"""Summary projection: a structural description of a query tree for the presentation layer."""

from __future__ import annotations

import logging
from typing import assert_never

from pipequery.errors import QueryBuilderError
from pipequery.filters import ComparisonFilterParser, FilterParser
from pipequery.models.query import (
    FieldName,
    FieldRef,
    FilterExpression,
    InlineField,
    Query,
    RefinedName,
    Stage,
)
from pipequery.models.schema import (
    FieldDef,
    LeafField,
    Schema,
    definition_name,
    field_data_type,
    field_kind,
)
from pipequery.models.summary import (
    DataStyleItem,
    ErrorFieldItem,
    FieldDefinitionItem,
    FieldItem,
    FilterItem,
    LimitItem,
    NestedQueryItem,
    OrderByField,
    OrderByItem,
    QuerySummary,
    StageSummary,
    SummaryItem,
)
from pipequery.models.types import FieldKind
from pipequery.render.clauses import refined_fragments
from pipequery.render.fragments import render_fragments
from pipequery.schema.navigator import SchemaNavigator
from pipequery.settings import Settings
from pipequery.styles import DataStyles, allowed_renderers

logger = logging.getLogger("pipequery.render")

# Kinds that cannot be the target of an order-by.
_UNORDERABLE = (FieldKind.QUERY, FieldKind.SOURCE)


class SummaryBuilder:
    """Builds a ``QuerySummary`` for one query tree against one schema.

    A field that cannot be resolved becomes an ``error_field`` item; the rest
    of its stage is summarized normally.
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

    def build(self, styles: DataStyles) -> QuerySummary:
        stages: list[StageSummary] = []
        source = self._schema
        last_index = len(self._query.pipeline) - 1
        for index, stage in enumerate(self._query.pipeline):
            summary = self.stage_summary(stage, source, styles)
            source = self._navigator.project_schema(source, stage)
            if index == last_index:
                style_item = self._style_item(self._query.name, FieldKind.QUERY, styles)
                if style_item is not None:
                    summary.items.append(style_item)
            stages.append(summary)
        return QuerySummary(stages=stages)

    def stage_summary(self, stage: Stage, source: Schema, styles: DataStyles) -> StageSummary:
        items: list[SummaryItem] = list(self._filter_items(stage.filters, source))
        order_by_fields: list[OrderByField] = []
        for field_index, ref in enumerate(stage.fields):
            try:
                item, orderable = self._field_item(ref, field_index, source, styles)
            except QueryBuilderError as exc:
                items.append(
                    ErrorFieldItem(
                        name=ref.display_name,
                        field_index=field_index,
                        field=ref,
                        error=str(exc),
                    )
                )
                continue
            items.append(item)
            if orderable is not None:
                order_by_fields.append(orderable)
        if stage.limit is not None:
            items.append(LimitItem(limit=stage.limit))
        items.extend(self._order_by_items(stage, source))
        return StageSummary(items=items, order_by_fields=order_by_fields, input_source=source)

    # -- fields --------------------------------------------------------------

    def _field_item(
        self, ref: FieldRef, field_index: int, source: Schema, styles: DataStyles
    ) -> tuple[SummaryItem, OrderByField | None]:
        definition = self._navigator.field_def_for(ref, source)
        kind = field_kind(definition)
        # Only fields read straight from the schema can be saved back into it.
        at_root = source is self._schema
        orderable = (
            OrderByField(
                name=ref.display_name,
                field_index=field_index,
                type=field_data_type(definition),
            )
            if kind not in _UNORDERABLE
            else None
        )
        match ref:
            case FieldName(path=path):
                item: SummaryItem = FieldItem(
                    name=definition_name(definition),
                    path=path,
                    field_index=field_index,
                    kind=kind,
                    field=definition,
                    styles=self._style_items(path, kind, styles),
                    stages=self._nested_stages(definition, source, styles),
                )
            case RefinedName(path=path, alias=alias):
                item = FieldItem(
                    name=ref.display_name,
                    path=path,
                    field_index=field_index,
                    kind=kind,
                    field=definition,
                    is_refined=True,
                    is_renamed=alias is not None,
                    filters=self._filter_items(ref.filters, source),
                    styles=self._style_items(ref.display_name, kind, styles),
                    save_definition=self._refined_definition(ref, definition) if at_root else None,
                    stages=self._nested_stages(definition, source, styles),
                )
            case Query():
                item = NestedQueryItem(
                    name=ref.display_name,
                    field_index=field_index,
                    save_definition=ref.model_copy(deep=True) if at_root else None,
                    stages=self._nested_stages(ref, source, styles),
                    styles=self._style_items(ref.display_name, kind, styles),
                )
            case InlineField(code=code):
                item = FieldDefinitionItem(
                    name=ref.display_name,
                    field_index=field_index,
                    field=ref,
                    source=code,
                    kind=kind,
                    save_definition=ref.model_copy(deep=True) if at_root else None,
                    styles=self._style_items(ref.display_name, kind, styles),
                )
            case _:
                assert_never(ref)
        return item, orderable

    def _nested_stages(
        self, definition: FieldDef, source: Schema, styles: DataStyles
    ) -> list[StageSummary]:
        if not isinstance(definition, Query):
            return []
        stages: list[StageSummary] = []
        stage_source = source
        for stage in definition.pipeline:
            stages.append(self.stage_summary(stage, stage_source, styles))
            stage_source = self._navigator.project_schema(stage_source, stage)
        return stages

    def _refined_definition(self, ref: RefinedName, definition: FieldDef) -> InlineField | None:
        """A self-contained definition equivalent to a refined reference."""
        match definition:
            case LeafField() | InlineField():
                code = render_fragments(
                    refined_fragments(ref, with_alias=False),
                    tab_width=self._settings.tab_width,
                )
                return InlineField(
                    name=ref.display_name,
                    code=code,
                    data_type=definition.data_type,
                    expression_type=definition.expression_type,
                )
            case Query() | Schema():
                return None
            case _:
                assert_never(definition)

    # -- filters -------------------------------------------------------------

    def _filter_items(self, filters: list[FilterExpression], source: Schema) -> list[FilterItem]:
        items: list[FilterItem] = []
        for filter_index, expression in enumerate(filters):
            parsed = self._filter_parser.parse(expression.code)
            field = None
            if parsed is not None:
                try:
                    field = self._navigator.resolve_field(source, parsed.field)
                except QueryBuilderError as exc:
                    logger.info("Filter '%s' names an unknown field: %s", expression.code, exc)
            items.append(
                FilterItem(
                    filter_source=expression.code,
                    filter_index=filter_index,
                    field_path=parsed.field if parsed is not None else None,
                    field=field,
                    parsed=parsed.filter if parsed is not None else None,
                )
            )
        return items

    # -- ordering ------------------------------------------------------------

    def _order_by_items(self, stage: Stage, source: Schema) -> list[OrderByItem]:
        items: list[OrderByItem] = []
        for order_by_index, entry in enumerate(stage.order_by):
            match entry.field:
                case int(position):
                    field_index = position - 1
                case str(name):
                    field_index = next(
                        (i for i, ref in enumerate(stage.fields) if ref.display_name == name),
                        -1,
                    )
            if not 0 <= field_index < len(stage.fields):
                logger.info("Order-by '%s' no longer names a field in its stage", entry.field)
                continue
            ref = stage.fields[field_index]
            try:
                definition = self._navigator.field_def_for(ref, source)
            except QueryBuilderError as exc:
                logger.info("Order-by field '%s' cannot be resolved: %s", ref.display_name, exc)
                continue
            if field_kind(definition) in _UNORDERABLE:
                continue
            items.append(
                OrderByItem(
                    by_field=OrderByField(
                        name=ref.display_name,
                        field_index=field_index,
                        type=field_data_type(definition),
                    ),
                    direction=entry.direction,
                    order_by_index=order_by_index,
                )
            )
        return items

    # -- styles --------------------------------------------------------------

    def _style_items(self, name: str, kind: FieldKind, styles: DataStyles) -> list[DataStyleItem]:
        item = self._style_item(name, kind, styles)
        return [item] if item is not None else []

    @staticmethod
    def _style_item(name: str, kind: FieldKind, styles: DataStyles) -> DataStyleItem | None:
        style = styles.get(name)
        if style is None or style.renderer is None:
            return None
        return DataStyleItem(
            renderer=style.renderer,
            style_key=name,
            can_remove=name in styles,
            allowed_renderers=allowed_renderers(kind),
        )
