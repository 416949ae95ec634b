"""Query builder: the mutable, path-addressed pipeline tree of one named query."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import assert_never

from pipequery.errors import (
    InvalidOperationError,
    MergeConflictError,
    NotAStageError,
    PathError,
    QueryBuilderError,
)
from pipequery.models.path import StagePath
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
from pipequery.models.schema import Schema, field_kind
from pipequery.models.summary import QuerySummary
from pipequery.models.types import FieldKind, SortDirection, StageType
from pipequery.render.writer import QueryWriter
from pipequery.schema.navigator import SchemaNavigator
from pipequery.settings import Settings
from pipequery.styles import DataStyle

logger = logging.getLogger("pipequery.editor")

# Accepted wherever a stage path is expected: ``None`` and ``[]`` both mean
# stage 0 of the root pipeline.
PathLike = StagePath | Sequence[int | tuple[int, int | None]] | None
FilterLike = FilterExpression | str

# Insertion rank per field kind; new fields go before the first strictly higher rank.
_RANKS: dict[FieldKind, int] = {
    FieldKind.DIMENSION: 0,
    FieldKind.MEASURE: 1,
    FieldKind.QUERY: 2,
    FieldKind.SOURCE: 3,
}


@dataclass
class QueryStrings:
    """All text projections of the current query at once."""

    model: str
    source: str
    markdown: str
    is_runnable: bool


@dataclass
class _Located:
    """Where a walk along a stage path stopped.

    ``blocked`` is the field at ``hops[depth].field_index`` when that field is
    not a nested query; ``stage`` is then the stage holding it.
    """

    stage: Stage
    source: Schema
    depth: int
    blocked: FieldRef | None = None


def _as_path(path: PathLike) -> StagePath:
    if path is None:
        return StagePath()
    if isinstance(path, StagePath):
        return path
    return StagePath.from_hops(path)


def _as_filter(value: FilterLike) -> FilterExpression:
    if isinstance(value, FilterExpression):
        return value
    return FilterExpression(code=value)


class QueryBuilder:
    """Owns one named query and applies structural edits to it.

    Every edit addresses a stage with a ``StagePath``. Stages inside nested
    queries are reached by descending through nested-query fields; a bare or
    refined reference to a schema query on the way is promoted into an
    explicit copy when the edit needs to reach inside it.

    Accessors that hand out parts of the tree return deep copies.
    """

    def __init__(
        self,
        schema: Schema,
        *,
        navigator: SchemaNavigator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._schema = schema
        self._navigator = navigator or SchemaNavigator()
        self._settings = settings or Settings()
        self._query = self._blank_query()

    # -- query lifecycle -----------------------------------------------------

    @property
    def schema(self) -> Schema:
        return self._schema

    def update_schema(self, schema: Schema) -> None:
        self._schema = schema

    @property
    def name(self) -> str:
        return self._query.name

    def set_name(self, name: str) -> None:
        self._query.name = name

    def is_empty(self) -> bool:
        return self._query == self._blank_query()

    def clear_query(self) -> None:
        self._query = self._blank_query()

    def get_query(self) -> Query:
        return self._query.model_copy(deep=True)

    def set_query(self, query: Query) -> None:
        """Replace the tree with a copy of ``query``, named by its display name."""
        pipeline = [stage.model_copy(deep=True) for stage in query.pipeline]
        self._query = Query(name=query.display_name, pipeline=pipeline or [Stage()])

    def can_run(self) -> bool:
        return bool(self._query.pipeline[0].fields)

    def _blank_query(self) -> Query:
        return Query(name=self._settings.default_query_name)

    # -- stage resolution ----------------------------------------------------

    def get_stage(self, path: PathLike) -> Stage:
        return self._stage_at(_as_path(path)).model_copy(deep=True)

    def source_for_stage(self, path: PathLike) -> Schema:
        """The schema the addressed stage reads: the root schema projected through
        every stage before it, at every nesting level."""
        located = self._walk(_as_path(path))
        if located.blocked is not None:
            raise NotAStageError("Path does not refer to a stage", located.blocked)
        return located.source

    def _walk(self, path: StagePath) -> _Located:
        hops = path.normalized
        pipeline = self._query.pipeline
        source = self._schema
        for depth, hop in enumerate(hops):
            if hop.stage_index >= len(pipeline):
                raise PathError(
                    f"Stage {hop.stage_index} does not exist (pipeline has {len(pipeline)})"
                )
            source = self._navigator.project_pipeline(source, pipeline[: hop.stage_index])
            stage = pipeline[hop.stage_index]
            if hop.field_index is None:
                return _Located(stage, source, depth)
            if hop.field_index >= len(stage.fields):
                raise PathError(f"Field {hop.field_index} does not exist in stage")
            field = stage.fields[hop.field_index]
            if not isinstance(field, Query):
                return _Located(stage, source, depth, blocked=field)
            # A nested query's first stage reads the same input as its parent stage.
            pipeline = field.pipeline
        raise PathError("Empty stage path")

    def _stage_at(self, path: StagePath) -> Stage:
        located = self._walk(path)
        if located.blocked is not None:
            raise NotAStageError("Path does not refer to a stage", located.blocked)
        return located.stage

    def _stage_and_source(self, path: StagePath) -> tuple[Stage, Schema]:
        located = self._walk(path)
        if located.blocked is not None:
            raise NotAStageError("Path does not refer to a stage", located.blocked)
        return located.stage, located.source

    @staticmethod
    def _field_at(stage: Stage, field_index: int) -> FieldRef:
        if not 0 <= field_index < len(stage.fields):
            raise PathError(f"Field {field_index} does not exist in stage")
        return stage.fields[field_index]

    @staticmethod
    def _require_reduce(stage: Stage) -> None:
        if stage.type is not StageType.REDUCE:
            raise InvalidOperationError(f"Cannot edit a {stage.type.value} stage this way")

    # -- promotion -----------------------------------------------------------

    def find_promotable(self, path: PathLike) -> tuple[StagePath, int] | None:
        """The (stage path, field index) whose promotion would let ``path`` resolve.

        Returns ``None`` when the path already resolves, or when the blocking
        field is not a reference to a query.
        """
        stage_path = _as_path(path)
        located = self._walk(stage_path)
        match located.blocked:
            case None | Query() | InlineField():
                return None
            case FieldName() | RefinedName() as ref:
                try:
                    definition = self._navigator.field_def_for(ref, located.source)
                except QueryBuilderError as exc:
                    logger.info("Cannot promote '%s': %s", ref.display_name, exc)
                    return None
                if not isinstance(definition, Query):
                    return None
                field_index = stage_path.normalized[located.depth].field_index
                assert field_index is not None
                return stage_path.truncate(located.depth), field_index
            case _:
                assert_never(located.blocked)

    def promote_field(self, path: PathLike, field_index: int) -> Query:
        """Replace a reference to a schema query by an explicit, independent copy of it."""
        stage, source = self._stage_and_source(_as_path(path))
        ref = self._field_at(stage, field_index)
        match ref:
            case Query():
                return ref
            case InlineField():
                raise InvalidOperationError(f"'{ref.display_name}' is not a query")
            case FieldName() | RefinedName():
                definition = self._navigator.field_def_for(ref, source)
            case _:
                assert_never(ref)
        if not isinstance(definition, Query):
            raise InvalidOperationError(f"'{ref.display_name}' is not a query")
        promoted = definition.model_copy(deep=True)
        if isinstance(ref, RefinedName):
            if ref.alias is not None:
                promoted.alias = ref.alias
            if ref.filters:
                if not promoted.pipeline:
                    promoted.pipeline.append(Stage())
                first = promoted.pipeline[0]
                first.filters = [f.model_copy() for f in ref.filters] + first.filters
        if not promoted.pipeline:
            promoted.pipeline.append(Stage())
        stage.fields[field_index] = promoted
        logger.info("Promoted '%s' to an explicit nested query", ref.display_name)
        return promoted

    def auto_expand(self, path: PathLike) -> Stage:
        """Resolve ``path`` to a live stage, promoting one blocking query reference first."""
        stage_path = _as_path(path)
        blocker = self.find_promotable(stage_path)
        if blocker is not None:
            self.promote_field(*blocker)
        return self._stage_at(stage_path)

    # -- fields --------------------------------------------------------------

    def insert_field(self, path: PathLike, ref: FieldRef) -> int:
        """Insert ``ref`` at its ranked position and return that position.

        Dimensions come before calculations, calculations before nested
        queries, nested queries before structures; the new field goes before
        the first existing field of strictly greater rank.
        """
        stage_path = _as_path(path)
        stage = self.auto_expand(stage_path)
        source = self.source_for_stage(stage_path)
        rank = _RANKS[field_kind(self._navigator.field_def_for(ref, source))]
        index = len(stage.fields)
        for position, existing in enumerate(stage.fields):
            try:
                existing_def = self._navigator.field_def_for(existing, source)
            except QueryBuilderError as exc:
                logger.warning(
                    "Ignoring unresolvable field '%s' while placing '%s': %s",
                    existing.display_name,
                    ref.display_name,
                    exc,
                )
                continue
            if _RANKS[field_kind(existing_def)] > rank:
                index = position
                break
        stage.fields.insert(index, ref)
        return index

    def add_field(self, path: PathLike, dotted: str) -> int:
        return self.insert_field(path, FieldName(path=dotted))

    def add_new_nested_query(self, path: PathLike, name: str) -> int:
        return self.insert_field(path, Query(name=name))

    def add_new_field(self, path: PathLike, definition: InlineField) -> int:
        return self.insert_field(path, definition)

    def edit_field_definition(self, path: PathLike, field_index: int, definition: FieldRef) -> None:
        stage = self._stage_at(_as_path(path))
        self._field_at(stage, field_index)
        stage.fields[field_index] = definition

    def replace_saved_field(self, path: PathLike, field_index: int, dotted: str) -> None:
        """Swap a field for a bare reference to a definition saved in the schema."""
        stage = self._stage_at(_as_path(path))
        self._field_at(stage, field_index)
        stage.fields[field_index] = FieldName(path=dotted)

    def get_field_index(self, path: PathLike, dotted: str) -> int | None:
        stage = self._stage_at(_as_path(path))
        for index, ref in enumerate(stage.fields):
            if isinstance(ref, FieldName) and ref.path == dotted:
                return index
        return None

    def has_field(self, path: PathLike, dotted: str) -> bool:
        return self.get_field_index(path, dotted) is not None

    def toggle_field(self, path: PathLike, dotted: str) -> None:
        """Remove the bare reference ``dotted`` if present, otherwise add it."""
        self.auto_expand(path)
        index = self.get_field_index(path, dotted)
        if index is None:
            self.add_field(path, dotted)
        else:
            self.remove_field(path, index)

    def remove_field(self, path: PathLike, field_index: int) -> None:
        stage = self._stage_at(_as_path(path))
        name = self._field_at(stage, field_index).display_name
        stage.order_by = [entry for entry in stage.order_by if entry.field != name]
        del stage.fields[field_index]

    def reorder_fields(self, path: PathLike, order: Sequence[int]) -> None:
        stage = self._stage_at(_as_path(path))
        if sorted(order) != list(range(len(stage.fields))):
            raise ValueError(
                f"{list(order)} is not a permutation of the stage's {len(stage.fields)} fields"
            )
        stage.fields = [stage.fields[index] for index in order]

    def rename_field(self, path: PathLike, field_index: int, alias: str) -> None:
        """Give a field a new display name and point its order-by entries at it."""
        stage = self._stage_at(_as_path(path))
        self._require_reduce(stage)
        ref = self._field_at(stage, field_index)
        old_name = ref.display_name
        for entry in stage.order_by:
            if entry.field == old_name:
                entry.field = alias
        match ref:
            case FieldName(path=dotted):
                stage.fields[field_index] = RefinedName(path=dotted, alias=alias)
            case RefinedName() | Query() | InlineField():
                ref.alias = alias
            case _:
                assert_never(ref)

    # -- filters -------------------------------------------------------------

    def add_filter(self, path: PathLike, expression: FilterLike) -> None:
        stage = self.auto_expand(path)
        stage.filters.append(_as_filter(expression))

    def add_filter_to_field(
        self,
        path: PathLike,
        field_index: int,
        expression: FilterLike,
        alias: str | None = None,
    ) -> None:
        """Add a private filter to one field, renaming it first when ``alias`` is given.

        A bare reference must be renamed to carry filters.
        """
        stage_path = _as_path(path)
        stage = self._stage_at(stage_path)
        self._require_reduce(stage)
        ref = self._field_at(stage, field_index)
        match ref:
            case RefinedName():
                pass
            case FieldName():
                if alias is None:
                    raise InvalidOperationError(
                        f"'{ref.path}' must be renamed before it can carry filters"
                    )
            case Query() | InlineField():
                raise InvalidOperationError(
                    f"Field filters apply to schema references, not to '{ref.display_name}'"
                )
            case _:
                assert_never(ref)
        filter_expression = _as_filter(expression)
        if alias is not None:
            self.rename_field(stage_path, field_index, alias)
        refined = stage.fields[field_index]
        assert isinstance(refined, RefinedName)
        refined.filters.append(filter_expression)

    def edit_filter(
        self,
        path: PathLike,
        filter_index: int,
        expression: FilterLike,
        field_index: int | None = None,
    ) -> None:
        filters = self._filter_list(path, field_index)
        if not 0 <= filter_index < len(filters):
            raise InvalidOperationError(f"Filter {filter_index} does not exist")
        filters[filter_index] = _as_filter(expression)

    def remove_filter(
        self, path: PathLike, filter_index: int, field_index: int | None = None
    ) -> None:
        filters = self._filter_list(path, field_index)
        if not 0 <= filter_index < len(filters):
            raise InvalidOperationError(f"Filter {filter_index} does not exist")
        del filters[filter_index]

    def _filter_list(self, path: PathLike, field_index: int | None) -> list[FilterExpression]:
        stage = self._stage_at(_as_path(path))
        if field_index is None:
            return stage.filters
        ref = self._field_at(stage, field_index)
        if not isinstance(ref, RefinedName):
            raise InvalidOperationError(f"'{ref.display_name}' has no field filters")
        return ref.filters

    # -- limit and ordering --------------------------------------------------

    def has_limit(self, path: PathLike) -> bool:
        stage = self._stage_at(_as_path(path))
        self._require_reduce(stage)
        return stage.limit is not None

    def add_limit(
        self,
        path: PathLike,
        limit: int,
        order_field: str | None = None,
        direction: SortDirection | None = None,
    ) -> None:
        """Set the row limit; with ``order_field`` the ordering is replaced by that field."""
        stage = self.auto_expand(path)
        self._require_reduce(stage)
        stage.limit = limit
        if order_field is not None:
            stage.order_by = [OrderBy(field=order_field, direction=direction)]

    def remove_limit(self, path: PathLike) -> None:
        stage = self.auto_expand(path)
        stage.limit = None

    def add_order_by(
        self, path: PathLike, field_index: int, direction: SortDirection | None = None
    ) -> None:
        stage = self.auto_expand(path)
        self._require_reduce(stage)
        ref = self._field_at(stage, field_index)
        stage.order_by.append(OrderBy(field=ref.display_name, direction=direction))

    def edit_order_by(
        self, path: PathLike, order_by_index: int, direction: SortDirection | None
    ) -> None:
        stage = self.auto_expand(path)
        self._require_reduce(stage)
        if not 0 <= order_by_index < len(stage.order_by):
            raise InvalidOperationError(f"Order-by {order_by_index} does not exist")
        stage.order_by[order_by_index].direction = direction

    def remove_order_by(self, path: PathLike, order_by_index: int) -> None:
        stage = self.auto_expand(path)
        self._require_reduce(stage)
        if not 0 <= order_by_index < len(stage.order_by):
            raise InvalidOperationError(f"Order-by {order_by_index} does not exist")
        del stage.order_by[order_by_index]

    # -- stages --------------------------------------------------------------

    def add_stage(self, path: PathLike = None, field_index: int | None = None) -> None:
        """Append an empty stage to the root pipeline, or to the nested query at
        ``field_index`` of the stage at ``path``."""
        if path is None:
            self._query.pipeline.append(Stage())
            return
        if field_index is None:
            raise ValueError("field_index is required when a stage path is given")
        stage = self._stage_at(_as_path(path))
        ref = self._field_at(stage, field_index)
        query = ref if isinstance(ref, Query) else self.promote_field(path, field_index)
        query.pipeline.append(Stage())

    def remove_stage(self, path: PathLike) -> None:
        """Remove a stage; an emptied pipeline gets one empty stage back."""
        parent, field_index, stage_index = _as_path(path).parent()
        if parent is None:
            pipeline = self._query.pipeline
        else:
            assert field_index is not None
            ref = self._field_at(self._stage_at(parent), field_index)
            if not isinstance(ref, Query):
                raise NotAStageError("Path does not refer to a stage", ref)
            pipeline = ref.pipeline
        if stage_index >= len(pipeline):
            raise PathError(f"Stage {stage_index} does not exist (pipeline has {len(pipeline)})")
        del pipeline[stage_index]
        if not pipeline:
            pipeline.append(Stage())

    # -- whole-query operations ----------------------------------------------

    def load_query(self, dotted: str) -> None:
        """Merge the schema query at ``dotted`` into the current pipeline.

        The first stage is merged field by field. Later stages are copied when
        the current pipeline has none at that position.
        """
        definition = self._navigator.resolve_field(self._schema, dotted)
        if not isinstance(definition, Query):
            raise InvalidOperationError(f"'{dotted}' is not a query")
        pipeline = self._query.pipeline
        for stage_index in range(1, len(definition.pipeline)):
            if stage_index < len(pipeline):
                raise MergeConflictError(
                    f"Cannot merge stage {stage_index} of '{dotted}' into an existing stage"
                )
        for stage_index, loaded in enumerate(definition.pipeline):
            if stage_index >= len(pipeline):
                pipeline.append(loaded.model_copy(deep=True))
                continue
            self._merge_stage(pipeline[stage_index], loaded)
        self._query.name = definition.display_name

    @staticmethod
    def _merge_stage(existing: Stage, loaded: Stage) -> None:
        if existing.type is not StageType.REDUCE or loaded.type is not StageType.REDUCE:
            raise InvalidOperationError("Only reduce stages can be merged")
        if loaded.by is not None:
            existing.by = loaded.by.model_copy()
            existing.order_by = []
        known = {f.code for f in existing.filters}
        existing.filters.extend(f.model_copy() for f in loaded.filters if f.code not in known)
        if loaded.limit is not None:
            existing.limit = loaded.limit
        if loaded.order_by:
            existing.order_by = [entry.model_copy() for entry in loaded.order_by]
            existing.by = None
        loaded_names = {ref.display_name for ref in loaded.fields}
        existing.fields = [ref.model_copy(deep=True) for ref in loaded.fields] + [
            ref for ref in existing.fields if ref.display_name not in loaded_names
        ]

    def replace_query(self, query: Query) -> None:
        """Replace the tree with ``query``, keeping filters set on a still-empty query."""
        current = self._query.pipeline
        carried = (
            [f.model_copy() for f in current[0].filters]
            if len(current) == 1 and not current[0].fields
            else []
        )
        pipeline = [stage.model_copy(deep=True) for stage in query.pipeline] or [Stage()]
        pipeline[0].filters = carried + pipeline[0].filters
        self._query = Query(name=query.display_name, pipeline=pipeline)

    # -- rendering -----------------------------------------------------------

    def get_writer(self) -> QueryWriter:
        """A writer over a snapshot of the current tree."""
        return QueryWriter(
            self.get_query(),
            self._schema,
            navigator=self._navigator,
            settings=self._settings,
        )

    def get_query_summary(self, styles: Mapping[str, DataStyle]) -> QuerySummary:
        return self.get_writer().get_query_summary(styles)

    def get_query_string_for_model(self) -> str:
        return self.get_writer().get_query_string_for_model()

    def get_query_string_for_source(self, name: str) -> str:
        return self.get_writer().get_query_string_for_source(name)

    def get_query_string_for_markdown(self, renderer: str | None, model_path: str) -> str:
        return self.get_writer().get_query_string_for_markdown(renderer, model_path)

    def get_query_strings(self, renderer: str | None, model_path: str) -> QueryStrings:
        writer = self.get_writer()
        return QueryStrings(
            model=writer.get_query_string_for_model(),
            source=writer.get_query_string_for_source(self._query.name),
            markdown=writer.get_query_string_for_markdown(renderer, model_path),
            is_runnable=self.can_run(),
        )
