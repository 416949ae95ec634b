"""Exceptions raised by the schema navigator, the query builder and the loader."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipequery.models.errors import SchemaIssue


class QueryBuilderError(Exception):
    """Base class for every error raised while navigating or editing a query."""


class PathError(QueryBuilderError):
    """A stage path does not address a stage in the current query tree."""


class NotAStageError(PathError):
    """An intermediate hop of a stage path names a field that is not a nested query."""

    def __init__(self, message: str, field: Any) -> None:
        super().__init__(message)
        self.field = field


class InvalidPathError(QueryBuilderError):
    """A dotted field path descends through a field that has no fields of its own."""


class FieldNotFoundError(QueryBuilderError):
    """A dotted field path names a field the schema does not have."""

    def __init__(self, path: str, segment: str) -> None:
        if path == segment:
            message = f"Could not find field '{segment}'"
        else:
            message = f"Could not find field '{segment}' (in '{path}')"
        super().__init__(message)
        self.path = path
        self.segment = segment


class InvalidOperationError(QueryBuilderError):
    """The addressed stage or field does not support the requested edit."""


class MergeConflictError(QueryBuilderError):
    """A named query cannot be merged into the current pipeline."""


class YAMLSafetyError(QueryBuilderError):
    """Raised when YAML input violates safety constraints.

    Distinct from parse errors: these indicate potentially malicious input
    (billion-laughs anchors, excessive nesting, oversized documents).
    """


class SchemaLoadError(QueryBuilderError):
    """Raised when a schema document fails to parse or validate."""

    def __init__(self, issues: list[SchemaIssue]) -> None:
        self.issues = issues
        msgs = "; ".join(issue.message for issue in issues)
        super().__init__(f"Schema validation failed: {msgs}")
