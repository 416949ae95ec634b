"""Path-addressed editing of a query tree."""

from pipequery.editor.builder import QueryBuilder, QueryStrings

__all__ = ["QueryBuilder", "QueryStrings"]
