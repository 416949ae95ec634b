"""Filter parsing: decomposes simple filter source text into a field and a predicate."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel


class FilterOperator(StrEnum):
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    MATCHES = "~"
    NOT_MATCHES = "!~"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


class ParsedPredicate(BaseModel):
    """A structured predicate: an operator and an optional literal operand."""

    operator: FilterOperator
    value: bool | int | float | str | None = None


class ParsedFilter(BaseModel):
    """A filter decomposed into the field it constrains and the predicate."""

    field: str
    filter: ParsedPredicate


class FilterParser(Protocol):
    """Turns filter source text into a ``ParsedFilter``.

    ``None`` means the filter is render-only: shown as source text with no
    structural decomposition.
    """

    def parse(self, source: str) -> ParsedFilter | None: ...


_COMPARISON_RE = re.compile(
    r"^\s*(?P<field>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)"
    r"\s*(?P<op>!=|>=|<=|!~|=|>|<|~)"
    r"\s*(?P<value>.+?)\s*$"
)
_NUMBER_RE = re.compile(r"^-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?$")
_STRING_RE = re.compile(r"^(?P<quote>['\"])(?P<body>.*)(?P=quote)$")

_UNPARSEABLE = object()


def _parse_literal(raw: str) -> object:
    lowered = raw.lower()
    if lowered == "null":
        return None
    if lowered in ("true", "false"):
        return lowered == "true"
    if _NUMBER_RE.match(raw):
        if any(ch in raw for ch in ".eE"):
            return float(raw)
        return int(raw)
    string_match = _STRING_RE.match(raw)
    if string_match:
        quote = string_match.group("quote")
        body = string_match.group("body")
        if re.search(rf"(?<!\\){re.escape(quote)}", body):
            return _UNPARSEABLE
        return body.replace(f"\\{quote}", quote).replace("\\\\", "\\")
    return _UNPARSEABLE


class ComparisonFilterParser:
    """Recognises ``<path> <op> <literal>`` filters.

    Anything more complex (boolean combinations, ranges, function calls)
    is left unparsed.
    """

    def parse(self, source: str) -> ParsedFilter | None:
        match = _COMPARISON_RE.match(source)
        if match is None:
            return None
        value = _parse_literal(match.group("value"))
        if value is _UNPARSEABLE:
            return None
        operator = FilterOperator(match.group("op"))
        if value is None:
            if operator is FilterOperator.EQUALS:
                operator = FilterOperator.IS_NULL
            elif operator is FilterOperator.NOT_EQUALS:
                operator = FilterOperator.IS_NOT_NULL
            else:
                return None
        elif operator in (FilterOperator.MATCHES, FilterOperator.NOT_MATCHES) and not isinstance(
            value, str
        ):
            return None
        return ParsedFilter(
            field=match.group("field"),
            filter=ParsedPredicate(operator=operator, value=value),
        )
