"""Identifier quoting and name formatting for rendered query text."""

from __future__ import annotations

import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")

RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "accept",
        "aggregate",
        "all",
        "and",
        "as",
        "asc",
        "avg",
        "by",
        "case",
        "cast",
        "count",
        "day",
        "declare",
        "desc",
        "dimension",
        "else",
        "end",
        "except",
        "false",
        "for",
        "from",
        "group_by",
        "having",
        "hour",
        "import",
        "is",
        "join_many",
        "join_one",
        "limit",
        "max",
        "measure",
        "min",
        "minute",
        "month",
        "nest",
        "not",
        "now",
        "null",
        "on",
        "or",
        "order_by",
        "pick",
        "primary_key",
        "project",
        "quarter",
        "query",
        "rename",
        "run",
        "second",
        "select",
        "source",
        "sum",
        "table",
        "then",
        "to",
        "top",
        "true",
        "week",
        "when",
        "where",
        "with",
        "year",
    }
)


def quote_identifier(name: str) -> str:
    """Back-quote ``name`` unless it is a plain, non-reserved identifier."""
    if _IDENTIFIER_RE.match(name) and name.lower() not in RESERVED_WORDS:
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def quote_path(path: str) -> str:
    """Quote each segment of a dotted field path."""
    return ".".join(quote_identifier(part) for part in path.split("."))


def snake_to_title(name: str) -> str:
    """``flights_by_carrier`` -> ``Flights By Carrier``."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_") if word)
