"""Fragment builders for clauses shared by the text and summary projections."""

from __future__ import annotations

from pipequery.models.query import FilterExpression, OrderBy, RefinedName
from pipequery.render.fragments import INDENT, NEWLINE, OUTDENT, Fragment
from pipequery.render.identifiers import quote_identifier, quote_path


def filter_fragments(filters: list[FilterExpression]) -> list[Fragment]:
    """Body of a ``where:`` clause: inline for one filter, one per line otherwise."""
    fragments: list[Fragment] = []
    if len(filters) == 1:
        fragments.append(" ")
    else:
        fragments.extend([NEWLINE, INDENT])
    for index, expression in enumerate(filters):
        fragments.append(expression.code)
        if index != len(filters) - 1:
            fragments.append(",")
        fragments.append(NEWLINE)
    if len(filters) > 1:
        fragments.append(OUTDENT)
    return fragments


def refined_fragments(ref: RefinedName, *, with_alias: bool = True) -> list[Fragment]:
    """``alias is path { where: ... }`` for a refined reference."""
    head = quote_path(ref.path)
    if with_alias and ref.alias is not None:
        head = f"{quote_identifier(ref.alias)} is {head}"
    fragments: list[Fragment] = [head]
    if ref.filters:
        fragments.extend([" {", NEWLINE, INDENT, "where:"])
        fragments.extend(filter_fragments(ref.filters))
        fragments.extend([OUTDENT, "}"])
    return fragments


def order_by_code(entry: OrderBy) -> str:
    """One order-by term: the referenced name's last segment plus direction."""
    match entry.field:
        case int(position):
            name = str(position)
        case str(field_name):
            name = quote_identifier(field_name.rsplit(".", 1)[-1])
    if entry.direction is None:
        return name
    return f"{name} {entry.direction.value}"
