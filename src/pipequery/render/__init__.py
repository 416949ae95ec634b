"""Read-only projections of a query tree: query text and the structural summary."""

from pipequery.render.fragments import INDENT, NEWLINE, OUTDENT, Fragment, Layout, render_fragments
from pipequery.render.summary import SummaryBuilder
from pipequery.render.writer import QueryWriter

__all__ = [
    "INDENT",
    "NEWLINE",
    "OUTDENT",
    "Fragment",
    "Layout",
    "QueryWriter",
    "SummaryBuilder",
    "render_fragments",
]
