"""Layout-aware text fragments. Query text is built from these, never by joining lines."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import assert_never


class Layout(Enum):
    """Layout instructions interleaved with literal text."""

    INDENT = "indent"
    OUTDENT = "outdent"
    NEWLINE = "newline"


INDENT = Layout.INDENT
OUTDENT = Layout.OUTDENT
NEWLINE = Layout.NEWLINE

# A piece of literal text or a layout instruction.
Fragment = str | Layout


def render_fragments(fragments: Iterable[Fragment], tab_width: int = 2) -> str:
    """Render a fragment stream in one pass.

    Leading whitespace is written only when the first text of a line is
    emitted, so indentation changes apply to the following line.
    """
    parts: list[str] = []
    depth = 0
    start_of_line = True
    for fragment in fragments:
        match fragment:
            case Layout.NEWLINE:
                parts.append("\n")
                start_of_line = True
            case Layout.INDENT:
                depth += 1
            case Layout.OUTDENT:
                if depth == 0:
                    raise ValueError("Unbalanced outdent in fragment stream")
                depth -= 1
            case str():
                if start_of_line:
                    parts.append(" " * (depth * tab_width))
                    start_of_line = False
                parts.append(fragment)
            case _:
                assert_never(fragment)
    return "".join(parts)
