"""Per-field display hints and the renderer kinds each field shape may use."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel

from pipequery.models.types import FieldKind


class DataStyle(BaseModel):
    """Display hint for one field or query, keyed by display name."""

    renderer: str | None = None

    model_config = {"extra": "allow"}


DataStyles = Mapping[str, DataStyle]

QUERY_RENDERERS: tuple[str, ...] = (
    "table",
    "bar_chart",
    "dashboard",
    "json",
    "line_chart",
    "list",
    "list_detail",
    "point_map",
    "scatter_chart",
    "segment_map",
    "shape_map",
    "sparkline",
)

SCALAR_RENDERERS: tuple[str, ...] = (
    "number",
    "boolean",
    "currency",
    "image",
    "link",
    "percent",
    "text",
    "time",
)


def allowed_renderers(kind: FieldKind) -> list[str]:
    """Renderers a field of ``kind`` may be displayed with."""
    if kind in (FieldKind.QUERY, FieldKind.SOURCE):
        return list(QUERY_RENDERERS)
    return list(SCALAR_RENDERERS)
