"""Structured issue models with YAML source position tracking."""

from __future__ import annotations

from pydantic import BaseModel


class SourceSpan(BaseModel):
    """Points to exact location in YAML source for error reporting."""

    file: str
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None


class SchemaIssue(BaseModel):
    """A single schema loading problem with optional source position."""

    code: str
    message: str
    path: str | None = None
    span: SourceSpan | None = None
