"""Load schemas from YAML, keeping source positions for error reporting."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError

from pipequery.errors import SchemaLoadError, YAMLSafetyError
from pipequery.models.errors import SchemaIssue, SourceSpan
from pipequery.models.schema import Schema

# ---------------------------------------------------------------------------
# Safety limits
# ---------------------------------------------------------------------------

_MAX_DOCUMENT_SIZE = 5_000_000  # characters
_MAX_NODE_COUNT = 50_000
# fields -> pipeline -> stage -> fields repeats for every level of nesting.
_MAX_DEPTH = 64

# An anchor is "&name" at line start or after whitespace, "-" or ":".
# Quoted strings are not excluded.
_ANCHOR_RE = re.compile(r"(?:^|[\s\-:])&(\w+)", re.MULTILINE)


def _reject_unsafe_text(content: str) -> None:
    if len(content) > _MAX_DOCUMENT_SIZE:
        raise YAMLSafetyError(
            f"YAML document exceeds maximum size "
            f"({len(content):,} chars > {_MAX_DOCUMENT_SIZE:,} limit)"
        )
    if _ANCHOR_RE.search(content):
        raise YAMLSafetyError("YAML anchors/aliases are not supported in schemas")


@dataclass
class SourceMap:
    """Source positions keyed by ``fields[0].name``-style paths."""

    _positions: dict[str, SourceSpan] = field(default_factory=dict)

    def add(self, path: str, span: SourceSpan) -> None:
        self._positions[path] = span

    def get(self, path: str) -> SourceSpan | None:
        return self._positions.get(path)

    def nearest(self, path: str) -> SourceSpan | None:
        """Position of ``path`` or of its closest recorded ancestor."""
        while path:
            span = self._positions.get(path)
            if span is not None:
                return span
            cut = max(path.rfind("."), path.rfind("["))
            path = path[:cut] if cut > 0 else ""
        return None

    @property
    def paths(self) -> list[str]:
        return list(self._positions)


class _DocumentReader:
    """One walk over a parsed document.

    Copies it into plain dicts, lists and scalars, records where each key and
    item sits, and enforces the node-count and depth limits on the way.
    """

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.source_map = SourceMap()
        self._nodes = 0

    def read(self, node: Any, path: str = "", depth: int = 0) -> Any:
        self._nodes += 1
        if self._nodes > _MAX_NODE_COUNT:
            raise YAMLSafetyError(f"YAML document exceeds maximum node count ({_MAX_NODE_COUNT:,})")
        if depth > _MAX_DEPTH:
            raise YAMLSafetyError(f"YAML document exceeds maximum nesting depth ({_MAX_DEPTH})")
        if isinstance(node, CommentedMap):
            plain: dict[str, Any] = {}
            for key, value in node.items():
                key_path = f"{path}.{key}" if path else str(key)
                self._mark(key_path, node.lc.key(key))
                plain[str(key)] = self.read(value, key_path, depth + 1)
            return plain
        if isinstance(node, CommentedSeq):
            items: list[Any] = []
            for index, value in enumerate(node):
                item_path = f"{path}[{index}]"
                self._mark(item_path, node.lc.item(index))
                items.append(self.read(value, item_path, depth + 1))
            return items
        if isinstance(node, str):
            # Quoted scalars come back as str subclasses.
            return str(node)
        return node

    def _mark(self, path: str, position: tuple[int, int]) -> None:
        line, column = position
        self.source_map.add(
            path, SourceSpan(file=self.filename, line=line + 1, column=column + 1)
        )


class SchemaLoader:
    """Reads ``Schema`` documents with ruamel.yaml, which keeps line/column info."""

    def __init__(self) -> None:
        self._yaml = YAML()
        self._yaml.preserve_quotes = True

    def parse(self, content: str, filename: str = "<string>") -> tuple[dict[str, Any], SourceMap]:
        """Parse YAML text into a plain dict plus a source position map."""
        _reject_unsafe_text(content)
        try:
            data = self._yaml.load(content)
        except YAMLError as exc:
            raise SchemaLoadError(
                [SchemaIssue(code="YAML_PARSE_ERROR", message=str(exc), path=filename)]
            ) from exc
        reader = _DocumentReader(filename)
        if data is None:
            return {}, reader.source_map
        plain = reader.read(data)
        return (plain if isinstance(plain, dict) else {}), reader.source_map

    def load_string(self, content: str, filename: str = "<string>") -> Schema:
        """Load and validate a schema from YAML text."""
        raw, source_map = self.parse(content, filename)
        return self._build(raw, source_map)

    def load(self, path: Path) -> Schema:
        """Load and validate a schema from a YAML file."""
        return self.load_string(path.read_text(encoding="utf-8"), str(path))

    def _build(self, raw: dict[str, Any], source_map: SourceMap) -> Schema:
        if not raw:
            raise SchemaLoadError(
                [SchemaIssue(code="EMPTY_SCHEMA", message="Schema document is empty")]
            )
        try:
            return Schema.model_validate(raw)
        except ValidationError as exc:
            issues: list[SchemaIssue] = []
            for error in exc.errors():
                path = _issue_path(raw, error["loc"])
                where = f" at '{path}'" if path else ""
                issues.append(
                    SchemaIssue(
                        code="SCHEMA_VALIDATION_ERROR",
                        message=f"{error['msg']}{where}",
                        path=path or None,
                        span=source_map.nearest(path) if path else None,
                    )
                )
            raise SchemaLoadError(issues) from exc


def _issue_path(raw: dict[str, Any], loc: tuple[int | str, ...]) -> str:
    """Translate a pydantic error location into a YAML key path.

    Union tags and member names that pydantic inserts into ``loc`` have no
    counterpart in the document and are skipped.
    """
    node: Any = raw
    path = ""
    for part in loc:
        if isinstance(part, int) and isinstance(node, list) and 0 <= part < len(node):
            path = f"{path}[{part}]"
            node = node[part]
        elif isinstance(part, str) and isinstance(node, dict) and part in node:
            path = f"{path}.{part}" if path else part
            node = node[part]
    return path
