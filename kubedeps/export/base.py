"""Export formats, results and errors shared by the graph and CRD exporters."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"


_MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.MARKDOWN: "text/markdown",
}

_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.JSON: "json",
    ExportFormat.CSV: "csv",
    ExportFormat.MARKDOWN: "md",
}


class ExportError(Exception):
    """Unsupported format (400) or a failure while rendering (500)."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ExportResult:
    content: str
    format: ExportFormat
    filename: str

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self.format]

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


def parse_format(value: str | None) -> ExportFormat:
    """Resolve a ``format`` parameter; None means JSON."""
    if not value:
        return ExportFormat.JSON
    try:
        return ExportFormat(value.strip().lower())
    except ValueError:
        supported = ", ".join(f.value for f in ExportFormat)
        raise ExportError(f"Unsupported export format {value!r}; expected one of {supported}") from None


def export_filename(prefix: str, fmt: ExportFormat, now: datetime | None = None) -> str:
    """``<prefix>-<UTC timestamp>.<ext>``, e.g. ``dependency-graph-20240101T120000Z.csv``."""
    moment = now or datetime.now(UTC)
    return f"{prefix}-{moment:%Y%m%dT%H%M%SZ}.{_EXTENSIONS[fmt]}"


def dump_json(payload: Any) -> str:
    try:
        return json.dumps(payload, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ExportError(f"Failed to serialize export: {exc}", status_code=500) from exc
