"""Data models shared by the locator, the summarizer and the artifact writers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from numbers import Integral
from pathlib import Path
from types import MappingProxyType
from typing import Any


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_tuple(values: Sequence[Any] | None, field_name: str) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return tuple(normalized)


# ── Locating ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReportFile:
    """A workbook on disk together with the date encoded in its name."""

    path: Path
    report_date: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    @property
    def name(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), "report_date": self.report_date.isoformat()}


class SkipReason(str, Enum):
    PATTERN_MISMATCH = "pattern_mismatch"
    DATE_PARSE_FAILURE = "date_parse_failure"


@dataclass(frozen=True)
class SkippedFile:
    name: str
    reason: SkipReason


@dataclass(frozen=True)
class LocateResult:
    """Outcome of scanning a report directory.

    ``files`` is sorted ascending by ``(report_date, name)``. A directory that
    is missing or cannot be listed produces an empty result with
    ``directory_error`` set instead of raising.
    """

    directory: Path
    files: tuple[ReportFile, ...] = ()
    skipped: tuple[SkippedFile, ...] = ()
    directory_error: str | None = None

    @property
    def latest(self) -> ReportFile | None:
        return self.files[-1] if self.files else None

    @property
    def is_empty(self) -> bool:
        return not self.files


# ── Summaries ────────────────────────────────────────────────────


@dataclass(frozen=True)
class SheetSummary:
    """Shape of one worksheet: headers, non-blank row count and retained rows.

    Contract invariant: ``row_count >= len(rows)``; blank rows are neither
    counted nor retained.
    """

    sheet_name: str
    row_count: int = 0
    column_headers: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_count", _to_non_negative_int(self.row_count, "row_count"))
        object.__setattr__(
            self, "column_headers", _to_string_tuple(self.column_headers, "column_headers")
        )
        object.__setattr__(
            self, "rows", tuple(_to_string_tuple(row, "rows") for row in self.rows)
        )
        if len(self.rows) > self.row_count:
            raise ValueError("rows must not exceed row_count")

    @staticmethod
    def value_at(row: Sequence[str], index: int) -> str:
        """Return the value at *index*, treating positions past the row's end as blank."""
        if 0 <= index < len(row):
            return row[index]
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "row_count": self.row_count,
            "column_headers": list(self.column_headers),
            "rows": [list(row) for row in self.rows],
        }


@dataclass(frozen=True)
class ReportSummary:
    """Everything read from one workbook.

    Contract invariant: the names in ``sheet_summaries`` and ``missing_sheets``
    are disjoint and together cover the expected worksheets without duplicates.
    """

    report_date: date | None
    sheet_summaries: Mapping[str, SheetSummary]
    missing_sheets: tuple[str, ...]
    generated_at: datetime

    def __post_init__(self) -> None:
        summaries = dict(self.sheet_summaries)
        missing = _to_string_tuple(self.missing_sheets, "missing_sheets")
        if len(set(missing)) != len(missing):
            raise ValueError("missing_sheets must not contain duplicates")
        overlap = sorted(set(summaries) & set(missing))
        if overlap:
            raise ValueError(
                f"sheets cannot be both summarized and missing: {', '.join(overlap)}"
            )
        object.__setattr__(self, "sheet_summaries", MappingProxyType(summaries))
        object.__setattr__(self, "missing_sheets", missing)

    @property
    def total_row_count(self) -> int:
        return sum(sheet.row_count for sheet in self.sheet_summaries.values())

    @property
    def expected_sheets(self) -> tuple[str, ...]:
        return tuple(self.sheet_summaries) + self.missing_sheets

    def get(self, sheet_name: str) -> SheetSummary | None:
        return self.sheet_summaries.get(sheet_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "generated_at": self.generated_at.isoformat(),
            "total_row_count": self.total_row_count,
            "missing_sheets": list(self.missing_sheets),
            "sheets": [sheet.to_dict() for sheet in self.sheet_summaries.values()],
        }


# ── Audit trail ──────────────────────────────────────────────────


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "stats-digest"
    version: str = ""
    run_id: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    report_date: str = ""
    sheets_found: list[str] = field(default_factory=list)
    sheets_missing: list[str] = field(default_factory=list)
    total_rows: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.total_rows = _to_non_negative_int(self.total_rows, "total_rows")
        self.sheets_found = list(_to_string_tuple(self.sheets_found, "sheets_found"))
        self.sheets_missing = list(_to_string_tuple(self.sheets_missing, "sheets_missing"))
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "report_date": self.report_date,
            "sheets_found": list(self.sheets_found),
            "sheets_missing": list(self.sheets_missing),
            "total_rows": self.total_rows,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
