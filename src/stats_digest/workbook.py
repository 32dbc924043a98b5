"""Workbook summarizer: reduce each expected worksheet to a SheetSummary."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import IO, Any
from xml.etree.ElementTree import ParseError
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from stats_digest.models import ReportFile, ReportSummary, SheetSummary

SAMPLE_ROW_LIMIT = 5

WorkbookSource = Path | str | IO[bytes]

_PERCENT_DECIMALS_RE = re.compile(r"0\.(0+)%")


class WorkbookParseError(Exception):
    """Raised when a workbook cannot be opened or read."""


# ── Displayed text ───────────────────────────────────────────────


def _format_number(value: int | float, number_format: str) -> str:
    if "%" in number_format:
        match = _PERCENT_DECIMALS_RE.search(number_format)
        decimals = len(match.group(1)) if match else 0
        return f"{value * 100:.{decimals}f}%"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def cell_text(value: Any, number_format: str = "General") -> str:
    """Return the text a spreadsheet application would show for *value*.

    Formulas are not evaluated; the workbook is read with cached values only.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return _format_number(value, number_format or "General")
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _row_texts(cells: Iterable[Cell]) -> list[str]:
    """Displayed text for each position up to the last non-null cell."""
    cells = list(cells)
    last = -1
    for idx, cell in enumerate(cells):
        if cell.value is not None:
            last = idx
    return [cell_text(cell.value, cell.number_format) for cell in cells[: last + 1]]


def _is_blank(values: Sequence[str]) -> bool:
    return all(not value.strip() for value in values)


# ── Worksheet ────────────────────────────────────────────────────


def summarize_sheet(ws: Worksheet, *, sample_limit: int | None = None) -> SheetSummary:
    """Summarize one worksheet.

    The first populated row supplies the headers (duplicates kept). Every later
    row up to the last populated one is counted unless blank, and retained up
    to *sample_limit* (``None`` keeps all).
    """
    if sample_limit is not None and sample_limit < 0:
        raise ValueError("sample_limit must be >= 0 or None")

    header_row = ws.min_row
    last_row = ws.max_row
    headers: list[str] = []
    rows: list[tuple[str, ...]] = []
    row_count = 0

    for row_idx, cells in enumerate(
        ws.iter_rows(min_row=header_row, max_row=last_row), start=header_row
    ):
        values = _row_texts(cells)
        if row_idx == header_row:
            headers = values
            continue
        if _is_blank(values):
            continue
        row_count += 1
        if sample_limit is None or len(rows) < sample_limit:
            width = max(len(headers), len(values))
            rows.append(tuple(values + [""] * (width - len(values))))

    return SheetSummary(
        sheet_name=ws.title,
        row_count=row_count,
        column_headers=tuple(headers),
        rows=tuple(rows),
    )


# ── Workbook ─────────────────────────────────────────────────────


def _source_label(source: WorkbookSource) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return getattr(source, "name", None) or "<stream>"


class WorkbookSummarizer:
    """Summarize the expected worksheets of a workbook, in order."""

    def __init__(
        self,
        expected_sheets: Sequence[str],
        *,
        sample_limit: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if isinstance(expected_sheets, str):
            raise TypeError("expected_sheets must be a sequence of sheet names")
        names = list(expected_sheets)
        if len(set(names)) != len(names):
            raise ValueError("expected_sheets must not contain duplicates")
        if sample_limit is not None and sample_limit < 0:
            raise ValueError("sample_limit must be >= 0 or None")
        self.expected_sheets = tuple(names)
        self.sample_limit = sample_limit
        self._log = logger or logging.getLogger(__name__)

    def summarize(
        self, source: WorkbookSource, *, report_date: date | None = None
    ) -> ReportSummary:
        """Open *source*, summarize it, and close it again.

        Raises
        ------
        WorkbookParseError
            If the workbook cannot be opened or read. No partial summary is
            returned.
        """
        label = _source_label(source)
        try:
            wb = load_workbook(source, data_only=True)
        except (
            InvalidFileException, BadZipFile, OSError, KeyError, ValueError, ParseError, SyntaxError
        ) as exc:
            # lxml's XMLSyntaxError derives from SyntaxError, not ElementTree.ParseError.
            raise WorkbookParseError(f"Failed to read workbook: {label} ({exc})") from exc

        summaries: dict[str, SheetSummary] = {}
        missing: list[str] = []
        try:
            for name in self.expected_sheets:
                if name not in wb.sheetnames:
                    self._log.warning("Missing expected sheet %r in report %s", name, label)
                    missing.append(name)
                    continue
                ws = wb[name]
                if not isinstance(ws, Worksheet):
                    # Chartsheets carry no cells.
                    self._log.warning("Sheet %r in report %s is not a worksheet", name, label)
                    missing.append(name)
                    continue
                summaries[name] = summarize_sheet(ws, sample_limit=self.sample_limit)
                self._log.debug(
                    "Summarized sheet %r: %d rows, %d columns",
                    name,
                    summaries[name].row_count,
                    len(summaries[name].column_headers),
                )
        except (KeyError, ValueError, TypeError) as exc:
            raise WorkbookParseError(f"Failed to read workbook: {label} ({exc})") from exc
        finally:
            wb.close()

        return ReportSummary(
            report_date=report_date,
            sheet_summaries=summaries,
            missing_sheets=tuple(missing),
            generated_at=datetime.now(timezone.utc),
        )

    def read_report(self, report_file: ReportFile) -> ReportSummary:
        self._log.info("Processing report file: %s", report_file.path)
        return self.summarize(report_file.path, report_date=report_file.report_date)


def summarize_workbook(
    source: WorkbookSource,
    expected_sheets: Sequence[str],
    *,
    report_date: date | None = None,
    sample_limit: int | None = None,
    logger: logging.Logger | None = None,
) -> ReportSummary:
    """Convenience wrapper around :class:`WorkbookSummarizer`."""
    summarizer = WorkbookSummarizer(expected_sheets, sample_limit=sample_limit, logger=logger)
    return summarizer.summarize(source, report_date=report_date)
