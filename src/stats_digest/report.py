"""Excel digest writer: produces Weekly_Digest.xlsx."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from stats_digest.models import ReportSummary
from stats_digest.pipeline import SectionPayload, parse_int
from stats_digest.serializer import unescape_value

DIGEST_FILENAME = "Weekly_Digest.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
KPI_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")

INT_FMT = '#,##0'
# Coverage is passed in as percent-points (e.g., 86), so append a literal
# percent sign instead of Excel percent scaling.
PCT_FMT = '0"%"'

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")
_SHEET_TITLE_MAX = 31
_INVALID_TITLE_CHARS_RE = re.compile(r"[\\/*?:\[\]]")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            cell = row[0]
            width = max(width, len(str(cell.value or "")))
        width += 4
        ws.column_dimensions[letter].width = min(width, 40)


def _apply_int_formats(ws: Worksheet, col_names: Sequence[str], int_cols: Iterable[str]) -> None:
    """Apply the integer format to data columns (rows 2+) by column name."""
    if ws.max_row < 2:
        return
    wanted = set(int_cols)
    for c_idx, name in enumerate(col_names, 1):
        if name not in wanted:
            continue
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
            for cell in row:
                cell.number_format = INT_FMT


def _table_name(name: str) -> str:
    """Excel table names: letters, digits and underscores; section titles keep them distinct."""
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name)
    if not cleaned:
        cleaned = "Table"
    if not re.match(r"^[A-Za-z_]", cleaned):
        cleaned = f"_{cleaned}"
    return cleaned[:255]


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    """Turn the data range into a proper Excel Table object."""
    if nrows < 1 or ncols < 1:
        return
    end_col = get_column_letter(ncols)
    ref = f"A1:{end_col}{nrows + 1}"  # +1 for header
    table = Table(displayName=_table_name(name), ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"
    return val


def _sheet_title(title: str) -> str:
    cleaned = _INVALID_TITLE_CHARS_RE.sub("_", title).strip("'")
    return (cleaned or "Section")[:_SHEET_TITLE_MAX]


def section_frame(payload: SectionPayload) -> pd.DataFrame:
    """Un-escape a section's records into a DataFrame; integer columns become numeric."""
    data = [
        {column: unescape_value(value) for column, value in record.items()}
        for record in payload.records
    ]
    df = pd.DataFrame(data, columns=list(payload.columns))
    for column in payload.totals:
        if column in df.columns:
            df[column] = df[column].map(lambda v: parse_int(v) if isinstance(v, str) else v)
    return df


def _df_to_sheet(
    wb: Workbook, title: str, df: pd.DataFrame, *, int_cols: Iterable[str] = (),
) -> None:
    ws = wb.create_sheet(title=_sheet_title(title))
    col_names = [str(c) for c in df.columns]

    if not col_names:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            if val is None or (isinstance(val, float) and pd.isna(val)):
                continue
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_int_formats(ws, col_names, int_cols)
    ws.freeze_panes = "A2"
    _auto_width(ws)
    if len(df) > 0 and len(set(col_names)) == len(col_names) and all(col_names):
        _add_excel_table(ws, title, len(col_names), len(df))


def _write_overview(
    wb: Workbook,
    summary: ReportSummary,
    metrics: dict[str, Any],
    payloads: Sequence[SectionPayload],
) -> None:
    ws = wb.create_sheet(title="Overview")

    # ── Title ────────────────────────────────────────────────────
    ws.cell(row=1, column=1, value="Weekly Statistics Digest").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    report_date = summary.report_date.isoformat() if summary.report_date else "undated"
    generated = summary.generated_at.strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(
        row=2, column=1, value=f"Report date {report_date} · Generated {generated}"
    ).font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    # ── Key figures ──────────────────────────────────────────────
    row = 4
    ws.cell(row=row, column=1, value="Key Figures").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = KPI_FILL
    row += 1

    for label, value in metrics.items():
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = KPI_FILL
        val_cell = ws.cell(row=row, column=2, value="—" if value is None else value)
        val_cell.font = VALUE_FONT
        val_cell.fill = KPI_FILL
        if isinstance(value, int) and not isinstance(value, bool):
            val_cell.number_format = PCT_FMT if label.endswith("%") else INT_FMT
            val_cell.alignment = Alignment(horizontal="right")
        row += 1

    # ── Sections ─────────────────────────────────────────────────
    row += 1
    ws.cell(row=row, column=1, value="Sections").font = LABEL_FONT
    row += 1
    for payload in payloads:
        ws.cell(row=row, column=1, value=payload.section.title).font = VALUE_FONT
        if payload.available:
            ws.cell(row=row, column=2, value=payload.row_count).number_format = INT_FMT
        else:
            ws.cell(row=row, column=2, value="not available").font = WARN_FONT
        row += 1

    # ── Missing worksheets ───────────────────────────────────────
    if summary.missing_sheets:
        row += 1
        ws.cell(row=row, column=1, value="Missing Worksheets").font = LABEL_FONT
        ws.cell(row=row, column=1).fill = NOTE_FILL
        ws.merge_cells(f"A{row}:D{row}")
        row += 1
        for name in summary.missing_sheets:
            ws.cell(row=row, column=1, value=f"⚠ {name}").font = WARN_FONT
            for c in range(1, 5):
                ws.cell(row=row, column=c).fill = NOTE_FILL
            row += 1

    ws.column_dimensions["A"].width = 36
    ws.column_dimensions["B"].width = 22
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


# ── Public API ───────────────────────────────────────────────────


def write_digest(
    out_dir: Path,
    summary: ReportSummary,
    payloads: Sequence[SectionPayload],
    metrics: dict[str, Any],
) -> Path:
    """Write ``Weekly_Digest.xlsx`` and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / DIGEST_FILENAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_overview(wb, summary, metrics, payloads)
    for payload in payloads:
        if payload.available:
            _df_to_sheet(wb, payload.section.title, section_frame(payload), int_cols=payload.totals)

    tmp_path = out_dir / "Weekly_Digest.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
