"""Report sections + key figures: pure functions over a ReportSummary."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from stats_digest.columns import resolve_sheet_columns
from stats_digest.models import ReportSummary, SheetSummary
from stats_digest.serializer import header_index, rows_to_json, serialize_rows

# ── Sections ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ReportSection:
    section_id: str
    title: str
    sheet_name: str
    preferred_columns: tuple[str, ...]
    description: str = ""


REPORT_SECTIONS: tuple[ReportSection, ...] = (
    ReportSection(
        "abnormal-ids",
        "Abnormal Member IDs",
        "VW_Abnormal_IDs",
        ("InsuranceCompanyName", "PolicyCount"),
        "Policies flagged with abnormal member identifiers, by insurance company.",
    ),
    ReportSection(
        "icp-api-stats",
        "ICP Service Success vs Failure",
        "VW_ICP_ApiSe_Stats",
        ("ServiceName", "SuccessCount", "FailureCount"),
        "Successful and failed calls per ICP service.",
    ),
    ReportSection(
        "icp-error-details",
        "ICP Failure Reasons",
        "VW_ICPSeErrorsDetails",
        ("ServiceName", "Error_Description", "ResponseCode", "Error_Count"),
        "Failure reasons and response codes returned by ICP services.",
    ),
    ReportSection(
        "mem-upload-counts",
        "Policy Upload Channels",
        "VW_MemUploadTCount",
        ("InsuranceCompanyName", "API_Upload", "Manual_Upload"),
        "Member uploads received through the API versus manual upload.",
    ),
    ReportSection(
        "sd-error-ratio",
        "Service Failure Ratios",
        "VW_SD_SeErrorDetails",
        ("InsuranceCompanyName", "FailureCount", "Total_API_Calls", "API_Failure_Ratio"),
        "Failed calls relative to total API calls, by insurance company.",
    ),
    ReportSection(
        "sd-error-details-ic",
        "Error Details by Insurance Company",
        "VW_SD_SeErrorDetailsIC",
        ("InsuranceCompanyName", "ServiceName", "Error_Code", "Error_Description", "Error_Count"),
        "Error codes and descriptions per service and insurance company.",
    ),
)


@dataclass(frozen=True)
class SectionPayload:
    """Resolved columns and escaped records for one section, ready to embed."""

    section: ReportSection
    columns: tuple[str, ...]
    records: tuple[dict[str, str], ...] = field(default=())
    records_json: str = "[]"
    row_count: int = 0
    totals: dict[str, int] = field(default_factory=dict)
    available: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_id": self.section.section_id,
            "title": self.section.title,
            "sheet_name": self.section.sheet_name,
            "available": self.available,
            "row_count": self.row_count,
            "columns": list(self.columns),
            "totals": dict(self.totals),
            "records": [dict(record) for record in self.records],
        }


def build_section_payload(summary: ReportSummary, section: ReportSection) -> SectionPayload:
    sheet = summary.get(section.sheet_name)
    columns = resolve_sheet_columns(sheet, section.preferred_columns)
    if sheet is None:
        return SectionPayload(section=section, columns=tuple(columns))
    return SectionPayload(
        section=section,
        columns=tuple(columns),
        records=tuple(serialize_rows(columns, sheet.column_headers, sheet.rows)),
        records_json=rows_to_json(columns, sheet.column_headers, sheet.rows),
        row_count=sheet.row_count,
        totals={name: column_total(sheet, name) for name in integer_columns(sheet)},
        available=True,
    )


def build_section_payloads(
    summary: ReportSummary, sections: Sequence[ReportSection] = REPORT_SECTIONS
) -> list[SectionPayload]:
    """Resolve columns and serialize rows for every section, in order."""
    return [build_section_payload(summary, section) for section in sections]


# ── Key figures ─────────────────────────────────────────────────


_INTEGER_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$|^[+-]?\d+$")


def parse_int(text: str) -> int | None:
    """Parse ``"1,234"`` / ``"-7"`` style integers; anything else is ``None``."""
    token = text.strip()
    if not _INTEGER_RE.fullmatch(token):
        return None
    return int(token.replace(",", ""))


def column_total(sheet: SheetSummary, column: str) -> int:
    """Sum the integer values of *column* across the retained rows.

    Values that are not plain integers are ignored. A column the sheet does
    not have totals to 0.
    """
    pos = header_index(sheet.column_headers).get(column)
    if pos is None:
        return 0
    total = 0
    for row in sheet.rows:
        parsed = parse_int(SheetSummary.value_at(row, pos))
        if parsed is not None:
            total += parsed
    return total


def integer_columns(sheet: SheetSummary) -> list[str]:
    """Headers whose retained values are all integers (blanks allowed, at least one value)."""
    result: list[str] = []
    for name, pos in header_index(sheet.column_headers).items():
        if not name:
            continue
        values = [SheetSummary.value_at(row, pos).strip() for row in sheet.rows]
        non_blank = [v for v in values if v]
        if non_blank and all(parse_int(v) is not None for v in non_blank):
            result.append(name)
    return result


def compute_key_metrics(summary: ReportSummary) -> dict[str, Any]:
    """Return the headline figures shown at the top of the digest."""
    processed = len(summary.sheet_summaries)
    missing = len(summary.missing_sheets)
    expected = processed + missing

    top_sheet: SheetSummary | None = None
    for sheet in summary.sheet_summaries.values():
        if top_sheet is None or sheet.row_count > top_sheet.row_count:
            top_sheet = sheet

    return {
        "Worksheets Processed": processed,
        "Worksheets Expected": expected,
        "Worksheets Missing": missing,
        "Data Coverage %": int(processed * 100 / expected + 0.5) if expected else None,
        "Records Analysed": summary.total_row_count,
        "Top Worksheet": top_sheet.sheet_name if top_sheet else None,
        "Top Worksheet Rows": top_sheet.row_count if top_sheet else None,
    }
