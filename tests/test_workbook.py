from __future__ import annotations

import io
import logging
from datetime import date, datetime, time
from pathlib import Path

import pytest
from openpyxl import Workbook

from stats_digest import EXPECTED_SHEETS
from stats_digest import workbook as workbook_mod
from stats_digest.models import ReportFile
from stats_digest.workbook import (
    SAMPLE_ROW_LIMIT,
    WorkbookParseError,
    WorkbookSummarizer,
    cell_text,
    summarize_workbook,
)


def test_header_only_sheet_has_no_rows(make_workbook) -> None:
    path = make_workbook({"X": [["A", "B"]]})

    summary = summarize_workbook(path, ["X"])

    sheet = summary.sheet_summaries["X"]
    assert sheet.row_count == 0
    assert sheet.rows == ()
    assert sheet.column_headers == ("A", "B")


def test_blank_rows_are_neither_counted_nor_retained(make_workbook) -> None:
    path = make_workbook({"X": [["A", "B"], [], ["1", "2"]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.row_count == 1
    assert sheet.rows == (("1", "2"),)


def test_whitespace_only_row_is_blank(make_workbook) -> None:
    path = make_workbook({"X": [["A", "B"], ["   ", "\t"], ["x", None]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.row_count == 1
    assert sheet.rows == (("x", ""),)


def test_missing_sheets_are_recorded_in_expected_order(make_workbook) -> None:
    path = make_workbook({"Z": [["c"]], "X": [["a"]]})

    summary = summarize_workbook(path, ["X", "Y", "Z"])

    assert list(summary.sheet_summaries) == ["X", "Z"]
    assert summary.missing_sheets == ("Y",)
    assert set(summary.sheet_summaries).isdisjoint(summary.missing_sheets)


def test_missing_sheet_logs_warning_on_injected_logger(make_workbook, caplog) -> None:
    path = make_workbook({"X": [["a"]]})
    logger = logging.getLogger("tests.summarizer")

    with caplog.at_level(logging.WARNING, logger="tests.summarizer"):
        WorkbookSummarizer(["X", "Y"], logger=logger).summarize(path)

    messages = [r.getMessage() for r in caplog.records if r.name == "tests.summarizer"]
    assert any("Missing expected sheet 'Y'" in m for m in messages)


def test_duplicate_and_gap_headers_are_kept(make_workbook) -> None:
    path = make_workbook({"X": [["Name", None, "Name", "Count"], ["a", "b", "c", 1]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.column_headers == ("Name", "", "Name", "Count")
    assert sheet.rows == (("a", "b", "c", "1"),)


def test_rows_are_padded_to_the_header_width(make_workbook) -> None:
    path = make_workbook({"X": [["A", "B", "C"], ["only"]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.rows == (("only", "", ""),)


def test_rows_wider_than_headers_keep_their_extra_cells(make_workbook) -> None:
    path = make_workbook({"X": [["A"], ["1", None, "3"]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.rows == (("1", "", "3"),)


def test_header_row_is_the_first_populated_row(make_workbook) -> None:
    path = make_workbook({"X": [[], [], ["A", "B"], ["1", "2"]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.column_headers == ("A", "B")
    assert sheet.row_count == 1


def test_empty_worksheet_summarizes_to_nothing(make_workbook) -> None:
    path = make_workbook({"X": []})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.column_headers == ()
    assert sheet.row_count == 0


def test_sample_limit_caps_retained_rows_but_not_the_count(make_workbook) -> None:
    rows = [["n"]] + [[i] for i in range(1, 9)]
    path = make_workbook({"X": rows})

    sheet = summarize_workbook(path, ["X"], sample_limit=SAMPLE_ROW_LIMIT).sheet_summaries["X"]

    assert sheet.row_count == 8
    assert sheet.rows == tuple((str(i),) for i in range(1, SAMPLE_ROW_LIMIT + 1))


def test_default_policy_retains_all_rows(make_workbook) -> None:
    rows = [["n"]] + [[i] for i in range(1, 9)]
    path = make_workbook({"X": rows})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert len(sheet.rows) == sheet.row_count == 8


def test_negative_sample_limit_is_rejected() -> None:
    with pytest.raises(ValueError, match="sample_limit"):
        WorkbookSummarizer(["X"], sample_limit=-1)


def test_duplicate_expected_sheets_are_rejected() -> None:
    with pytest.raises(ValueError, match="duplicates"):
        WorkbookSummarizer(["X", "X"])


def test_accepts_a_byte_stream(make_workbook) -> None:
    path = make_workbook({"X": [["A"], ["1"]]})
    stream = io.BytesIO(path.read_bytes())

    summary = summarize_workbook(stream, ["X"], report_date=date(2024, 1, 5))

    assert summary.report_date == date(2024, 1, 5)
    assert summary.total_row_count == 1


def test_read_report_carries_the_file_date(make_workbook) -> None:
    path = make_workbook({"X": [["A"], ["1"]]}, name="StatsReports_20240105.xlsx")

    summary = WorkbookSummarizer(["X"]).read_report(ReportFile(path, date(2024, 1, 5)))

    assert summary.report_date == date(2024, 1, 5)
    assert summary.generated_at.tzinfo is not None


def test_full_workbook_summary(make_workbook, stats_sheets) -> None:
    path = make_workbook(stats_sheets)

    summary = summarize_workbook(path, EXPECTED_SHEETS)

    assert summary.missing_sheets == ()
    assert list(summary.sheet_summaries) == EXPECTED_SHEETS
    assert summary.sheet_summaries["VW_MemUploadTCount"].row_count == 2
    assert summary.total_row_count == sum(
        s.row_count for s in summary.sheet_summaries.values()
    )


class TestParseErrors:
    def test_corrupt_file_raises_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"definitely not a zip archive")

        with pytest.raises(WorkbookParseError, match="broken.xlsx"):
            summarize_workbook(path, ["X"])

    def test_missing_file_raises_parse_error(self, tmp_path: Path) -> None:
        with pytest.raises(WorkbookParseError):
            summarize_workbook(tmp_path / "nope.xlsx", ["X"])

    def test_unsupported_extension_raises_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "data.csv"
        path.write_text("a,b\n1,2\n", encoding="utf-8")

        with pytest.raises(WorkbookParseError):
            summarize_workbook(path, ["X"])

    def test_corrupt_stream_raises_parse_error(self) -> None:
        with pytest.raises(WorkbookParseError, match="<stream>"):
            summarize_workbook(io.BytesIO(b"garbage"), ["X"])

    def test_broken_xml_part_raises_parse_error(self, truncated_workbook: Path) -> None:
        with pytest.raises(WorkbookParseError, match="truncated.xlsx"):
            summarize_workbook(truncated_workbook, ["X"])


def test_workbook_is_closed_when_a_sheet_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    wb = Workbook()
    wb.active.title = "X"
    closed: list[bool] = []
    monkeypatch.setattr(wb, "close", lambda: closed.append(True))
    monkeypatch.setattr(workbook_mod, "load_workbook", lambda *a, **k: wb)

    def _boom(*_args: object, **_kwargs: object) -> None:
        raise ValueError("boom")

    monkeypatch.setattr(workbook_mod, "summarize_sheet", _boom)

    with pytest.raises(WorkbookParseError, match="boom"):
        summarize_workbook("ignored.xlsx", ["X"])
    assert closed == [True]


def test_workbook_is_closed_on_success(monkeypatch: pytest.MonkeyPatch) -> None:
    wb = Workbook()
    wb.active.title = "X"
    closed: list[bool] = []
    monkeypatch.setattr(wb, "close", lambda: closed.append(True))
    monkeypatch.setattr(workbook_mod, "load_workbook", lambda *a, **k: wb)

    summary = summarize_workbook("ignored.xlsx", ["X", "Y"])

    assert closed == [True]
    assert summary.missing_sheets == ("Y",)


def test_formula_without_cached_value_reads_blank(make_workbook) -> None:
    path = make_workbook({"X": [["A", "B"], ["=1+1", "kept"]]})

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.rows == (("", "kept"),)


@pytest.mark.parametrize(
    ("value", "number_format", "expected"),
    [
        (None, "General", ""),
        ("text", "General", "text"),
        (True, "General", "TRUE"),
        (False, "General", "FALSE"),
        (42, "General", "42"),
        (42.0, "General", "42"),
        (2.5, "General", "2.5"),
        (0.256, "0.0%", "25.6%"),
        (0.5, "0%", "50%"),
        (datetime(2024, 1, 5), "yyyy-mm-dd", "2024-01-05"),
        (datetime(2024, 1, 5, 13, 30), "yyyy-mm-dd h:mm", "2024-01-05 13:30:00"),
        (date(2024, 1, 5), "yyyy-mm-dd", "2024-01-05"),
        (time(8, 15), "h:mm", "08:15:00"),
    ],
)
def test_cell_text(value: object, number_format: str, expected: str) -> None:
    assert cell_text(value, number_format) == expected


def test_displayed_text_is_read_from_saved_cells(tmp_path: Path) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "X"
    ws.append(["When", "Ratio", "Flag"])
    ws.append([datetime(2024, 1, 5), 0.25, True])
    ws["B2"].number_format = "0.00%"
    path = tmp_path / "fmt.xlsx"
    wb.save(path)

    sheet = summarize_workbook(path, ["X"]).sheet_summaries["X"]

    assert sheet.rows == (("2024-01-05", "25.00%", "TRUE"),)
