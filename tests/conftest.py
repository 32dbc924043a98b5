"""Shared fixtures: build small workbooks with openpyxl."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any
from zipfile import ZIP_DEFLATED, ZipFile

import pytest
from openpyxl import Workbook

SheetRows = Sequence[Sequence[Any]]
WorkbookFactory = Callable[..., Path]


def write_workbook(path: Path, sheets: Mapping[str, SheetRows]) -> Path:
    """Write *sheets* (name -> rows) to *path*; an empty row leaves a gap."""
    wb = Workbook()
    default = wb.active
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    if default is not None:
        wb.remove(default)
    if not sheets:
        wb.create_sheet(title="Empty")
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


@pytest.fixture
def make_workbook(tmp_path: Path) -> WorkbookFactory:
    def _make(sheets: Mapping[str, SheetRows], name: str = "book.xlsx") -> Path:
        return write_workbook(tmp_path / name, sheets)

    return _make


@pytest.fixture
def stats_sheets() -> dict[str, list[list[Any]]]:
    """A complete weekly workbook, one sheet per expected view."""
    return {
        "VW_Abnormal_IDs": [
            ["PolicyCount", "InsuranceCompanyName"],
            [12, "Acme Health"],
            [3, "Beta Mutual"],
        ],
        "VW_ICP_ApiSe_Stats": [
            ["ServiceName", "SuccessCount", "FailureCount"],
            ["Eligibility", 1200, 14],
            ["Claims", 950, 3],
        ],
        "VW_ICPSeErrorsDetails": [
            ["ServiceName", "ResponseCode", "Error_Description", "Error_Count"],
            ["Claims", 500, "Upstream <timeout>", 2],
        ],
        "VW_MemUploadTCount": [
            ["InsuranceCompanyName", "API_Upload", "Manual_Upload"],
            ["Acme Health", 40, 2],
            [],
            ["Beta Mutual", 10, 7],
        ],
        "VW_SD_SeErrorDetails": [
            ["InsuranceCompanyName", "FailureCount", "Total_API_Calls", "API_Failure_Ratio", "Notes"],
            ["Acme Health", 14, 1214, "1.15%", "watch"],
        ],
        "VW_SD_SeErrorDetailsIC": [
            ["InsuranceCompanyName", "ServiceName", "Error_Code", "Error_Description", "Error_Count"],
            ["Acme Health", "Claims", "E42", 'Bad "member" id', 1],
        ],
        "VW_SD_SeHitCount": [
            ["ServiceName", "Hits"],
            ["Eligibility", 5000],
        ],
    }


def replace_part(path: Path, part: str, data: bytes) -> Path:
    """Rewrite one member of the xlsx archive at *path* in place."""
    with ZipFile(path) as src:
        members = {name: src.read(name) for name in src.namelist()}
    members[part] = data
    with ZipFile(path, "w", ZIP_DEFLATED) as dst:
        for name, content in members.items():
            dst.writestr(name, content)
    return path


@pytest.fixture
def truncated_workbook(make_workbook) -> Path:
    """A valid archive whose ``xl/workbook.xml`` is cut off mid-element."""
    path = make_workbook({"X": [["A"], ["1"]]}, name="truncated.xlsx")
    return replace_part(path, "xl/workbook.xml", b"<workbook><sheets><sheet")
