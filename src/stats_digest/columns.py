"""Column order resolution for report sections."""

from __future__ import annotations

from collections.abc import Sequence

from stats_digest.models import SheetSummary


def resolve_columns(headers: Sequence[str] | None, preferred: Sequence[str]) -> list[str]:
    """Merge a section's preferred columns with the headers a worksheet really has.

    Preferred names found in *headers* come first, in preferred order; the
    remaining headers follow in their original order. Preferred names the
    worksheet lacks are dropped. With no worksheet (``headers is None``) the
    preferred list is returned as-is.
    """
    if headers is None:
        return list(preferred)

    present = set(headers)
    result: list[str] = []
    seen: set[str] = set()
    for name in [*(p for p in preferred if p in present), *headers]:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


def resolve_sheet_columns(sheet: SheetSummary | None, preferred: Sequence[str]) -> list[str]:
    return resolve_columns(sheet.column_headers if sheet is not None else None, preferred)
