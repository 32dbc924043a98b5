"""Row serialization: column-keyed records safe to embed in generated pages.

Escaping follows JSON string rules, plus ``<``, ``>`` and ``&`` as unicode
escapes so a value can never close a ``<script>`` block or start an entity.
"""

from __future__ import annotations

from collections.abc import Sequence

_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
}
_SHORT_UNESCAPES: dict[str, str] = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


def escape_value(value: str | None) -> str:
    """Escape *value* for embedding inside a double-quoted script string."""
    if not value:
        return ""
    out: list[str] = []
    for ch in value:
        replacement = _ESCAPES.get(ch)
        if replacement is not None:
            out.append(replacement)
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


def unescape_value(text: str) -> str:
    """Invert :func:`escape_value`.

    Raises
    ------
    ValueError
        On a dangling backslash or an unknown/short escape sequence.
    """
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError(f"Dangling escape at position {i}")
        code = text[i + 1]
        if code in _SHORT_UNESCAPES:
            out.append(_SHORT_UNESCAPES[code])
            i += 2
        elif code == "u":
            digits = text[i + 2 : i + 6]
            if len(digits) != 4:
                raise ValueError(f"Truncated unicode escape at position {i}")
            try:
                out.append(chr(int(digits, 16)))
            except ValueError as exc:
                raise ValueError(f"Invalid unicode escape \\u{digits} at position {i}") from exc
            i += 6
        else:
            raise ValueError(f"Unknown escape \\{code} at position {i}")
    return "".join(out)


def header_index(headers: Sequence[str]) -> dict[str, int]:
    """Map each header to its position; the last occurrence of a duplicate wins."""
    index: dict[str, int] = {}
    for pos, name in enumerate(headers):
        index[name] = pos
    return index


def serialize_rows(
    columns: Sequence[str],
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
) -> list[dict[str, str]]:
    """Flatten *rows* into one ``{column: escaped value}`` record per row.

    A column with no header position, or a row too short to reach it, yields
    an empty string.
    """
    index = header_index(headers)
    records: list[dict[str, str]] = []
    for row in rows:
        record: dict[str, str] = {}
        for column in columns:
            pos = index.get(column)
            value = row[pos] if pos is not None and pos < len(row) else ""
            record[column] = escape_value(value)
        records.append(record)
    return records


def rows_to_json(
    columns: Sequence[str],
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
) -> str:
    """Render the records as a JSON array literal that is safe inside ``<script>``."""
    if not rows:
        return "[]"
    parts: list[str] = []
    for record in serialize_rows(columns, headers, rows):
        fields = ",".join(f'"{escape_value(key)}":"{value}"' for key, value in record.items())
        parts.append("{" + fields + "}")
    return "[" + ",".join(parts) + "]"


def strings_to_json(values: Sequence[str]) -> str:
    return "[" + ",".join(f'"{escape_value(v)}"' for v in values) + "]"
