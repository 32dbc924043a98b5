"""Find report workbooks by the date encoded in their file names."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path

from stats_digest.models import LocateResult, ReportFile, SkippedFile, SkipReason

# Longest tokens first so "yyyy" is never read as two shorter tokens.
_PLACEHOLDERS: dict[str, tuple[str, int]] = {
    "yyyy": ("year", 4),
    "YYYY": ("year", 4),
    "MM": ("month", 2),
    "dd": ("day", 2),
    "DD": ("day", 2),
}
_TOKEN_RE = re.compile("|".join(re.escape(token) for token in _PLACEHOLDERS))
_BASIC_DATE_FMT = "%Y%m%d"


def compile_pattern(template: str) -> re.Pattern[str]:
    """Compile a file-name template such as ``StatsReports_yyyyMMdd.xlsx``.

    Literal text is escaped verbatim; each placeholder becomes a named group
    matching exactly that many digits.

    Raises
    ------
    ValueError
        If the template lacks a year, month or day placeholder, or repeats one.
    """
    parts: list[str] = []
    seen: set[str] = set()
    pos = 0
    for match in _TOKEN_RE.finditer(template):
        group, width = _PLACEHOLDERS[match.group(0)]
        if group in seen:
            raise ValueError(f"Template {template!r} repeats the {group} placeholder")
        seen.add(group)
        parts.append(re.escape(template[pos:match.start()]))
        parts.append(rf"(?P<{group}>\d{{{width}}})")
        pos = match.end()
    parts.append(re.escape(template[pos:]))

    missing = [g for g in ("year", "month", "day") if g not in seen]
    if missing:
        raise ValueError(
            f"Template {template!r} is missing placeholder(s) for: {', '.join(missing)}"
        )
    return re.compile("".join(parts))


def parse_report_date(name: str, pattern: re.Pattern[str]) -> date | SkipReason:
    """Return the date encoded in *name*, or the reason it cannot be used."""
    match = pattern.fullmatch(name)
    if match is None:
        return SkipReason.PATTERN_MISMATCH
    digits = match.group("year") + match.group("month") + match.group("day")
    try:
        return datetime.strptime(digits, _BASIC_DATE_FMT).date()
    except ValueError:
        return SkipReason.DATE_PARSE_FAILURE


class FileLocator:
    """Scan one directory for workbooks named after a date template."""

    def __init__(
        self,
        directory: Path | str,
        template: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.template = template
        self.pattern = compile_pattern(template)
        self._log = logger or logging.getLogger(__name__)

    def scan(self) -> LocateResult:
        """List matching files, oldest first.

        Same-date files are ordered by file name, so the lexicographically
        greatest name wins as "latest".
        """
        try:
            entries = sorted(self.directory.iterdir())
        except OSError as exc:
            message = f"Report directory unavailable: {self.directory} ({exc.strerror or exc})"
            self._log.warning(message)
            return LocateResult(directory=self.directory, directory_error=message)

        files: list[ReportFile] = []
        skipped: list[SkippedFile] = []
        for entry in entries:
            if entry.is_dir():
                continue
            outcome = parse_report_date(entry.name, self.pattern)
            if outcome is SkipReason.PATTERN_MISMATCH:
                self._log.debug("Skipping file that does not match pattern: %s", entry.name)
                skipped.append(SkippedFile(entry.name, SkipReason.PATTERN_MISMATCH))
            elif outcome is SkipReason.DATE_PARSE_FAILURE:
                self._log.warning("Failed to parse report date from file name: %s", entry.name)
                skipped.append(SkippedFile(entry.name, SkipReason.DATE_PARSE_FAILURE))
            else:
                files.append(ReportFile(path=entry, report_date=outcome))

        files.sort(key=lambda f: (f.report_date, f.name))
        return LocateResult(
            directory=self.directory,
            files=tuple(files),
            skipped=tuple(skipped),
        )

    def find_report_files(self) -> list[ReportFile]:
        return list(self.scan().files)

    def find_latest_report_file(self) -> ReportFile | None:
        """Return the newest report file, or ``None`` when nothing matches."""
        return self.scan().latest
