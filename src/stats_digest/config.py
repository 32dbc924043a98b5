"""Settings file: ``key=value`` lines, ``#`` comments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from stats_digest import DEFAULT_FILE_PATTERN

_log = logging.getLogger(__name__)

_KEYS = {
    "report.directory",
    "output.directory",
    "report.file.pattern",
    "report.sample.rows",
}


class ConfigError(Exception):
    """Raised when a settings file is missing, unreadable or malformed."""


@dataclass(frozen=True)
class Settings:
    report_directory: Path = Path("reports")
    output_directory: Path = Path("generated-reports")
    report_file_pattern: str = DEFAULT_FILE_PATTERN
    sample_rows: int | None = None

    def with_overrides(self, **overrides: object) -> Settings:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def parse_sample_rows(raw: str) -> int | None:
    """``all`` (or empty) keeps every row; otherwise a non-negative row cap."""
    text = raw.strip().lower()
    if text in {"", "all"}:
        return None
    try:
        value = int(text)
    except ValueError as exc:
        raise ConfigError(f"report.sample.rows must be 'all' or an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"report.sample.rows must be >= 0, got {value}")
    return value


def parse_settings(text: str, *, source: str = "<settings>") -> Settings:
    values: dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ConfigError(f"{source}:{lineno}: expected key=value, got {stripped!r}")
        key, value = (part.strip() for part in stripped.split("=", 1))
        if key not in _KEYS:
            _log.debug("Ignoring unknown setting %r in %s", key, source)
            continue
        values[key] = value

    settings = Settings()
    if values.get("report.directory"):
        settings = replace(settings, report_directory=Path(values["report.directory"]))
    if values.get("output.directory"):
        settings = replace(settings, output_directory=Path(values["output.directory"]))
    if values.get("report.file.pattern"):
        settings = replace(settings, report_file_pattern=values["report.file.pattern"])
    if "report.sample.rows" in values:
        settings = replace(settings, sample_rows=parse_sample_rows(values["report.sample.rows"]))
    return settings


def load_settings(path: Path | None) -> Settings:
    """Load settings from *path*; ``None`` returns the defaults."""
    if path is None:
        return Settings()
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")
    if path.is_dir():
        raise ConfigError(f"Settings path is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read settings {path}: {exc}") from exc
    return parse_settings(text, source=str(path))
