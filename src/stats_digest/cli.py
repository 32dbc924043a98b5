"""CLI entry point for stats-digest."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from stats_digest import EXPECTED_SHEETS, __version__
from stats_digest.config import ConfigError, Settings, load_settings, parse_sample_rows
from stats_digest.io import sha256_file, utcnow_iso, write_json
from stats_digest.locator import FileLocator
from stats_digest.logs import setup_logging
from stats_digest.models import ReportFile, ReportSummary, RunManifest
from stats_digest.pipeline import build_section_payloads, compute_key_metrics
from stats_digest.report import write_digest
from stats_digest.workbook import WorkbookParseError, WorkbookSummarizer

app = typer.Typer(
    name="sdigest",
    help="stats-digest — Summarize weekly statistics workbooks into report-ready data.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class InputError(Exception):
    """Raised when no usable input workbook can be determined."""


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"stats-digest v{__version__}")
        raise typer.Exit()


def _load_settings(
    config: Path | None,
    *,
    report_dir: Path | None = None,
    out_dir: Path | None = None,
    pattern: str | None = None,
    sample_rows: str | None = None,
) -> Settings:
    settings = load_settings(config).with_overrides(
        report_directory=report_dir,
        output_directory=out_dir,
        report_file_pattern=pattern,
    )
    if sample_rows is not None:
        settings = replace(settings, sample_rows=parse_sample_rows(sample_rows))
    return settings


def _resolve_input(input_file: Path | None, settings: Settings) -> ReportFile | Path:
    """Return the explicit *input_file*, or the latest report in the report directory."""
    if input_file is not None:
        return input_file
    try:
        locator = FileLocator(settings.report_directory, settings.report_file_pattern)
    except ValueError as exc:
        raise InputError(str(exc)) from exc
    result = locator.scan()
    if result.directory_error:
        raise InputError(result.directory_error)
    if result.latest is None:
        raise InputError(
            f"No report files matching {settings.report_file_pattern!r} "
            f"were found in {settings.report_directory}"
        )
    return result.latest


def _summarize(target: ReportFile | Path, settings: Settings) -> ReportSummary:
    summarizer = WorkbookSummarizer(EXPECTED_SHEETS, sample_limit=settings.sample_rows)
    if isinstance(target, ReportFile):
        return summarizer.read_report(target)
    return summarizer.summarize(target)


def _write_manifest(
    out_dir: Path,
    input_file: Path | None,
    run_id: str,
    created_at: str,
    summary: ReportSummary | None,
    *,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    if input_file is not None:
        try:
            sha256 = sha256_file(input_file)
        except OSError:
            pass

    manifest = RunManifest(
        run_id=run_id,
        version=__version__,
        input_path=str(input_file.resolve()) if input_file is not None else "",
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        report_date=(
            summary.report_date.isoformat() if summary and summary.report_date else ""
        ),
        sheets_found=list(summary.sheet_summaries) if summary else [],
        sheets_missing=list(summary.missing_sheets) if summary else [],
        total_rows=summary.total_row_count if summary else 0,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path | None,
    run_id: str,
    created_at: str,
    *,
    message: str,
    error_code: int,
) -> typer.Exit:
    out_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        run_id,
        created_at,
        None,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  Manifest -> {manifest_path}")
    return typer.Exit(code=error_code)


def _summary_table(summary: ReportSummary) -> RichTable:
    tbl = RichTable(title="Workbook Summary", show_lines=False)
    tbl.add_column("Worksheet", style="bold")
    tbl.add_column("Rows", justify="right")
    tbl.add_column("Columns", justify="right")
    tbl.add_column("Status")
    for name in summary.expected_sheets:
        sheet = summary.get(name)
        if sheet is None:
            tbl.add_row(name, "-", "-", "[red]missing[/red]")
        else:
            tbl.add_row(
                name, f"{sheet.row_count:,}", str(len(sheet.column_headers)), "[green]ok[/green]"
            )
    tbl.add_row("Total", f"{summary.total_row_count:,}", "", "")
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """stats-digest CLI."""


# ── locate command ───────────────────────────────────────────────


@app.command()
def locate(
    report_dir: Path | None = typer.Option(
        None, "--dir", "-d",
        help="Directory holding the dated report workbooks.",
    ),
    pattern: str | None = typer.Option(
        None, "--pattern", "-p",
        help="File name template, e.g. StatsReports_yyyyMMdd.xlsx.",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c",
        help="Settings file (key=value lines).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    """List report workbooks matching the file name template, oldest first."""
    setup_logging(verbose=verbose)
    try:
        settings = _load_settings(config, report_dir=report_dir, pattern=pattern)
        locator = FileLocator(settings.report_directory, settings.report_file_pattern)
    except (ConfigError, ValueError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    result = locator.scan()
    if result.directory_error:
        _err(result.directory_error)
        raise typer.Exit(code=2)

    tbl = RichTable(title=f"Report files in {result.directory}")
    tbl.add_column("File", style="bold")
    tbl.add_column("Report date")
    tbl.add_column("Note")
    for report_file in result.files:
        note = "[green]latest[/green]" if report_file is result.latest else ""
        tbl.add_row(report_file.name, report_file.report_date.isoformat(), note)
    for skipped in result.skipped:
        tbl.add_row(skipped.name, "-", f"[dim]skipped: {skipped.reason.value}[/dim]")
    console.print(tbl)

    if result.is_empty:
        _err(f"No files match {settings.report_file_pattern!r}")
        raise typer.Exit(code=2)


# ── summarize command ────────────────────────────────────────────


@app.command()
def summarize(
    input_file: Path | None = typer.Option(
        None, "--input", "-i",
        help="Workbook to summarize (default: latest file in the report directory).",
        exists=True, readable=True, dir_okay=False,
    ),
    report_dir: Path | None = typer.Option(
        None, "--dir", "-d",
        help="Directory holding the dated report workbooks.",
    ),
    pattern: str | None = typer.Option(
        None, "--pattern", "-p",
        help="File name template, e.g. StatsReports_yyyyMMdd.xlsx.",
    ),
    out_dir: Path | None = typer.Option(
        None, "--out-dir", "-o",
        help="Output directory for summary, sections, digest and manifest.",
    ),
    sample_rows: str | None = typer.Option(
        None, "--sample-rows",
        help="Rows kept per worksheet: 'all' or a number (counting is unaffected).",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c",
        help="Settings file (key=value lines).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    """Summarize a workbook and write report-ready artifacts."""
    setup_logging(verbose=verbose)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    run_id = created_at
    fallback_out = out_dir or Path("generated-reports")

    try:
        settings = _load_settings(
            config,
            report_dir=report_dir,
            out_dir=out_dir,
            pattern=pattern,
            sample_rows=sample_rows,
        )
    except ConfigError as exc:
        raise _fail(
            fallback_out, input_file, run_id, created_at, message=str(exc), error_code=2
        )

    out = settings.output_directory
    try:
        target = _resolve_input(input_file, settings)
    except InputError as exc:
        raise _fail(out, None, run_id, created_at, message=str(exc), error_code=2)
    source_path = target.path if isinstance(target, ReportFile) else target

    if not quiet:
        console.print(Panel(
            f"[bold]stats-digest[/bold] v{__version__}\n"
            f"Input:  {source_path}\nOutput: {out}",
            title="Digest Start", border_style="blue",
        ))

    echo("[blue]>[/blue] Reading workbook …")
    try:
        summary = _summarize(target, settings)
    except WorkbookParseError as exc:
        raise _fail(out, source_path, run_id, created_at, message=str(exc), error_code=2)

    try:
        if not quiet:
            console.print(_summary_table(summary))
            for name in summary.missing_sheets:
                console.print(f"  [yellow]![/yellow] Missing worksheet: {name}")

        echo("[blue]>[/blue] Building sections …")
        payloads = build_section_payloads(summary)
        metrics = compute_key_metrics(summary)

        summary_path = write_json(
            out / "summary.json", {**summary.to_dict(), "key_metrics": metrics}
        )
        echo(f"  Summary  -> {summary_path}")
        sections_path = write_json(
            out / "sections.json", [payload.to_dict() for payload in payloads]
        )
        echo(f"  Sections -> {sections_path}")
        digest_path = write_digest(out, summary, payloads, metrics)
        echo(f"  Digest   -> {digest_path}")
        manifest_path = _write_manifest(out, source_path, run_id, created_at, summary)
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {summary.total_row_count} rows from "
                f"{len(summary.sheet_summaries)} worksheet(s) -> {digest_path}",
                title="Digest Complete", border_style="green",
            ))
    except Exception as exc:
        raise _fail(
            out,
            source_path,
            run_id,
            created_at,
            message=f"Unexpected internal error: {exc}",
            error_code=1,
        )


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path | None = typer.Option(
        None, "--input", "-i",
        help="Workbook to check (default: latest file in the report directory).",
        exists=True, readable=True, dir_okay=False,
    ),
    report_dir: Path | None = typer.Option(
        None, "--dir", "-d",
        help="Directory holding the dated report workbooks.",
    ),
    pattern: str | None = typer.Option(
        None, "--pattern", "-p",
        help="File name template, e.g. StatsReports_yyyyMMdd.xlsx.",
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c",
        help="Settings file (key=value lines).",
    ),
    strict: bool = typer.Option(
        False, "--strict",
        help="Exit 2 when any expected worksheet is missing.",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print failures."),
) -> None:
    """Check that a workbook opens and carries the expected worksheets.

    Exit 0 = OK, exit 2 = unreadable workbook (or missing worksheets with --strict).
    """
    setup_logging()
    try:
        settings = _load_settings(config, report_dir=report_dir, pattern=pattern)
        target = _resolve_input(input_file, settings)
        summary = _summarize(target, replace(settings, sample_rows=0))
    except (ConfigError, InputError, WorkbookParseError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    if not quiet:
        console.print(_summary_table(summary))
        status = "[red]FAIL[/red]" if summary.missing_sheets and strict else "[green]PASS[/green]"
        console.print(f"  Status: {status}")

    if summary.missing_sheets:
        message = f"Missing worksheets: {', '.join(summary.missing_sheets)}"
        if strict:
            _err(message)
            raise typer.Exit(code=2)
        if not quiet:
            console.print(f"  [yellow]![/yellow] {message}")
