from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from ..config.loader import PipelineConfig, RuleBook
from ..excel.layouts import SheetLayout
from ..excel.reader import StructuralError, extract_rows, get_sheet, load_workbook_source
from ..logging.error_log import ErrorLogBuffer
from ..models.calendar_window import CalendarWindow, WindowScope
from ..models.linkage import ParentChildPair, TagRow
from ..models.processing_result import FILE_LEVEL_ROW, FileStat, ProcessingResult, Record, RowError, RunResult
from ..models.source_row import SourceRow
from . import calendar
from .corrective import derive_corrective, parse_release
from .deriver import BusinessUnitClassifier, RecordRejected, RowValidationError, derive, derive_async
from .linkage import aggregate
from .progress import ProgressTracker
from .summary import first_messages

"""Per-workbook pipeline orchestration.

``process_workbook`` runs extraction, derivation and linkage for one
workbook and returns a ``ProcessingResult`` envelope. Row failures are
fail-soft: a validation error or a rejected row excludes only that row.
Structural errors (unreadable file, missing sheet, short header row) abort
the file and are reported as a single ``row 0 / file`` error.
``process_corrective_workbook`` and ``read_releases`` run the same envelope
over the corrective backlog and the SB releases sheets.

``process_files`` drives a CLI run over several workbooks and aggregates a
``RunResult`` for the SUMMARY line.
"""

__all__ = [
    "ProcessingError",
    "FALLBACK_WINDOW_WARNING",
    "scan_excel_files",
    "process_workbook",
    "process_workbook_async",
    "process_corrective_workbook",
    "read_releases",
    "REPORT_KINDS",
    "process_files",
    "read_parent_child_pairs",
    "read_tags",
    "read_for_tagging_rows",
    "first_messages",
]

logger = logging.getLogger(__name__)

FALLBACK_WINDOW_WARNING = (
    "no calendar window configured; in_window uses the current-week policy (Monday to Sunday)"
)

Source = str | Path | bytes | bytearray | IO[bytes]

REPORT_KINDS = ("incident", "corrective", "releases")


class ProcessingError(Exception):
    """Fatal run-level error (nothing could be processed)."""


def scan_excel_files(directory: Path) -> list[Path]:
    """Scan ``directory`` for .xlsx files (non-recursive, sorted by name).

    Raises:
        ProcessingError: directory missing, not a directory or unreadable
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")
    try:
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() == ".xlsx" and not p.name.startswith("~$")
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def _source_name(source: Source, file_name: str | None) -> str:
    if file_name:
        return file_name
    if isinstance(source, (str, Path)):
        return Path(source).name
    return getattr(source, "name", None) or "<memory>"


def _open_rows(source: Source, layout: SheetLayout, warnings: list[str]) -> Iterator[SourceRow]:
    workbook = load_workbook_source(source)
    sheet = get_sheet(workbook, layout.sheet_name)
    return extract_rows(sheet, layout, warnings)


class _WorkbookRun:
    """Mutable state of one workbook while rows are derived."""

    def __init__(
        self,
        source: Source,
        config: PipelineConfig,
        rules: RuleBook | None,
        error_log: ErrorLogBuffer | None,
        now: datetime | None,
        file_name: str | None,
        layout_name: str = "incident",
    ) -> None:
        self.source = source
        self.config = config
        self.rules = rules or config.rules
        self.layout = config.layout(layout_name)
        self.error_log = error_log
        self.now = now
        self.file_name = _source_name(source, file_name)
        self.records: list[Record] = []
        self.warnings: list[str] = []
        self.errors: list[RowError] = []
        self.rejected = 0
        self.structural = False
        self.started = time.perf_counter()
        self.window: CalendarWindow | None = None
        self.explicit_window = False
        self.current_week_policy = False

    def use_incident_window(self, window: CalendarWindow | None) -> None:
        """Explicit window, else the configured one, else the current-week policy."""
        self.current_week_policy = True
        self.explicit_window = window is not None
        self.window = window if window is not None else self.config.active_window()
        if self.window is None:
            logger.warning(FALLBACK_WINDOW_WARNING)
            self.warnings.append(FALLBACK_WINDOW_WARNING)

    def _log(self, row: int, field: str, error_type: str, message: str) -> None:
        if self.error_log is not None:
            self.error_log.add(self.file_name, self.layout.sheet_name, row, field, error_type, message)

    def rows(self) -> Iterator[SourceRow]:
        try:
            yield from _open_rows(self.source, self.layout, self.warnings)
        except StructuralError as e:
            self.fail_file(str(e), "STRUCTURAL_ERROR")

    def fail_file(self, message: str, error_type: str) -> None:
        logger.error("file=%s %s", self.file_name, message)
        self.structural = True
        self.errors.append(RowError(FILE_LEVEL_ROW, "file", message))
        self._log(FILE_LEVEL_ROW, "file", error_type, message)

    def rejected_row(self, row: SourceRow, exc: RecordRejected) -> None:
        self.rejected += 1
        msg = f"row {row.row_number}: business unit UNKNOWN for applications '{exc.applications}'; row rejected"
        self.warnings.append(msg)
        self._log(row.row_number, exc.field, "REJECTED_ROW", exc.message)

    def invalid_row(self, row: SourceRow, exc: RowValidationError) -> None:
        self.errors.append(RowError(row.row_number, exc.field, exc.message))
        self._log(row.row_number, exc.field, "ROW_VALIDATION_ERROR", exc.message)

    def _window_divergence(self) -> None:
        if self.window is None or not self.current_week_policy:
            return
        tz = self.config.timezone
        diverging = sum(
            1 for r in self.records
            if r.in_window != calendar.in_current_week(r.created_at, self.now, tz)
        )
        if diverging:
            origin = "explicit" if self.explicit_window else "configured"
            msg = (
                f"{diverging} record(s) classified by the {origin} window "
                f"({calendar.display_text(self.window)}) differ from the current-week policy"
            )
            logger.warning(msg)
            self.warnings.append(msg)

    def finish(self, pairs: Sequence[ParentChildPair] | None) -> ProcessingResult:
        if pairs is not None:
            self.records = aggregate(self.records, pairs)
        self._window_divergence()
        failed_rows = sum(1 for e in self.errors if e.row > FILE_LEVEL_ROW)
        success = not self.structural and (bool(self.records) or failed_rows == 0)
        elapsed = time.perf_counter() - self.started
        logger.info(
            "file=%s records=%d rejected=%d invalid=%d warnings=%d",
            self.file_name, len(self.records), self.rejected, failed_rows, len(self.warnings),
        )
        return ProcessingResult(
            success=success,
            file_name=self.file_name,
            records=self.records,
            warnings=self.warnings,
            errors=self.errors,
            rejected_rows=self.rejected,
            elapsed_seconds=elapsed,
        )


def process_workbook(
    source: Source,
    config: PipelineConfig,
    rules: RuleBook | None = None,
    *,
    window: CalendarWindow | None = None,
    pairs: Sequence[ParentChildPair] | None = None,
    error_log: ErrorLogBuffer | None = None,
    now: datetime | None = None,
    file_name: str | None = None,
) -> ProcessingResult:
    """Process the incident sheet of one workbook.

    Args:
        source: path, raw bytes or binary file object
        config: pipeline configuration
        rules: rule snapshot for this run (defaults to the configured rules)
        window: explicit cut window; overrides the configured one
        pairs: parent/child pairs used to compute linked-ticket counts
        error_log: buffer receiving row and file errors as JSON Lines records
        now: reference time for the current-week fallback policy
        file_name: name used in results and logs for non-path sources

    Returns:
        ProcessingResult envelope (never raises for file or row problems)
    """
    run = _WorkbookRun(source, config, rules, error_log, now, file_name)
    run.use_incident_window(window)
    try:
        for row in run.rows():
            try:
                run.records.append(
                    derive(
                        row,
                        run.rules.business_unit,
                        run.rules.status,
                        run.window,
                        settings=config.derivation,
                        display_rules=run.rules.display,
                        now=now,
                        warnings=run.warnings,
                    )
                )
            except RecordRejected as e:
                run.rejected_row(row, e)
            except RowValidationError as e:
                run.invalid_row(row, e)
    except Exception as e:
        # rows derived so far stay in the result
        run.fail_file(f"unexpected error: {e}", "PROCESSING_ERROR")
    return run.finish(pairs)


async def process_workbook_async(
    source: Source,
    config: PipelineConfig,
    business_unit_classifier: BusinessUnitClassifier,
    rules: RuleBook | None = None,
    *,
    window: CalendarWindow | None = None,
    pairs: Sequence[ParentChildPair] | None = None,
    error_log: ErrorLogBuffer | None = None,
    now: datetime | None = None,
    file_name: str | None = None,
) -> ProcessingResult:
    """``process_workbook`` with an external business unit classifier.

    Each row's classification is awaited before the next row is read, so
    records keep source row order.
    """
    run = _WorkbookRun(source, config, rules, error_log, now, file_name)
    run.use_incident_window(window)
    try:
        for row in run.rows():
            try:
                record = await derive_async(
                    row,
                    business_unit_classifier,
                    run.rules.status,
                    run.window,
                    settings=config.derivation,
                    display_rules=run.rules.display,
                    now=now,
                    warnings=run.warnings,
                )
            except RecordRejected as e:
                run.rejected_row(row, e)
            except RowValidationError as e:
                run.invalid_row(row, e)
            else:
                run.records.append(record)
    except Exception as e:
        run.fail_file(f"unexpected error: {e}", "PROCESSING_ERROR")
    return run.finish(pairs)


def process_corrective_workbook(
    source: Source,
    config: PipelineConfig,
    rules: RuleBook | None = None,
    *,
    window: CalendarWindow | None = None,
    error_log: ErrorLogBuffer | None = None,
    file_name: str | None = None,
) -> ProcessingResult:
    """Process the corrective-maintenance backlog sheet of one workbook.

    ``window`` overrides the configured ``corrective`` window. Without either,
    every record is in window and no fallback policy applies.
    """
    run = _WorkbookRun(source, config, rules, error_log, None, file_name, layout_name="corrective")
    run.window = window if window is not None else config.calendar.active_window(WindowScope.CORRECTIVE.value)
    try:
        for row in run.rows():
            try:
                run.records.append(
                    derive_corrective(
                        row,
                        run.rules.business_unit,
                        run.rules.corrective_status,
                        run.window,
                        settings=config.derivation,
                        warnings=run.warnings,
                    )
                )
            except RecordRejected as e:
                run.rejected_row(row, e)
            except RowValidationError as e:
                run.invalid_row(row, e)
    except Exception as e:
        run.fail_file(f"unexpected error: {e}", "PROCESSING_ERROR")
    return run.finish(None)


def read_releases(
    source: Source,
    config: PipelineConfig,
    *,
    error_log: ErrorLogBuffer | None = None,
    file_name: str | None = None,
) -> ProcessingResult:
    """Read the SB operational releases sheet (``Hoja3`` by default).

    Rows without an application, a valid date or a release identifier are
    row errors; the envelope holds ``Release`` records.
    """
    run = _WorkbookRun(source, config, None, error_log, None, file_name, layout_name="releases")
    try:
        for row in run.rows():
            try:
                run.records.append(parse_release(row, config.derivation))
            except RowValidationError as e:
                run.invalid_row(row, e)
    except Exception as e:
        run.fail_file(f"unexpected error: {e}", "PROCESSING_ERROR")
    return run.finish(None)


def read_parent_child_pairs(
    source: Source, config: PipelineConfig, warnings: list[str] | None = None
) -> list[ParentChildPair]:
    """Read the parent/child sheet (Request ID -> Linked Request Id).

    Rows missing either id are skipped with one warning.

    Raises:
        StructuralError: unreadable workbook, missing sheet or short header row
    """
    sink = warnings if warnings is not None else []
    pairs: list[ParentChildPair] = []
    incomplete = 0
    for row in _open_rows(source, config.layout("parent_child"), sink):
        parent, child = row.text("request_id"), row.text("linked_request_id")
        if not parent or not child:
            incomplete += 1
            continue
        pairs.append(ParentChildPair(parent, child, row.link("request_id"), row.link("linked_request_id")))
    if incomplete:
        msg = f"parent/child sheet: {incomplete} row(s) without both ids skipped"
        logger.warning(msg)
        sink.append(msg)
    return pairs


def read_tags(source: Source, config: PipelineConfig, warnings: list[str] | None = None) -> list[TagRow]:
    """Read the tag report sheet (rows without a request id are skipped)."""
    sink = warnings if warnings is not None else []
    tags: list[TagRow] = []
    for row in _open_rows(source, config.layout("tag"), sink):
        if not row.text("request_id"):
            continue
        tags.append(
            TagRow(
                request_id=row.text("request_id"),
                linked_request_id=row.text("linked_request_id"),
                categorization=row.text("categorization"),
                additional_info=row.text("additional_info"),
                request_id_link=row.link("request_id"),
                linked_request_id_link=row.link("linked_request_id"),
                created_time=row.text("created_time"),
                module=row.text("module"),
                problem_id=row.text("problem_id"),
                problem_id_link=row.link("problem_id"),
                jira=row.text("jira"),
                technician=row.text("technician"),
            )
        )
    return tags


def read_for_tagging_rows(
    source: Source, config: PipelineConfig, warnings: list[str] | None = None
) -> list[SourceRow]:
    """Read the for-tagging sheet; every row carries its section category."""
    return list(_open_rows(source, config.layout("for_tagging"), warnings if warnings is not None else []))


def _file_stat(path: Path, result: ProcessingResult) -> FileStat:
    return FileStat(
        file_name=path.name,
        status="success" if result.success else "failed",
        rows=result.succeeded_rows,
        rejected_rows=result.rejected_rows,
        invalid_rows=result.failed_rows,
        warnings=len(result.warnings),
        elapsed_seconds=result.elapsed_seconds,
    )


def process_files(
    paths: Iterable[Path],
    config: PipelineConfig,
    *,
    window: CalendarWindow | None = None,
    pairs: Sequence[ParentChildPair] | None = None,
    error_log: ErrorLogBuffer | None = None,
    now: datetime | None = None,
    report: str = "incident",
) -> RunResult:
    """Process several workbooks with one rule snapshot and aggregate the run.

    ``report`` selects the sheet type: ``incident`` (default), ``corrective``
    or ``releases``. A file counts as failed when its envelope is not
    successful or when any row failed validation (partial failure).

    Raises:
        ProcessingError: unknown report kind
    """
    if report not in REPORT_KINDS:
        raise ProcessingError(f"unknown report kind: {report}")
    files = list(paths)
    start_time = datetime.now(UTC)
    log = error_log if error_log is not None else ErrorLogBuffer(config.error_log_dir)
    rules = config.rules  # one snapshot for the whole run

    results: list[ProcessingResult] = []
    stats: list[FileStat] = []
    success_count = failed_count = 0
    total_rows = rejected = invalid = warning_count = 0

    with ProgressTracker(len(files), description="Processing workbooks") as progress:
        for path in files:
            progress.start_file(path)
            if report == "corrective":
                result = process_corrective_workbook(path, config, rules, window=window, error_log=log)
            elif report == "releases":
                result = read_releases(path, config, error_log=log)
            else:
                result = process_workbook(
                    path, config, rules, window=window, pairs=pairs, error_log=log, now=now
                )
            ok = result.success and result.failed_rows == 0
            if ok:
                success_count += 1
            else:
                failed_count += 1
            total_rows += result.succeeded_rows
            rejected += result.rejected_rows
            invalid += result.failed_rows
            warning_count += len(result.warnings)
            progress.set_postfix(success=success_count, failed=failed_count, rows=total_rows)
            progress.finish_file(success=ok)
            results.append(result)
            stats.append(_file_stat(path, result))

    try:
        written = log.flush()
        if written is not None and log.written:
            logger.info("error log written: %s", written)
    except OSError as e:
        logger.warning("could not write error log: %s", e)

    end_time = datetime.now(UTC)
    elapsed = (end_time - start_time).total_seconds()
    return RunResult(
        success_files=success_count,
        failed_files=failed_count,
        total_rows=total_rows,
        rejected_rows=rejected,
        invalid_rows=invalid,
        warnings=warning_count,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=total_rows / elapsed if elapsed > 0 else 0.0,
        file_stats=stats,
        results=results,
    )
