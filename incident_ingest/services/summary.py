from __future__ import annotations

from ..models.processing_result import ProcessingResult, RunResult

"""SUMMARY line rendering and short message listings."""

__all__ = [
    "format_number",
    "render_summary_line",
    "first_messages",
]


def format_number(value: float) -> str:
    """Integral values without a fraction, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: RunResult) -> str:
    """Render the SUMMARY line of a run.

    Format:
    SUMMARY files={total}/{total} success={success} failed={failed} rows={rows}
    rejected={rejected} invalid={invalid} warnings={warnings}
    elapsed_sec={elapsed} throughput_rps={throughput}

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2025, 9, 19, tzinfo=timezone.utc)
        >>> render_summary_line(RunResult(1, 0, 10, 2, 1, 3, t, t, 2.0, 5.0))
        'SUMMARY files=1/1 success=1 failed=0 rows=10 rejected=2 invalid=1 warnings=3 elapsed_sec=2 throughput_rps=5'
    """
    total = result.total_files
    return (
        f"SUMMARY files={total}/{total} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_rows} "
        f"rejected={result.rejected_rows} "
        f"invalid={result.invalid_rows} "
        f"warnings={result.warnings} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )


def first_messages(result: ProcessingResult, n: int = 10) -> list[str]:
    """First ``n`` error then warning messages, verbatim, for UI listings."""
    if n <= 0:
        return []
    lines = [f"row {e.row} [{e.field}]: {e.message}" for e in result.errors]
    lines.extend(result.warnings)
    return lines[:n]
