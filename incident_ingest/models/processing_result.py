from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .corrective import CorrectiveRecord, Release
from .derived_record import DerivedRecord

"""Result envelopes.

``ProcessingResult`` is the per-workbook envelope handed to the persistence
collaborator; ``RunResult`` aggregates a CLI run over several files and feeds
the SUMMARY line.
"""

__all__ = [
    "Record",
    "RowError",
    "ProcessingResult",
    "FileStat",
    "RunResult",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = 0  # row number used for structural (whole-file) errors

Record = DerivedRecord | CorrectiveRecord | Release


@dataclass(frozen=True)
class RowError:
    row: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of processing one workbook.

    Attributes:
        success: no structural error, and at least one row succeeded or no row
            failed validation
        records: derived records (or releases) in source row order
        warnings: non-fatal messages (header drift, fallbacks, rejected rows)
        errors: per-row validation errors, or a single file-level error
        rejected_rows: rows dropped because the business unit was UNKNOWN
    """
    success: bool
    file_name: str
    records: list[Record] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    rejected_rows: int = 0
    elapsed_seconds: float = 0.0

    @property
    def succeeded_rows(self) -> int:
        return len(self.records)

    @property
    def failed_rows(self) -> int:
        return sum(1 for e in self.errors if e.row > FILE_LEVEL_ROW)

    @property
    def structural_error(self) -> RowError | None:
        return next((e for e in self.errors if e.row == FILE_LEVEL_ROW), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "file_name": self.file_name,
            "records": [r.to_dict() for r in self.records],
            "warnings": list(self.warnings),
            "errors": [e.to_dict() for e in self.errors],
            "succeeded_rows": self.succeeded_rows,
            "rejected_rows": self.rejected_rows,
            "failed_rows": self.failed_rows,
            "elapsed_seconds": self.elapsed_seconds,
        }


@dataclass(frozen=True)
class FileStat:
    """Per-file line of a run."""
    file_name: str
    status: str  # success/failed
    rows: int  # derived records
    rejected_rows: int
    invalid_rows: int
    warnings: int
    elapsed_seconds: float


@dataclass(frozen=True)
class RunResult:
    """Aggregated results of one CLI run (SUMMARY line source)."""
    success_files: int
    failed_files: int
    total_rows: int
    rejected_rows: int
    invalid_rows: int
    warnings: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    file_stats: list[FileStat] = field(default_factory=list)
    results: list[ProcessingResult] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files
