from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Buffered JSON Lines error log.

One file per run, ``<logs_dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC), created
on the first flush that has records to write. The record schema is fixed
(see ``ErrorRecord``); no extra keys are written.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of error records; ``flush`` appends them to the run file."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
        self._written = 0

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def written(self) -> int:
        return self._written

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add(self, file: str, sheet: str, row: int, field: str, error_type: str, message: str) -> ErrorRecord:
        record = ErrorRecord.create(file=file, sheet=sheet, row=row, field=field, error_type=error_type, message=message)
        self.append(record)
        return record

    def pending(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when nothing was written."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._written += len(self._records)
        self._records.clear()
        return fp
