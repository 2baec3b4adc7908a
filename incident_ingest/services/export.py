from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from ..models.processing_result import Record

"""Export of derived records (or releases) through pandas (csv, xlsx, jsonl)."""

__all__ = [
    "EXPORT_FORMATS",
    "ExportError",
    "records_to_frame",
    "export_records",
]

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "xlsx", "jsonl")
_SUFFIX_FORMATS = {".csv": "csv", ".xlsx": "xlsx", ".jsonl": "jsonl", ".json": "jsonl"}


class ExportError(Exception):
    pass


def records_to_frame(records: Sequence[Record]) -> pd.DataFrame:
    """One row per record; complete integer columns keep their dtype, text stays text."""
    rows = [r.to_dict() for r in records]
    frame = pd.DataFrame.from_records(rows)
    if frame.empty:
        return frame
    for col in ("linked_count", "day", "week", "row"):
        # release weeks may be missing
        if col in frame.columns and frame[col].notna().all():
            frame[col] = frame[col].astype("int64")
    return frame


def export_records(records: Sequence[Record], path: Path, fmt: str | None = None) -> Path:
    """Write ``records`` to ``path``; the format defaults to the file suffix.

    Raises:
        ExportError: unknown format or write failure
    """
    fmt = fmt or _SUFFIX_FORMATS.get(path.suffix.lower())
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"unsupported export format for {path.name}: {fmt}")
    frame = records_to_frame(records)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "csv":
            frame.to_csv(path, index=False, encoding="utf-8")
        elif fmt == "xlsx":
            frame.to_excel(path, index=False, engine="openpyxl")
        else:
            frame.to_json(path, orient="records", lines=True, force_ascii=False)
    except OSError as e:
        raise ExportError(f"cannot write {path}: {e}") from e
    logger.info("exported %d records to %s", len(frame), path)
    return path
