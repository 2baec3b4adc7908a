from __future__ import annotations

import json
import re
from pathlib import Path

from incident_ingest.logging.error_log import ErrorLogBuffer
from incident_ingest.models.error_record import ErrorRecord


def test_flush_writes_jsonl(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.add("a.xlsx", "Report", 3, "created_time", "ROW_VALIDATION_ERROR", "bad date")
    buf.append(ErrorRecord.create("a.xlsx", "Report", 0, "file", "STRUCTURAL_ERROR", "no sheet"))
    assert len(buf) == 2

    path = buf.flush()
    assert path is not None and path.exists()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["row"] == 3
    assert first["field"] == "created_time"
    assert first["timestamp"].endswith("Z")
    assert len(buf) == 0
    assert buf.written == 2


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.add("a.xlsx", "Report", 2, "request_id", "ROW_VALIDATION_ERROR", "empty")
    first = buf.flush()
    buf.add("b.xlsx", "Report", 5, "applications", "REJECTED_ROW", "unknown unit")
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_empty_flush_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_non_ascii_is_kept(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.add("catálogo.xlsx", "Report", 2, "module", "ROW_VALIDATION_ERROR", "Codificación")
    text = buf.flush().read_text(encoding="utf-8")
    assert "catálogo.xlsx" in text and "Codificación" in text
