from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pandas as pd
import pytest

from incident_ingest.models.derived_record import DerivedRecord, IncidentFields
from incident_ingest.services.export import ExportError, export_records, records_to_frame

LIMA = ZoneInfo("America/Lima")


def _records() -> list[DerivedRecord]:
    return [
        DerivedRecord(
            row_number=n,
            fields=IncidentFields(request_id=str(125470 + n), applications="Somos Belcorp 2.0"),
            business_unit="SB",
            mapped_status="On going in L3",
            priority="High",
            created_at=datetime(2025, 9, 19, 10, 0, tzinfo=LIMA),
            in_window=True,
            day=19,
            week=38,
            additional_info="",
            linked_count=n - 2,
        )
        for n in (2, 3)
    ]


def test_records_to_frame():
    frame = records_to_frame(_records())
    assert list(frame["request_id"]) == ["125472", "125473"]
    assert frame["week"].dtype == "int64"
    assert records_to_frame([]).empty


def test_export_csv(tmp_path: Path):
    path = export_records(_records(), tmp_path / "out" / "records.csv")
    frame = pd.read_csv(path, dtype={"request_id": str})
    assert list(frame["request_id"]) == ["125472", "125473"]
    assert list(frame["business_unit"]) == ["SB", "SB"]


def test_export_jsonl(tmp_path: Path):
    path = export_records(_records(), tmp_path / "records.jsonl")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])["linked_count"] == 1


def test_export_xlsx(tmp_path: Path):
    path = export_records(_records(), tmp_path / "records.xlsx")
    frame = pd.read_excel(path, engine="openpyxl", dtype={"request_id": str})
    assert list(frame["mapped_status"]) == ["On going in L3", "On going in L3"]


def test_unknown_format(tmp_path: Path):
    with pytest.raises(ExportError):
        export_records(_records(), tmp_path / "records.parquet")
    path = export_records(_records(), tmp_path / "records", fmt="csv")
    assert path.exists()
