from __future__ import annotations

import time
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from incident_ingest.config.loader import build_config
from incident_ingest.excel.cells import NormalizedCell
from incident_ingest.models.calendar_window import CalendarWindow, WindowKind
from incident_ingest.models.linkage import ParentChildPair
from incident_ingest.models.source_row import SourceRow
from incident_ingest.services.deriver import derive
from incident_ingest.services.linkage import aggregate
from incident_ingest.services.orchestrator import process_workbook

"""Throughput smoke tests.

Budgets are lenient so CI stays stable; they catch accidental quadratic
behaviour (per-row regex compilation, repeated workbook loads) rather than
measure absolute speed.
"""

NOW = datetime(2025, 9, 22, 12, 0, tzinfo=ZoneInfo("America/Lima"))
WINDOW = CalendarWindow(date(2025, 9, 19), date(2025, 9, 25), WindowKind.WEEKLY)
APPLICATIONS = ["Somos Belcorp 2.0", "Unete 3.0", "App - Crecer es Ganar", "Catálogo Digital", "PROL"]
STATUSES = ["Nivel 2", "Nivel 3", "Closed", "Esperando El Cliente", "Validado"]


def _source_rows(n: int) -> list[SourceRow]:
    rows = []
    for i in range(n):
        cells = {
            "applications": NormalizedCell(APPLICATIONS[i % len(APPLICATIONS)]),
            "categorization": NormalizedCell("Error de datos"),
            "request_id": NormalizedCell(str(100000 + i), f"https://h/{100000 + i}"),
            "created_time": NormalizedCell(f"{19 + i % 7:02d}/09/2025 {i % 24:02d}:00"),
            "request_status": NormalizedCell(STATUSES[i % len(STATUSES)]),
            "additional_info": NormalizedCell("Detalle"),
            "linked_request_id": NormalizedCell(str(900 + i % 50)),
            "priority": NormalizedCell("Alta"),
        }
        rows.append(SourceRow(row_number=i + 2, cells=cells))
    return rows


def test_derive_throughput():
    cfg = build_config({})
    rows = _source_rows(20_000)
    start = time.perf_counter()
    records = [
        derive(r, cfg.rules.business_unit, cfg.rules.status, WINDOW, settings=cfg.derivation, now=NOW)
        for r in rows
    ]
    pairs = [ParentChildPair(str(i), str(900 + i % 50)) for i in range(5_000)]
    records = aggregate(records, pairs)
    elapsed = time.perf_counter() - start
    assert len(records) == 20_000
    assert records[0].linked_count == 100
    throughput = len(records) / elapsed
    assert throughput > 2_000, f"derive throughput too low: {throughput:.0f} rows/s"


@pytest.mark.slow
def test_workbook_throughput(make_workbook, incident_row):
    path = make_workbook([incident_row(request_id=str(i)) for i in range(3_000)])
    start = time.perf_counter()
    result = process_workbook(path, build_config({}), window=WINDOW, now=NOW)
    elapsed = time.perf_counter() - start
    assert result.succeeded_rows == 3_000
    assert elapsed < 30, f"workbook processing too slow: {elapsed:.2f}s"
