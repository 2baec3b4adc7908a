# Shared pytest fixtures
from __future__ import annotations

import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from openpyxl import Workbook
from openpyxl.utils import column_index_from_string

from incident_ingest.config.loader import build_config
from incident_ingest.excel.layouts import INCIDENT_LAYOUT, SheetLayout
from incident_ingest.logging.init import reset_logging

LIMA = ZoneInfo("America/Lima")
# Monday of the ISO week after the 2025-09-19..2025-09-25 cut window
NOW = datetime(2025, 9, 22, 12, 0, tzinfo=LIMA)


@dataclass(frozen=True)
class Link:
    """Cell value written together with a hyperlink."""
    value: Any
    url: str


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("INCIDENT_INGEST_CONFIG", raising=False)
        monkeypatch.delenv("INCIDENT_INGEST_TIMEZONE", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timezone: America/Lima
source_directory: ./data
calendar:
  windows:
    monthly:
      kind: weekly
      from: "2025-09-19"
      to: "2025-09-25"
output:
  error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "pipeline.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def base_config():
    """Defaults only: built-in rules, no calendar window."""
    return build_config({})


@pytest.fixture()
def window_config():
    return build_config(
        {"calendar": {"windows": {"monthly": {"kind": "weekly", "from": "2025-09-19", "to": "2025-09-25"}}}}
    )


@pytest.fixture()
def incident_row():
    """Factory of incident rows keyed by layout field name."""
    def _make(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "applications": "Somos Belcorp 2.0",
            "categorization": "Error de datos",
            "request_id": Link("125476", "https://sdp.example.com/WorkOrder.do?woID=125476"),
            "created_time": "19/09/2025 10:00",
            "request_status": "Nivel 3",
            "module": "Pedidos",
            "subject": "No carga el pedido",
            "priority": "Alta",
            "additional_info": "",
            "technician": "Ana Torres",
            "release": "R-2025.09",
        }
        row.update(overrides)
        return row
    return _make


def write_sheet(
    ws,
    layout: SheetLayout,
    rows: list[Any],
    headers: list[str] | None = None,
) -> None:
    """Fill ``ws``: header row, then rows.

    A row is a mapping of field -> value (``Link`` adds a hyperlink), a string
    (a category marker written in the marker column) or None (blank row).
    """
    by_field = {c.field: c.letter for c in layout.columns}
    for col, header in zip(layout.columns, headers if headers is not None else layout.headers):
        if header is not None:
            ws[f"{col.letter}1"] = header
    marker_letter = layout.marker_column or layout.columns[0].letter
    for r, row in enumerate(rows, start=2):
        if row is None:
            continue
        if isinstance(row, str):
            ws.cell(row=r, column=column_index_from_string(marker_letter), value=row)
            continue
        for name, value in row.items():
            cell = ws[f"{by_field[name]}{r}"]
            if isinstance(value, Link):
                cell.value = value.value
                cell.hyperlink = value.url
            else:
                cell.value = value


@pytest.fixture()
def make_workbook(tmp_path: Path):
    """Factory writing an .xlsx with one sheet laid out per ``layout``."""
    def _make(
        rows: list[Any],
        *,
        layout: SheetLayout = INCIDENT_LAYOUT,
        name: str = "report.xlsx",
        sheet_name: str | None = None,
        headers: list[str] | None = None,
        directory: Path | None = None,
    ) -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_name or layout.sheet_name
        write_sheet(ws, layout, rows, headers)
        path = (directory or tmp_path) / name
        wb.save(path)
        return path
    return _make


@pytest.fixture()
def link():
    """The ``Link`` cell-value type (hyperlinked cell)."""
    return Link
