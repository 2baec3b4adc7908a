from __future__ import annotations

from pathlib import Path

from incident_ingest.config.loader import build_config
from incident_ingest.excel.layouts import FOR_TAGGING_LAYOUT
from incident_ingest.services.orchestrator import read_for_tagging_rows


def _row(request_id: str) -> dict[str, str]:
    return {"technician": "Luis Ramos", "request_id": request_id, "module": "Pedidos", "subject": "No carga"}


def test_rows_take_the_nearest_marker_above(make_workbook):
    path = make_workbook(
        [
            _row("90"),
            "Bug errors",
            _row("1"),
            _row("2"),
            None,
            _row("3"),
            "Informational",
            _row("4"),
            _row("5"),
        ],
        layout=FOR_TAGGING_LAYOUT,
    )
    warnings: list[str] = []
    rows = read_for_tagging_rows(path, build_config({}), warnings)
    assert [(r.text("request_id"), r.category) for r in rows] == [
        ("1", "Bug errors"),
        ("2", "Bug errors"),
        ("3", "Bug errors"),
        ("4", "Informational"),
        ("5", "Informational"),
    ]
    assert len(warnings) == 1


def test_configured_markers(make_workbook):
    cfg = build_config({"category_markers": ["incidencias"]})
    path = make_workbook(
        ["Incidencias de datos", _row("1"), "Bug errors", _row("2")],
        layout=FOR_TAGGING_LAYOUT,
    )
    rows = read_for_tagging_rows(path, cfg)
    # "Bug errors" is not a configured marker, so it is read as a data row
    assert [(r.text("technician"), r.category) for r in rows] == [
        ("Luis Ramos", "Incidencias de datos"),
        ("Bug errors", "Incidencias de datos"),
        ("Luis Ramos", "Incidencias de datos"),
    ]
