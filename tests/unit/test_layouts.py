from __future__ import annotations

import pytest

from incident_ingest.config.loader import build_config
from incident_ingest.excel.layouts import (
    CORRECTIVE_LAYOUT,
    DEFAULT_SHEET_NAME,
    INCIDENT_LAYOUT,
    RELEASES_LAYOUT,
    RELEASES_SHEET_NAME,
    ColumnSpec,
)


def test_column_index_from_letter():
    assert ColumnSpec("B", "Aplicativos", "applications").index == 2
    assert ColumnSpec("ab", "X", "x").index == 28
    assert max(c.index for c in INCIDENT_LAYOUT.columns) == 26
    with pytest.raises(ValueError):
        _ = ColumnSpec("B2", "X", "x").index


def test_corrective_layout_columns():
    assert [c.letter for c in CORRECTIVE_LAYOUT.columns] == list("BCDEFGHIJK")
    assert CORRECTIVE_LAYOUT.link_fields == frozenset({"request_id", "subject"})
    assert CORRECTIVE_LAYOUT.headers[-1] == "RCA"


def test_layout_sheet_defaults_follow_the_layout():
    cfg = build_config({"sheets": {"corrective": "Backlog"}})
    assert cfg.layout("corrective").sheet_name == "Backlog"
    assert cfg.layout("releases").sheet_name == RELEASES_SHEET_NAME
    assert cfg.layout("incident").sheet_name == DEFAULT_SHEET_NAME
    assert RELEASES_LAYOUT.link_fields == frozenset({"release", "tickets"})
