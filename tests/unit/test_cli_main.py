from __future__ import annotations

import os
from pathlib import Path

import pandas as pd

from incident_ingest.cli.__main__ import (
    EXIT_FATAL,
    EXIT_PARTIAL_FAILURE,
    EXIT_SUCCESS_ALL,
    main,
)
from incident_ingest.excel.layouts import CORRECTIVE_LAYOUT, PARENT_CHILD_LAYOUT, RELEASES_LAYOUT


def test_missing_config_is_fatal(temp_workdir: Path, capsys):
    assert main([]) == EXIT_FATAL
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_invalid_config_is_fatal(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "pipeline.yml").write_text("unknown_key: 1\n", encoding="utf-8")
    assert main([]) == EXIT_FATAL
    assert "config validation failed" in capsys.readouterr().out


def test_run_from_source_directory(write_config: Path, make_workbook, incident_row, capsys):
    make_workbook([incident_row()], directory=Path("data"))
    assert main([]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "INFO Processing 1 workbook(s)" in out
    assert "SUMMARY files=1/1 success=1 failed=0 rows=1" in out


def test_partial_failure_exit_code(write_config: Path, make_workbook, incident_row, capsys):
    make_workbook([incident_row(), incident_row(created_time="bad")], directory=Path("data"))
    assert main([]) == EXIT_PARTIAL_FAILURE
    out = capsys.readouterr().out
    assert "row 3 [created_time]" in out
    assert list(Path("logs").glob("errors-*.log"))


def test_invalid_window_arguments(write_config: Path, capsys):
    code = main(["--window-kind", "weekly", "--window-from", "2025-09-18", "--window-to", "2025-09-25"])
    assert code == EXIT_FATAL
    assert "must be a Friday" in capsys.readouterr().out


def test_explicit_paths_window_and_export(write_config: Path, make_workbook, incident_row, tmp_path: Path):
    path = make_workbook([incident_row(created_time="02/09/2025 08:00")])
    out_file = tmp_path / "export.csv"
    code = main(
        [str(path), "--window-from", "2025-09-01", "--window-to", "2025-09-10", "--output", str(out_file)]
    )
    assert code == EXIT_SUCCESS_ALL
    frame = pd.read_csv(out_file)
    assert bool(frame.loc[0, "in_window"]) is True
    assert frame.loc[0, "business_unit"] == "SB"


def test_parent_child_argument(write_config: Path, make_workbook, incident_row, tmp_path: Path, capsys):
    pc = make_workbook(
        [{"request_id": "200", "linked_request_id": "120001"}],
        layout=PARENT_CHILD_LAYOUT,
        name="pc.xlsx",
    )
    make_workbook([incident_row(linked_request_id="120001")], directory=Path("data"))
    out_file = tmp_path / "export.jsonl"
    assert main(["--parent-child", str(pc), "--output", str(out_file)]) == EXIT_SUCCESS_ALL
    assert "loaded 1 parent/child pairs" in capsys.readouterr().out
    assert '"message":"120001 --> 1 Linked tickets"' in out_file.read_text(encoding="utf-8")


def test_missing_input_is_fatal(write_config: Path, capsys):
    assert main(["nope.xlsx"]) == EXIT_FATAL
    assert "input not found" in capsys.readouterr().out


def test_inspect_data(write_config: Path, make_workbook, incident_row, capsys):
    make_workbook([incident_row()], directory=Path("data"))
    assert main(["--inspect-data"]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "FILE: report.xlsx" in out
    assert "SUMMARY" not in out


def test_env_file_sets_config_path(temp_workdir: Path, sample_config_yaml: str, monkeypatch):
    custom = temp_workdir / "custom.yml"
    custom.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / ".env").write_text(f"INCIDENT_INGEST_CONFIG={custom}\n", encoding="utf-8")
    monkeypatch.delenv("INCIDENT_INGEST_CONFIG", raising=False)
    assert main([]) == EXIT_SUCCESS_ALL
    assert os.environ["INCIDENT_INGEST_CONFIG"] == str(custom)
    monkeypatch.delenv("INCIDENT_INGEST_CONFIG", raising=False)


def test_corrective_report(write_config: Path, make_workbook, capsys):
    row = {
        "applications": "Portal FFVV",
        "request_id": "130020",
        "created_time": "10/09/2025 08:30",
        "request_status": "En Mantenimiento Correctivo",
    }
    make_workbook([row], layout=CORRECTIVE_LAYOUT, directory=Path("data"))
    assert main(["--report", "corrective"]) == EXIT_SUCCESS_ALL
    assert "SUMMARY files=1/1 success=1 failed=0 rows=1" in capsys.readouterr().out


def test_releases_report_export(write_config: Path, make_workbook, tmp_path: Path, capsys):
    make_workbook(
        [
            {"application": "Somos Belcorp 2.0", "date": "18/09/2025", "release": "R-2025.09.2"},
            {"application": "Somos Belcorp 2.0", "date": "18/09/2025"},
        ],
        layout=RELEASES_LAYOUT,
        directory=Path("data"),
    )
    out_file = tmp_path / "releases.csv"
    assert main(["--report", "releases", "--output", str(out_file)]) == EXIT_PARTIAL_FAILURE
    assert "row 3 [release]" in capsys.readouterr().out
    frame = pd.read_csv(out_file)
    assert list(frame["release_version"]) == ["R-2025.09.2"]
