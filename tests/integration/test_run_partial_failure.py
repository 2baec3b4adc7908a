from __future__ import annotations

import json
from pathlib import Path

from incident_ingest.cli.__main__ import EXIT_PARTIAL_FAILURE, main


def test_partial_failure_run(write_config: Path, make_workbook, incident_row, capsys):
    data = Path("data")
    make_workbook([incident_row(request_id="1"), incident_row(request_id="2")], name="a-good.xlsx", directory=data)
    make_workbook(
        [
            incident_row(request_id="10"),
            incident_row(request_id="11", request_status="Dev in progress", additional_info="Pendiente"),
            incident_row(request_id="12", applications="Sistema Legacy"),
        ],
        name="b-partial.xlsx",
        directory=data,
    )
    make_workbook([incident_row()], name="c-wrong-sheet.xlsx", sheet_name="Sheet1", directory=data)

    assert main([]) == EXIT_PARTIAL_FAILURE
    out = capsys.readouterr().out
    assert "SUMMARY files=3/3 success=1 failed=2 rows=3 rejected=1 invalid=1" in out
    assert "b-partial.xlsx: row 3 [additional_info]" in out
    assert 'ERROR file=c-wrong-sheet.xlsx Sheet named "ManageEngine Report Framework" not found' in out

    (log_file,) = list(Path("logs").glob("errors-*.log"))
    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert [(e["file"], e["row"], e["error_type"]) for e in entries] == [
        ("b-partial.xlsx", 3, "ROW_VALIDATION_ERROR"),
        ("b-partial.xlsx", 4, "REJECTED_ROW"),
        ("c-wrong-sheet.xlsx", 0, "STRUCTURAL_ERROR"),
    ]
    assert entries[2]["field"] == "file"
