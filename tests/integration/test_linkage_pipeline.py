from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from incident_ingest.excel.layouts import PARENT_CHILD_LAYOUT, TAG_LAYOUT
from incident_ingest.models.calendar_window import CalendarWindow, WindowKind
from incident_ingest.services.linkage import group_parent_child, group_tags
from incident_ingest.services.orchestrator import process_workbook, read_parent_child_pairs, read_tags

NOW = datetime(2025, 9, 22, 12, 0, tzinfo=ZoneInfo("America/Lima"))
WINDOW = CalendarWindow(date(2025, 9, 19), date(2025, 9, 25), WindowKind.WEEKLY)


def test_parent_child_workbook_feeds_incident_records(make_workbook, incident_row, base_config, link):
    pc = make_workbook(
        [
            {"request_id": link("300", "https://h/300"), "linked_request_id": link("120001", "https://h/120001")},
            {"request_id": "301", "linked_request_id": "120001"},
            {"request_id": "302", "linked_request_id": "120001"},
            {"request_id": "303", "linked_request_id": "130000"},
        ],
        layout=PARENT_CHILD_LAYOUT,
        name="linked.xlsx",
    )
    pairs = read_parent_child_pairs(pc, base_config)

    report = make_workbook(
        [
            incident_row(request_id="1", linked_request_id="120001"),
            incident_row(request_id="2", linked_request_id="No asignado"),
            incident_row(request_id="3"),
        ]
    )
    records = process_workbook(report, base_config, window=WINDOW, pairs=pairs, now=NOW).records
    assert [(r.linked_count, r.message) for r in records] == [
        (3, "120001 --> 3 Linked tickets"),
        (0, "No asignado --> 0 Linked tickets"),
        (0, ""),
    ]
    assert [r.recurrence_computed for r in records][:2] == ["Recurrente", ""]

    groups = group_parent_child(pairs)
    assert [(g.child_id, g.parent_count) for g in groups] == [("120001", 3), ("130000", 1)]
    assert groups[0].child_link == "https://h/120001"
    assert groups[0].parents[0].link == "https://h/300"


def test_tag_workbook_grouping(make_workbook, base_config, link):
    path = make_workbook(
        [
            {"request_id": link("1", "https://h/1"), "linked_request_id": "500", "categorization": "Error de datos",
             "additional_info": "Carga masiva"},
            {"request_id": "2", "linked_request_id": "500", "categorization": "Error de datos"},
            {"request_id": "3", "linked_request_id": "500", "categorization": "Bug", "additional_info": "Carga masiva"},
            {"request_id": "4", "linked_request_id": "No asignado", "categorization": "Bug"},
        ],
        layout=TAG_LAYOUT,
    )
    grouping = group_tags(read_tags(path, base_config))
    assert grouping.skipped == 1
    (group,) = grouping.groups
    assert group.categorizations == ["Error de datos", "Bug"]
    assert group.additional_infos == ["Carga masiva"]
    refs = grouping.additional_info_index["500"]["Carga masiva"]
    assert [(r.request_id, r.link) for r in refs] == [("1", "https://h/1"), ("3", None)]
