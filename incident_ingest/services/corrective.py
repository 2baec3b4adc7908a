from __future__ import annotations

from datetime import datetime

from ..models.calendar_window import CalendarWindow
from ..models.corrective import CorrectiveRecord, Release
from ..models.rules import RuleSet
from ..models.source_row import SourceRow
from . import calendar
from .deriver import (
    UNKNOWN_BUSINESS_UNIT,
    DerivationSettings,
    RecordRejected,
    RowValidationError,
    map_priority,
    parse_created_time,
)
from .rule_engine import classify

"""Corrective-maintenance backlog rows and SB release rows.

Corrective rows share the incident business-unit rules but map their status
through the ``corrective_status`` rule set (no match keeps the raw status).
``in_window`` is tested against the ``corrective`` window; without one every
row is in scope.

Release rows need an application, a date and a release identifier; a row
missing any of them raises ``RowValidationError``.
"""

__all__ = [
    "CORRECTIVE_REQUIRED_FIELDS",
    "derive_corrective",
    "parse_release_date",
    "parse_release",
]

CORRECTIVE_REQUIRED_FIELDS: tuple[str, ...] = ("request_id", "applications")

_RELEASE_DATE_FORMATS = ("%d/%m/%Y %H:%M", "%d/%m/%Y")


def derive_corrective(
    row: SourceRow,
    business_unit_rules: RuleSet,
    status_rules: RuleSet,
    window: CalendarWindow | None,
    *,
    settings: DerivationSettings | None = None,
    warnings: list[str] | None = None,
) -> CorrectiveRecord:
    """Derive one corrective-maintenance record.

    Raises:
        RowValidationError: empty request id or applications, bad timestamp
        RecordRejected: business unit resolved to UNKNOWN
    """
    cfg = settings or DerivationSettings()
    sink = warnings if warnings is not None else []
    for name in CORRECTIVE_REQUIRED_FIELDS:
        if not row.text(name):
            raise RowValidationError(name, f"required field '{name}' is empty")

    applications = row.text("applications")
    unit = classify(business_unit_rules, applications, default=UNKNOWN_BUSINESS_UNIT)
    sink.extend(unit.warnings)
    if unit.value == UNKNOWN_BUSINESS_UNIT:
        raise RecordRejected(applications)

    zone = cfg.zone
    created_at = parse_created_time(row.text("created_time"), zone)
    original_status = row.text("request_status")
    status = classify(status_rules, original_status, default=original_status)
    sink.extend(status.warnings)

    return CorrectiveRecord(
        row_number=row.row_number,
        request_id=row.text("request_id"),
        request_id_link=row.link("request_id"),
        created_time=row.text("created_time"),
        created_at=created_at,
        applications=applications,
        categorization=row.text("categorization"),
        request_status=status.value,
        original_status=original_status,
        module=row.text("module"),
        subject=row.text("subject"),
        subject_link=row.link("subject"),
        priority=map_priority(row.text("priority"), cfg.priority_map),
        eta=row.text("eta"),
        rca=row.text("rca"),
        business_unit=unit.value,
        in_window=calendar.contains(window, created_at, zone) if window is not None else True,
    )


def parse_release_date(text: str, settings: DerivationSettings | None = None) -> datetime:
    """``dd/mm/yyyy [HH:MM]`` or ISO-8601 (native date cells), in the business timezone."""
    zone = (settings or DerivationSettings()).zone
    value = text.strip()
    for fmt in _RELEASE_DATE_FORMATS:
        try:
            return calendar.localize(datetime.strptime(value, fmt), zone)
        except ValueError:
            continue
    try:
        return calendar.localize(datetime.fromisoformat(value), zone)
    except ValueError:
        raise RowValidationError("date", f"Invalid date format: {value!r}") from None


def _week(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def parse_release(row: SourceRow, settings: DerivationSettings | None = None) -> Release:
    """Build a ``Release`` from one releases-sheet row.

    Raises:
        RowValidationError: empty application, missing or malformed date,
            empty release identifier
    """
    application = row.text("application")
    if not application:
        raise RowValidationError("application", "Application is required")
    date_text = row.text("date")
    if not date_text:
        raise RowValidationError("date", "Date is required")
    date = parse_release_date(date_text, settings)
    version = row.text("release")
    if not version:
        raise RowValidationError("release", "Release version is required")
    return Release(
        row_number=row.row_number,
        application=application,
        date=date,
        release_version=version,
        week=_week(row.text("week")),
        release_link=row.link("release"),
        tickets=row.text("tickets") or None,
    )
