from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from zoneinfo import ZoneInfo

from ..models.calendar_window import CalendarWindow
from ..models.derived_record import DerivedRecord, IncidentFields, StatusVocabulary
from ..models.rules import RuleSet
from ..models.source_row import SourceRow
from . import calendar
from .rule_engine import classify

"""Record derivation: one incident row -> one classified ``DerivedRecord``.

Steps: required fields, business unit (UNKNOWN rejects the row), creation
timestamp, window membership, status mapping, priority mapping, backlog
invariant, recurrence, data-quality observations, summary message.

Per-row failures raise ``RowValidationError`` and rejected rows raise
``RecordRejected``; the orchestrator counts them separately.
"""

__all__ = [
    "UNKNOWN_BUSINESS_UNIT",
    "TIMESTAMP_FORMAT",
    "DEFAULT_PRIORITY_MAP",
    "DEFAULT_REQUIRED_FIELDS",
    "CLOSED_MISSING_ADDITIONAL_INFO",
    "AWAITING_CLIENT_IN_REPORT",
    "MISSING_OR_UNASSIGNED_CATEGORIZATION",
    "RowValidationError",
    "RecordRejected",
    "DerivationSettings",
    "DisplayRules",
    "parse_created_time",
    "map_priority",
    "summary_message",
    "derive",
    "derive_async",
]

logger = logging.getLogger(__name__)

UNKNOWN_BUSINESS_UNIT = "UNKNOWN"
TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M"
RECURRENT = "Recurrente"

DEFAULT_PRIORITY_MAP: Mapping[str, str] = MappingProxyType(
    {"Alta": "High", "Media": "Medium", "Baja": "Low", "Crítica": "Critical"}
)
DEFAULT_REQUIRED_FIELDS: tuple[str, ...] = ("request_id", "applications")

CLOSED_MISSING_ADDITIONAL_INFO = "Closed request must have informacionAdicionalReporte"
AWAITING_CLIENT_IN_REPORT = "Report should not include records with 'Esperando El Cliente' status"
MISSING_OR_UNASSIGNED_CATEGORIZATION = "Record must have categorization and cannot be 'No asignado'"

BusinessUnitClassifier = Callable[[str], Awaitable[str] | str]


class RowValidationError(Exception):
    """Hard per-row failure; only the offending row is excluded."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class RecordRejected(Exception):
    """Row dropped because no business unit could be derived."""

    def __init__(self, applications: str) -> None:
        self.field = "applications"
        self.applications = applications
        self.message = f"Could not derive business unit from applications: {applications}"
        super().__init__(self.message)


@dataclass(frozen=True)
class DerivationSettings:
    timezone: str = calendar.DEFAULT_TIMEZONE
    statuses: StatusVocabulary = field(default_factory=StatusVocabulary)
    priority_map: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PRIORITY_MAP))
    required_fields: tuple[str, ...] = DEFAULT_REQUIRED_FIELDS

    @property
    def zone(self) -> ZoneInfo:
        return calendar.get_timezone(self.timezone)


@dataclass(frozen=True)
class DisplayRules:
    module: RuleSet | None = None
    categorization: RuleSet | None = None


_DEFAULT_SETTINGS = DerivationSettings()


def parse_created_time(text: str, tz: ZoneInfo) -> datetime:
    """Parse ``dd/mm/yyyy HH:MM`` (or ISO-8601 from native date cells) in ``tz``."""
    value = (text or "").strip()
    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise RowValidationError(
                "created_time", f"Invalid date format: {value!r}. Expected dd/MM/yyyy HH:mm"
            ) from None
    return calendar.localize(parsed, tz)


def map_priority(priority: str, priority_map: Mapping[str, str] = DEFAULT_PRIORITY_MAP) -> str | None:
    value = (priority or "").strip()
    if not value:
        return None
    lowered = {k.strip().lower(): v for k, v in priority_map.items()}
    return lowered.get(value.lower(), value)


def summary_message(linked_request_id: str, linked_count: int) -> str:
    """``"<linkedId|N/A> --> <count> Linked tickets"`` or empty when neither exists."""
    linked = (linked_request_id or "").strip()
    if linked or linked_count > 0:
        return f"{linked or 'N/A'} --> {linked_count} Linked tickets"
    return ""


def _check_required(fields: IncidentFields, required: tuple[str, ...]) -> None:
    for name in required:
        if not str(getattr(fields, name, "") or "").strip():
            raise RowValidationError(name, f"required field '{name}' is empty")


def _observations(
    mapped_status: str, additional_info: str, categorization: str, statuses: StatusVocabulary
) -> str | None:
    found: list[str] = []
    if statuses.same(mapped_status, statuses.closed) and not additional_info.strip():
        found.append(CLOSED_MISSING_ADDITIONAL_INFO)
    if statuses.same(mapped_status, statuses.awaiting_client):
        found.append(AWAITING_CLIENT_IN_REPORT)
    if not categorization.strip() or statuses.is_unassigned(categorization):
        found.append(MISSING_OR_UNASSIGNED_CATEGORIZATION)
    return "; ".join(found) if found else None


def _display(rules: RuleSet | None, value: str, warnings: list[str]) -> str:
    if rules is None or not value:
        return value
    result = classify(rules, value, default=value)
    warnings.extend(result.warnings)
    return result.value


def _build(
    row: SourceRow,
    fields: IncidentFields,
    business_unit: str,
    status_rules: RuleSet,
    window: CalendarWindow | None,
    settings: DerivationSettings,
    display_rules: DisplayRules | None,
    linked_count: int,
    now: datetime | None,
    warnings: list[str],
) -> DerivedRecord:
    zone = settings.zone
    statuses = settings.statuses

    created_at = parse_created_time(fields.created_time, zone)
    if window is not None:
        in_window = calendar.contains(window, created_at, zone)
    else:
        in_window = calendar.in_current_week(created_at, now, zone)

    status = classify(status_rules, fields.request_status, default=fields.request_status)
    warnings.extend(status.warnings)
    mapped_status = status.value

    additional_info = fields.additional_info
    if statuses.same(mapped_status, statuses.backlog):
        if additional_info and not statuses.is_unassigned(additional_info):
            raise RowValidationError(
                "additional_info",
                f'When Request Status maps to "{statuses.backlog}", additional info must be '
                f'"{statuses.unassigned}" but got: "{additional_info}"',
            )
        additional_info = statuses.unassigned

    linked = fields.linked_request_id
    if linked and not statuses.is_unassigned(linked):
        recurrence = RECURRENT
    else:
        recurrence = fields.recurrence

    display = display_rules or DisplayRules()
    return DerivedRecord(
        row_number=row.row_number,
        fields=fields,
        business_unit=business_unit,
        mapped_status=mapped_status,
        priority=map_priority(fields.priority, settings.priority_map),
        created_at=created_at,
        in_window=in_window,
        day=created_at.day,
        week=created_at.isocalendar().week,
        additional_info=additional_info,
        linked_count=linked_count,
        message=summary_message(linked, linked_count),
        rep=business_unit,
        recurrence_computed=recurrence,
        observations=_observations(mapped_status, additional_info, fields.categorization, statuses),
        module_display=_display(display.module, fields.module, warnings),
        categorization_display=_display(display.categorization, fields.categorization, warnings),
        category=row.category,
    )


def _business_unit_from_rules(rules: RuleSet, applications: str, warnings: list[str]) -> str:
    result = classify(rules, applications, default=UNKNOWN_BUSINESS_UNIT)
    warnings.extend(result.warnings)
    return result.value


def derive(
    row: SourceRow,
    business_unit_rules: RuleSet,
    status_rules: RuleSet,
    window: CalendarWindow | None,
    *,
    settings: DerivationSettings | None = None,
    display_rules: DisplayRules | None = None,
    linked_count: int = 0,
    now: datetime | None = None,
    warnings: list[str] | None = None,
) -> DerivedRecord:
    """Derive one record from an incident report row.

    Args:
        row: extracted incident row
        business_unit_rules: rules over the applications field
        status_rules: rules over the raw request status (no match keeps it)
        window: active cut window, or None for the current-week fallback
        settings: timezone, status vocabulary, priority map, required fields
        display_rules: optional module/categorization display label rules
        linked_count: linked-ticket count when already known
        now: reference time for the fallback policy (defaults to wall clock)
        warnings: receives rule warnings (invalid regex and the like)

    Raises:
        RowValidationError: missing required field, bad timestamp, backlog conflict
        RecordRejected: business unit resolved to UNKNOWN
    """
    cfg = settings or _DEFAULT_SETTINGS
    sink = warnings if warnings is not None else []
    fields = IncidentFields.from_source_row(row)
    _check_required(fields, cfg.required_fields)
    unit = _business_unit_from_rules(business_unit_rules, fields.applications, sink)
    if unit == UNKNOWN_BUSINESS_UNIT:
        raise RecordRejected(fields.applications)
    return _build(row, fields, unit, status_rules, window, cfg, display_rules, linked_count, now, sink)


async def derive_async(
    row: SourceRow,
    business_unit_classifier: BusinessUnitClassifier,
    status_rules: RuleSet,
    window: CalendarWindow | None,
    *,
    settings: DerivationSettings | None = None,
    display_rules: DisplayRules | None = None,
    linked_count: int = 0,
    now: datetime | None = None,
    warnings: list[str] | None = None,
) -> DerivedRecord:
    """Same as ``derive`` with an externally supplied (possibly async) business unit classifier."""
    cfg = settings or _DEFAULT_SETTINGS
    sink = warnings if warnings is not None else []
    fields = IncidentFields.from_source_row(row)
    _check_required(fields, cfg.required_fields)
    unit = business_unit_classifier(fields.applications)
    if inspect.isawaitable(unit):
        unit = await unit
    unit = (unit or "").strip() or UNKNOWN_BUSINESS_UNIT
    if unit == UNKNOWN_BUSINESS_UNIT:
        raise RecordRejected(fields.applications)
    return _build(row, fields, unit, status_rules, window, cfg, display_rules, linked_count, now, sink)
