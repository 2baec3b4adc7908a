from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models.calendar_window import CalendarWindow, WindowKind, WindowScope

"""Cut-window calendar.

A weekly cut window runs Friday 00:00 to Thursday 23:59:59.999999 in the
business timezone. Custom windows only need ordered bounds, and disabled
windows accept every moment. When no window is configured, the pipeline falls
back to the current ISO week (Monday to Sunday); both policies are exposed
here so callers can report where they disagree.
"""

__all__ = [
    "DEFAULT_TIMEZONE",
    "MAX_SPAN_DAYS",
    "WindowValidationError",
    "MalformedDateError",
    "InvertedRangeError",
    "WeekdayAnchorError",
    "SpanTooLongError",
    "get_timezone",
    "parse_date",
    "localize",
    "window_bounds",
    "contains",
    "validate",
    "compute_default_weekly",
    "disabled_window",
    "custom_window",
    "duration_days",
    "display_text",
    "current_week_bounds",
    "in_current_week",
    "parse_window",
    "resolve_window",
]

DEFAULT_TIMEZONE = "America/Lima"
MAX_SPAN_DAYS = 30
MAX_DESCRIPTION_LENGTH = 100
START_WEEKDAY = 4  # Friday (date.weekday())
END_WEEKDAY = 3  # Thursday
DISABLED_FROM = date(2025, 1, 1)
DISABLED_TO = date(2025, 12, 31)


class WindowValidationError(ValueError):
    """Base class for window invariant violations."""


class MalformedDateError(WindowValidationError):
    pass


class InvertedRangeError(WindowValidationError):
    pass


class WeekdayAnchorError(WindowValidationError):
    pass


class SpanTooLongError(WindowValidationError):
    pass


@lru_cache(maxsize=16)
def get_timezone(name: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise WindowValidationError(f"unknown timezone: {name}") from e


def _tz(tz: ZoneInfo | str | None) -> ZoneInfo:
    if tz is None:
        return get_timezone(DEFAULT_TIMEZONE)
    if isinstance(tz, str):
        return get_timezone(tz)
    return tz


def parse_date(value: date | str, label: str = "date") -> date:
    """Accept a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise MalformedDateError(f"Invalid {label} format: {value}. Expected YYYY-MM-DD") from e


def localize(moment: datetime | date, tz: ZoneInfo | str | None = None) -> datetime:
    """Express ``moment`` in the business timezone.

    Naive datetimes are taken as already local; plain dates mean start of day.
    """
    zone = _tz(tz)
    if not isinstance(moment, datetime):
        return datetime.combine(moment, time.min, tzinfo=zone)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def window_bounds(window: CalendarWindow, tz: ZoneInfo | str | None = None) -> tuple[datetime, datetime]:
    zone = _tz(tz)
    start = datetime.combine(parse_date(window.from_date, "fromDate"), time.min, tzinfo=zone)
    end = datetime.combine(parse_date(window.to_date, "toDate"), time.max, tzinfo=zone)
    return start, end


def contains(window: CalendarWindow, moment: datetime | date, tz: ZoneInfo | str | None = None) -> bool:
    """Inclusive membership test (start of ``from_date`` to end of ``to_date``)."""
    if window.kind is WindowKind.DISABLED:
        return True
    start, end = window_bounds(window, tz)
    return start <= localize(moment, tz) <= end


def validate(window: CalendarWindow) -> None:
    """Check the window invariants for its kind.

    Raises:
        MalformedDateError: a bound is not a valid ISO date
        InvertedRangeError: ``from_date`` is not before ``to_date``
        WeekdayAnchorError: weekly window not anchored Friday..Thursday
        SpanTooLongError: weekly window longer than 30 days
        WindowValidationError: description too long
    """
    if len(window.description or "") > MAX_DESCRIPTION_LENGTH:
        raise WindowValidationError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
    if window.kind is WindowKind.DISABLED:
        return
    start = parse_date(window.from_date, "fromDate")
    end = parse_date(window.to_date, "toDate")
    if start >= end:
        raise InvertedRangeError(f"fromDate ({start}) must be before toDate ({end})")
    if window.kind is not WindowKind.WEEKLY:
        return
    if start.weekday() != START_WEEKDAY:
        raise WeekdayAnchorError(f"fromDate ({start}) must be a Friday")
    if end.weekday() != END_WEEKDAY:
        raise WeekdayAnchorError(f"toDate ({end}) must be a Thursday")
    span = (end - start).days
    if span > MAX_SPAN_DAYS:
        raise SpanTooLongError(f"Date range cannot exceed {MAX_SPAN_DAYS} days. Current range: {span} days")


def compute_default_weekly(
    now: datetime | None = None,
    tz: ZoneInfo | str | None = None,
    scope: str = WindowScope.MONTHLY.value,
) -> CalendarWindow:
    """Friday..Thursday window ending on the most recent Thursday (today included)."""
    zone = _tz(tz)
    local_now = localize(now, zone) if now is not None else datetime.now(zone)
    days_back = (local_now.weekday() - END_WEEKDAY) % 7
    thursday = local_now.date() - timedelta(days=days_back)
    return CalendarWindow(
        from_date=thursday - timedelta(days=6),
        to_date=thursday,
        kind=WindowKind.WEEKLY,
        description=f"Weekly Range ({scope})",
        scope=scope,
    )


def disabled_window(scope: str = WindowScope.MONTHLY.value) -> CalendarWindow:
    return CalendarWindow(DISABLED_FROM, DISABLED_TO, WindowKind.DISABLED, f"Disabled ({scope})", scope)


def custom_window(
    from_date: date | str, to_date: date | str, description: str = "", scope: str = WindowScope.MONTHLY.value
) -> CalendarWindow:
    window = CalendarWindow(
        from_date=parse_date(from_date, "fromDate"),
        to_date=parse_date(to_date, "toDate"),
        kind=WindowKind.CUSTOM,
        description=description or f"Custom Range ({scope})",
        scope=scope,
    )
    validate(window)
    return window


def duration_days(window: CalendarWindow) -> int:
    """Inclusive day count."""
    return (parse_date(window.to_date) - parse_date(window.from_date)).days + 1


def display_text(window: CalendarWindow) -> str:
    start = parse_date(window.from_date).strftime("%d/%m/%Y")
    end = parse_date(window.to_date).strftime("%d/%m/%Y")
    return f"{start} - {end} ({window.description})"


def current_week_bounds(now: datetime | None = None, tz: ZoneInfo | str | None = None) -> tuple[datetime, datetime]:
    zone = _tz(tz)
    local_now = localize(now, zone) if now is not None else datetime.now(zone)
    monday = local_now.date() - timedelta(days=local_now.weekday())
    start = datetime.combine(monday, time.min, tzinfo=zone)
    end = datetime.combine(monday + timedelta(days=6), time.max, tzinfo=zone)
    return start, end


def in_current_week(moment: datetime | date, now: datetime | None = None, tz: ZoneInfo | str | None = None) -> bool:
    """Fallback membership policy: same ISO week (Monday..Sunday) as ``now``."""
    start, end = current_week_bounds(now, tz)
    return start <= localize(moment, tz) <= end


def parse_window(data: Mapping[str, Any], scope: str = WindowScope.MONTHLY.value) -> CalendarWindow:
    """Build and validate a window from a config mapping.

    ``{"kind": "weekly", "from": "2025-09-19", "to": "2025-09-25"}``; a
    ``disabled`` entry may omit its bounds.
    """
    try:
        kind = WindowKind(str(data.get("kind", WindowKind.CUSTOM.value)).lower())
    except ValueError as e:
        raise WindowValidationError(f"unknown window kind: {data.get('kind')}") from e
    scope = str(data.get("scope", scope))
    if kind is WindowKind.DISABLED:
        base = disabled_window(scope)
        window = CalendarWindow(
            from_date=data.get("from", base.from_date),
            to_date=data.get("to", base.to_date),
            kind=kind,
            description=str(data.get("description") or base.description),
            scope=scope,
        )
    else:
        if "from" not in data or "to" not in data:
            raise MalformedDateError(f"{kind.value} window requires 'from' and 'to'")
        window = CalendarWindow(
            from_date=parse_date(data["from"], "fromDate"),
            to_date=parse_date(data["to"], "toDate"),
            kind=kind,
            description=str(data.get("description") or f"{kind.value.capitalize()} Range ({scope})"),
            scope=scope,
        )
    validate(window)
    return window


def resolve_window(
    windows: Mapping[str, CalendarWindow], scope: str, global_mode: bool = False
) -> CalendarWindow | None:
    """Pick the active window: the ``global`` one in global mode, else the scope's own."""
    if global_mode and WindowScope.GLOBAL.value in windows:
        return windows[WindowScope.GLOBAL.value]
    return windows.get(scope)
