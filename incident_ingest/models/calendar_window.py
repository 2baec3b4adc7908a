from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

"""Cut-window model.

Bounds may be held as ``date`` objects or as raw ``YYYY-MM-DD`` strings coming
from configuration; ``services.calendar.validate`` reports malformed strings.
"""

__all__ = ["WindowKind", "WindowScope", "CalendarWindow"]


class WindowKind(str, Enum):
    WEEKLY = "weekly"
    CUSTOM = "custom"
    DISABLED = "disabled"


class WindowScope(str, Enum):
    MONTHLY = "monthly"
    CORRECTIVE = "corrective"
    GLOBAL = "global"


@dataclass(frozen=True)
class CalendarWindow:
    from_date: date | str
    to_date: date | str
    kind: WindowKind = WindowKind.WEEKLY
    description: str = ""
    scope: str = WindowScope.MONTHLY.value

    @property
    def is_disabled(self) -> bool:
        return self.kind is WindowKind.DISABLED
