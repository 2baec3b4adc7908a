from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

"""Corrective-maintenance records and SB operational releases.

Both come from sheets other than the incident report: the corrective backlog
export (ten columns, B..K) and the releases sheet of the SB operational
stability workbook.
"""

__all__ = ["CorrectiveRecord", "Release"]


@dataclass(frozen=True)
class CorrectiveRecord:
    """One classified row of the corrective-maintenance backlog."""
    row_number: int
    request_id: str
    created_time: str  # raw text as exported
    created_at: datetime
    applications: str
    categorization: str
    request_status: str  # mapped
    original_status: str
    module: str
    subject: str
    priority: str | None
    eta: str
    rca: str
    business_unit: str
    in_window: bool
    linked_count: int = 0
    request_id_link: str | None = None
    subject_link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "request_id": self.request_id,
            "request_id_link": self.request_id_link,
            "created_time": self.created_time,
            "created_at": self.created_at.isoformat(),
            "applications": self.applications,
            "categorization": self.categorization,
            "request_status": self.request_status,
            "original_status": self.original_status,
            "module": self.module,
            "subject": self.subject,
            "subject_link": self.subject_link,
            "priority": self.priority,
            "eta": self.eta,
            "rca": self.rca,
            "business_unit": self.business_unit,
            "in_window": self.in_window,
            "linked_count": self.linked_count,
        }


@dataclass(frozen=True)
class Release:
    """A deployment listed on the SB releases sheet."""
    row_number: int
    application: str
    date: datetime
    release_version: str
    week: int | None = None
    release_link: str | None = None
    tickets: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "week": self.week,
            "application": self.application,
            "date": self.date.isoformat(),
            "release_version": self.release_version,
            "release_link": self.release_link,
            "tickets": self.tickets,
        }
