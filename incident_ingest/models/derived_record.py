from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Any

from .source_row import SourceRow

"""Incident field list and the derived (classified) record."""

__all__ = [
    "IncidentFields",
    "DerivedRecord",
    "StatusOverrideError",
    "StatusVocabulary",
    "AWAITING_CLIENT_STATUS",
]

AWAITING_CLIENT_STATUS = "Esperando El Cliente"


class StatusOverrideError(Exception):
    """Raised when a status override is not permitted for a record."""


@dataclass(frozen=True)
class StatusVocabulary:
    """Designated status and sentinel values (compared case-insensitively)."""
    backlog: str = "In L3 Backlog"
    unassigned: str = "No asignado"
    awaiting_client: str = AWAITING_CLIENT_STATUS
    closed: str = "Closed"

    @staticmethod
    def same(a: str | None, b: str | None) -> bool:
        return (a or "").strip().lower() == (b or "").strip().lower()

    def is_unassigned(self, value: str | None) -> bool:
        return self.same(value, self.unassigned)


@dataclass(frozen=True)
class IncidentFields:
    """Raw field values of one incident report row (text, links separate)."""
    applications: str = ""
    categorization: str = ""
    request_id: str = ""
    created_time: str = ""
    request_status: str = ""
    module: str = ""
    subject: str = ""
    priority: str = ""
    eta: str = ""
    additional_info: str = ""
    resolved_time: str = ""
    affected_countries: str = ""
    recurrence: str = ""
    technician: str = ""
    jira: str = ""
    problem_id: str = ""
    linked_request_id: str = ""
    ola_status: str = ""
    escalation_group: str = ""
    affected_applications: str = ""
    should_resolve_level_one: str = ""
    campaign: str = ""
    cuv: str = ""
    release: str = ""
    rca: str = ""
    request_id_link: str | None = None
    subject_link: str | None = None
    problem_id_link: str | None = None
    linked_request_id_link: str | None = None

    @classmethod
    def from_source_row(cls, row: SourceRow) -> IncidentFields:
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name.endswith("_link"):
                values[f.name] = row.link(f.name[: -len("_link")])
            else:
                values[f.name] = row.text(f.name)
        return cls(**values)


@dataclass(frozen=True)
class DerivedRecord:
    """Final classified record for one source row.

    ``fields.additional_info`` keeps the raw value; ``additional_info`` holds
    the normalized one (the unassigned sentinel for backlog records).
    """
    row_number: int
    fields: IncidentFields
    business_unit: str
    mapped_status: str
    priority: str | None
    created_at: datetime
    in_window: bool
    day: int  # day of month
    week: int  # ISO week number
    additional_info: str
    linked_count: int = 0
    message: str = ""
    rep: str = ""
    recurrence_computed: str = ""
    observations: str | None = None
    module_display: str = ""
    categorization_display: str = ""
    category: str | None = None
    status_modified_by_user: bool = False

    @property
    def request_id(self) -> str:
        return self.fields.request_id

    @property
    def linked_request_id(self) -> str:
        return self.fields.linked_request_id

    @property
    def original_status(self) -> str:
        return self.fields.request_status

    def can_override_status(self, awaiting_status: str = AWAITING_CLIENT_STATUS) -> bool:
        return (
            not self.status_modified_by_user
            and self.original_status.strip().lower() == awaiting_status.strip().lower()
        )

    def override_status(
        self, new_status: str, *, awaiting_status: str = AWAITING_CLIENT_STATUS
    ) -> DerivedRecord:
        """Return a copy with ``mapped_status`` replaced by a user decision.

        Raises:
            StatusOverrideError: original status is not the awaiting-client
                status, or the record was already overridden
        """
        if self.status_modified_by_user:
            raise StatusOverrideError(f"request {self.request_id}: status already modified by user")
        if not self.can_override_status(awaiting_status):
            raise StatusOverrideError(
                f"request {self.request_id}: status override only allowed for "
                f"'{awaiting_status}', original status is '{self.original_status}'"
            )
        if not new_status or not new_status.strip():
            raise StatusOverrideError(f"request {self.request_id}: new status must not be empty")
        return replace(self, mapped_status=new_status.strip(), status_modified_by_user=True)

    def to_dict(self) -> dict[str, Any]:
        """Flat mapping used by exports (field values first, then derived columns)."""
        out: dict[str, Any] = {"row": self.row_number}
        out.update(asdict(self.fields))
        for f in fields(self):
            if f.name in ("row_number", "fields"):
                continue
            value = getattr(self, f.name)
            out[f.name] = value.isoformat() if isinstance(value, datetime) else value
        return out
