from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from openpyxl.utils import column_index_from_string

"""Declared sheet layouts.

A layout fixes, per sheet type, which column letter holds which header and
which record field it feeds. Headers are matched flexibly against row 1, but
extraction always maps cells by position (column letter).
"""

__all__ = [
    "ColumnSpec",
    "SheetLayout",
    "DEFAULT_SHEET_NAME",
    "DEFAULT_CATEGORY_MARKERS",
    "INCIDENT_LAYOUT",
    "PARENT_CHILD_LAYOUT",
    "TAG_LAYOUT",
    "FOR_TAGGING_LAYOUT",
    "CORRECTIVE_LAYOUT",
    "RELEASES_LAYOUT",
    "RELEASES_SHEET_NAME",
    "BUILTIN_LAYOUTS",
]

DEFAULT_SHEET_NAME = "ManageEngine Report Framework"
RELEASES_SHEET_NAME = "Hoja3"

DEFAULT_CATEGORY_MARKERS: tuple[str, ...] = (
    "error",
    "bug",
    "informativa",
    "informational",
    "inquiries",
    "data source",
    "alcance",
    "codificación",
    "usuario",
)


@dataclass(frozen=True)
class ColumnSpec:
    letter: str  # "B"
    header: str  # expected header text in row 1
    field: str  # record field name
    link: bool = False  # normalized through the link-aware path
    required: bool = False

    @property
    def index(self) -> int:
        return column_index_from_string(self.letter)


@dataclass(frozen=True)
class SheetLayout:
    """Column layout of one sheet type.

    Attributes:
        name: layout identifier (``incident``, ``parent_child`` ...)
        sheet_name: workbook sheet the layout reads from
        columns: ordered column declarations
        category_markers: keyword vocabulary; empty disables marker detection
        marker_column: column letter inspected for markers (first column when None)
    """
    name: str
    sheet_name: str
    columns: tuple[ColumnSpec, ...]
    category_markers: tuple[str, ...] = field(default_factory=tuple)
    marker_column: str | None = None

    @property
    def headers(self) -> list[str]:
        return [c.header for c in self.columns]

    @property
    def fields(self) -> list[str]:
        return [c.field for c in self.columns]

    @property
    def link_fields(self) -> frozenset[str]:
        return frozenset(c.field for c in self.columns if c.link)

    @property
    def uses_markers(self) -> bool:
        return bool(self.category_markers)

    def with_sheet_name(self, sheet_name: str) -> SheetLayout:
        return replace(self, sheet_name=sheet_name)

    def with_markers(self, markers: Sequence[str]) -> SheetLayout:
        return replace(self, category_markers=tuple(markers))


def _cols(*specs: tuple) -> tuple[ColumnSpec, ...]:
    return tuple(ColumnSpec(*s) for s in specs)


INCIDENT_LAYOUT = SheetLayout(
    name="incident",
    sheet_name=DEFAULT_SHEET_NAME,
    columns=_cols(
        ("B", "Aplicativos", "applications", False, True),
        ("C", "Categorización", "categorization"),
        ("D", "Request ID", "request_id", True, True),
        ("E", "Created Time", "created_time", False, True),
        ("F", "Request Status", "request_status"),
        ("G", "Modulo.", "module"),
        ("H", "Subject", "subject", True),
        ("I", "Priority", "priority"),
        ("J", "ETA", "eta"),
        ("K", "Información Adicional", "additional_info"),
        ("L", "Resolved Time", "resolved_time"),
        ("M", "Países Afectados", "affected_countries"),
        ("N", "Recurrencia", "recurrence"),
        ("O", "Technician", "technician"),
        ("P", "Jira", "jira"),
        ("Q", "Problem ID", "problem_id", True),
        ("R", "Linked Request Id", "linked_request_id", True),
        ("S", "Request OLA Status", "ola_status"),
        ("T", "Grupo Escalamiento", "escalation_group"),
        ("U", "Aplicactivos Afectados", "affected_applications"),
        ("V", "¿Este Incidente se debió Resolver en Nivel 1?", "should_resolve_level_one"),
        ("W", "Campaña", "campaign"),
        ("X", "CUV_1", "cuv"),
        ("Y", "Release", "release"),
        ("Z", "RCA", "rca"),
    ),
)

PARENT_CHILD_LAYOUT = SheetLayout(
    name="parent_child",
    sheet_name=DEFAULT_SHEET_NAME,
    columns=_cols(
        ("B", "Request ID", "request_id", True, True),
        ("C", "Linked Request Id", "linked_request_id", True, True),
    ),
)

TAG_LAYOUT = SheetLayout(
    name="tag",
    sheet_name=DEFAULT_SHEET_NAME,
    columns=_cols(
        ("A", "Created Time", "created_time"),
        ("B", "Request ID", "request_id", True, True),
        ("C", "Información Adicional", "additional_info"),
        ("D", "Modulo.", "module"),
        ("E", "Problem ID", "problem_id", True),
        ("F", "Linked Request Id", "linked_request_id", True),
        ("G", "Jira", "jira", True),
        ("H", "Categorización", "categorization"),
        ("I", "Technician", "technician"),
    ),
)

FOR_TAGGING_LAYOUT = SheetLayout(
    name="for_tagging",
    sheet_name=DEFAULT_SHEET_NAME,
    columns=_cols(
        ("B", "Technician", "technician"),
        ("C", "Request ID", "request_id", True, True),
        ("D", "Created Time", "created_time"),
        ("E", "Modulo.", "module"),
        ("F", "Subject", "subject", True),
        ("G", "Problem ID", "problem_id", True),
        ("H", "Linked Request Id", "linked_request_id", True),
    ),
    category_markers=DEFAULT_CATEGORY_MARKERS,
    marker_column="B",
)

CORRECTIVE_LAYOUT = SheetLayout(
    name="corrective",
    sheet_name=DEFAULT_SHEET_NAME,
    columns=_cols(
        ("B", "Aplicativos", "applications", False, True),
        ("C", "Categorización", "categorization"),
        ("D", "Request ID", "request_id", True, True),
        ("E", "Created Time", "created_time", False, True),
        ("F", "Request Status", "request_status"),
        ("G", "Modulo.", "module"),
        ("H", "Subject", "subject", True),
        ("I", "Priority", "priority"),
        ("J", "ETA", "eta"),
        ("K", "RCA", "rca"),
    ),
)

RELEASES_LAYOUT = SheetLayout(
    name="releases",
    sheet_name=RELEASES_SHEET_NAME,
    columns=_cols(
        ("A", "SEMANA", "week"),
        ("B", "APLICACIÓN", "application", False, True),
        ("C", "FECHA", "date", False, True),
        ("D", "RELEASE", "release", True, True),
        ("E", "# TICKETS", "tickets", True),
    ),
)

BUILTIN_LAYOUTS: dict[str, SheetLayout] = {
    layout.name: layout
    for layout in (
        INCIDENT_LAYOUT,
        PARENT_CHILD_LAYOUT,
        TAG_LAYOUT,
        FOR_TAGGING_LAYOUT,
        CORRECTIVE_LAYOUT,
        RELEASES_LAYOUT,
    )
}
