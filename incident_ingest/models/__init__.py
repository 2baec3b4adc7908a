"""Domain models for the incident ingestion pipeline.

All models are frozen dataclasses; rule tables and calendar windows are
read-only snapshots for the duration of one run.
"""

from .calendar_window import CalendarWindow, WindowKind, WindowScope
from .corrective import CorrectiveRecord, Release
from .derived_record import DerivedRecord, IncidentFields, StatusOverrideError, StatusVocabulary
from .error_record import ErrorRecord
from .linkage import LinkRef, ParentChildGroup, ParentChildPair, TagGroup, TagGrouping, TagRow
from .processing_result import FileStat, ProcessingResult, RowError, RunResult
from .rules import ClassificationRule, PatternType, RulePurpose, RuleSet
from .source_row import SourceRow

__all__ = [
    # Rules & windows
    "ClassificationRule",
    "PatternType",
    "RulePurpose",
    "RuleSet",
    "CalendarWindow",
    "WindowKind",
    "WindowScope",
    # Rows & records
    "SourceRow",
    "IncidentFields",
    "DerivedRecord",
    "StatusOverrideError",
    "StatusVocabulary",
    "CorrectiveRecord",
    "Release",
    # Linkage
    "LinkRef",
    "ParentChildPair",
    "ParentChildGroup",
    "TagRow",
    "TagGroup",
    "TagGrouping",
    # Results
    "RowError",
    "ProcessingResult",
    "FileStat",
    "RunResult",
    "ErrorRecord",
]
