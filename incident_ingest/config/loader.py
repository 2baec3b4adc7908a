from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..excel.layouts import BUILTIN_LAYOUTS, DEFAULT_CATEGORY_MARKERS, SheetLayout
from ..models.calendar_window import CalendarWindow, WindowScope
from ..models.derived_record import StatusVocabulary
from ..models.rules import RulePurpose, RuleSet
from ..services import calendar
from ..services.deriver import DEFAULT_PRIORITY_MAP, DEFAULT_REQUIRED_FIELDS, DerivationSettings, DisplayRules

"""Pipeline configuration loading.

Responsibilities:
- Load the YAML file (``config/pipeline.yml`` by default)
- Validate it against ``config_schema.json`` (unknown keys rejected)
- Apply defaults and environment overrides (``INCIDENT_INGEST_TIMEZONE``)
- Build immutable rule sets and validated calendar windows
"""

__all__ = [
    "ConfigError",
    "CalendarConfig",
    "RuleBook",
    "PipelineConfig",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_ENV_VAR",
    "TIMEZONE_ENV_VAR",
    "SCHEMA_PATH",
    "default_rule_book",
    "build_config",
    "load_config",
    "resolve_config_path",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/pipeline.yml")
CONFIG_ENV_VAR = "INCIDENT_INGEST_CONFIG"
TIMEZONE_ENV_VAR = "INCIDENT_INGEST_TIMEZONE"


class ConfigError(Exception):
    pass


_DEFAULT_RULES: dict[str, list[dict[str, Any]]] = {
    RulePurpose.BUSINESS_UNIT.value: [
        {"id": "ffvv-gestiona", "pattern": "app - gestiona tu negocio", "priority": 10, "target": "FFVV"},
        {"id": "ffvv-crecer", "pattern": "app - crecer es ganar", "priority": 10, "target": "FFVV"},
        {"id": "ffvv-portal", "pattern": "portal ffvv", "priority": 10, "target": "FFVV"},
        {"id": "sb-2", "pattern": "somos belcorp 2.0", "priority": 20, "target": "SB"},
        {"id": "sb-app", "pattern": "app - somos belcorp", "priority": 20, "target": "SB"},
        {"id": "unete-3", "pattern": "unete 3.0", "priority": 30, "target": "UB-3"},
        {"id": "unete-2", "pattern": "unete 2.0", "priority": 30, "target": "UN-2"},
        {"id": "cd", "pattern": "catálogo digital", "priority": 40, "target": "CD"},
        {"id": "cd-ascii", "pattern": "catalogo digital", "priority": 40, "target": "CD"},
        {"id": "prol", "pattern": "prol", "priority": 50, "target": "PROL"},
    ],
    RulePurpose.STATUS.value: [
        {"id": "backlog-correctivo", "pattern": "en mantenimiento correctivo", "pattern_type": "exact", "priority": 10, "target": "In L3 Backlog"},
        {"id": "backlog-dev", "pattern": "dev in progress", "pattern_type": "exact", "priority": 10, "target": "In L3 Backlog"},
        {"id": "l2", "pattern": "nivel 2", "pattern_type": "exact", "priority": 20, "target": "On going in L2"},
        {"id": "l3", "pattern": "nivel 3", "pattern_type": "exact", "priority": 20, "target": "On going in L3"},
        {"id": "closed-validado", "pattern": "validado", "pattern_type": "exact", "priority": 30, "target": "Closed"},
        {"id": "closed", "pattern": "closed", "pattern_type": "exact", "priority": 30, "target": "Closed"},
    ],
    RulePurpose.MODULE_DISPLAY.value: [],
    RulePurpose.CATEGORIZATION_DISPLAY.value: [],
    RulePurpose.CORRECTIVE_STATUS.value: [
        {"id": "cm-testing", "pattern": "en pruebas", "pattern_type": "exact", "priority": 10, "target": "In Testing"},
        {"id": "cm-correctivo", "pattern": "en mantenimiento correctivo", "pattern_type": "exact", "priority": 10, "target": "In L3 Backlog"},
        {"id": "cm-awaiting", "pattern": "esperando el cliente", "pattern_type": "exact", "priority": 10, "target": "In L3 Backlog"},
    ],
}


@dataclass(frozen=True)
class CalendarConfig:
    global_mode: bool = False
    windows: Mapping[str, CalendarWindow] = field(default_factory=dict)

    def active_window(self, scope: str) -> CalendarWindow | None:
        return calendar.resolve_window(self.windows, scope, self.global_mode)


@dataclass(frozen=True)
class RuleBook:
    business_unit: RuleSet
    status: RuleSet
    module_display: RuleSet
    categorization_display: RuleSet
    corrective_status: RuleSet

    @property
    def display(self) -> DisplayRules:
        return DisplayRules(
            module=self.module_display if len(self.module_display) else None,
            categorization=self.categorization_display if len(self.categorization_display) else None,
        )


@dataclass(frozen=True)
class PipelineConfig:
    timezone: str
    source_directory: str | None
    scope: str
    sheets: Mapping[str, str]
    statuses: StatusVocabulary
    priority_map: Mapping[str, str]
    required_fields: tuple[str, ...]
    category_markers: tuple[str, ...]
    calendar: CalendarConfig
    rules: RuleBook
    error_log_dir: str = "./logs"
    export_format: str = "csv"

    def layout(self, name: str) -> SheetLayout:
        """Built-in layout ``name`` with the configured sheet name and markers."""
        builtin = BUILTIN_LAYOUTS[name]
        base = builtin.with_sheet_name(self.sheets.get(name, builtin.sheet_name))
        if base.uses_markers:
            base = base.with_markers(self.category_markers)
        return base

    @property
    def derivation(self) -> DerivationSettings:
        return DerivationSettings(
            timezone=self.timezone,
            statuses=self.statuses,
            priority_map=self.priority_map,
            required_fields=self.required_fields,
        )

    def active_window(self) -> CalendarWindow | None:
        return self.calendar.active_window(self.scope)


def default_rule_book() -> RuleBook:
    return _build_rule_book({})


def _build_rule_book(raw: Mapping[str, Any]) -> RuleBook:
    sets: dict[str, RuleSet] = {}
    for purpose in RulePurpose:
        rules = raw.get(purpose.value, _DEFAULT_RULES[purpose.value])
        try:
            sets[purpose.value] = RuleSet.of(purpose.value, rules)
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigError(f"invalid {purpose.value} rule: {e}") from e
    return RuleBook(**sets)


def _build_calendar(raw: Mapping[str, Any]) -> CalendarConfig:
    windows: dict[str, CalendarWindow] = {}
    for scope, data in (raw.get("windows") or {}).items():
        try:
            windows[scope] = calendar.parse_window(data, scope=scope)
        except calendar.WindowValidationError as e:
            raise ConfigError(f"calendar window '{scope}': {e}") from e
    return CalendarConfig(global_mode=bool(raw.get("global_mode", False)), windows=windows)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        raise ConfigError(f"config validation failed{f' at {where}' if where else ''}: {e.message}") from e


def build_config(data: Mapping[str, Any] | None = None) -> PipelineConfig:
    """Build a ``PipelineConfig`` from already-parsed data (defaults for missing keys)."""
    data = dict(data or {})
    _validate_config_schema(data)

    tz = os.getenv(TIMEZONE_ENV_VAR) or data.get("timezone") or calendar.DEFAULT_TIMEZONE
    try:
        calendar.get_timezone(tz)
    except calendar.WindowValidationError as e:
        raise ConfigError(str(e)) from e

    statuses = StatusVocabulary(**(data.get("statuses") or {}))
    output = data.get("output") or {}
    return PipelineConfig(
        timezone=tz,
        source_directory=data.get("source_directory"),
        scope=data.get("scope", WindowScope.MONTHLY.value),
        sheets=dict(data.get("sheets") or {}),
        statuses=statuses,
        priority_map=dict(data.get("priority_map") or DEFAULT_PRIORITY_MAP),
        required_fields=tuple(data.get("required_fields") or DEFAULT_REQUIRED_FIELDS),
        category_markers=tuple(data.get("category_markers") or DEFAULT_CATEGORY_MARKERS),
        calendar=_build_calendar(data.get("calendar") or {}),
        rules=_build_rule_book(data.get("rules") or {}),
        error_log_dir=output.get("error_log_dir", "./logs"),
        export_format=output.get("export_format", "csv"),
    )


def resolve_config_path(explicit: str | Path | None = None) -> Path:
    """``--config`` beats ``INCIDENT_INGEST_CONFIG`` beats ``config/pipeline.yml``."""
    if explicit:
        return Path(explicit)
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def load_config(path: Path) -> PipelineConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return build_config(data)
