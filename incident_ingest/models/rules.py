from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Classification rule models.

Rule tables are owned by an external store and may be edited at any time; the
pipeline takes an immutable ``RuleSet`` snapshot per run.
"""

__all__ = [
    "PatternType",
    "ClassificationRule",
    "RuleSet",
    "RulePurpose",
]


class PatternType(str, Enum):
    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"


class RulePurpose(str, Enum):
    BUSINESS_UNIT = "business_unit"
    STATUS = "status"
    MODULE_DISPLAY = "module_display"
    CATEGORIZATION_DISPLAY = "categorization_display"
    CORRECTIVE_STATUS = "corrective_status"


@dataclass(frozen=True)
class ClassificationRule:
    pattern: str
    pattern_type: PatternType
    priority: int  # lower value evaluated first
    target: str
    active: bool = True
    rule_id: str | None = None

    def __post_init__(self) -> None:
        # plain strings ("regex", "Contains") are accepted
        if not isinstance(self.pattern_type, PatternType):
            object.__setattr__(self, "pattern_type", PatternType(str(self.pattern_type).strip().lower()))

    @property
    def label(self) -> str:
        return self.rule_id or self.pattern

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClassificationRule:
        """Build a rule from a config/store mapping.

        ``pattern_type`` defaults to ``contains``; ``id`` is accepted as an
        alias of ``rule_id``.
        """
        rule_id = data.get("rule_id", data.get("id"))
        return cls(
            pattern=str(data["pattern"]),
            pattern_type=data.get("pattern_type", PatternType.CONTAINS),
            priority=int(data.get("priority", 0)),
            target=str(data["target"]),
            active=bool(data.get("active", True)),
            rule_id=str(rule_id) if rule_id is not None else None,
        )


@dataclass(frozen=True)
class RuleSet:
    """Ordered rules sharing one classification purpose."""
    purpose: str
    rules: tuple[ClassificationRule, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, purpose: str, rules: Iterable[ClassificationRule | Mapping[str, Any]]) -> RuleSet:
        built = tuple(
            r if isinstance(r, ClassificationRule) else ClassificationRule.from_mapping(r) for r in rules
        )
        return cls(purpose=purpose, rules=built)

    def ordered(self) -> list[ClassificationRule]:
        # sorted() is stable: equal priorities keep their input order
        return sorted((r for r in self.rules if r.active), key=lambda r: r.priority)

    def __len__(self) -> int:
        return len(self.rules)
