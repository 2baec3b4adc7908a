from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache

from ..models.rules import ClassificationRule, PatternType, RuleSet

"""Priority-ordered rule classification.

Rules are evaluated in ascending priority (stable on input order) and the
first active match wins. ``exact`` and ``contains`` compare lowercased,
trimmed strings; ``regex`` patterns are searched case-insensitively in the
original text. A rule whose regex does not compile is skipped with a warning
and never stops evaluation of the remaining rules.

The engine has no built-in default: every call site passes its own.
"""

__all__ = [
    "Classification",
    "classify",
    "test_pattern",
    "validate_pattern",
    "normalize_for_match",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    value: str
    matched_rule: ClassificationRule | None = None
    used_default: bool = False
    warnings: list[str] = field(default_factory=list)


def normalize_for_match(text: str | None) -> str:
    return (text or "").strip().lower()


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _pattern_type(value: PatternType | str) -> PatternType | None:
    if isinstance(value, PatternType):
        return value
    try:
        return PatternType(str(value).strip().lower())
    except ValueError:
        return None


def validate_pattern(pattern: str, pattern_type: PatternType | str) -> str | None:
    """Return why a rule pattern is unusable, or None when it is usable.

    Reports unknown pattern types and regexes that do not compile.
    """
    kind = _pattern_type(pattern_type)
    if kind is None:
        return f"unknown pattern type: {pattern_type!r}"
    if kind is not PatternType.REGEX:
        return None
    try:
        _compile(pattern)
    except re.error as e:
        return str(e)
    return None


def _matches(pattern: str, text: str, pattern_type: PatternType) -> bool:
    if pattern_type is PatternType.REGEX:
        # raises re.error for invalid patterns; callers decide
        return _compile(pattern).search(text) is not None
    norm_pattern = normalize_for_match(pattern)
    norm_text = normalize_for_match(text)
    if pattern_type is PatternType.EXACT:
        return norm_text == norm_pattern
    return norm_pattern in norm_text


def test_pattern(pattern: str, text: str, pattern_type: PatternType | str) -> bool:
    """Standalone matcher for rule authoring tools.

    An invalid regex or an unknown pattern type simply does not match.
    """
    kind = _pattern_type(pattern_type)
    if kind is None:
        return False
    try:
        return _matches(pattern, text or "", kind)
    except re.error:
        return False


# not a pytest test function
test_pattern.__test__ = False  # type: ignore[attr-defined]


def classify(rule_set: RuleSet, text: str | None, default: str) -> Classification:
    """Classify ``text`` with the first matching active rule of ``rule_set``.

    Args:
        rule_set: immutable rule snapshot
        text: source value (None treated as empty)
        default: value returned when no rule matches

    Returns:
        Classification with the winning target or ``default``
    """
    source = text or ""
    warnings: list[str] = []
    for rule in rule_set.ordered():
        try:
            hit = _matches(rule.pattern, source, rule.pattern_type)
        except re.error as e:
            msg = f"rule {rule.label} disabled: invalid regex {rule.pattern!r} ({e})"
            logger.warning("%s [%s]", msg, rule_set.purpose)
            warnings.append(msg)
            continue
        if hit:
            return Classification(value=rule.target, matched_rule=rule, warnings=warnings)
    return Classification(value=default, used_default=True, warnings=warnings)
