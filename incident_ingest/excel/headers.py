from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass, field

"""Flexible header matching.

Exports drift cosmetically between versions ("Modulo." vs "Modulo",
"Request ID " vs "Request ID", accents dropped by some tools). Headers are
compared after folding case, accents, punctuation and whitespace, and then by
word overlap. The functions here are pure; the reader decides whether a
mismatch is a warning or an error.
"""

__all__ = [
    "HeaderMatch",
    "HeaderCheck",
    "fold_header",
    "header_tokens",
    "match_header",
    "check_headers",
]

_NON_WORD = re.compile(r"[^\w\s]", flags=re.UNICODE)
_SPACES = re.compile(r"\s+")


def fold_header(text: str | None) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    if text is None:
        return ""
    folded = unicodedata.normalize("NFKD", str(text))
    folded = "".join(ch for ch in folded if unicodedata.category(ch) != "Mn")
    folded = _NON_WORD.sub(" ", folded.lower()).replace("_", " ")
    return _SPACES.sub(" ", folded).strip()


def header_tokens(text: str | None) -> list[str]:
    return [t for t in fold_header(text).split(" ") if t]


@dataclass(frozen=True)
class HeaderMatch:
    expected: str
    actual: str
    matched: bool
    score: float  # 1.0 exact after folding, 0.0 no overlap at all
    diagnostic: str = ""


@dataclass(frozen=True)
class HeaderCheck:
    """Result of comparing a header row with the declared layout."""
    expected_count: int
    actual_count: int
    matches: list[HeaderMatch] = field(default_factory=list)

    @property
    def count_ok(self) -> bool:
        return self.expected_count == self.actual_count

    @property
    def mismatches(self) -> list[HeaderMatch]:
        return [m for m in self.matches if not m.matched]

    @property
    def ok(self) -> bool:
        return self.count_ok and not self.mismatches


def match_header(expected: str, actual: str) -> HeaderMatch:
    """Score one header cell against the expected label."""
    exp_folded = fold_header(expected)
    act_folded = fold_header(actual)
    exp_compact = exp_folded.replace(" ", "")
    act_compact = act_folded.replace(" ", "")

    if exp_compact == act_compact:
        return HeaderMatch(expected, actual, True, 1.0)

    exp_tokens = set(exp_folded.split(" ")) - {""}
    act_tokens = set(act_folded.split(" ")) - {""}
    overlap = exp_tokens & act_tokens
    score = len(overlap) / len(exp_tokens) if exp_tokens else 0.0

    contained = bool(exp_compact) and bool(act_compact) and (
        exp_compact in act_compact or act_compact in exp_compact
    )
    if overlap or contained:
        return HeaderMatch(expected, actual, True, max(score, 0.5 if contained else 0.0))

    return HeaderMatch(
        expected,
        actual,
        False,
        0.0,
        diagnostic=f'expected "{expected}" (folded: "{exp_folded}"), got "{actual}" (folded: "{act_folded}")',
    )


def check_headers(expected: Sequence[str], actual: Sequence[str]) -> HeaderCheck:
    """Compare headers position by position.

    Blank actual headers are not counted, so a header row missing a column
    reports ``count_ok == False``.
    """
    actual_count = sum(1 for a in actual if a is not None and str(a).strip())
    matches = [
        match_header(exp, act if act is not None else "")
        for exp, act in zip(expected, actual)
    ]
    return HeaderCheck(expected_count=len(expected), actual_count=actual_count, matches=matches)
