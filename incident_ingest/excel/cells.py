from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Union

"""Cell normalization: raw spreadsheet cell shapes -> (text, link).

Incident exports mix several cell encodings in the same column: plain values,
rich-text runs, hyperlinks wrapping either plain or rich text, and formula
cells carrying a cached result. Every shape is modelled as one small frozen
dataclass and ``normalize`` collapses them into a ``NormalizedCell``.

``normalize`` is total: it never raises and ``text`` is never ``None``.
"""

__all__ = [
    "EmptyCell",
    "TextCell",
    "NumberCell",
    "BoolCell",
    "DateCell",
    "RichTextRun",
    "RichTextCell",
    "HyperlinkCell",
    "FormulaCell",
    "RawCellValue",
    "NormalizedCell",
    "normalize",
    "normalize_text",
    "from_openpyxl",
    "from_python",
]


@dataclass(frozen=True)
class EmptyCell:
    pass


@dataclass(frozen=True)
class TextCell:
    text: str


@dataclass(frozen=True)
class NumberCell:
    value: int | float


@dataclass(frozen=True)
class BoolCell:
    value: bool


@dataclass(frozen=True)
class DateCell:
    value: date | datetime | time


@dataclass(frozen=True)
class RichTextRun:
    text: str | None = None


@dataclass(frozen=True)
class RichTextCell:
    runs: tuple[RichTextRun, ...]


@dataclass(frozen=True)
class HyperlinkCell:
    url: str | None
    content: RawCellValue  # usually TextCell or RichTextCell


@dataclass(frozen=True)
class FormulaCell:
    formula: str
    result: RawCellValue


RawCellValue = Union[
    EmptyCell, TextCell, NumberCell, BoolCell, DateCell, RichTextCell, HyperlinkCell, FormulaCell
]


@dataclass(frozen=True)
class NormalizedCell:
    """Canonical cell representation.

    Attributes:
        text: visible text, always a string (empty for blank cells)
        link: hyperlink target when the cell carried one, else None
    """
    text: str = ""
    link: str | None = None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip() and not self.link


_EMPTY = NormalizedCell()

_VARIANTS = (EmptyCell, TextCell, NumberCell, BoolCell, DateCell, RichTextCell, HyperlinkCell, FormulaCell)


def _format_number(value: int | float) -> str:
    # Excel stores integers as floats; 125476.0 must read back as "125476"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def _join_runs(runs: tuple[RichTextRun, ...]) -> str:
    return "".join(str(run.text) if run.text is not None else "" for run in runs)


def _best_effort(raw: Any) -> NormalizedCell:
    # variant holding an unexpected payload: stringify the payload itself
    inner = getattr(raw, "value", getattr(raw, "text", None))
    if inner is None:
        return _EMPTY
    try:
        return NormalizedCell(text=str(inner))
    except Exception:
        return _EMPTY


def _normalize_variant(raw: RawCellValue) -> NormalizedCell:
    if isinstance(raw, EmptyCell):
        return _EMPTY
    if isinstance(raw, TextCell):
        return NormalizedCell(text=str(raw.text) if raw.text is not None else "")
    if isinstance(raw, BoolCell):
        return NormalizedCell(text="true" if raw.value else "false")
    if isinstance(raw, NumberCell):
        return NormalizedCell(text=_format_number(raw.value))
    if isinstance(raw, DateCell):
        return NormalizedCell(text=raw.value.isoformat())
    if isinstance(raw, RichTextCell):
        return NormalizedCell(text=_join_runs(raw.runs))
    if isinstance(raw, HyperlinkCell):
        inner = normalize(raw.content)
        return NormalizedCell(text=inner.text, link=str(raw.url) if raw.url else None)
    if not isinstance(raw.result, _VARIANTS):
        # unsupported cached result
        return _EMPTY
    return normalize(raw.result)


def normalize(raw: Any) -> NormalizedCell:
    """Normalize one raw cell value into ``NormalizedCell``.

    Hyperlink cells take their text from the wrapped content (which may itself
    be rich text) and their link from the wrapper URL. Formula cells are
    unwrapped to their cached result. A variant carrying an unexpected payload
    is stringified; anything unrecognised falls back to ``str(raw)`` and,
    failing that, to empty text.
    """
    if raw is None:
        return _EMPTY
    if isinstance(raw, _VARIANTS):
        try:
            return _normalize_variant(raw)
        except Exception:
            return _best_effort(raw)
    try:
        return NormalizedCell(text=str(raw))
    except Exception:
        return _EMPTY


def normalize_text(raw: Any) -> str:
    """Text-only path: same as ``normalize`` but drops the link."""
    return normalize(raw).text


def _python_run(part: Any) -> RichTextRun:
    if isinstance(part, str):
        return RichTextRun(part)
    if isinstance(part, dict):
        return RichTextRun(text=part.get("text"))
    return RichTextRun(None)


def from_python(value: Any) -> RawCellValue:
    """Adapt a plain Python value to the raw cell variants.

    Accepts scalars plus the dict shapes produced by JSON-serialised reader
    output: ``{"richText": [{"text": ...} | str]}``,
    ``{"text": ..., "hyperlink": ...}``, ``{"formula" | "sharedFormula": ...,
    "result": ...}`` and ``{"error": "#N/A"}`` (empty text).
    """
    if value is None:
        return EmptyCell()
    if isinstance(value, _VARIANTS):
        return value
    if isinstance(value, str):
        return TextCell(value)
    if isinstance(value, bool):
        return BoolCell(value)
    if isinstance(value, (int, float)):
        return NumberCell(value)
    if isinstance(value, (datetime, date, time)):
        return DateCell(value)
    if isinstance(value, dict):
        if "hyperlink" in value:
            return HyperlinkCell(url=value.get("hyperlink"), content=from_python(value.get("text")))
        if "richText" in value:
            return RichTextCell(tuple(_python_run(r) for r in value.get("richText") or []))
        for key in ("formula", "sharedFormula"):
            if key in value:
                return FormulaCell(formula=str(value.get(key)), result=from_python(value.get("result")))
        if "error" in value:
            return EmptyCell()
    # left for normalize() to stringify
    return value


def _rich_text_runs(value: Any) -> tuple[RichTextRun, ...]:
    runs: list[RichTextRun] = []
    for part in value:
        if isinstance(part, str):
            runs.append(RichTextRun(part))
        else:
            # openpyxl TextBlock
            runs.append(RichTextRun(getattr(part, "text", None)))
    return tuple(runs)


def from_openpyxl(cell: Any) -> RawCellValue:
    """Adapt an openpyxl cell (value + hyperlink) to the raw cell variants."""
    from openpyxl.cell.rich_text import CellRichText
    from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

    value = getattr(cell, "value", None)
    if isinstance(value, CellRichText):
        base: Any = RichTextCell(_rich_text_runs(value))
    elif isinstance(value, (ArrayFormula, DataTableFormula)):
        base = FormulaCell(formula=str(getattr(value, "text", "") or ""), result=EmptyCell())
    elif getattr(cell, "data_type", None) == "e":
        # cached error such as #N/A
        base = EmptyCell()
    elif isinstance(value, str) and getattr(cell, "data_type", None) == "f":
        # workbook loaded without cached values: the formula has no result
        base = FormulaCell(formula=value, result=EmptyCell())
    else:
        base = from_python(value)

    hyperlink = getattr(cell, "hyperlink", None)
    target = getattr(hyperlink, "target", None) if hyperlink is not None else None
    if target:
        return HyperlinkCell(url=target, content=base)
    return base
