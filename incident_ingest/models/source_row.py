from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..excel.cells import NormalizedCell

"""SourceRow: one extracted data row, keyed by layout field name."""

__all__ = ["SourceRow"]

_BLANK = NormalizedCell()


@dataclass(frozen=True)
class SourceRow:
    row_number: int  # 1-based sheet row
    cells: Mapping[str, NormalizedCell] = field(default_factory=dict)
    category: str | None = None  # current marker text for marker-bearing sheets

    def get(self, field_name: str) -> NormalizedCell:
        return self.cells.get(field_name, _BLANK)

    def text(self, field_name: str) -> str:
        """Trimmed visible text of a field (empty string when absent)."""
        return self.get(field_name).text.strip()

    def link(self, field_name: str) -> str | None:
        return self.get(field_name).link

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"row": self.row_number}
        for name, cell in self.cells.items():
            out[name] = {"text": cell.text, "link": cell.link} if cell.link else cell.text
        if self.category is not None:
            out["category"] = self.category
        return out
