from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any

from openpyxl import load_workbook
from openpyxl.utils import column_index_from_string
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from ..models.source_row import SourceRow
from .cells import NormalizedCell, from_openpyxl, normalize, normalize_text
from .headers import HeaderCheck, check_headers
from .layouts import SheetLayout

"""Workbook reading and row extraction.

Row 1 is the header row. It is checked against the layout when extraction
starts; data rows (row 2 onwards) are produced lazily in a single forward
pass. Cells are mapped by column letter, so cosmetic header drift only
produces warnings.

Structural problems (unreadable workbook, missing sheet, header row with
fewer cells than declared columns) raise ``StructuralError`` subclasses and
abort the whole file.
"""

__all__ = [
    "StructuralError",
    "WorkbookReadError",
    "SheetNotFoundError",
    "HeaderCountError",
    "load_workbook_source",
    "get_sheet",
    "read_header_row",
    "extract_rows",
    "is_category_marker",
]

logger = logging.getLogger(__name__)

WorkbookSource = str | Path | bytes | bytearray | IO[bytes]


class StructuralError(Exception):
    """File-level error: extraction of the whole workbook is aborted."""


class WorkbookReadError(StructuralError):
    pass


class SheetNotFoundError(StructuralError):
    def __init__(self, sheet_name: str, available: list[str] | None = None) -> None:
        self.sheet_name = sheet_name
        self.available = available or []
        super().__init__(f'Sheet named "{sheet_name}" not found in workbook')


class HeaderCountError(StructuralError):
    def __init__(self, sheet_name: str, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"sheet '{sheet_name}' header row has {actual} non-empty cells, expected {expected}"
        )


def load_workbook_source(source: WorkbookSource) -> Workbook:
    """Open a workbook from a path, raw bytes or a binary file object.

    Cached formula results are read (``data_only``) and rich text runs are
    preserved so the cell normalizer sees them.
    """
    if isinstance(source, (bytes, bytearray)):
        handle: Any = io.BytesIO(bytes(source))
    else:
        handle = source
    try:
        return load_workbook(handle, data_only=True, rich_text=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise WorkbookReadError(f"cannot read workbook: {e}") from e


def get_sheet(workbook: Workbook, name: str) -> Worksheet:
    if name not in workbook.sheetnames:
        raise SheetNotFoundError(name, list(workbook.sheetnames))
    return workbook[name]


def read_header_row(sheet: Worksheet, layout: SheetLayout) -> list[str]:
    return [normalize_text(from_openpyxl(sheet.cell(row=1, column=c.index))).strip() for c in layout.columns]


def is_category_marker(text: str, markers: tuple[str, ...]) -> bool:
    """True when ``text`` contains one of the marker keywords (case-insensitive)."""
    lowered = text.strip().lower()
    if not lowered:
        return False
    return any(m.lower() in lowered for m in markers)


def _check_header(sheet: Worksheet, layout: SheetLayout, warnings: list[str]) -> HeaderCheck:
    actual = read_header_row(sheet, layout)
    result = check_headers(layout.headers, actual)
    if result.actual_count < result.expected_count:
        raise HeaderCountError(layout.sheet_name, result.expected_count, result.actual_count)
    for mismatch in result.mismatches:
        msg = f"header mismatch in sheet '{layout.sheet_name}': {mismatch.diagnostic}"
        logger.warning(msg)
        warnings.append(msg)
    return result


def _row_cells(row: tuple[Any, ...], layout: SheetLayout) -> dict[str, NormalizedCell]:
    cells: dict[str, NormalizedCell] = {}
    for col in layout.columns:
        idx = col.index - 1
        raw = from_openpyxl(row[idx]) if idx < len(row) else None
        if col.link:
            cells[col.field] = normalize(raw)
        else:
            cells[col.field] = NormalizedCell(text=normalize_text(raw))
    return cells


def _marker_text(row: tuple[Any, ...], layout: SheetLayout) -> str:
    idx = column_index_from_string(layout.marker_column or layout.columns[0].letter)
    if idx - 1 >= len(row):
        return ""
    return normalize_text(from_openpyxl(row[idx - 1])).strip()


def _iter_rows(sheet: Worksheet, layout: SheetLayout, warnings: list[str]) -> Iterator[SourceRow]:
    max_col = max(c.index for c in layout.columns)
    if layout.marker_column:
        max_col = max(max_col, column_index_from_string(layout.marker_column))

    current_category: str | None = None
    skipped_before_marker = 0
    for row_number, row in enumerate(
        sheet.iter_rows(min_row=2, max_row=sheet.max_row, min_col=1, max_col=max_col), start=2
    ):
        if layout.uses_markers:
            marker = _marker_text(row, layout)
            if is_category_marker(marker, layout.category_markers):
                current_category = marker
                logger.debug("row=%d category marker %r", row_number, marker)
                continue

        cells = _row_cells(row, layout)
        if all(c.is_blank for c in cells.values()):
            continue

        if layout.uses_markers and current_category is None:
            skipped_before_marker += 1
            continue

        yield SourceRow(row_number=row_number, cells=cells, category=current_category)

    if skipped_before_marker:
        msg = (
            f"sheet '{layout.sheet_name}': {skipped_before_marker} row(s) before the first "
            "category marker were skipped"
        )
        logger.warning(msg)
        warnings.append(msg)


def extract_rows(
    sheet: Worksheet, layout: SheetLayout, warnings: list[str] | None = None
) -> Iterator[SourceRow]:
    """Validate the header row and return a lazy iterator of data rows.

    Args:
        sheet: openpyxl worksheet
        layout: declared column layout for this sheet type
        warnings: list that receives header and marker warnings (optional)

    Returns:
        Single-pass iterator of ``SourceRow`` (fully empty rows skipped)

    Raises:
        HeaderCountError: header row has fewer non-empty cells than declared columns
    """
    sink = warnings if warnings is not None else []
    _check_header(sheet, layout, sink)
    return _iter_rows(sheet, layout, sink)
