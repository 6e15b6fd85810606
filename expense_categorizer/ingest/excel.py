"""Excel (.xlsx) statement reader.

The workbook's first sheet is rendered to CSV text (blank rows dropped, cells
stripped, dates as ``YYYY-MM-DD``) and handed to the text parser; this module
never builds transactions itself. ``ParseResult.raw_csv`` keeps the rendered
CSV so callers can show or re-parse it.
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from io import BytesIO, StringIO
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..logging_setup import get_logger
from ..models import ParseResult
from .text import parse_transactions

_logger = get_logger("expense_categorizer.ingest.excel")

_INVALID_WORKBOOK_TIP = "Tip: Make sure the file is a valid .xlsx workbook"


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value).strip()


def excel_to_csv(data: bytes) -> str:
    """Render the first worksheet of ``data`` as CSV text.

    Raises ``LookupError`` when the workbook has no sheets; errors from
    openpyxl for unreadable files propagate unchanged.
    """

    workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    try:
        if not workbook.sheetnames:
            raise LookupError("No sheets found in Excel file")
        sheet = workbook[workbook.sheetnames[0]]
        buffer = StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        for row in sheet.iter_rows(values_only=True):
            cells = [_cell_text(v) for v in row]
            while cells and not cells[-1]:
                cells.pop()
            if cells:
                writer.writerow(cells)
        return buffer.getvalue()
    finally:
        workbook.close()


def parse_excel(data: bytes) -> ParseResult:
    """Parse an Excel upload into transactions via its CSV rendering."""

    try:
        raw_csv = excel_to_csv(data)
    except LookupError as exc:
        return ParseResult(errors=[str(exc)], format="excel")
    except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        _logger.warning("parse_excel:invalid_workbook error=%s", exc.__class__.__name__)
        return ParseResult(
            errors=["Failed to parse Excel file", str(exc), _INVALID_WORKBOOK_TIP],
            format="excel",
        )

    if not raw_csv.strip():
        return ParseResult(errors=["Excel sheet is empty"], format="excel", raw_csv="")

    parsed = parse_transactions(raw_csv)
    parsed.format = "excel"
    parsed.raw_csv = raw_csv
    return parsed


__all__ = ["excel_to_csv", "parse_excel"]
