"""Format parsers turning bank exports into canonical transactions.

``parse_upload`` is the single entry point used by hosts: it chooses the OFX,
Excel or CSV/text parser from the file name and, for text uploads, from the
content itself.
"""

from __future__ import annotations

from pathlib import PurePath

from ..models import ParseResult
from .excel import excel_to_csv, parse_excel
from .ofx import is_ofx, parse_ofx
from .text import parse_transactions
from .utils import parse_amount, parse_date

_OFX_SUFFIXES = frozenset({".ofx", ".qfx"})
_EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})


def decode_text(data: bytes) -> str:
    """Decode upload bytes as UTF-8, dropping a BOM and replacing bad bytes."""

    return data.decode("utf-8-sig", errors="replace")


def parse_upload(filename: str, data: bytes | str) -> ParseResult:
    """Parse one uploaded file.

    ``data`` may be raw bytes (any format) or already-decoded text (CSV, plain
    text, OFX). Excel files must be passed as bytes.
    """

    suffix = PurePath(filename).suffix.lower()
    if suffix in _EXCEL_SUFFIXES:
        if isinstance(data, str):
            return ParseResult(
                errors=["Failed to parse Excel file", "Excel uploads must be binary"],
                format="excel",
            )
        return parse_excel(data)

    text = decode_text(data) if isinstance(data, bytes) else data
    if suffix in _OFX_SUFFIXES or is_ofx(text):
        return parse_ofx(text)
    return parse_transactions(text)


__all__ = [
    "decode_text",
    "excel_to_csv",
    "is_ofx",
    "parse_amount",
    "parse_date",
    "parse_excel",
    "parse_ofx",
    "parse_transactions",
    "parse_upload",
]
