from __future__ import annotations

import math
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..parsing.tokenizer import decode_upload, parse_csv

"""Upload readers: file on disk -> matrix of string cells.

Spreadsheets are read header-less with pandas (openpyxl for .xlsx) so the
header row can be located later exactly as for CSV uploads. Only the first
sheet is used unless a sheet name is given.
"""

__all__ = [
    "CSV_SUFFIXES",
    "SHEET_SUFFIXES",
    "UnsupportedFileError",
    "cell_text",
    "read_sheet_matrix",
    "read_upload_rows",
]

CSV_SUFFIXES = {".csv", ".txt"}
SHEET_SUFFIXES = {".xlsx", ".xls"}


class UnsupportedFileError(Exception):
    """Raised when the upload is neither CSV nor an Excel workbook."""


def cell_text(value: Any) -> str:
    """String form of one spreadsheet cell (blank / NaN -> "")."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        # 120.0 -> "120" (Excel は数値を float で返す)
        if value.is_integer():
            return str(int(value))
        return str(float(value))
    if isinstance(value, (pd.Timestamp, datetime)):
        if value.hour == value.minute == value.second == 0:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def read_sheet_matrix(path: Path, sheet: str | int | None = None) -> list[list[str]]:
    """Read one worksheet as rows of strings, keeping blank / title rows."""
    df = pd.read_excel(path, sheet_name=0 if sheet is None else sheet, header=None, dtype=object)
    return [[cell_text(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_upload_rows(path: Path, sheet: str | int | None = None) -> list[list[str]]:
    """Dispatch on the file suffix and return the raw cell matrix."""
    suffix = path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        return parse_csv(decode_upload(path.read_bytes()))
    if suffix in SHEET_SUFFIXES:
        return read_sheet_matrix(path, sheet)
    raise UnsupportedFileError(
        f"unsupported file type '{path.suffix}': expected .csv, .xlsx or .xls"
    )
