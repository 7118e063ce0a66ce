from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

"""Legacy workbook reader.

The export is read without header inference (``header=None``, ``dtype=object``)
so every cell keeps the value openpyxl produced: strings stay strings, large
numbers stay numbers and date-formatted cells arrive as datetimes. Row 0 of the
returned grid is the header row.

pandas' NA-string conversion is turned off; answers such as "NA" or "nil" are
data for the normalizers, not missing values.
"""

__all__ = [
    "SourceReadError",
    "LegacyGrid",
    "read_legacy_grid",
    "dataframe_to_rows",
]

SUPPORTED_SUFFIXES = {".xlsx", ".xlsm", ".csv"}


class SourceReadError(Exception):
    """Raised when the source workbook cannot be opened or parsed."""


@dataclass
class LegacyGrid:
    source: str  # file name
    sheet_name: str
    rows: list[list[Any]]  # rows[0] = header

    @property
    def header(self) -> list[Any]:
        return self.rows[0] if self.rows else []

    @property
    def data_rows(self) -> list[list[Any]]:
        return self.rows[1:]


def _clean_cell(val: Any) -> Any:
    if val is None:
        return None
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):  # list-like cells
        return val
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    return val


def dataframe_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Convert a raw DataFrame into positional rows.

    NaN -> None and trailing empty cells are trimmed, so a blank line becomes
    an empty row (kept, so row numbers stay aligned with the spreadsheet).
    """
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = [_clean_cell(v) for v in raw]
        while cells and (cells[-1] is None or (isinstance(cells[-1], str) and cells[-1].strip() == "")):
            cells.pop()
        rows.append(cells)
    return rows


def read_legacy_grid(path: Path, sheet: str | None = None) -> LegacyGrid:
    """Read the legacy export into a rectangular grid of raw cells.

    Parameters
    ----------
    path: .xlsx / .xlsm / .csv file
    sheet: sheet name (None = first sheet). Ignored for CSV.
    """
    if not path.exists():
        raise SourceReadError(f"source file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SourceReadError(f"unsupported source file type: {path.suffix}")

    try:
        if suffix == ".csv":
            df = pd.read_csv(path, header=None, dtype=object, keep_default_na=False, na_values=[""])
            sheet_name = path.stem
        else:
            xls = pd.ExcelFile(path)
            if not xls.sheet_names:
                raise SourceReadError(f"workbook has no sheets: {path}")
            if sheet is None:
                sheet_name = str(xls.sheet_names[0])
            elif sheet in xls.sheet_names:
                sheet_name = sheet
            else:
                raise SourceReadError(f"sheet '{sheet}' not found in {path.name}")
            df = xls.parse(sheet_name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    except SourceReadError:
        raise
    except Exception as e:
        raise SourceReadError(f"failed to read {path.name}: {e}") from e

    return LegacyGrid(source=path.name, sheet_name=sheet_name, rows=dataframe_to_rows(df))
