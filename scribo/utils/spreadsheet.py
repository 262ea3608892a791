from __future__ import annotations

import io
import logging
import os
import zipfile
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from scribo.core.errors import InputError

logger = logging.getLogger("scribo.spreadsheet")

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv", ".txt")

EXCEL_CONTENT_TYPES = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
)
CSV_CONTENT_TYPES = ("text/csv", "application/csv", "text/plain")


@dataclass
class Grid:
    """First sheet of an uploaded file: header row + data rows, cells as python values."""

    header: list[Any] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        # header included, like a worksheet's row count
        return len(self.rows) + (1 if self.header else 0)

    def cell(self, row: int, col: int) -> Any:
        """0-based access where row 0 is the header."""
        src = self.header if row == 0 else (self.rows[row - 1] if 0 < row <= len(self.rows) else [])
        return src[col] if 0 <= col < len(src) else None

    def column(self, col: int) -> list[Any]:
        return [r[col] if col < len(r) else None for r in self.rows]


def _detect_kind(filename: str, content_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    ct = (content_type or "").split(";")[0].strip().lower()
    if ext in EXCEL_EXTENSIONS or (not ext and ct in EXCEL_CONTENT_TYPES):
        return "excel"
    if ext in CSV_EXTENSIONS or (not ext and ct in CSV_CONTENT_TYPES):
        return "csv"
    raise InputError("Unsupported file format. Use .xlsx or .csv")


def _frame_to_grid(df: pd.DataFrame) -> Grid:
    if df.empty:
        return Grid()
    df = df.astype(object).where(pd.notna(df), None)
    matrix = df.values.tolist()
    return Grid(header=list(matrix[0]), rows=[list(r) for r in matrix[1:]])


def load_grid(data: bytes, filename: str = "", content_type: str = "") -> Grid:
    """Parse the first sheet of an .xlsx workbook (or a .csv file) into a Grid."""
    kind = _detect_kind(filename, content_type)
    if not data:
        raise InputError("The uploaded file is empty")

    if kind == "excel":
        try:
            df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=object, engine="openpyxl")
        except zipfile.BadZipFile:
            raise InputError("Unsupported file format. Use .xlsx or .csv")
        except (IndexError, KeyError, ValueError) as exc:
            # openpyxl/pandas raise these when the workbook has no usable first sheet
            logger.info("Workbook without a readable sheet: %s", exc)
            raise InputError("No worksheet found in the workbook")
        return _frame_to_grid(df)

    try:
        df = pd.read_csv(
            io.BytesIO(data),
            header=None,
            dtype=str,
            keep_default_na=False,
            sep=None,
            engine="python",
            encoding="utf-8-sig",
        )
    except EmptyDataError:
        return Grid()
    except (ParserError, UnicodeDecodeError) as exc:
        logger.info("Unreadable csv upload: %s", exc)
        raise InputError("The csv file could not be read")
    return _frame_to_grid(df)
