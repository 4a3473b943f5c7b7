#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
workbook_io.py

Thin workbook access for the supervisor sync.

- Master roster: read-only, loaded through pandas (openpyxl engine) as raw rows.
- Target workbook: loaded once with openpyxl, mutated in memory, saved to a new path.

Every cell comes back as a trimmed string; blank cells are "".
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Union
from zipfile import BadZipFile

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pandas.api.types import is_scalar


PathLike = Union[str, Path]


class WorkbookError(Exception):
    """Workbook could not be opened, read or saved."""


# -------------
# Cell helpers
# -------------

def is_na_scalar(v: Any) -> bool:
    if v is None:
        return True
    if is_scalar(v):
        return bool(pd.isna(v))
    return False


def cell_text(v: Any) -> str:
    """
    Render a raw cell value as a trimmed string.
    Excel stores whole numbers as floats, so 100.0 comes back as "100".
    """
    if is_na_scalar(v):
        return ""
    if isinstance(v, bool):
        return str(v).strip()
    if isinstance(v, float) and v.is_integer():
        return f"{v:.0f}"
    return str(v).strip()


def _trim_trailing_blank(rows: List[List[str]]) -> List[List[str]]:
    end = len(rows)
    while end > 0 and not any(rows[end - 1]):
        end -= 1
    return rows[:end]


# -------------
# Master sheet
# -------------

def read_sheet_rows(file_path: PathLike, sheet_name: str) -> List[List[str]]:
    """
    Return every row of a sheet as a list of strings (no header handling).
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise WorkbookError(f"Workbook not found: {file_path}")

    try:
        xls = pd.ExcelFile(file_path, engine="openpyxl")
    except Exception as e:
        raise WorkbookError(f"Failed to open workbook {file_path.name}: {e}") from e

    with xls:
        if sheet_name not in xls.sheet_names:
            raise WorkbookError(f"{file_path.name}: no sheet named '{sheet_name}' (have {xls.sheet_names})")
        raw = pd.read_excel(xls, sheet_name=sheet_name, header=None, dtype=object)

    rows = [[cell_text(v) for v in rec] for rec in raw.itertuples(index=False, name=None)]
    return _trim_trailing_blank(rows)


# ----------------
# Target workbook
# ----------------

class TargetWorkbook:
    """
    In-memory openpyxl workbook addressed the way the sync needs it:
    zero-based column index, 1-based row number.
    """

    def __init__(self, workbook, source: Path):
        self._wb = workbook
        self.source = source

    @classmethod
    def open(cls, file_path: PathLike) -> "TargetWorkbook":
        file_path = Path(file_path)
        if not file_path.exists():
            raise WorkbookError(f"Workbook not found: {file_path}")
        try:
            wb = load_workbook(file_path)
        except (InvalidFileException, BadZipFile, OSError, KeyError, ValueError) as e:
            raise WorkbookError(f"Failed to open workbook {file_path.name}: {e}") from e
        return cls(wb, file_path)

    def _sheet(self, sheet_name: str):
        if sheet_name not in self._wb.sheetnames:
            raise WorkbookError(f"{self.source.name}: no sheet named '{sheet_name}' (have {self._wb.sheetnames})")
        return self._wb[sheet_name]

    def rows(self, sheet_name: str) -> List[List[str]]:
        ws = self._sheet(sheet_name)
        rows = [[cell_text(v) for v in rec] for rec in ws.iter_rows(values_only=True)]
        return _trim_trailing_blank(rows)

    def set_cell(self, sheet_name: str, col_idx: int, row_num: int, value: str) -> None:
        self._sheet(sheet_name).cell(row=row_num, column=col_idx + 1, value=value)

    def remove_row(self, sheet_name: str, row_num: int) -> None:
        self._sheet(sheet_name).delete_rows(row_num)

    def save(self, file_path: PathLike) -> None:
        file_path = Path(file_path)
        try:
            self._wb.save(file_path)
        except OSError as e:
            raise WorkbookError(f"Failed to save workbook {file_path}: {e}") from e

    def close(self) -> None:
        self._wb.close()
