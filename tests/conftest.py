"""Pytest configuration and shared fixtures."""

import logging
from pathlib import Path
from typing import Dict, List

import pytest
from openpyxl import Workbook


@pytest.fixture
def logger() -> logging.Logger:
    """Logger the components write to; captured by caplog through propagation."""
    return logging.getLogger("supervisor_sync.tests")


@pytest.fixture
def make_workbook(tmp_path: Path):
    """Write an .xlsx with the given sheets ({name: [row, ...]}) and return its path."""

    def _make(name: str, sheets: Dict[str, List[list]]) -> Path:
        wb = Workbook()
        wb.remove(wb.active)
        for sheet_name, rows in sheets.items():
            ws = wb.create_sheet(sheet_name)
            for row in rows:
                ws.append(row)
        path = tmp_path / name
        wb.save(path)
        return path

    return _make


@pytest.fixture
def vlookup_header() -> List[str]:
    return ["Driver Name", "Driver Number", "Supervisor"]


@pytest.fixture
def master_rows() -> List[List[str]]:
    return [
        ["Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name"],
        ["100", "Jane", "Doe", "Boss One"],
        ["200", "John", "Smith", "Boss Two"],
        ["", "", "", ""],
        ["300", "Ann", "Lee", "Boss One"],
    ]
