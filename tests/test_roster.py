"""Tests for master roster indexing and Data sheet work-list extraction."""

import logging

import pytest

from sync_supervisors import (
    ConfigurationError,
    SupervisorInfo,
    build_supervisor_map,
    load_supervisor_map,
    read_driver_ids,
)
from workbook_io import WorkbookError


class TestBuildSupervisorMap:
    def test_single_colleague(self, logger):
        rows = [
            ["Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name"],
            ["100", "Jane", "Doe", "Boss One"],
        ]
        roster = build_supervisor_map(rows, logger)
        assert roster == {"100": SupervisorInfo(driver_id="100", name="Jane Doe", supervisor="Boss One")}

    def test_skips_blank_ids_and_keeps_row_order(self, master_rows, logger):
        roster = build_supervisor_map(master_rows, logger)
        assert list(roster) == ["100", "200", "300"]
        assert roster["200"].supervisor == "Boss Two"

    def test_name_is_trimmed_when_a_part_is_missing(self, logger):
        rows = [
            ["Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name"],
            ["100", "  Jane ", "", "Boss One"],
            ["200", "", "Smith", "Boss Two"],
        ]
        roster = build_supervisor_map(rows, logger)
        assert roster["100"].name == "Jane"
        assert roster["200"].name == "Smith"

    def test_repeated_id_last_row_wins(self, logger):
        rows = [
            ["Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name"],
            ["100", "Jane", "Doe", "Boss One"],
            ["100", "Janet", "Doe", "Boss Two"],
        ]
        roster = build_supervisor_map(rows, logger)
        assert roster["100"] == SupervisorInfo("100", "Janet Doe", "Boss Two")

    def test_columns_in_any_order_with_extra_columns(self, logger):
        rows = [
            ["Manager Name", "Dept", "Legal Last Name", "Colleague ID", "Preferred First Name"],
            ["Boss One", "Ops", "Doe", "100", "Jane"],
        ]
        roster = build_supervisor_map(rows, logger)
        assert roster["100"].name == "Jane Doe"
        assert roster["100"].supervisor == "Boss One"

    def test_missing_manager_column_is_fatal(self, logger):
        rows = [
            ["Colleague ID", "Preferred First Name", "Legal Last Name", "Department"],
            ["100", "Jane", "Doe", "Ops"],
        ]
        with pytest.raises(ConfigurationError, match="Manager Name"):
            build_supervisor_map(rows, logger)

    def test_empty_sheet_is_fatal(self, logger):
        with pytest.raises(ConfigurationError):
            build_supervisor_map([], logger)


class TestLoadSupervisorMap:
    def test_header_below_report_title(self, make_workbook, logger):
        path = make_workbook(
            "allops.xlsx",
            {
                "Sheet1": [
                    ["Report Title"],
                    [None],
                    ["Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name"],
                    [100, "Jane", "Doe", "Boss One"],
                    ["999", "John", "Roe", "John Manager"],
                ]
            },
        )
        roster = load_supervisor_map(path, "Sheet1", logger)
        assert roster["100"] == SupervisorInfo("100", "Jane Doe", "Boss One")
        assert roster["999"].supervisor == "John Manager"

    def test_unknown_sheet(self, make_workbook, logger):
        path = make_workbook("allops.xlsx", {"Sheet1": [["Colleague ID"]]})
        with pytest.raises(WorkbookError, match="no sheet named 'Roster'"):
            load_supervisor_map(path, "Roster", logger)

    def test_missing_file(self, tmp_path, logger):
        with pytest.raises(WorkbookError, match="not found"):
            load_supervisor_map(tmp_path / "nope.xlsx", "Sheet1", logger)


class TestReadDriverIds:
    def test_duplicates_are_logged_not_fatal(self, logger, caplog):
        rows = [["Driver ID"], ["A"], ["B"], ["A"]]
        with caplog.at_level(logging.WARNING, logger="supervisor_sync"):
            ids = read_driver_ids(rows, logger)

        assert ids == ["A", "B"]
        assert "duplicate Driver ID ignored in Data sheet: A (row 4)" in caplog.text

    def test_blank_ids_skipped_silently(self, logger, caplog):
        rows = [["Shift", "Driver ID"], ["AM", "  "], ["PM", "123"], ["AM"]]
        with caplog.at_level(logging.WARNING, logger="supervisor_sync"):
            ids = read_driver_ids(rows, logger)

        assert ids == ["123"]
        assert caplog.text == ""

    def test_missing_driver_id_column(self, logger):
        with pytest.raises(ConfigurationError, match="Driver ID"):
            read_driver_ids([["Driver Number"], ["1"]], logger)
