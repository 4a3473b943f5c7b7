#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
sync_supervisors.py

Sync supervisor names from the master roster into a shorts report's vlookup sheet.

Input:
- Master roster workbook (default sheet: Sheet1) with Colleague ID, Preferred First Name,
  Legal Last Name and Manager Name columns. The header row may sit below a report title.
- Target shorts workbook with:
    - Data sheet: the Driver IDs to reconcile (the work list)
    - vlookup sheet: Driver Name / Driver Number / Supervisor lookup table

Output:
- A copy of the target workbook (default: output.xlsx) with:
    - safe duplicate vlookup rows removed (same Driver Number + same Driver Name)
    - Supervisor updated for drivers already in vlookup
    - new rows appended for drivers not yet in vlookup
- Optional CSV listing work-list Driver IDs missing from the master roster

Duplicate rules:
- Data sheet: repeated Driver ID -> logged and ignored
- vlookup sheet: repeated Driver Number with the same name -> row removed,
  with a different name -> run aborts
- vlookup after cleanup: any repeated Driver Number -> run aborts
- Master roster: repeated Colleague ID -> last row wins

Column headers are matched fuzzily: case, spacing and punctuation are ignored and
either text may contain the other ("Supervisor Name" matches "Supervisor").

Dependencies:
- pandas
- openpyxl
"""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from workbook_io import TargetWorkbook, WorkbookError, read_sheet_rows


# ------------------
# Fields and defaults
# ------------------

MASTER_FIELDS = ("Colleague ID", "Preferred First Name", "Legal Last Name", "Manager Name")
DATA_FIELDS = ("Driver ID",)
VLOOKUP_KEY_FIELDS = ("Driver Name", "Driver Number")
VLOOKUP_FIELDS = ("Driver Name", "Driver Number", "Supervisor")

# Header scan (master roster only; target sheets always have the header on row 1)
HEADER_SCAN_MAX_ROWS = 35

DEFAULT_MASTER_SHEET = "Sheet1"
DEFAULT_DATA_SHEET = "Data"
DEFAULT_VLOOKUP_SHEET = "vlookup"
DEFAULT_OUT = "output.xlsx"

ColumnMapping = Mapping[str, int]


# ----------
# Errors
# ----------

class SyncError(Exception):
    """Fatal condition: the run stops and nothing is saved."""


class ConfigurationError(SyncError):
    """Missing flag, sheet column or header row."""


class DataIntegrityError(SyncError):
    def __init__(self, driver_id: str, first: str, second: str, message: Optional[str] = None):
        self.driver_id = driver_id
        self.first = first
        self.second = second
        super().__init__(
            message or f"conflicting Driver Name for Driver ID {driver_id}: '{first}' vs '{second}'"
        )


# -------------
# Data classes
# -------------

@dataclass(frozen=True)
class SupervisorInfo:
    driver_id: str
    name: str
    supervisor: str


@dataclass(frozen=True)
class CleanupResult:
    rows_to_delete: Tuple[int, ...]
    removed: int


@dataclass(frozen=True)
class ValidationReport:
    missing_in_roster: Tuple[str, ...] = ()
    updated: int = 0
    appended: int = 0

    @property
    def has_gaps(self) -> bool:
        return bool(self.missing_in_roster)


# ----------
# Logging
# ----------

def setup_logging(debug: bool) -> logging.Logger:
    logger = logging.getLogger("supervisor_sync")
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        return logger

    os.makedirs("logs", exist_ok=True)
    log_path = Path("logs") / "supervisor_sync.log"

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG if debug else logging.INFO)
    fh.setFormatter(fmt)

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logging.DEBUG if debug else logging.INFO)
    sh.setFormatter(fmt)

    logger.addHandler(fh)
    logger.addHandler(sh)
    return logger


# ---------------
# Header matching
# ---------------

NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header(s: str) -> str:
    """
    Normalize header text for fuzzy comparison: "Driver No." -> "driverno".
    """
    s = str(s).replace("\u00A0", " ")      # NBSP
    s = s.strip().lower()
    return NON_ALNUM.sub("", s)


def fuzzy_match(have: str, want: str) -> bool:
    h = normalize_header(have)
    w = normalize_header(want)
    # A blank header would otherwise be a substring of every wanted name
    if not h or not w:
        return False
    return h == w or w in h or h in w


def find_columns(headers: Sequence[str], wanted: Sequence[str]) -> ColumnMapping:
    """
    Bind every wanted field to a column index.

    Columns are scanned left to right; the first column that matches a field wins it,
    and a column is given to at most one field. Raises ConfigurationError if any
    field is left unbound.
    """
    found: Dict[str, int] = {}

    for idx, header in enumerate(headers):
        for want in wanted:
            if want not in found and fuzzy_match(header, want):
                found[want] = idx
                break  # one field per column, so no index repeats

    missing = [w for w in wanted if w not in found]
    if missing:
        raise ConfigurationError(f"Missing required column: {', '.join(missing)}")

    return MappingProxyType({w: found[w] for w in wanted})


def find_header_row(
    rows: Sequence[Sequence[str]],
    wanted: Sequence[str],
    max_rows: int = HEADER_SCAN_MAX_ROWS,
) -> int:
    """
    Locate the header row of a sheet that may start with a report title.

    A row qualifies when at least len(wanted) - 1 of its cells match one of the
    wanted names. One miss is tolerated here; find_columns on the chosen row
    is still strict.
    """
    need = max(1, len(wanted) - 1)

    for r, row in enumerate(rows[:max_rows]):
        hits = sum(1 for cell in row if any(fuzzy_match(cell, w) for w in wanted))
        if hits >= need:
            return r

    raise ConfigurationError(
        f"No header row found in first {max_rows} rows (looking for: {', '.join(wanted)})"
    )


def value(row: Sequence[str], idx: int) -> str:
    if idx >= len(row):
        return ""
    return str(row[idx]).strip()


# ---------------
# Master roster
# ---------------

def build_supervisor_map(
    rows: Sequence[Sequence[str]],
    logger: logging.Logger,
) -> Dict[str, SupervisorInfo]:
    """
    Build Colleague ID -> SupervisorInfo from master roster rows.

    Blank IDs are skipped. A repeated Colleague ID overwrites the earlier entry.
    """
    if not rows:
        raise ConfigurationError("Master roster sheet is empty")

    header_idx = find_header_row(rows, MASTER_FIELDS)
    cols = find_columns(rows[header_idx], MASTER_FIELDS)
    id_col, first_col, last_col, mgr_col = (cols[f] for f in MASTER_FIELDS)

    logger.debug(f"Master roster: header_row_idx={header_idx} columns={dict(cols)}")

    result: Dict[str, SupervisorInfo] = {}

    for row in rows[header_idx + 1 :]:
        driver_id = value(row, id_col)
        if not driver_id:
            continue

        if driver_id in result:
            logger.debug(f"Master roster: Colleague ID {driver_id} repeated, keeping last row")

        result[driver_id] = SupervisorInfo(
            driver_id=driver_id,
            name=(value(row, first_col) + " " + value(row, last_col)).strip(),
            supervisor=value(row, mgr_col),
        )

    logger.info(f"Master roster: {len(result)} colleague(s) indexed")
    return result


def load_supervisor_map(
    file_path: Path,
    sheet_name: str,
    logger: logging.Logger,
) -> Dict[str, SupervisorInfo]:
    logger.info(f"Reading master roster: {Path(file_path).name} | {sheet_name}")
    return build_supervisor_map(read_sheet_rows(file_path, sheet_name), logger)


# -------------------
# Data sheet work list
# -------------------

def read_driver_ids(rows: Sequence[Sequence[str]], logger: logging.Logger) -> List[str]:
    """
    Driver IDs from the Data sheet, in sheet order, each ID once.
    Repeats are logged and ignored, never fatal.
    """
    if not rows:
        raise ConfigurationError("Data sheet is empty")

    id_col = find_columns(rows[0], DATA_FIELDS)[DATA_FIELDS[0]]

    seen = set()
    ids: List[str] = []

    for i, row in enumerate(rows[1:], start=2):
        driver_id = value(row, id_col)
        if not driver_id:
            continue

        if driver_id in seen:
            logger.warning(f"duplicate Driver ID ignored in Data sheet: {driver_id} (row {i})")
            continue

        seen.add(driver_id)
        ids.append(driver_id)

    logger.info(f"Data sheet: {len(ids)} unique Driver ID(s)")
    return ids


def load_driver_ids(book: TargetWorkbook, sheet_name: str, logger: logging.Logger) -> List[str]:
    return read_driver_ids(book.rows(sheet_name), logger)


# ----------------
# vlookup cleanup
# ----------------

def find_vlookup_duplicates(rows: Sequence[Sequence[str]]) -> List[int]:
    """
    Row numbers (1-based, ascending) of safe duplicates in the vlookup sheet.

    The first row seen for a Driver Number is kept. A later row with the same
    Driver Name is a safe duplicate; with a different name it is a conflict and
    DataIntegrityError is raised, since there is no way to tell which is right.
    """
    if not rows:
        raise ConfigurationError("vlookup sheet is empty")

    cols = find_columns(rows[0], VLOOKUP_KEY_FIELDS)
    name_col, id_col = cols["Driver Name"], cols["Driver Number"]

    seen: Dict[str, Tuple[str, int]] = {}
    to_delete: List[int] = []

    for i, row in enumerate(rows[1:], start=2):
        driver_id = value(row, id_col)
        name = value(row, name_col)
        if not driver_id:
            continue

        if driver_id in seen:
            prev_name, _ = seen[driver_id]
            if prev_name == name:
                to_delete.append(i)
                continue
            raise DataIntegrityError(driver_id, prev_name, name)

        seen[driver_id] = (name, i)

    return to_delete


def cleanup_vlookup_duplicates(
    book: TargetWorkbook,
    sheet_name: str,
    dry_run: bool,
    logger: logging.Logger,
) -> CleanupResult:
    rows_to_delete = find_vlookup_duplicates(book.rows(sheet_name))

    # Bottom-up so pending row numbers stay valid
    for row_num in reversed(rows_to_delete):
        if dry_run:
            logger.debug(f"vlookup cleanup (dry run): would remove row {row_num}")
        else:
            book.remove_row(sheet_name, row_num)

    if rows_to_delete:
        verb = "would remove" if dry_run else "removed"
        logger.info(f"vlookup cleanup: {verb} {len(rows_to_delete)} duplicate rows")

    return CleanupResult(rows_to_delete=tuple(rows_to_delete), removed=len(rows_to_delete))


# ---------------
# vlookup update
# ---------------

def index_vlookup_rows(
    rows: Sequence[Sequence[str]],
    cols: ColumnMapping,
    ignore_rows: Iterable[int] = (),
) -> Dict[str, int]:
    """
    Driver Number -> row number for the (already cleaned) vlookup sheet.

    ignore_rows are rows a dry-run cleanup would have removed. Any duplicate
    left at this point means cleanup did not run, so it is fatal.
    """
    skip = set(ignore_rows)
    id_col = cols["Driver Number"]
    name_col = cols["Driver Name"]

    existing: Dict[str, int] = {}
    names: Dict[str, str] = {}

    for i, row in enumerate(rows[1:], start=2):
        if i in skip:
            continue
        driver_id = value(row, id_col)
        if not driver_id:
            continue
        if driver_id in existing:
            raise DataIntegrityError(
                driver_id,
                names[driver_id],
                value(row, name_col),
                message=f"duplicate Driver ID found in vlookup sheet: {driver_id} "
                f"(rows {existing[driver_id]} and {i})",
            )
        existing[driver_id] = i
        names[driver_id] = value(row, name_col)

    return existing


class _Upserter:
    """Shared upsert step for both update modes."""

    def __init__(
        self,
        book: TargetWorkbook,
        sheet_name: str,
        dry_run: bool,
        logger: logging.Logger,
        ignore_rows: Iterable[int],
    ):
        self.book = book
        self.sheet_name = sheet_name
        self.dry_run = dry_run
        self.logger = logger

        rows = book.rows(sheet_name)
        if not rows:
            raise ConfigurationError("vlookup sheet is empty")

        ignore_rows = tuple(ignore_rows)
        self.cols = find_columns(rows[0], VLOOKUP_FIELDS)
        self.existing = index_vlookup_rows(rows, self.cols, ignore_rows)
        self.next_row = len(rows) - len(set(ignore_rows)) + 1
        self.updated = 0
        self.appended = 0

    def _set(self, field: str, row_num: int, text: str) -> None:
        if not self.dry_run:
            self.book.set_cell(self.sheet_name, self.cols[field], row_num, text)

    def upsert(self, info: SupervisorInfo) -> None:
        row_num = self.existing.get(info.driver_id)
        if row_num is not None:
            self._set("Supervisor", row_num, info.supervisor)
            self.updated += 1
            return

        row_num = self.next_row
        self._set("Driver Name", row_num, info.name)
        self._set("Driver Number", row_num, info.driver_id)
        self._set("Supervisor", row_num, info.supervisor)
        self.existing[info.driver_id] = row_num
        self.next_row += 1
        self.appended += 1
        self.logger.debug(f"vlookup: appended Driver ID {info.driver_id} at row {row_num}")

    def report(self, missing: Sequence[str]) -> ValidationReport:
        prefix = "vlookup (dry run)" if self.dry_run else "vlookup"
        self.logger.info(
            f"{prefix}: updated={self.updated} appended={self.appended} missing_in_roster={len(missing)}"
        )
        return ValidationReport(
            missing_in_roster=tuple(missing),
            updated=self.updated,
            appended=self.appended,
        )


def update_vlookup(
    book: TargetWorkbook,
    sheet_name: str,
    driver_ids: Sequence[str],
    roster: Mapping[str, SupervisorInfo],
    dry_run: bool,
    logger: logging.Logger,
    ignore_rows: Iterable[int] = (),
) -> ValidationReport:
    """
    Upsert each work-list Driver ID found in the roster.

    Existing rows only get their Supervisor cell overwritten; new drivers are
    appended below the last row. IDs missing from the roster go in the report
    and leave the sheet untouched.
    """
    upserter = _Upserter(book, sheet_name, dry_run, logger, ignore_rows)
    missing: List[str] = []

    for driver_id in driver_ids:
        info = roster.get(driver_id)
        if info is None:
            missing.append(driver_id)
            continue
        upserter.upsert(info)

    return upserter.report(missing)


def update_vlookup_sheet(
    book: TargetWorkbook,
    sheet_name: str,
    roster: Mapping[str, SupervisorInfo],
    dry_run: bool,
    logger: logging.Logger,
    ignore_rows: Iterable[int] = (),
) -> ValidationReport:
    """Upsert every roster entry, in roster order."""
    upserter = _Upserter(book, sheet_name, dry_run, logger, ignore_rows)
    for info in roster.values():
        upserter.upsert(info)
    return upserter.report([])


# -------------------
# Report output
# -------------------

def write_missing_report(report: ValidationReport, out_path: Path, logger: logging.Logger) -> None:
    df = pd.DataFrame({"driver_id": list(report.missing_in_roster)}, columns=["driver_id"])
    try:
        df.to_csv(out_path, index=False, encoding="utf-8-sig")
    except OSError as e:
        raise WorkbookError(f"Failed to write missing-driver report {out_path}: {e}") from e
    logger.info(f"Wrote missing-driver report: {Path(out_path).resolve()} rows={len(df)}")


# -----
# Main
# -----

def check_outputs(master: Path, target: Path, out: Path, out_report: Optional[Path]) -> None:
    """Outputs go to new paths; neither input workbook is ever overwritten."""
    inputs = {master.resolve(): "master roster", target.resolve(): "target workbook"}
    outputs = [("Output", out)] + ([("Report", out_report)] if out_report else [])

    for label, path in outputs:
        clash = inputs.get(path.resolve())
        if clash:
            raise ConfigurationError(f"{label} path must differ from the {clash}: {path}")

    if out_report and out_report.resolve() == out.resolve():
        raise ConfigurationError(f"Report path must differ from the output workbook: {out_report}")


def run(args: argparse.Namespace, logger: logging.Logger) -> ValidationReport:
    target = Path(args.target)
    out = Path(args.out)
    out_report = Path(args.out_report) if args.out_report else None
    check_outputs(Path(args.master), target, out, out_report)

    roster = load_supervisor_map(Path(args.master), args.master_sheet, logger)

    book = TargetWorkbook.open(target)
    try:
        driver_ids: Optional[List[str]] = None
        if not args.sync_all:
            driver_ids = load_driver_ids(book, args.data_sheet, logger)

        cleanup = cleanup_vlookup_duplicates(book, args.vlookup_sheet, args.dry_run, logger)
        pending = cleanup.rows_to_delete if args.dry_run else ()

        if driver_ids is None:
            report = update_vlookup_sheet(book, args.vlookup_sheet, roster, args.dry_run, logger, pending)
        else:
            report = update_vlookup(book, args.vlookup_sheet, driver_ids, roster, args.dry_run, logger, pending)

        if report.has_gaps:
            logger.warning("Drivers missing in master roster:")
            for driver_id in report.missing_in_roster:
                logger.warning(f"  - {driver_id}")

        if args.dry_run:
            if out_report:
                write_missing_report(report, out_report, logger)
            logger.info("Dry run enabled - no file written.")
            return report

        book.save(out)
        logger.info(f"Wrote updated workbook: {out.resolve()}")

        if out_report:
            write_missing_report(report, out_report, logger)
    finally:
        book.close()

    logger.info("Update completed successfully.")
    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync supervisor names from the master roster into a shorts report vlookup sheet.")
    parser.add_argument("--master", help="Master roster Excel file (required)")
    parser.add_argument("--target", help="Shorts report Excel file (required)")
    parser.add_argument("--master-sheet", default=DEFAULT_MASTER_SHEET, help=f"Master roster sheet (default: {DEFAULT_MASTER_SHEET})")
    parser.add_argument("--data-sheet", default=DEFAULT_DATA_SHEET, help=f"Shorts Data sheet holding Driver IDs (default: {DEFAULT_DATA_SHEET})")
    parser.add_argument("--vlookup-sheet", default=DEFAULT_VLOOKUP_SHEET, help=f"Shorts vlookup sheet (default: {DEFAULT_VLOOKUP_SHEET})")
    parser.add_argument("--out", default=DEFAULT_OUT, help=f"Output workbook, never the target itself (default: {DEFAULT_OUT})")
    parser.add_argument("--out-report", default=None, help="Optional CSV of work-list Driver IDs missing from the master roster")
    parser.add_argument("--sync-all", action="store_true", help="Upsert every roster colleague instead of the Data sheet Driver IDs")
    parser.add_argument("--dry-run", action="store_true", help="Compute and report changes without writing the output workbook")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.debug)

    if not args.master or not args.target:
        logger.error("--master and --target files are required")
        sys.exit(2)

    try:
        run(args, logger)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(2)
    except (DataIntegrityError, WorkbookError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
