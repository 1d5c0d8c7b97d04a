"""
Spreadsheet persistence for report tables.

A report lives in one named sheet: header row first, then data rows. Reads and
writes are always whole-sheet. Writes go to a temp file in the same directory
and are renamed over the original, so a crash never leaves a half written
workbook behind. Other sheets in the workbook are carried over untouched.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np
import pandas as pd
from openpyxl import load_workbook

from logger_config import get_logger

logger = get_logger(__name__)


@dataclass
class ReportTable:
    header: list
    rows: list = field(default_factory=list)   # list of dicts keyed by column name

    def row_values(self):
        return [[row.get(column) for column in self.header] for row in self.rows]


def _clean_cell(value):
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _excel_cell(value):
    # Excel keeps milliseconds only; floor so a stored time is never later than the real one
    if isinstance(value, datetime) and value is not pd.NaT:
        return pd.Timestamp(value).floor("ms").to_pydatetime()
    return value


def read_report(path, sheet_name):
    """
    Load a report sheet.
    Returns None when the file (or the sheet inside it) does not exist.
    """
    if not os.path.exists(path):
        return None

    workbook = load_workbook(path, read_only=True)
    try:
        if sheet_name not in workbook.sheetnames:
            logger.warning(f"⚠️  '{sheet_name}' worksheet not found in {path}")
            return None
    finally:
        workbook.close()

    df = pd.read_excel(path, sheet_name=sheet_name, dtype=object, engine="openpyxl")
    header = [str(column) for column in df.columns]
    rows = []
    for values in df.itertuples(index=False, name=None):
        cleaned = [_clean_cell(v) for v in values]
        if all(v is None for v in cleaned):
            continue
        rows.append(dict(zip(header, cleaned)))
    return ReportTable(header=header, rows=rows)


def merge_header(existing_header, schema_columns):
    """Keep the existing column order, append schema columns not seen yet."""
    if not existing_header:
        return list(schema_columns)
    merged = list(existing_header)
    for column in schema_columns:
        if column not in merged:
            merged.append(column)
    return merged


def write_report(path, sheet_name, header, rows):
    """Persist rows (dicts) under header into sheet_name, atomically."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    df = pd.DataFrame([[_excel_cell(row.get(column)) for column in header] for row in rows], columns=header)

    fd, tmp_path = tempfile.mkstemp(suffix=".xlsx", prefix=".tmp_", dir=directory)
    os.close(fd)
    try:
        if os.path.exists(path):
            # start from the current workbook so sibling sheets survive
            shutil.copyfile(path, tmp_path)
            with pd.ExcelWriter(tmp_path, engine="openpyxl", mode="a", if_sheet_exists="replace") as writer:
                df.to_excel(writer, sheet_name=sheet_name, index=False)
        else:
            os.remove(tmp_path)
            with pd.ExcelWriter(tmp_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name=sheet_name, index=False)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    return len(rows)


def write_table(path, sheet_name, table):
    return write_report(path, sheet_name, table.header, table.rows)
