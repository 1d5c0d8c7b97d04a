#!/usr/bin/env python
"""
Highlight survey rows whose video is missing on S3.

Reads SurveyData.xlsx and Missing_Videos_Report.xlsx, paints every survey row
listed in the missing report yellow (the createdAt cell keeps its formatting so
the watermark column stays readable) and adds a "Non-Missing Videos" sheet with
the remaining rows. The result goes to a separate file; inputs are not touched.
"""

import argparse
import os
import sys
import tempfile

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from openpyxl import load_workbook
from openpyxl.styles import PatternFill

from errors import SchemaError, SurveyOpsError
from logger_config import get_logger

logger = get_logger(__name__)

SURVEY_FILE = "SurveyData.xlsx"
MISSING_FILE = "Missing_Videos_Report.xlsx"
OUTPUT_FILE = "SurveyData_Processed.xlsx"
NON_MISSING_SHEET = "Non-Missing Videos"

MISSING_FILL = PatternFill(fill_type="solid", start_color="FFFF00", end_color="FFFF00")


def _find_column(header, needle):
    for index, value in enumerate(header):
        if value is not None and needle in str(value).strip().lower():
            return index
    return None


def load_missing_keys(path):
    workbook = load_workbook(path, read_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, ())
        key_index = _find_column(header, "videoproofkey")
        if key_index is None:
            raise SchemaError(f"'VideoProofKey' column not found in {path}")
        return {
            str(row[key_index]).strip()
            for row in rows
            if key_index < len(row) and row[key_index] is not None
        }
    finally:
        workbook.close()


def highlight_missing(survey_path, missing_keys, output_path):
    """Returns (highlighted, kept) row counts."""
    workbook = load_workbook(survey_path)
    sheet = workbook.worksheets[0]

    header = [cell.value for cell in sheet[1]]
    video_index = _find_column(header, "video file")
    if video_index is None:
        raise SchemaError('Could not find a "Video File" column in the survey sheet')
    created_index = _find_column(header, "createdat")
    if created_index is None:
        raise SchemaError('Could not find a "createdAt" column in the survey sheet')

    kept_rows = [header]
    highlighted = 0
    for row in sheet.iter_rows(min_row=2):
        value = row[video_index].value if video_index < len(row) else None
        video_key = str(value).strip() if value is not None else ""
        if video_key in missing_keys:
            for index, cell in enumerate(row):
                if index != created_index:
                    cell.fill = MISSING_FILL
            highlighted += 1
        else:
            kept_rows.append([cell.value for cell in row])

    if NON_MISSING_SHEET in workbook.sheetnames:
        del workbook[NON_MISSING_SHEET]
    non_missing = workbook.create_sheet(NON_MISSING_SHEET)
    for values in kept_rows:
        non_missing.append(values)

    directory = os.path.dirname(os.path.abspath(output_path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(suffix=".xlsx", prefix=".tmp_", dir=directory)
    os.close(fd)
    try:
        workbook.save(tmp_path)
        os.replace(tmp_path, output_path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    return highlighted, len(kept_rows) - 1


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Highlight survey rows with missing videos")
    parser.add_argument("--survey", default=SURVEY_FILE)
    parser.add_argument("--missing", default=MISSING_FILE)
    parser.add_argument("--output", default=OUTPUT_FILE)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    for path in (args.survey, args.missing):
        if not os.path.exists(path):
            logger.error(f"❌ File not found: {path}")
            return 1
    try:
        missing_keys = load_missing_keys(args.missing)
        highlighted, kept = highlight_missing(args.survey, missing_keys, args.output)
    except SurveyOpsError as e:
        logger.error(f"❌ {e}")
        return 1

    logger.info(f"🟨 Highlighted {highlighted} rows, {kept} rows with videos")
    logger.info(f"✅ Done. Output saved as: {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
