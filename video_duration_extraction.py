#!/usr/bin/env python
"""
Fill "Video Duration (s)" in the survey report from the downloaded videos.

Run after `sync_survey_data.py --download-videos`. Rows without a file name get
"Missing Filename", files not present locally get "Not Found", and files ffprobe
cannot read get "Error".
"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tqdm import tqdm

from config import Config
from errors import ErrorLog, PerRecordError, SchemaError
from logger_config import get_logger
from report_table import merge_header, read_report, write_report
from video_probe import probe_duration

logger = get_logger(__name__)

SHEET_NAME = "Survey Data"
VIDEO_COLUMN = "Video File"
DURATION_COLUMN = "Video Duration (s)"

MISSING_FILENAME = "Missing Filename"
NOT_FOUND = "Not Found"
PROBE_ERROR = "Error"


def _find_column(header, name):
    for column in header:
        if column.strip().lower() == name.lower():
            return column
    return None


def fill_durations(table, video_dir, probe=probe_duration, show_progress=True):
    """Updates rows in place; returns the header to write and an ErrorLog."""
    video_column = _find_column(table.header, VIDEO_COLUMN)
    if video_column is None:
        raise SchemaError(f"'{VIDEO_COLUMN}' column not found in the survey sheet")
    duration_column = _find_column(table.header, DURATION_COLUMN) or DURATION_COLUMN
    header = merge_header(table.header, [duration_column])

    errors = ErrorLog()
    for row in tqdm(table.rows, desc="⏱ Durations", disable=not show_progress):
        file_name = row.get(video_column)
        if not isinstance(file_name, str) or not file_name.strip():
            row[duration_column] = MISSING_FILENAME
            errors.record_skipped()
            continue

        video_path = os.path.join(video_dir, file_name)
        if not os.path.exists(video_path):
            logger.warning(f"⚠️  Missing video: {file_name}")
            row[duration_column] = NOT_FOUND
            errors.record_skipped()
            continue

        duration = probe(video_path)
        if duration is None:
            row[duration_column] = PROBE_ERROR
            errors.record_failure(PerRecordError(file_name, "ffprobe could not read the video"))
            continue

        row[duration_column] = round(duration, 2)
        errors.record_processed()

    return header, errors


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Add video durations to the survey report")
    parser.add_argument("--input", default=os.path.join(Config.OUTPUT_DIR, "SurveyData.xlsx"))
    parser.add_argument("--output", default=os.path.join(Config.OUTPUT_DIR, "SurveyData_WithDuration.xlsx"))
    parser.add_argument("--video-dir", default=os.path.join(Config.OUTPUT_DIR, "videos"))
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, probe=probe_duration):
    args = parse_args(argv)
    logger.info("📖 Reading Excel...")
    table = read_report(args.input, SHEET_NAME)
    if table is None:
        logger.error(f"❌ Worksheet '{SHEET_NAME}' not found in {args.input}")
        return 1

    try:
        header, errors = fill_durations(table, args.video_dir, probe=probe,
                                        show_progress=not args.no_progress)
    except SchemaError as e:
        logger.error(f"❌ {e}")
        return 1

    write_report(args.output, SHEET_NAME, header, table.rows)
    errors.log_summary(logger)
    logger.info(f"✅ Excel with durations saved to: {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
