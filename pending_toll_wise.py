#!/usr/bin/env python
"""
Pending surveys per toll plaza -> pendingTollWise.xlsx
"""

import argparse
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tqdm import tqdm

from errors import ErrorLog, PerRecordError, SurveyOpsError
from logger_config import get_logger
from models import STATUS_PENDING
from report_table import write_report
from survey_store import open_store

logger = get_logger(__name__)

SHEET_NAME = "Pending Tolls"
HEADER = ["Plaza Name", "Plaza Code", "Pending Count", "Surveyor Name", "Start Date"]


def collect_pending(store, show_progress=True):
    pending = store.find_assigned(status=STATUS_PENDING)
    errors = ErrorLog()
    by_plaza = {}

    for assigned in tqdm(pending, desc="🔍 Pending surveys", disable=not show_progress):
        user = store.get_user(assigned.surveyor_id)
        if user is None:
            errors.record_failure(PerRecordError(assigned.id, f"user {assigned.surveyor_id} not found"))
            continue

        entry = by_plaza.setdefault(assigned.plaza_name, {
            "Plaza Name": assigned.plaza_name,
            "Plaza Code": assigned.plaza_code,
            "Pending Count": 0,
        })
        entry["Pending Count"] += 1
        # latest assignment decides who is shown for the plaza
        entry["Surveyor Name"] = user.name
        entry["Start Date"] = assigned.start_date
        errors.record_processed()

    return list(by_plaza.values()), errors


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Pending survey count per toll plaza")
    parser.add_argument("--excel", default="pendingTollWise.xlsx")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, app=None):
    args = parse_args(argv)
    try:
        with open_store(app) as store:
            rows, errors = collect_pending(store, show_progress=not args.no_progress)
    except SurveyOpsError as e:
        logger.error(f"Error fetching pending tolls: {e}")
        return 1

    for row in rows:
        logger.info(f"  {row['Plaza Name']}: {row['Pending Count']} pending")
    try:
        write_report(args.excel, SHEET_NAME, HEADER, rows)
    except OSError as e:
        logger.error(f"❌ Could not write {args.excel}: {e}")
        return 1
    logger.info(f"Data written to {args.excel}")
    errors.log_summary(logger)
    return 0


if __name__ == '__main__':
    sys.exit(main())
