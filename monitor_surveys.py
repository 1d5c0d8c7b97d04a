#!/usr/bin/env python
"""
Real-time survey status monitor
Refreshes surveyStatus.xlsx and the terminal view every few seconds until stopped
"""

import argparse
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config import Config
from errors import SurveyOpsError
from live_monitor import DEFAULT_SHEET, LiveMonitor
from logger_config import get_logger
from survey_store import open_store

logger = get_logger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Live pending/completed survey monitor")
    parser.add_argument("--excel", default="./surveyStatus.xlsx", help="Status workbook to keep updated")
    parser.add_argument("--sheet", default=DEFAULT_SHEET)
    parser.add_argument("--interval", type=float, default=Config.MONITOR_REFRESH_SECONDS,
                        help="Seconds between refreshes")
    return parser.parse_args(argv)


def main(argv=None, app=None):
    args = parse_args(argv)
    try:
        with open_store(app) as store:
            logger.info("Starting real-time survey monitoring...")
            monitor = LiveMonitor(
                store,
                args.excel,
                sheet_name=args.sheet,
                interval=args.interval,
                excluded_surveyors=Config.EXCLUDED_SURVEYORS,
            )
            monitor.run()
    except KeyboardInterrupt:
        logger.info("👋 Monitor stopped")
        return 0
    except SurveyOpsError as e:
        logger.error(f"❌ Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
