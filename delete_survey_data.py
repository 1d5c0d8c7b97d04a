#!/usr/bin/env python
"""
Delete the survey samples of the given assignment ids.

    python delete_survey_data.py 680f302b8a5e3fea7a5e1a18 680f302b8a5e3fea7a5e1a19
    python delete_survey_data.py --ids-file ids.txt --yes
"""

import argparse
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from errors import SurveyOpsError
from logger_config import get_logger
from prompts import confirm
from survey_store import open_store

logger = get_logger(__name__)


def read_ids_file(path):
    with open(path, encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Delete survey samples by assignment id")
    parser.add_argument("survey_ids", nargs="*")
    parser.add_argument("--ids-file", help="File with one assignment id per line")
    parser.add_argument("--yes", action="store_true", help="Delete without asking")
    return parser.parse_args(argv)


def main(argv=None, app=None, input_fn=input):
    args = parse_args(argv)
    survey_ids = list(args.survey_ids)
    if args.ids_file:
        try:
            survey_ids.extend(read_ids_file(args.ids_file))
        except OSError as e:
            logger.error(f"❌ Could not read {args.ids_file}: {e}")
            return 1
    survey_ids = list(dict.fromkeys(survey_ids))

    if not survey_ids:
        logger.error("❌ No survey ids given")
        return 1

    if not confirm(f"❓ Delete survey data for {len(survey_ids)} assignments?",
                   assume_yes=args.yes, input_fn=input_fn):
        logger.info("Delete cancelled")
        return 0

    try:
        with open_store(app) as store:
            deleted = store.delete_survey_data(survey_ids)
    except SurveyOpsError as e:
        logger.error(f"❌ Error deleting survey data: {e}")
        return 1

    logger.info(f"✅ Deleted {deleted} survey samples")
    return 0


if __name__ == '__main__':
    sys.exit(main())
