#!/usr/bin/env python
"""Download one video proof from S3: python download_video.py uploads/x.mp4 video.mp4"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from errors import SurveyOpsError
from logger_config import get_logger
from object_storage import S3Storage

logger = get_logger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Download an object from the survey bucket")
    parser.add_argument("key")
    parser.add_argument("destination", nargs="?")
    return parser.parse_args(argv)


def main(argv=None, storage=None):
    args = parse_args(argv)
    destination = args.destination or os.path.basename(args.key)
    try:
        storage = storage or S3Storage.from_config()
        storage.download(args.key, destination)
    except (SurveyOpsError, OSError) as e:
        logger.error(f"❌ Error downloading file {args.key}: {e}")
        return 1
    logger.info(f"✅ Saved {args.key} -> {destination}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
