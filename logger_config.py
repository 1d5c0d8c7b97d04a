"""
Shared logging setup.
Console output for the operator plus a rotating log file per process.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def _configure_root():
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(Config.LOG_LEVEL.upper())

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(console)

    try:
        os.makedirs(Config.LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(Config.LOG_DIR, 'survey_ops.log'),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding='utf-8',
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)
    except OSError as e:
        root.warning(f"⚠️  File logging disabled: {e}")

    # boto3/urllib3 are chatty at INFO
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    _configured = True


def get_logger(name):
    _configure_root()
    return logging.getLogger(name)
