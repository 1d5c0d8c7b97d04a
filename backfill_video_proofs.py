#!/usr/bin/env python
"""
Backfill video proofs for one surveyor.

Among the samples of the surveyor's completed assignments, those whose video
exists on S3 are "valid" and the rest "invalid". Up to 100 valid videos are
downloaded, and after confirmation each one is uploaded under a fresh key and
attached to an invalid sample together with its vehicle category, fuel type and
payment type. The target's end time becomes start time + video duration.
"""

import argparse
import os
import sys
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tqdm import tqdm

from errors import ErrorLog, PerRecordError, SurveyOpsError
from logger_config import get_logger
from models import STATUS_COMPLETED
from object_storage import S3Storage, StorageError, new_video_key
from prompts import confirm
from survey_store import open_store
from video_probe import probe_duration

logger = get_logger(__name__)

MAX_DOWNLOADS = 100
DOWNLOAD_DIR = "./downloaded_videos"


def split_by_video(samples, storage, show_progress=True):
    """Returns (valid, invalid, errors). Samples S3 refuses to answer for go in neither list."""
    errors = ErrorLog()
    valid, invalid = [], []
    for sample in tqdm(samples, desc="🔍 Checking S3 files", disable=not show_progress):
        try:
            found = bool(sample.video_proof) and storage.exists(sample.video_proof)
        except StorageError as e:
            errors.record_failure(PerRecordError(sample.id, str(e)))
            continue
        if found:
            valid.append(sample)
        else:
            invalid.append(sample)
        errors.record_processed()
    return valid, invalid, errors


def download_sources(valid, storage, download_dir, probe=probe_duration,
                     limit=MAX_DOWNLOADS, show_progress=True):
    """Download up to `limit` valid videos; returns source dicts and an ErrorLog."""
    errors = ErrorLog()
    sources = []
    for sample in tqdm(valid[:limit], desc="⬇️  Downloading", disable=not show_progress):
        local_path = os.path.join(download_dir, os.path.basename(sample.video_proof))
        try:
            storage.download(sample.video_proof, local_path)
        except (StorageError, OSError) as e:
            errors.record_failure(PerRecordError(sample.id, f"download failed: {e}"))
            continue

        duration = probe(local_path)
        if duration is None:
            errors.record_failure(PerRecordError(sample.id, "could not read video duration"))
            continue

        sources.append({
            "local_path": local_path,
            "sample_id": sample.id,
            "video_key": sample.video_proof,
            "duration": duration,
            "vehicle_category": sample.vehicle_category,
            "fuel_type": sample.fuel_type,
            "payment_type": sample.payment_type,
        })
        errors.record_processed()
    return sources, errors


def attach_videos(store, storage, sources, targets, show_progress=True):
    """Pair sources with targets in order; returns updated sample ids and an ErrorLog."""
    errors = ErrorLog()
    updated = []
    pairs = list(zip(sources, targets))
    for source, target in tqdm(pairs, desc="📤 Uploading", disable=not show_progress):
        try:
            if target.start_time is None:
                raise PerRecordError(target.id, "sample has no start time")
            key = storage.upload_file(source["local_path"], new_video_key(source["video_key"]))
            store.update_video_proof(
                target,
                key,
                end_time=target.start_time + timedelta(seconds=source["duration"]),
                vehicle_category=source["vehicle_category"],
                fuel_type=source["fuel_type"],
                payment_type=source["payment_type"],
            )
        except PerRecordError as e:
            errors.record_failure(e)
            continue
        except (StorageError, OSError) as e:
            errors.record_failure(PerRecordError(target.id, str(e)))
            continue
        updated.append(target.id)
        errors.record_processed()
    return updated, errors


def backfill(store, storage, surveyor_id, download_dir=DOWNLOAD_DIR, assume_yes=False,
             input_fn=input, probe=probe_duration, show_progress=True):
    assigned = store.find_assigned(surveyor_id=surveyor_id, status=STATUS_COMPLETED)
    logger.info(f"📋 Found {len(assigned)} completed surveys for surveyor {surveyor_id}")
    if not assigned:
        return []

    samples = store.find_survey_data(survey_ids=[a.id for a in assigned])
    valid, invalid, check_errors = split_by_video(samples, storage, show_progress=show_progress)
    check_errors.log_summary(logger)
    logger.info(f"✅ {len(valid)} samples with valid videos, ❌ {len(invalid)} without")

    if not valid:
        logger.info("No samples with valid videos to copy from")
        return []
    if not invalid:
        logger.info("No samples need videos")
        return []

    sources, download_errors = download_sources(
        valid, storage, download_dir, probe=probe, show_progress=show_progress,
    )
    download_errors.log_summary(logger)
    logger.info(f"🎞️  Downloaded {len(sources)} videos")

    if not sources or not confirm(
        f"❓ Upload {len(sources)} videos to samples without valid videos?",
        assume_yes=assume_yes, input_fn=input_fn,
    ):
        logger.info("Upload cancelled")
        return []

    updated, upload_errors = attach_videos(store, storage, sources, invalid,
                                           show_progress=show_progress)
    upload_errors.log_summary(logger)
    logger.info(f"✅ Updated {len(updated)} samples with new video links")
    return updated


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Copy valid survey videos onto samples missing one")
    parser.add_argument("surveyor_id")
    parser.add_argument("--download-dir", default=DOWNLOAD_DIR)
    parser.add_argument("--yes", action="store_true", help="Upload without asking")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, app=None, storage=None, input_fn=input, probe=probe_duration):
    args = parse_args(argv)
    try:
        storage = storage or S3Storage.from_config()
        with open_store(app) as store:
            updated = backfill(
                store, storage, args.surveyor_id,
                download_dir=args.download_dir,
                assume_yes=args.yes,
                input_fn=input_fn,
                probe=probe,
                show_progress=not args.no_progress,
            )
    except SurveyOpsError as e:
        logger.error(f"❌ Error in backfill: {e}")
        return 1

    for sample_id in updated:
        logger.debug(f"  updated {sample_id}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
