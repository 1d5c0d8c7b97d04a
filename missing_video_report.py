#!/usr/bin/env python
"""
Missing Video Report
Checks every survey sample's video proof on S3 and lists the missing ones in
Missing_Videos_Report.xlsx. With --upload-from, matching local files are
uploaded, the sample is pointed at the new key and the report is rewritten
with the outcome per row.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tqdm import tqdm

from errors import ErrorLog, PerRecordError, SurveyOpsError
from logger_config import get_logger
from object_storage import S3Storage, StorageError
from prompts import confirm
from report_table import write_report
from survey_store import open_store

logger = get_logger(__name__)

REPORT_FILE = "Missing_Videos_Report.xlsx"
SHEET_NAME = "Missing Videos"

HEADER = [
    "_id", "SurveyID", "SurveyorName", "MobileNumber", "SurveyorID", "Email",
    "EmployeeCode", "Designation", "CompanyName", "PlazaName", "PlazaCode",
    "StartTime", "EndTime", "VehicleCategory", "FuelType", "VideoProofKey", "Status",
]

STATUS_MISSING = "Missing on S3"
STATUS_UPLOADED = "Uploaded"
STATUS_UPLOAD_FAILED = "Upload Failed"
STATUS_ALREADY_EXISTS = "Already Exists"
STATUS_MISSING_LOCALLY = "Missing Locally"


def find_missing_videos(store, storage, show_progress=True):
    errors = ErrorLog()
    missing = []

    samples = store.find_survey_data()
    logger.info(f"📦 Fetched {len(samples)} survey records")

    for sample in tqdm(samples, desc="🔍 Checking videos", disable=not show_progress):
        try:
            found = storage.exists(sample.video_proof)
        except StorageError as e:
            errors.record_failure(PerRecordError(sample.id, str(e)))
            continue
        if found:
            errors.record_processed()
            continue

        assigned = store.get_assigned(sample.survey_id)
        user = store.get_user(assigned.surveyor_id) if assigned else None
        if user is None:
            errors.record_skipped()
            continue

        missing.append({
            "_id": sample.id,
            "SurveyID": sample.survey_id,
            "SurveyorName": user.name,
            "MobileNumber": user.mob_num,
            "SurveyorID": user.id,
            "Email": user.email,
            "EmployeeCode": user.employee_code or "",
            "Designation": user.designation or "",
            "CompanyName": user.company_name or "",
            "PlazaName": sample.plaza_name or "",
            "PlazaCode": sample.plaza_code or "",
            "StartTime": sample.start_time,
            "EndTime": sample.end_time,
            "VehicleCategory": sample.vehicle_category,
            "FuelType": sample.fuel_type,
            "VideoProofKey": sample.video_proof,
            "Status": STATUS_MISSING,
        })
        errors.record_processed()

    return missing, errors


def _local_match(video_dir, video_key):
    names = sorted(os.listdir(video_dir))
    candidates = {video_key, os.path.basename(video_key or "")}
    for name in names:
        if name in candidates or any(c and name.startswith(c) for c in candidates):
            return name
    return None


def upload_missing(store, storage, missing, video_dir, show_progress=True):
    """Upload local copies for missing rows; updates each row's Status in place."""
    errors = ErrorLog()
    for item in tqdm(missing, desc="📤 Uploading", disable=not show_progress):
        local_file = _local_match(video_dir, item["VideoProofKey"])
        if local_file is None:
            item["Status"] = STATUS_MISSING_LOCALLY
            errors.record_skipped()
            continue

        new_key = f"{item['SurveyorID']}-{local_file}"
        try:
            if storage.exists(new_key):
                item["Status"] = STATUS_ALREADY_EXISTS
                errors.record_skipped()
                continue
            storage.upload_file(os.path.join(video_dir, local_file), new_key)
            sample = store.get_survey_data(item["_id"])
            if sample is None:
                raise PerRecordError(item["_id"], "survey sample disappeared before update")
            store.update_video_proof(sample, new_key)
        except (StorageError, PerRecordError, OSError) as e:
            item["Status"] = STATUS_UPLOAD_FAILED
            errors.record_failure(PerRecordError(item["_id"], str(e)))
            logger.error(f"❌ Failed: {local_file} – {e}")
            continue

        item["Status"] = STATUS_UPLOADED
        item["VideoProofKey"] = new_key
        errors.record_processed()
        logger.info(f"✅ Uploaded: {new_key}")
    return errors


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Report survey samples whose video is missing on S3")
    parser.add_argument("--excel", default=REPORT_FILE)
    parser.add_argument("--upload-from", metavar="DIR",
                        help="Folder with local copies of missing videos to upload")
    parser.add_argument("--yes", action="store_true", help="Upload without asking")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, app=None, storage=None, input_fn=input):
    args = parse_args(argv)
    show_progress = not args.no_progress
    try:
        storage = storage or S3Storage.from_config()
        with open_store(app) as store:
            missing, errors = find_missing_videos(store, storage, show_progress=show_progress)
            errors.log_summary(logger)

            if not missing:
                logger.info("✅ All videos exist on S3. No missing data.")
                return 0

            write_report(args.excel, SHEET_NAME, HEADER, missing)
            logger.info(f"📄 Excel generated: {args.excel}")

            if args.upload_from and confirm(
                f"❓ Upload missing videos from '{args.upload_from}' to S3 now?",
                assume_yes=args.yes, input_fn=input_fn,
            ):
                upload_errors = upload_missing(store, storage, missing, args.upload_from,
                                               show_progress=show_progress)
                upload_errors.log_summary(logger)
                write_report(args.excel, SHEET_NAME, HEADER, missing)
                logger.info(f"✅ Final report updated: {args.excel}")
    except SurveyOpsError as e:
        logger.error(f"❌ Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
