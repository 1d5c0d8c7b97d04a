#!/usr/bin/env python
"""
Survey Data Export
Appends new survey samples to output/SurveyData.xlsx, one row per sample,
enriched with surveyor details and NHAI plaza metadata.
Re-running only pulls samples created after the newest row already exported.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from config import Config
from errors import ErrorLog, PerRecordError, SurveyOpsError
from logger_config import get_logger
from object_storage import S3Storage, StorageError
from plaza_lookup import PlazaLookup
from report_sync import Column, IncrementalReportSync, ReportSchema
from survey_store import open_store

logger = get_logger(__name__)

SHEET_NAME = "Survey Data"
REPORT_FILE = "SurveyData.xlsx"


def _time_of_day(value):
    return value.strftime("%H:%M:%S") if value else None


def _video_duration(ctx):
    sample = ctx["sample"]
    if not sample.start_time or not sample.end_time or sample.end_time < sample.start_time:
        return 0
    return round((sample.end_time - sample.start_time).total_seconds())


SURVEY_DATA_SCHEMA = ReportSchema(
    columns=[
        Column("_id", lambda c: c["sample"].id),
        Column("surveyId", lambda c: c["sample"].survey_id, "N/A"),
        Column("Surveyor Name", lambda c: c["surveyor"].name if c["surveyor"] else None, "Unknown"),
        Column("Surveyor Mobile", lambda c: c["surveyor"].mob_num if c["surveyor"] else None, "Unknown"),
        Column("Plaza Name", lambda c: c["plaza_name"], "Unknown"),
        Column("Plaza Code", lambda c: c["sample"].plaza_code, "Unknown"),
        Column("State", lambda c: c["plaza"].state, "Unknown"),
        Column("Location", lambda c: c["plaza"].location, "Unknown"),
        Column("Start Time", lambda c: _time_of_day(c["sample"].start_time), "-"),
        Column("End Time", lambda c: _time_of_day(c["sample"].end_time), "-"),
        Column("Video Duration (s)", _video_duration, 0),
        Column("Vehicle Category", lambda c: c["sample"].vehicle_category, "Unknown"),
        Column("Fuel Type", lambda c: c["sample"].fuel_type, "Unknown"),
        Column("Latitude", lambda c: c["sample"].lat, "N/A"),
        Column("Longitude", lambda c: c["sample"].long, "N/A"),
        Column("Serving Time (s)", lambda c: c["sample"].serving_time, 0),
        Column("Payment Type", lambda c: c["sample"].payment_type, "Unknown"),
        Column("Video File", lambda c: c["sample"].video_proof, "N/A"),
        Column("createdAt", lambda c: c["sample"].created_at),
    ],
    identity="_id",
    timestamp="createdAt",
)


class SurveySampleShaper:
    """Turns one survey sample into a report row, optionally pulling its video."""

    def __init__(self, store, plaza_lookup, storage=None, video_dir=None):
        self.store = store
        self.plaza_lookup = plaza_lookup
        self.storage = storage
        self.video_dir = video_dir
        self.downloads = ErrorLog()

    def __call__(self, sample):
        assigned = self.store.get_assigned(sample.survey_id)
        if assigned is None:
            raise PerRecordError(sample.id, f"assigned survey {sample.survey_id} not found")
        surveyor = self.store.get_user(assigned.surveyor_id)

        plaza_name = sample.plaza_name or assigned.plaza_name
        ctx = {
            "sample": sample,
            "assigned": assigned,
            "surveyor": surveyor,
            "plaza_name": plaza_name,
            "plaza": self.plaza_lookup.details(plaza_name),
        }
        row = SURVEY_DATA_SCHEMA.shape(ctx)

        if self.storage is not None and sample.video_proof:
            self._download(sample)
        return row

    def _download(self, sample):
        local_path = os.path.join(self.video_dir, sample.video_proof)
        if os.path.exists(local_path):
            self.downloads.record_skipped()
            return
        try:
            if not self.storage.exists(sample.video_proof):
                self.downloads.record_failure(PerRecordError(sample.id, "video missing on S3"))
                return
            self.storage.download(sample.video_proof, local_path)
            self.downloads.record_processed()
        except (StorageError, OSError) as e:
            self.downloads.record_failure(PerRecordError(sample.id, str(e)))


def run_export(store, output_dir, plaza_lookup=None, storage=None, show_progress=True):
    os.makedirs(output_dir, exist_ok=True)
    video_dir = os.path.join(output_dir, "videos")
    shaper = SurveySampleShaper(store, plaza_lookup or PlazaLookup(), storage=storage, video_dir=video_dir)

    sync = IncrementalReportSync(
        path=os.path.join(output_dir, REPORT_FILE),
        sheet_name=SHEET_NAME,
        schema=SURVEY_DATA_SCHEMA,
        fetch=lambda window: store.iter_survey_data(window=window),
        shape=shaper,
    )
    result = sync.run(show_progress=show_progress)

    result.errors.log_summary(logger)
    if storage is not None:
        logger.info("🎞️  Video downloads:")
        shaper.downloads.log_summary(logger)
    return result


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Export new survey samples to SurveyData.xlsx")
    parser.add_argument("--output-dir", default=Config.OUTPUT_DIR)
    parser.add_argument("--download-videos", action="store_true",
                        help="Also download each sample's video proof into <output-dir>/videos")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, app=None, plaza_lookup=None, storage=None):
    args = parse_args(argv)
    try:
        if args.download_videos and storage is None:
            storage = S3Storage.from_config()
        with open_store(app) as store:
            logger.info("✅ Connected to database")
            run_export(
                store,
                args.output_dir,
                plaza_lookup=plaza_lookup,
                storage=storage if args.download_videos else None,
                show_progress=not args.no_progress,
            )
    except SurveyOpsError as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
