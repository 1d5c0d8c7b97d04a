"""End-to-end tests for the report and maintenance scripts against the seeded store."""
import io
import os
from datetime import datetime, timedelta

import pytest
from openpyxl import load_workbook
from rich.console import Console

import backfill_video_proofs
import delete_survey_data
import download_video
import highlight_missing_data
import missing_video_report
import pending_toll_wise
import sync_survey_data
import sync_toll_status
import video_duration_extraction
from conftest import FakeStorage
from errors import ConnectivityError, PerRecordError
from models import FastagSurveyData, db
from object_storage import StorageError
from report_table import read_report, write_report
from survey_store import SurveyStore

# ---------------------------------------------------------------------------
# survey data export
# ---------------------------------------------------------------------------

def test_sync_survey_data_exports_then_appends_only_new(app, plaza_lookup, tmp_path):
    out = str(tmp_path / "output")
    report = os.path.join(out, sync_survey_data.REPORT_FILE)

    assert sync_survey_data.main(["--output-dir", out, "--no-progress"], app=app, plaza_lookup=plaza_lookup) == 0
    rows = read_report(report, sync_survey_data.SHEET_NAME).rows
    assert [row["_id"] for row in rows] == ["s1", "s2", "s3"]
    assert rows[0]["Surveyor Name"] == "Asha Rao"
    assert rows[0]["State"] == "Tamil Nadu"
    assert rows[0]["Video Duration (s)"] == 30

    db.session.add(FastagSurveyData(
        id="s4", survey_id="a3", plaza_name="Bankapur", plaza_code="P002",
        start_time=datetime(2025, 5, 3, 9, 0), end_time=datetime(2025, 5, 3, 9, 1),
        vehicle_category="2 axle", fuel_type="Diesel", video_proof="uploads/d.mp4",
        serving_time=8.0, created_at=datetime(2025, 5, 3, 9, 0), updated_at=datetime(2025, 5, 3, 9, 0),
    ))
    db.session.commit()

    assert sync_survey_data.main(["--output-dir", out, "--no-progress"], app=app, plaza_lookup=plaza_lookup) == 0
    rows = read_report(report, sync_survey_data.SHEET_NAME).rows
    assert [row["_id"] for row in rows] == ["s1", "s2", "s3", "s4"]
    assert rows[3]["Payment Type"] == "Unknown"


def test_sync_survey_data_store_failure_keeps_report(app, plaza_lookup, tmp_path, monkeypatch):
    out = str(tmp_path / "output")
    report = os.path.join(out, sync_survey_data.REPORT_FILE)
    sync_survey_data.main(["--output-dir", out, "--no-progress"], app=app, plaza_lookup=plaza_lookup)
    with open(report, "rb") as fh:
        before = fh.read()

    def offline(self, window=None, survey_ids=None):
        raise ConnectivityError("database unreachable")

    monkeypatch.setattr(SurveyStore, "iter_survey_data", offline)

    assert sync_survey_data.main(["--output-dir", out, "--no-progress"], app=app, plaza_lookup=plaza_lookup) == 1
    with open(report, "rb") as fh:
        assert fh.read() == before


def test_shaper_rejects_sample_without_assignment(store, plaza_lookup):
    sample = store.get_survey_data("s1")
    sample.survey_id = "missing"
    shaper = sync_survey_data.SurveySampleShaper(store, plaza_lookup)

    with pytest.raises(PerRecordError):
        shaper(sample)
    db.session.rollback()


def test_shaper_downloads_videos(store, plaza_lookup, tmp_path):
    storage = FakeStorage({"uploads/a.mp4": b"a"})
    shaper = sync_survey_data.SurveySampleShaper(store, plaza_lookup, storage=storage, video_dir=str(tmp_path))

    shaper(store.get_survey_data("s1"))
    shaper(store.get_survey_data("s2"))

    assert (tmp_path / "uploads" / "a.mp4").read_bytes() == b"a"
    assert shaper.downloads.processed == 1
    assert shaper.downloads.failed == 1

# ---------------------------------------------------------------------------
# toll status / pending
# ---------------------------------------------------------------------------

def test_sync_toll_status_upserts_counts(app, plaza_lookup, tmp_path):
    path = str(tmp_path / "surveyData.xlsx")
    console = Console(file=io.StringIO(), width=250)

    assert sync_toll_status.main(["--excel", path, "--no-progress"], app=app,
                                 plaza_lookup=plaza_lookup, console=console) == 0
    assert sync_toll_status.main(["--excel", path, "--no-progress"], app=app,
                                 plaza_lookup=plaza_lookup, console=console) == 0

    rows = read_report(path, sync_toll_status.SHEET_NAME).rows
    assert len(rows) == 2
    assert {row["CreatedAt"] for row in rows} == {"01-05-2025", "02-05-2025"}
    assert all(row["Surveyor Name"] == "Asha Rao" for row in rows)
    assert "TOTAL" in console.file.getvalue()


def test_show_on_terminal_totals():
    console = Console(file=io.StringIO(), width=250)
    totals = sync_toll_status.show_on_terminal(
        [{"Pending": 2, "Completed": 1, "Drafted": 0}, {"Pending": 1, "Completed": 0, "Drafted": 3}],
        console=console,
    )
    assert totals == {"Pending": 3, "Completed": 1, "Drafted": 3}


def test_collect_pending_groups_by_plaza(store):
    rows, errors = pending_toll_wise.collect_pending(store, show_progress=False)
    by_plaza = {row["Plaza Name"]: row for row in rows}

    assert by_plaza["Manavasi"]["Pending Count"] == 1
    assert by_plaza["Bankapur"]["Surveyor Name"] == "Neeraj Gautam"
    assert errors.processed == 2


def test_pending_toll_wise_main_writes_report(app, tmp_path):
    path = str(tmp_path / "pendingTollWise.xlsx")
    assert pending_toll_wise.main(["--excel", path, "--no-progress"], app=app) == 0
    assert read_report(path, pending_toll_wise.SHEET_NAME).header == pending_toll_wise.HEADER


def test_pending_toll_wise_write_failure_exits_1(app, tmp_path, monkeypatch):
    def disk_full(*args, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(pending_toll_wise, "write_report", disk_full)

    assert pending_toll_wise.main(["--excel", str(tmp_path / "p.xlsx"), "--no-progress"], app=app) == 1


def test_pending_toll_wise_without_database_url_fails(monkeypatch, tmp_path):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    path = tmp_path / "pendingTollWise.xlsx"
    assert pending_toll_wise.main(["--excel", str(path)]) == 1
    assert not path.exists()

# ---------------------------------------------------------------------------
# missing videos
# ---------------------------------------------------------------------------

def test_missing_video_report_lists_and_uploads(app, tmp_path):
    storage = FakeStorage({"uploads/a.mp4": b"a"})
    local = tmp_path / "local"
    local.mkdir()
    (local / "b.mp4").write_bytes(b"b")
    path = str(tmp_path / "Missing_Videos_Report.xlsx")

    code = missing_video_report.main(
        ["--excel", path, "--upload-from", str(local), "--yes", "--no-progress"],
        app=app, storage=storage,
    )

    assert code == 0
    rows = {row["_id"]: row for row in read_report(path, missing_video_report.SHEET_NAME).rows}
    assert set(rows) == {"s2", "s3"}
    assert rows["s2"]["Status"] == missing_video_report.STATUS_UPLOADED
    assert rows["s2"]["VideoProofKey"] == "u1-b.mp4"
    assert rows["s3"]["Status"] == missing_video_report.STATUS_MISSING_LOCALLY
    assert storage.objects["u1-b.mp4"] == b"b"

    db.session.expire_all()
    assert db.session.get(FastagSurveyData, "s2").video_proof == "u1-b.mp4"


def test_missing_video_report_declined_upload_changes_nothing(app, tmp_path):
    storage = FakeStorage({})
    local = tmp_path / "local"
    local.mkdir()
    (local / "a.mp4").write_bytes(b"a")
    path = str(tmp_path / "report.xlsx")

    code = missing_video_report.main(
        ["--excel", path, "--upload-from", str(local), "--no-progress"],
        app=app, storage=storage, input_fn=lambda prompt: "n",
    )

    assert code == 0
    assert storage.objects == {}
    assert len(read_report(path, missing_video_report.SHEET_NAME).rows) == 3


class RefusingStorage(FakeStorage):
    """S3 answers 403 for some keys."""

    def __init__(self, objects=None, refused=()):
        super().__init__(objects)
        self.refused = set(refused)

    def exists(self, key):
        if key in self.refused:
            raise StorageError(f"head_object {key}: 403 Forbidden")
        return super().exists(key)


def test_missing_video_report_counts_refused_object_and_carries_on(app, tmp_path):
    storage = RefusingStorage({"uploads/a.mp4": b"a"}, refused={"uploads/b.mp4"})
    path = tmp_path / "report.xlsx"

    code = missing_video_report.main(["--excel", str(path), "--no-progress"], app=app, storage=storage)

    assert code == 0
    assert [row["_id"] for row in read_report(str(path), missing_video_report.SHEET_NAME).rows] == ["s3"]

    missing, errors = missing_video_report.find_missing_videos(SurveyStore(db.session), storage, show_progress=False)
    assert [row["_id"] for row in missing] == ["s3"]
    assert errors.failed == 1
    assert errors.processed == 2


def test_missing_video_report_s3_offline_fails(app, tmp_path):
    path = tmp_path / "report.xlsx"
    code = missing_video_report.main(["--excel", str(path), "--no-progress"],
                                     app=app, storage=FakeStorage(offline=True))
    assert code == 1
    assert not path.exists()

# ---------------------------------------------------------------------------
# highlight / durations
# ---------------------------------------------------------------------------

SURVEY_HEADER = ["_id", "Plaza Name", "Video File", "createdAt"]


def _survey_workbook(path):
    write_report(str(path), "Survey Data", SURVEY_HEADER, [
        {"_id": "s1", "Plaza Name": "Manavasi", "Video File": "uploads/a.mp4", "createdAt": datetime(2025, 5, 1)},
        {"_id": "s2", "Plaza Name": "Manavasi", "Video File": "uploads/b.mp4", "createdAt": datetime(2025, 5, 2)},
        {"_id": "s3", "Plaza Name": "Bankapur", "Video File": None, "createdAt": datetime(2025, 5, 3)},
    ])


def test_highlight_missing_data(tmp_path):
    survey = tmp_path / "SurveyData.xlsx"
    missing = tmp_path / "Missing_Videos_Report.xlsx"
    output = tmp_path / "SurveyData_Processed.xlsx"
    _survey_workbook(survey)
    write_report(str(missing), "Missing Videos", ["_id", "VideoProofKey"],
                 [{"_id": "s2", "VideoProofKey": "uploads/b.mp4"}])

    code = highlight_missing_data.main(["--survey", str(survey), "--missing", str(missing),
                                        "--output", str(output)])

    assert code == 0
    wb = load_workbook(output)
    sheet = wb["Survey Data"]
    assert sheet.cell(row=3, column=1).fill.fill_type == "solid"
    assert sheet.cell(row=3, column=3).fill.fill_type == "solid"
    assert sheet.cell(row=3, column=4).fill.fill_type is None
    assert sheet.cell(row=2, column=1).fill.fill_type is None

    kept = [row[0] for row in wb[highlight_missing_data.NON_MISSING_SHEET].iter_rows(values_only=True)]
    assert kept == ["_id", "s1", "s3"]
    # inputs stay as they were
    assert load_workbook(survey).sheetnames == ["Survey Data"]


def test_highlight_requires_video_file_column(tmp_path):
    survey = tmp_path / "SurveyData.xlsx"
    missing = tmp_path / "missing.xlsx"
    write_report(str(survey), "Survey Data", ["_id", "createdAt"], [{"_id": "s1", "createdAt": datetime(2025, 5, 1)}])
    write_report(str(missing), "Missing Videos", ["VideoProofKey"], [{"VideoProofKey": "x"}])

    code = highlight_missing_data.main(["--survey", str(survey), "--missing", str(missing),
                                        "--output", str(tmp_path / "out.xlsx")])
    assert code == 1
    assert not (tmp_path / "out.xlsx").exists()


def test_video_duration_extraction_marks_each_row(tmp_path):
    survey = tmp_path / "SurveyData.xlsx"
    output = tmp_path / "SurveyData_WithDuration.xlsx"
    videos = tmp_path / "videos"
    (videos / "uploads").mkdir(parents=True)
    (videos / "uploads" / "a.mp4").write_bytes(b"a")
    _survey_workbook(survey)

    code = video_duration_extraction.main(
        ["--input", str(survey), "--output", str(output), "--video-dir", str(videos), "--no-progress"],
        probe=lambda path: 12.3456,
    )

    assert code == 0
    rows = read_report(str(output), "Survey Data").rows
    durations = [row["Video Duration (s)"] for row in rows]
    assert durations == [12.35, video_duration_extraction.NOT_FOUND, video_duration_extraction.MISSING_FILENAME]


def test_video_duration_extraction_probe_error(tmp_path):
    survey = tmp_path / "SurveyData.xlsx"
    videos = tmp_path / "videos" / "uploads"
    videos.mkdir(parents=True)
    (videos / "a.mp4").write_bytes(b"a")
    _survey_workbook(survey)
    table = read_report(str(survey), "Survey Data")

    header, errors = video_duration_extraction.fill_durations(
        table, str(tmp_path / "videos"), probe=lambda path: None, show_progress=False,
    )

    assert header[-1] == "Video Duration (s)"
    assert table.rows[0]["Video Duration (s)"] == video_duration_extraction.PROBE_ERROR
    assert errors.failed == 1

# ---------------------------------------------------------------------------
# backfill / delete / download
# ---------------------------------------------------------------------------

def test_backfill_copies_valid_video_onto_invalid_sample(store, tmp_path):
    storage = FakeStorage({"uploads/a.mp4": b"video-a"})

    updated = backfill_video_proofs.backfill(
        store, storage, "u1", download_dir=str(tmp_path), assume_yes=True,
        probe=lambda path: 42.5, show_progress=False,
    )

    assert updated == ["s2"]
    db.session.expire_all()
    target = store.get_survey_data("s2")
    assert target.video_proof.startswith("uploads/") and target.video_proof.endswith(".mp4")
    assert storage.objects[target.video_proof] == b"video-a"
    assert target.end_time == target.start_time + timedelta(seconds=42.5)
    assert target.vehicle_category == "Car/Jeep/Van/MV"


def test_backfill_declined_uploads_nothing(store, tmp_path):
    storage = FakeStorage({"uploads/a.mp4": b"video-a"})

    updated = backfill_video_proofs.backfill(
        store, storage, "u1", download_dir=str(tmp_path), input_fn=lambda prompt: "no",
        probe=lambda path: 10.0, show_progress=False,
    )

    assert updated == []
    assert set(storage.objects) == {"uploads/a.mp4"}


def test_backfill_unknown_surveyor_is_noop(store, tmp_path):
    assert backfill_video_proofs.backfill(store, FakeStorage(), "nobody", download_dir=str(tmp_path),
                                          assume_yes=True, show_progress=False) == []


def test_split_by_video_sets_refused_samples_aside(store):
    storage = RefusingStorage({"uploads/a.mp4": b"a"}, refused={"uploads/b.mp4"})

    valid, invalid, errors = backfill_video_proofs.split_by_video(
        store.find_survey_data(), storage, show_progress=False,
    )

    assert [s.id for s in valid] == ["s1"]
    assert [s.id for s in invalid] == ["s3"]
    assert errors.failed == 1


def test_backfill_leaves_refused_sample_alone(store, tmp_path):
    storage = RefusingStorage({"uploads/a.mp4": b"video-a"}, refused={"uploads/b.mp4"})

    updated = backfill_video_proofs.backfill(
        store, storage, "u1", download_dir=str(tmp_path), assume_yes=True,
        probe=lambda path: 10.0, show_progress=False,
    )

    assert updated == []
    db.session.expire_all()
    assert store.get_survey_data("s2").video_proof == "uploads/b.mp4"


def test_delete_survey_data_with_confirmation(app, tmp_path):
    ids_file = tmp_path / "ids.txt"
    ids_file.write_text("a3\n\n# old batch\n")

    assert delete_survey_data.main(["a1", "--ids-file", str(ids_file), "--yes"], app=app) == 0
    db.session.expire_all()
    assert db.session.query(FastagSurveyData).count() == 0


def test_delete_survey_data_declined(app):
    assert delete_survey_data.main(["a1"], app=app, input_fn=lambda prompt: "") == 0
    assert db.session.query(FastagSurveyData).count() == 3


def test_delete_survey_data_requires_ids(app):
    assert delete_survey_data.main([], app=app) == 1


def test_download_video(tmp_path):
    storage = FakeStorage({"uploads/x.mp4": b"x"})
    target = tmp_path / "video.mp4"

    assert download_video.main(["uploads/x.mp4", str(target)], storage=storage) == 0
    assert target.read_bytes() == b"x"
    assert download_video.main(["uploads/missing.mp4", str(tmp_path / "m.mp4")],
                               storage=FakeStorage(offline=True)) == 1
