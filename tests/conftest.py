"""Shared fixtures: Flask app on in-memory SQLite with a small seeded survey set."""
import os
import tempfile
from datetime import datetime

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="survey_ops_logs_"))

import pytest

from application import create_app
from config import Config
from errors import ConnectivityError
from models import FastagSurveyAssigned, FastagSurveyData, User, db
from plaza_lookup import PlazaDetails
from survey_store import SurveyStore


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"


def _user(id, name, mob_num, email):
    return User(id=id, name=name, mob_num=mob_num, email=email, employee_code=f"E-{id}",
                designation="Surveyor", company_name="Mozaic", user_type="Surveyor")


def _assigned(id, plaza_name, plaza_code, surveyor_id, status, created_at):
    return FastagSurveyAssigned(id=id, plaza_name=plaza_name, plaza_code=plaza_code,
                                surveyor_id=surveyor_id, status=status, start_date=created_at,
                                created_at=created_at, updated_at=created_at)


def _sample(id, survey_id, plaza_name, video_proof, created_at):
    return FastagSurveyData(id=id, survey_id=survey_id, plaza_name=plaza_name, plaza_code="P001",
                            lat=10.5, long=78.1, start_time=created_at,
                            end_time=created_at.replace(second=30),
                            vehicle_category="Car/Jeep/Van/MV", fuel_type="Petrol",
                            video_proof=video_proof, serving_time=12.0, payment_type="fastag",
                            created_at=created_at, updated_at=created_at)


def seed_surveys(session):
    session.add_all([
        _user("u1", "Asha Rao", "9000000001", "asha@example.com"),
        _user("u2", "Neeraj Gautam", "9000000002", "neeraj@example.com"),
    ])
    session.add_all([
        _assigned("a1", "Manavasi", "P001", "u1", "Completed", datetime(2025, 5, 1, 10, 0)),
        _assigned("a2", "Manavasi", "P001", "u1", "Pending", datetime(2025, 5, 1, 12, 0)),
        _assigned("a3", "Bankapur", "P002", "u1", "Drafted", datetime(2025, 5, 2, 8, 0)),
        _assigned("a4", "Bankapur", "P002", "u2", "Pending", datetime(2025, 5, 2, 9, 0)),
    ])
    session.add_all([
        _sample("s1", "a1", "Manavasi", "uploads/a.mp4", datetime(2025, 5, 1, 10, 5)),
        _sample("s2", "a1", "Manavasi", "uploads/b.mp4", datetime(2025, 5, 1, 10, 10)),
        _sample("s3", "a3", "Bankapur", "uploads/c.mp4", datetime(2025, 5, 2, 9, 0)),
    ])
    session.commit()


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_surveys(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return SurveyStore(db.session)


class FakePlazaLookup:
    def __init__(self):
        self.calls = []

    def details(self, plaza_name):
        self.calls.append(plaza_name)
        return PlazaDetails(state="Tamil Nadu", nh_no="NH-44", location="Madurai",
                            section_stretch="Madurai-Kanyakumari")


class FakeStorage:
    """In-memory stand-in for S3Storage."""

    def __init__(self, objects=None, offline=False):
        self.objects = dict(objects or {})
        self.offline = offline

    def _check(self):
        if self.offline:
            raise ConnectivityError("S3 unreachable")

    def exists(self, key):
        self._check()
        return bool(key) and key in self.objects

    def get(self, key):
        self._check()
        return self.objects[key]

    def download(self, key, local_path):
        body = self.get(key)
        os.makedirs(os.path.dirname(os.path.abspath(local_path)), exist_ok=True)
        with open(local_path, "wb") as fh:
            fh.write(body)
        return local_path

    def put(self, key, body):
        self._check()
        self.objects[key] = body
        return key

    def upload_file(self, local_path, key):
        with open(local_path, "rb") as fh:
            return self.put(key, fh.read())


@pytest.fixture
def plaza_lookup():
    return FakePlazaLookup()
