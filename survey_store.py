"""
Record store access for the survey scripts.

Every script builds one SurveyStore around the session of its app context and
hands it to whatever needs to query. Driver level failures surface as
ConnectivityError so callers only deal with the survey error taxonomy.
"""

from contextlib import contextmanager
from datetime import date, datetime
from functools import wraps

from sqlalchemy import case, func, or_
from sqlalchemy.exc import DBAPIError

from application import create_app
from errors import ConfigurationError, ConnectivityError
from models import (
    db, FastagSurveyAssigned, FastagSurveyData, User,
    STATUS_COMPLETED, STATUS_DRAFTED, STATUS_PENDING,
)

FETCH_BATCH_SIZE = 500


def _translate_errors(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except DBAPIError as e:
            self.session.rollback()
            raise ConnectivityError(f"Record store query failed: {e.orig or e}") from e
    return wrapper


def _as_date(value):
    # func.date() gives a str on SQLite and a date on Postgres
    if value is None or isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


def _status_sum(status):
    return func.sum(case((FastagSurveyAssigned.status == status, 1), else_=0))


class SurveyStore:
    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # find / find_by_id
    # ------------------------------------------------------------------

    def iter_survey_data(self, window=None, survey_ids=None):
        """
        Lazily yield survey samples inside the fetch window, oldest first.
        The window filters on created_at only; samples are immutable once captured.
        """
        query = self.session.query(FastagSurveyData)
        if window is not None:
            query = window.apply(query, FastagSurveyData.created_at)
        if survey_ids is not None:
            query = query.filter(FastagSurveyData.survey_id.in_(list(survey_ids)))
        query = query.order_by(FastagSurveyData.created_at, FastagSurveyData.id)

        try:
            for sample in query.yield_per(FETCH_BATCH_SIZE):
                yield sample
        except DBAPIError as e:
            self.session.rollback()
            raise ConnectivityError(f"Record store query failed: {e.orig or e}") from e

    @_translate_errors
    def find_survey_data(self, window=None, survey_ids=None):
        return list(self.iter_survey_data(window=window, survey_ids=survey_ids))

    @_translate_errors
    def find_assigned(self, surveyor_id=None, status=None):
        query = self.session.query(FastagSurveyAssigned)
        if surveyor_id is not None:
            query = query.filter(FastagSurveyAssigned.surveyor_id == surveyor_id)
        if status is not None:
            query = query.filter(FastagSurveyAssigned.status == status)
        return query.order_by(FastagSurveyAssigned.created_at, FastagSurveyAssigned.id).all()

    @_translate_errors
    def get_assigned(self, assigned_id):
        if assigned_id is None:
            return None
        return self.session.get(FastagSurveyAssigned, assigned_id)

    @_translate_errors
    def get_survey_data(self, sample_id):
        if sample_id is None:
            return None
        return self.session.get(FastagSurveyData, sample_id)

    @_translate_errors
    def get_user(self, user_id):
        if user_id is None:
            return None
        return self.session.get(User, user_id)

    # ------------------------------------------------------------------
    # aggregates
    # ------------------------------------------------------------------

    def _status_query(self, *group_columns, excluded_surveyors=()):
        query = (
            self.session.query(
                *group_columns,
                _status_sum(STATUS_PENDING).label("pending"),
                _status_sum(STATUS_COMPLETED).label("completed"),
                _status_sum(STATUS_DRAFTED).label("drafted"),
            )
            .select_from(FastagSurveyAssigned)
            .outerjoin(User, User.id == FastagSurveyAssigned.surveyor_id)
        )
        if excluded_surveyors:
            query = query.filter(or_(User.name.is_(None), User.name.notin_(list(excluded_surveyors))))
        return query

    @_translate_errors
    def status_by_assignment(self, window=None, excluded_surveyors=()):
        """
        Pending/completed tallies per assignment document, for the live monitor.
        The window matches on updated_at or created_at so status flips are picked up.
        """
        query = self._status_query(
            FastagSurveyAssigned.id,
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
            FastagSurveyAssigned.surveyor_id,
            FastagSurveyAssigned.created_at,
            FastagSurveyAssigned.status,
            func.max(FastagSurveyAssigned.updated_at).label("updated_at"),
            User.name,
            User.mob_num,
            excluded_surveyors=excluded_surveyors,
        )
        if window is not None:
            query = window.apply(query, FastagSurveyAssigned.updated_at, FastagSurveyAssigned.created_at)
        query = query.group_by(
            FastagSurveyAssigned.id,
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
            FastagSurveyAssigned.surveyor_id,
            FastagSurveyAssigned.created_at,
            FastagSurveyAssigned.status,
            User.name,
            User.mob_num,
        ).order_by(func.max(FastagSurveyAssigned.updated_at).desc())

        return [
            {
                "document_id": row.id,
                "plaza_name": row.plaza_name,
                "plaza_code": row.plaza_code,
                "surveyor_id": row.surveyor_id,
                "surveyor_name": row.name,
                "mob_num": row.mob_num,
                "pending": int(row.pending or 0),
                "completed": int(row.completed or 0),
                "latest_status": row.status,
                "created_at": row.created_at,
                "updated_at": row.updated_at,
            }
            for row in query.all()
        ]

    @_translate_errors
    def status_by_day(self, excluded_surveyors=()):
        """Pending/completed/drafted tallies per (day, plaza, surveyor)."""
        day = func.date(FastagSurveyAssigned.created_at).label("day")
        query = self._status_query(
            day,
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
            User.name,
            User.mob_num,
            excluded_surveyors=excluded_surveyors,
        ).group_by(
            day,
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
            User.name,
            User.mob_num,
        ).order_by(day, FastagSurveyAssigned.plaza_name)

        return [
            {
                "day": _as_date(row.day),
                "plaza_name": row.plaza_name,
                "plaza_code": row.plaza_code,
                "surveyor_name": row.name,
                "mob_num": row.mob_num,
                "pending": int(row.pending or 0),
                "completed": int(row.completed or 0),
                "drafted": int(row.drafted or 0),
            }
            for row in query.all()
        ]

    @_translate_errors
    def status_by_plaza(self, excluded_surveyors=()):
        query = self._status_query(
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
            excluded_surveyors=excluded_surveyors,
        ).group_by(
            FastagSurveyAssigned.plaza_name,
            FastagSurveyAssigned.plaza_code,
        ).order_by(FastagSurveyAssigned.plaza_name)

        return [
            {
                "plaza_name": row.plaza_name,
                "plaza_code": row.plaza_code,
                "pending": int(row.pending or 0),
                "completed": int(row.completed or 0),
                "drafted": int(row.drafted or 0),
            }
            for row in query.all()
        ]

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    @_translate_errors
    def update_video_proof(self, sample, video_key, **fields):
        sample.video_proof = video_key
        for name, value in fields.items():
            setattr(sample, name, value)
        self.session.commit()
        return sample

    @_translate_errors
    def delete_survey_data(self, survey_ids):
        deleted = (
            self.session.query(FastagSurveyData)
            .filter(FastagSurveyData.survey_id.in_(list(survey_ids)))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    @_translate_errors
    def ping(self):
        return self.session.query(func.count(FastagSurveyAssigned.id)).scalar()

    def close(self):
        self.session.close()


@contextmanager
def open_store(app=None):
    """
    App context + SurveyStore for one script run.
    The session is closed on the way out, whatever happened inside.
    """
    if app is None:
        try:
            app = create_app()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    with app.app_context():
        store = SurveyStore(db.session)
        try:
            yield store
        finally:
            store.close()
