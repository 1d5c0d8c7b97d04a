# status_api.py - read-only survey status endpoints
from flask import Blueprint, jsonify, request
import pandas as pd

from config import Config
from errors import SurveyOpsError
from logger_config import get_logger
from models import db
from survey_store import SurveyStore

logger = get_logger(__name__)

status_bp = Blueprint('status_bp', __name__, url_prefix='/api')


@status_bp.route('/health')
def health_check():
    return jsonify({
        "status": "healthy",
        "service": "Survey Ops API"
    })


@status_bp.route('/db-check')
def db_check():
    try:
        count = SurveyStore(db.session).ping()
        return jsonify({
            "status": "success",
            "database": "connected",
            "assigned_surveys_count": count
        })
    except SurveyOpsError as e:
        logger.error(f"❌ DB check failed: {e}")
        return jsonify({
            "status": "error",
            "database": "not connected",
            "error": str(e)
        }), 500


@status_bp.route('/status')
def survey_status():
    """
    Pending / completed / drafted totals per plaza.
    ?by=day returns one row per (day, plaza, surveyor) instead.
    """
    store = SurveyStore(db.session)
    try:
        if request.args.get('by') == 'day':
            rows = store.status_by_day(excluded_surveyors=Config.EXCLUDED_SURVEYORS)
        else:
            rows = store.status_by_plaza(excluded_surveyors=Config.EXCLUDED_SURVEYORS)
    except SurveyOpsError as e:
        logger.error(f"❌ Status query failed: {e}")
        return jsonify({"status": "error", "error": str(e)}), 500

    df = pd.DataFrame(rows)
    totals = {column: df[column].sum() if column in df.columns else 0
              for column in ("pending", "completed", "drafted")}
    if 'day' in df.columns:
        df['day'] = df['day'].astype(str)

    return jsonify({
        "status": "success",
        "totals": totals,
        "rows": df.to_dict(orient='records')
    })
