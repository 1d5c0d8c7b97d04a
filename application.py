from flask import Flask
from flask.json.provider import DefaultJSONProvider
from models import db
from config import Config
import numpy as np
import pandas as pd


# Aggregates come back as numpy/pandas scalars when they pass through a DataFrame
class CustomJSONProvider(DefaultJSONProvider):
    def default(self, obj):
        if isinstance(obj, (np.integer, np.int64)):
            return int(obj)
        elif isinstance(obj, (np.floating, np.float64)):
            return float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, (pd.Timestamp, pd.DatetimeIndex)):
            return obj.isoformat()
        return super().default(obj)


def create_app(config_object=None):
    """
    Build the Flask app that owns the database session.
    Scripts use it only for its app context; wsgi.py also serves the status API.
    """
    app = Flask(__name__)

    app.json_provider_class = CustomJSONProvider
    app.json = CustomJSONProvider(app)
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    app.config.from_object(config_object or Config)
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = Config.database_uri()

    db.init_app(app)

    return app
