import os


def normalize_database_url(raw_url):
    # Normalize ANY postgres-y URL to SQLAlchemy+psycopg format:
    #  - postgres://...         -> postgresql+psycopg://...
    #  - postgresql://...       -> postgresql+psycopg://...
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)
    if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _csv_list(value):
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Get SECRET_KEY from environment, fallback to default
    SECRET_KEY = os.getenv("SECRET_KEY", "survey-ops-local")

    # Resolved in create_app() so a missing URL fails the run, not the import
    SQLALCHEMY_DATABASE_URI = None
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # S3 settings (same variable names as the mobile backend .env)
    S3ACCESS_KEY = os.getenv("S3ACCESS_KEY")
    S3SECRET_KEY = os.getenv("S3SECRET_KEY")
    S3BUCKET_NAME = os.getenv("S3BUCKET_NAME")
    S3_REGION = os.getenv("S3_REGION", "ap-south-1")

    # Reports
    OUTPUT_DIR = os.getenv("OUTPUT_DIR", "./output")
    MONITOR_REFRESH_SECONDS = float(os.getenv("MONITOR_REFRESH_SECONDS", "5"))

    # Internal test accounts never shown on status reports
    EXCLUDED_SURVEYORS = _csv_list(os.getenv("EXCLUDED_SURVEYORS", "Neeraj Gautam,Pritam Mandle"))

    PLAZA_LOOKUP_URL = os.getenv(
        "PLAZA_LOOKUP_URL",
        "https://tis.nhai.gov.in/TollPlazaService.asmx/GetTollPlazaInfoGrid",
    )

    LOG_DIR = os.getenv("LOG_DIR", "./logs")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @staticmethod
    def database_uri():
        """Read DATABASE_URL from the environment (required)."""
        raw_url = os.getenv("DATABASE_URL")
        if not raw_url:
            raise ValueError("DATABASE_URL environment variable is required")
        return normalize_database_url(raw_url)
