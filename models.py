from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
import secrets

db = SQLAlchemy()


def new_object_id():
    """24-char hex id, same shape as the ids the mobile app already hands out."""
    return secrets.token_hex(12)

# ============================================================================
# STATUS VALUES
# ============================================================================

STATUS_PENDING = "Pending"
STATUS_COMPLETED = "Completed"
STATUS_DRAFTED = "Drafted"

VEHICLE_CATEGORIES = (
    "Car/Jeep/Van/MV",
    "LCV/LGV/Mini Bus",
    "2 axle",
    "3 axle Commercial",
    "4 to 6 axle",
    "Over sized(7 axle)",
)
FUEL_TYPES = ("Diesel", "Petrol", "CNG", "EV", "NA")
PAYMENT_TYPES = ("fastag", "cash")

# ============================================================================
# ABSTRACT BASE MODEL
# ============================================================================

class TimestampedModel(db.Model):
    __abstract__ = True
    id = db.Column(db.String(24), primary_key=True, default=new_object_id)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow,
                           nullable=False, index=True)

# ============================================================================
# USERS
# ============================================================================

class User(TimestampedModel):
    __tablename__ = "users"
    employee_code = db.Column(db.String(50))
    name = db.Column(db.String(255))
    designation = db.Column(db.String(255))
    email = db.Column(db.String(255), unique=True)
    mob_num = db.Column(db.String(20), unique=True)
    company_name = db.Column(db.String(255))
    user_type = db.Column(db.String(50))     # Super Admin / Admin / Contractor / Tester / Surveyor
    status = db.Column(db.String(20), default="Active")

# ============================================================================
# SURVEY TABLES
# ============================================================================

class FastagSurveyAssigned(TimestampedModel):
    """One plaza survey assigned to a surveyor."""
    __tablename__ = "fastag_survey_assigned"
    start_date = db.Column(db.DateTime, nullable=False)
    plaza_name = db.Column(db.String(255), nullable=False, index=True)
    plaza_code = db.Column(db.String(50))
    surveyor_id = db.Column(db.String(24), db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)

    surveyor = db.relationship("User", lazy="joined")


class FastagSurveyData(TimestampedModel):
    """One vehicle sample captured during an assigned survey, with its video proof."""
    __tablename__ = "fastag_survey_data"
    survey_id = db.Column(db.String(24), db.ForeignKey("fastag_survey_assigned.id"), nullable=False, index=True)
    lat = db.Column(db.Float)
    long = db.Column(db.Float)
    plaza_name = db.Column(db.String(255))
    plaza_code = db.Column(db.String(50))
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    vehicle_category = db.Column(db.String(50), nullable=False)
    fuel_type = db.Column(db.String(10), nullable=False)
    video_proof = db.Column(db.String(1024), nullable=False)
    serving_time = db.Column(db.Float, nullable=False)
    payment_type = db.Column(db.String(10))
