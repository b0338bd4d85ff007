import sqlalchemy as sa
from sqlalchemy.orm import declarative_base
from datetime import datetime
import uuid

Base = declarative_base()


class Profile(Base):
    """A practitioner. Owns patients and visits."""

    __tablename__ = "profiles"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    external_user_id = sa.Column(sa.String, unique=True, nullable=False, index=True)
    full_name = sa.Column(sa.String)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow)


class Patient(Base):
    __tablename__ = "patients"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    provider_id = sa.Column(sa.Uuid, sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = sa.Column(sa.String(100), nullable=False)
    last_name = sa.Column(sa.String(100), nullable=False)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow)


class Visit(Base):
    __tablename__ = "visits"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = sa.Column(sa.Uuid, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = sa.Column(sa.Uuid, sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    status = sa.Column(sa.String(20), nullable=False, default="draft")
    language_pref = sa.Column(sa.String(4), nullable=False, default="de")
    started_at = sa.Column(sa.DateTime, nullable=True)
    ended_at = sa.Column(sa.DateTime, nullable=True)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow)
    updated_at = sa.Column(sa.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('draft', 'recording', 'processing', 'completed', 'failed')",
            name="ck_visits_status",
        ),
        sa.CheckConstraint("language_pref IN ('de', 'fr', 'auto')", name="ck_visits_language_pref"),
    )


class Transcript(Base):
    __tablename__ = "transcripts"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    visit_id = sa.Column(sa.Uuid, sa.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    text = sa.Column(sa.Text, nullable=False)
    raw_json = sa.Column(sa.JSON, nullable=True)
    language = sa.Column(sa.String(16), nullable=True)
    confidence = sa.Column(sa.Float, nullable=True)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow, index=True)


class Note(Base):
    __tablename__ = "notes"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    visit_id = sa.Column(sa.Uuid, sa.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    soap = sa.Column(sa.JSON, nullable=False)
    model = sa.Column(sa.String, nullable=False)
    version = sa.Column(sa.Integer, nullable=False, default=1)
    is_final = sa.Column(sa.Boolean, nullable=False, default=False)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow)

    __table_args__ = (
        sa.UniqueConstraint("visit_id", "version", name="uq_notes_visit_version"),
        sa.CheckConstraint("version >= 1", name="ck_notes_version_positive"),
    )


class UsageMetric(Base):
    __tablename__ = "usage_metrics"
    id = sa.Column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    visit_id = sa.Column(sa.Uuid, sa.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    stt_seconds = sa.Column(sa.Integer, nullable=False, default=0)
    stt_cost_cents = sa.Column(sa.Integer, nullable=False, default=0)
    stt_model = sa.Column(sa.String, nullable=True)
    llm_tokens_in = sa.Column(sa.Integer, nullable=False, default=0)
    llm_tokens_out = sa.Column(sa.Integer, nullable=False, default=0)
    llm_cost_cents = sa.Column(sa.Integer, nullable=False, default=0)
    llm_model = sa.Column(sa.String, nullable=True)
    created_at = sa.Column(sa.DateTime, default=datetime.utcnow)
