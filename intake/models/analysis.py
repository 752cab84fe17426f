"""
models/analysis.py — SQLAlchemy ORM model for the analysis history.

Table: analysis_history
One row per submission attempt. The row is a state machine (pending → completed
| failed), not an append-only log: every transition overwrites columns in place.
All JSON payloads live in JSONB blobs so SQL logs never expose profile text.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from intake.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (the test suite runs on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class AnalysisStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisRecordORM(Base):
    """
    ORM model for a single analysis attempt.

    user_id is indexed and every store query filters on it — ownership is
    enforced at the store boundary, not by callers.
    """
    __tablename__ = "analysis_history"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="UUID row identifier (the analysisId returned to clients)",
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Owner — subject claim of the verified auth token",
    )
    company_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="Unknown Company",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AnalysisStatus.PENDING,
        comment="'pending' | 'completed' | 'failed'",
    )
    parsed_data: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Extracted profile awaiting analysis; cleared on completion",
    )
    business_profile: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Validated BusinessProfile that was analyzed",
    )
    recommendations: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="List of ServiceRecommendation dicts",
    )
    project_blueprint: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
    )
    business_profile_pdf_url: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Stored object-storage URL of the uploaded source document",
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
