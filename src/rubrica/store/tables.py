"""
SQLAlchemy tables for rubrics, focus profiles, submissions, results and
rate-limit windows.

Every row carries ``user_id`` (the owner). JSON columns hold the embedded
criteria and score lists; they are validated by the pydantic models before
they are written.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class RubricRow(Base):
    __tablename__ = "rubrics"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    subject_id = Column(String(36), nullable=False)
    name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=True)
    criteria = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<RubricRow(id={self.id}, name='{self.name}')>"


class FocusProfileRow(Base):
    __tablename__ = "focus_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    rubric_id = Column(
        String(36), ForeignKey("rubrics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(Text, nullable=False)
    selected_criteria = Column(JSON, nullable=False, default=list)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubmissionRow(Base):
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    assignment_id = Column(String(36), nullable=False)
    file_path = Column(Text, nullable=False)
    student_name = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<SubmissionRow(id={self.id}, status='{self.status}')>"


class ResultRow(Base):
    __tablename__ = "results"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    # one result per submission
    submission_id = Column(
        String(36),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    overall_score = Column(Float, nullable=False)
    criteria_scores = Column(JSON, nullable=False, default=list)
    strengths = Column(JSON, nullable=False, default=list)
    improvements = Column(JSON, nullable=False, default=list)
    confidence = Column(String(8), nullable=False, default="high")
    flags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class RateLimitRow(Base):
    __tablename__ = "rate_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", "window_minute", name="rate_limits_window_uq"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    endpoint = Column(String(64), nullable=False)
    window_minute = Column(String(16), nullable=False)
    request_count = Column(Integer, nullable=False, default=1)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
