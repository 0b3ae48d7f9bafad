# cvtailor\db\models.py

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, LargeBinary, JSON, Enum, Index
)
from sqlalchemy.orm import declarative_base

# Base class for declarative models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so we never store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_generation_id() -> str:
    return str(uuid.uuid4())


class GenerationStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not GenerationStatus.PENDING


class GenerationMode(str, enum.Enum):
    """Which instruction variant the prompt is assembled with."""
    ENTRY_LEVEL = "entry_level"
    EXPERIENCED = "experienced"


class GeneratedCv(Base):
    """
    One row per generation request.

    Created PENDING at submission time and moved exactly once to COMPLETED or
    FAILED by the background pipeline. Success fields (latex_content,
    pdf_content, analysis) and error fields (error_message, error_kind) are
    never populated together.
    """
    __tablename__ = "generated_cvs"

    id = Column(String(36), primary_key=True, default=new_generation_id)

    # --- Input ---
    jd_hash = Column(String(64), nullable=False, index=True)
    job_description = Column(Text, nullable=False)
    company_name = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    mode = Column(Enum(GenerationMode, native_enum=False, length=20), nullable=False, default=GenerationMode.EXPERIENCED)

    status = Column(Enum(GenerationStatus, native_enum=False, length=20), nullable=False, default=GenerationStatus.PENDING)

    # --- Success payload ---
    latex_content = Column(Text, nullable=True)
    pdf_content = Column(LargeBinary, nullable=True)
    analysis = Column(JSON, nullable=True)
    recruiter_domain = Column(String(50), nullable=True)
    keyword_coverage = Column(Integer, nullable=True)
    recruiter_fit = Column(Integer, nullable=True)

    # --- Failure payload ---
    error_message = Column(String(1000), nullable=True)
    error_kind = Column(String(40), nullable=True)
    # LaTeX that the compiler rejected, kept only for debugging.
    debug_source = Column(Text, nullable=True)

    # --- Timestamps and timings ---
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    generation_time_ms = Column(Integer, nullable=True)
    compilation_time_ms = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_generated_cvs_hash_status", "jd_hash", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == GenerationStatus.PENDING

    @property
    def is_completed(self) -> bool:
        return self.status == GenerationStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == GenerationStatus.FAILED

    def __repr__(self) -> str:
        return f"<GeneratedCv id={self.id} status={self.status} jd_hash={self.jd_hash}>"
