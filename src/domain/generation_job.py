"""Generation Job Domain Entity

One generation attempt (try-on, regeneration or video) tracked through
pending -> processing -> completed | failed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, JSON, String, Text
from src.domain.base import BaseModel, enum_column, generate_uuid


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


class JobKind(str, Enum):
    TRYON = "tryon"
    REGENERATION = "regeneration"
    VIDEO = "video"

    @property
    def is_image(self) -> bool:
        return self in (JobKind.TRYON, JobKind.REGENERATION)


class FailureCode(str, Enum):
    """Why a job ended in FAILED"""
    SUBMISSION_ERROR = "SUBMISSION_ERROR"    # Provider rejected the request
    PROVIDER_FAILURE = "PROVIDER_FAILURE"    # Provider reported failure while processing
    TIMEOUT = "TIMEOUT"                      # Poll budget exhausted
    ARTIFACT_MISSING = "ARTIFACT_MISSING"    # Reported success without a usable output
    STORAGE_FAILURE = "STORAGE_FAILURE"      # Artifact could not be persisted
    CANCELLED = "CANCELLED"                  # Runner shut down before a terminal status


class GenerationJob(BaseModel, table=True):
    """
    Generation Job - lifecycle record of one generation attempt

    Domain Rules:
    - COMPLETED and FAILED are terminal; a terminal job is never updated again
    - result_url is set if and only if status is COMPLETED
    - Regeneration never mutates the source job: it creates a new row whose
      parent_job_id points at the source
    - A video is its own row (kind=VIDEO) whose parent_job_id is the completed
      image job it animates, so the two lifecycles never share a row
    """

    __tablename__ = "generation_jobs"
    __table_args__ = (
        CheckConstraint(
            "(status = 'completed' AND result_url IS NOT NULL) OR "
            "(status <> 'completed' AND result_url IS NULL)",
            name="result_url_iff_completed",
        ),
        CheckConstraint("credits_used >= 0", name="credits_used_non_negative"),
        Index("ix_generation_jobs_user_created", "user_id", "created_at"),
        Index("ix_generation_jobs_status_updated", "status", "updated_at"),
        Index("ix_generation_jobs_parent", "parent_job_id"),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Job identifier"
    )

    user_id: str = Field(
        index=True,
        description="Owner of the job"
    )

    kind: JobKind = Field(
        sa_column=enum_column(JobKind),
        description="tryon, regeneration or video"
    )

    status: JobStatus = Field(
        default=JobStatus.PENDING,
        sa_column=enum_column(JobStatus),
        description="pending, processing, completed or failed"
    )

    product_image_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Garment input"
    )

    model_photo_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Model photo input"
    )

    parent_job_id: Optional[str] = Field(
        default=None,
        description="Source job for regenerations and videos"
    )

    source_url: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Input artifact URL for videos (the parent's result)"
    )

    result_url: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Public URL of the stored output (set only when completed)"
    )

    result_path: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Object store path of the output"
    )

    credits_used: int = Field(
        default=0,
        description="Credits debited for this job"
    )

    error_code: Optional[FailureCode] = Field(
        default=None,
        sa_column=enum_column(FailureCode, nullable=True),
        description="Failure classification"
    )

    error_message: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Failure reason shown to the user"
    )

    external_request_id: Optional[str] = Field(
        default=None,
        description="Provider queue request id"
    )

    ai_provider: Optional[str] = Field(default=None)
    ai_model: Optional[str] = Field(default=None)

    processing_time_seconds: int = Field(default=0)

    job_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
        description="Provider details and parameters used (seed, mode, ...)"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    processing_started_at: Optional[datetime] = Field(default=None)
    processing_completed_at: Optional[datetime] = Field(default=None)
