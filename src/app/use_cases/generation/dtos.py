"""Data Transfer Objects for Generation Use Cases"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from src.app.services.inference_gateway import ExternalHandle
from src.domain.base import generate_uuid
from src.domain.generation_job import GenerationJob, JobKind


class TryOnRequestDTO(BaseModel):
    """
    Command DTO for a new try-on

    request_id makes the debit idempotent: a client retrying the same
    request is charged once.
    """

    user_id: str = Field(..., min_length=1)
    product_image_id: str = Field(..., min_length=1)
    model_photo_id: str = Field(..., min_length=1)
    category: str = Field(default="auto", description="Garment category hint (auto, tops, bottoms, one-pieces)")
    request_id: str = Field(default_factory=generate_uuid)


class JobDTO(BaseModel):
    """Response DTO for a generation job"""

    job_id: str
    user_id: str
    kind: str
    status: str
    product_image_id: Optional[str] = None
    model_photo_id: Optional[str] = None
    parent_job_id: Optional[str] = None
    result_url: Optional[str] = None
    credits_used: int
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    processing_time_seconds: int = 0
    created_at: datetime
    updated_at: datetime
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, job: GenerationJob) -> "JobDTO":
        return cls(
            job_id=job.id,
            user_id=job.user_id,
            kind=job.kind.value,
            status=job.status.value,
            product_image_id=job.product_image_id,
            model_photo_id=job.model_photo_id,
            parent_job_id=job.parent_job_id,
            result_url=job.result_url,
            credits_used=job.credits_used,
            error_code=job.error_code.value if job.error_code else None,
            error_message=job.error_message,
            processing_time_seconds=job.processing_time_seconds or 0,
            created_at=job.created_at,
            updated_at=job.updated_at,
            processing_started_at=job.processing_started_at,
            processing_completed_at=job.processing_completed_at,
        )


@dataclass
class GenerationRequest:
    """Everything the orchestrator needs to run one generation"""
    user_id: str
    kind: JobKind
    cost: int
    max_poll_attempts: int
    input_urls: Dict[str, str]
    description: str
    product_image_id: Optional[str] = None
    model_photo_id: Optional[str] = None
    parent_job_id: Optional[str] = None
    source_url: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=generate_uuid)


@dataclass
class StartedGeneration:
    """
    Outcome of the synchronous part of a generation

    handle is None when the job already reached a terminal state (submission
    failed) or when the request was a replay of one already accepted.
    """
    job: JobDTO
    request: GenerationRequest
    handle: Optional[ExternalHandle] = None

    @property
    def needs_polling(self) -> bool:
        return self.handle is not None
