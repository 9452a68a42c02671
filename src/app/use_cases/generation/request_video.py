"""RequestVideo Use Case

Animates a completed try-on result. The video is its own job row whose
parent is the image job; the image job is never modified.
"""

from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.domain.base import generate_uuid
from src.domain.generation_job import JobKind, JobStatus
from .dtos import GenerationRequest, StartedGeneration
from .orchestrator import GenerationOrchestrator


class RequestVideo:
    """
    Use Case: Generate a video from a completed try-on

    Business Rules:
    1. Input is the stored result of a COMPLETED image job owned by the user,
       never a user-supplied image
    2. Same algorithm as image generation with its own cost and poll budget
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        job_repo: GenerationJobRepository,
        cost: int = 50,
        max_poll_attempts: int = 240,
    ):
        self.orchestrator = orchestrator
        self.job_repo = job_repo
        self.cost = cost
        self.max_poll_attempts = max_poll_attempts

    async def execute(
        self, user_id: str, job_id: str, request_id: Optional[str] = None
    ) -> Result[StartedGeneration]:
        parent = await self.job_repo.get(job_id, user_id)
        if not parent:
            return Return.err(Error(code="JOB_NOT_FOUND", message=f"Job {job_id} not found"))

        if not parent.kind.is_image or parent.status != JobStatus.COMPLETED or not parent.result_url:
            return Return.err(
                Error(
                    code="JOB_NOT_VIDEO_SOURCE",
                    message="Videos can only be generated from completed try-on results",
                    reason=f"kind={parent.kind.value}, status={parent.status.value}",
                )
            )

        return await self.orchestrator.start(
            GenerationRequest(
                user_id=user_id,
                kind=JobKind.VIDEO,
                cost=self.cost,
                max_poll_attempts=self.max_poll_attempts,
                input_urls={"image_url": parent.result_url},
                description=f"Video generation for {parent.id}",
                product_image_id=parent.product_image_id,
                model_photo_id=parent.model_photo_id,
                parent_job_id=parent.id,
                source_url=parent.result_url,
                request_id=request_id or generate_uuid(),
            )
        )
