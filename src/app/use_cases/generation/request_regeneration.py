"""RequestRegeneration Use Case

Regenerating never touches the source job. It creates a fresh job with the
same inputs; the provider draws a new seed so the result differs.
"""

from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.domain.base import generate_uuid
from src.domain.generation_job import JobKind, JobStatus
from .dtos import GenerationRequest, StartedGeneration
from .orchestrator import GenerationOrchestrator


class RequestRegeneration:
    """
    Use Case: Regenerate a completed try-on

    Business Rules:
    1. The source job must belong to the user, be an image job and be COMPLETED
    2. The source's inputs must still exist
    3. The new job points back at the source through parent_job_id
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        job_repo: GenerationJobRepository,
        catalog_repo: CatalogRepository,
        cost: int = 5,
        max_poll_attempts: int = 120,
    ):
        self.orchestrator = orchestrator
        self.job_repo = job_repo
        self.catalog_repo = catalog_repo
        self.cost = cost
        self.max_poll_attempts = max_poll_attempts

    async def execute(
        self, user_id: str, job_id: str, request_id: Optional[str] = None
    ) -> Result[StartedGeneration]:
        source = await self.job_repo.get(job_id, user_id)
        if not source:
            return Return.err(Error(code="JOB_NOT_FOUND", message=f"Job {job_id} not found"))

        if not source.kind.is_image or source.status != JobStatus.COMPLETED:
            return Return.err(
                Error(
                    code="JOB_NOT_REGENERABLE",
                    message="Only completed try-on results can be regenerated",
                    reason=f"kind={source.kind.value}, status={source.status.value}",
                )
            )

        product_image = await self.catalog_repo.get_product_image(source.product_image_id, user_id)
        model_photo = await self.catalog_repo.get_model_photo(source.model_photo_id)
        if not product_image or not model_photo:
            return Return.err(
                Error(
                    code="INPUT_NOT_FOUND",
                    message="The inputs of this result are no longer available",
                )
            )

        params = {}
        if source.job_metadata.get("params", {}).get("category"):
            params["category"] = source.job_metadata["params"]["category"]

        return await self.orchestrator.start(
            GenerationRequest(
                user_id=user_id,
                kind=JobKind.REGENERATION,
                cost=self.cost,
                max_poll_attempts=self.max_poll_attempts,
                input_urls={
                    "model_image": model_photo.image_url,
                    "garment_image": product_image.image_url,
                },
                params=params,
                description=f"Regeneration of {source.id}",
                product_image_id=product_image.id,
                model_photo_id=model_photo.id,
                parent_job_id=source.id,
                request_id=request_id or generate_uuid(),
            )
        )
