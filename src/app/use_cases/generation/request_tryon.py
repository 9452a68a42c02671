"""RequestTryOn Use Case

Validates the inputs of a new try-on and hands it to the orchestrator.
"""

from libs.result import Result, Return, Error
from src.app.repositories.catalog_repository import CatalogRepository
from src.domain.generation_job import JobKind
from .dtos import GenerationRequest, StartedGeneration, TryOnRequestDTO
from .orchestrator import GenerationOrchestrator


class RequestTryOn:
    """
    Use Case: Request a try-on

    Business Rules:
    1. The product image must belong to the requesting user
    2. The model photo must exist and be active
    3. Inputs are validated before any credits are debited
    """

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        catalog_repo: CatalogRepository,
        cost: int = 10,
        max_poll_attempts: int = 120,
    ):
        self.orchestrator = orchestrator
        self.catalog_repo = catalog_repo
        self.cost = cost
        self.max_poll_attempts = max_poll_attempts

    async def execute(self, command: TryOnRequestDTO) -> Result[StartedGeneration]:
        product_image = await self.catalog_repo.get_product_image(
            command.product_image_id, command.user_id
        )
        if not product_image:
            return Return.err(
                Error(
                    code="INPUT_NOT_FOUND",
                    message=f"Product image {command.product_image_id} not found",
                )
            )

        model_photo = await self.catalog_repo.get_model_photo(command.model_photo_id)
        if not model_photo:
            return Return.err(
                Error(
                    code="INPUT_NOT_FOUND",
                    message=f"Model photo {command.model_photo_id} not found",
                )
            )

        return await self.orchestrator.start(
            GenerationRequest(
                user_id=command.user_id,
                kind=JobKind.TRYON,
                cost=self.cost,
                max_poll_attempts=self.max_poll_attempts,
                input_urls={
                    "model_image": model_photo.image_url,
                    "garment_image": product_image.image_url,
                },
                params={"category": command.category},
                description=f"Try-on: {product_image.original_filename} on {model_photo.name}",
                product_image_id=product_image.id,
                model_photo_id=model_photo.id,
                request_id=command.request_id,
            )
        )
