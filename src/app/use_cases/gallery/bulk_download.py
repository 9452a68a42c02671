"""BulkDownload Use Case

Packs selected try-on results into a single ZIP archive.
"""

import io
import logging
import re
import zipfile
from datetime import datetime
from typing import Callable, Awaitable, Dict, List
from libs.result import Result, Return, Error
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.domain.generation_job import JobStatus
from .dtos import BulkDownloadCommandDTO, BulkDownloadResultDTO

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[bytes]]


def _safe_name(value: str) -> str:
    """Keep the name readable but never let it escape the archive root"""
    return re.sub(r"[\\/:]+", "_", value).strip() or "image"


class BulkDownload:
    """
    Use Case: Download several results at once

    Business Rules:
    1. Only the user's own COMPLETED results are included; others are skipped
    2. Entries are named tryon-<original filename>-<model name>.png
    3. Duplicate names get a numeric suffix
    4. A result whose bytes cannot be fetched is skipped, not fatal
    """

    def __init__(
        self,
        job_repo: GenerationJobRepository,
        catalog_repo: CatalogRepository,
        fetch: Fetcher,
    ):
        self.job_repo = job_repo
        self.catalog_repo = catalog_repo
        self.fetch = fetch

    async def execute(self, command: BulkDownloadCommandDTO) -> Result[BulkDownloadResultDTO]:
        included: List[str] = []
        skipped: List[str] = []
        used_names: Dict[str, int] = {}
        buffer = io.BytesIO()

        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for job_id in dict.fromkeys(command.job_ids):
                job = await self.job_repo.get(job_id, command.user_id)
                if not job or job.status != JobStatus.COMPLETED or not job.result_url:
                    skipped.append(job_id)
                    continue

                try:
                    data = await self.fetch(job.result_url)
                except Exception as e:
                    logger.warning(f"Could not fetch result of job {job_id}: {e}")
                    skipped.append(job_id)
                    continue

                name = await self._entry_name(job)
                count = used_names.get(name, 0)
                used_names[name] = count + 1
                if count:
                    name = f"{name}-{count + 1}"
                extension = "mp4" if job.result_url.endswith(".mp4") else "png"
                archive.writestr(f"{name}.{extension}", data)
                included.append(job_id)

        if not included:
            return Return.err(
                Error(
                    code="NOTHING_TO_DOWNLOAD",
                    message="None of the selected results could be downloaded",
                )
            )

        stamp = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        return Return.ok(
            BulkDownloadResultDTO(
                filename=f"tryon-results-{stamp}.zip",
                content=buffer.getvalue(),
                included=included,
                skipped=skipped,
            )
        )

    async def _entry_name(self, job) -> str:
        filename, model_name = "image", "model"
        if job.product_image_id:
            product = await self.catalog_repo.get_product_image(job.product_image_id, job.user_id)
            if product:
                filename = _safe_name(product.original_filename)
        if job.model_photo_id:
            model = await self.catalog_repo.get_model_photo(job.model_photo_id)
            if model:
                model_name = _safe_name(model.name)
        return f"tryon-{filename}-{model_name}"
