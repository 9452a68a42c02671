"""SQLAlchemy implementation of GenerationJobRepository

Every status transition is a conditional UPDATE restricted to non-terminal
rows. A racing second completion or failure matches zero rows and is
rejected with InvalidJobTransition instead of overwriting the first outcome.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.domain.catalog import ModelPhoto, ProductImage
from src.domain.errors import InvalidJobTransition
from src.domain.generation_job import (
    ACTIVE_STATUSES,
    FailureCode,
    GenerationJob,
    JobKind,
    JobStatus,
)


class SqlAlchemyGenerationJobRepository(GenerationJobRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, job: GenerationJob) -> GenerationJob:
        self.session.add(job)
        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def get_by_id(self, job_id: str) -> Optional[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(GenerationJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, job_id: str, user_id: str) -> Optional[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(GenerationJob.id == job_id, GenerationJob.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _transition(
        self, job_id: str, target: JobStatus, values: Dict[Any, Any]
    ) -> GenerationJob:
        """
        Apply values to a non-terminal job

        Raises:
            InvalidJobTransition: If the job is terminal or does not exist
        """
        values[GenerationJob.status] = target
        values[GenerationJob.updated_at] = datetime.utcnow()
        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status.in_(ACTIVE_STATUSES),
            )
            .values(values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise InvalidJobTransition(job_id, target.value)

        job = await self.get_by_id(job_id)
        return job

    async def mark_processing(
        self, job_id: str, external_request_id: Optional[str] = None
    ) -> GenerationJob:
        values: Dict[Any, Any] = {GenerationJob.processing_started_at: datetime.utcnow()}
        if external_request_id is not None:
            values[GenerationJob.external_request_id] = external_request_id
        return await self._transition(job_id, JobStatus.PROCESSING, values)

    async def complete(
        self,
        job_id: str,
        result_url: str,
        result_path: Optional[str],
        metadata: Dict[str, Any],
    ) -> GenerationJob:
        values: Dict[Any, Any] = {
            GenerationJob.result_url: result_url,
            GenerationJob.result_path: result_path,
            GenerationJob.job_metadata: metadata,
            GenerationJob.processing_completed_at: datetime.utcnow(),
            GenerationJob.error_code: None,
            GenerationJob.error_message: None,
        }
        if metadata.get("ai_provider"):
            values[GenerationJob.ai_provider] = metadata["ai_provider"]
        if metadata.get("ai_model"):
            values[GenerationJob.ai_model] = metadata["ai_model"]
        if metadata.get("processing_time_seconds") is not None:
            values[GenerationJob.processing_time_seconds] = int(metadata["processing_time_seconds"])
        return await self._transition(job_id, JobStatus.COMPLETED, values)

    async def fail(
        self, job_id: str, error_code: FailureCode, error_message: str
    ) -> GenerationJob:
        values: Dict[Any, Any] = {
            GenerationJob.error_code: error_code,
            GenerationJob.error_message: error_message,
            GenerationJob.processing_completed_at: datetime.utcnow(),
        }
        return await self._transition(job_id, JobStatus.FAILED, values)

    async def list_completed_for_user(
        self,
        user_id: str,
        search: Optional[str] = None,
        gender: Optional[str] = None,
    ) -> List[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .outerjoin(ProductImage, ProductImage.id == GenerationJob.product_image_id)
            .outerjoin(ModelPhoto, ModelPhoto.id == GenerationJob.model_photo_id)
            .where(
                GenerationJob.user_id == user_id,
                GenerationJob.status == JobStatus.COMPLETED,
                GenerationJob.kind.in_([JobKind.TRYON, JobKind.REGENERATION]),
            )
        )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    ProductImage.original_filename.ilike(pattern),
                    ModelPhoto.name.ilike(pattern),
                )
            )
        if gender:
            stmt = stmt.where(ModelPhoto.gender == gender)

        stmt = stmt.order_by(GenerationJob.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_latest_videos_for_parents(
        self, user_id: str, parent_job_ids: List[str]
    ) -> Dict[str, GenerationJob]:
        if not parent_job_ids:
            return {}

        stmt = (
            select(GenerationJob)
            .where(
                GenerationJob.user_id == user_id,
                GenerationJob.kind == JobKind.VIDEO,
                GenerationJob.parent_job_id.in_(parent_job_ids),
            )
            .order_by(GenerationJob.created_at.desc())
        )
        result = await self.session.execute(stmt)

        latest: Dict[str, GenerationJob] = {}
        for video in result.scalars().all():
            latest.setdefault(video.parent_job_id, video)
        return latest

    async def touch(self, job_id: str) -> bool:
        stmt = (
            update(GenerationJob)
            .where(
                GenerationJob.id == job_id,
                GenerationJob.status.in_(ACTIVE_STATUSES),
            )
            .values({GenerationJob.updated_at: datetime.utcnow()})
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_active_idle_since(self, cutoff: datetime) -> List[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(
                GenerationJob.status.in_(ACTIVE_STATUSES),
                GenerationJob.updated_at < cutoff,
            )
            .order_by(GenerationJob.updated_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, job_id: str, user_id: str) -> bool:
        stmt = (
            delete(GenerationJob)
            .where(GenerationJob.id == job_id, GenerationJob.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
