"""DeleteResult Use Case

Removes a finished result: the stored artifact first, then the job row.
"""

import logging
from libs.result import Result, Return, Error
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.app.services.object_storage import ObjectStorage, StorageError
from src.app.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class DeleteResult:
    """
    Use Case: Delete a result

    Business Rules:
    1. Only the owner can delete (other users get JOB_NOT_FOUND)
    2. Jobs still in flight cannot be deleted
    3. A failing object store delete aborts; the row is kept
    """

    def __init__(
        self,
        uow: UnitOfWork,
        job_repo: GenerationJobRepository,
        storage: ObjectStorage,
        results_bucket: str,
    ):
        self.uow = uow
        self.job_repo = job_repo
        self.storage = storage
        self.results_bucket = results_bucket

    async def execute(self, job_id: str, user_id: str) -> Result[None]:
        job = await self.job_repo.get(job_id, user_id)
        if not job:
            return Return.err(Error(code="JOB_NOT_FOUND", message=f"Job {job_id} not found"))

        if not job.status.is_terminal:
            return Return.err(
                Error(
                    code="JOB_IN_PROGRESS",
                    message="A result cannot be deleted while it is being generated",
                )
            )

        try:
            if job.result_path:
                await self.storage.delete(self.results_bucket, job.result_path)

            await self.job_repo.delete(job_id, user_id)
            await self.uow.commit()
        except StorageError as e:
            return Return.err(
                Error(code="DELETE_FAILED", message="Failed to delete stored result", reason=str(e))
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(code="DELETE_FAILED", message="Failed to delete result", reason=str(e))
            )

        logger.info(f"Deleted job {job_id} for user {user_id}")
        return Return.ok()
