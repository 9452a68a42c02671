"""Get Job Use Case"""

from libs.result import Result, Return, Error
from src.app.repositories.generation_job_repository import GenerationJobRepository
from .dtos import JobDTO


class GetJob:
    """User-scoped job lookup for polling clients"""

    def __init__(self, job_repo: GenerationJobRepository):
        self.job_repo = job_repo

    async def execute(self, job_id: str, user_id: str) -> Result[JobDTO]:
        job = await self.job_repo.get(job_id, user_id)
        if not job:
            return Return.err(Error(code="JOB_NOT_FOUND", message=f"Job {job_id} not found"))
        return Return.ok(JobDTO.from_entity(job))
