"""RecoverStuckJobs Use Case

A job whose poll loop died with its process (deploy, crash) would stay
PENDING/PROCESSING forever with the user's credits debited. A live poll loop
bumps updated_at on every attempt, so a job whose last update is older than
its poll budget plus a grace period has lost its loop; it is failed as timed
out and refunded.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List
from pydantic import BaseModel
from libs.result import Result, Return, Error
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.domain.generation_job import FailureCode, JobKind
from .dtos import JobDTO
from .orchestrator import GenerationOrchestrator, TIMEOUT_MESSAGE

logger = logging.getLogger(__name__)


class StuckJobRecoveryResultDTO(BaseModel):
    jobs_checked: int
    jobs_recovered: int
    recovered_job_ids: List[str]


class RecoverStuckJobs:
    """
    Use Case: Fail and refund jobs left behind by a dead poll loop

    Business Rules:
    1. A job is stuck once it has not been updated for max_attempts * interval + grace
    2. Stuck jobs fail with TIMEOUT, exactly like an exhausted poll loop
    3. A job that turns terminal concurrently is skipped, never refunded twice
    """

    def __init__(
        self,
        job_repo: GenerationJobRepository,
        orchestrator: GenerationOrchestrator,
        max_poll_attempts: Dict[JobKind, int],
        poll_interval_seconds: float = 5.0,
        grace_seconds: float = 300.0,
    ):
        self.job_repo = job_repo
        self.orchestrator = orchestrator
        self.max_poll_attempts = max_poll_attempts
        self.poll_interval_seconds = poll_interval_seconds
        self.grace_seconds = grace_seconds

    def _deadline(self, kind: JobKind) -> timedelta:
        attempts = self.max_poll_attempts.get(kind, max(self.max_poll_attempts.values()))
        return timedelta(seconds=attempts * self.poll_interval_seconds + self.grace_seconds)

    async def execute(self, now: datetime = None) -> Result[StuckJobRecoveryResultDTO]:
        now = now or datetime.utcnow()
        try:
            shortest = min(self._deadline(kind) for kind in JobKind)
            candidates = [
                JobDTO.from_entity(job)
                for job in await self.job_repo.list_active_idle_since(now - shortest)
            ]

            recovered: List[str] = []
            for job in candidates:
                if job.updated_at >= now - self._deadline(JobKind(job.kind)):
                    continue
                logger.warning(f"Recovering stuck job {job.job_id} ({job.kind}, {job.status})")
                final = await self.orchestrator.abandon(job, FailureCode.TIMEOUT, TIMEOUT_MESSAGE)
                if final.error_code == FailureCode.TIMEOUT.value:
                    recovered.append(job.job_id)

            return Return.ok(
                StuckJobRecoveryResultDTO(
                    jobs_checked=len(candidates),
                    jobs_recovered=len(recovered),
                    recovered_job_ids=recovered,
                )
            )
        except Exception as e:
            logger.error(f"Stuck job recovery failed: {e}")
            return Return.err(
                Error(
                    code="RECOVERY_FAILED",
                    message="Failed to recover stuck jobs",
                    reason=str(e),
                )
            )
