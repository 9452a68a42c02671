"""Generation Job Repository Interface

The job store: durable record of a generation job's lifecycle.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from src.domain.generation_job import GenerationJob, FailureCode


class GenerationJobRepository(ABC):
    """
    Repository interface for GenerationJob persistence

    State machine: pending -> processing -> completed | failed.
    Every transition is a conditional update that only matches non-terminal
    rows; a transition on a terminal job raises InvalidJobTransition and
    leaves the row untouched.
    """

    @abstractmethod
    async def create(self, job: GenerationJob) -> GenerationJob:
        """Persist a new job in PENDING"""
        pass

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Optional[GenerationJob]:
        """Unscoped lookup, for internal use by the orchestrator and workers"""
        pass

    @abstractmethod
    async def get(self, job_id: str, user_id: str) -> Optional[GenerationJob]:
        """
        User-scoped lookup

        A job owned by another user is indistinguishable from a missing one.
        """
        pass

    @abstractmethod
    async def mark_processing(
        self, job_id: str, external_request_id: Optional[str] = None
    ) -> GenerationJob:
        """
        Move a job to PROCESSING and stamp processing_started_at

        Raises:
            InvalidJobTransition: If the job is already terminal
        """
        pass

    @abstractmethod
    async def complete(
        self,
        job_id: str,
        result_url: str,
        result_path: Optional[str],
        metadata: Dict[str, Any],
    ) -> GenerationJob:
        """
        Move a job to COMPLETED with its stored result

        Raises:
            InvalidJobTransition: If the job is already terminal
        """
        pass

    @abstractmethod
    async def fail(
        self, job_id: str, error_code: FailureCode, error_message: str
    ) -> GenerationJob:
        """
        Move a job to FAILED with its reason

        Raises:
            InvalidJobTransition: If the job is already terminal
        """
        pass

    @abstractmethod
    async def list_completed_for_user(
        self,
        user_id: str,
        search: Optional[str] = None,
        gender: Optional[str] = None,
    ) -> List[GenerationJob]:
        """
        Completed image jobs (tryon and regeneration) for a user, newest first

        Args:
            search: Case-insensitive substring matched against the product
                    image filename or the model photo name
            gender: Exact model photo gender
        """
        pass

    @abstractmethod
    async def get_latest_videos_for_parents(
        self, user_id: str, parent_job_ids: List[str]
    ) -> Dict[str, GenerationJob]:
        """Most recent video job per parent image job"""
        pass

    @abstractmethod
    async def touch(self, job_id: str) -> bool:
        """
        Record that a live poll loop still owns this job

        Bumps updated_at on a PENDING/PROCESSING job; returns False for a
        terminal or missing one.
        """
        pass

    @abstractmethod
    async def list_active_idle_since(self, cutoff: datetime) -> List[GenerationJob]:
        """PENDING/PROCESSING jobs not updated since cutoff (stuck job candidates)"""
        pass

    @abstractmethod
    async def delete(self, job_id: str, user_id: str) -> bool:
        """Remove a user's job row; returns False if nothing was deleted"""
        pass
