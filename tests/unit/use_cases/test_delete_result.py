"""Unit tests for DeleteResult use case"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.app.services.object_storage import StorageError
from src.app.use_cases.gallery.delete_result import DeleteResult
from src.domain.generation_job import GenerationJob, JobKind, JobStatus


def make_job(status=JobStatus.COMPLETED):
    return GenerationJob(
        id="job_1",
        user_id="user_1",
        kind=JobKind.TRYON,
        status=status,
        result_url="https://storage.test/r.png" if status == JobStatus.COMPLETED else None,
        result_path="user_1/r.png" if status == JobStatus.COMPLETED else None,
        credits_used=10,
    )


@pytest.fixture
def mock_job_repo():
    repo = MagicMock()
    repo.get = AsyncMock(return_value=make_job())
    repo.delete = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.delete = AsyncMock()
    return storage


@pytest.mark.asyncio
class TestDeleteResult:

    async def test_deletes_artifact_then_row(self, mock_uow, mock_job_repo, mock_storage):
        result = await DeleteResult(mock_uow, mock_job_repo, mock_storage, "tryon-results").execute(
            "job_1", "user_1"
        )

        assert result.is_ok()
        mock_storage.delete.assert_called_once_with("tryon-results", "user_1/r.png")
        mock_job_repo.delete.assert_called_once_with("job_1", "user_1")
        mock_uow.commit.assert_called_once()

    async def test_failed_job_without_artifact(self, mock_uow, mock_job_repo, mock_storage):
        mock_job_repo.get = AsyncMock(return_value=make_job(JobStatus.FAILED))

        result = await DeleteResult(mock_uow, mock_job_repo, mock_storage, "tryon-results").execute(
            "job_1", "user_1"
        )

        assert result.is_ok()
        mock_storage.delete.assert_not_called()
        mock_job_repo.delete.assert_called_once()

    async def test_in_flight_job_cannot_be_deleted(self, mock_uow, mock_job_repo, mock_storage):
        mock_job_repo.get = AsyncMock(return_value=make_job(JobStatus.PROCESSING))

        result = await DeleteResult(mock_uow, mock_job_repo, mock_storage, "tryon-results").execute(
            "job_1", "user_1"
        )

        assert result.error.code == "JOB_IN_PROGRESS"
        mock_job_repo.delete.assert_not_called()

    async def test_storage_failure_keeps_row(self, mock_uow, mock_job_repo, mock_storage):
        mock_storage.delete = AsyncMock(side_effect=StorageError("503"))

        result = await DeleteResult(mock_uow, mock_job_repo, mock_storage, "tryon-results").execute(
            "job_1", "user_1"
        )

        assert result.error.code == "DELETE_FAILED"
        mock_job_repo.delete.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_unknown_job(self, mock_uow, mock_job_repo, mock_storage):
        mock_job_repo.get = AsyncMock(return_value=None)

        result = await DeleteResult(mock_uow, mock_job_repo, mock_storage, "tryon-results").execute(
            "job_x", "user_1"
        )

        assert result.error.code == "JOB_NOT_FOUND"
