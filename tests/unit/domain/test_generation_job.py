"""Unit tests for the GenerationJob domain entity"""

import pytest
from src.domain.generation_job import (
    ACTIVE_STATUSES,
    FailureCode,
    GenerationJob,
    JobKind,
    JobStatus,
)


class TestJobStatus:

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
    def test_terminal_statuses(self, status):
        assert status.is_terminal
        assert status not in ACTIVE_STATUSES

    @pytest.mark.parametrize("status", [JobStatus.PENDING, JobStatus.PROCESSING])
    def test_active_statuses(self, status):
        assert not status.is_terminal
        assert status in ACTIVE_STATUSES


class TestJobKind:

    def test_image_kinds(self):
        assert JobKind.TRYON.is_image
        assert JobKind.REGENERATION.is_image
        assert not JobKind.VIDEO.is_image


class TestGenerationJobCreation:

    def test_new_job_defaults(self):
        """Test a new job starts PENDING with no result or failure"""
        # Arrange & Act
        job = GenerationJob(user_id="user_1", kind=JobKind.TRYON, credits_used=10)

        # Assert
        assert job.status == JobStatus.PENDING
        assert job.result_url is None
        assert job.error_code is None
        assert job.job_metadata == {}
        assert job.processing_time_seconds == 0
        assert job.id

    def test_video_points_at_parent(self):
        job = GenerationJob(
            user_id="user_1",
            kind=JobKind.VIDEO,
            parent_job_id="job_1",
            source_url="https://storage.test/r.png",
            credits_used=50,
        )

        assert job.parent_job_id == "job_1"
        assert job.source_url == "https://storage.test/r.png"

    def test_failure_codes_are_stable(self):
        """Failure codes are part of the API response"""
        assert {code.value for code in FailureCode} == {
            "SUBMISSION_ERROR",
            "PROVIDER_FAILURE",
            "TIMEOUT",
            "ARTIFACT_MISSING",
            "STORAGE_FAILURE",
            "CANCELLED",
        }
