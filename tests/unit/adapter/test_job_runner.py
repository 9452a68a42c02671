"""Unit tests for ProgressBroker and JobRunner"""

import asyncio
import pytest
from datetime import datetime
from unittest.mock import MagicMock

from src.adapter.services.job_runner import JobRunner, ProgressBroker
from src.app.services.inference_gateway import ExternalHandle
from src.app.services.progress import ProgressUpdate
from src.app.use_cases.generation.dtos import GenerationRequest, JobDTO, StartedGeneration
from src.domain.generation_job import JobKind


def update(status, progress, terminal=False, job_id="job_1"):
    return ProgressUpdate(job_id=job_id, status=status, progress_percent=progress, terminal=terminal)


def started(job_id="job_1", with_handle=True):
    job = JobDTO(
        job_id=job_id,
        user_id="user_1",
        kind="tryon",
        status="processing",
        credits_used=10,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    request = GenerationRequest(
        user_id="user_1",
        kind=JobKind.TRYON,
        cost=10,
        max_poll_attempts=3,
        input_urls={},
        description="Try-on",
    )
    handle = ExternalHandle(request_id="req-1", job_kind=JobKind.TRYON, model_id="m") if with_handle else None
    return StartedGeneration(job=job, request=request, handle=handle)


class FakeSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


class WaitingOrchestrator:
    """follow() returns once the cancel event is set"""

    def __init__(self):
        self.cancelled = []

    async def follow(self, started, cancel_event):
        await cancel_event.wait()
        self.cancelled.append(started.job.job_id)
        return started.job.model_copy(update={"status": "failed"})


@pytest.mark.asyncio
class TestProgressBroker:

    async def test_stream_ends_after_terminal_update(self):
        """
        Given: A subscriber streaming a job
        When: Progress and then a terminal update are published
        Then: The stream yields both and stops
        """
        # Arrange
        broker = ProgressBroker()
        received = []

        async def consume():
            async for item in broker.stream("job_1", heartbeat_seconds=1):
                received.append(item)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)

        # Act
        await broker.publish(update("processing", 50))
        await broker.publish(update("completed", 100, terminal=True))
        await asyncio.wait_for(consumer, timeout=1)

        # Assert
        assert [u.status for u in received] == ["processing", "completed"]

    async def test_late_subscriber_gets_latest_progress(self):
        broker = ProgressBroker()
        await broker.publish(update("queued", 0))
        await broker.publish(update("processing", 50))

        queue = broker.subscribe("job_1")

        assert queue.get_nowait().progress_percent == 50

    async def test_no_latest_after_terminal(self):
        broker = ProgressBroker()
        await broker.publish(update("processing", 50))
        await broker.publish(update("failed", 100, terminal=True))

        assert broker.subscribe("job_1").empty()

    async def test_heartbeat_when_idle(self):
        broker = ProgressBroker()
        stream = broker.stream("job_1", heartbeat_seconds=0.01)

        assert await stream.__anext__() is None
        await stream.aclose()

    async def test_slow_subscriber_drops_oldest(self):
        broker = ProgressBroker(queue_size=2)
        queue = broker.subscribe("job_1")

        for progress in (10, 20, 30):
            await broker.publish(update("processing", progress))

        assert [queue.get_nowait().progress_percent for _ in range(2)] == [20, 30]


@pytest.mark.asyncio
class TestJobRunner:

    async def test_launch_runs_follow_in_background(self):
        orchestrator = MagicMock()
        finished = asyncio.Event()

        async def follow(started_generation, cancel_event):
            finished.set()
            return started_generation.job

        orchestrator.follow = follow
        runner = JobRunner(FakeSession, lambda session: orchestrator)

        assert runner.launch(started()) is True
        await asyncio.wait_for(finished.wait(), timeout=1)
        await asyncio.sleep(0.05)

        assert runner.active_job_ids == []

    async def test_jobs_without_handle_are_not_launched(self):
        runner = JobRunner(FakeSession, lambda session: WaitingOrchestrator())

        assert runner.launch(started(with_handle=False)) is False
        assert runner.active_job_ids == []

    async def test_same_job_is_launched_once(self):
        runner = JobRunner(FakeSession, lambda session: WaitingOrchestrator())

        assert runner.launch(started()) is True
        assert runner.launch(started()) is False

        await runner.shutdown()

    async def test_shutdown_cancels_running_jobs(self):
        """
        Given: Two jobs being polled
        When: The runner shuts down
        Then: Both cancel events fire, both loops end, no new jobs are accepted
        """
        # Arrange
        orchestrator = WaitingOrchestrator()
        runner = JobRunner(FakeSession, lambda session: orchestrator, shutdown_timeout=1)
        runner.launch(started("job_1"))
        runner.launch(started("job_2"))
        await asyncio.sleep(0)

        # Act
        await runner.shutdown()

        # Assert
        assert sorted(orchestrator.cancelled) == ["job_1", "job_2"]
        assert runner.launch(started("job_3")) is False
