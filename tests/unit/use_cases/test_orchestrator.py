"""Unit tests for GenerationOrchestrator

Tests cover:
- Success consumes credits exactly once
- Every failure after admission refunds exactly once
- Admission refusal creates no job
- Poll budget, transient errors and cancellation
- Replayed requests are charged once
"""

import asyncio
import pytest

from src.app.services.inference_gateway import (
    ArtifactMissing,
    PollStatus,
    TransientPollError,
)
from src.app.use_cases.generation.dtos import GenerationRequest
from src.app.use_cases.generation.orchestrator import GenerationOrchestrator
from src.domain.credit_transaction import TransactionType
from src.domain.generation_job import FailureCode, JobKind
from tests.fixtures.fakes import (
    FakeUnitOfWork,
    InMemoryJobRepository,
    InMemoryTransactionRepository,
    InMemoryWalletRepository,
    MemoryStorage,
    RecordingPublisher,
    RejectingGateway,
    ScriptedGateway,
)


@pytest.fixture
def wallets():
    return InMemoryWalletRepository()


@pytest.fixture
def transactions():
    return InMemoryTransactionRepository()


@pytest.fixture
def jobs():
    return InMemoryJobRepository()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def make_orchestrator(wallets, transactions, jobs, storage, publisher):
    def _make(gateway, storage_override=None):
        return GenerationOrchestrator(
            uow=FakeUnitOfWork(),
            wallet_repo=wallets,
            transaction_repo=transactions,
            job_repo=jobs,
            gateway=gateway,
            storage=storage_override or storage,
            results_bucket="tryon-results",
            publisher=publisher,
            poll_interval_seconds=0,
        )
    return _make


def tryon_request(
    cost=10, max_poll_attempts=5, request_id="req-a", kind=JobKind.TRYON, user_id="user_1"
):
    return GenerationRequest(
        user_id=user_id,
        kind=kind,
        cost=cost,
        max_poll_attempts=max_poll_attempts,
        input_urls={"model_image": "https://cdn/model.png", "garment_image": "https://cdn/shirt.png"},
        description="Try-on: shirt.png on Ava",
        product_image_id="product_1",
        model_photo_id="model_1",
        params={"category": "tops"},
        request_id=request_id,
    )


@pytest.mark.asyncio
class TestGenerationSuccess:

    async def test_successful_tryon_consumes_credits(
        self, make_orchestrator, wallets, transactions, jobs, storage
    ):
        """
        Given: Wallet with 12 credits
        When: A 10 credit try-on completes
        Then: Balance is 2, one DEDUCT linked to the job, no REFUND, result stored
        """
        # Arrange
        wallets.seed("user_1", 12)
        gateway = ScriptedGateway([PollStatus.QUEUED, PollStatus.PROCESSING, PollStatus.COMPLETED])
        orchestrator = make_orchestrator(gateway)

        # Act
        result = await orchestrator.run_generation(tryon_request())

        # Assert
        assert result.is_ok()
        job = result.value
        assert job.status == "completed"
        assert job.result_url.startswith("https://storage.test/tryon-results/user_1/try-on-result-")
        assert job.result_url.endswith(".png")
        assert job.credits_used == 10
        assert wallets.wallets["user_1"].credits == 2

        deducts = transactions.of_type(TransactionType.DEDUCT)
        assert len(deducts) == 1
        assert deducts[0].amount == -10
        assert deducts[0].related_job_id == job.job_id
        assert transactions.of_type(TransactionType.REFUND) == []

        stored = jobs.jobs[job.job_id]
        assert stored.external_request_id == "req-1"
        assert stored.ai_provider == "fal-ai"
        assert stored.ai_model == "fal-ai/test-model"
        assert stored.job_metadata["params"]["seed"] == 1234
        assert stored.job_metadata["params"]["category"] == "tops"
        assert len(storage.objects) == 1

    async def test_video_result_is_stored_as_mp4(self, make_orchestrator, wallets, storage):
        wallets.seed("user_1", 60)
        orchestrator = make_orchestrator(
            ScriptedGateway([PollStatus.COMPLETED], result_url="https://fal.media/files/v.mp4")
        )

        result = await orchestrator.run_generation(tryon_request(cost=50, kind=JobKind.VIDEO))

        assert result.value.status == "completed"
        assert result.value.result_url.endswith(".mp4")
        assert "/video-" in next(iter(storage.objects))
        assert wallets.wallets["user_1"].credits == 10

    async def test_regeneration_can_spend_the_last_credits(self, make_orchestrator, wallets):
        """
        Given: Wallet with exactly 5 credits
        When: A 5 credit regeneration completes
        Then: Balance is 0
        """
        wallets.seed("user_1", 5)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.COMPLETED]))

        result = await orchestrator.run_generation(
            tryon_request(cost=5, kind=JobKind.REGENERATION)
        )

        assert result.value.status == "completed"
        assert result.value.kind == "regeneration"
        assert wallets.wallets["user_1"].credits == 0

    async def test_progress_is_published_until_terminal(self, make_orchestrator, wallets, publisher):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.PROCESSING, PollStatus.COMPLETED]))

        await orchestrator.run_generation(tryon_request())

        statuses = [u.status for u in publisher.updates]
        assert statuses[0] == "queued"
        assert "processing" in statuses
        assert publisher.updates[-1].status == "completed"
        assert publisher.updates[-1].terminal is True
        assert [u.terminal for u in publisher.updates].count(True) == 1


@pytest.mark.asyncio
class TestGenerationRefusal:

    async def test_insufficient_credits_creates_no_job(self, make_orchestrator, wallets, jobs, transactions):
        """
        Given: Wallet with 8 credits
        When: A 10 credit try-on is requested
        Then: INSUFFICIENT_CREDITS, no job, balance unchanged
        """
        # Arrange
        wallets.seed("user_1", 8)
        gateway = ScriptedGateway()
        orchestrator = make_orchestrator(gateway)

        # Act
        result = await orchestrator.start(tryon_request())

        # Assert
        assert result.is_err()
        assert result.error.code == "INSUFFICIENT_CREDITS"
        assert jobs.jobs == {}
        assert gateway.submissions == []
        assert wallets.wallets["user_1"].credits == 8
        assert transactions.of_type(TransactionType.DEDUCT) == []


@pytest.mark.asyncio
class TestGenerationFailure:

    async def test_provider_failure_refunds_once(self, make_orchestrator, wallets, transactions):
        """
        Given: Wallet with 12 credits
        When: The provider reports failure
        Then: Job FAILED with PROVIDER_FAILURE, balance back to 12, one REFUND
        """
        # Arrange
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.PROCESSING, PollStatus.FAILED]))

        # Act
        result = await orchestrator.run_generation(tryon_request())

        # Assert
        job = result.value
        assert job.status == "failed"
        assert job.error_code == "PROVIDER_FAILURE"
        assert job.result_url is None
        assert wallets.wallets["user_1"].credits == 12
        refunds = transactions.of_type(TransactionType.REFUND)
        assert len(refunds) == 1
        assert refunds[0].amount == 10
        assert refunds[0].related_job_id == job.job_id
        assert refunds[0].idempotency_key == f"refund:{job.job_id}"

    async def test_exhausted_poll_budget_times_out(self, make_orchestrator, wallets, transactions):
        wallets.seed("user_1", 12)
        gateway = ScriptedGateway([PollStatus.PROCESSING])
        orchestrator = make_orchestrator(gateway)

        result = await orchestrator.run_generation(tryon_request(max_poll_attempts=3))

        assert result.value.status == "failed"
        assert result.value.error_code == "TIMEOUT"
        assert result.value.error_message == "Request timed out"
        assert gateway.polls == 3
        assert wallets.wallets["user_1"].credits == 12
        assert len(transactions.of_type(TransactionType.REFUND)) == 1

    async def test_transient_errors_count_against_budget_but_do_not_fail(
        self, make_orchestrator, wallets
    ):
        """
        Given: Two failed status checks followed by completion
        When: The job is followed with a budget of 5
        Then: The job completes and credits stay consumed
        """
        wallets.seed("user_1", 12)
        gateway = ScriptedGateway([
            TransientPollError("503"),
            TransientPollError("connection reset"),
            PollStatus.COMPLETED,
        ])
        orchestrator = make_orchestrator(gateway)

        result = await orchestrator.run_generation(tryon_request(max_poll_attempts=5))

        assert result.value.status == "completed"
        assert gateway.polls == 3
        assert wallets.wallets["user_1"].credits == 2

    async def test_only_transient_errors_end_in_timeout(self, make_orchestrator, wallets):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([TransientPollError("down")]))

        result = await orchestrator.run_generation(tryon_request(max_poll_attempts=2))

        assert result.value.error_code == "TIMEOUT"
        assert wallets.wallets["user_1"].credits == 12

    async def test_rejected_submission_fails_and_refunds(
        self, make_orchestrator, wallets, transactions
    ):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(RejectingGateway("image too small"))

        result = await orchestrator.start(tryon_request())

        assert result.is_ok()
        started = result.value
        assert started.needs_polling is False
        assert started.job.status == "failed"
        assert started.job.error_code == "SUBMISSION_ERROR"
        assert "image too small" in started.job.error_message
        assert wallets.wallets["user_1"].credits == 12
        assert len(transactions.of_type(TransactionType.REFUND)) == 1

    async def test_unexpected_submission_error_fails_and_refunds(
        self, make_orchestrator, wallets, transactions
    ):
        """
        Given: The gateway blows up with an error it does not translate
        When: A try-on is started
        Then: The job fails with SUBMISSION_ERROR right away and the debit is refunded
        """
        # Arrange
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway(submit_error=ValueError("Expecting value")))

        # Act
        result = await orchestrator.start(tryon_request())

        # Assert
        started = result.value
        assert started.needs_polling is False
        assert started.job.status == "failed"
        assert started.job.error_code == "SUBMISSION_ERROR"
        assert wallets.wallets["user_1"].credits == 12
        assert len(transactions.of_type(TransactionType.REFUND)) == 1

    async def test_missing_artifact_fails_and_refunds(self, make_orchestrator, wallets):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(
            ScriptedGateway([PollStatus.COMPLETED], fetch_error=ArtifactMissing("no images"))
        )

        result = await orchestrator.run_generation(tryon_request())

        assert result.value.error_code == "ARTIFACT_MISSING"
        assert result.value.result_url is None
        assert wallets.wallets["user_1"].credits == 12

    async def test_storage_failure_fails_and_refunds(self, make_orchestrator, wallets):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(
            ScriptedGateway([PollStatus.COMPLETED]), storage_override=MemoryStorage(fail=True)
        )

        result = await orchestrator.run_generation(tryon_request())

        assert result.value.error_code == "STORAGE_FAILURE"
        assert wallets.wallets["user_1"].credits == 12

    async def test_cancellation_fails_and_refunds(self, make_orchestrator, wallets):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.PROCESSING]))
        cancel_event = asyncio.Event()
        cancel_event.set()

        result = await orchestrator.run_generation(tryon_request(), cancel_event)

        assert result.value.error_code == "CANCELLED"
        assert wallets.wallets["user_1"].credits == 12


@pytest.mark.asyncio
class TestPollHeartbeat:

    async def test_every_attempt_marks_the_job_alive(self, make_orchestrator, wallets, jobs):
        """
        Given: A provider that needs three status checks, one of them failing
        When: The job is followed
        Then: updated_at is bumped before every check
        """
        # Arrange
        wallets.seed("user_1", 12)
        gateway = ScriptedGateway(
            [PollStatus.PROCESSING, TransientPollError("502"), PollStatus.COMPLETED]
        )
        orchestrator = make_orchestrator(gateway)

        # Act
        result = await orchestrator.run_generation(tryon_request())

        # Assert
        assert result.value.status == "completed"
        assert jobs.touches == [result.value.job_id] * 3
        assert gateway.polls == 3

    async def test_job_finished_elsewhere_stops_polling(
        self, make_orchestrator, wallets, jobs, transactions
    ):
        """
        Given: A processing job that stuck job recovery already failed and refunded
        When: Its poll loop comes round again
        Then: The loop stops without polling or refunding a second time
        """
        # Arrange
        wallets.seed("user_1", 12)
        gateway = ScriptedGateway([PollStatus.PROCESSING])
        orchestrator = make_orchestrator(gateway)
        started = (await orchestrator.start(tryon_request())).value
        await orchestrator.abandon(started.job, FailureCode.TIMEOUT, "Request timed out")

        # Act
        final = await orchestrator.follow(started)

        # Assert
        assert final.status == "failed"
        assert final.error_code == "TIMEOUT"
        assert gateway.polls == 0
        assert len(transactions.of_type(TransactionType.REFUND)) == 1
        assert wallets.wallets["user_1"].credits == 12


@pytest.mark.asyncio
class TestGenerationIdempotency:

    async def test_terminal_job_is_never_refunded_again(
        self, make_orchestrator, wallets, transactions, jobs
    ):
        """
        Given: A job that already completed
        When: It is abandoned by stuck job recovery
        Then: It stays completed and no refund is written
        """
        # Arrange
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.COMPLETED]))
        completed = (await orchestrator.run_generation(tryon_request())).value

        # Act
        final = await orchestrator.abandon(completed, FailureCode.TIMEOUT, "late")

        # Assert
        assert final.status == "completed"
        assert transactions.of_type(TransactionType.REFUND) == []
        assert wallets.wallets["user_1"].credits == 2

    async def test_failed_job_abandoned_twice_refunds_once(
        self, make_orchestrator, wallets, transactions, jobs
    ):
        wallets.seed("user_1", 12)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.FAILED]))
        failed = (await orchestrator.run_generation(tryon_request())).value

        await orchestrator.abandon(failed, FailureCode.TIMEOUT, "late")

        assert jobs.jobs[failed.job_id].error_code == FailureCode.PROVIDER_FAILURE
        assert len(transactions.of_type(TransactionType.REFUND)) == 1
        assert wallets.wallets["user_1"].credits == 12

    async def test_replayed_request_id_is_charged_once(
        self, make_orchestrator, wallets, jobs
    ):
        """
        Given: A try-on already accepted for request_id req-a
        When: The client retries with the same request_id
        Then: The existing job is returned and nothing is debited or submitted
        """
        # Arrange
        wallets.seed("user_1", 30)
        gateway = ScriptedGateway([PollStatus.PROCESSING])
        orchestrator = make_orchestrator(gateway)
        first = (await orchestrator.start(tryon_request(request_id="req-a"))).value

        # Act
        second = (await orchestrator.start(tryon_request(request_id="req-a"))).value

        # Assert
        assert second.job.job_id == first.job.job_id
        assert second.needs_polling is False
        assert len(jobs.jobs) == 1
        assert len(gateway.submissions) == 1
        assert wallets.wallets["user_1"].credits == 20

    async def test_same_request_id_from_two_users_starts_two_jobs(
        self, make_orchestrator, wallets, jobs
    ):
        """
        Given: user_a already started a try-on with request_id shared-1
        When: user_b starts one with the same request_id
        Then: user_b gets and pays for a job of their own
        """
        # Arrange
        wallets.seed("user_a", 30)
        wallets.seed("user_b", 30)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.PROCESSING]))
        first = (await orchestrator.start(tryon_request(request_id="shared-1", user_id="user_a"))).value

        # Act
        second = (await orchestrator.start(tryon_request(request_id="shared-1", user_id="user_b"))).value

        # Assert
        assert second.job.job_id != first.job.job_id
        assert second.job.user_id == "user_b"
        assert second.needs_polling is True
        assert len(jobs.jobs) == 2
        assert wallets.wallets["user_a"].credits == 20
        assert wallets.wallets["user_b"].credits == 20

    async def test_request_id_reused_for_another_kind_is_refused(self, make_orchestrator, wallets, jobs):
        wallets.seed("user_1", 30)
        orchestrator = make_orchestrator(ScriptedGateway([PollStatus.PROCESSING]))
        await orchestrator.start(tryon_request(request_id="req-a"))

        result = await orchestrator.start(tryon_request(request_id="req-a", kind=JobKind.VIDEO))

        assert result.is_err()
        assert result.error.code == "REQUEST_ID_CONFLICT"
        assert len(jobs.jobs) == 1
        assert wallets.wallets["user_1"].credits == 20
