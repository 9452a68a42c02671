"""Generation Orchestrator

Drives one generation request from admission to a terminal job state while
keeping the ledger consistent with the outcome:

    debit -> create job -> link debit -> submit -> mark processing
          -> poll ... -> complete | fail + refund

The synchronous part (start) runs inside the HTTP request. The poll loop
(follow) runs in the background with its own session.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from libs.result import Result, Return, Error
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.app.repositories.generation_job_repository import GenerationJobRepository
from src.app.repositories.wallet_repository import WalletRepository
from src.app.services.inference_gateway import (
    ArtifactMissing,
    ArtifactNotReady,
    InferenceGateway,
    PollStatus,
    SubmissionError,
    TransientPollError,
)
from src.app.services.object_storage import ObjectStorage, StorageError
from src.app.services.progress import NullProgressPublisher, ProgressPublisher, ProgressUpdate
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.credits.debit_credits import DebitCredits
from src.app.use_cases.credits.dtos import DebitCommandDTO, RefundCommandDTO
from src.app.use_cases.credits.refund_credits import RefundCredits
from src.domain.base import generate_uuid
from src.domain.errors import InvalidJobTransition
from src.domain.generation_job import FailureCode, GenerationJob, JobKind
from .dtos import GenerationRequest, JobDTO, StartedGeneration
from .saga import CompensationError, Saga

logger = logging.getLogger(__name__)

FailureReason = Tuple[FailureCode, str]

TIMEOUT_MESSAGE = "Request timed out"


class GenerationOrchestrator:
    """
    Use Case: Run a generation

    Business Rules:
    1. Admission: the debit happens before anything else; no credits, no job
    2. Ordering: debit -> job creation -> submission -> processing
    3. Success consumes the credits; every failure after admission refunds them
    4. A refund only follows a successful transition to FAILED, so a job that
       completed in a racing poll is never refunded
    5. Transport errors while polling count against the attempt budget but
       never fail the job on their own
    6. Every poll attempt bumps the job's updated_at; stuck job recovery
       only takes jobs that stopped getting those updates
    """

    def __init__(
        self,
        uow: UnitOfWork,
        wallet_repo: WalletRepository,
        transaction_repo: CreditTransactionRepository,
        job_repo: GenerationJobRepository,
        gateway: InferenceGateway,
        storage: ObjectStorage,
        results_bucket: str,
        publisher: Optional[ProgressPublisher] = None,
        poll_interval_seconds: float = 5.0,
        starting_credits: int = 100,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.job_repo = job_repo
        self.gateway = gateway
        self.storage = storage
        self.results_bucket = results_bucket
        self.publisher = publisher or NullProgressPublisher()
        self.poll_interval_seconds = poll_interval_seconds
        self.debit = DebitCredits(uow, wallet_repo, transaction_repo, starting_credits)
        self.refund = RefundCredits(uow, wallet_repo, transaction_repo)

    async def run_generation(
        self, request: GenerationRequest, cancel_event: Optional[asyncio.Event] = None
    ) -> Result[JobDTO]:
        """Start and follow a generation to its terminal state"""
        started = await self.start(request)
        if started.is_err():
            return Return.err(started.error)
        if not started.value.needs_polling:
            return Return.ok(started.value.job)
        return Return.ok(await self.follow(started.value, cancel_event))

    async def start(self, request: GenerationRequest) -> Result[StartedGeneration]:
        """
        Admission, job creation and submission

        Returns Err only when no job was created. Once a job exists the
        outcome is reported on the job itself.
        """
        job_id = generate_uuid()
        saga = Saga(f"{request.kind.value}:{job_id}")

        # Step 1: Admission
        debit_result = await self.debit.execute(
            DebitCommandDTO(
                user_id=request.user_id,
                amount=request.cost,
                idempotency_key=f"deduct:{request.user_id}:{request.request_id}",
                description=request.description,
            )
        )
        if debit_result.is_err():
            logger.info(
                f"Generation refused for user {request.user_id}: {debit_result.error.code}"
            )
            return Return.err(debit_result.error)
        debit = debit_result.value

        # Replay of an accepted request: report the existing job
        if debit.related_job_id:
            existing = await self.job_repo.get(debit.related_job_id, request.user_id)
            if existing and existing.kind != request.kind:
                return Return.err(
                    Error(
                        code="REQUEST_ID_CONFLICT",
                        message="request_id already used for a different generation",
                        reason=f"job {existing.id} is a {existing.kind.value} job",
                    )
                )
            if existing:
                return Return.ok(StartedGeneration(job=JobDTO.from_entity(existing), request=request))

        saga.record("debit", self._refund_compensation(request.user_id, request.cost, job_id))

        try:
            # Step 2: Job creation
            await saga.step(
                "create_job",
                lambda: self._create_job(job_id, request),
                self._fail_compensation(job_id),
            )
            # Step 3: Link the debit to the job for the audit trail
            await saga.step("link_debit", lambda: self._link_debit(debit.transaction_id, job_id))
        except Exception as e:
            logger.error(f"Could not create job for user {request.user_id}: {e}")
            await self.uow.rollback()
            await self._compensate(saga, job_id, (FailureCode.STORAGE_FAILURE, "Could not create job"))
            return Return.err(
                Error(
                    code="GENERATION_FAILED",
                    message="Failed to start generation",
                    reason=str(e),
                )
            )

        logger.info(f"Job {job_id} created ({request.kind.value}, {request.cost} credits)")

        # Step 4: Submission
        try:
            handle = await self.gateway.submit(request.kind, request.input_urls, request.params)
        except SubmissionError as e:
            logger.warning(f"Job {job_id} rejected by provider: {e}")
            job = await self._abort(saga, job_id, FailureCode.SUBMISSION_ERROR, f"Submission failed: {e}")
            return Return.ok(StartedGeneration(job=job, request=request))
        except Exception as e:
            logger.exception(f"Job {job_id} submission failed unexpectedly: {e}")
            job = await self._abort(saga, job_id, FailureCode.SUBMISSION_ERROR, "Submission failed")
            return Return.ok(StartedGeneration(job=job, request=request))

        # Step 5: Mark processing
        try:
            job = await self.job_repo.mark_processing(job_id, handle.request_id)
            await self.uow.commit()
        except InvalidJobTransition:
            await self.uow.rollback()
            job = await self.job_repo.get_by_id(job_id)
            return Return.ok(StartedGeneration(job=JobDTO.from_entity(job), request=request))

        logger.info(f"Job {job_id} submitted as {handle.request_id}")
        await self._publish(job_id, "queued", 0, "Submitted")
        return Return.ok(StartedGeneration(job=JobDTO.from_entity(job), request=request, handle=handle))

    async def follow(
        self, started: StartedGeneration, cancel_event: Optional[asyncio.Event] = None
    ) -> JobDTO:
        """
        Poll the provider until a terminal status, timeout or cancellation

        Every attempt, successful or not, counts against the budget. The loop
        stops without touching the ledger if the job turns terminal elsewhere.
        """
        request, handle, job_id = started.request, started.handle, started.job.job_id
        saga = self.resume_saga(job_id, request.user_id, request.cost)
        started_at = time.monotonic()
        progress = 0

        try:
            for attempt in range(1, request.max_poll_attempts + 1):
                if cancel_event is not None and cancel_event.is_set():
                    return await self._abort(saga, job_id, FailureCode.CANCELLED, "Generation cancelled")

                if not await self._heartbeat(job_id):
                    logger.info(f"Job {job_id} was finished elsewhere; polling stopped")
                    job = await self.job_repo.get_by_id(job_id)
                    return JobDTO.from_entity(job) if job else started.job

                try:
                    poll = await self.gateway.poll(handle)
                except TransientPollError as e:
                    logger.warning(
                        f"Job {job_id} status check failed "
                        f"({attempt}/{request.max_poll_attempts}): {e}"
                    )
                    await self._publish(job_id, "processing", progress, "Waiting for provider")
                    await self._wait(cancel_event)
                    continue

                progress = poll.progress
                logger.debug(f"Job {job_id} poll {attempt}: {poll.status.value} {poll.progress}%")
                await self._publish(job_id, poll.status.value, poll.progress, poll.message)

                if poll.status == PollStatus.COMPLETED:
                    return await self._finish(saga, started, time.monotonic() - started_at)
                if poll.status == PollStatus.FAILED:
                    return await self._abort(
                        saga, job_id, FailureCode.PROVIDER_FAILURE, poll.message or "Processing failed"
                    )

                await self._wait(cancel_event)

            logger.warning(f"Job {job_id} exhausted {request.max_poll_attempts} poll attempts")
            return await self._abort(saga, job_id, FailureCode.TIMEOUT, TIMEOUT_MESSAGE)

        except Exception as e:
            logger.exception(f"Job {job_id} failed unexpectedly: {e}")
            await self.uow.rollback()
            return await self._abort(saga, job_id, FailureCode.STORAGE_FAILURE, "Internal error")

    async def abandon(self, job: JobDTO, error_code: FailureCode, message: str) -> JobDTO:
        """
        Fail and refund a job whose poll loop is gone (e.g. after a crash)

        Takes a detached snapshot: a rollback inside the saga expires any
        rows the session has loaded.
        """
        saga = self.resume_saga(job.job_id, job.user_id, job.credits_used)
        return await self._abort(saga, job.job_id, error_code, message)

    def resume_saga(self, job_id: str, user_id: str, cost: int) -> Saga:
        """Saga for a job whose debit and creation steps already ran"""
        saga = Saga(f"job:{job_id}")
        saga.record("debit", self._refund_compensation(user_id, cost, job_id))
        saga.record("create_job", self._fail_compensation(job_id))
        return saga

    async def _finish(self, saga: Saga, started: StartedGeneration, elapsed: float) -> JobDTO:
        request, handle, job_id = started.request, started.handle, started.job.job_id

        try:
            artifact_url = await self.gateway.fetch_result(handle)
            data = await self.gateway.download(artifact_url)
        except (ArtifactNotReady, ArtifactMissing) as e:
            logger.warning(f"Job {job_id} reported success without a result: {e}")
            return await self._abort(saga, job_id, FailureCode.ARTIFACT_MISSING, "No result artifact returned")

        try:
            stored_url, stored_path = await self._store(request, data)
        except StorageError as e:
            logger.error(f"Job {job_id} result could not be stored: {e}")
            return await self._abort(saga, job_id, FailureCode.STORAGE_FAILURE, "Failed to store result")

        metadata: Dict[str, Any] = {
            "ai_provider": self.gateway.provider_name,
            "ai_model": handle.model_id,
            "external_request_id": handle.request_id,
            "provider_result_url": artifact_url,
            "params": dict(handle.params),
            "processing_time_seconds": int(elapsed),
        }

        try:
            job = await self.job_repo.complete(job_id, stored_url, stored_path, metadata)
            await self.uow.commit()
        except InvalidJobTransition:
            await self.uow.rollback()
            logger.warning(f"Job {job_id} was already terminal; result discarded")
            job = await self.job_repo.get_by_id(job_id)
            return JobDTO.from_entity(job)

        logger.info(f"Job {job_id} completed in {int(elapsed)}s")
        await self._publish(job_id, "completed", 100, "Completed", terminal=True)
        return JobDTO.from_entity(job)

    async def _store(self, request: GenerationRequest, data: bytes) -> Tuple[str, str]:
        stamp = int(datetime.utcnow().timestamp() * 1000)
        suffix = generate_uuid()[:8]
        if request.kind == JobKind.VIDEO:
            path = f"{request.user_id}/video-{stamp}-{suffix}.mp4"
            content_type = "video/mp4"
        else:
            path = f"{request.user_id}/try-on-result-{stamp}-{suffix}.png"
            content_type = "image/png"
        url = await self.storage.put(self.results_bucket, path, data, content_type)
        return url, path

    async def _abort(self, saga: Saga, job_id: str, error_code: FailureCode, message: str) -> JobDTO:
        """Fail the job, then refund it; reports the job as it ends up"""
        await self._compensate(saga, job_id, (error_code, message))
        job = await self.job_repo.get_by_id(job_id)
        if job is not None:
            await self._publish(
                job_id, job.status.value, 100, job.error_message or message, terminal=True
            )
        return JobDTO.from_entity(job)

    async def _compensate(self, saga: Saga, job_id: str, reason: FailureReason) -> None:
        try:
            await saga.compensate(reason)
        except InvalidJobTransition:
            await self.uow.rollback()
            logger.info(f"Job {job_id} already terminal; no refund issued")
        except CompensationError as e:
            logger.error(f"Job {job_id} failed but its refund did not go through: {e}")

    async def _create_job(self, job_id: str, request: GenerationRequest) -> GenerationJob:
        job = await self.job_repo.create(
            GenerationJob(
                id=job_id,
                user_id=request.user_id,
                kind=request.kind,
                product_image_id=request.product_image_id,
                model_photo_id=request.model_photo_id,
                parent_job_id=request.parent_job_id,
                source_url=request.source_url,
                credits_used=request.cost,
            )
        )
        await self.uow.commit()
        return job

    async def _link_debit(self, transaction_id: str, job_id: str) -> None:
        await self.transaction_repo.link_job(transaction_id, job_id)
        await self.uow.commit()

    def _fail_compensation(self, job_id: str):
        async def fail_job(_: Any, reason: FailureReason) -> None:
            error_code, message = reason
            await self.job_repo.fail(job_id, error_code, message)
            await self.uow.commit()
            logger.info(f"Job {job_id} failed: {error_code.value} {message}")
        return fail_job

    def _refund_compensation(self, user_id: str, cost: int, job_id: str):
        async def refund(_: Any, reason: FailureReason) -> None:
            _, message = reason
            result = await self.refund.execute(
                RefundCommandDTO(
                    user_id=user_id,
                    amount=cost,
                    related_job_id=job_id,
                    description=f"Refund: {message}",
                )
            )
            if result.is_err():
                raise CompensationError(result.error.message)
            logger.info(f"Refunded {cost} credits to user {user_id} for job {job_id}")
        return refund

    async def _heartbeat(self, job_id: str) -> bool:
        """Mark the job as owned by a live loop; False once it is terminal"""
        alive = await self.job_repo.touch(job_id)
        await self.uow.commit()
        return alive

    async def _wait(self, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await asyncio.sleep(self.poll_interval_seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.poll_interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def _publish(
        self, job_id: str, status: str, progress: int, message: str, terminal: bool = False
    ) -> None:
        try:
            await self.publisher.publish(
                ProgressUpdate(
                    job_id=job_id,
                    status=status,
                    progress_percent=progress,
                    message=message,
                    terminal=terminal,
                )
            )
        except Exception as e:
            logger.warning(f"Progress update for job {job_id} dropped: {e}")
