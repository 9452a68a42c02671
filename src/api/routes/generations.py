"""Generation API Routes

Accepting a generation debits the caller and submits the job; polling runs
in the background and is observable through GET /generations/{job_id} or
the /events stream.
"""

from typing import Optional
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import StreamingResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.api.auth import get_current_user_id
from src.api.error import ClientError
from src.api.schemas.generation_request import GenerationActionSchema, TryOnRequestSchema
from src.app.services.inference_gateway import InferenceGateway
from src.app.services.object_storage import ObjectStorage
from src.app.use_cases.generation.dtos import JobDTO, StartedGeneration, TryOnRequestDTO
from src.app.use_cases.generation.get_job import GetJob
from src.app.use_cases.generation.request_regeneration import RequestRegeneration
from src.app.use_cases.generation.request_tryon import RequestTryOn
from src.app.use_cases.generation.request_video import RequestVideo
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.repositories.generation_job_repository import SqlAlchemyGenerationJobRepository
from src.adapter.services.job_runner import JobRunner, ProgressBroker
from src.depends import (
    build_orchestrator,
    get_gateway,
    get_job_runner,
    get_progress_broker,
    get_session,
    get_storage,
)
from libs.result import Result

router = APIRouter(prefix="/generations", tags=["Generations"])

STATUS_BY_CODE = {
    "INSUFFICIENT_CREDITS": status.HTTP_402_PAYMENT_REQUIRED,
    "JOB_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INPUT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "JOB_NOT_REGENERABLE": status.HTTP_409_CONFLICT,
    "JOB_NOT_VIDEO_SOURCE": status.HTTP_409_CONFLICT,
    "REQUEST_ID_CONFLICT": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_CONFLICT": status.HTTP_409_CONFLICT,
}

ACCEPT_RESPONSES = {
    402: {
        "description": "Insufficient credits",
        "content": {
            "application/json": {
                "example": {
                    "error": {
                        "code": "INSUFFICIENT_CREDITS",
                        "message": "Insufficient credits. Required: 10, Available: 8",
                    }
                }
            }
        },
    },
    404: {"description": "Job or input not found"},
}


def _accept(result: Result[StartedGeneration], runner: JobRunner) -> JobDTO:
    if result.is_err():
        raise ClientError(
            result.error,
            status_code=STATUS_BY_CODE.get(result.error.code, status.HTTP_400_BAD_REQUEST),
        )
    runner.launch(result.value)
    return result.value.job


@router.post(
    "/tryon",
    response_model=JobDTO,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ACCEPT_RESPONSES,
)
async def request_tryon(
    request: TryOnRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: InferenceGateway = Depends(get_gateway),
    storage: ObjectStorage = Depends(get_storage),
    broker: ProgressBroker = Depends(get_progress_broker),
    runner: JobRunner = Depends(get_job_runner),
):
    """
    Start a virtual try-on.

    Debits the try-on cost and submits the job. A job whose submission was
    rejected is returned as `failed` with its credits already refunded.

    **Returns:**
    - 202: Job accepted (status `processing`, or `failed` if rejected)
    - 402: Insufficient credits, no job created
    - 404: Product image or model photo not found
    """
    command = TryOnRequestDTO(
        user_id=user_id,
        product_image_id=request.product_image_id,
        model_photo_id=request.model_photo_id,
        category=request.category,
    )
    if request.request_id:
        command.request_id = request.request_id

    use_case = RequestTryOn(
        build_orchestrator(session, gateway, storage, broker),
        SqlAlchemyCatalogRepository(session),
        cost=ApplicationConfig.TRYON_COST,
        max_poll_attempts=ApplicationConfig.TRYON_MAX_POLL_ATTEMPTS,
    )
    return _accept(await use_case.execute(command), runner)


@router.post(
    "/{job_id}/regenerate",
    response_model=JobDTO,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ACCEPT_RESPONSES,
)
async def request_regeneration(
    job_id: str,
    request: Optional[GenerationActionSchema] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: InferenceGateway = Depends(get_gateway),
    storage: ObjectStorage = Depends(get_storage),
    broker: ProgressBroker = Depends(get_progress_broker),
    runner: JobRunner = Depends(get_job_runner),
):
    """
    Generate a new variation of a completed try-on.

    Creates a new job with the same inputs; the original is left untouched.
    """
    use_case = RequestRegeneration(
        build_orchestrator(session, gateway, storage, broker),
        SqlAlchemyGenerationJobRepository(session),
        SqlAlchemyCatalogRepository(session),
        cost=ApplicationConfig.REGENERATION_COST,
        max_poll_attempts=ApplicationConfig.TRYON_MAX_POLL_ATTEMPTS,
    )
    request_id = request.request_id if request else None
    return _accept(await use_case.execute(user_id, job_id, request_id), runner)


@router.post(
    "/{job_id}/video",
    response_model=JobDTO,
    status_code=status.HTTP_202_ACCEPTED,
    responses=ACCEPT_RESPONSES,
)
async def request_video(
    job_id: str,
    request: Optional[GenerationActionSchema] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    gateway: InferenceGateway = Depends(get_gateway),
    storage: ObjectStorage = Depends(get_storage),
    broker: ProgressBroker = Depends(get_progress_broker),
    runner: JobRunner = Depends(get_job_runner),
):
    """
    Animate a completed try-on into a short video.

    The video is tracked as its own job whose `parent_job_id` is `job_id`.
    """
    use_case = RequestVideo(
        build_orchestrator(session, gateway, storage, broker),
        SqlAlchemyGenerationJobRepository(session),
        cost=ApplicationConfig.VIDEO_COST,
        max_poll_attempts=ApplicationConfig.VIDEO_MAX_POLL_ATTEMPTS,
    )
    request_id = request.request_id if request else None
    return _accept(await use_case.execute(user_id, job_id, request_id), runner)


@router.get(
    "/{job_id}",
    response_model=JobDTO,
    status_code=status.HTTP_200_OK,
)
async def get_job(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Current state of one of the caller's jobs."""
    result = await GetJob(SqlAlchemyGenerationJobRepository(session)).execute(job_id, user_id)
    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
    return result.value


@router.get("/{job_id}/events")
async def stream_job_events(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    broker: ProgressBroker = Depends(get_progress_broker),
    runner: JobRunner = Depends(get_job_runner),
):
    """
    Server-Sent Events stream of job progress.

    Emits `progress` events with `{status, progress_percent, message}` and
    ends after the terminal one. A job that already finished yields a single
    `job` event with its final state.
    """
    result = await GetJob(SqlAlchemyGenerationJobRepository(session)).execute(job_id, user_id)
    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
    job = result.value

    async def events():
        if job.status in ("completed", "failed") or job_id not in runner.active_job_ids:
            yield f"event: job\ndata: {job.model_dump_json()}\n\n"
            return

        async for update in broker.stream(job_id):
            if update is None:
                if job_id not in runner.active_job_ids:
                    yield "event: closed\ndata: {}\n\n"
                    return
                yield ": keep-alive\n\n"
                continue
            yield f"event: progress\ndata: {update.model_dump_json()}\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
