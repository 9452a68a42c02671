from functools import lru_cache
from typing import Awaitable, Callable
import httpx
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.repositories import (
    SqlAlchemyCreditTransactionRepository,
    SqlAlchemyGenerationJobRepository,
    SqlAlchemyWalletRepository,
)
from src.adapter.services.fal_inference_gateway import FalInferenceGateway
from src.adapter.services.job_runner import JobRunner, ProgressBroker
from src.adapter.services.object_storage import create_object_storage
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.inference_gateway import InferenceGateway
from src.app.services.object_storage import ObjectStorage
from src.app.services.progress import ProgressPublisher
from src.app.use_cases.generation.orchestrator import GenerationOrchestrator

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


@lru_cache
def get_gateway() -> InferenceGateway:
    return FalInferenceGateway(
        api_key=ApplicationConfig.FAL_KEY,
        tryon_model_id=ApplicationConfig.TRYON_MODEL_ID,
        video_model_id=ApplicationConfig.VIDEO_MODEL_ID,
        queue_url=ApplicationConfig.FAL_QUEUE_URL,
        timeout=ApplicationConfig.FAL_HTTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_storage() -> ObjectStorage:
    return create_object_storage(ApplicationConfig)


@lru_cache
def get_progress_broker() -> ProgressBroker:
    return ProgressBroker()


def build_orchestrator(
    session: AsyncSession,
    gateway: InferenceGateway,
    storage: ObjectStorage,
    publisher: ProgressPublisher,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        uow=SqlAlchemyUnitOfWork(session),
        wallet_repo=SqlAlchemyWalletRepository(session),
        transaction_repo=SqlAlchemyCreditTransactionRepository(session),
        job_repo=SqlAlchemyGenerationJobRepository(session),
        gateway=gateway,
        storage=storage,
        results_bucket=ApplicationConfig.RESULTS_BUCKET,
        publisher=publisher,
        poll_interval_seconds=ApplicationConfig.POLL_INTERVAL_SECONDS,
        starting_credits=ApplicationConfig.DEFAULT_STARTING_CREDITS,
    )


@lru_cache
def get_job_runner() -> JobRunner:
    return JobRunner(
        session_factory=AsyncSessionLocal,
        orchestrator_factory=lambda session: build_orchestrator(
            session, get_gateway(), get_storage(), get_progress_broker()
        ),
    )


async def fetch_artifact(url: str) -> bytes:
    async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.content


def get_artifact_fetcher() -> Callable[[str], Awaitable[bytes]]:
    return fetch_artifact
