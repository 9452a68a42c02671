"""Stuck Job Recovery Background Worker

Fails and refunds generations whose poll loop died with its process.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.generation_job_repository import SqlAlchemyGenerationJobRepository
from src.app.services.progress import NullProgressPublisher
from src.app.use_cases.generation import RecoverStuckJobs, StuckJobRecoveryResultDTO
from src.depends import build_orchestrator, get_gateway, get_storage
from src.domain.generation_job import JobKind

logger = logging.getLogger(__name__)


class StuckJobReaperWorker:
    """
    Background worker for stuck job recovery

    A job counts as stuck once its poll loop has not touched it for its
    kind's poll budget (attempts * interval) plus STUCK_JOB_GRACE_SECONDS.

    Usage:
        worker = StuckJobReaperWorker()
        result = await worker.run_once()
        await worker.run_forever(interval_seconds=600)
    """

    def __init__(self, db_uri: Optional[str] = None, session_factory=None):
        self.engine = None
        if session_factory is None:
            self.engine = create_async_engine(db_uri or ApplicationConfig.DB_URI, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

        logger.info("StuckJobReaperWorker initialized")

    async def run_once(self) -> StuckJobRecoveryResultDTO:
        if not ApplicationConfig.STUCK_JOB_RECOVERY_ENABLED:
            logger.info("Stuck job recovery is disabled, skipping")
            return StuckJobRecoveryResultDTO(jobs_checked=0, jobs_recovered=0, recovered_job_ids=[])

        async with self.async_session_factory() as session:
            use_case = RecoverStuckJobs(
                job_repo=SqlAlchemyGenerationJobRepository(session),
                orchestrator=build_orchestrator(
                    session, get_gateway(), get_storage(), NullProgressPublisher()
                ),
                max_poll_attempts={
                    JobKind.TRYON: ApplicationConfig.TRYON_MAX_POLL_ATTEMPTS,
                    JobKind.REGENERATION: ApplicationConfig.TRYON_MAX_POLL_ATTEMPTS,
                    JobKind.VIDEO: ApplicationConfig.VIDEO_MAX_POLL_ATTEMPTS,
                },
                poll_interval_seconds=ApplicationConfig.POLL_INTERVAL_SECONDS,
                grace_seconds=ApplicationConfig.STUCK_JOB_GRACE_SECONDS,
            )
            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Stuck job recovery failed: {result.error.message}")
                raise RuntimeError(f"Stuck job recovery failed: {result.error.message}")

            if result.value.jobs_recovered:
                logger.warning(
                    f"Recovered {result.value.jobs_recovered} stuck job(s): "
                    f"{', '.join(result.value.recovered_job_ids)}"
                )
            return result.value

    async def run_forever(self, interval_seconds: int = 600):
        logger.info(f"Starting stuck job recovery with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Recovery cycle complete. Checked {result.jobs_checked} jobs, "
                    f"recovered {result.jobs_recovered}"
                )
            except Exception as e:
                logger.error(f"Recovery cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("StuckJobReaperWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.stuck_job_reaper --once
        python -m src.worker.stuck_job_reaper --interval 300
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Stuck Job Recovery Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.STUCK_JOB_SCAN_INTERVAL_SECONDS,
        help="Interval between scans in seconds (default: 600)"
    )
    args = parser.parse_args()

    worker = StuckJobReaperWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print(f"Checked {result.jobs_checked} jobs, recovered {result.jobs_recovered}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
