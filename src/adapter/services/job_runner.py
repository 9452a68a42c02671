"""Background execution of generation poll loops

Each accepted generation gets one asyncio task with its own database session
and a cancel event. Progress goes through an in-process broker that the HTTP
layer streams to clients, so a job keeps running when its client goes away.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional, Set, Tuple
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.progress import ProgressPublisher, ProgressUpdate
from src.app.use_cases.generation.dtos import StartedGeneration
from src.app.use_cases.generation.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


class ProgressBroker(ProgressPublisher):
    """
    In-process publish/subscribe of job progress

    Subscribers get every update published after they subscribe, plus the
    latest update if the job is still running.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}
        self._latest: Dict[str, ProgressUpdate] = {}

    async def publish(self, update: ProgressUpdate) -> None:
        if update.terminal:
            self._latest.pop(update.job_id, None)
        else:
            self._latest[update.job_id] = update

        for queue in list(self._subscribers.get(update.job_id, ())):
            if queue.full():
                # Slow consumer: drop its oldest update
                queue.get_nowait()
            queue.put_nowait(update)

    def subscribe(self, job_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(job_id, set()).add(queue)
        latest = self._latest.get(job_id)
        if latest is not None:
            queue.put_nowait(latest)
        return queue

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(job_id)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[job_id]

    async def stream(
        self, job_id: str, heartbeat_seconds: float = 15.0
    ) -> AsyncIterator[Optional[ProgressUpdate]]:
        """
        Yield updates until a terminal one; None is yielded as a heartbeat
        when nothing happened for heartbeat_seconds
        """
        queue = self.subscribe(job_id)
        try:
            while True:
                try:
                    update = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield None
                    continue
                yield update
                if update.terminal:
                    return
        finally:
            self.unsubscribe(job_id, queue)


OrchestratorFactory = Callable[[AsyncSession], GenerationOrchestrator]


class JobRunner:
    """
    Runs GenerationOrchestrator.follow for accepted jobs

    shutdown() sets every cancel event, so unfinished jobs end as CANCELLED
    and are refunded before the process exits.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        orchestrator_factory: OrchestratorFactory,
        shutdown_timeout: float = 30.0,
    ):
        self.session_factory = session_factory
        self.orchestrator_factory = orchestrator_factory
        self.shutdown_timeout = shutdown_timeout
        self._tasks: Dict[str, Tuple[asyncio.Task, asyncio.Event]] = {}
        self._closed = False

    def launch(self, started: StartedGeneration) -> bool:
        """Start polling a job in the background; returns False if not started"""
        job_id = started.job.job_id
        if self._closed or not started.needs_polling or job_id in self._tasks:
            return False

        cancel_event = asyncio.Event()
        task = asyncio.create_task(self._run(started, cancel_event), name=f"generation-{job_id}")
        self._tasks[job_id] = (task, cancel_event)
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        logger.info(f"Polling job {job_id} in background")
        return True

    async def _run(self, started: StartedGeneration, cancel_event: asyncio.Event) -> None:
        job_id = started.job.job_id
        try:
            async with self.session_factory() as session:
                orchestrator = self.orchestrator_factory(session)
                final = await orchestrator.follow(started, cancel_event)
                logger.info(f"Job {job_id} finished as {final.status}")
        except Exception as e:
            # Left to stuck job recovery
            logger.exception(f"Background job {job_id} crashed: {e}")

    @property
    def active_job_ids(self) -> List[str]:
        return list(self._tasks)

    async def shutdown(self) -> None:
        self._closed = True
        if not self._tasks:
            return

        logger.info(f"Cancelling {len(self._tasks)} running job(s)")
        tasks = []
        for task, cancel_event in list(self._tasks.values()):
            cancel_event.set()
            tasks.append(task)

        done, pending = await asyncio.wait(tasks, timeout=self.shutdown_timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"{len(pending)} job(s) did not stop in time")
