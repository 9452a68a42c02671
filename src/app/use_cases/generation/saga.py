"""Saga: ordered steps with compensating actions

A generation touches the ledger, the job store and the provider, and no
database transaction spans all three. Each completed step registers how to
undo it; on failure the registered compensations run newest first.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Compensation = Callable[[Any, Any], Awaitable[None]]


class CompensationError(Exception):
    """A compensating action could not be applied"""


class Saga:

    def __init__(self, name: str):
        self.name = name
        self._completed: List[Tuple[str, Any, Optional[Compensation]]] = []

    def record(self, step_name: str, compensation: Optional[Compensation], result: Any = None) -> None:
        """Register a step that already ran (e.g. in an earlier request)"""
        self._completed.append((step_name, result, compensation))

    async def step(
        self,
        step_name: str,
        action: Callable[[], Awaitable[Any]],
        compensation: Optional[Compensation] = None,
    ) -> Any:
        """
        Run action; its compensation is registered only if it succeeds

        Exceptions from action propagate unchanged. Nothing is compensated
        automatically: the caller decides the failure reason.
        """
        result = await action()
        self._completed.append((step_name, result, compensation))
        return result

    async def compensate(self, reason: Any = None) -> None:
        """
        Run compensations in reverse order

        Stops at the first compensation that raises and re-raises it. Steps
        before it stay uncompensated, so a refund never runs unless the job
        was failed first.
        """
        while self._completed:
            step_name, result, compensation = self._completed.pop()
            if compensation is None:
                continue
            logger.debug(f"[{self.name}] compensating {step_name}")
            try:
                await compensation(result, reason)
            except Exception:
                logger.error(f"[{self.name}] compensation for {step_name} failed")
                self._completed.clear()
                raise

    @property
    def steps(self) -> List[str]:
        return [name for name, _, _ in self._completed]
