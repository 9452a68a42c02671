"""Progress reporting from the poll loop back to presentation."""

from abc import ABC, abstractmethod
from typing import Optional
from pydantic import BaseModel


class ProgressUpdate(BaseModel):
    job_id: str
    status: str
    progress_percent: int
    message: Optional[str] = None
    terminal: bool = False


class ProgressPublisher(ABC):

    @abstractmethod
    async def publish(self, update: ProgressUpdate) -> None:
        pass


class NullProgressPublisher(ProgressPublisher):
    async def publish(self, update: ProgressUpdate) -> None:
        return None
