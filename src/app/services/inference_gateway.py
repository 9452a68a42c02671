"""Inference Gateway Interface

Adapts generation jobs to an external, queue-based inference provider.
Submission returns a handle immediately; the result is fetched later.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from src.domain.generation_job import JobKind


class SubmissionError(Exception):
    """The provider refused the request (bad credentials, malformed input, rejected job)"""


class TransientPollError(Exception):
    """A status check failed for a reason that may go away (network, 5xx)"""


class ArtifactNotReady(Exception):
    """fetch_result was called before the provider finished"""


class ArtifactMissing(Exception):
    """The provider reported success but returned no usable output"""


class PollStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExternalHandle:
    """Opaque reference to a submitted provider request"""
    request_id: str
    job_kind: JobKind
    model_id: str
    status_url: Optional[str] = None
    response_url: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PollResult:
    status: PollStatus
    progress: int
    message: str = ""


class InferenceGateway(ABC):
    provider_name: str = "unknown"

    @abstractmethod
    async def submit(
        self, job_kind: JobKind, input_urls: Dict[str, str], params: Dict[str, Any]
    ) -> ExternalHandle:
        """
        Submit a generation request

        A fresh random seed is drawn for every submission so identical
        inputs still produce a different result.

        Raises:
            SubmissionError: If the provider rejects the request
        """
        pass

    @abstractmethod
    async def poll(self, handle: ExternalHandle) -> PollResult:
        """
        Check request status; safe to call repeatedly

        Raises:
            TransientPollError: On transport or provider hiccups
        """
        pass

    @abstractmethod
    async def fetch_result(self, handle: ExternalHandle) -> str:
        """
        URL of the generated artifact; valid only after poll reports COMPLETED

        Raises:
            ArtifactNotReady: If the provider has no result yet
            ArtifactMissing: If the result holds no usable artifact
        """
        pass

    @abstractmethod
    async def download(self, url: str) -> bytes:
        """Download a provider-hosted artifact"""
        pass
