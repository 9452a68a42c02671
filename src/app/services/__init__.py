from .unit_of_work import UnitOfWork
from .inference_gateway import (
    InferenceGateway,
    ExternalHandle,
    PollResult,
    PollStatus,
    SubmissionError,
    TransientPollError,
    ArtifactNotReady,
    ArtifactMissing,
)
from .object_storage import ObjectStorage, StorageError
from .progress import ProgressUpdate, ProgressPublisher, NullProgressPublisher

__all__ = [
    "UnitOfWork",
    "InferenceGateway",
    "ExternalHandle",
    "PollResult",
    "PollStatus",
    "SubmissionError",
    "TransientPollError",
    "ArtifactNotReady",
    "ArtifactMissing",
    "ObjectStorage",
    "StorageError",
    "ProgressUpdate",
    "ProgressPublisher",
    "NullProgressPublisher",
]
