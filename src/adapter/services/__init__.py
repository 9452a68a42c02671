from .unit_of_work import SqlAlchemyUnitOfWork
from .fal_inference_gateway import FalInferenceGateway
from .object_storage import (
    SupabaseObjectStorage,
    LocalObjectStorage,
    create_object_storage,
)
from .job_runner import JobRunner, ProgressBroker

__all__ = [
    "SqlAlchemyUnitOfWork",
    "FalInferenceGateway",
    "SupabaseObjectStorage",
    "LocalObjectStorage",
    "create_object_storage",
    "JobRunner",
    "ProgressBroker",
]
