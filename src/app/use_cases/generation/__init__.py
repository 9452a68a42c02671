"""Generation use cases"""
from .orchestrator import GenerationOrchestrator
from .request_tryon import RequestTryOn
from .request_regeneration import RequestRegeneration
from .request_video import RequestVideo
from .get_job import GetJob
from .recover_stuck_jobs import RecoverStuckJobs, StuckJobRecoveryResultDTO
from .saga import Saga, CompensationError
from .dtos import TryOnRequestDTO, JobDTO, GenerationRequest, StartedGeneration

__all__ = [
    "GenerationOrchestrator",
    "RequestTryOn",
    "RequestRegeneration",
    "RequestVideo",
    "GetJob",
    "RecoverStuckJobs",
    "StuckJobRecoveryResultDTO",
    "Saga",
    "CompensationError",
    "TryOnRequestDTO",
    "JobDTO",
    "GenerationRequest",
    "StartedGeneration",
]
