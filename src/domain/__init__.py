from .base import BaseModel, generate_uuid
from .wallet import Wallet
from .credit_transaction import CreditTransaction, TransactionType
from .generation_job import GenerationJob, JobStatus, JobKind, FailureCode, ACTIVE_STATUSES
from .catalog import ProductImage, ModelPhoto, Gender
from .errors import InvalidJobTransition

__all__ = [
    "BaseModel",
    "generate_uuid",
    "Wallet",
    "CreditTransaction",
    "TransactionType",
    "GenerationJob",
    "JobStatus",
    "JobKind",
    "FailureCode",
    "ACTIVE_STATUSES",
    "ProductImage",
    "ModelPhoto",
    "Gender",
    "InvalidJobTransition",
]
