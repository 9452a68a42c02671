from .wallet_repository import WalletRepository
from .credit_transaction_repository import CreditTransactionRepository
from .generation_job_repository import GenerationJobRepository
from .catalog_repository import CatalogRepository

__all__ = [
    "WalletRepository",
    "CreditTransactionRepository",
    "GenerationJobRepository",
    "CatalogRepository",
]
