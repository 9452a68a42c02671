from .wallet_repository import SqlAlchemyWalletRepository
from .credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from .generation_job_repository import SqlAlchemyGenerationJobRepository
from .catalog_repository import SqlAlchemyCatalogRepository

__all__ = [
    "SqlAlchemyWalletRepository",
    "SqlAlchemyCreditTransactionRepository",
    "SqlAlchemyGenerationJobRepository",
    "SqlAlchemyCatalogRepository",
]
