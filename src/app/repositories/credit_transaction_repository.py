"""Credit Transaction Repository Interface

Defines the contract for credit transaction persistence operations.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from src.domain.credit_transaction import CreditTransaction


class CreditTransactionRepository(ABC):
    """
    Repository interface for CreditTransaction persistence

    Transactions are immutable and append-only for audit trail.
    Idempotency is enforced via unique idempotency_key.
    """

    @abstractmethod
    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        """
        Create a new credit transaction

        Raises:
            IntegrityError: If idempotency_key already exists (duplicate transaction)
        """
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CreditTransaction]:
        """
        Retrieve transaction by idempotency key

        Used to check if transaction already exists (idempotency check).
        """
        pass

    @abstractmethod
    async def link_job(self, transaction_id: str, job_id: str) -> bool:
        """
        Back-fill related_job_id on a transaction created before its job existed

        Only a null related_job_id is ever written.

        Returns:
            True if the transaction was updated
        """
        pass

    @abstractmethod
    async def get_by_user_id(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> Tuple[List[CreditTransaction], int]:
        """
        List a user's transactions, newest first

        Returns:
            (transactions, total_count)
        """
        pass

    @abstractmethod
    async def get_by_job_id(self, job_id: str) -> List[CreditTransaction]:
        """All transactions linked to a job, oldest first"""
        pass

    @abstractmethod
    async def get_sums_by_user(self, user_id: str) -> Tuple[int, int]:
        """
        Aggregate a user's transactions

        Returns:
            (sum of all signed amounts, net spent = debits - refunds)
        """
        pass
