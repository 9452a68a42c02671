"""RefundCredits Use Case

Returns a failed job's cost to the user's wallet. The refund's idempotency
key is derived from the job id, so the ledger credits a job at most once no
matter how many times the refund is requested.
"""

import logging
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.wallet_repository import WalletRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.credit_transaction import CreditTransaction, TransactionType
from .dtos import RefundCommandDTO, CreditTransactionResponseDTO, to_transaction_response

logger = logging.getLogger(__name__)


class RefundCredits:
    """
    Use Case: Refund credits for a failed job

    Business Rules:
    1. At most one refund per job (idempotency_key = refund:<job_id>)
    2. Balance increment: credits += amount, total_spent -= amount
    3. Atomic updates: Balance and transaction written in one database transaction
    4. Refunds are never refused for balance reasons
    """

    def __init__(
        self,
        uow: UnitOfWork,
        wallet_repo: WalletRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.uow = uow
        self.wallet_repo = wallet_repo
        self.transaction_repo = transaction_repo

    async def execute(self, command: RefundCommandDTO) -> Result[CreditTransactionResponseDTO]:
        idempotency_key = command.idempotency_key
        try:
            # Step 1: A job is refunded once; replays get the original refund
            existing_transaction = await self.transaction_repo.get_by_idempotency_key(
                idempotency_key
            )
            if existing_transaction:
                logger.info(f"Refund for job {command.related_job_id} already recorded")
                return Return.ok(to_transaction_response(existing_transaction))

            # Step 2: Atomic increment
            wallet = await self.wallet_repo.credit(command.user_id, command.amount, earned=False)
            if wallet is None:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="WALLET_NOT_FOUND",
                        message=f"No wallet found for user {command.user_id}",
                        reason="refund without a prior debit",
                    )
                )

            # Step 3: Record the refund with balance snapshots
            credits_after = wallet.credits
            transaction = CreditTransaction(
                user_id=command.user_id,
                type=TransactionType.REFUND,
                amount=command.amount,
                credits_before=credits_after - command.amount,
                credits_after=credits_after,
                description=command.description,
                related_job_id=command.related_job_id,
                idempotency_key=idempotency_key,
            )
            created_transaction = await self.transaction_repo.create(transaction)

            # Step 4: Commit
            await self.uow.commit()

            logger.info(
                f"Refunded {command.amount} credits to user {command.user_id} "
                f"for job {command.related_job_id}"
            )
            return Return.ok(to_transaction_response(created_transaction))

        except IntegrityError:
            # Concurrent refund for the same job committed first
            await self.uow.rollback()
            existing_transaction = await self.transaction_repo.get_by_idempotency_key(
                idempotency_key
            )
            if existing_transaction:
                return Return.ok(to_transaction_response(existing_transaction))
            return Return.err(
                Error(
                    code="REFUND_FAILED",
                    message="Failed to refund credits",
                    reason="integrity error",
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="REFUND_FAILED",
                    message="Failed to refund credits",
                    reason=str(e),
                )
            )
