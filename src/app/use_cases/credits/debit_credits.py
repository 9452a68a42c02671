"""DebitCredits Use Case

Debits credits from a user's wallet with idempotency guarantees. The balance
check and the decrement are a single conditional UPDATE, so concurrent
debits for the same user can never overdraw the wallet.
"""

import logging
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.wallet_repository import WalletRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.credit_transaction import CreditTransaction, TransactionType
from .dtos import DebitCommandDTO, CreditTransactionResponseDTO, to_transaction_response
from .get_wallet import ensure_wallet

logger = logging.getLogger(__name__)


class DebitCredits:
    """
    Use Case: Debit credits from a user's wallet

    Business Rules:
    1. Idempotency: Same idempotency_key returns same transaction, for the same user only
    2. Sufficient balance: credits >= amount, checked by the UPDATE itself
    3. Atomic updates: Balance and transaction written in one database transaction
    4. Lazy wallet: a missing wallet is created with the starting balance first

    Flow:
    1. Check idempotency (return existing if found)
    2. Ensure the wallet exists
    3. Conditional decrement (fails -> INSUFFICIENT_CREDITS)
    4. Append DEDUCT transaction with balance snapshots
    5. Commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        wallet_repo: WalletRepository,
        transaction_repo: CreditTransactionRepository,
        starting_credits: int = 100,
    ):
        self.uow = uow
        self.wallet_repo = wallet_repo
        self.transaction_repo = transaction_repo
        self.starting_credits = starting_credits

    async def execute(self, command: DebitCommandDTO) -> Result[CreditTransactionResponseDTO]:
        try:
            # Step 1: Check idempotency - if transaction exists, return it
            existing_transaction = await self.transaction_repo.get_by_idempotency_key(
                command.idempotency_key
            )
            if existing_transaction:
                return self._replay(existing_transaction, command)

            # Step 2: Ensure wallet exists (welcome credits are committed on their own)
            if await ensure_wallet(
                self.wallet_repo, self.transaction_repo, command.user_id, self.starting_credits
            ):
                await self.uow.commit()

            # Step 3: Conditional decrement
            wallet = await self.wallet_repo.try_debit(command.user_id, command.amount)
            if wallet is None:
                await self.uow.rollback()
                current = await self.wallet_repo.get_by_user_id(command.user_id)
                available = current.credits if current else 0
                return Return.err(
                    Error(
                        code="INSUFFICIENT_CREDITS",
                        message=f"Insufficient credits. Required: {command.amount}, Available: {available}",
                        reason=f"credits={available}, required={command.amount}",
                    )
                )

            # Step 4: Record the debit with balance snapshots
            credits_after = wallet.credits
            transaction = CreditTransaction(
                user_id=command.user_id,
                type=TransactionType.DEDUCT,
                amount=-command.amount,
                credits_before=credits_after + command.amount,
                credits_after=credits_after,
                description=command.description,
                related_job_id=command.related_job_id,
                idempotency_key=command.idempotency_key,
            )
            created_transaction = await self.transaction_repo.create(transaction)

            # Step 5: Commit
            await self.uow.commit()

            logger.info(
                f"Debited {command.amount} credits from user {command.user_id} "
                f"({credits_after + command.amount} -> {credits_after})"
            )
            return Return.ok(to_transaction_response(created_transaction))

        except IntegrityError:
            # A concurrent request with the same key won the race
            await self.uow.rollback()
            existing_transaction = await self.transaction_repo.get_by_idempotency_key(
                command.idempotency_key
            )
            if existing_transaction:
                return self._replay(existing_transaction, command)
            return Return.err(
                Error(
                    code="DEBIT_FAILED",
                    message="Failed to debit credits",
                    reason="integrity error",
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="DEBIT_FAILED",
                    message="Failed to debit credits",
                    reason=str(e),
                )
            )

    def _replay(
        self, existing: CreditTransaction, command: DebitCommandDTO
    ) -> Result[CreditTransactionResponseDTO]:
        # A key only replays the caller's own debit
        if existing.user_id != command.user_id or existing.type != TransactionType.DEDUCT:
            logger.warning(
                f"Idempotency key {command.idempotency_key} reused by user {command.user_id}"
            )
            return Return.err(
                Error(
                    code="IDEMPOTENCY_CONFLICT",
                    message="Idempotency key already used for a different operation",
                    reason=f"key={command.idempotency_key}",
                )
            )
        return Return.ok(to_transaction_response(existing))
