"""GrantCredits Use Case

Adds purchased or bonus credits to a user's wallet.
"""

from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.wallet_repository import WalletRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.credit_transaction import CreditTransaction, TransactionType
from .dtos import GrantCommandDTO, CreditTransactionResponseDTO, to_transaction_response
from .get_wallet import ensure_wallet


class GrantCredits:
    """
    Use Case: Grant credits

    Business Rules:
    1. Idempotency: Same idempotency_key returns same transaction
    2. Wallet creation: A missing wallet is created with the starting balance
    3. total_earned grows by the granted amount
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

    async def execute(self, command: GrantCommandDTO) -> Result[CreditTransactionResponseDTO]:
        try:
            existing_transaction = await self.transaction_repo.get_by_idempotency_key(
                command.idempotency_key
            )
            if existing_transaction:
                return Return.ok(to_transaction_response(existing_transaction))

            await ensure_wallet(
                self.wallet_repo, self.transaction_repo, command.user_id, self.starting_credits
            )

            wallet = await self.wallet_repo.credit(command.user_id, command.amount, earned=True)
            if wallet is None:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="WALLET_NOT_FOUND",
                        message=f"No wallet found for user {command.user_id}",
                    )
                )

            transaction = CreditTransaction(
                user_id=command.user_id,
                type=TransactionType(command.type),
                amount=command.amount,
                credits_before=wallet.credits - command.amount,
                credits_after=wallet.credits,
                description=command.description,
                idempotency_key=command.idempotency_key,
            )
            created_transaction = await self.transaction_repo.create(transaction)
            await self.uow.commit()

            return Return.ok(to_transaction_response(created_transaction))

        except IntegrityError as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="GRANT_FAILED",
                    message="Failed to grant credits",
                    reason=str(e),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="GRANT_FAILED",
                    message="Failed to grant credits",
                    reason=str(e),
                )
            )
