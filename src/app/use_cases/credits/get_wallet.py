"""Get Wallet Use Case

Retrieves a user's wallet, creating it with the starting balance on first
access.
"""

import logging
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.wallet_repository import WalletRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from src.domain.credit_transaction import CreditTransaction, TransactionType
from .dtos import WalletResponseDTO

logger = logging.getLogger(__name__)


async def ensure_wallet(
    wallet_repo: WalletRepository,
    transaction_repo: CreditTransactionRepository,
    user_id: str,
    starting_credits: int,
) -> bool:
    """
    Create the user's wallet if it does not exist yet

    The starting balance is recorded as a BONUS transaction so the
    transaction log always sums to the wallet balance. Caller commits.

    Returns:
        True if the wallet was created by this call
    """
    created = await wallet_repo.create_if_missing(user_id, starting_credits)
    if created and starting_credits > 0:
        await transaction_repo.create(
            CreditTransaction(
                user_id=user_id,
                type=TransactionType.BONUS,
                amount=starting_credits,
                credits_before=0,
                credits_after=starting_credits,
                description="Welcome credits",
                idempotency_key=f"welcome:{user_id}",
            )
        )
    if created:
        logger.info(f"Created wallet for user {user_id} with {starting_credits} credits")
    return created


class GetWallet:
    """
    Get Wallet Use Case

    Lazily creates the wallet. Reads are not locked, so a balance changed
    concurrently by another session is visible on the next call.
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

    async def execute(self, user_id: str) -> Result[WalletResponseDTO]:
        try:
            if await ensure_wallet(
                self.wallet_repo, self.transaction_repo, user_id, self.starting_credits
            ):
                await self.uow.commit()

            wallet = await self.wallet_repo.get_by_user_id(user_id)
            if not wallet:
                return Return.err(
                    Error(
                        code="WALLET_NOT_FOUND",
                        message=f"No wallet found for user {user_id}",
                    )
                )

            return Return.ok(
                WalletResponseDTO(
                    user_id=wallet.user_id,
                    credits=wallet.credits,
                    total_earned=wallet.total_earned,
                    total_spent=wallet.total_spent,
                    last_updated=wallet.updated_at,
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="GET_WALLET_FAILED",
                    message="Failed to load wallet",
                    reason=str(e),
                )
            )
