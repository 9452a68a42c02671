"""ReconcileWallets Use Case

Checks every wallet against its transaction log.
"""

import logging
import time
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.repositories.wallet_repository import WalletRepository
from src.app.repositories.credit_transaction_repository import CreditTransactionRepository
from .dtos import WalletDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileWallets:
    """
    Use Case: Reconcile wallets against transactions

    Business Rules:
    1. credits must equal the sum of the wallet's signed transaction amounts
    2. total_spent must equal debits minus refunds
    3. Read-only: discrepancies are reported, never corrected
    """

    def __init__(
        self,
        wallet_repo: WalletRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.wallet_repo = wallet_repo
        self.transaction_repo = transaction_repo

    async def execute(self) -> Result[ReconciliationResultDTO]:
        start_time = time.time()
        reconciliation_time = datetime.utcnow()

        try:
            wallets = await self.wallet_repo.get_all()
            logger.info(f"Found {len(wallets)} wallets to reconcile")

            discrepancies: list[WalletDiscrepancyDTO] = []
            for wallet in wallets:
                calculated_credits, calculated_spent = await self.transaction_repo.get_sums_by_user(
                    wallet.user_id
                )
                if wallet.credits != calculated_credits or wallet.total_spent != calculated_spent:
                    discrepancies.append(
                        WalletDiscrepancyDTO(
                            user_id=wallet.user_id,
                            wallet_credits=wallet.credits,
                            calculated_credits=calculated_credits,
                            wallet_total_spent=wallet.total_spent,
                            calculated_total_spent=calculated_spent,
                        )
                    )
                    logger.warning(
                        f"Discrepancy found for user {wallet.user_id}: "
                        f"credits={wallet.credits} (log says {calculated_credits}), "
                        f"total_spent={wallet.total_spent} (log says {calculated_spent})"
                    )

            execution_time_ms = int((time.time() - start_time) * 1000)
            return Return.ok(
                ReconciliationResultDTO(
                    total_wallets_checked=len(wallets),
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Wallet reconciliation failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile wallets",
                    reason=str(e),
                )
            )
