"""Wallet Reconciliation Background Worker

Periodically checks wallet balances against their transaction log.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from src.adapter.repositories.wallet_repository import SqlAlchemyWalletRepository
from src.app.use_cases.credits import ReconcileWallets, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class WalletReconcilerWorker:
    """
    Background worker for wallet reconciliation

    Features:
    - Compares wallet balances and total_spent against transaction sums
    - Logs discrepancies for investigation; never corrects them
    - Can run once or continuously

    Usage:
        worker = WalletReconcilerWorker()
        result = await worker.run_once()
        await worker.run_forever(interval_seconds=86400)
    """

    def __init__(self, db_uri: Optional[str] = None, session_factory=None):
        """
        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            session_factory: Use an existing session factory instead of creating an engine
        """
        self.engine = None
        if session_factory is None:
            self.engine = create_async_engine(db_uri or ApplicationConfig.DB_URI, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

        logger.info("WalletReconcilerWorker initialized")

    async def run_once(self) -> ReconciliationResultDTO:
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Wallet reconciliation is disabled, skipping")
            return ReconciliationResultDTO(
                total_wallets_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ReconcileWallets(
                wallet_repo=SqlAlchemyWalletRepository(session),
                transaction_repo=SqlAlchemyCreditTransactionRepository(session),
            )
            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Reconciliation failed: {result.error.message}")
                raise RuntimeError(f"Reconciliation failed: {result.error.message}")

            response = result.value
            if response.discrepancies_found > 0:
                logger.error(f"ALERT: {response.discrepancies_found} wallet discrepancies found!")
            return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous wallet reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_wallets_checked} wallets, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("WalletReconcilerWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.wallet_reconciler --once
        python -m src.worker.wallet_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Wallet Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: daily)"
    )
    args = parser.parse_args()

    worker = WalletReconcilerWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Wallets checked: {result.total_wallets_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            for d in result.discrepancies:
                print(
                    f"  - User {d.user_id}: credits={d.wallet_credits} "
                    f"(log {d.calculated_credits}), total_spent={d.wallet_total_spent} "
                    f"(log {d.calculated_total_spent})"
                )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
