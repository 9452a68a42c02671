"""SQLAlchemy implementation of WalletRepository

Balance changes are single conditional UPDATE statements. The database
serializes concurrent updates on the same row, so two debits racing for the
last credits cannot both succeed.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.wallet_repository import WalletRepository
from src.domain.wallet import Wallet


class SqlAlchemyWalletRepository(WalletRepository):
    """
    SQLAlchemy implementation of WalletRepository

    Features:
    - Atomic compare-and-decrement (UPDATE ... WHERE credits >= amount)
    - Race-free lazy creation (INSERT ... ON CONFLICT DO NOTHING)
    - Reads always refresh the identity map so other sessions' writes show up
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_id(self, user_id: str) -> Optional[Wallet]:
        stmt = (
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_if_missing(self, user_id: str, starting_credits: int) -> bool:
        """
        Insert the wallet unless it exists

        Uses the dialect's ON CONFLICT DO NOTHING, so two first requests from
        the same user never produce two wallets or two welcome balances.
        """
        dialect = self.session.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

        now = datetime.utcnow()
        stmt = (
            insert(Wallet)
            .values(
                user_id=user_id,
                credits=starting_credits,
                total_earned=starting_credits,
                total_spent=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def try_debit(self, user_id: str, amount: int) -> Optional[Wallet]:
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.credits >= amount)
            .values(
                credits=Wallet.credits - amount,
                total_spent=Wallet.total_spent + amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_user_id(user_id)

    async def credit(self, user_id: str, amount: int, earned: bool = False) -> Optional[Wallet]:
        values = {
            "credits": Wallet.credits + amount,
            "updated_at": datetime.utcnow(),
        }
        if earned:
            values["total_earned"] = Wallet.total_earned + amount
        else:
            values["total_spent"] = Wallet.total_spent - amount

        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_by_user_id(user_id)

    async def get_all(self) -> List[Wallet]:
        stmt = select(Wallet).order_by(Wallet.user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
