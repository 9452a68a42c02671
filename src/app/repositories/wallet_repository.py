"""Wallet Repository Interface

Defines the contract for wallet persistence operations.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from src.domain.wallet import Wallet


class WalletRepository(ABC):
    """
    Repository interface for Wallet persistence

    Balance changes are single conditional UPDATE statements so that
    concurrent debits against the same wallet are serialized by the database
    and can never drive the balance below zero.
    """

    @abstractmethod
    async def get_by_user_id(self, user_id: str) -> Optional[Wallet]:
        """
        Retrieve a wallet by user ID

        Always re-reads the row so that balances changed by other sessions
        are visible.
        """
        pass

    @abstractmethod
    async def create_if_missing(self, user_id: str, starting_credits: int) -> bool:
        """
        Insert a wallet with the starting balance unless one already exists

        Returns:
            True if this call created the wallet, False if it already existed
        """
        pass

    @abstractmethod
    async def try_debit(self, user_id: str, amount: int) -> Optional[Wallet]:
        """
        Atomically decrement credits if and only if credits >= amount

        Also increments total_spent by amount.

        Returns:
            The updated Wallet, or None if the balance was insufficient
            (or the wallet does not exist)
        """
        pass

    @abstractmethod
    async def credit(self, user_id: str, amount: int, earned: bool = False) -> Optional[Wallet]:
        """
        Atomically increment credits

        Args:
            earned: True for purchases/bonuses (total_earned += amount),
                    False for refunds (total_spent -= amount)

        Returns:
            The updated Wallet, or None if the wallet does not exist
        """
        pass

    @abstractmethod
    async def get_all(self) -> List[Wallet]:
        """Retrieve every wallet (used by reconciliation)"""
        pass
