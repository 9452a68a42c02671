"""Wallet Domain Entity

Per-user credit balance. Each user has exactly one wallet, created lazily
with the starting balance on first access.
"""

from datetime import datetime
from sqlmodel import Field
from sqlalchemy import CheckConstraint
from src.domain.base import BaseModel


class Wallet(BaseModel, table=True):
    """
    Wallet - Tracks a user's credit balance

    Domain Rules:
    - One wallet per user (user_id is the primary key)
    - credits must be non-negative, enforced by the database
    - total_earned / total_spent are monotonic counters, except that a refund
      lowers total_spent by the refunded amount (net debits)
    - Mutated only through the ledger use cases
    """

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="credits_non_negative"),
        CheckConstraint("total_earned >= 0", name="total_earned_non_negative"),
        CheckConstraint("total_spent >= 0", name="total_spent_non_negative"),
    )

    user_id: str = Field(
        primary_key=True,
        description="Opaque user identifier from the identity provider"
    )

    credits: int = Field(
        default=0,
        nullable=False,
        description="Spendable credit balance (>= 0)"
    )

    total_earned: int = Field(
        default=0,
        nullable=False,
        description="Credits ever granted (welcome bonus, purchases, bonuses)"
    )

    total_spent: int = Field(
        default=0,
        nullable=False,
        description="Net credits spent (debits minus refunds)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Wallet creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last balance update timestamp"
    )
