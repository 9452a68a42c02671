"""Credit Transaction Domain Entity

Immutable append-only audit trail of all wallet mutations.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from src.domain.base import BaseModel, enum_column, generate_uuid


class TransactionType(str, Enum):
    """Credit transaction types"""
    DEDUCT = "deduct"        # Credits spent on a generation
    REFUND = "refund"        # Credits returned for a failed generation
    PURCHASE = "purchase"    # Credits bought by the user
    BONUS = "bonus"          # Credits granted for free (welcome balance, promotions)


class CreditTransaction(BaseModel, table=True):
    """
    Credit Transaction - Immutable audit trail of wallet mutations

    Domain Rules:
    - Transactions are append-only; the only permitted update is back-filling
      a null related_job_id on a debit once its job exists
    - amount is signed: DEDUCT rows are negative, every other type positive,
      so sum(amount) per user equals the wallet balance
    - idempotency_key is unique. Refunds use "refund:<job_id>", which makes a
      second refund for the same job impossible
    """

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index("ix_credit_transactions_created_at", "created_at"),
        Index("ix_credit_transactions_related_job_id", "related_job_id"),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Unique transaction identifier"
    )

    user_id: str = Field(
        index=True,
        description="Owner of the wallet"
    )

    type: TransactionType = Field(
        sa_column=enum_column(TransactionType),
        description="Type of transaction (deduct, refund, purchase, bonus)"
    )

    amount: int = Field(
        nullable=False,
        description="Signed credit delta applied to the wallet"
    )

    credits_before: int = Field(
        nullable=False,
        description="Wallet balance before this transaction"
    )

    credits_after: int = Field(
        nullable=False,
        description="Wallet balance after this transaction"
    )

    description: Optional[str] = Field(
        default=None,
        description="Human readable reason"
    )

    related_job_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Generation job this transaction pays for or refunds"
    )

    idempotency_key: str = Field(
        unique=True,
        index=True,
        description="Unique key for idempotent operations (e.g., refund:<job_id>)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Transaction timestamp (immutable)"
    )
