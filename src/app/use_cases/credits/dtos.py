"""Data Transfer Objects for Credit Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class DebitCommandDTO(BaseModel):
    """
    Command DTO for debiting credits

    Used as input to DebitCredits use case.
    """

    user_id: str = Field(
        ...,
        min_length=1,
        description="User identifier"
    )

    amount: int = Field(
        ...,
        gt=0,
        description="Credit amount to debit (must be > 0)"
    )

    idempotency_key: str = Field(
        ...,
        description="Unique key for idempotent operations (e.g., deduct:<user_id>:<request_id>)"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason shown in the transaction history"
    )

    related_job_id: Optional[str] = Field(
        default=None,
        description="Job being paid for, if it already exists"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "5b1c0d1e-3f4a-4b6c-8d9e-0a1b2c3d4e5f",
                "amount": 10,
                "idempotency_key": "deduct:user_123:0f8fad5b-d9cb-469f-a165-70867728950e",
                "description": "Try-on generation",
            }
        }


class RefundCommandDTO(BaseModel):
    """
    Command DTO for refunding credits

    Refunds return a failed job's cost. The idempotency key is derived from
    the job id, so a job can be refunded at most once.
    """

    user_id: str = Field(
        ...,
        min_length=1,
        description="User identifier"
    )

    amount: int = Field(
        ...,
        gt=0,
        description="Credit amount to refund (must be > 0)"
    )

    related_job_id: str = Field(
        ...,
        description="Failed job being refunded"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason shown in the transaction history"
    )

    @property
    def idempotency_key(self) -> str:
        return f"refund:{self.related_job_id}"


class GrantCommandDTO(BaseModel):
    """
    Command DTO for granting credits (purchases and bonuses)
    """

    user_id: str = Field(..., min_length=1)

    amount: int = Field(..., gt=0)

    type: Literal["purchase", "bonus"] = Field(
        default="bonus",
        description="purchase or bonus"
    )

    idempotency_key: str = Field(
        ...,
        min_length=1,
        description="Unique key for idempotent operations (e.g., purchase:<order_id>)"
    )

    description: Optional[str] = Field(default=None)


class CreditTransactionResponseDTO(BaseModel):
    """
    Response DTO for credit transaction operations

    Returned by DebitCredits, RefundCredits and GrantCredits.
    """

    transaction_id: str = Field(..., description="Transaction ID")
    user_id: str = Field(..., description="User identifier")
    type: str = Field(..., description="deduct, refund, purchase or bonus")
    amount: int = Field(..., description="Signed credit delta")
    credits_before: int = Field(..., description="Balance before transaction")
    credits_after: int = Field(..., description="Balance after transaction")
    description: Optional[str] = Field(default=None)
    related_job_id: Optional[str] = Field(default=None)
    idempotency_key: str = Field(..., description="Idempotency key")
    created_at: datetime = Field(..., description="Transaction timestamp")


class WalletResponseDTO(BaseModel):
    """
    Response DTO for wallet lookups
    """

    user_id: str
    credits: int
    total_earned: int
    total_spent: int
    last_updated: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "5b1c0d1e-3f4a-4b6c-8d9e-0a1b2c3d4e5f",
                "credits": 90,
                "total_earned": 100,
                "total_spent": 10,
                "last_updated": "2025-07-15T15:47:44Z",
            }
        }


class TransactionDTO(BaseModel):
    id: str
    type: str
    amount: int
    credits_after: int
    description: Optional[str] = None
    related_job_id: Optional[str] = None
    created_at: datetime


class ListTransactionsResponseDTO(BaseModel):
    transactions: List[TransactionDTO]
    total: int
    limit: int
    offset: int


class WalletDiscrepancyDTO(BaseModel):
    """A wallet whose counters disagree with its transaction log"""
    user_id: str
    wallet_credits: int
    calculated_credits: int
    wallet_total_spent: int
    calculated_total_spent: int


class ReconciliationResultDTO(BaseModel):
    total_wallets_checked: int
    discrepancies_found: int
    discrepancies: List[WalletDiscrepancyDTO]
    reconciliation_time: datetime
    execution_time_ms: int


def to_transaction_response(transaction) -> CreditTransactionResponseDTO:
    """
    Convert CreditTransaction entity to response DTO

    Balance snapshots are stored in the transaction, so a replayed request
    returns exactly what the original one did.
    """
    return CreditTransactionResponseDTO(
        transaction_id=transaction.id,
        user_id=transaction.user_id,
        type=transaction.type.value,
        amount=transaction.amount,
        credits_before=transaction.credits_before,
        credits_after=transaction.credits_after,
        description=transaction.description,
        related_job_id=transaction.related_job_id,
        idempotency_key=transaction.idempotency_key,
        created_at=transaction.created_at,
    )
