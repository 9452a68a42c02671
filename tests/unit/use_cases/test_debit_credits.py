"""Unit tests for DebitCredits use case

Tests cover:
- Successful debit with balance snapshots
- Insufficient credits
- Idempotency guarantee, scoped to the key owner
- Lazy wallet creation
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from sqlalchemy.exc import IntegrityError

from src.app.use_cases.credits.debit_credits import DebitCredits
from src.app.use_cases.credits.dtos import DebitCommandDTO
from src.domain.wallet import Wallet
from src.domain.credit_transaction import CreditTransaction, TransactionType


@pytest.fixture
def mock_wallet_repo():
    repo = MagicMock()
    repo.create_if_missing = AsyncMock(return_value=False)
    return repo


@pytest.fixture
def mock_transaction_repo():
    repo = MagicMock()
    repo.get_by_idempotency_key = AsyncMock(return_value=None)
    repo.create = AsyncMock(side_effect=lambda transaction: transaction)
    return repo


@pytest.fixture
def debit_use_case(mock_uow, mock_wallet_repo, mock_transaction_repo):
    return DebitCredits(
        uow=mock_uow,
        wallet_repo=mock_wallet_repo,
        transaction_repo=mock_transaction_repo,
    )


@pytest.fixture
def sample_command():
    return DebitCommandDTO(
        user_id="user_123",
        amount=10,
        idempotency_key="deduct:req_1",
        description="Try-on generation",
    )


def make_wallet(credits: int, total_spent: int = 0) -> Wallet:
    return Wallet(
        user_id="user_123",
        credits=credits,
        total_earned=100,
        total_spent=total_spent,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )


@pytest.mark.asyncio
class TestDebitCreditsSuccess:

    async def test_debit_records_negative_amount_and_snapshots(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: Wallet with 12 credits
        When: 10 credits are debited
        Then: DEDUCT transaction of -10 with before=12, after=2 is committed
        """
        # Arrange
        mock_wallet_repo.try_debit = AsyncMock(return_value=make_wallet(2, total_spent=10))

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_ok()
        response = result.value
        assert response.type == "deduct"
        assert response.amount == -10
        assert response.credits_before == 12
        assert response.credits_after == 2
        assert response.idempotency_key == "deduct:req_1"
        assert response.related_job_id is None

        mock_wallet_repo.try_debit.assert_called_once_with("user_123", 10)
        mock_uow.commit.assert_called_once()

    async def test_new_wallet_is_committed_before_debit(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: User has no wallet yet
        When: Debit is requested
        Then: Wallet and welcome bonus are committed first, then the debit
        """
        # Arrange
        mock_wallet_repo.create_if_missing = AsyncMock(return_value=True)
        mock_wallet_repo.try_debit = AsyncMock(return_value=make_wallet(90, total_spent=10))

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_ok()
        assert mock_uow.commit.call_count == 2
        welcome = mock_transaction_repo.create.call_args_list[0].args[0]
        assert welcome.type == TransactionType.BONUS
        assert welcome.amount == 100
        assert welcome.idempotency_key == "welcome:user_123"


@pytest.mark.asyncio
class TestDebitCreditsInsufficient:

    async def test_insufficient_credits_returns_error(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: Wallet with 8 credits
        When: 10 credits are debited
        Then: INSUFFICIENT_CREDITS, no transaction written, nothing committed
        """
        # Arrange
        mock_wallet_repo.try_debit = AsyncMock(return_value=None)
        mock_wallet_repo.get_by_user_id = AsyncMock(return_value=make_wallet(8))

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_err()
        assert result.error.code == "INSUFFICIENT_CREDITS"
        assert "Available: 8" in result.error.message
        mock_transaction_repo.create.assert_not_called()
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_called_once()


@pytest.mark.asyncio
class TestDebitCreditsIdempotency:

    async def test_replayed_key_returns_original_transaction(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: A debit with this idempotency key already exists
        When: The same debit is requested again
        Then: The original transaction is returned and the wallet is untouched
        """
        # Arrange
        existing = CreditTransaction(
            id="txn_1",
            user_id="user_123",
            type=TransactionType.DEDUCT,
            amount=-10,
            credits_before=12,
            credits_after=2,
            idempotency_key="deduct:req_1",
            created_at=datetime.utcnow(),
        )
        mock_transaction_repo.get_by_idempotency_key = AsyncMock(return_value=existing)
        mock_wallet_repo.try_debit = AsyncMock()

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_ok()
        assert result.value.transaction_id == "txn_1"
        assert result.value.credits_after == 2
        mock_wallet_repo.try_debit.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_key_owned_by_another_user_is_refused(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: Another user already holds a debit under this idempotency key
        When: user_123 debits with the same key
        Then: IDEMPOTENCY_CONFLICT; the other user's transaction is not returned
        """
        # Arrange
        foreign = CreditTransaction(
            id="txn_other",
            user_id="user_456",
            type=TransactionType.DEDUCT,
            amount=-10,
            credits_before=50,
            credits_after=40,
            idempotency_key="deduct:req_1",
            created_at=datetime.utcnow(),
        )
        mock_transaction_repo.get_by_idempotency_key = AsyncMock(return_value=foreign)
        mock_wallet_repo.try_debit = AsyncMock()

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_err()
        assert result.error.code == "IDEMPOTENCY_CONFLICT"
        mock_wallet_repo.try_debit.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_concurrent_duplicate_returns_winner(
        self, debit_use_case, mock_wallet_repo, mock_transaction_repo, mock_uow, sample_command
    ):
        """
        Given: A concurrent request with the same key commits first
        When: Our insert hits the unique constraint
        Then: We roll back and return the winner's transaction
        """
        # Arrange
        winner = CreditTransaction(
            id="txn_winner",
            user_id="user_123",
            type=TransactionType.DEDUCT,
            amount=-10,
            credits_before=12,
            credits_after=2,
            idempotency_key="deduct:req_1",
            created_at=datetime.utcnow(),
        )
        mock_transaction_repo.get_by_idempotency_key = AsyncMock(side_effect=[None, winner])
        mock_wallet_repo.try_debit = AsyncMock(return_value=make_wallet(2))
        mock_transaction_repo.create = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
        )

        # Act
        result = await debit_use_case.execute(sample_command)

        # Assert
        assert result.is_ok()
        assert result.value.transaction_id == "txn_winner"
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestDebitCreditsErrors:

    async def test_repository_failure_returns_debit_failed(
        self, debit_use_case, mock_wallet_repo, mock_uow, sample_command
    ):
        mock_wallet_repo.try_debit = AsyncMock(side_effect=RuntimeError("connection lost"))

        result = await debit_use_case.execute(sample_command)

        assert result.is_err()
        assert result.error.code == "DEBIT_FAILED"
        assert "connection lost" in result.error.reason
        mock_uow.rollback.assert_called_once()
