"""Credits API Routes

FastAPI routes for the caller's wallet and transaction history.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.api.auth import get_current_user_id, require_admin
from src.api.error import ClientError
from src.api.schemas.generation_request import GrantRequestSchema
from src.app.use_cases.credits.dtos import (
    CreditTransactionResponseDTO,
    GrantCommandDTO,
    ListTransactionsResponseDTO,
    WalletResponseDTO,
)
from src.app.use_cases.credits.get_wallet import GetWallet
from src.app.use_cases.credits.grant_credits import GrantCredits
from src.app.use_cases.credits.list_transactions import ListTransactions
from src.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from src.adapter.repositories.wallet_repository import SqlAlchemyWalletRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.get(
    "/wallet",
    response_model=WalletResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_wallet(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Current credit balance of the caller.

    The wallet is created with the welcome balance on first access.

    **Returns:**
    - 200: Wallet
    - 401: Not authenticated
    """
    use_case = GetWallet(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyWalletRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        starting_credits=ApplicationConfig.DEFAULT_STARTING_CREDITS,
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value


@router.get(
    "/transactions",
    response_model=ListTransactionsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_transactions(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Transaction history of the caller, newest first.

    **Query parameters:**
    - `limit`: Page size (1-100, default 20)
    - `offset`: Number of transactions to skip
    """
    use_case = ListTransactions(SqlAlchemyCreditTransactionRepository(session))
    result = await use_case.execute(user_id=user_id, limit=limit, offset=offset)
    return result.value


@router.post(
    "/grant",
    response_model=CreditTransactionResponseDTO,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def grant_credits(
    request: GrantRequestSchema,
    session: AsyncSession = Depends(get_session),
):
    """
    Add purchased or bonus credits to a user's wallet (admin only).

    Requires the `X-Admin-Token` header. Repeated requests with the same
    `idempotency_key` return the original transaction.
    """
    use_case = GrantCredits(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyWalletRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
        starting_credits=ApplicationConfig.DEFAULT_STARTING_CREDITS,
    )
    result = await use_case.execute(
        GrantCommandDTO(
            user_id=request.user_id,
            amount=request.amount,
            type=request.type,
            idempotency_key=request.idempotency_key,
            description=request.description,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value
