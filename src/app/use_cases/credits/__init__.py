"""Credit ledger use cases"""
from .debit_credits import DebitCredits
from .refund_credits import RefundCredits
from .grant_credits import GrantCredits
from .get_wallet import GetWallet, ensure_wallet
from .list_transactions import ListTransactions
from .reconcile_wallets import ReconcileWallets
from .dtos import (
    DebitCommandDTO,
    RefundCommandDTO,
    GrantCommandDTO,
    CreditTransactionResponseDTO,
    WalletResponseDTO,
    TransactionDTO,
    ListTransactionsResponseDTO,
    WalletDiscrepancyDTO,
    ReconciliationResultDTO,
)

__all__ = [
    "DebitCredits",
    "RefundCredits",
    "GrantCredits",
    "GetWallet",
    "ensure_wallet",
    "ListTransactions",
    "ReconcileWallets",
    "DebitCommandDTO",
    "RefundCommandDTO",
    "GrantCommandDTO",
    "CreditTransactionResponseDTO",
    "WalletResponseDTO",
    "TransactionDTO",
    "ListTransactionsResponseDTO",
    "WalletDiscrepancyDTO",
    "ReconciliationResultDTO",
]
