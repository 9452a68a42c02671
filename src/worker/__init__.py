"""Background workers for the try-on service"""
from .stuck_job_reaper import StuckJobReaperWorker
from .wallet_reconciler import WalletReconcilerWorker

__all__ = ["StuckJobReaperWorker", "WalletReconcilerWorker"]
