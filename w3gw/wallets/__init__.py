"""Wallet backends: one per supported chain family."""

from w3gw.wallets.base import WalletBackend
from w3gw.wallets.composer import GasPolicy, TransactionRequest, compose_transaction
from w3gw.wallets.rollback import Rollback, RollbackDetector

__all__ = [
    "WalletBackend",
    "GasPolicy",
    "TransactionRequest",
    "compose_transaction",
    "Rollback",
    "RollbackDetector",
]
