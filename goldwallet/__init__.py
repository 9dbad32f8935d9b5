"""
Gold Wallet Settlement Backend

This module provides:
- Buy/sell requests priced at the admin-set gold price, frozen at creation
- Eager gold reservation for SELL, credit-on-approval for BUY
- Admin approval lifecycle: pending → success / failed
- Per-user and per-transaction locking with all-or-nothing writes
- Email-identified users with opaque session tokens
"""

from .models import (
    UserRole,
    TransactionType,
    TransactionStatus,
    PaymentMethod,
    SettlementAction,
    User,
    GoldPrice,
    PaymentMethodInfo,
    Transaction,
)
from .backend import GoldWalletBackend
from .service import SettlementService

__all__ = [
    "UserRole",
    "TransactionType",
    "TransactionStatus",
    "PaymentMethod",
    "SettlementAction",
    "User",
    "GoldPrice",
    "PaymentMethodInfo",
    "Transaction",
    "GoldWalletBackend",
    "SettlementService",
]
