"""Repository protocol definitions for domain layer."""

from .holding import HoldingRepository, InvestmentTransactionRepository
from .liability import LiabilityRepository
from .notification import BudgetRepository, NotificationRepository, TransactionRepository
from .price_alert import PriceAlertRepository
from .sip import SipRepository

__all__ = [
    "BudgetRepository",
    "HoldingRepository",
    "InvestmentTransactionRepository",
    "LiabilityRepository",
    "NotificationRepository",
    "PriceAlertRepository",
    "SipRepository",
    "TransactionRepository",
]
