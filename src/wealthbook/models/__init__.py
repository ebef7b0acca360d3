"""SQLModel table exports."""

from .budget import Budget, BudgetLine
from .category import Category
from .liability import Liability
from .notification import Notification
from .portfolio import Holding, InvestmentTransaction
from .price_alert import PriceAlert
from .sip import Sip, SipChangeLog, SipInstallment
from .transaction import Transaction
from .user import User

__all__ = [
    "Budget",
    "BudgetLine",
    "Category",
    "Holding",
    "InvestmentTransaction",
    "Liability",
    "Notification",
    "PriceAlert",
    "Sip",
    "SipChangeLog",
    "SipInstallment",
    "Transaction",
    "User",
]
