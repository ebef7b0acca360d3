"""Concrete repository implementations using SQLModel."""

from .budget import SQLModelBudgetRepository
from .category import SQLModelCategoryRepository
from .holding import SQLModelHoldingRepository
from .investment_transaction import SQLModelInvestmentTransactionRepository
from .liability import SQLModelLiabilityRepository
from .notification import SQLModelNotificationRepository
from .price_alert import SQLModelPriceAlertRepository
from .sip import SQLModelSipRepository
from .transaction import SQLModelTransactionRepository
from .user import SQLModelUserRepository

__all__ = [
    "SQLModelBudgetRepository",
    "SQLModelCategoryRepository",
    "SQLModelHoldingRepository",
    "SQLModelInvestmentTransactionRepository",
    "SQLModelLiabilityRepository",
    "SQLModelNotificationRepository",
    "SQLModelPriceAlertRepository",
    "SQLModelSipRepository",
    "SQLModelTransactionRepository",
    "SQLModelUserRepository",
]
