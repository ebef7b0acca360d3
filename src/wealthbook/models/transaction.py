"""SQLModel definitions for cash ledger transactions."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Transaction(SQLModel, table=True):
    """A single income or expense entry."""

    __tablename__: ClassVar[str] = "transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    occurred_at: datetime = Field(nullable=False, index=True)
    amount: float = Field(nullable=False, description="Always positive; direction is txn_type")
    txn_type: str = Field(default="expense", nullable=False, max_length=16, index=True)
    memo: str = Field(default="", max_length=255)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    currency: str = Field(default="INR", max_length=3, description="ISO-4217 currency code")
