"""Portfolio models: holdings and their investment ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

ASSET_TYPES = ("stock", "etf", "mutual_fund", "crypto")
LEDGER_TYPES = ("buy", "sell", "sip", "dividend", "fee")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Holding(SQLModel, table=True):
    """A position in a tradable instrument.

    ``quantity`` and ``avg_buy_price`` are cached aggregates of the ledger and
    are only written by the ledger recomputation service once entries exist.
    """

    __tablename__: ClassVar[str] = "holding"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    symbol: str = Field(index=True, nullable=False, max_length=32)
    name: str = Field(default="", max_length=128)
    asset_type: str = Field(default="stock", nullable=False, max_length=16, index=True)
    quantity: float = Field(nullable=False, default=0.0)
    avg_buy_price: float = Field(nullable=False, default=0.0)
    current_price: Optional[float] = Field(default=None)
    currency: str = Field(default="INR", max_length=3)
    last_updated: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    @property
    def market_price(self) -> float:
        """Last observed price, falling back to the average cost."""

        if self.current_price is not None and self.current_price > 0:
            return float(self.current_price)
        return float(self.avg_buy_price or 0.0)

    @property
    def market_value(self) -> float:
        return float(self.quantity or 0.0) * self.market_price


class InvestmentTransaction(SQLModel, table=True):
    """One immutable ledger event against a holding."""

    __tablename__: ClassVar[str] = "investment_transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    holding_id: int = Field(foreign_key="holding.id", nullable=False, index=True)
    txn_type: str = Field(nullable=False, max_length=16, index=True)
    quantity: Optional[float] = Field(default=None)
    price: Optional[float] = Field(default=None)
    amount: float = Field(nullable=False, description="Money moved by the event")
    fees: float = Field(default=0.0, nullable=False)
    taxes: float = Field(default=0.0, nullable=False)
    note: str = Field(default="", max_length=255)
    occurred_at: datetime = Field(nullable=False, index=True)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "holding_id": self.holding_id,
            "type": self.txn_type,
            "quantity": self.quantity,
            "price": self.price,
            "amount": self.amount,
            "fees": self.fees,
            "taxes": self.taxes,
            "note": self.note,
            "date": self.occurred_at.isoformat(),
        }
