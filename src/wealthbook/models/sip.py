"""Systematic investment plan tables."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

SIP_FREQUENCIES = ("monthly", "weekly", "quarterly")
SIP_STATUSES = ("active", "paused", "closed", "migrated")
PRICE_SOURCES = ("market", "mf_nav")
INSTALLMENT_STATUSES = ("due", "paid", "skipped", "missed")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Sip(SQLModel, table=True):
    """A recurring-contribution instruction priced from one source."""

    __tablename__: ClassVar[str] = "sip"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=128)
    fund_name: str = Field(nullable=False, max_length=160)
    symbol: Optional[str] = Field(default=None, max_length=32, index=True)
    scheme_code: Optional[str] = Field(default=None, max_length=32)
    price_source: str = Field(default="market", nullable=False, max_length=8)
    amount: float = Field(nullable=False)
    frequency: str = Field(default="monthly", nullable=False, max_length=16)
    anchor_day: int = Field(default=1, ge=1, le=31)
    start_date: date = Field(nullable=False)
    end_date: Optional[date] = Field(default=None)
    total_invested: float = Field(default=0.0, nullable=False)
    units: float = Field(default=0.0, nullable=False)
    current_value: float = Field(default=0.0, nullable=False)
    last_price: Optional[float] = Field(default=None)
    last_debit_date: Optional[datetime] = Field(default=None)
    last_updated: Optional[datetime] = Field(default=None)
    last_quote_at: Optional[datetime] = Field(default=None)
    expected_return: float = Field(default=12.0, nullable=False)
    status: str = Field(default="active", nullable=False, max_length=16, index=True)
    linked_holding_id: Optional[int] = Field(default=None, foreign_key="holding.id")
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "fund_name": self.fund_name,
            "symbol": self.symbol,
            "scheme_code": self.scheme_code,
            "price_source": self.price_source,
            "amount": self.amount,
            "frequency": self.frequency,
            "anchor_day": self.anchor_day,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "total_invested": round(self.total_invested, 2),
            "units": round(self.units, 6),
            "current_value": round(self.current_value, 2),
            "last_price": self.last_price,
            "last_debit_date": self.last_debit_date.isoformat() if self.last_debit_date else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "last_quote_at": self.last_quote_at.isoformat() if self.last_quote_at else None,
            "expected_return": self.expected_return,
            "status": self.status,
            "linked_holding_id": self.linked_holding_id,
        }


class SipInstallment(SQLModel, table=True):
    """One scheduled or manual contribution for a SIP."""

    __tablename__: ClassVar[str] = "sip_installment"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    sip_id: int = Field(foreign_key="sip.id", nullable=False, index=True)
    due_date: date = Field(nullable=False, index=True)
    status: str = Field(default="due", nullable=False, max_length=16)
    amount: float = Field(nullable=False)
    nav_or_price: Optional[float] = Field(default=None)
    units: Optional[float] = Field(default=None)
    is_manual: bool = Field(default=False, nullable=False)
    note: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sip_id": self.sip_id,
            "due_date": self.due_date.isoformat(),
            "status": self.status,
            "amount": self.amount,
            "nav_or_price": self.nav_or_price,
            "units": self.units,
            "is_manual": self.is_manual,
            "note": self.note,
        }


class SipChangeLog(SQLModel, table=True):
    """Audit trail of SIP mutations."""

    __tablename__: ClassVar[str] = "sip_change_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    sip_id: int = Field(foreign_key="sip.id", nullable=False, index=True)
    action: str = Field(nullable=False, max_length=48)
    field: Optional[str] = Field(default=None, max_length=48)
    from_value: Optional[str] = Field(default=None, max_length=255)
    to_value: Optional[str] = Field(default=None, max_length=255)
    note: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "field": self.field,
            "from_value": self.from_value,
            "to_value": self.to_value,
            "note": self.note,
            "created_at": self.created_at.isoformat(),
        }
