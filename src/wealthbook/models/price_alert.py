"""User-defined price targets watched by the price alert job."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

PRICE_ALERT_DIRECTIONS = ("below", "above")
PRICE_ALERT_STATUSES = ("active", "paused", "triggered")


class PriceAlert(SQLModel, table=True):
    """Notify when ``symbol`` crosses ``target_price`` in ``direction``.

    One-shot alerts move to ``triggered`` after firing; repeating alerts stay
    ``active`` and wait ``cooldown_minutes`` between notifications.
    """

    __tablename__: ClassVar[str] = "price_alert"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    symbol: str = Field(nullable=False, max_length=32, index=True)
    direction: str = Field(default="below", nullable=False, max_length=8)
    target_price: float = Field(nullable=False)
    notify_once: bool = Field(default=True, nullable=False)
    cooldown_minutes: int = Field(default=60, nullable=False)
    status: str = Field(default="active", nullable=False, max_length=16, index=True)
    created_at: datetime = Field(nullable=False)
    last_checked_at: Optional[datetime] = Field(default=None)
    last_notified_at: Optional[datetime] = Field(default=None)
    triggered_at: Optional[datetime] = Field(default=None)

    def to_dict(self) -> dict:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction,
            "target_price": self.target_price,
            "notify_once": self.notify_once,
            "cooldown_minutes": self.cooldown_minutes,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "last_checked_at": _iso(self.last_checked_at),
            "last_notified_at": _iso(self.last_notified_at),
            "triggered_at": _iso(self.triggered_at),
        }
