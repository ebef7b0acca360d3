"""Price alert repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from sqlmodel import Session

from ...models.price_alert import PriceAlert


class PriceAlertRepository(Protocol):
    def get_by_id(self, alert_id: int, *, user_id: int) -> Optional[PriceAlert]:
        ...

    def list_all(self, *, user_id: int) -> list[PriceAlert]:
        ...

    def list_active(self) -> list[PriceAlert]:
        """Active alerts across every user."""
        ...

    def create(self, alert: PriceAlert, *, user_id: int) -> PriceAlert:
        ...

    def update(self, alert: PriceAlert, *, user_id: int) -> PriceAlert:
        ...

    def delete(self, alert_id: int, *, user_id: int) -> bool:
        ...

    def lock_for_update(self, session: Session, alert_id: int) -> Optional[PriceAlert]:
        ...
