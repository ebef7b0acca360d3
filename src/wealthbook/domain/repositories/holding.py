"""Holding and investment ledger repository protocols."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from sqlmodel import Session

from ...models.portfolio import Holding, InvestmentTransaction


class HoldingRepository(Protocol):
    """Repository for managing portfolio holding entities."""

    def get_by_id(self, holding_id: int, *, user_id: int) -> Optional[Holding]:
        """Retrieve a holding by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Holding]:
        """List all holdings."""
        ...

    def delete(self, holding_id: int, *, user_id: int) -> bool:
        """Delete a holding and its ledger."""
        ...

    def lock_for_update(self, session: Session, holding_id: int, *, user_id: int) -> Optional[Holding]:
        """Load a holding with a row lock inside an open session."""
        ...


class InvestmentTransactionRepository(Protocol):
    """Read access to investment ledger entries."""

    def list_for_holding(
        self, holding_id: int, *, user_id: int, session: Session | None = None
    ) -> list[InvestmentTransaction]:
        ...

    def list_for_user(
        self,
        *,
        user_id: int,
        until: Optional[datetime] = None,
        types: Iterable[str] | None = None,
    ) -> list[InvestmentTransaction]:
        ...
