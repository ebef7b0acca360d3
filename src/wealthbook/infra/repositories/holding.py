"""SQLModel implementation of Holding repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...models.portfolio import Holding, InvestmentTransaction
from ...models.sip import Sip
from ..database import SessionFactory


class SQLModelHoldingRepository:
    """SQLModel-based holding repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, holding_id: int, *, user_id: int) -> Optional[Holding]:
        """Retrieve a holding by ID."""
        with self.session_factory() as session:
            return session.exec(
                select(Holding).where(Holding.id == holding_id, Holding.user_id == user_id)
            ).first()

    def list_all(self, *, user_id: int) -> list[Holding]:
        """List all holdings."""
        with self.session_factory() as session:
            statement = (
                select(Holding)
                .where(Holding.user_id == user_id)
                .order_by(Holding.symbol)  # type: ignore
            )
            return list(session.exec(statement).all())

    def delete(self, holding_id: int, *, user_id: int) -> bool:
        """Delete a holding and its ledger. Returns False when nothing matched."""
        with self.session_factory() as session:
            holding = session.exec(
                select(Holding).where(Holding.id == holding_id, Holding.user_id == user_id)
            ).first()
            if holding is None:
                return False
            for txn in session.exec(
                select(InvestmentTransaction).where(InvestmentTransaction.holding_id == holding_id)
            ).all():
                session.delete(txn)
            for sip in session.exec(select(Sip).where(Sip.linked_holding_id == holding_id)).all():
                sip.linked_holding_id = None
                session.add(sip)
            session.flush()
            session.delete(holding)
            session.commit()
            return True

    def lock_for_update(self, session: Session, holding_id: int, *, user_id: int) -> Optional[Holding]:
        """Load a holding inside *session* with a row lock held until commit."""
        return session.exec(
            select(Holding)
            .where(Holding.id == holding_id, Holding.user_id == user_id)
            .with_for_update()
        ).first()
