"""SQLModel implementation of Liability repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...models.liability import Liability
from ..database import SessionFactory


class SQLModelLiabilityRepository:
    """SQLModel-based liability repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, liability_id: int, *, user_id: int) -> Optional[Liability]:
        """Retrieve a liability by ID."""
        with self.session_factory() as session:
            return session.exec(
                select(Liability).where(Liability.id == liability_id, Liability.user_id == user_id)
            ).first()

    def list_all(self, *, user_id: int) -> list[Liability]:
        """List all liabilities."""
        with self.session_factory() as session:
            statement = (
                select(Liability)
                .where(Liability.user_id == user_id)
                .order_by(Liability.name)  # type: ignore
            )
            return list(session.exec(statement).all())

    def create(self, liability: Liability, *, user_id: int) -> Liability:
        """Create a new liability."""
        with self.session_factory() as session:
            liability.user_id = user_id
            session.add(liability)
            session.commit()
            session.refresh(liability)
            return liability

    def update(self, liability: Liability, *, user_id: int) -> Liability:
        """Update an existing liability."""
        with self.session_factory() as session:
            liability.user_id = user_id
            session.add(liability)
            session.commit()
            session.refresh(liability)
            return liability

    def delete(self, liability_id: int, *, user_id: int) -> bool:
        """Delete a liability by ID."""
        with self.session_factory() as session:
            liability = session.exec(
                select(Liability).where(Liability.id == liability_id, Liability.user_id == user_id)
            ).first()
            if liability is None:
                return False
            session.delete(liability)
            session.commit()
            return True

    def get_total_debt(self, *, user_id: int) -> float:
        """Calculate total outstanding debt."""
        return sum(liability.outstanding for liability in self.list_all(user_id=user_id))

    def get_weighted_rate(self, *, user_id: int) -> float:
        """Outstanding-weighted average interest rate across all liabilities."""
        liabilities = self.list_all(user_id=user_id)
        total = sum(liability.outstanding for liability in liabilities)
        if total == 0:
            return 0.0
        weighted = sum(liability.outstanding * liability.interest_rate for liability in liabilities)
        return weighted / total
