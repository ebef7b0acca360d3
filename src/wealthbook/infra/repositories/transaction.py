"""SQLModel implementation of the cash Transaction repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import select

from ...models.transaction import Transaction
from ..database import SessionFactory


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def filter_by_date_range(
        self,
        start_date: datetime,
        end_date: datetime,
        *,
        user_id: int,
        txn_type: Optional[str] = None,
    ) -> list[Transaction]:
        """Get transactions within a date range."""
        with self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .where(Transaction.occurred_at >= start_date)
                .where(Transaction.occurred_at <= end_date)
            )
            if txn_type is not None:
                statement = statement.where(Transaction.txn_type == txn_type)
            statement = statement.order_by(Transaction.occurred_at.desc())  # type: ignore
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

