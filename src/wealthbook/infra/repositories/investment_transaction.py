"""SQLModel implementation of the investment ledger repository."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlmodel import Session, select

from ...models.portfolio import InvestmentTransaction
from ..database import SessionFactory


class SQLModelInvestmentTransactionRepository:
    """Ledger entries, always returned in chronological order unless noted."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def list_for_holding(
        self, holding_id: int, *, user_id: int, session: Session | None = None
    ) -> list[InvestmentTransaction]:
        """Ledger of one holding, oldest first. Reuses *session* when given."""
        statement = (
            select(InvestmentTransaction)
            .where(InvestmentTransaction.holding_id == holding_id)
            .where(InvestmentTransaction.user_id == user_id)
            .order_by(InvestmentTransaction.occurred_at, InvestmentTransaction.id)  # type: ignore
        )
        if session is not None:
            return list(session.exec(statement).all())
        with self.session_factory() as own_session:
            return list(own_session.exec(statement).all())

    def list_for_user(
        self,
        *,
        user_id: int,
        until: Optional[datetime] = None,
        types: Iterable[str] | None = None,
    ) -> list[InvestmentTransaction]:
        """All ledger entries of a user up to *until*, oldest first."""
        with self.session_factory() as session:
            statement = select(InvestmentTransaction).where(
                InvestmentTransaction.user_id == user_id
            )
            if until is not None:
                statement = statement.where(InvestmentTransaction.occurred_at <= until)
            if types is not None:
                statement = statement.where(
                    InvestmentTransaction.txn_type.in_(list(types))  # type: ignore[attr-defined]
                )
            statement = statement.order_by(
                InvestmentTransaction.occurred_at, InvestmentTransaction.id  # type: ignore
            )
            return list(session.exec(statement).all())
