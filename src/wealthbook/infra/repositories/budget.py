"""SQLModel implementation of Budget repository."""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlmodel import select

from ...models.budget import Budget, BudgetLine
from ..database import SessionFactory


class SQLModelBudgetRepository:
    """SQLModel-based budget repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_covering(self, day: date, *, user_id: int) -> Optional[Budget]:
        """Budget whose period contains *day*, latest start first."""
        with self.session_factory() as session:
            statement = (
                select(Budget)
                .where(Budget.user_id == user_id)
                .where(Budget.period_start <= day)
                .where(Budget.period_end >= day)
                .order_by(Budget.period_start.desc())  # type: ignore
            )
            budget = session.exec(statement).first()
            if budget:
                session.expunge(budget)
            return budget

    def get_lines_for_budget(self, budget_id: int, *, user_id: int) -> list[BudgetLine]:
        """Get all lines for a budget."""
        with self.session_factory() as session:
            statement = select(BudgetLine).where(
                BudgetLine.budget_id == budget_id, BudgetLine.user_id == user_id
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows
