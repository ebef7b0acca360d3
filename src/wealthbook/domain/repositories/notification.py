"""Notification and spending-history repository protocols."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol

from ...models.budget import Budget, BudgetLine
from ...models.notification import Notification
from ...models.transaction import Transaction


class NotificationRepository(Protocol):
    """Notification inbox persistence."""

    def create(self, notification: Notification, *, user_id: int) -> Notification:
        ...

    def titles_between(self, start: datetime, end: datetime, *, user_id: int) -> set[str]:
        """Titles already issued inside a window, used for same-day dedupe."""
        ...

    def list_recent(
        self, *, user_id: int, limit: int = 50, unread_only: bool = False
    ) -> list[Notification]:
        ...

    def mark_read(self, notification_id: int, *, user_id: int) -> Optional[Notification]:
        ...


class BudgetRepository(Protocol):
    """Budgets and their category lines."""

    def get_covering(self, day: date, *, user_id: int) -> Optional[Budget]:
        ...

    def get_lines_for_budget(self, budget_id: int, *, user_id: int) -> list[BudgetLine]:
        ...


class TransactionRepository(Protocol):
    """Cash-flow history the spending alerts read from."""

    def filter_by_date_range(
        self,
        start_date: datetime,
        end_date: datetime,
        *,
        user_id: int,
        txn_type: Optional[str] = None,
    ) -> list[Transaction]:
        ...
