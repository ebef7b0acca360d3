"""SQLModel implementation of the notification repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import select

from ...models.notification import Notification
from ..database import SessionFactory


class SQLModelNotificationRepository:
    """Notification inbox persistence."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def create(self, notification: Notification, *, user_id: int) -> Notification:
        with self.session_factory() as session:
            notification.user_id = user_id
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification

    def titles_between(self, start: datetime, end: datetime, *, user_id: int) -> set[str]:
        """Titles of notifications created inside [start, end]."""
        with self.session_factory() as session:
            statement = (
                select(Notification.title)
                .where(Notification.user_id == user_id)
                .where(Notification.created_at >= start)
                .where(Notification.created_at <= end)
            )
            return set(session.exec(statement).all())

    def list_recent(self, *, user_id: int, limit: int = 50, unread_only: bool = False) -> list[Notification]:
        with self.session_factory() as session:
            statement = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                statement = statement.where(Notification.is_read == False)  # noqa: E712
            statement = statement.order_by(
                Notification.created_at.desc(), Notification.id.desc()  # type: ignore
            ).limit(limit)
            return list(session.exec(statement).all())

    def mark_read(self, notification_id: int, *, user_id: int) -> Optional[Notification]:
        with self.session_factory() as session:
            notification = session.exec(
                select(Notification).where(
                    Notification.id == notification_id, Notification.user_id == user_id
                )
            ).first()
            if notification is None:
                return None
            notification.is_read = True
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification
