"""Notification persistence plus best-effort push delivery."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Protocol

from ..domain.repositories import NotificationRepository
from ..infra.database import SessionFactory
from ..infra.repositories import SQLModelNotificationRepository
from ..logging_config import get_logger
from ..models.notification import Notification
from .dates import DEFAULT_TIMEZONE, local_now

logger = get_logger("notifications")


class PushSender(Protocol):
    """Delivery channel for a stored notification (web push, mobile, ...)."""

    def send(self, user_id: int, payload: dict) -> None:
        ...


class LoggingPushSender:
    """Default sender: records the push instead of delivering it."""

    def send(self, user_id: int, payload: dict) -> None:
        logger.info("Push queued", extra={"user_id": user_id, "title": payload.get("title")})


class NotificationSink:
    def __init__(
        self,
        session_factory: SessionFactory,
        push_sender: Optional[PushSender] = None,
        *,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.repository: NotificationRepository = SQLModelNotificationRepository(session_factory)
        self.push_sender = push_sender or LoggingPushSender()
        self.tz_name = tz_name

    def create_notification_and_push(
        self,
        user_id: int,
        title: str,
        message: str,
        notif_type: str = "general",
        data: Optional[dict[str, Any]] = None,
        url: str = "/notifications",
        created_at: Optional[datetime] = None,
    ) -> Notification:
        """Persist the notification, then hand it to the push sender.

        Push failures are logged; the stored notification stands.
        """

        notification = self.repository.create(
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                notif_type=notif_type or "general",
                data=json.dumps(data) if data else None,
                url=url,
                created_at=created_at or local_now(self.tz_name),
            ),
            user_id=user_id,
        )
        try:
            self.push_sender.send(user_id, {"title": title, "body": message, "url": url})
        except Exception:
            logger.warning(
                "Push delivery failed",
                extra={"user_id": user_id, "notification_id": notification.id},
                exc_info=True,
            )
        return notification

    def list_recent(self, *, user_id: int, limit: int = 50, unread_only: bool = False) -> list[Notification]:
        return self.repository.list_recent(user_id=user_id, limit=limit, unread_only=unread_only)

    def mark_read(self, notification_id: int, *, user_id: int) -> Optional[Notification]:
        return self.repository.mark_read(notification_id, user_id=user_id)
