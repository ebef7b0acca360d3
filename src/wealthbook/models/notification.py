"""In-app notification inbox."""

from __future__ import annotations

import json
from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Notification(SQLModel, table=True):
    """A persisted alert. ``created_at`` is wall time in the reference timezone."""

    __tablename__: ClassVar[str] = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    title: str = Field(nullable=False, max_length=160, index=True)
    message: str = Field(nullable=False, max_length=500)
    notif_type: str = Field(default="general", nullable=False, max_length=32)
    data: Optional[str] = Field(default=None, description="JSON-encoded payload")
    url: str = Field(default="/notifications", max_length=255)
    is_read: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.notif_type,
            "data": json.loads(self.data) if self.data else None,
            "url": self.url,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }
