"""SQLModel implementation of User repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...models.user import User
from ..database import SessionFactory


class SQLModelUserRepository:
    """Lookup and creation of the users every record is scoped to."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self.session_factory() as session:
            return session.get(User, user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        with self.session_factory() as session:
            return session.exec(select(User).where(User.username == username)).first()

    def list_ids(self) -> list[int]:
        with self.session_factory() as session:
            return [uid for uid in session.exec(select(User.id).order_by(User.id)).all()]  # type: ignore

    def create(self, user: User) -> User:
        with self.session_factory() as session:
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
