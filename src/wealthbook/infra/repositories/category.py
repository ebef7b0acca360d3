"""SQLModel implementation of Category repository."""

from __future__ import annotations

from sqlmodel import select

from ...models.category import Category
from ..database import SessionFactory


class SQLModelCategoryRepository:
    """SQLModel-based category repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def list_all(self, *, user_id: int) -> list[Category]:
        """List all categories ordered by name."""
        with self.session_factory() as session:
            statement = (
                select(Category).where(Category.user_id == user_id).order_by(Category.name)  # type: ignore
            )
            return list(session.exec(statement).all())
