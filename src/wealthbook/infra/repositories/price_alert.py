"""SQLModel implementation of the price alert repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...models.price_alert import PriceAlert
from ..database import SessionFactory

LIST_LIMIT = 100


class SQLModelPriceAlertRepository:
    """Per-user price targets plus the cross-user scan used by the job."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, alert_id: int, *, user_id: int) -> Optional[PriceAlert]:
        with self.session_factory() as session:
            return session.exec(
                select(PriceAlert).where(PriceAlert.id == alert_id, PriceAlert.user_id == user_id)
            ).first()

    def list_all(self, *, user_id: int) -> list[PriceAlert]:
        """Newest first, capped at ``LIST_LIMIT`` rows."""
        with self.session_factory() as session:
            statement = (
                select(PriceAlert)
                .where(PriceAlert.user_id == user_id)
                .order_by(PriceAlert.created_at.desc(), PriceAlert.id.desc())  # type: ignore
                .limit(LIST_LIMIT)
            )
            return list(session.exec(statement).all())

    def list_active(self) -> list[PriceAlert]:
        with self.session_factory() as session:
            statement = (
                select(PriceAlert)
                .where(PriceAlert.status == "active")
                .order_by(PriceAlert.id)  # type: ignore
            )
            return list(session.exec(statement).all())

    def create(self, alert: PriceAlert, *, user_id: int) -> PriceAlert:
        with self.session_factory() as session:
            alert.user_id = user_id
            session.add(alert)
            session.commit()
            session.refresh(alert)
            return alert

    def update(self, alert: PriceAlert, *, user_id: int) -> PriceAlert:
        with self.session_factory() as session:
            alert.user_id = user_id
            session.add(alert)
            session.commit()
            session.refresh(alert)
            return alert

    def delete(self, alert_id: int, *, user_id: int) -> bool:
        with self.session_factory() as session:
            alert = session.exec(
                select(PriceAlert).where(PriceAlert.id == alert_id, PriceAlert.user_id == user_id)
            ).first()
            if alert is None:
                return False
            session.delete(alert)
            session.commit()
            return True

    def lock_for_update(self, session: Session, alert_id: int) -> Optional[PriceAlert]:
        return session.exec(
            select(PriceAlert).where(PriceAlert.id == alert_id).with_for_update()
        ).first()
