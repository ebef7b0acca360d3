"""SQLModel implementation of the SIP repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...models.sip import Sip, SipChangeLog, SipInstallment
from ..database import SessionFactory


class SQLModelSipRepository:
    """SIPs, their installments and change log."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, sip_id: int, *, user_id: int) -> Optional[Sip]:
        with self.session_factory() as session:
            return session.exec(select(Sip).where(Sip.id == sip_id, Sip.user_id == user_id)).first()

    def list_all(self, *, user_id: int) -> list[Sip]:
        with self.session_factory() as session:
            statement = (
                select(Sip)
                .where(Sip.user_id == user_id)
                .order_by(Sip.created_at.desc(), Sip.id.desc())  # type: ignore
            )
            return list(session.exec(statement).all())

    def list_active(self, *, user_id: Optional[int] = None) -> list[Sip]:
        """Active SIPs for one user, or for every user when *user_id* is None."""
        with self.session_factory() as session:
            statement = select(Sip).where(Sip.status == "active")
            if user_id is not None:
                statement = statement.where(Sip.user_id == user_id)
            return list(session.exec(statement.order_by(Sip.id)).all())  # type: ignore

    def delete(self, sip_id: int, *, user_id: int) -> bool:
        with self.session_factory() as session:
            sip = session.exec(select(Sip).where(Sip.id == sip_id, Sip.user_id == user_id)).first()
            if sip is None:
                return False
            for model in (SipInstallment, SipChangeLog):
                for row in session.exec(select(model).where(model.sip_id == sip_id)).all():
                    session.delete(row)
            session.flush()
            session.delete(sip)
            session.commit()
            return True

    def lock_for_update(self, session: Session, sip_id: int, *, user_id: int) -> Optional[Sip]:
        return session.exec(
            select(Sip).where(Sip.id == sip_id, Sip.user_id == user_id).with_for_update()
        ).first()

    def list_installments(
        self, sip_id: int, *, user_id: int, session: Session | None = None, newest_first: bool = False
    ) -> list[SipInstallment]:
        order = SipInstallment.due_date.desc() if newest_first else SipInstallment.due_date  # type: ignore
        statement = (
            select(SipInstallment)
            .where(SipInstallment.sip_id == sip_id, SipInstallment.user_id == user_id)
            .order_by(order, SipInstallment.id)  # type: ignore
        )
        if session is not None:
            return list(session.exec(statement).all())
        with self.session_factory() as own_session:
            return list(own_session.exec(statement).all())

    def list_change_logs(self, sip_id: int, *, user_id: int) -> list[SipChangeLog]:
        with self.session_factory() as session:
            statement = (
                select(SipChangeLog)
                .where(SipChangeLog.sip_id == sip_id, SipChangeLog.user_id == user_id)
                .order_by(SipChangeLog.created_at.desc(), SipChangeLog.id.desc())  # type: ignore
            )
            return list(session.exec(statement).all())
