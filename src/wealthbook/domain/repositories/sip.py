"""SIP repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from sqlmodel import Session

from ...models.sip import Sip, SipChangeLog, SipInstallment


class SipRepository(Protocol):
    """Persistence for SIPs, installments and their audit trail."""

    def get_by_id(self, sip_id: int, *, user_id: int) -> Optional[Sip]:
        ...

    def list_all(self, *, user_id: int) -> list[Sip]:
        ...

    def list_active(self, *, user_id: Optional[int] = None) -> list[Sip]:
        """Active SIPs, across all users when *user_id* is None."""
        ...

    def delete(self, sip_id: int, *, user_id: int) -> bool:
        ...

    def lock_for_update(self, session: Session, sip_id: int, *, user_id: int) -> Optional[Sip]:
        ...

    def list_installments(
        self, sip_id: int, *, user_id: int, session: Session | None = None, newest_first: bool = False
    ) -> list[SipInstallment]:
        ...

    def list_change_logs(self, sip_id: int, *, user_id: int) -> list[SipChangeLog]:
        ...
