"""SIP lifecycle: CRUD, manual installments, valuation refresh and migration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlmodel import Session, select

from ..errors import InvalidTransitionError, NotFoundError, ReferenceMismatchError, ValidationError
from ..domain.repositories import SipRepository
from ..infra.database import SessionFactory
from ..infra.repositories import SQLModelSipRepository
from ..logging_config import get_logger
from ..models.portfolio import Holding, InvestmentTransaction
from ..models.sip import Sip, SipInstallment
from .dates import DEFAULT_TIMEZONE, day_key, local_now
from .investments import InvestmentLedgerService
from .locks import KeyedLocks, holding_locks, sip_locks
from .quotes import SKIP_REASONS, PriceResolver, QuoteProvider
from .sip_scheduler import (
    TERMINAL_STATUSES,
    apply_totals,
    check_transition,
    installment_units,
    log_change,
    recompute_sip_totals,
)

logger = get_logger("sips")

EDITABLE_FIELDS = (
    "name",
    "fund_name",
    "symbol",
    "scheme_code",
    "price_source",
    "amount",
    "frequency",
    "anchor_day",
    "end_date",
    "expected_return",
)


@dataclass
class SipDraft:
    """Validated input for a new SIP."""

    name: str
    fund_name: str
    amount: float
    start_date: date
    frequency: str = "monthly"
    anchor_day: int = 1
    price_source: str = "market"
    symbol: Optional[str] = None
    scheme_code: Optional[str] = None
    end_date: Optional[date] = None
    expected_return: float = 12.0
    total_invested: float = 0.0
    units: float = 0.0


@dataclass
class InstallmentDraft:
    """Validated input for a manual installment."""

    due_date: date
    amount: float
    nav_or_price: Optional[float] = None
    units: Optional[float] = None
    status: str = "paid"
    note: Optional[str] = None


class SipService:
    """User-facing SIP operations.

    Every mutation re-derives the SIP aggregate from its paid installments in
    the same session that changes them, and appends a change-log row.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        provider: QuoteProvider,
        ledger: InvestmentLedgerService,
        *,
        tz_name: str = DEFAULT_TIMEZONE,
        locks: KeyedLocks = sip_locks,
        holding_lock_registry: KeyedLocks = holding_locks,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.ledger = ledger
        self.tz_name = tz_name
        self.locks = locks
        self.holding_locks = holding_lock_registry
        self.sips: SipRepository = SQLModelSipRepository(session_factory)

    def list_sips(self, *, user_id: int) -> list[Sip]:
        return self.sips.list_all(user_id=user_id)

    def get_sip(self, sip_id: int, *, user_id: int) -> Sip:
        sip = self.sips.get_by_id(sip_id, user_id=user_id)
        if sip is None:
            raise NotFoundError("SIP not found")
        return sip

    def create_sip(self, draft: SipDraft, *, user_id: int) -> Sip:
        """Create a SIP. Pre-existing units are booked as an opening installment."""

        sip = Sip(
            user_id=user_id,
            name=draft.name,
            fund_name=draft.fund_name,
            symbol=draft.symbol,
            scheme_code=draft.scheme_code,
            price_source=draft.price_source,
            amount=draft.amount,
            frequency=draft.frequency,
            anchor_day=draft.anchor_day,
            start_date=draft.start_date,
            end_date=draft.end_date,
            expected_return=draft.expected_return,
            status="active",
        )
        with self.session_factory() as session:
            session.add(sip)
            session.flush()
            installments: list[SipInstallment] = []
            if draft.total_invested > 0:
                opening = SipInstallment(
                    user_id=user_id,
                    sip_id=sip.id,
                    due_date=draft.start_date,
                    status="paid",
                    amount=draft.total_invested,
                    units=draft.units if draft.units > 0 else None,
                    nav_or_price=(
                        draft.total_invested / draft.units if draft.units > 0 else None
                    ),
                    is_manual=True,
                    note="Opening balance",
                )
                session.add(opening)
                installments.append(opening)
            apply_totals(sip, recompute_sip_totals(installments))
            sip.last_updated = local_now(self.tz_name)
            log_change(session, sip, "sip_created", note=sip.name)
            session.add(sip)
        logger.info("SIP created", extra={"user_id": user_id, "sip_id": sip.id})
        return sip

    def update_sip(self, sip_id: int, changes: dict, *, user_id: int) -> Sip:
        """Apply field edits and an optional ``status`` change."""

        with self.locks.hold(sip_id), self.session_factory() as session:
            sip = self._locked(session, sip_id, user_id)
            requested_status = changes.get("status")
            if requested_status == "migrated":
                raise ValidationError.single(
                    "status", "Use the migrate endpoint to move a SIP into a holding."
                )
            if requested_status is not None:
                check_transition(sip.status, requested_status)
            field_changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
            if field_changes and sip.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(sip.status, sip.status)

            for name, value in field_changes.items():
                previous = getattr(sip, name)
                if previous == value:
                    continue
                setattr(sip, name, value)
                log_change(
                    session, sip, "field_updated", field_name=name, from_value=previous, to_value=value
                )

            if requested_status is not None and requested_status != sip.status:
                previous = sip.status
                sip.status = requested_status
                if requested_status == "closed" and sip.end_date is None:
                    sip.end_date = day_key(local_now(self.tz_name), self.tz_name)
                log_change(
                    session, sip, "status_changed", field_name="status",
                    from_value=previous, to_value=requested_status,
                )
            session.add(sip)
        return sip

    def delete_sip(self, sip_id: int, *, user_id: int) -> None:
        with self.locks.hold(sip_id):
            if not self.sips.delete(sip_id, user_id=user_id):
                raise NotFoundError("SIP not found")
        logger.info("SIP deleted", extra={"user_id": user_id, "sip_id": sip_id})

    # Installments

    def list_installments(self, sip_id: int, *, user_id: int) -> list[SipInstallment]:
        self.get_sip(sip_id, user_id=user_id)
        return self.sips.list_installments(sip_id, user_id=user_id, newest_first=True)

    def add_installment(
        self, sip_id: int, draft: InstallmentDraft, *, user_id: int
    ) -> tuple[SipInstallment, Sip]:
        with self.locks.hold(sip_id), self.session_factory() as session:
            sip = self._locked(session, sip_id, user_id)
            if sip.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(sip.status, sip.status)
            installment = SipInstallment(
                user_id=user_id,
                sip_id=sip_id,
                due_date=draft.due_date,
                status=draft.status,
                amount=draft.amount,
                nav_or_price=draft.nav_or_price,
                units=installment_units(draft.amount, draft.nav_or_price, draft.units),
                is_manual=True,
                note=draft.note,
            )
            session.add(installment)
            session.flush()
            self._reconcile(session, sip)
            log_change(
                session, sip, "installment_added",
                to_value=f"{draft.status} {draft.amount:g} on {draft.due_date.isoformat()}",
            )
            session.add(sip)
            session.refresh(installment)
        return installment, sip

    def update_installment(
        self, sip_id: int, installment_id: int, changes: dict, *, user_id: int
    ) -> tuple[SipInstallment, Sip]:
        with self.locks.hold(sip_id), self.session_factory() as session:
            sip = self._locked(session, sip_id, user_id)
            installment = session.exec(
                select(SipInstallment).where(
                    SipInstallment.id == installment_id,
                    SipInstallment.sip_id == sip_id,
                    SipInstallment.user_id == user_id,
                )
            ).first()
            if installment is None:
                raise NotFoundError("Installment not found")
            for name in ("due_date", "status", "amount", "nav_or_price", "units", "note"):
                if name not in changes:
                    continue
                previous = getattr(installment, name)
                if previous == changes[name]:
                    continue
                setattr(installment, name, changes[name])
                log_change(
                    session, sip, "installment_updated", field_name=name,
                    from_value=previous, to_value=changes[name], note=f"installment {installment_id}",
                )
            # Stored units stand unless cleared or the amount/price they derive from changed.
            derived = installment_units(installment.amount, installment.nav_or_price, None)
            if "units" in changes and changes["units"] is None:
                installment.units = derived
            elif "units" not in changes and derived is not None and (
                "amount" in changes or "nav_or_price" in changes
            ):
                installment.units = derived
            session.add(installment)
            session.flush()
            self._reconcile(session, sip)
            session.add(sip)
        return installment, sip

    # Valuation and reporting

    def refresh_prices(self, *, user_id: int, now: Optional[datetime] = None) -> dict:
        """Revalue every non-terminal SIP at the latest price. Posts nothing."""

        now = now or local_now(self.tz_name)
        sips = [s for s in self.sips.list_all(user_id=user_id) if s.status not in TERMINAL_STATUSES]
        resolver = PriceResolver(self.provider)
        resolver.prefetch(sips)
        updated = 0
        skipped = {reason: 0 for reason in SKIP_REASONS}
        for candidate in sips:
            resolution = resolver.resolve(candidate)
            if not resolution.ok:
                skipped[resolution.skip_reason] += 1
                continue
            with self.locks.hold(candidate.id), self.session_factory() as session:
                sip = self._locked(session, candidate.id, user_id)
                sip.last_price = resolution.price
                sip.current_value = sip.units * resolution.price
                sip.last_updated = now
                sip.last_quote_at = now
                session.add(sip)
            updated += 1
        return {"scanned": len(sips), "updated": updated, "skipped": skipped}

    def details(self, sip_id: int, *, user_id: int) -> dict:
        sip = self.get_sip(sip_id, user_id=user_id)
        installments = self.sips.list_installments(sip_id, user_id=user_id, newest_first=True)
        logs = self.sips.list_change_logs(sip_id, user_id=user_id)
        return {
            "sip": sip.to_dict(),
            "installments": [inst.to_dict() for inst in installments],
            "change_logs": [entry.to_dict() for entry in logs],
        }

    def migrate_to_holding(
        self, sip_id: int, *, user_id: int, now: Optional[datetime] = None
    ) -> tuple[Sip, Holding]:
        """Move a SIP's accumulated units into a ``mutual_fund`` holding.

        The contribution is posted as one ``sip`` ledger entry, so an existing
        holding of the same symbol is merged by weighted average.
        """

        now = now or local_now(self.tz_name)
        with self.locks.hold(sip_id), self.session_factory() as session:
            sip = self._locked(session, sip_id, user_id)
            if sip.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(sip.status, "migrated")
            symbol = (sip.symbol or "").strip()
            if not symbol:
                raise ReferenceMismatchError("SIP has no symbol to migrate into a holding")
            errors: dict[str, list[str]] = {}
            if sip.units <= 0:
                errors["units"] = ["SIP has no units to migrate."]
            if sip.total_invested <= 0:
                errors["total_invested"] = ["SIP has no invested amount to migrate."]
            if errors:
                raise ValidationError(errors)

            holding = session.exec(
                select(Holding)
                .where(
                    Holding.user_id == user_id,
                    Holding.symbol == symbol,
                    Holding.asset_type == "mutual_fund",
                )
                .with_for_update()
            ).first()
            if holding is None:
                holding = Holding(
                    user_id=user_id,
                    symbol=symbol,
                    name=sip.fund_name or sip.name,
                    asset_type="mutual_fund",
                    current_price=sip.last_price,
                )
                session.add(holding)
                session.flush()

            with self.holding_locks.hold(holding.id):
                self._ensure_opening_entry(session, holding, now)
                self.ledger.append_entry(
                    session,
                    holding,
                    InvestmentTransaction(
                        user_id=user_id,
                        holding_id=holding.id,
                        txn_type="sip",
                        quantity=sip.units,
                        price=sip.total_invested / sip.units,
                        amount=sip.total_invested,
                        note=f"Migrated from SIP {sip.name}",
                        occurred_at=now,
                    ),
                )
                if sip.last_price:
                    holding.current_price = sip.last_price

            previous = sip.status
            sip.status = "migrated"
            sip.end_date = day_key(now, self.tz_name)
            sip.linked_holding_id = holding.id
            log_change(
                session, sip, "migrated", field_name="status", from_value=previous,
                to_value="migrated", note=f"holding {holding.id}",
            )
            session.add(sip)
            session.add(holding)
        logger.info(
            "SIP migrated",
            extra={"user_id": user_id, "sip_id": sip_id, "holding_id": holding.id},
        )
        return sip, holding

    def _ensure_opening_entry(self, session: Session, holding: Holding, now: datetime) -> None:
        # A holding with a cached position but no ledger gets one so the merge keeps it.
        if holding.quantity <= 0:
            return
        rows = self.ledger.transactions.list_for_holding(
            holding.id, user_id=holding.user_id, session=session
        )
        if rows:
            return
        session.add(
            InvestmentTransaction(
                user_id=holding.user_id,
                holding_id=holding.id,
                txn_type="buy",
                quantity=holding.quantity,
                price=holding.avg_buy_price,
                amount=holding.quantity * holding.avg_buy_price,
                note="Opening position",
                occurred_at=holding.created_at or now,
            )
        )
        session.flush()

    def _locked(self, session: Session, sip_id: int, user_id: int) -> Sip:
        sip = self.sips.lock_for_update(session, sip_id, user_id=user_id)
        if sip is None:
            raise NotFoundError("SIP not found")
        return sip

    def _reconcile(self, session: Session, sip: Sip) -> None:
        installments = self.sips.list_installments(sip.id, user_id=sip.user_id, session=session)
        paid = [inst for inst in installments if inst.status == "paid"]
        quoted = sip.last_price if sip.last_quote_at is not None else None
        apply_totals(sip, recompute_sip_totals(installments, quoted))
        if paid:
            latest = max(paid, key=lambda inst: inst.due_date)
            latest_debit = datetime.combine(latest.due_date, datetime.min.time())
            if sip.last_debit_date is None or latest_debit > sip.last_debit_date:
                sip.last_debit_date = latest_debit
        sip.last_updated = local_now(self.tz_name)
