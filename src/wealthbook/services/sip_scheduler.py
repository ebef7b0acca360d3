"""SIP due-date rules and the periodic installment tick."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from sqlmodel import Session

from ..errors import InvalidTransitionError
from ..domain.repositories import SipRepository
from ..infra.database import SessionFactory
from ..infra.repositories import SQLModelSipRepository
from ..logging_config import get_logger
from ..models.sip import Sip, SipChangeLog, SipInstallment
from .dates import DEFAULT_TIMEZONE, day_key, days_in_month, local_now, month_diff, same_month
from .locks import KeyedLocks, sip_locks
from .quotes import SKIP_REASONS, PriceResolver, QuoteProvider

logger = get_logger("sip_scheduler")

TERMINAL_STATUSES = frozenset({"closed", "migrated"})
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "active": frozenset({"paused", "closed", "migrated"}),
    "paused": frozenset({"active", "closed", "migrated"}),
    "closed": frozenset(),
    "migrated": frozenset(),
}


def is_sip_due(
    frequency: str,
    anchor_day: int,
    start_date: date | datetime,
    last_debit_date: Optional[date | datetime],
    now: datetime,
    tz_name: str = DEFAULT_TIMEZONE,
) -> bool:
    """Return True when an installment should be posted on ``now``'s day.

    All comparisons are made on day keys in *tz_name*.
    """

    today = day_key(now, tz_name)
    start = day_key(start_date, tz_name)
    if today < start:
        return False

    last = day_key(last_debit_date, tz_name) if last_debit_date is not None else None

    if frequency == "weekly":
        if last is None:
            return True
        return (today - last).days >= 7

    due_day = min(anchor_day, days_in_month(today.year, today.month))
    if today < date(today.year, today.month, due_day):
        return False

    if frequency == "quarterly":
        diff = month_diff(start, today)
        if diff < 0 or diff % 3 != 0:
            return False

    if last is None:
        return True
    return not same_month(last, today)


def is_past_end(sip: Sip, now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> bool:
    return sip.end_date is not None and day_key(now, tz_name) > sip.end_date


def check_transition(current: str, requested: str) -> None:
    """Raise :class:`InvalidTransitionError` unless *current* may move to *requested*."""

    if requested == current:
        return
    if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, requested)


def installment_units(amount: float, nav_or_price: Optional[float], units: Optional[float]) -> Optional[float]:
    """Units credited: explicit value wins, else ``amount / nav_or_price``."""

    if units is not None and units > 0:
        return units
    if nav_or_price is not None and nav_or_price > 0 and amount > 0:
        return amount / nav_or_price
    return None


@dataclass
class SipTotals:
    total_invested: float = 0.0
    units: float = 0.0
    current_value: float = 0.0
    last_price: Optional[float] = None


def recompute_sip_totals(
    installments: Iterable[SipInstallment], latest_price: Optional[float] = None
) -> SipTotals:
    """Aggregate a SIP from its ``paid`` installments.

    Current value uses *latest_price* when given, else the price of the most
    recent paid installment, else falls back to the invested amount.
    """

    totals = SipTotals()
    last_paid_price: Optional[float] = None
    for inst in sorted(installments, key=lambda i: (i.due_date, i.id or 0)):
        if inst.status != "paid":
            continue
        totals.total_invested += float(inst.amount or 0.0)
        totals.units += installment_units(inst.amount, inst.nav_or_price, inst.units) or 0.0
        if inst.nav_or_price is not None and inst.nav_or_price > 0:
            last_paid_price = inst.nav_or_price

    price = latest_price if latest_price is not None and latest_price > 0 else last_paid_price
    totals.last_price = price
    totals.current_value = totals.units * price if price else totals.total_invested
    return totals


def apply_totals(sip: Sip, totals: SipTotals) -> None:
    sip.total_invested = totals.total_invested
    sip.units = totals.units
    sip.current_value = totals.current_value
    if totals.last_price is not None:
        sip.last_price = totals.last_price


def log_change(
    session: Session,
    sip: Sip,
    action: str,
    *,
    field_name: Optional[str] = None,
    from_value=None,
    to_value=None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    entry = SipChangeLog(
        user_id=sip.user_id,
        sip_id=sip.id,
        action=action,
        field=field_name,
        from_value=None if from_value is None else str(from_value),
        to_value=None if to_value is None else str(to_value),
        note=note,
    )
    if now is not None:
        entry.created_at = now
    session.add(entry)


@dataclass
class SipTickSummary:
    scanned: int = 0
    price_updated: int = 0
    installments_posted: int = 0
    closed: int = 0
    failed: int = 0
    skipped: dict[str, int] = field(default_factory=lambda: {reason: 0 for reason in SKIP_REASONS})

    def merge(self, other: "SipTickSummary") -> None:
        self.scanned += other.scanned
        self.price_updated += other.price_updated
        self.installments_posted += other.installments_posted
        self.closed += other.closed
        self.failed += other.failed
        for reason, count in other.skipped.items():
            self.skipped[reason] = self.skipped.get(reason, 0) + count

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "price_updated": self.price_updated,
            "installments_posted": self.installments_posted,
            "closed": self.closed,
            "failed": self.failed,
            "skipped": dict(self.skipped),
        }


class SipScheduler:
    """Posts due installments and refreshes SIP valuations.

    Safe to run repeatedly: a SIP already debited this month (or within the
    last seven days for weekly plans) is only revalued.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        provider: QuoteProvider,
        *,
        tz_name: str = DEFAULT_TIMEZONE,
        locks: KeyedLocks = sip_locks,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.tz_name = tz_name
        self.locks = locks
        self.sips: SipRepository = SQLModelSipRepository(session_factory)

    def tick(self, user_id: Optional[int] = None, now: Optional[datetime] = None) -> SipTickSummary:
        now = now or local_now(self.tz_name)
        summary = SipTickSummary()
        candidates = self.sips.list_active(user_id=user_id)
        resolver = PriceResolver(self.provider)
        resolver.prefetch(candidates)

        for candidate in candidates:
            summary.scanned += 1
            try:
                self._process(candidate, resolver, now, summary)
            except Exception:
                summary.failed += 1
                logger.exception(
                    "SIP tick failed", extra={"sip_id": candidate.id, "user_id": candidate.user_id}
                )

        logger.info("SIP tick finished", extra={"user_id": user_id, **summary.to_dict()})
        return summary

    def _process(
        self, candidate: Sip, resolver: PriceResolver, now: datetime, summary: SipTickSummary
    ) -> None:
        with self.locks.hold(candidate.id), self.session_factory() as session:
            sip = self.sips.lock_for_update(session, candidate.id, user_id=candidate.user_id)
            if sip is None or sip.status != "active":
                return

            if is_past_end(sip, now, self.tz_name):
                sip.status = "closed"
                log_change(
                    session, sip, "status_changed", field_name="status",
                    from_value="active", to_value="closed", note="End date reached",
                )
                session.add(sip)
                summary.closed += 1
                return

            resolution = resolver.resolve(sip)
            if not resolution.ok:
                summary.skipped[resolution.skip_reason] += 1
                logger.info(
                    "SIP skipped",
                    extra={"sip_id": sip.id, "reason": resolution.skip_reason},
                )
                return
            price = resolution.price

            installments = self.sips.list_installments(sip.id, user_id=sip.user_id, session=session)
            if is_sip_due(
                sip.frequency, sip.anchor_day, sip.start_date, sip.last_debit_date, now, self.tz_name
            ):
                installment = SipInstallment(
                    user_id=sip.user_id,
                    sip_id=sip.id,
                    due_date=day_key(now, self.tz_name),
                    status="paid",
                    amount=sip.amount,
                    nav_or_price=price,
                    units=sip.amount / price,
                    is_manual=False,
                    note="Auto installment",
                )
                session.add(installment)
                installments.append(installment)
                sip.last_debit_date = now
                log_change(session, sip, "installment_posted", to_value=installment.due_date.isoformat())
                summary.installments_posted += 1

            apply_totals(sip, recompute_sip_totals(installments, price))
            sip.last_updated = now
            sip.last_quote_at = now
            session.add(sip)
            summary.price_updated += 1
