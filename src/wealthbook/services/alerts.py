"""Portfolio and spending alerts, deduplicated per day by title."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional

from ..domain.repositories import (
    BudgetRepository,
    HoldingRepository,
    NotificationRepository,
    TransactionRepository,
)
from ..infra.database import SessionFactory
from ..infra.repositories import (
    SQLModelBudgetRepository,
    SQLModelCategoryRepository,
    SQLModelHoldingRepository,
    SQLModelNotificationRepository,
    SQLModelTransactionRepository,
    SQLModelUserRepository,
)
from ..logging_config import get_logger
from .dates import DEFAULT_TIMEZONE, add_months, day_key, end_of_day, local_now, month_start, start_of_day
from .notifications import NotificationSink

logger = get_logger("alerts")

TRAILING_DAYS = 90
SPIKE_LOOKBACK_MONTHS = 3


@dataclass(frozen=True)
class AlertThresholds:
    concentration_pct: float = 25.0
    drawdown_pct: float = 8.0
    budget_usage_pct: float = 90.0
    daily_spend_multiple: float = 1.8
    category_spike_multiple: float = 1.4
    category_spike_floor: float = 1000.0

    def with_overrides(self, overrides: Optional[Mapping[str, float]]) -> "AlertThresholds":
        """Copy with any known numeric keys from *overrides* applied."""

        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        changes = {}
        for key, value in overrides.items():
            if key in known and value is not None:
                changes[key] = float(value)
        return replace(self, **changes)


DEFAULT_THRESHOLDS = AlertThresholds()


@dataclass(frozen=True)
class PositionSnapshot:
    symbol: str
    value: float
    avg_price: float
    current_price: float


@dataclass(frozen=True)
class BudgetUsage:
    category_id: int
    name: str
    planned: float
    spent: float


@dataclass(frozen=True)
class CategorySpend:
    category_id: int
    name: str
    current_month: float
    prior_months: tuple[float, ...] = ()


@dataclass
class AlertSnapshot:
    positions: list[PositionSnapshot] = field(default_factory=list)
    budgets: list[BudgetUsage] = field(default_factory=list)
    today_spend: float = 0.0
    daily_spend: list[float] = field(default_factory=list)
    categories: list[CategorySpend] = field(default_factory=list)


@dataclass(frozen=True)
class AlertCandidate:
    title: str
    message: str
    notif_type: str
    data: dict
    url: str = "/notifications"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "message": self.message,
            "type": self.notif_type,
            "data": self.data,
            "url": self.url,
        }


def _portfolio_alerts(snapshot: AlertSnapshot, thresholds: AlertThresholds) -> Iterable[AlertCandidate]:
    total = sum(p.value for p in snapshot.positions)
    for p in snapshot.positions:
        weight = p.value / total * 100 if total > 0 else 0.0
        if total > 0 and weight >= thresholds.concentration_pct:
            yield AlertCandidate(
                title=f"Concentration alert: {p.symbol}",
                message=(
                    f"{p.symbol} is {weight:.1f}% of your portfolio, above your "
                    f"{thresholds.concentration_pct:g}% threshold."
                ),
                notif_type="investment_alert",
                data={"symbol": p.symbol, "weight": round(weight, 2)},
                url="/investments",
            )
        if p.avg_price > 0 and p.current_price > 0:
            change = (p.current_price - p.avg_price) / p.avg_price * 100
            if change <= -abs(thresholds.drawdown_pct):
                yield AlertCandidate(
                    title=f"Drawdown alert: {p.symbol}",
                    message=f"{p.symbol} is down {abs(change):.1f}% vs average buy price.",
                    notif_type="investment_alert",
                    data={"symbol": p.symbol, "drawdown": round(change, 2)},
                    url="/investments",
                )


def _spending_alerts(snapshot: AlertSnapshot, thresholds: AlertThresholds) -> Iterable[AlertCandidate]:
    for b in snapshot.budgets:
        usage = b.spent / b.planned * 100 if b.planned > 0 else 0.0
        if usage >= thresholds.budget_usage_pct:
            yield AlertCandidate(
                title=f"Budget alert: {b.name}",
                message=f"{b.name} is at {usage:.0f}% usage this month.",
                notif_type="budget_alert",
                data={"category_id": b.category_id, "usage": round(usage, 2)},
                url="/budgets",
            )

    days = [value for value in snapshot.daily_spend if value > 0]
    trailing_avg = sum(days) / len(days) if days else 0.0
    today = snapshot.today_spend
    if today > 0 and trailing_avg > 0 and today >= trailing_avg * thresholds.daily_spend_multiple:
        yield AlertCandidate(
            title="Unusual spending today",
            message=(
                f"Today's spend is {today:.0f}, around {today / trailing_avg:.1f}x "
                "your usual daily average."
            ),
            notif_type="expense_alert",
            data={"today_total": round(today, 2), "trailing_daily_avg": round(trailing_avg, 2)},
            url="/expenses",
        )

    for c in snapshot.categories:
        if not c.prior_months:
            continue
        baseline = sum(c.prior_months) / len(c.prior_months)
        if baseline <= 0:
            continue
        increase = c.current_month - baseline
        if (
            c.current_month >= baseline * thresholds.category_spike_multiple
            and increase >= thresholds.category_spike_floor
        ):
            yield AlertCandidate(
                title=f"Spending spike: {c.name}",
                message=(
                    f"{c.name} spend this month is {c.current_month:.0f}, "
                    f"{c.current_month / baseline:.1f}x your recent monthly average."
                ),
                notif_type="expense_alert",
                data={
                    "category_id": c.category_id,
                    "current": round(c.current_month, 2),
                    "baseline": round(baseline, 2),
                },
                url="/expenses",
            )


def evaluate_alerts(
    snapshot: AlertSnapshot,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
    existing_titles: Iterable[str] = (),
) -> list[AlertCandidate]:
    """Return alert candidates whose titles are not in *existing_titles*."""

    seen = set(existing_titles)
    candidates = []
    for candidate in (*_portfolio_alerts(snapshot, thresholds), *_spending_alerts(snapshot, thresholds)):
        if candidate.title in seen:
            continue
        seen.add(candidate.title)
        candidates.append(candidate)
    return candidates


@dataclass
class AlertRunResult:
    thresholds: AlertThresholds
    alerts: list[AlertCandidate]

    @property
    def generated(self) -> int:
        return len(self.alerts)

    def to_dict(self) -> dict:
        return {
            "config": {f.name: getattr(self.thresholds, f.name) for f in fields(self.thresholds)},
            "generated": self.generated,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


class AlertService:
    """Loads a user's snapshot, evaluates it and stores new alerts."""

    def __init__(
        self,
        session_factory: SessionFactory,
        sink: NotificationSink,
        *,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.sink = sink
        self.tz_name = tz_name
        self.holdings: HoldingRepository = SQLModelHoldingRepository(session_factory)
        self.budgets: BudgetRepository = SQLModelBudgetRepository(session_factory)
        self.categories = SQLModelCategoryRepository(session_factory)
        self.transactions: TransactionRepository = SQLModelTransactionRepository(session_factory)
        self.notifications: NotificationRepository = SQLModelNotificationRepository(session_factory)
        self.users = SQLModelUserRepository(session_factory)

    def build_snapshot(self, user_id: int, now: datetime) -> AlertSnapshot:
        today = day_key(now, self.tz_name)
        this_month = month_start(today)
        spike_start = add_months(this_month, -SPIKE_LOOKBACK_MONTHS)
        trailing_start = today - timedelta(days=TRAILING_DAYS)
        window_start = start_of_day(min(spike_start, trailing_start))

        expenses = self.transactions.filter_by_date_range(
            window_start, end_of_day(today), user_id=user_id, txn_type="expense"
        )

        by_day: dict[date, float] = defaultdict(float)
        by_month: dict[tuple[int, date], float] = defaultdict(float)
        for txn in expenses:
            txn_day = day_key(txn.occurred_at, self.tz_name)
            amount = float(txn.amount or 0.0)
            if txn_day >= trailing_start:
                by_day[txn_day] += amount
            if txn.category_id is not None:
                by_month[(txn.category_id, month_start(txn_day))] += amount

        names = {c.id: c.name for c in self.categories.list_all(user_id=user_id)}

        budgets: list[BudgetUsage] = []
        budget = self.budgets.get_covering(today, user_id=user_id)
        if budget is not None:
            for line in self.budgets.get_lines_for_budget(budget.id, user_id=user_id):
                budgets.append(
                    BudgetUsage(
                        category_id=line.category_id,
                        name=names.get(line.category_id, "Category"),
                        planned=float(line.planned_amount or 0.0),
                        spent=by_month.get((line.category_id, this_month), 0.0),
                    )
                )

        prior = [add_months(this_month, -offset) for offset in range(1, SPIKE_LOOKBACK_MONTHS + 1)]
        category_ids = {category_id for category_id, month in by_month if month == this_month}
        categories = [
            CategorySpend(
                category_id=category_id,
                name=names.get(category_id, "Category"),
                current_month=by_month[(category_id, this_month)],
                prior_months=tuple(by_month.get((category_id, month), 0.0) for month in prior),
            )
            for category_id in sorted(category_ids)
        ]

        positions = [
            PositionSnapshot(
                symbol=h.symbol,
                value=h.market_value,
                avg_price=float(h.avg_buy_price or 0.0),
                current_price=h.market_price,
            )
            for h in self.holdings.list_all(user_id=user_id)
        ]

        return AlertSnapshot(
            positions=positions,
            budgets=budgets,
            today_spend=by_day.get(today, 0.0),
            daily_spend=list(by_day.values()),
            categories=categories,
        )

    def evaluate(
        self,
        user_id: int,
        thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
        now: Optional[datetime] = None,
    ) -> AlertRunResult:
        now = now or local_now(self.tz_name)
        snapshot = self.build_snapshot(user_id, now)
        existing = self.notifications.titles_between(
            start_of_day(now, self.tz_name), end_of_day(now, self.tz_name), user_id=user_id
        )
        candidates = evaluate_alerts(snapshot, thresholds, existing)
        for candidate in candidates:
            self.sink.create_notification_and_push(
                user_id,
                candidate.title,
                candidate.message,
                candidate.notif_type,
                candidate.data,
                candidate.url,
                created_at=now,
            )
        logger.info("Alerts evaluated", extra={"user_id": user_id, "generated": len(candidates)})
        return AlertRunResult(thresholds=thresholds, alerts=candidates)

    def evaluate_all_users(
        self, thresholds: AlertThresholds = DEFAULT_THRESHOLDS, now: Optional[datetime] = None
    ) -> dict:
        """Batch evaluation; one user's failure is logged and counted."""

        user_ids = self.users.list_ids()
        generated = 0
        failed = 0
        for user_id in user_ids:
            try:
                generated += self.evaluate(user_id, thresholds, now).generated
            except Exception:
                failed += 1
                logger.exception("Alert evaluation failed", extra={"user_id": user_id})
        return {"users": len(user_ids), "generated": generated, "failed": failed}
