"""Price target alerts checked against live quotes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from ..domain.repositories import PriceAlertRepository
from ..infra.database import SessionFactory
from ..infra.repositories import SQLModelPriceAlertRepository
from ..logging_config import get_logger
from ..models.price_alert import PriceAlert
from .dates import DEFAULT_TIMEZONE, local_now
from .notifications import NotificationSink
from .quotes import QuoteProvider

logger = get_logger("price_alerts")


def price_alert_matches(direction: str, price: float, target: float) -> bool:
    if direction == "above":
        return price >= target
    return price <= target


def in_cooldown(alert: PriceAlert, now: datetime) -> bool:
    if alert.last_notified_at is None:
        return False
    window = timedelta(minutes=max(1, alert.cooldown_minutes or 0))
    return now - alert.last_notified_at < window


def alert_message(alert: PriceAlert, price: float) -> str:
    side = "above" if alert.direction == "above" else "below"
    return f"{alert.symbol} is at {price:.2f}, {side} your target {alert.target_price:.2f}."


@dataclass
class PriceAlertRunResult:
    checked: int = 0
    triggered: int = 0

    def to_dict(self) -> dict:
        return {"checked": self.checked, "triggered": self.triggered}


class PriceAlertService:
    """CRUD for a user's price alerts and the cross-user evaluation batch."""

    def __init__(
        self,
        session_factory: SessionFactory,
        provider: QuoteProvider,
        sink: NotificationSink,
        *,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.sink = sink
        self.tz_name = tz_name
        self.repository: PriceAlertRepository = SQLModelPriceAlertRepository(session_factory)

    def list_alerts(self, *, user_id: int) -> list[PriceAlert]:
        return self.repository.list_all(user_id=user_id)

    def get_alert(self, alert_id: int, *, user_id: int) -> Optional[PriceAlert]:
        return self.repository.get_by_id(alert_id, user_id=user_id)

    def create_alert(self, values: Mapping[str, Any], *, user_id: int) -> PriceAlert:
        alert = PriceAlert(user_id=user_id, created_at=local_now(self.tz_name), **values)
        alert = self.repository.create(alert, user_id=user_id)
        logger.info("Price alert created", extra={"user_id": user_id, "alert_id": alert.id, "symbol": alert.symbol})
        return alert

    def update_alert(self, alert: PriceAlert, values: Mapping[str, Any], *, user_id: int) -> PriceAlert:
        for name, value in values.items():
            setattr(alert, name, value)
        return self.repository.update(alert, user_id=user_id)

    def delete_alert(self, alert_id: int, *, user_id: int) -> bool:
        return self.repository.delete(alert_id, user_id=user_id)

    def evaluate_all(self, now: Optional[datetime] = None) -> PriceAlertRunResult:
        """Check every active alert once against a single batch of quotes.

        Alerts without a quote are skipped untouched. Matched alerts outside
        their cooldown notify the owner; the rest only record the check time.
        """

        now = now or local_now(self.tz_name)
        alerts = self.repository.list_active()
        result = PriceAlertRunResult(checked=len(alerts))
        if not alerts:
            return result

        quotes = self.provider.get_quotes(sorted({alert.symbol for alert in alerts}))
        for alert in alerts:
            quote = quotes.get(alert.symbol)
            if quote is None:
                continue
            if self._check(alert.id, quote.price, now):
                result.triggered += 1

        logger.info("Price alerts evaluated", extra=result.to_dict())
        return result

    def _check(self, alert_id: int, price: float, now: datetime) -> bool:
        with self.session_factory() as session:
            alert = self.repository.lock_for_update(session, alert_id)
            if alert is None or alert.status != "active":
                return False
            alert.last_checked_at = now
            fire = price_alert_matches(alert.direction, price, alert.target_price) and not in_cooldown(alert, now)
            if fire:
                alert.last_notified_at = now
                alert.triggered_at = now
                if alert.notify_once:
                    alert.status = "triggered"
            session.add(alert)
            user_id, symbol, target, direction = alert.user_id, alert.symbol, alert.target_price, alert.direction
            message = alert_message(alert, price)

        if fire:
            self.sink.create_notification_and_push(
                user_id,
                f"Price alert triggered: {symbol}",
                message,
                "investment_alert",
                {"symbol": symbol, "current": price, "target": target, "direction": direction},
                created_at=now,
            )
        return fire
