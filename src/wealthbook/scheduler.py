"""Batch jobs and the optional in-process scheduler that runs them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .services.alerts import DEFAULT_THRESHOLDS, AlertThresholds
from .services.price_alerts import PriceAlertRunResult
from .services.sip_scheduler import SipTickSummary

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("wealthbook.scheduler")


def run_sip_tick(ctx: AppContext, user_id: Optional[int] = None) -> SipTickSummary:
    """Post due SIP installments for one user, or for everyone."""

    return ctx.sip_scheduler.tick(user_id=user_id)


def run_alert_evaluation(ctx: AppContext, thresholds: AlertThresholds = DEFAULT_THRESHOLDS) -> dict:
    """Evaluate alerts for every user; per-user failures are counted, not raised."""

    return ctx.alerts.evaluate_all_users(thresholds)


def run_price_alert_evaluation(ctx: AppContext) -> PriceAlertRunResult:
    """Check every active price alert against fresh quotes."""

    return ctx.price_alerts.evaluate_all()


class BackgroundScheduler:
    """Runs the SIP tick and price alert checks on intervals, alert evaluation once a day."""

    def __init__(self, ctx: AppContext):
        """Initialize the scheduler with app context.

        Args:
            ctx: Application context with services and config
        """
        self.ctx = ctx
        self.scheduler: Optional[APScheduler] = None

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        config = self.ctx.config
        self.scheduler = APScheduler(timezone=config.TIMEZONE)

        self.scheduler.add_job(
            func=self._sip_tick,
            trigger=IntervalTrigger(minutes=config.SIP_TICK_MINUTES),
            id="sip_tick",
            name="SIP installment tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled SIP tick every %s minutes", config.SIP_TICK_MINUTES)

        self.scheduler.add_job(
            func=self._evaluate_alerts,
            trigger=CronTrigger(hour=config.ALERT_HOUR, minute=0),
            id="alert_evaluation",
            name="Daily alert evaluation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled alert evaluation at %02d:00", config.ALERT_HOUR)

        self.scheduler.add_job(
            func=self._evaluate_price_alerts,
            trigger=IntervalTrigger(minutes=config.PRICE_ALERT_MINUTES),
            id="price_alert_evaluation",
            name="Price alert check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled price alert check every %s minutes", config.PRICE_ALERT_MINUTES)

        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def _sip_tick(self) -> None:
        try:
            summary = run_sip_tick(self.ctx)
            logger.info("Scheduled SIP tick completed", extra=summary.to_dict())
        except Exception:
            logger.error("Scheduled SIP tick failed", exc_info=True)

    def _evaluate_alerts(self) -> None:
        try:
            result = run_alert_evaluation(self.ctx)
            logger.info("Scheduled alert evaluation completed", extra=result)
        except Exception:
            logger.error("Scheduled alert evaluation failed", exc_info=True)

    def _evaluate_price_alerts(self) -> None:
        try:
            result = run_price_alert_evaluation(self.ctx)
            logger.info("Scheduled price alert check completed", extra=result.to_dict())
        except Exception:
            logger.error("Scheduled price alert check failed", exc_info=True)


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> BackgroundScheduler:
    """Create and optionally start a background scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        BackgroundScheduler instance
    """
    scheduler = BackgroundScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
