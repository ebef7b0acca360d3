"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .domain.repositories import LiabilityRepository
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import SQLModelLiabilityRepository, SQLModelUserRepository
from .services.alerts import AlertService
from .services.investments import InvestmentLedgerService
from .services.notifications import NotificationSink, PushSender
from .services.price_alerts import PriceAlertService
from .services.quotes import MarketDataProvider, QuoteProvider
from .services.sip_scheduler import SipScheduler
from .services.sips import SipService
from .services.summarizer import InsightSummarizer


@dataclass
class AppContext:
    """Centralized application context with services and repositories."""

    # Configuration
    config: BaseConfig

    # Database
    engine: Engine
    session_factory: SessionFactory

    # External collaborators
    provider: QuoteProvider
    summarizer: InsightSummarizer

    # Services
    ledger: InvestmentLedgerService
    sips: SipService
    sip_scheduler: SipScheduler
    notifications: NotificationSink
    alerts: AlertService
    price_alerts: PriceAlertService

    # Repositories
    user_repo: SQLModelUserRepository
    liability_repo: LiabilityRepository


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    provider: Optional[QuoteProvider] = None,
    push_sender: Optional[PushSender] = None,
    summarizer: Optional[InsightSummarizer] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)
    tz_name = config.TIMEZONE

    if provider is None:
        provider = MarketDataProvider.from_config(config)
    if summarizer is None:
        summarizer = InsightSummarizer(api_key=config.OPENAI_API_KEY, model=config.AI_MODEL)

    ledger = InvestmentLedgerService(session_factory, tz_name=tz_name)
    notifications = NotificationSink(session_factory, push_sender, tz_name=tz_name)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        provider=provider,
        summarizer=summarizer,
        ledger=ledger,
        sips=SipService(session_factory, provider, ledger, tz_name=tz_name),
        sip_scheduler=SipScheduler(session_factory, provider, tz_name=tz_name),
        notifications=notifications,
        alerts=AlertService(session_factory, notifications, tz_name=tz_name),
        price_alerts=PriceAlertService(session_factory, provider, notifications, tz_name=tz_name),
        user_repo=SQLModelUserRepository(session_factory),
        liability_repo=SQLModelLiabilityRepository(session_factory),
    )
