"""Pytest configuration and shared fixtures for WealthBook tests.

This module provides database fixtures, test data factories, a scripted quote
provider and a Flask client wired to an isolated database, so no test talks to
a real market-data source or the real app database.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

import pytest

from wealthbook import create_app
from wealthbook.config import TestConfig
from wealthbook.context import create_app_context
from wealthbook.infra.database import bootstrap_database
from wealthbook.models import (
    Budget,
    BudgetLine,
    Category,
    Holding,
    Sip,
    Transaction,
    User,
)
from wealthbook.services.investments import InvestmentLedgerService
from wealthbook.services.locks import KeyedLocks
from wealthbook.services.quotes import MfScheme, NavQuote, Quote
from wealthbook.services.sip_scheduler import SipScheduler
from wealthbook.services.sips import SipService
from wealthbook.services.summarizer import InsightSummarizer

CRON_SECRET = "test-cron-secret"


# =============================================================================
# Fakes
# =============================================================================


class FakeQuoteProvider:
    """Scripted prices keyed by symbol and scheme code; records every call."""

    def __init__(
        self,
        prices: Optional[dict[str, float]] = None,
        navs: Optional[dict[str, float]] = None,
    ):
        self.prices = dict(prices or {})
        self.navs = dict(navs or {})
        self.calls: list[tuple[str, str]] = []

    def get_quote(self, symbol: str) -> Optional[Quote]:
        self.calls.append(("quote", symbol))
        price = self.prices.get(symbol)
        return Quote(symbol=symbol, price=price) if price is not None else None

    def get_quotes(self, symbols: Iterable[str]) -> dict[str, Quote]:
        result = {}
        for symbol in symbols:
            self.calls.append(("quotes", symbol))
            if symbol in self.prices:
                result[symbol] = Quote(symbol=symbol, price=self.prices[symbol])
        return result

    def get_latest_mf_nav(self, scheme_code: str) -> Optional[NavQuote]:
        self.calls.append(("nav", scheme_code))
        nav = self.navs.get(scheme_code)
        if nav is None:
            return None
        return NavQuote(scheme_code=scheme_code, scheme_name=f"Scheme {scheme_code}", nav=nav)

    def search_schemes(self, query: str, limit: int = 12) -> list[MfScheme]:
        self.calls.append(("search", query))
        needle = query.lower()
        schemes = [MfScheme(code, f"Scheme {code}") for code in sorted(self.navs)]
        return [s for s in schemes if needle in s.scheme_name.lower()][:limit]


class RecordingPushSender:
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[int, dict]] = []
        self.fail = fail

    def send(self, user_id: int, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append((user_id, payload))


def assert_float_equal(actual: float, expected: float, tolerance: float = 1e-6) -> None:
    """Assert two floats agree within *tolerance*."""

    assert abs(actual - expected) <= tolerance, f"{actual} != {expected} (±{tolerance})"


# =============================================================================
# Environment & Database Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point config at a per-test data directory and a known cron secret."""

    monkeypatch.setenv("WEALTHBOOK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("WEALTHBOOK_DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("WEALTHBOOK_CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("WEALTHBOOK_TIMEZONE", "Asia/Kolkata")
    monkeypatch.delenv("WEALTHBOOK_OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def config():
    return TestConfig()


@pytest.fixture
def db(config):
    """Fresh schema in a temporary SQLite file. Yields (engine, session_factory)."""

    engine, factory = bootstrap_database(config)
    yield engine, factory
    engine.dispose()


@pytest.fixture
def session_factory(db):
    return db[1]


@pytest.fixture
def quote_provider():
    return FakeQuoteProvider(prices={"NIFTYBEES.NS": 250.0, "INFY.NS": 1500.0}, navs={"120503": 50.0})


@pytest.fixture
def ledger_service(session_factory):
    return InvestmentLedgerService(session_factory, locks=KeyedLocks())


@pytest.fixture
def sip_service(session_factory, quote_provider, ledger_service):
    return SipService(
        session_factory,
        quote_provider,
        ledger_service,
        locks=KeyedLocks(),
        holding_lock_registry=KeyedLocks(),
    )


@pytest.fixture
def sip_scheduler(session_factory, quote_provider):
    return SipScheduler(session_factory, quote_provider, locks=KeyedLocks())


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user_factory(session_factory):
    def _create_user(username: str = "tester") -> User:
        with session_factory() as session:
            row = User(username=username, display_name=username.title())
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    return _create_user


@pytest.fixture
def user(user_factory) -> User:
    """Default user scoping test data."""

    return user_factory("tester")


@pytest.fixture
def holding_factory(session_factory, user):
    """Holding rows written directly, bypassing the ledger."""

    def _create_holding(
        symbol: str = "INFY.NS",
        *,
        asset_type: str = "stock",
        quantity: float = 0.0,
        avg_buy_price: float = 0.0,
        current_price: Optional[float] = None,
        owner: Optional[User] = None,
    ) -> Holding:
        owner = owner or user
        with session_factory() as session:
            row = Holding(
                user_id=owner.id,
                symbol=symbol,
                name=symbol,
                asset_type=asset_type,
                quantity=quantity,
                avg_buy_price=avg_buy_price,
                current_price=current_price,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    return _create_holding


@pytest.fixture
def sip_factory(session_factory, user):
    """SIP rows written directly with zeroed aggregates."""

    def _create_sip(
        name: str = "Index SIP",
        *,
        symbol: Optional[str] = "NIFTYBEES.NS",
        scheme_code: Optional[str] = None,
        price_source: str = "market",
        amount: float = 5000.0,
        frequency: str = "monthly",
        anchor_day: int = 5,
        start_date: date = date(2024, 1, 1),
        end_date: Optional[date] = None,
        last_debit_date: Optional[datetime] = None,
        status: str = "active",
        owner: Optional[User] = None,
    ) -> Sip:
        owner = owner or user
        with session_factory() as session:
            row = Sip(
                user_id=owner.id,
                name=name,
                fund_name=name,
                symbol=symbol,
                scheme_code=scheme_code,
                price_source=price_source,
                amount=amount,
                frequency=frequency,
                anchor_day=anchor_day,
                start_date=start_date,
                end_date=end_date,
                last_debit_date=last_debit_date,
                status=status,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    return _create_sip


@pytest.fixture
def category_factory(session_factory, user):
    def _create_category(name: str = "Dining", owner: Optional[User] = None) -> Category:
        owner = owner or user
        with session_factory() as session:
            row = Category(user_id=owner.id, name=name, slug=name.lower().replace(" ", "-"))
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    return _create_category


@pytest.fixture
def expense_factory(session_factory, user):
    def _create_expense(
        amount: float,
        occurred_at: datetime,
        category_id: Optional[int] = None,
        owner: Optional[User] = None,
    ) -> Transaction:
        owner = owner or user
        with session_factory() as session:
            row = Transaction(
                user_id=owner.id,
                amount=amount,
                txn_type="expense",
                occurred_at=occurred_at,
                category_id=category_id,
                memo="Test expense",
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    return _create_expense


@pytest.fixture
def budget_factory(session_factory, user):
    def _create_budget(
        category_id: int,
        planned_amount: float,
        period_start: date,
        period_end: date,
        owner: Optional[User] = None,
    ) -> Budget:
        owner = owner or user
        with session_factory() as session:
            budget = Budget(
                user_id=owner.id,
                period_start=period_start,
                period_end=period_end,
                label="Monthly",
            )
            session.add(budget)
            session.flush()
            session.add(
                BudgetLine(
                    user_id=owner.id,
                    budget_id=budget.id,
                    category_id=category_id,
                    planned_amount=planned_amount,
                )
            )
            session.refresh(budget)
            return budget

    return _create_budget


# =============================================================================
# Flask Fixtures
# =============================================================================


@pytest.fixture
def app_context(config, quote_provider):
    ctx = create_app_context(
        config,
        provider=quote_provider,
        push_sender=RecordingPushSender(),
        summarizer=InsightSummarizer(client=None),
    )
    yield ctx
    ctx.engine.dispose()


@pytest.fixture
def app(app_context):
    flask_app = create_app("testing", context=app_context)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def api_user(app_context) -> User:
    return app_context.user_repo.create(User(username="api-user"))


@pytest.fixture
def client(app, api_user):
    """Test client sending the identity header for ``api_user``."""

    test_client = app.test_client()
    test_client.environ_base["HTTP_X_USER_ID"] = str(api_user.id)
    return test_client


@pytest.fixture
def anonymous_client(app):
    return app.test_client()
