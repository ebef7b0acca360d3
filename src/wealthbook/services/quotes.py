"""Market quote and mutual-fund NAV providers.

Every provider call is bounded by a timeout and reports failure as an absent
value. Callers never see provider exceptions.
"""

from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Lock
from typing import Iterable, Optional, Protocol

import requests
import yfinance as yf

from ..logging_config import get_logger

logger = get_logger("quotes")

SCHEME_CACHE_TTL_SECONDS = 6 * 60 * 60

SKIP_MISSING_MAPPING = "missingMapping"
SKIP_SOURCE_UNAVAILABLE = "sourceUnavailable"
SKIP_INVALID_PRICE = "invalidPrice"
SKIP_REASONS = (SKIP_MISSING_MAPPING, SKIP_SOURCE_UNAVAILABLE, SKIP_INVALID_PRICE)


@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    currency: str = "INR"
    name: str = ""


@dataclass(frozen=True)
class NavQuote:
    scheme_code: str
    scheme_name: str
    nav: float
    nav_date: str = ""


@dataclass(frozen=True)
class MfScheme:
    scheme_code: str
    scheme_name: str


class QuoteProvider(Protocol):
    """Price lookups the ledger and SIP scheduler depend on."""

    def get_quote(self, symbol: str) -> Optional[Quote]:
        ...

    def get_quotes(self, symbols: Iterable[str]) -> dict[str, Quote]:
        ...

    def get_latest_mf_nav(self, scheme_code: str) -> Optional[NavQuote]:
        ...

    def search_schemes(self, query: str, limit: int = 12) -> list[MfScheme]:
        ...


def _as_float(value) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


class YahooQuoteProvider:
    """Market quotes from Yahoo Finance via ``yfinance``."""

    def __init__(self, timeout: float = 8.0, batch_size: int = 10):
        self.timeout = timeout
        self.batch_size = max(1, batch_size)

    def _fetch(self, symbol: str) -> Optional[Quote]:
        ticker = yf.Ticker(symbol)
        fast = ticker.fast_info
        price = _as_float(getattr(fast, "last_price", None))
        previous = _as_float(getattr(fast, "previous_close", None))
        if price is None:
            hist = ticker.history(period="5d", interval="1d", auto_adjust=False)
            if hist.empty:
                return None
            price = _as_float(hist["Close"].iloc[-1])
            if price is None:
                return None
        currency = getattr(fast, "currency", None)
        change = price - previous if previous else 0.0
        change_percent = (change / previous * 100) if previous else 0.0
        return Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            currency=currency or "INR",
            name=symbol,
        )

    def _safe_fetch(self, symbol: str) -> Optional[Quote]:
        try:
            return self._fetch(symbol)
        except Exception:  # yfinance surfaces network and parse failures untyped
            logger.warning("Quote lookup failed", extra={"symbol": symbol}, exc_info=True)
            return None

    def get_quote(self, symbol: str) -> Optional[Quote]:
        symbol = (symbol or "").strip()
        if not symbol:
            return None
        return self.get_quotes([symbol]).get(symbol)

    def get_quotes(self, symbols: Iterable[str]) -> dict[str, Quote]:
        """Fetch quotes in parallel batches; missing symbols are absent."""

        unique = list(dict.fromkeys(s.strip() for s in symbols if s and s.strip()))
        results: dict[str, Quote] = {}
        for start in range(0, len(unique), self.batch_size):
            batch = unique[start : start + self.batch_size]
            executor = ThreadPoolExecutor(max_workers=len(batch))
            try:
                futures = {executor.submit(self._safe_fetch, symbol): symbol for symbol in batch}
                done, pending = wait(futures, timeout=self.timeout)
                for future in done:
                    quote = future.result()
                    if quote is not None:
                        results[futures[future]] = quote
                for future in pending:
                    logger.warning("Quote lookup timed out", extra={"symbol": futures[future]})
            finally:
                executor.shutdown(wait=False, cancel_futures=True)
        return results

    def get_latest_mf_nav(self, scheme_code: str) -> Optional[NavQuote]:
        return None


class MfNavClient:
    """Latest NAV lookups against the mfapi.in scheme API."""

    def __init__(
        self,
        base_url: str = "https://api.mfapi.in/mf",
        timeout: float = 8.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._scheme_cache: Optional[tuple[float, list[MfScheme]]] = None
        self._cache_lock = Lock()

    def _get_json(self, url: str):
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError):
            logger.warning("NAV request failed", extra={"url": url}, exc_info=True)
            return None

    def get_latest_mf_nav(self, scheme_code: str) -> Optional[NavQuote]:
        code = str(scheme_code or "").strip()
        if not code:
            return None
        payload = self._get_json(f"{self.base_url}/{requests.utils.quote(code)}")
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        nav = _as_float(data[0].get("nav"))
        if nav is None:
            return None
        meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
        return NavQuote(
            scheme_code=code,
            scheme_name=str(meta.get("scheme_name") or code),
            nav=nav,
            nav_date=str(data[0].get("date") or ""),
        )

    def list_schemes(self) -> list[MfScheme]:
        """Full scheme list, cached in memory for six hours."""

        with self._cache_lock:
            cached = self._scheme_cache
            if cached and time.monotonic() - cached[0] < SCHEME_CACHE_TTL_SECONDS:
                return cached[1]
        payload = self._get_json(self.base_url)
        if not isinstance(payload, list):
            return []
        schemes = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            code = str(item.get("schemeCode") or "").strip()
            name = str(item.get("schemeName") or "").strip()
            if code and name:
                schemes.append(MfScheme(scheme_code=code, scheme_name=name))
        with self._cache_lock:
            self._scheme_cache = (time.monotonic(), schemes)
        return schemes

    def search_schemes(self, query: str, limit: int = 12) -> list[MfScheme]:
        needle = (query or "").strip().lower()
        if not needle:
            return []
        matches = [
            scheme
            for scheme in self.list_schemes()
            if needle in scheme.scheme_name.lower() or needle in scheme.scheme_code
        ]
        return matches[:limit]


class MarketDataProvider:
    """Single provider facade over the market and NAV sources."""

    def __init__(self, market: YahooQuoteProvider, nav: MfNavClient):
        self.market = market
        self.nav = nav

    @classmethod
    def from_config(cls, config) -> "MarketDataProvider":
        return cls(
            YahooQuoteProvider(timeout=config.QUOTE_TIMEOUT, batch_size=config.QUOTE_BATCH_SIZE),
            MfNavClient(base_url=config.MF_NAV_URL, timeout=config.QUOTE_TIMEOUT),
        )

    def get_quote(self, symbol: str) -> Optional[Quote]:
        return self.market.get_quote(symbol)

    def get_quotes(self, symbols: Iterable[str]) -> dict[str, Quote]:
        return self.market.get_quotes(symbols)

    def get_latest_mf_nav(self, scheme_code: str) -> Optional[NavQuote]:
        return self.nav.get_latest_mf_nav(scheme_code)

    def search_schemes(self, query: str, limit: int = 12) -> list[MfScheme]:
        return self.nav.search_schemes(query, limit)


@dataclass(frozen=True)
class PriceResolution:
    price: Optional[float] = None
    skip_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.skip_reason is None


class PriceResolver:
    """Resolve a SIP's price from its pricing source, memoising per run."""

    def __init__(self, provider: QuoteProvider):
        self.provider = provider
        self._quotes: dict[str, Optional[Quote]] = {}
        self._navs: dict[str, Optional[NavQuote]] = {}

    def prefetch(self, sips: Iterable) -> None:
        """Batch-load market quotes for every market-priced SIP in *sips*."""

        symbols = [
            s.symbol
            for s in sips
            if s.price_source == "market" and s.symbol and s.symbol not in self._quotes
        ]
        if not symbols:
            return
        fetched = self.provider.get_quotes(symbols)
        for symbol in symbols:
            self._quotes[symbol] = fetched.get(symbol)

    def resolve(self, sip) -> PriceResolution:
        if sip.price_source == "mf_nav":
            code = (sip.scheme_code or "").strip()
            if not code:
                return PriceResolution(skip_reason=SKIP_MISSING_MAPPING)
            if code not in self._navs:
                self._navs[code] = self.provider.get_latest_mf_nav(code)
            nav = self._navs[code]
            price = nav.nav if nav else None
        else:
            symbol = (sip.symbol or "").strip()
            if not symbol:
                return PriceResolution(skip_reason=SKIP_MISSING_MAPPING)
            if symbol not in self._quotes:
                self._quotes[symbol] = self.provider.get_quote(symbol)
            quote = self._quotes[symbol]
            price = quote.price if quote else None

        if price is None:
            return PriceResolution(skip_reason=SKIP_SOURCE_UNAVAILABLE)
        if price <= 0:
            return PriceResolution(price=price, skip_reason=SKIP_INVALID_PRICE)
        return PriceResolution(price=price)
