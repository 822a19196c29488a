from __future__ import annotations

import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote as url_quote
from urllib.request import Request, urlopen

from config import get_settings

logger = logging.getLogger(__name__)

BRAPI_URL = "https://brapi.dev/api/quote/{ticker}"
COINGECKO_URL = (
    "https://api.coingecko.com/api/v3/simple/price"
    "?ids={ids}&vs_currencies=brl&include_24hr_change=true"
)

CRYPTO_COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "AVAX": "avalanche-2",
    "ATOM": "cosmos",
    "XRP": "ripple",
    "DOGE": "dogecoin",
    "SHIB": "shiba-inu",
    "LTC": "litecoin",
    "BCH": "bitcoin-cash",
    "XLM": "stellar",
    "ALGO": "algorand",
    "FIL": "filecoin",
    "AAVE": "aave",
    "ARB": "arbitrum",
    "OP": "optimism",
    "NEAR": "near",
    "USDT": "tether",
    "USDC": "usd-coin",
    "DAI": "dai",
    "BNB": "binancecoin",
}

B3_TICKER = re.compile(r"^[A-Z]{4,6}\d{1,2}$")
CRYPTO_SYMBOL = re.compile(r"^[A-Z]{2,5}$")


class QuoteFetchError(RuntimeError):
    pass


@dataclass(frozen=True)
class Quote:
    ticker: str
    source: str
    price_cents: int = 0
    change_percent: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def price_to_cents(price: float) -> int:
    return int(
        (Decimal(str(price)) * Decimal("100")).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )


def parse_price_cents(value: object) -> Optional[int]:
    """Cents for a numeric provider price, None when it is missing or unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price_to_cents(price)


def is_crypto_ticker(ticker: str) -> bool:
    upper = ticker.upper()
    if upper in CRYPTO_COINGECKO_IDS:
        return True
    if B3_TICKER.match(upper):
        return False
    return bool(CRYPTO_SYMBOL.match(upper))


def _http_get_json(url: str, timeout: float) -> object:
    req = Request(
        url, headers={"Accept": "application/json", "User-Agent": "finance-api/1.0"}
    )
    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except HTTPError as exc:
        if exc.code == 429:
            raise QuoteFetchError("Provider rate limit reached, retry shortly") from exc
        raise QuoteFetchError(f"Provider error {exc.code}") from exc
    except (URLError, TimeoutError, json.JSONDecodeError) as exc:
        raise QuoteFetchError("Quote provider unreachable") from exc


class _QuoteCache:
    """Successful quotes only, expired after the configured TTL."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, Quote]] = {}
        self._lock = threading.Lock()

    def get(self, ticker: str, ttl: float) -> Optional[Quote]:
        with self._lock:
            entry = self._entries.get(ticker)
            if not entry:
                return None
            stored_at, quote = entry
            if time.monotonic() - stored_at >= ttl:
                del self._entries[ticker]
                return None
            return quote

    def put(self, quote: Quote) -> None:
        if not quote.ok:
            return
        with self._lock:
            self._entries[quote.ticker] = (time.monotonic(), quote)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


_cache = _QuoteCache()


def clear_quotes_cache() -> None:
    _cache.clear()


class QuoteService:
    def __init__(self) -> None:
        self.settings = get_settings()

    def fetch(self, items: Iterable[tuple[str, str]]) -> dict[str, Quote]:
        """Fetch quotes for (ticker, investment type) pairs, keyed by upper ticker."""
        b3: list[str] = []
        crypto: list[str] = []
        for ticker, inv_type in items:
            if not ticker:
                continue
            upper = ticker.strip().upper()
            if inv_type in ("stock", "fii", "etf"):
                target = b3
            elif inv_type == "crypto" or is_crypto_ticker(upper):
                target = crypto
            else:
                target = b3
            if upper not in target:
                target.append(upper)

        results: dict[str, Quote] = {}
        ttl = self.settings.quotes_cache_secs
        missing_b3 = []
        for ticker in b3:
            cached = _cache.get(ticker, ttl)
            if cached:
                results[ticker] = cached
            else:
                missing_b3.append(ticker)
        missing_crypto = []
        for ticker in crypto:
            cached = _cache.get(ticker, ttl)
            if cached:
                results[ticker] = cached
            else:
                missing_crypto.append(ticker)

        for quote in self._fetch_brapi(missing_b3):
            _cache.put(quote)
            results[quote.ticker] = quote
        for quote in self._fetch_coingecko(missing_crypto):
            _cache.put(quote)
            results[quote.ticker] = quote

        logger.info(
            f"quotes_fetch: requested={len(b3) + len(crypto)} "
            f"fetched={len(missing_b3) + len(missing_crypto)} "
            f"errors={sum(1 for q in results.values() if not q.ok)}"
        )
        return results

    def _fetch_brapi(self, tickers: list[str]) -> list[Quote]:
        if not tickers:
            return []
        if not self.settings.brapi_token:
            return [
                Quote(ticker=t, source="error", error="Quote API token not configured")
                for t in tickers
            ]

        quotes = []
        for ticker in tickers:
            url = BRAPI_URL.format(ticker=url_quote(ticker))
            url = f"{url}?token={url_quote(self.settings.brapi_token)}"
            try:
                payload = _http_get_json(url, self.settings.quotes_timeout_secs)
            except QuoteFetchError as exc:
                quotes.append(Quote(ticker=ticker, source="error", error=str(exc)))
                continue
            results = payload.get("results") if isinstance(payload, dict) else None
            if not isinstance(results, list) or not results:
                message = payload.get("message") if isinstance(payload, dict) else None
                quotes.append(
                    Quote(
                        ticker=ticker,
                        source="error",
                        error=message or "Ticker not found",
                    )
                )
                continue
            result = results[0] if isinstance(results[0], dict) else {}
            price_cents = parse_price_cents(result.get("regularMarketPrice"))
            if price_cents is None:
                quotes.append(Quote(ticker=ticker, source="error", error="Ticker not found"))
                continue
            quotes.append(
                Quote(
                    ticker=ticker,
                    source="brapi",
                    price_cents=price_cents,
                    change_percent=result.get("regularMarketChangePercent"),
                )
            )
        return quotes

    def _fetch_coingecko(self, tickers: list[str]) -> list[Quote]:
        if not tickers:
            return []
        coin_ids = {t: CRYPTO_COINGECKO_IDS.get(t, t.lower()) for t in tickers}
        url = COINGECKO_URL.format(ids=",".join(coin_ids.values()))
        try:
            payload = _http_get_json(url, self.settings.quotes_timeout_secs)
        except QuoteFetchError as exc:
            return [Quote(ticker=t, source="error", error=str(exc)) for t in tickers]

        quotes = []
        for ticker, coin_id in coin_ids.items():
            entry = payload.get(coin_id) if isinstance(payload, dict) else None
            price_cents = (
                parse_price_cents(entry.get("brl")) if isinstance(entry, dict) else None
            )
            if price_cents is None:
                quotes.append(
                    Quote(ticker=ticker, source="error", error=f"Crypto {ticker} not found")
                )
                continue
            quotes.append(
                Quote(
                    ticker=ticker,
                    source="coingecko",
                    price_cents=price_cents,
                    change_percent=entry.get("brl_24h_change"),
                )
            )
        return quotes
