import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

import quotes
from config import get_settings
from database import Base
from errors import ValidationError
from models import InvestmentType
from quotes import Quote, QuoteFetchError, QuoteService, is_crypto_ticker, price_to_cents
from schemas import InvestmentIn, InvestmentUpdate
from services import InvestmentService, QuoteRefreshService


@pytest.fixture(autouse=True)
def _fresh_cache():
    quotes.clear_quotes_cache()
    yield
    quotes.clear_quotes_cache()


class FakeProvider:
    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = responses
        self.calls: list[str] = []

    def __call__(self, url: str, timeout: float) -> object:
        self.calls.append(url)
        for marker, response in self.responses.items():
            if marker in url:
                if isinstance(response, Exception):
                    raise response
                return response
        return {}


class FakeQuotes:
    def __init__(self, quotes_by_ticker: dict[str, Quote]) -> None:
        self.quotes_by_ticker = quotes_by_ticker
        self.requested: list[tuple[str, str]] = []

    def fetch(self, items):
        items = list(items)
        self.requested.extend(items)
        return {
            t.upper(): self.quotes_by_ticker[t.upper()]
            for t, _type in items
            if t.upper() in self.quotes_by_ticker
        }


def test_ticker_classification() -> None:
    assert is_crypto_ticker("BTC")
    assert is_crypto_ticker("eth")
    assert is_crypto_ticker("PEPE")
    assert not is_crypto_ticker("PETR4")
    assert not is_crypto_ticker("HGLG11")


def test_price_to_cents_rounds_half_up() -> None:
    assert price_to_cents(38.455) == 3846
    assert price_to_cents(0.1) == 10
    assert price_to_cents(350000) == 35_000_000


def test_fetch_routes_providers_and_caches(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "brapi_token", "test-token")
    provider = FakeProvider(
        {
            "brapi.dev/api/quote/PETR4": {
                "results": [
                    {"regularMarketPrice": 38.5, "regularMarketChangePercent": 1.25}
                ]
            },
            "coingecko": {"bitcoin": {"brl": 350000.12, "brl_24h_change": -2.5}},
        }
    )
    monkeypatch.setattr(quotes, "_http_get_json", provider)

    result = QuoteService().fetch([("petr4", "stock"), ("BTC", "crypto"), ("PETR4", "stock")])
    assert result["PETR4"] == Quote(
        ticker="PETR4", source="brapi", price_cents=3850, change_percent=1.25
    )
    assert result["BTC"].source == "coingecko"
    assert result["BTC"].price_cents == 35_000_012
    assert result["BTC"].change_percent == -2.5
    assert len(provider.calls) == 2
    assert "token=test-token" in provider.calls[0]

    again = QuoteService().fetch([("PETR4", "stock"), ("BTC", "crypto")])
    assert again == result
    assert len(provider.calls) == 2


def test_fetch_reports_errors_without_caching_them(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "brapi_token", "test-token")
    provider = FakeProvider(
        {
            "VALE3": QuoteFetchError("Provider rate limit reached, retry shortly"),
            "NOPE3": {"results": [], "message": "Ticker not found"},
            "coingecko": {},
        }
    )
    monkeypatch.setattr(quotes, "_http_get_json", provider)

    result = QuoteService().fetch(
        [("VALE3", "stock"), ("NOPE3", "stock"), ("DOGE", "crypto")]
    )
    assert not result["VALE3"].ok
    assert "rate limit" in result["VALE3"].error
    assert result["NOPE3"].error == "Ticker not found"
    assert result["DOGE"].error == "Crypto DOGE not found"

    QuoteService().fetch([("VALE3", "stock")])
    assert len(provider.calls) == 4


def test_brapi_requires_token(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "brapi_token", None)
    provider = FakeProvider({})
    monkeypatch.setattr(quotes, "_http_get_json", provider)

    result = QuoteService().fetch([("ITSA4", "stock")])
    assert result["ITSA4"].error == "Quote API token not configured"
    assert provider.calls == []


def test_refresh_revalues_quotable_investments() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        mine = InvestmentService(session, user_id=1)
        petr = mine.create(
            InvestmentIn(
                type=InvestmentType.stock,
                name="Petrobras",
                ticker="petr4",
                quantity=10,
                average_price_cents=3_000,
            )
        )
        assert petr.ticker == "PETR4"
        assert petr.total_invested_cents == 30_000
        btc = mine.create(
            InvestmentIn(
                type=InvestmentType.crypto,
                name="Bitcoin",
                ticker="BTC",
                quantity=0.5,
                average_price_cents=20_000_000,
            )
        )
        cdb = mine.create(
            InvestmentIn(
                type=InvestmentType.cdb,
                name="CDB Banco",
                initial_deposit_cents=100_000,
            )
        )
        assert cdb.quantity == 1
        assert cdb.current_value_cents == 100_000

        fake = FakeQuotes(
            {
                "PETR4": Quote(ticker="PETR4", source="brapi", price_cents=3_500),
                "BTC": Quote(ticker="BTC", source="error", error="Provider error 500"),
            }
        )
        preview = QuoteRefreshService(session, quotes=fake).preview()
        assert [row["ticker"] for row in preview] == ["PETR4", "BTC"]
        assert preview[0]["old_price_cents"] == 3_000
        assert preview[0]["new_price_cents"] == 3_500
        assert preview[1]["new_price_cents"] is None
        assert preview[1]["error"] == "Provider error 500"

        result = QuoteRefreshService(session, quotes=fake).refresh()
        assert result["updated"] == 1
        assert result["updated_tickers"] == ["PETR4"]
        assert result["errors"] == [{"ticker": "BTC", "error": "Provider error 500"}]
        assert ("CDB Banco", "cdb") not in fake.requested

        petr = mine.get(petr.id)
        assert petr.current_price_cents == 3_500
        assert petr.current_value_cents == 35_000
        assert petr.profit_loss_cents == 5_000
        assert petr.profit_loss_percent == pytest.approx(16.6667, rel=1e-3)
        assert petr.quote_updated_at is not None
        assert mine.get(btc.id).current_price_cents == 20_000_000


def test_refresh_without_investments() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        result = QuoteRefreshService(session, quotes=FakeQuotes({})).refresh()
        assert result["updated"] == 0
        assert result["message"] == "No investments to update"


def test_fixed_income_requires_initial_deposit_and_manual_price() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = InvestmentService(session, user_id=1)
        with pytest.raises(ValidationError):
            service.create(InvestmentIn(type=InvestmentType.treasury, name="Tesouro"))

        treasury = service.create(
            InvestmentIn(
                type=InvestmentType.treasury, name="Tesouro", initial_deposit_cents=50_000
            )
        )
        treasury = service.update(
            treasury.id, InvestmentUpdate(current_price_cents=52_500)
        )
        assert treasury.current_value_cents == 52_500
        assert treasury.profit_loss_cents == 2_500
        assert treasury.profit_loss_percent == pytest.approx(5.0)


def test_unusable_provider_prices_become_error_quotes(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "brapi_token", "test-token")
    provider = FakeProvider(
        {
            "PETR4": {"results": [{"symbol": "PETR4", "regularMarketPrice": None}]},
            "VALE3": {"results": [{"symbol": "VALE3"}]},
            "ITUB4": {"results": [{"symbol": "ITUB4", "regularMarketPrice": "n/a"}]},
            "coingecko": {"bitcoin": {"brl": None}},
        }
    )
    monkeypatch.setattr(quotes, "_http_get_json", provider)

    result = QuoteService().fetch(
        [("PETR4", "stock"), ("VALE3", "stock"), ("ITUB4", "stock"), ("BTC", "crypto")]
    )
    for ticker in ("PETR4", "VALE3", "ITUB4"):
        assert result[ticker] == Quote(
            ticker=ticker, source="error", error="Ticker not found"
        )
    assert result["BTC"].error == "Crypto BTC not found"


def test_refresh_reports_null_price_per_ticker(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "brapi_token", "test-token")
    provider = FakeProvider(
        {
            "PETR4": {"results": [{"symbol": "PETR4", "regularMarketPrice": None}]},
            "BBAS3": {"results": [{"symbol": "BBAS3", "regularMarketPrice": 27.3}]},
        }
    )
    monkeypatch.setattr(quotes, "_http_get_json", provider)
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = InvestmentService(session, user_id=1)
        for ticker in ("PETR4", "BBAS3"):
            service.create(
                InvestmentIn(
                    type=InvestmentType.stock,
                    name=ticker,
                    ticker=ticker,
                    quantity=1,
                    average_price_cents=2_000,
                )
            )

        result = QuoteRefreshService(session).refresh()
        assert result["updated_tickers"] == ["BBAS3"]
        assert result["errors"] == [{"ticker": "PETR4", "error": "Ticker not found"}]
