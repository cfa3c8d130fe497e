"""
Unit tests for MarketDataService - live path, fallback path and shape parity

The Tiingo client is replaced by AsyncMocks; no network calls are made.
"""

import asyncio
from datetime import date

import pytest

from pfaff_terminal.errors import NotFoundError, ProviderError, ValidationError

IEX_AAPL = [{"ticker": "AAPL", "last": 187.8, "prevClose": 185.5, "volume": 51234567,
             "high": 188.2, "low": 185.1, "open": 185.9, "bidPrice": 187.75, "askPrice": 187.85}]


def run(coro):
    return asyncio.run(coro)


def wire_keys(model):
    return set(model.model_dump(by_alias=True).keys())


class TestQuotes:
    def test_live_quote(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = IEX_AAPL

        quote = run(service.get_quote("aapl"))

        fake_client.get_iex_quotes.assert_awaited_once_with(["AAPL"])
        assert quote.data_source == "live"
        assert quote.price == 187.8
        assert service.cache.get("stocks", "AAPL") == quote

    def test_provider_error_falls_back(self, service, fake_client):
        fake_client.get_iex_quotes.side_effect = ProviderError("boom", upstream_status=503)

        quote = run(service.get_quote("AAPL"))

        assert quote.data_source == "fallback"
        assert quote.price == 185.50

    def test_malformed_payload_falls_back(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = {"unexpected": True}

        quote = run(service.get_quote("AAPL"))

        assert quote.data_source == "fallback"

    def test_unconfigured_client_never_calls_upstream(self, service, fake_client):
        fake_client.configured = False

        quote = run(service.get_quote("AAPL"))

        assert quote.data_source == "fallback"
        fake_client.get_iex_quotes.assert_not_awaited()

    def test_unknown_symbol_while_live_is_not_found(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = []

        with pytest.raises(NotFoundError):
            run(service.get_quote("NOPE"))

    def test_invalid_symbol_rejected(self, service):
        with pytest.raises(ValidationError):
            run(service.get_quote("AAPL; DROP TABLE"))

    def test_live_and_fallback_shapes_match(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = IEX_AAPL
        live = run(service.get_quote("AAPL"))
        fake_client.get_iex_quotes.side_effect = ProviderError("down")
        demo = run(service.get_quote("AAPL"))

        assert wire_keys(live) == wire_keys(demo)
        for key in ("symbol", "price", "change", "changePercent", "volume", "dataSource"):
            assert key in wire_keys(live)

    def test_etf_quote_tagged_as_etf(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = [{"ticker": "SPY", "last": 472.3, "prevClose": 469.1}]

        quote = run(service.get_quote("SPY", "etf"))

        assert quote.asset_type == "etf"
        assert service.cache.get("etfs", "SPY") == quote


class TestQuoteBoard:
    def test_single_call_split_into_stocks_and_etfs(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = IEX_AAPL + [{"ticker": "SPY", "last": 472.3, "prevClose": 469.1}]

        board = run(service.get_quote_board(["AAPL"], ["SPY"]))

        fake_client.get_iex_quotes.assert_awaited_once_with(["AAPL", "SPY"])
        assert board.stocks["AAPL"].asset_type == "stock"
        assert board.etfs["SPY"].asset_type == "etf"
        assert board.data_source == "live"
        assert board.market_status == "open"

    def test_missing_symbols_filled_from_fallback(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = IEX_AAPL

        board = run(service.get_quote_board(["AAPL", "MSFT"], ["SPY"]))

        assert board.stocks["AAPL"].data_source == "live"
        assert board.stocks["MSFT"].data_source == "fallback"
        assert board.data_source == "fallback"


class TestHistory:
    def test_live_history_requests_lookback_window(self, service, fake_client, clock):
        fake_client.get_daily_prices.return_value = [
            {"date": "2026-10-15T00:00:00.000Z", "close": 185.0},
            {"date": "2026-10-16T00:00:00.000Z", "close": 187.1},
        ]

        series = run(service.get_history("AAPL", "1W"))

        fake_client.get_daily_prices.assert_awaited_once_with("AAPL", date(2026, 10, 12), date(2026, 10, 19))
        assert series.data_source == "live"
        assert len(series.points) == 2

    def test_upstream_404_is_not_found(self, service, fake_client):
        fake_client.get_daily_prices.side_effect = ProviderError("Ticker not found", upstream_status=404)

        with pytest.raises(NotFoundError):
            run(service.get_history("NOPE", "1M"))

    def test_timeout_falls_back(self, service, fake_client):
        fake_client.get_daily_prices.side_effect = ProviderError("timed out")

        series = run(service.get_history("AAPL", "1M"))

        assert series.data_source == "fallback"
        assert len(series.points) == 30

    def test_period_is_case_insensitive(self, service, fake_client):
        fake_client.configured = False

        assert run(service.get_history("AAPL", "3m")).period == "3M"

    def test_invalid_period_rejected(self, service):
        with pytest.raises(ValidationError):
            run(service.get_history("AAPL", "5Y"))


class TestCryptoAndForex:
    def test_crypto_live_and_missing_pair(self, service, fake_client):
        fake_client.get_crypto_prices.return_value = [{
            "ticker": "btcusd",
            "priceData": [{"date": "2026-10-18", "close": 66064.5}, {"date": "2026-10-19", "close": 67250.0}],
        }]

        snapshot = run(service.get_crypto(["btcusd", "ethusd"]))

        quotes = {quote.symbol: quote for quote in snapshot.quotes}
        assert quotes["BTCUSD"].data_source == "live"
        assert quotes["ETHUSD"].data_source == "fallback"
        assert snapshot.data_source == "fallback"

    def test_forex_live(self, service, fake_client):
        fake_client.get_fx_top.return_value = [
            {"ticker": "eurusd", "bidPrice": 1.0851, "askPrice": 1.0853, "midPrice": 1.0852},
        ]

        snapshot = run(service.get_forex(["EURUSD"]))

        assert snapshot.data_source == "live"
        assert snapshot.quotes[0].asset_type == "forex"

    def test_too_many_symbols_rejected(self, service):
        with pytest.raises(ValidationError):
            run(service.get_crypto([f"C{i}USD" for i in range(51)]))


class TestNewsAndFundamentals:
    def test_news_limit_applied(self, service, fake_client):
        fake_client.get_news.return_value = [
            {"title": f"Story {i}", "url": f"https://example.com/{i}", "source": "example.com",
             "publishedDate": f"2026-10-19T0{i}:00:00Z"}
            for i in range(5)
        ]

        feed = run(service.get_news(["AAPL"], limit=3))

        fake_client.get_news.assert_awaited_once_with(["AAPL"], 3)
        assert feed.data_source == "live"
        assert len(feed.articles) == 3

    def test_empty_news_falls_back(self, service, fake_client):
        fake_client.get_news.return_value = []

        feed = run(service.get_news(limit=5))

        assert feed.data_source == "fallback"
        assert len(feed.articles) == 5

    def test_news_limit_validated(self, service):
        with pytest.raises(ValidationError):
            run(service.get_news(limit=0))

    def test_fundamentals_shape_matches_fallback(self, service, fake_client):
        fake_client.get_fundamentals_daily.return_value = [
            {"date": "2026-10-16", "marketCap": 2.9e12, "peRatio": 29.4, "pbRatio": 44.8},
        ]
        live = run(service.get_fundamentals("AAPL"))
        fake_client.get_fundamentals_daily.side_effect = ProviderError("down", upstream_status=500)
        demo = run(service.get_fundamentals("AAPL"))

        assert live.data_source == "live"
        assert demo.data_source == "fallback"
        assert wire_keys(live) == wire_keys(demo)


def test_technicals_from_fallback_history(service, fake_client):
    fake_client.configured = False

    indicators = run(service.get_technicals("AAPL"))

    assert indicators.data_source == "fallback"
    assert indicators.sma_20 is not None
    assert indicators.sma_50 is not None
    assert 0 <= indicators.rsi <= 100


class TestMalformedPayloads:
    """Whatever Tiingo sends back, a data request ends in live data, fallback data or 404"""

    def test_quote_with_non_text_ticker_falls_back(self, service, fake_client):
        fake_client.get_iex_quotes.return_value = [{"ticker": 42, "last": 187.8}]

        assert run(service.get_quote("AAPL")).data_source == "fallback"

    def test_history_with_bad_close_falls_back(self, service, fake_client):
        fake_client.get_daily_prices.return_value = [{"date": "2026-10-16", "close": {"price": 187.1}}]

        series = run(service.get_history("AAPL", "1W"))

        assert series.data_source == "fallback"
        assert len(series.points) == 7

    def test_crypto_with_bad_bars_falls_back(self, service, fake_client):
        fake_client.get_crypto_prices.return_value = [{"ticker": "btcusd", "priceData": "none"}]

        assert run(service.get_crypto(["btcusd"])).data_source == "fallback"

    def test_forex_with_text_prices_falls_back(self, service, fake_client):
        fake_client.get_fx_top.return_value = [{"ticker": "eurusd", "bidPrice": "low", "askPrice": "high"}]

        assert run(service.get_forex(["eurusd"])).data_source == "fallback"

    def test_news_with_mixed_timezones_stays_live(self, service, fake_client):
        fake_client.get_news.return_value = [
            {"title": "Aware", "url": "https://example.com/a", "publishedDate": "2026-10-18T10:00:00Z"},
            {"title": "Naive", "url": "https://example.com/b", "publishedDate": "2026-10-18T11:00:00"},
        ]

        feed = run(service.get_news(limit=5))

        assert feed.data_source == "live"
        assert [article.title for article in feed.articles] == ["Naive", "Aware"]

    def test_news_with_odd_description_stays_live(self, service, fake_client):
        fake_client.get_news.return_value = [
            {"title": "Fed holds rates", "url": "https://example.com/a",
             "publishedDate": "2026-10-18T10:00:00Z", "description": {"k": 1}},
        ]

        feed = run(service.get_news(limit=5))

        assert feed.data_source == "live"
        assert feed.articles[0].description is None

    def test_news_with_no_usable_items_falls_back(self, service, fake_client):
        fake_client.get_news.return_value = [{"title": None, "url": 5, "publishedDate": {"d": 1}}]

        assert run(service.get_news(limit=5)).data_source == "fallback"

    def test_fundamentals_with_odd_date_stays_live(self, service, fake_client):
        fake_client.get_fundamentals_daily.return_value = [{"date": ["2026-10-16"], "peRatio": 29.4}]

        record = run(service.get_fundamentals("AAPL"))

        assert record.data_source == "live"
        assert record.as_of is None


class TestUpstream404:
    def test_batch_quote_404_falls_back(self, service, fake_client):
        fake_client.get_iex_quotes.side_effect = ProviderError("Not found", upstream_status=404)

        board = run(service.get_quote_board(["AAPL"], ["SPY"]))

        assert board.data_source == "fallback"

    def test_news_404_falls_back(self, service, fake_client):
        fake_client.get_news.side_effect = ProviderError("Not found", upstream_status=404)

        assert run(service.get_news(limit=3)).data_source == "fallback"

    def test_crypto_404_falls_back(self, service, fake_client):
        fake_client.get_crypto_prices.side_effect = ProviderError("Not found", upstream_status=404)

        assert run(service.get_crypto(["btcusd", "ethusd"])).data_source == "fallback"

    def test_single_quote_404_is_not_found(self, service, fake_client):
        fake_client.get_iex_quotes.side_effect = ProviderError("Not found", upstream_status=404)

        with pytest.raises(NotFoundError):
            run(service.get_quote("NOPE"))

    def test_fundamentals_404_is_not_found(self, service, fake_client):
        fake_client.get_fundamentals_daily.side_effect = ProviderError("Not found", upstream_status=404)

        with pytest.raises(NotFoundError):
            run(service.get_fundamentals("NOPE"))
