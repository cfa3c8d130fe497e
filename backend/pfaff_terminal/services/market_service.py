"""
This is the Market Data Service for Pfaff Terminal. Every data route in the
API goes through it.

For each request it makes exactly one call to Tiingo, reshapes the payload
with the normalizer, and returns it tagged data_source="live". If the token
is missing, the call fails, or the payload is not what we expect, it returns
demo data of the same shape tagged data_source="fallback" instead. The
response shape never depends on where the data came from.

The only upstream failure that is not papered over is "this symbol does not
exist" (Tiingo answers 404, or answers successfully without the symbol):
that becomes a NotFoundError.

Example usage:
    service = MarketDataService(TiingoClient(api_key), FallbackGenerator(), MarketCache())
    quote = await service.get_quote('AAPL')
    series = await service.get_history('AAPL', '1M')
"""

import re
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from ..errors import NotFoundError, ProviderError, ValidationError
from ..models.market import (
    PERIOD_DAYS,
    FundamentalsRecord,
    HistoricalSeries,
    MarketSnapshot,
    NewsFeed,
    Quote,
    QuoteBoard,
    TechnicalIndicators,
    combined_source,
)
from ..utils.clock import SystemClock
from ..utils.market_cache import MarketCache
from ..utils.market_hours import MarketHours
from . import normalizer
from .fallback import FallbackGenerator
from .technicals import calculate_indicators
from .tiingo_client import TiingoClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,14}$")
MAX_SYMBOLS = 50
MAX_NEWS_LIMIT = 50


def normalize_symbol(symbol: str) -> str:
    """Upper-case and validate a ticker, crypto pair or forex pair"""
    cleaned = (symbol or "").strip().upper()
    if not SYMBOL_PATTERN.match(cleaned):
        raise ValidationError(f"Invalid symbol: {symbol!r}")
    return cleaned


def normalize_symbols(symbols: List[str]) -> List[str]:
    cleaned: List[str] = []
    for symbol in symbols:
        value = normalize_symbol(symbol)
        if value not in cleaned:
            cleaned.append(value)
    if not cleaned:
        raise ValidationError("At least one symbol is required")
    if len(cleaned) > MAX_SYMBOLS:
        raise ValidationError(f"Maximum {MAX_SYMBOLS} symbols per request")
    return cleaned


def validate_period(period: str) -> str:
    value = (period or "").strip().upper()
    if value not in PERIOD_DAYS:
        raise ValidationError(f"Invalid period {period!r}; expected one of {', '.join(PERIOD_DAYS)}")
    return value


class MarketDataService:
    """
    One upstream call per request, normalized, with demo data as the safety net
    """

    def __init__(
        self,
        client: TiingoClient,
        fallback: FallbackGenerator,
        cache: Optional[MarketCache] = None,
        clock=None,
        market_hours: Optional[MarketHours] = None,
    ):
        self.client = client
        self.fallback = fallback
        self.clock = clock or SystemClock()
        self.cache = cache or MarketCache(clock=self.clock)
        self.market_hours = market_hours or MarketHours(clock=self.clock)

    @property
    def upstream_configured(self) -> bool:
        return self.client.configured

    async def _resolve(self, resource: str, key: str,
                       fetch: Callable[[], Awaitable[T]], fallback: Callable[[], T],
                       single_symbol: bool = False) -> T:
        """
        Live value when possible, fallback value otherwise. An upstream 404 on a
        single-symbol lookup means the symbol is unknown and raises NotFoundError;
        on batch or feed calls it is just another upstream failure.
        """
        if not self.client.configured:
            logger.debug(f"No Tiingo token, serving fallback {resource} for {key}")
            return fallback()

        try:
            return await fetch()
        except ProviderError as e:
            if single_symbol and e.upstream_status == 404:
                raise NotFoundError(f"Unknown symbol: {key}") from e
            logger.warning(f"Tiingo {resource} failed for {key}: {str(e)}. Serving fallback data.")
            return fallback()

    async def get_quote(self, symbol: str, asset_type: str = "stock") -> Quote:
        symbol = normalize_symbol(symbol)

        async def fetch() -> Quote:
            payload = await self.client.get_iex_quotes([symbol])
            quotes = normalizer.parse_iex_quotes(payload, asset_type, self.clock.now())
            if symbol not in quotes:
                raise NotFoundError(f"Unknown symbol: {symbol}")
            return quotes[symbol]

        quote = await self._resolve("quote", symbol, fetch, lambda: self.fallback.quote(symbol, asset_type),
                                   single_symbol=True)
        self.cache.record("etfs" if asset_type == "etf" else "stocks", symbol, quote, quote.data_source)
        return quote

    async def _quote_map(self, resource: str, symbols: List[str], asset_type: str,
                         fetch: Callable[[], Awaitable[Dict[str, Quote]]]) -> Dict[str, Quote]:
        """Batch lookup; symbols missing from a live answer are filled with fallback quotes"""
        live = await self._resolve(resource, ",".join(symbols), fetch, lambda: {})
        quotes: Dict[str, Quote] = {}
        for symbol in symbols:
            quotes[symbol] = live.get(symbol) or self.fallback.quote(symbol, asset_type)
        return quotes

    async def get_quote_board(self, stock_symbols: List[str], etf_symbols: List[str]) -> QuoteBoard:
        """Stocks and ETFs for the dashboard watchlists, fetched in a single call"""
        stock_symbols = normalize_symbols(stock_symbols)
        etf_symbols = normalize_symbols(etf_symbols)
        now = self.clock.now()

        async def fetch() -> Dict[str, Quote]:
            payload = await self.client.get_iex_quotes(stock_symbols + etf_symbols)
            stocks = normalizer.parse_iex_quotes(payload, "stock", now)
            # Re-tag the ETF rows of the same payload
            return {
                symbol: quote.model_copy(update={"asset_type": "etf"}) if symbol in etf_symbols else quote
                for symbol, quote in stocks.items()
            }

        live = await self._resolve("quotes", "watchlist", fetch, lambda: {})
        stocks = {symbol: live.get(symbol) or self.fallback.quote(symbol, "stock") for symbol in stock_symbols}
        etfs = {symbol: live.get(symbol) or self.fallback.quote(symbol, "etf") for symbol in etf_symbols}

        for symbol, quote in stocks.items():
            self.cache.record("stocks", symbol, quote, quote.data_source)
        for symbol, quote in etfs.items():
            self.cache.record("etfs", symbol, quote, quote.data_source)

        sources = [quote.data_source for quote in list(stocks.values()) + list(etfs.values())]
        return QuoteBoard(
            stocks=stocks,
            etfs=etfs,
            data_source=combined_source(sources),
            market_status=self.market_hours.get_market_status(),
            last_updated=now,
        )

    async def get_history(self, symbol: str, period: str = "1M") -> HistoricalSeries:
        symbol = normalize_symbol(symbol)
        period = validate_period(period)
        today = self.clock.now().date()
        start = today - timedelta(days=PERIOD_DAYS[period])

        async def fetch() -> HistoricalSeries:
            payload = await self.client.get_daily_prices(symbol, start, today)
            return normalizer.parse_daily_prices(payload, symbol, period, self.clock.now())

        series = await self._resolve("history", symbol, fetch, lambda: self.fallback.history(symbol, period),
                                    single_symbol=True)
        self.cache.record("history", f"{symbol}:{period}", series, series.data_source)
        return series

    async def get_technicals(self, symbol: str) -> TechnicalIndicators:
        """Indicators need 50+ closes, so they are computed over the 3M series"""
        series = await self.get_history(symbol, "3M")
        return calculate_indicators(series)

    async def get_crypto(self, symbols: List[str]) -> MarketSnapshot:
        symbols = normalize_symbols(symbols)
        start = self.clock.now().date() - timedelta(days=3)

        async def fetch() -> Dict[str, Quote]:
            payload = await self.client.get_crypto_prices(symbols, start)
            return normalizer.parse_crypto_prices(payload, self.clock.now())

        quotes = await self._quote_map("crypto", symbols, "crypto", fetch)
        return self._snapshot("crypto", quotes)

    async def get_forex(self, pairs: List[str]) -> MarketSnapshot:
        pairs = normalize_symbols(pairs)

        async def fetch() -> Dict[str, Quote]:
            payload = await self.client.get_fx_top(pairs)
            return normalizer.parse_fx_top(payload, self.clock.now())

        quotes = await self._quote_map("forex", pairs, "forex", fetch)
        return self._snapshot("forex", quotes)

    def _snapshot(self, category: str, quotes: Dict[str, Quote]) -> MarketSnapshot:
        for symbol, quote in quotes.items():
            self.cache.record(category, symbol, quote, quote.data_source)
        return MarketSnapshot(
            quotes=list(quotes.values()),
            data_source=combined_source([quote.data_source for quote in quotes.values()]),
            last_updated=self.clock.now(),
        )

    async def get_news(self, tickers: Optional[List[str]] = None, limit: int = 10) -> NewsFeed:
        tickers = normalize_symbols(tickers) if tickers else []
        if limit < 1 or limit > MAX_NEWS_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_NEWS_LIMIT}")
        key = ",".join(tickers) or "market"

        async def fetch() -> NewsFeed:
            payload = await self.client.get_news(tickers, limit)
            articles = normalizer.parse_news(payload)
            if not articles:
                raise ProviderError("Tiingo returned no usable news articles")
            return NewsFeed(articles=articles[:limit], data_source="live", last_updated=self.clock.now())

        def fallback() -> NewsFeed:
            return NewsFeed(
                articles=self.fallback.news(tickers, limit),
                data_source="fallback",
                last_updated=self.clock.now(),
            )

        feed = await self._resolve("news", key, fetch, fallback)
        self.cache.record("news", key, feed, feed.data_source)
        return feed

    async def get_fundamentals(self, symbol: str) -> FundamentalsRecord:
        symbol = normalize_symbol(symbol)

        async def fetch() -> FundamentalsRecord:
            payload = await self.client.get_fundamentals_daily(symbol)
            return normalizer.parse_fundamentals_daily(payload, symbol)

        record = await self._resolve("fundamentals", symbol, fetch, lambda: self.fallback.fundamentals(symbol),
                                    single_symbol=True)
        self.cache.record("fundamentals", symbol, record, record.data_source)
        return record
