"""
Normalizer for Pfaff Terminal

Pure functions that turn raw Tiingo payloads into the models in
models/market.py. Each upstream endpoint has its own known shape and its own
parser; nothing here guesses between shapes. Anything that does not match the
expected shape raises ProviderError, which sends the caller down the same
fallback path as a failed HTTP call.

Shapes handled:
- IEX quotes:        [{ticker, last | tngoLast, prevClose, open, high, low, volume, bidPrice, askPrice}]
- EOD prices:        [{date, close, volume, ...}]
- Crypto prices:     [{ticker, priceData: [{date, open, high, low, close, volume}]}]
- FX top-of-book:    [{ticker, bidPrice, askPrice, midPrice}]
- News:              [{title, source, publishedDate, url, description, tickers}]
- Fundamentals:      [{date, marketCap, peRatio, pbRatio}]

Every quote type derives its change the same way: change = last - previous close.
"""

import math
import re
import numpy as np
import pandas as pd
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from ..errors import ProviderError
from ..models.market import (
    FundamentalsRecord,
    HistoricalPoint,
    HistoricalSeries,
    NewsArticle,
    Quote,
)

# Price precision per asset type
PRICE_DECIMALS = {"stock": 2, "etf": 2, "crypto": 4, "forex": 5}

M = TypeVar("M", bound=BaseModel)


def _records(payload: Any, resource: str) -> List[Dict[str, Any]]:
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise ProviderError(f"Unexpected {resource} payload from Tiingo")
    return payload


def _build(model: Type[M], **fields) -> M:
    """Construct a model from upstream values; a field of the wrong type means a malformed payload"""
    try:
        return model(**fields)
    except (ModelValidationError, TypeError, ValueError) as e:
        raise ProviderError(f"Malformed Tiingo {model.__name__} record: {str(e)}") from e


def _timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Upstream date as a UTC timestamp; naive values are read as UTC. None when unparseable"""
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(record: Dict[str, Any], *keys: str, required: bool = False) -> Optional[float]:
    """First finite numeric value among keys"""
    for key in keys:
        value = record.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            continue
        if math.isfinite(number):
            return number
    if required:
        raise ProviderError(f"Missing numeric field {'/'.join(keys)} in Tiingo payload")
    return None


def _volume(value: Optional[float]) -> int:
    if value is None:
        return 0
    return max(0, int(value))


def derive_change(last: float, previous_close: Optional[float], decimals: int) -> float:
    """change = last - previous close; 0 when there is no previous close to compare with"""
    if previous_close is None:
        return 0.0
    return round(last - previous_close, decimals)


def _quote(symbol: str, asset_type: str, last: float, previous_close: Optional[float],
           now: datetime, **extra) -> Quote:
    decimals = PRICE_DECIMALS[asset_type]
    price = round(last, decimals)
    if previous_close is not None:
        previous_close = round(previous_close, decimals)
    return _build(
        Quote,
        symbol=symbol,
        asset_type=asset_type,
        price=price,
        change=derive_change(price, previous_close, decimals),
        data_source="live",
        last_updated=now,
        **extra,
    )


def _ticker(record: Dict[str, Any], resource: str) -> str:
    ticker = _text(record.get("ticker"))
    if ticker is None:
        raise ProviderError(f"Tiingo {resource} record without ticker")
    return ticker.upper()


def parse_iex_quotes(payload: Any, asset_type: str, now: datetime) -> Dict[str, Quote]:
    """IEX quote list -> {SYMBOL: Quote}"""
    quotes: Dict[str, Quote] = {}
    for record in _records(payload, "quote"):
        symbol = _ticker(record, "quote")
        last = _number(record, "last", "tngoLast", "prevClose", required=True)
        quotes[symbol] = _quote(
            symbol,
            asset_type,
            last,
            _number(record, "prevClose"),
            now,
            volume=_volume(_number(record, "volume")),
            high=_number(record, "high"),
            low=_number(record, "low"),
            open=_number(record, "open"),
            bid=_number(record, "bidPrice"),
            ask=_number(record, "askPrice"),
        )
    return quotes


def parse_daily_prices(payload: Any, symbol: str, period: str, now: datetime) -> HistoricalSeries:
    """EOD bar list -> HistoricalSeries, ascending, one point per date"""
    records = _records(payload, "history")
    points: List[HistoricalPoint] = []

    if records:
        df = pd.DataFrame(records)
        if "date" not in df.columns or "close" not in df.columns:
            raise ProviderError("Tiingo history payload missing date/close columns")
        try:
            df["date"] = pd.to_datetime(df["date"], utc=True, format="ISO8601").dt.date
            df["close"] = pd.to_numeric(df["close"], errors="raise")
        except (ValueError, TypeError, OverflowError) as e:
            raise ProviderError(f"Malformed Tiingo history payload: {str(e)}") from e

        if "volume" in df.columns:
            # Volume is optional; unusable values just drop out
            df["volume"] = pd.to_numeric(df["volume"], errors="coerce")
        else:
            df["volume"] = float("nan")

        df = df.dropna(subset=["date", "close"])
        df = df[np.isfinite(df["close"].astype(float))]
        df = df.sort_values("date", kind="stable").drop_duplicates(subset="date", keep="last")

        for row in df.itertuples(index=False):
            volume = float(row.volume)
            points.append(_build(
                HistoricalPoint,
                date=row.date,
                close=round(float(row.close), 2),
                volume=_volume(volume) if math.isfinite(volume) else None,
            ))

    return HistoricalSeries(
        symbol=symbol,
        period=period,
        points=points,
        data_source="live",
        last_updated=now,
    )


def parse_crypto_prices(payload: Any, now: datetime) -> Dict[str, Quote]:
    """Crypto price list with nested daily bars -> {SYMBOL: Quote}"""
    quotes: Dict[str, Quote] = {}
    for record in _records(payload, "crypto"):
        symbol = _ticker(record, "crypto")
        bars = record.get("priceData")
        if not isinstance(bars, list) or not bars:
            raise ProviderError(f"Tiingo crypto record for {symbol} has no price data")

        bars = sorted((bar for bar in bars if isinstance(bar, dict)), key=lambda bar: str(bar.get("date", "")))
        if not bars:
            raise ProviderError(f"Tiingo crypto record for {symbol} has no usable bars")
        latest = bars[-1]
        last = _number(latest, "close", required=True)
        if len(bars) > 1:
            previous_close = _number(bars[-2], "close")
        else:
            previous_close = _number(latest, "open")

        quotes[symbol] = _quote(
            symbol,
            "crypto",
            last,
            previous_close,
            now,
            volume=_volume(_number(latest, "volume")),
            high=_number(latest, "high"),
            low=_number(latest, "low"),
            open=_number(latest, "open"),
        )
    return quotes


def parse_fx_top(payload: Any, now: datetime) -> Dict[str, Quote]:
    """FX top-of-book list -> {PAIR: Quote}; top-of-book carries no previous close"""
    quotes: Dict[str, Quote] = {}
    for record in _records(payload, "forex"):
        symbol = _ticker(record, "forex")
        bid = _number(record, "bidPrice")
        ask = _number(record, "askPrice")
        mid = _number(record, "midPrice")
        if mid is None:
            if bid is None or ask is None:
                raise ProviderError(f"Tiingo forex record for {symbol} has no price")
            mid = (bid + ask) / 2

        quotes[symbol] = _quote(symbol, "forex", mid, None, now, bid=bid, ask=ask)
    return quotes


def _title_key(title: str) -> str:
    return re.sub(r"\s+", " ", title).strip().lower()


def dedupe_articles(articles: Iterable[NewsArticle]) -> List[NewsArticle]:
    """Remove duplicate news articles based on title"""
    unique: List[NewsArticle] = []
    seen_titles = set()
    for article in articles:
        key = _title_key(article.title)
        if key not in seen_titles:
            seen_titles.add(key)
            unique.append(article)
    return unique


def parse_news(payload: Any) -> List[NewsArticle]:
    """News list -> articles, newest first, duplicate titles dropped"""
    articles: List[NewsArticle] = []
    for record in _records(payload, "news"):
        title = _text(record.get("title"))
        url = _text(record.get("url"))
        published = _timestamp(record.get("publishedDate"))
        if not title or not url or published is None:
            # Tiingo occasionally ships half-filled items; skip them
            continue

        tickers = record.get("tickers")
        if not isinstance(tickers, list):
            tickers = []
        articles.append(NewsArticle(
            title=title,
            source=_text(record.get("source")) or "Tiingo",
            published_at=published.to_pydatetime(),
            url=url,
            description=_text(record.get("description")),
            tickers=[ticker.upper() for ticker in tickers if isinstance(ticker, str) and ticker],
        ))

    articles.sort(key=lambda article: article.published_at, reverse=True)
    return dedupe_articles(articles)


def parse_fundamentals_daily(payload: Any, symbol: str) -> FundamentalsRecord:
    """Daily fundamentals list -> latest FundamentalsRecord"""
    records = _records(payload, "fundamentals")
    if not records:
        raise ProviderError(f"Tiingo returned no fundamentals for {symbol}")

    latest = max(records, key=lambda record: str(record.get("date", "")))
    as_of = _timestamp(latest.get("date"))

    return _build(
        FundamentalsRecord,
        symbol=symbol,
        pe_ratio=_number(latest, "peRatio"),
        pb_ratio=_number(latest, "pbRatio"),
        eps=_number(latest, "eps"),
        dividend_yield=_number(latest, "dividendYield", "divYield"),
        market_cap=_number(latest, "marketCap"),
        revenue=_number(latest, "revenue"),
        as_of=as_of.date() if as_of is not None else None,
        data_source="live",
    )
