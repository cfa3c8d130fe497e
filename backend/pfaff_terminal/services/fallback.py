"""
This module provides demo data when Tiingo is unavailable or not configured.

Every generator returns the exact model the live path returns, tagged with
data_source="fallback". Well-known symbols get fixed values from the tables
below; anything else gets randomized values. Time and randomness both come
from the injected clock and numpy Generator, so a seeded generator and a
fixed clock make the output fully reproducible.
"""

import numpy as np
from datetime import timedelta
from typing import Dict, List, Optional

from ..models.market import (
    PERIOD_DAYS,
    FundamentalsRecord,
    HistoricalPoint,
    HistoricalSeries,
    NewsArticle,
    Quote,
)
from ..utils.clock import SystemClock
from .normalizer import PRICE_DECIMALS

FALLBACK_QUOTES: Dict[str, Dict] = {
    "AAPL": {"price": 185.50, "change": 2.30, "volume": 55234567, "high": 186.40, "low": 182.90},
    "GOOGL": {"price": 142.80, "change": -1.20, "volume": 28456789, "high": 144.35, "low": 142.10},
    "MSFT": {"price": 378.90, "change": 5.60, "volume": 32567890, "high": 380.20, "low": 372.75},
    "TSLA": {"price": 248.50, "change": -8.90, "volume": 89234567, "high": 259.10, "low": 246.80},
    "AMZN": {"price": 132.90, "change": 0.30, "volume": 41236547, "high": 134.05, "low": 131.70},
    "NVDA": {"price": 430.35, "change": 4.20, "volume": 46982310, "high": 433.90, "low": 424.15},
    "SPY": {"price": 472.30, "change": 3.20, "volume": 67890123, "high": 473.10, "low": 468.40},
    "QQQ": {"price": 402.15, "change": 2.85, "volume": 38452190, "high": 403.00, "low": 398.60},
    "DIA": {"price": 376.40, "change": 1.10, "volume": 3124587, "high": 377.25, "low": 374.90},
    "IWM": {"price": 198.25, "change": -0.75, "volume": 27645310, "high": 199.80, "low": 197.45},
    "VTI": {"price": 236.70, "change": 1.45, "volume": 3985412, "high": 237.15, "low": 234.95},
    "BTCUSD": {"price": 67250.00, "change": 1185.50, "volume": 28453, "high": 67980.00, "low": 65810.00},
    "ETHUSD": {"price": 3480.25, "change": -42.10, "volume": 315874, "high": 3541.00, "low": 3452.60},
    "SOLUSD": {"price": 148.62, "change": 3.87, "volume": 2458713, "high": 151.20, "low": 143.95},
    "EURUSD": {"price": 1.08520, "change": 0.0, "bid": 1.08515, "ask": 1.08525},
    "GBPUSD": {"price": 1.27040, "change": 0.0, "bid": 1.27032, "ask": 1.27048},
    "USDJPY": {"price": 149.512, "change": 0.0, "bid": 149.505, "ask": 149.519},
}

FALLBACK_FUNDAMENTALS: Dict[str, Dict] = {
    "AAPL": {"pe_ratio": 24.50, "pb_ratio": 3.20, "eps": 6.15, "dividend_yield": 0.50,
             "market_cap": 2.9e12, "revenue": 394.3e9},
    "MSFT": {"pe_ratio": 35.10, "pb_ratio": 12.40, "eps": 10.79, "dividend_yield": 0.72,
             "market_cap": 2.8e12, "revenue": 211.9e9},
    "GOOGL": {"pe_ratio": 26.30, "pb_ratio": 6.10, "eps": 5.43, "dividend_yield": None,
              "market_cap": 1.8e12, "revenue": 282.8e9},
}

FALLBACK_HEADLINES = [
    ("Markets Open Higher Amid Tech Rally", "PFAFF NEWS"),
    ("Federal Reserve Signals Rate Stability", "REUTERS"),
    ("Apple Reports Strong Quarterly Earnings", "CNBC"),
    ("Tesla Announces New Manufacturing Facility", "BLOOMBERG"),
    ("Cryptocurrency Market Shows Strong Recovery", "COINDESK"),
]

# Floor for the demo random walk
MIN_DEMO_PRICE = 50.0


class FallbackGenerator:
    """
    Builds demo records shaped exactly like the live ones
    """

    def __init__(self, clock=None, rng: Optional[np.random.Generator] = None):
        self.clock = clock or SystemClock()
        self.rng = rng if rng is not None else np.random.default_rng()

    def quote(self, symbol: str, asset_type: str) -> Quote:
        symbol = symbol.upper()
        decimals = PRICE_DECIMALS[asset_type]
        values = FALLBACK_QUOTES.get(symbol)

        if values is None and asset_type == "forex":
            price = round(0.5 + self.rng.random() * 1.5, decimals)
            spread = round(price * 0.0001, decimals)
            values = {"price": price, "change": 0.0, "bid": price - spread, "ask": price + spread}
        elif values is None:
            # Same ranges the dashboard used for its search demo
            price = round(150.50 + self.rng.random() * 50, decimals)
            change = round((self.rng.random() - 0.5) * 10, decimals)
            values = {
                "price": price,
                "change": change,
                "volume": int(self.rng.integers(0, 10_000_000)),
                "high": round(price + abs(change), decimals),
                "low": round(price - abs(change), decimals),
            }

        return Quote(
            symbol=symbol,
            asset_type=asset_type,
            price=values["price"],
            change=values["change"],
            volume=values.get("volume", 0),
            high=values.get("high"),
            low=values.get("low"),
            bid=values.get("bid"),
            ask=values.get("ask"),
            data_source="fallback",
            last_updated=self.clock.now(),
        )

    def history(self, symbol: str, period: str) -> HistoricalSeries:
        """Bounded random walk with one point per calendar day, oldest first"""
        symbol = symbol.upper()
        days = PERIOD_DAYS[period]
        today = self.clock.now().date()
        base_price = FALLBACK_QUOTES.get(symbol, {}).get("price", 150.0)

        steps = (self.rng.random(days) - 0.5) * 5
        points: List[HistoricalPoint] = []
        price = base_price
        for i, step in enumerate(steps):
            price = max(MIN_DEMO_PRICE, price + float(step))
            points.append(HistoricalPoint(
                date=today - timedelta(days=days - i),
                close=round(price, 2),
                volume=int(self.rng.integers(1_000_000, 50_000_000)),
            ))

        return HistoricalSeries(
            symbol=symbol,
            period=period,
            points=points,
            data_source="fallback",
            last_updated=self.clock.now(),
        )

    def news(self, tickers: Optional[List[str]] = None, limit: int = 10) -> List[NewsArticle]:
        now = self.clock.now()
        tickers = [ticker.upper() for ticker in tickers or []]
        articles = []
        for i, (title, source) in enumerate(FALLBACK_HEADLINES[:limit]):
            articles.append(NewsArticle(
                title=title,
                source=source,
                published_at=now - timedelta(hours=i),
                url="#",
                tickers=tickers,
            ))
        return articles

    def fundamentals(self, symbol: str) -> FundamentalsRecord:
        symbol = symbol.upper()
        values = FALLBACK_FUNDAMENTALS.get(symbol)
        if values is None:
            values = {
                "pe_ratio": round(10 + self.rng.random() * 30, 2),
                "pb_ratio": round(1 + self.rng.random() * 9, 2),
                "eps": round(1 + self.rng.random() * 9, 2),
                "dividend_yield": round(self.rng.random() * 3, 2),
                "market_cap": round(1e9 + self.rng.random() * 5e11, -6),
                "revenue": round(1e8 + self.rng.random() * 1e11, -6),
            }
        return FundamentalsRecord(
            symbol=symbol,
            as_of=self.clock.now().date(),
            data_source="fallback",
            **values,
        )
