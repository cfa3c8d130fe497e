from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Literal, Optional
from datetime import date, datetime

DataSource = Literal["live", "fallback"]
AssetType = Literal["stock", "etf", "crypto", "forex"]
Period = Literal["1W", "1M", "3M", "1Y"]

# Calendar days covered by each chart period
PERIOD_DAYS: Dict[str, int] = {"1W": 7, "1M": 30, "3M": 90, "1Y": 365}


class MarketModel(BaseModel):
    """Base for every payload the dashboard reads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Quote(MarketModel):
    symbol: str
    asset_type: AssetType
    price: float
    change: float
    volume: int = Field(default=0, ge=0)
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    data_source: DataSource
    last_updated: datetime

    @computed_field(alias="previousClose")
    @property
    def previous_close(self) -> float:
        return self.price - self.change

    @computed_field(alias="changePercent")
    @property
    def change_percent(self) -> float:
        previous_close = self.previous_close
        if not previous_close:
            return 0.0
        return self.change / previous_close * 100


class HistoricalPoint(MarketModel):
    date: date
    close: float
    volume: Optional[int] = Field(default=None, ge=0)


class HistoricalSeries(MarketModel):
    symbol: str
    period: Period
    points: List[HistoricalPoint]
    data_source: DataSource
    last_updated: datetime


class NewsArticle(MarketModel):
    title: str
    source: str
    published_at: datetime
    url: str
    description: Optional[str] = None
    tickers: List[str] = Field(default_factory=list)


class NewsFeed(MarketModel):
    articles: List[NewsArticle]
    data_source: DataSource
    last_updated: datetime


class FundamentalsRecord(MarketModel):
    symbol: str
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    eps: Optional[float] = None
    dividend_yield: Optional[float] = None
    market_cap: Optional[float] = None
    revenue: Optional[float] = None
    as_of: Optional[date] = None
    data_source: DataSource


class QuoteBoard(MarketModel):
    """Watchlist payload for the dashboard's stock and ETF panels."""

    stocks: Dict[str, Quote]
    etfs: Dict[str, Quote]
    data_source: DataSource
    market_status: str
    last_updated: datetime


class MarketSnapshot(MarketModel):
    quotes: List[Quote]
    data_source: DataSource
    last_updated: datetime


def combined_source(sources: List[str]) -> DataSource:
    """A payload is only live when every part of it is live."""
    if sources and all(source == "live" for source in sources):
        return "live"
    return "fallback"


class TechnicalIndicators(MarketModel):
    symbol: str
    sma_20: Optional[float] = None
    sma_50: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[float] = None
    signal_line: Optional[float] = None
    data_source: DataSource
    last_updated: datetime
