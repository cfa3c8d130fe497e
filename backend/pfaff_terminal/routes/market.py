"""
Market data routes. Everything under /api needs a logged-in session and is
rate limited per client address.

- /api/stocks: Watchlist board (stocks + ETFs)
- /api/stocks/{symbol}: Stock quote
- /api/stocks/{symbol}/history: Chart series for 1W / 1M / 3M / 1Y
- /api/stocks/{symbol}/technicals: SMA, RSI and MACD
- /api/etfs/{symbol}: ETF quote
- /api/crypto: Crypto snapshot
- /api/forex: Forex snapshot
- /api/news: News feed, optionally filtered by ticker
- /api/fundamentals/{symbol}: Valuation ratios
- /api/market/status: US market hours
- /api/health: Service status, including whether Tiingo is configured

With no Tiingo token every one of these still answers 200, with
dataSource set to "fallback".
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import psutil
from fastapi import APIRouter, Depends, Request

from ..config import Config
from ..models.market import (
    FundamentalsRecord,
    HistoricalSeries,
    MarketSnapshot,
    NewsFeed,
    Quote,
    QuoteBoard,
    TechnicalIndicators,
)
from ..services.market_service import MarketDataService
from .dependencies import api_rate_limit, get_config, get_market_service, require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["market"], dependencies=[Depends(api_rate_limit), Depends(require_auth)])


def _split_symbols(value: Optional[str], default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    return [item for item in (part.strip() for part in value.split(",")) if item]


@router.get("/stocks")
async def get_stock_board(
    service: MarketDataService = Depends(get_market_service),
    config: Config = Depends(get_config),
) -> QuoteBoard:
    return await service.get_quote_board(config.STOCK_WATCHLIST, config.ETF_WATCHLIST)


@router.get("/stocks/{symbol}")
async def get_stock_quote(symbol: str, service: MarketDataService = Depends(get_market_service)) -> Quote:
    return await service.get_quote(symbol, "stock")


@router.get("/stocks/{symbol}/history")
async def get_stock_history(
    symbol: str,
    period: str = "1M",
    service: MarketDataService = Depends(get_market_service),
) -> HistoricalSeries:
    return await service.get_history(symbol, period)


@router.get("/stocks/{symbol}/technicals")
async def get_stock_technicals(symbol: str, service: MarketDataService = Depends(get_market_service)) -> TechnicalIndicators:
    return await service.get_technicals(symbol)


@router.get("/etfs/{symbol}")
async def get_etf_quote(symbol: str, service: MarketDataService = Depends(get_market_service)) -> Quote:
    return await service.get_quote(symbol, "etf")


@router.get("/crypto")
async def get_crypto(
    symbols: Optional[str] = None,
    service: MarketDataService = Depends(get_market_service),
    config: Config = Depends(get_config),
) -> MarketSnapshot:
    return await service.get_crypto(_split_symbols(symbols, config.CRYPTO_WATCHLIST))


@router.get("/forex")
async def get_forex(
    pairs: Optional[str] = None,
    service: MarketDataService = Depends(get_market_service),
    config: Config = Depends(get_config),
) -> MarketSnapshot:
    return await service.get_forex(_split_symbols(pairs, config.FOREX_WATCHLIST))


@router.get("/news")
async def get_news(
    symbols: Optional[str] = None,
    limit: int = 10,
    service: MarketDataService = Depends(get_market_service),
) -> NewsFeed:
    return await service.get_news(_split_symbols(symbols, []), limit)


@router.get("/fundamentals/{symbol}")
async def get_fundamentals(symbol: str, service: MarketDataService = Depends(get_market_service)) -> FundamentalsRecord:
    return await service.get_fundamentals(symbol)


@router.get("/market/status")
async def get_market_status(service: MarketDataService = Depends(get_market_service)) -> dict:
    return service.market_hours.get_market_info()


@router.get("/health")
async def health_check(
    request: Request,
    username: str = Depends(require_auth),
    service: MarketDataService = Depends(get_market_service),
    config: Config = Depends(get_config),
) -> dict:
    """
    Health check for monitoring. Reports whether the upstream provider is
    configured (no call is made to it) plus basic process figures.
    """
    started_at = request.app.state.started_at
    now = datetime.now(timezone.utc)
    process = psutil.Process()

    return {
        "status": "healthy",
        "timestamp": now.isoformat(),
        "uptime": (now - started_at).total_seconds(),
        "authenticated": True,
        "user": username,
        "environment": config.ENV,
        "upstream": {
            "provider": "tiingo",
            "configured": service.upstream_configured,
            "dataSource": "live" if service.upstream_configured else "fallback",
        },
        "newsApiConfigured": bool(config.NEWS_API_KEY),
        "marketStatus": service.market_hours.get_market_status(),
        "cache": service.cache.get_stats(),
        "system": {
            "memoryUsageMb": process.memory_info().rss / 1024 / 1024,
            "cpuPercent": process.cpu_percent(),
        },
    }
