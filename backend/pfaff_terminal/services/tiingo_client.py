"""
Tiingo client for Pfaff Terminal

Thin async wrapper over the Tiingo REST API. Every method issues exactly one
GET with the API token attached and a fixed timeout for its resource type,
and hands back the raw JSON payload. Nothing here retries: a timeout, a
non-2xx status or a body that is not JSON becomes a ProviderError right away
and the caller decides what to do about it (MarketDataService falls back to
demo data).

Endpoints used:
- /iex                                 real-time stock/ETF quotes
- /tiingo/daily/{ticker}/prices        end-of-day history
- /tiingo/crypto/prices                daily crypto bars
- /tiingo/fx/top                       forex top-of-book
- /tiingo/news                         news feed
- /tiingo/fundamentals/{ticker}/daily  daily valuation ratios
"""

import aiohttp
import asyncio
import logging
from typing import Any, Dict, List, Optional
from datetime import date

from ..errors import ProviderError

logger = logging.getLogger(__name__)

# Seconds allowed per resource type
DEFAULT_TIMEOUTS: Dict[str, int] = {
    "quotes": 10,
    "crypto": 10,
    "forex": 10,
    "history": 15,
    "news": 15,
    "fundamentals": 15,
}


class TiingoClient:
    """
    Tiingo REST client: one call in, one raw payload (or ProviderError) out
    """

    def __init__(self, api_key: str, base_url: str = "https://api.tiingo.com", timeouts: Optional[Dict[str, int]] = None):
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeouts = dict(DEFAULT_TIMEOUTS)
        if timeouts:
            self.timeouts.update(timeouts)

        if not self.api_key:
            logger.warning("TIINGO_API_KEY not set. All market data will be served from fallback.")
        else:
            logger.info(f"Tiingo client initialized with key: {self.api_key[:4]}...")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, resource: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Issue one GET against the Tiingo API

        Args:
            resource: Resource type, selects the timeout
            path: Path below the base URL, e.g. '/tiingo/fx/top'
            params: Query parameters

        Returns:
            Decoded JSON payload

        Raises:
            ProviderError: token missing, timeout, transport failure, non-2xx or non-JSON body
        """
        if not self.configured:
            raise ProviderError("Tiingo API token is not configured")

        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeouts.get(resource, 10))

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, params=params or {}, headers=headers) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        logger.error(f"Tiingo {resource} error {response.status} for {path}: {body[:200]}")
                        raise ProviderError(body[:200] or response.reason or "Upstream request failed",
                                            upstream_status=response.status)
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise ProviderError(f"Malformed JSON from Tiingo {resource}: {str(e)}",
                                            upstream_status=response.status) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Tiingo {resource} timeout for {path}")
            raise ProviderError(f"Tiingo {resource} request timed out") from e
        except aiohttp.ClientError as e:
            logger.error(f"Tiingo {resource} transport error for {path}: {str(e)}")
            raise ProviderError(f"Tiingo {resource} request failed: {str(e)}") from e

    async def get_iex_quotes(self, tickers: List[str]) -> Any:
        return await self.fetch("quotes", "/iex", {"tickers": ",".join(tickers)})

    async def get_daily_prices(self, ticker: str, start_date: date, end_date: date) -> Any:
        params = {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
        }
        return await self.fetch("history", f"/tiingo/daily/{ticker.lower()}/prices", params)

    async def get_crypto_prices(self, tickers: List[str], start_date: date) -> Any:
        params = {
            "tickers": ",".join(ticker.lower() for ticker in tickers),
            "startDate": start_date.isoformat(),
            "resampleFreq": "1day",
        }
        return await self.fetch("crypto", "/tiingo/crypto/prices", params)

    async def get_fx_top(self, tickers: List[str]) -> Any:
        return await self.fetch("forex", "/tiingo/fx/top", {"tickers": ",".join(ticker.lower() for ticker in tickers)})

    async def get_news(self, tickers: Optional[List[str]] = None, limit: int = 20) -> Any:
        params: Dict[str, Any] = {"limit": limit}
        if tickers:
            params["tickers"] = ",".join(ticker.lower() for ticker in tickers)
        return await self.fetch("news", "/tiingo/news", params)

    async def get_fundamentals_daily(self, ticker: str) -> Any:
        return await self.fetch("fundamentals", f"/tiingo/fundamentals/{ticker.lower()}/daily")
