"""Shared fixtures: isolated config, pinned clock, seeded random source, test client."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import bcrypt
import numpy as np
import pytest
from fastapi.testclient import TestClient

from pfaff_terminal.config import Config
from pfaff_terminal.main import create_app
from pfaff_terminal.services.fallback import FallbackGenerator
from pfaff_terminal.services.market_service import MarketDataService
from pfaff_terminal.utils.clock import FixedClock
from pfaff_terminal.utils.market_cache import MarketCache
from pfaff_terminal.utils.market_hours import MarketHours

ADMIN_PASSWORD = "correct horse battery staple"
# Low cost factor keeps the suite fast
ADMIN_PASSWORD_HASH = bcrypt.hashpw(ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

# Monday 2026-10-19 14:00 UTC = 10:00 US/Eastern, market open
NOW = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def make_config():
    def _make(**overrides):
        defaults = {
            "TIINGO_API_KEY": "",
            "NEWS_API_KEY": "",
            "ADMIN_USERNAME": "admin",
            "ADMIN_PASSWORD_HASH": ADMIN_PASSWORD_HASH,
            "SESSION_SECRET": "test-secret",
            "ENV": "test",
        }
        defaults.update(overrides)
        return Config.from_env(**defaults)
    return _make


@pytest.fixture
def fake_client():
    """Stand-in for TiingoClient with every resource call as an AsyncMock"""
    client = MagicMock()
    client.configured = True
    client.get_iex_quotes = AsyncMock()
    client.get_daily_prices = AsyncMock()
    client.get_crypto_prices = AsyncMock()
    client.get_fx_top = AsyncMock()
    client.get_news = AsyncMock()
    client.get_fundamentals_daily = AsyncMock()
    return client


@pytest.fixture
def service(fake_client, clock, rng):
    return MarketDataService(
        client=fake_client,
        fallback=FallbackGenerator(clock=clock, rng=rng),
        cache=MarketCache(clock=clock),
        clock=clock,
        market_hours=MarketHours(clock=clock),
    )


@pytest.fixture
def app(make_config, clock, rng):
    return create_app(config=make_config(), clock=clock, rng=rng)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def logged_in_client(client):
    response = client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
