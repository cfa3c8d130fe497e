"""
Pfaff Terminal Backend API

Backend for the Pfaff Terminal dashboard. It proxies Tiingo for quotes,
history, crypto, forex, news and fundamentals, reshapes everything into a
fixed set of UI-friendly payloads, and falls back to demo data (tagged
dataSource="fallback") whenever Tiingo is unavailable or not configured.
All data routes sit behind a session-cookie login.

API Guide:
- /auth/login, /auth/logout, /auth/status: Session handling
- /api/stocks, /api/stocks/{symbol}, /api/stocks/{symbol}/history: Equities
- /api/stocks/{symbol}/technicals: SMA, RSI and MACD
- /api/etfs/{symbol}, /api/crypto, /api/forex: Other asset classes
- /api/news, /api/fundamentals/{symbol}: Research panels
- /api/market/status, /api/health: Status

How to run the server for development:
    uvicorn pfaff_terminal.main:app --app-dir backend --port 3000

    # Check out the docs
    http://localhost:3000/docs
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

import numpy as np
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .config import Config, config as default_config
from .errors import RateLimitError, TerminalError
from .routes import auth as auth_routes
from .routes import market as market_routes
from .services.auth_service import AuthService
from .services.fallback import FallbackGenerator
from .services.market_service import MarketDataService
from .services.tiingo_client import TiingoClient
from .utils.clock import SystemClock
from .utils.market_cache import MarketCache
from .utils.market_hours import MarketHours
from .utils.rate_limiter import RateLimiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SESSION_COOKIE = "pfaff.sid"

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "style-src 'self' 'unsafe-inline' https://cdnjs.cloudflare.com",
    "script-src 'self' https://cdnjs.cloudflare.com",
    "connect-src 'self' wss: https:",
    "img-src 'self' data: https:",
    "font-src 'self' https://cdnjs.cloudflare.com",
])


def create_app(
    config: Optional[Config] = None,
    market_service: Optional[MarketDataService] = None,
    clock=None,
    rng: Optional[np.random.Generator] = None,
) -> FastAPI:
    """
    Composition root: wires config, services and middleware into one app.
    Tests pass their own config, clock, random generator or market service.
    """
    config = config or default_config
    clock = clock or SystemClock()

    if market_service is None:
        market_service = MarketDataService(
            client=TiingoClient(config.TIINGO_API_KEY, config.TIINGO_BASE_URL),
            fallback=FallbackGenerator(clock=clock, rng=rng),
            cache=MarketCache(clock=clock),
            clock=clock,
            market_hours=MarketHours(clock=clock),
        )

    app = FastAPI(
        title="Pfaff Terminal API",
        description="Market data proxy with demo-data fallback for the Pfaff Terminal dashboard",
        version="1.0.0",
    )

    app.state.config = config
    app.state.started_at = datetime.now(timezone.utc)
    app.state.market_service = market_service
    app.state.auth_service = AuthService(
        username=config.ADMIN_USERNAME,
        password_hash=config.ADMIN_PASSWORD_HASH,
        session_max_age=config.SESSION_MAX_AGE,
        clock=clock,
    )
    app.state.login_limiter = RateLimiter(
        config.LOGIN_RATE_LIMIT,
        config.LOGIN_RATE_WINDOW,
        "Too many login attempts, please try again later.",
        clock=clock,
    )
    app.state.api_limiter = RateLimiter(
        config.API_RATE_LIMIT,
        config.API_RATE_WINDOW,
        "Too many requests, please try again later.",
        clock=clock,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.SESSION_SECRET,
        session_cookie=SESSION_COOKIE,
        max_age=config.SESSION_MAX_AGE,
        same_site="strict",
        https_only=config.is_production,
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Duration: {duration:.2f}s - "
            f"Market: {market_service.market_hours.get_market_status()}"
        )
        return response

    # Security headers, same policy the dashboard always shipped with
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response

    # Force HTTPS in production (proxy sets X-Forwarded-Proto)
    @app.middleware("http")
    async def https_redirect(request: Request, call_next):
        if config.is_production:
            forwarded_proto = request.headers.get("x-forwarded-proto", request.url.scheme)
            if forwarded_proto != "https":
                return RedirectResponse(str(request.url.replace(scheme="https")), status_code=301)
        return await call_next(request)

    # Error handling middleware
    @app.middleware("http")
    async def catch_exceptions_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {str(e)}", exc_info=True)
            message = str(e) if config.DEBUG else "Internal server error"
            return JSONResponse(status_code=500, content={"error": message})

    @app.exception_handler(TerminalError)
    async def terminal_error_handler(request: Request, exc: TerminalError):
        headers = None
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}

        message = exc.message
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {str(exc)}")
            if not config.DEBUG:
                message = "Internal server error"
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid input on {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid input"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    app.include_router(auth_routes.router)
    app.include_router(market_routes.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Pfaff Terminal Dashboard running on port {config.PORT}")
        logger.info(f"HTTPS: {'ENABLED' if config.is_production else 'DEVELOPMENT MODE'}")
        logger.info(f"Authentication: {'ENABLED' if config.auth_enabled else 'DISABLED'}")
        logger.info(f"Market data: {'Tiingo' if market_service.upstream_configured else 'FALLBACK (no TIINGO_API_KEY)'}")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_config.HOST, port=default_config.PORT, proxy_headers=True)
