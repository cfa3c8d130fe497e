"""FastAPI dependencies shared by the routers. Services live on app.state, wired by create_app()."""

from fastapi import Request

from ..config import Config
from ..services.auth_service import AuthService
from ..services.market_service import MarketDataService


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_market_service(request: Request) -> MarketDataService:
    return request.app.state.market_service


def login_rate_limit(request: Request) -> None:
    request.app.state.login_limiter.hit(client_address(request))


def api_rate_limit(request: Request) -> None:
    request.app.state.api_limiter.hit(client_address(request))


def require_auth(request: Request) -> str:
    """Username of the current session, or AuthError (401)"""
    return request.app.state.auth_service.require_user(request.session)
