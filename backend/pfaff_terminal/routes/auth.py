"""
Login, logout and session status.

POST /auth/login is limited per client address (5 attempts per 15 minutes by
default). The limiter runs before the body is validated, so malformed
attempts count too.
"""

from fastapi import APIRouter, Depends, Request

from ..models.auth import AuthResult, AuthStatus, LoginRequest
from ..services.auth_service import AuthService
from .dependencies import get_auth_service, login_rate_limit

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", dependencies=[Depends(login_rate_limit)])
def login(
    body: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResult:
    # Sync handler: bcrypt is CPU-bound, so FastAPI runs this in its threadpool
    auth_service.login(request.session, body.username, body.password)
    return AuthResult(success=True, message="Login successful")


@router.post("/logout")
async def logout(request: Request, auth_service: AuthService = Depends(get_auth_service)) -> AuthResult:
    auth_service.logout(request.session)
    return AuthResult(success=True, message="Logged out successfully")


@router.get("/status")
async def status(request: Request, auth_service: AuthService = Depends(get_auth_service)) -> AuthStatus:
    username = auth_service.current_user(request.session)
    return AuthStatus(authenticated=username is not None, username=username)
