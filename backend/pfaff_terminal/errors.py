"""
Error types for Pfaff Terminal.

Every error the API can surface maps onto one HTTP status code and is rendered
as {"error": "<message>"} by the handlers registered in main.py.

- ValidationError: malformed body or query parameters (400)
- AuthError: bad credentials or missing session (401)
- NotFoundError: unknown symbol (404)
- RateLimitError: too many requests from one address (429)
- ProviderError: upstream failure; normally converted to fallback data (500)
- InternalError: anything unexpected (500)
"""

from typing import Optional


class TerminalError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TerminalError):
    status_code = 400


class AuthError(TerminalError):
    status_code = 401


class NotFoundError(TerminalError):
    status_code = 404


class RateLimitError(TerminalError):
    status_code = 429

    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(TerminalError):
    """Raised by the upstream client; upstream_status is None for timeouts and transport errors."""

    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status

    def __str__(self) -> str:
        if self.upstream_status is None:
            return self.message
        return f"{self.message} (upstream status {self.upstream_status})"


class InternalError(TerminalError):
    status_code = 500
