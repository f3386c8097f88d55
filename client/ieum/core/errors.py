"""
Error taxonomy shared by the REST client, the realtime layer and sessions.

- AuthError: 401/403 from the backend, local credentials are already cleared
- NetworkError: transport failure, nothing is retried
- ValidationError: rejected before any request is sent
- ApiError: any other non-2xx response or an ``ok: false`` envelope
"""
from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for every error raised by ieum."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r}, status_code={self.status_code!r})"


class AuthError(AppError):
    def __init__(self, message: str, code: Optional[str] = None, status_code: int = 401):
        super().__init__(message, code, status_code)


class NetworkError(AppError):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code, 500)


class ValidationError(AppError, ValueError):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message, code, 400)


class ApiError(AppError):
    pass


class RealtimeConnectionError(NetworkError):
    pass
