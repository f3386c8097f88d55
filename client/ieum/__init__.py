from ieum.client import IeumClient
from ieum.core.config import Settings
from ieum.core.errors import ApiError, AppError, AuthError, NetworkError, RealtimeConnectionError, ValidationError
from ieum.realtime.connection import ConnectionManager

__version__ = "0.1.0"

__all__ = [
    "IeumClient",
    "Settings",
    "ConnectionManager",
    "AppError",
    "ApiError",
    "AuthError",
    "NetworkError",
    "RealtimeConnectionError",
    "ValidationError",
]
