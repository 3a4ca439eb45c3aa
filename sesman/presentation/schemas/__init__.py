"""API schemas"""

from .session import LogoutResponse, SessionResponse
from .system import HealthCheckResponse, SessionStoreStatus

__all__ = [
    "HealthCheckResponse",
    "LogoutResponse",
    "SessionResponse",
    "SessionStoreStatus",
]
