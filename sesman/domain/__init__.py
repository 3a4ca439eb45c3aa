"""Domain layer - session entity, repository contract and errors"""

from .repository import (
    AUTH_CODE_TTL,
    DEFAULT_QUARANTINE_PERIOD,
    CleanSummary,
    SessionRepository,
    auth_code_view,
)
from .session import AttrKey, Session, SessionState

__all__ = [
    "AUTH_CODE_TTL",
    "DEFAULT_QUARANTINE_PERIOD",
    "AttrKey",
    "CleanSummary",
    "Session",
    "SessionRepository",
    "SessionState",
    "auth_code_view",
]
