"""Infrastructure layer - Technical implementations"""

from .repositories import (
    MemorySessionRepository,
    Provider,
    ProviderRegistry,
    build_registry,
)
from .security import generate_session_id, verify_reverse_dns

__all__ = [
    "MemorySessionRepository",
    "Provider",
    "ProviderRegistry",
    "build_registry",
    "generate_session_id",
    "verify_reverse_dns",
]
