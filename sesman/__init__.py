"""Cookie-bound HTTP session manager with pluggable session stores"""

from .core.manager import SesCfg, Sesman, new_sesman
from .domain.session import Session, SessionState
from .infrastructure.repositories import Provider, ProviderRegistry, build_registry

__all__ = [
    "Provider",
    "ProviderRegistry",
    "SesCfg",
    "Sesman",
    "Session",
    "SessionState",
    "build_registry",
    "new_sesman",
]
