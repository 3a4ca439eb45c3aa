"""Domain exceptions"""

from .base import (
    BackendError,
    BadRequestError,
    DomainError,
    IdentifierGenerationError,
    InvalidConfigurationError,
    InvalidSessionIDError,
    MissingSessionStateError,
    NotFoundError,
    ProgrammerError,
    ProviderRegistrationError,
    SessionNotFoundError,
    UnauthorizedError,
    UnknownProviderError,
    UnknownSessionIDError,
    ValidationError,
)

__all__ = [
    "BackendError",
    "BadRequestError",
    "DomainError",
    "IdentifierGenerationError",
    "InvalidConfigurationError",
    "InvalidSessionIDError",
    "MissingSessionStateError",
    "NotFoundError",
    "ProgrammerError",
    "ProviderRegistrationError",
    "SessionNotFoundError",
    "UnauthorizedError",
    "UnknownProviderError",
    "UnknownSessionIDError",
    "ValidationError",
]
