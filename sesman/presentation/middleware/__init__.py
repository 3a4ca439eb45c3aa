"""HTTP middleware"""

from .error_handler import error_response_middleware
from .session import SessionMiddleware, apply_hardening_headers

__all__ = ["SessionMiddleware", "apply_hardening_headers", "error_response_middleware"]
