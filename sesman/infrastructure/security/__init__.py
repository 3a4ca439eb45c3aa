"""Session id generation and client verification helpers"""

from .dns import verify_reverse_dns
from .identifiers import generate_session_id

__all__ = ["generate_session_id", "verify_reverse_dns"]
