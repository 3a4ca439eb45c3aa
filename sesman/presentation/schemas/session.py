"""セッション関連のスキーマ定義"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SessionResponse(BaseModel):
    """
    現在のセッションの状態

    トークン類は返さない。
    """

    state: Optional[str]
    last_accessed_at: datetime
    authenticated: bool


class LogoutResponse(BaseModel):
    status: str = "ok"
