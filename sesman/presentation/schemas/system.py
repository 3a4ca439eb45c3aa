"""システム関連のスキーマ定義"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class SessionStoreStatus(BaseModel):
    """
    セッションストアの状況

    Attributes:
        provider: バックエンド名（Memory / FireStore / Redis）
        active_sessions: 有効なセッション数
    """

    provider: str
    active_sessions: int


class HealthCheckResponse(BaseModel):
    """ヘルスチェックのレスポンス"""

    status: Literal["ok", "unhealthy"]
    timestamp: datetime
    uptime_seconds: float
    session_store: SessionStoreStatus
    environment: str
