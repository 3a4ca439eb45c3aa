from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import get_logger

logger = get_logger(__name__)


class Settings(BaseSettings):
    """
    アプリケーション設定
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # 未定義のフィールドを無視
    )

    ENV_MODE: Literal["development", "production", "test"] = "development"

    SESSION_PROVIDER: Literal["memory", "firestore", "redis"] = "memory"

    SESSION_COOKIE_NAME: str = "ivmid"
    SESSION_MAXLIFETIME: int = 60 * 60  # 1 hour
    VISIT_COOKIE_NAME: str = "iv"
    # 外部認証サービスが発行するログイン済みマーカー
    AUTH_MARKER_COOKIE_NAME: str = "ia"

    PROJECT_ID: str = Field(
        default="",
        validation_alias=AliasChoices("FIRESTORE_PROJECT_ID", "PROJECT_ID"),
    )
    SESSION_COLLECTION_NAME: str = "sessions"
    BLACKLIST_COLLECTION_NAME: str = "blacklist"

    # 0の場合はブラックリスト清掃を無効化
    BL_CLEAN_INTERVAL: int = 60 * 60
    BL_QUARANTINE_PERIOD: int = 60 * 60 * 24 * 3  # 3 days

    BACKEND_TIMEOUT: float = 10.0

    REDIS_HOST: str = ""
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_KEY_PREFIX: str = "sesman:"

    @field_validator("SESSION_COLLECTION_NAME")
    @classmethod
    def collection_name_can_be_blank(cls, v: str) -> str:
        """空文字の場合はデフォルトのコレクション名を使用"""
        if not v:
            logger.warning("SESSION_COLLECTION_NAME is empty. Using 'sessions'.")
            return "sessions"
        return v

    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 1.0

    @field_validator("SENTRY_DSN")
    @classmethod
    def sentry_dsn_can_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return v

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.ENV_MODE == "development"

    @property
    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.ENV_MODE == "production"

    @property
    def is_test(self) -> bool:
        """テスト環境かどうか"""
        return self.ENV_MODE == "test"


@lru_cache
def get_settings() -> Settings:
    """
    アプリケーション設定を取得（キャッシュ）
    """
    return Settings()
