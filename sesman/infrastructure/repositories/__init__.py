"""Session store backends and the provider registry"""

from typing import TYPE_CHECKING

from ...core.logging import get_logger
from .memory import MemorySessionRepository
from .registry import Provider, ProviderRegistry

if TYPE_CHECKING:
    from ...core.config import Settings

logger = get_logger(__name__)


def build_registry(settings: "Settings") -> ProviderRegistry:
    """
    設定に応じてバックエンドを登録したレジストリを生成

    インメモリは常に登録し、Firestore / Redisは接続先が設定されている場合のみ登録する。

    Args:
        settings: アプリケーション設定

    Returns:
        ProviderRegistry: 登録済みのレジストリ
    """
    registry = ProviderRegistry()
    registry.register(
        Provider.MEMORY,
        MemorySessionRepository(quarantine_period=settings.BL_QUARANTINE_PERIOD),
    )

    if settings.PROJECT_ID:
        from .firestore import FirestoreSessionRepository

        registry.register(
            Provider.FIRESTORE, FirestoreSessionRepository.from_settings(settings)
        )

    if settings.REDIS_HOST:
        from .redis import RedisSessionRepository

        registry.register(Provider.REDIS, RedisSessionRepository.from_settings(settings))

    logger.info(
        f"Registered session stores: {', '.join(p.label for p in registry.providers())}"
    )
    return registry


__all__ = [
    "MemorySessionRepository",
    "Provider",
    "ProviderRegistry",
    "build_registry",
]
