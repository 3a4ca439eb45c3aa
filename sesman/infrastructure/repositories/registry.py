"""セッションバックエンドの登録レジストリ"""

from enum import IntEnum
from typing import Optional

from ...domain.exceptions.base import ProviderRegistrationError
from ...domain.repository import SessionRepository


class Provider(IntEnum):
    """セッションストアの種類"""

    MEMORY = 0
    FIRESTORE = 10
    REDIS = 20

    @property
    def label(self) -> str:
        return {
            Provider.MEMORY: "Memory",
            Provider.FIRESTORE: "FireStore",
            Provider.REDIS: "Redis",
        }[self]

    @classmethod
    def from_name(cls, name: str) -> "Provider":
        """設定値（memory / firestore / redis）から変換"""
        return cls[name.upper()]


class ProviderRegistry:
    """
    バックエンドの登録レジストリ。

    起動時に一度だけ登録し、以後は参照のみ行う。
    重複登録・Noneの登録はプログラミングエラーとして例外を送出する。

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register(Provider.MEMORY, MemorySessionRepository())
        >>> registry.get(Provider.MEMORY)
    """

    def __init__(self) -> None:
        """レジストリを初期化する。"""
        self._providers: dict[Provider, SessionRepository] = {}

    def register(
        self, provider: Provider, repository: Optional[SessionRepository]
    ) -> None:
        """
        バックエンドを登録する。

        Args:
            provider: セッションストアの種類
            repository: バックエンドのインスタンス

        Raises:
            ProviderRegistrationError: 重複登録、またはrepositoryがNoneの場合
        """
        if provider in self._providers:
            raise ProviderRegistrationError(
                f"SesMan: Provider {provider.label} is already registered"
            )
        if repository is None:
            raise ProviderRegistrationError(
                "SesMan: Register function needs not-null provider"
            )
        self._providers[provider] = repository

    def get(self, provider: Provider) -> Optional[SessionRepository]:
        return self._providers.get(provider)

    def __contains__(self, provider: object) -> bool:
        return provider in self._providers

    def providers(self) -> list[Provider]:
        return list(self._providers)
