"""
pytest設定と共通フィクスチャ
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from sesman.core.app_factory import create_app
from sesman.core.config import Settings
from sesman.core.manager import SesCfg, Sesman
from sesman.infrastructure.repositories.memory import MemorySessionRepository
from sesman.infrastructure.repositories.registry import Provider, ProviderRegistry
from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """テスト用の時計"""
    return FakeClock()


@pytest.fixture
def dns_verifier() -> dict[str, bool]:
    """
    逆引きDNS検証の結果表

    登録されていないIPアドレスは検証失敗として扱う。
    """
    return {}


@pytest.fixture
def memory_repository(
    clock: FakeClock, dns_verifier: dict[str, bool]
) -> MemorySessionRepository:
    """インメモリのセッションリポジトリ"""
    return MemorySessionRepository(
        clock=clock, dns_verifier=lambda ip: dns_verifier.get(ip, False)
    )


@pytest.fixture
def cfg() -> SesCfg:
    """マネージャー設定"""
    return SesCfg(
        cookie_name="ivmid",
        maxlifetime=3600,
        visit_cookie_name="iv",
        bl_clean_interval=3600,
    )


@pytest.fixture
def registry(memory_repository: MemorySessionRepository) -> ProviderRegistry:
    """インメモリのみを登録したレジストリ"""
    registry = ProviderRegistry()
    registry.register(Provider.MEMORY, memory_repository)
    return registry


@pytest.fixture
def sesman(memory_repository: MemorySessionRepository, cfg: SesCfg) -> Sesman:
    """インメモリのセッションマネージャー"""
    return Sesman(repository=memory_repository, cfg=cfg, provider=Provider.MEMORY)


@pytest.fixture
def settings() -> Settings:
    """テスト用のアプリケーション設定"""
    return Settings(ENV_MODE="test", SESSION_PROVIDER="memory")


@pytest.fixture
def client(settings: Settings, sesman: Sesman) -> Generator[TestClient, None, None]:
    """
    テスト用のHTTPクライアント

    セッションCookieはSecure属性付きのため、https://testserver で通信する。
    """
    app = create_app(settings=settings, sesman=sesman)
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
