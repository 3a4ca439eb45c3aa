"""
アプリケーションファクトリーとライフサイクルのテスト
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from sesman.core.app_factory import build_sesman, create_app
from sesman.core.config import Settings
from sesman.core.manager import Sesman
from sesman.domain.exceptions import UnknownProviderError
from sesman.infrastructure.repositories.registry import Provider


class TestBuildSesman:
    """設定からのマネージャー生成"""

    def test_memory_provider(self) -> None:
        """インメモリのマネージャーを生成すること"""
        settings = Settings(
            _env_file=None, SESSION_PROVIDER="memory", SESSION_MAXLIFETIME=600
        )

        sesman = build_sesman(settings)

        assert sesman.provider is Provider.MEMORY
        assert sesman.cfg.cookie_name == "ivmid"
        assert sesman.repository.maxlifetime == 600

    def test_unconfigured_redis(self) -> None:
        """接続先の無いRedisを選択した場合はUnknownProviderErrorであること"""
        settings = Settings(_env_file=None, SESSION_PROVIDER="redis", REDIS_HOST="")

        with pytest.raises(UnknownProviderError):
            build_sesman(settings)


class TestCreateApp:
    """create_app()"""

    def test_docs_disabled_in_production(self, sesman: Sesman) -> None:
        """本番環境ではドキュメントを無効化すること"""
        app = create_app(Settings(_env_file=None, ENV_MODE="production"), sesman)

        assert app.docs_url is None
        assert app.openapi_url is None

    def test_state(self, settings: Settings, sesman: Sesman) -> None:
        """マネージャーと設定をアプリケーションに保持すること"""
        app = create_app(settings, sesman)

        assert app.state.sesman is sesman
        assert app.state.settings is settings


class TestLifespan:
    """ライフサイクル"""

    @patch("sesman.core.lifespan.stop_scheduler")
    @patch("sesman.core.lifespan.start_scheduler")
    def test_schedules_session_tasks(
        self,
        mock_start: MagicMock,
        mock_stop: MagicMock,
        settings: Settings,
        sesman: Sesman,
    ) -> None:
        """起動時にGC・清掃タスクを登録し、終了時に停止すること"""
        app = create_app(settings, sesman)

        with TestClient(app):
            scheduler = app.state.scheduler
            mock_start.assert_called_once_with(scheduler)
            job_ids = {job.id for job in scheduler.get_jobs()}
            assert job_ids == {"session_gc", "blacklist_clean"}
            assert app.state.start_time is not None

        mock_stop.assert_called_once_with(scheduler)
