"""
Firestoreのセッションリポジトリのテスト
"""

from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as gcp_exceptions

from sesman.core.config import Settings
from sesman.domain.exceptions import (
    BackendError,
    InvalidConfigurationError,
    SessionNotFoundError,
)
from sesman.infrastructure.repositories.firestore import (
    DEFAULT_GC_LIFETIME,
    FirestoreSessionRepository,
    value_path,
)
from tests.fakes import FakeFirestoreClient
from tests.helpers import FakeClock


@pytest.fixture
def fs_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def repository(
    fs_client: FakeFirestoreClient, clock: FakeClock, dns_verifier: dict[str, bool]
) -> FirestoreSessionRepository:
    repository = FirestoreSessionRepository(
        client=fs_client,
        page_size=2,
        clock=clock,
        dns_verifier=lambda ip: dns_verifier.get(ip, False),
    )
    repository.set_max_lifetime(3600)
    return repository


class TestDocumentLayout:
    """ドキュメントの形式"""

    def test_value_path(self) -> None:
        """属性はValue配下のフィールドパスで書き込むこと"""
        assert value_path("state") == "Value.state"
        assert value_path("ui-theme") == "Value.`ui-theme`"

    def test_field_path_writes(
        self,
        repository: FirestoreSessionRepository,
        fs_client: FakeFirestoreClient,
    ) -> None:
        """認可コードの保存が1回のフィールドパス更新で反映されること"""
        repository.new_session("sid1")

        repository.save_code_challenge_and_method(
            "sid1", "CH", "S256", "AC", "https://app/cb"
        )

        value = fs_client.collection("sessions").docs["sid1"]["Value"]
        assert value["state"] == "InAuth"
        assert value["code_challenger"] == "CH"
        assert value["redirect_uri"] == "https://app/cb"

    def test_new_session_document(
        self,
        repository: FirestoreSessionRepository,
        fs_client: FakeFirestoreClient,
        clock: FakeClock,
    ) -> None:
        """ドキュメントIDがセッションIDであること"""
        repository.new_session("sid1")

        assert fs_client.collection("sessions").docs["sid1"] == {
            "Sid": "sid1",
            "TimeAccessed": int(clock.now),
            "Value": {"state": "New"},
        }

    def test_write_updates_time_accessed(
        self,
        repository: FirestoreSessionRepository,
        fs_client: FakeFirestoreClient,
        clock: FakeClock,
    ) -> None:
        """属性の書き込みで最終アクセス時刻も更新すること"""
        repository.new_session("sid1")
        clock.advance(42)

        repository.update_code_verifier("sid1", "verifier")

        doc = fs_client.collection("sessions").docs["sid1"]
        assert doc["TimeAccessed"] == int(clock.now)
        assert doc["Value"]["code_verifier"] == "verifier"


class TestPagination:
    """カーソルによるページ送り"""

    def test_active_sessions_across_pages(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """ページサイズを超える件数を数えられること"""
        for i in range(5):
            repository.new_session(f"sid{i}")

        assert repository.active_sessions() == 5
        # 2件 + 2件 + 1件
        assert fs_client.stream_calls == 3

    def test_gc_across_pages(
        self, repository: FirestoreSessionRepository, clock: FakeClock
    ) -> None:
        """全ページの期限切れセッションを削除すること"""
        for i in range(5):
            repository.new_session(f"sid{i}")
        clock.advance(3601)

        assert repository.session_gc(3600) == 5
        assert repository.active_sessions() == 0


class TestSessionGC:
    """期限切れセッションの削除"""

    def test_zero_lifetime_falls_back_to_default(
        self, repository: FirestoreSessionRepository, clock: FakeClock
    ) -> None:
        """ライフタイム0の場合は既定値で判定すること"""
        repository.new_session("sid1")
        clock.advance(DEFAULT_GC_LIFETIME)
        assert repository.session_gc(0) == 0

        clock.advance(1)
        assert repository.session_gc(0) == 1

    def test_delete_errors_are_accumulated(
        self,
        repository: FirestoreSessionRepository,
        fs_client: FakeFirestoreClient,
        clock: FakeClock,
    ) -> None:
        """削除に失敗しても例外を送出せず件数に含めないこと"""
        repository.new_session("sid1")
        clock.advance(3601)
        fs_client.failures["delete"] = gcp_exceptions.ServiceUnavailable("down")

        assert repository.session_gc(3600) == 0

    def test_iteration_error_is_swallowed(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """クエリの失敗で例外を送出しないこと"""
        fs_client.failures["stream"] = gcp_exceptions.DeadlineExceeded("timeout")

        assert repository.session_gc(3600) == 0


class TestErrors:
    """バックエンドエラーの変換"""

    def test_permission_denied_on_read(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """権限不足はBackendErrorに変換されること"""
        fs_client.failures["get"] = gcp_exceptions.PermissionDenied("denied")

        with pytest.raises(BackendError) as exc_info:
            repository.find_or_create("sid1")

        assert "insufficient permissions" in exc_info.value.message
        assert exc_info.value.operation == "find_or_create"
        assert exc_info.value.sid == "sid1"

    def test_write_failure(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """書き込みの失敗はBackendErrorに変換されること"""
        repository.new_session("sid1")
        fs_client.failures["update"] = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(BackendError) as exc_info:
            repository.update_session_state("sid1", "InAuth")

        assert exc_info.value.operation == "update_session_state"

    def test_update_of_absent_document(
        self, repository: FirestoreSessionRepository
    ) -> None:
        """存在しないドキュメントの更新はSessionNotFoundErrorであること"""
        with pytest.raises(SessionNotFoundError) as exc_info:
            repository.update_auth_session("absent", "at", "rt", "uid")

        assert exc_info.value.sid == "absent"

    def test_exists_swallows_errors(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """存在確認の失敗はFalseとして扱うこと"""
        repository.new_session("sid1")
        fs_client.failures["get"] = gcp_exceptions.ServiceUnavailable("down")

        assert repository.exists("sid1") is False

    def test_get_auth_code_swallows_errors(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """認可コードの読み取り失敗は空の辞書であること"""
        fs_client.failures["get"] = gcp_exceptions.ServiceUnavailable("down")

        assert repository.get_auth_code("sid1") == {}

    def test_flush_reports_errors(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """全削除の失敗はBackendErrorとして報告すること"""
        repository.new_session("sid1")
        fs_client.failures["delete"] = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(BackendError) as exc_info:
            repository.flush()

        assert exc_info.value.operation == "flush"

    def test_blacklisting_swallows_errors(
        self, repository: FirestoreSessionRepository, fs_client: FakeFirestoreClient
    ) -> None:
        """ブラックリスト登録の失敗は例外を送出しないこと"""
        fs_client.failures["set"] = gcp_exceptions.ServiceUnavailable("down")

        repository.blacklisting("192.0.2.1", "/", None)

        assert fs_client.collection("blacklist").docs == {}


class TestBlacklist:
    """ブラックリストのドキュメント"""

    def test_entry_document(
        self,
        repository: FirestoreSessionRepository,
        fs_client: FakeFirestoreClient,
    ) -> None:
        """ドキュメントIDがIPアドレスであること"""
        repository.blacklisting("192.0.2.1", "/admin", {"ua": "curl"})

        doc = fs_client.collection("blacklist").docs["192.0.2.1"]
        assert doc["created"] == repository.now_datetime()
        assert doc["requestURI"] == "/admin"
        assert doc["details"] == {"ua": "curl"}

    def test_bl_clean_across_pages(
        self,
        repository: FirestoreSessionRepository,
        clock: FakeClock,
        dns_verifier: dict[str, bool],
    ) -> None:
        """全ページのエントリを検証すること"""
        for i in range(5):
            ip = f"66.249.66.{i}"
            dns_verifier[ip] = i % 2 == 0
            repository.blacklisting(ip, "/", None)
        clock.advance(repository.quarantine_period + 1)

        summary = repository.bl_clean()

        assert summary.reviewed == 5
        assert summary.deleted == 3


class TestFromSettings:
    """設定からの生成"""

    def test_project_id_required(self) -> None:
        """PROJECT_IDが無い場合はInvalidConfigurationErrorであること"""
        with pytest.raises(InvalidConfigurationError):
            FirestoreSessionRepository.from_settings(
                Settings(ENV_MODE="test", PROJECT_ID="")
            )

    @patch("sesman.infrastructure.repositories.firestore.firestore.Client")
    def test_uses_settings(self, mock_client: MagicMock) -> None:
        """設定値がリポジトリに反映されること"""
        settings = Settings(
            ENV_MODE="test",
            PROJECT_ID="demo-project",
            BLACKLIST_COLLECTION_NAME="bl",
            BACKEND_TIMEOUT=3.0,
            BL_QUARANTINE_PERIOD=60,
        )

        repository = FirestoreSessionRepository.from_settings(settings)

        mock_client.assert_called_once_with(project="demo-project")
        assert repository.client is mock_client.return_value
        assert repository.blacklist == "bl"
        assert repository.timeout == 3.0
        assert repository.quarantine_period == 60
