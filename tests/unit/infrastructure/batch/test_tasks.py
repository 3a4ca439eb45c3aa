"""
セッション管理の定期タスクのテスト
"""

from datetime import timedelta
from unittest.mock import Mock, patch

from sesman.core.manager import SesCfg, Sesman
from sesman.domain.repository import CleanSummary
from sesman.infrastructure.batch.registry import TaskRegistry
from sesman.infrastructure.batch.tasks import (
    BlacklistCleanTask,
    SessionGCTask,
    register_session_tasks,
)
from sesman.infrastructure.repositories.memory import MemorySessionRepository
from tests.helpers import FakeClock


class TestSessionGCTask:
    """期限切れセッションの清掃タスク"""

    def test_removes_expired_sessions(self, sesman: Sesman, clock: FakeClock) -> None:
        """マネージャーのGCを実行し、削除件数を記録すること"""
        sesman.repository.new_session("old")
        clock.advance(sesman.cfg.maxlifetime + 1)
        sesman.repository.new_session("fresh")

        task = SessionGCTask(sesman)
        task.run()

        assert task.last_deleted == 1
        assert sesman.repository.exists("fresh") is True

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    def test_failure_keeps_loop_alive(self, mock_sentry: Mock) -> None:
        """GCの失敗は送出されずSentryに送信されること"""
        sesman = Mock()
        sesman.gc.side_effect = RuntimeError("store down")

        task = SessionGCTask(sesman)
        task.run()

        assert task.last_deleted == 0
        mock_sentry.capture_exception.assert_called_once()


class TestBlacklistCleanTask:
    """ブラックリスト清掃タスク"""

    def test_records_summary(
        self, sesman: Sesman, clock: FakeClock, dns_verifier: dict[str, bool]
    ) -> None:
        """清掃結果を記録すること"""
        dns_verifier["66.249.66.1"] = True
        sesman.add_blacklisting("66.249.66.1", "/", None)
        clock.advance(sesman.repository.quarantine_period + 1)

        task = BlacklistCleanTask(sesman)
        task.run()

        assert task.last_summary == CleanSummary(reviewed=1, deleted=1)
        assert sesman.is_blacklisted("66.249.66.1") is False


class TestRegisterSessionTasks:
    """定期タスクの登録"""

    def test_registers_both_loops(self, sesman: Sesman) -> None:
        """GCはmaxlifetime秒、清掃はbl_clean_interval秒ごとに登録されること"""
        registry = TaskRegistry()

        register_session_tasks(registry, sesman)

        tasks = registry.get_all()
        assert set(tasks) == {"session_gc", "blacklist_clean"}
        assert tasks["session_gc"]["trigger"].interval == timedelta(
            seconds=sesman.cfg.maxlifetime
        )
        assert tasks["blacklist_clean"]["trigger"].interval == timedelta(
            seconds=sesman.cfg.bl_clean_interval
        )

    def test_zero_interval_disables_blacklist_clean(self) -> None:
        """bl_clean_intervalが0の場合はブラックリスト清掃を登録しないこと"""
        sesman = Sesman(
            repository=MemorySessionRepository(),
            cfg=SesCfg(cookie_name="ivmid", maxlifetime=60, bl_clean_interval=0),
        )
        registry = TaskRegistry()

        register_session_tasks(registry, sesman)

        assert list(registry.get_all()) == ["session_gc"]
