"""
スケジューラー管理の単体テスト
"""

from unittest.mock import MagicMock, Mock, patch

from sesman.infrastructure.batch.registry import TaskRegistry
from sesman.infrastructure.batch.scheduler import (
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)


def dummy_task() -> None:
    pass


class TestCreateScheduler:
    """create_scheduler()"""

    @patch("sesman.infrastructure.batch.scheduler.BackgroundScheduler")
    def test_registers_all_tasks(self, mock_scheduler_class: MagicMock) -> None:
        """登録済みタスクがすべて追加されること"""
        registry = TaskRegistry()
        registry.register(task_id="a", func=dummy_task, seconds=10, description="Task A")
        registry.register(task_id="b", func=dummy_task, seconds=20)

        scheduler = create_scheduler(registry)

        assert scheduler is mock_scheduler_class.return_value
        assert scheduler.add_job.call_count == 2
        names = [c.kwargs["name"] for c in scheduler.add_job.call_args_list]
        assert names == ["Task A", "b"]

    @patch("sesman.infrastructure.batch.scheduler.BackgroundScheduler")
    def test_jobs_do_not_overlap(self, mock_scheduler_class: MagicMock) -> None:
        """同じタスクの重複実行を許可しないこと"""
        registry = TaskRegistry()
        registry.register(task_id="session_gc", func=dummy_task, seconds=10)

        scheduler = create_scheduler(registry)

        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == "session_gc"
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert kwargs["trigger"] is registry.get_all()["session_gc"]["trigger"]


class TestStartStop:
    """start_scheduler() / stop_scheduler()"""

    @patch("sesman.infrastructure.batch.scheduler.logger")
    def test_start_logs_next_run(self, mock_logger: Mock) -> None:
        """起動後に各ジョブの次回実行時刻をログ出力すること"""
        scheduler = Mock()
        job = Mock(id="session_gc", next_run_time="2026-01-01 00:00:00")
        scheduler.get_jobs.return_value = [job]

        start_scheduler(scheduler)

        scheduler.start.assert_called_once()
        calls = [str(call) for call in mock_logger.info.call_args_list]
        assert any("session_gc next run" in call for call in calls)

    def test_stop_does_not_wait(self) -> None:
        """実行中のジョブを待たずに停止すること"""
        scheduler = Mock()

        stop_scheduler(scheduler)

        scheduler.shutdown.assert_called_once_with(wait=False)
