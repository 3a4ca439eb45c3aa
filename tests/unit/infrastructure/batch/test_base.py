"""
BatchTaskクラスの単体テスト
"""

from unittest.mock import Mock, patch

from sesman.infrastructure.batch.base import BatchTask


class SuccessfulTask(BatchTask):
    """テスト用の成功するタスク"""

    def __init__(self) -> None:
        super().__init__()
        self.executed = False

    def execute(self) -> None:
        self.executed = True


class FailingTask(BatchTask):
    """テスト用の失敗するタスク"""

    def execute(self) -> None:
        raise ValueError("Task execution failed")


class TaskWithCustomHooks(BatchTask):
    """テスト用のカスタムフック付きタスク"""

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.success_called = False
        self.failure_error: Exception | None = None

    def execute(self) -> None:
        if self.fail:
            raise RuntimeError("boom")

    def on_success(self) -> None:
        self.success_called = True

    def on_failure(self, error: Exception) -> None:
        self.failure_error = error


class TestBatchTaskRun:
    """run()メソッドの実行フロー"""

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_run_executes_task_successfully(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """execute()が正常に実行されること"""
        mock_get_logger.return_value = Mock()

        task = SuccessfulTask()
        task.run()

        assert task.executed is True
        mock_sentry.capture_exception.assert_not_called()

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_run_logs_start_and_completion(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """開始・完了ログが出力されること"""
        mock_logger = Mock()
        mock_get_logger.return_value = mock_logger

        SuccessfulTask().run()

        calls = [str(call) for call in mock_logger.info.call_args_list]
        assert any("[BATCH] SuccessfulTask start" in call for call in calls)
        assert any("[BATCH] SuccessfulTask completed" in call for call in calls), (
            f"Actual calls: {calls}"
        )

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_run_calls_on_success_hook(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """on_success()が呼ばれること"""
        mock_get_logger.return_value = Mock()

        task = TaskWithCustomHooks()
        task.run()

        assert task.success_called is True
        assert task.failure_error is None


class TestBatchTaskError:
    """run()メソッドのエラーハンドリング"""

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_run_does_not_reraise(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """例外を再送出せず、次回の実行を妨げないこと"""
        mock_get_logger.return_value = Mock()

        task = FailingTask()
        task.run()
        task.run()

        assert mock_sentry.capture_exception.call_count == 2

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_run_calls_on_failure_with_error(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """例外時にon_failure()が例外とともに呼ばれること"""
        mock_get_logger.return_value = Mock()

        task = TaskWithCustomHooks(fail=True)
        task.run()

        assert isinstance(task.failure_error, RuntimeError)
        assert task.success_called is False
        mock_sentry.capture_exception.assert_called_once_with(task.failure_error)

    @patch("sesman.infrastructure.batch.base.sentry_sdk")
    @patch("sesman.infrastructure.batch.base.get_logger")
    def test_on_failure_logs_error_by_default(
        self, mock_get_logger: Mock, mock_sentry: Mock
    ) -> None:
        """on_failure()がデフォルトでエラーログを出力すること"""
        mock_logger = Mock()
        mock_get_logger.return_value = mock_logger

        FailingTask().run()

        mock_logger.error.assert_called_once()
        assert "Task execution failed" in str(mock_logger.error.call_args)
