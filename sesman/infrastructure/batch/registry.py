"""バッチタスクの登録レジストリ"""

from collections.abc import Callable
from typing import TypedDict

from apscheduler.triggers.interval import IntervalTrigger


class TaskInfo(TypedDict):
    """タスク情報の型定義"""

    func: Callable[[], None]
    trigger: IntervalTrigger
    description: str


class TaskRegistry:
    """
    バッチタスクの登録レジストリ。

    タスクを実行間隔とともに登録し、
    スケジューラーが参照できるように管理する。

    Example:
        >>> registry = TaskRegistry()
        >>> registry.register(
        ...     task_id="session_gc",
        ...     func=sesman.gc,
        ...     seconds=3600,
        ...     description="Expired session cleanup"
        ... )
    """

    def __init__(self) -> None:
        """タスクレジストリを初期化する。"""
        self.tasks: dict[str, TaskInfo] = {}

    def register(
        self,
        task_id: str,
        func: Callable[[], None],
        seconds: int,
        description: str = "",
    ) -> None:
        """
        タスクを登録する。

        Args:
            task_id: タスクの一意な識別子
            func: 実行する関数
            seconds: 実行間隔（秒）
            description: タスクの説明（ログ出力用）

        Raises:
            ValueError: 実行間隔が正の値でない場合
        """
        if seconds <= 0:
            raise ValueError(f"interval of task {task_id} must be positive: {seconds}")

        self.tasks[task_id] = {
            "func": func,
            "trigger": IntervalTrigger(seconds=seconds),
            "description": description,
        }

    def get_all(self) -> dict[str, TaskInfo]:
        """
        登録された全タスクを取得する。

        Returns:
            dict: タスクID をキーとした辞書。
                各値は func, trigger, description を含む辞書。
        """
        return self.tasks
