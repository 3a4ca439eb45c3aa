"""セッション管理の定期タスク"""

from typing import TYPE_CHECKING

from sesman.core.logging import get_logger
from sesman.infrastructure.batch.registry import TaskRegistry

from .blacklist_clean import BlacklistCleanTask
from .session_gc import SessionGCTask

if TYPE_CHECKING:
    from sesman.core.manager import Sesman

logger = get_logger(__name__)


def register_session_tasks(registry: TaskRegistry, sesman: "Sesman") -> None:
    """
    セッションGCとブラックリスト清掃を登録する。

    GCはmaxlifetime秒ごと、ブラックリスト清掃はbl_clean_interval秒ごとに実行する。
    bl_clean_intervalが0の場合、ブラックリスト清掃は登録しない。

    Args:
        registry: 登録先のレジストリ
        sesman: セッションマネージャー
    """
    registry.register(
        task_id="session_gc",
        func=SessionGCTask(sesman).run,
        seconds=sesman.cfg.maxlifetime,
        description="Expired session cleanup",
    )

    if sesman.cfg.bl_clean_interval > 0:
        registry.register(
            task_id="blacklist_clean",
            func=BlacklistCleanTask(sesman).run,
            seconds=sesman.cfg.bl_clean_interval,
            description="Blacklist rehabilitation",
        )
    else:
        logger.info("Blacklist clean is disabled (BL_CLEAN_INTERVAL=0)")


__all__ = ["BlacklistCleanTask", "SessionGCTask", "register_session_tasks"]
