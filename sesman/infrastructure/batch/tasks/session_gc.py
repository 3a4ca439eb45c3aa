"""期限切れセッションの清掃タスク"""

from typing import TYPE_CHECKING

from sesman.infrastructure.batch.base import BatchTask

if TYPE_CHECKING:
    from sesman.core.manager import Sesman


class SessionGCTask(BatchTask):
    """
    期限切れセッションの清掃タスク。

    maxlifetime秒ごとに実行し、最終アクセスからmaxlifetimeを超えた
    セッションを削除する。

    Attributes:
        last_deleted: 直近の実行で削除した件数
    """

    def __init__(self, sesman: "Sesman") -> None:
        super().__init__()
        self.sesman = sesman
        self.last_deleted = 0

    def execute(self) -> None:
        self.last_deleted = self.sesman.gc()
        self.logger.info(f"[BATCH] session gc removed {self.last_deleted} sessions")
