"""ブラックリスト清掃タスク"""

from typing import TYPE_CHECKING, Optional

from sesman.domain.repository import CleanSummary
from sesman.infrastructure.batch.base import BatchTask

if TYPE_CHECKING:
    from sesman.core.manager import Sesman


class BlacklistCleanTask(BatchTask):
    """
    ブラックリスト清掃タスク。

    隔離期間を過ぎたIPアドレスのうち、逆引き・正引きDNSが一致するもの
    （正規のクローラー）をブラックリストから削除する。
    """

    def __init__(self, sesman: "Sesman") -> None:
        super().__init__()
        self.sesman = sesman
        self.last_summary: Optional[CleanSummary] = None

    def execute(self) -> None:
        self.last_summary = self.sesman.blc()
