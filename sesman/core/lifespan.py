"""アプリケーションライフサイクル管理"""

import contextlib
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import FastAPI

from sesman.core.logging import get_logger
from sesman.infrastructure.batch.registry import TaskRegistry
from sesman.infrastructure.batch.scheduler import (
    create_scheduler,
    start_scheduler,
    stop_scheduler,
)
from sesman.infrastructure.batch.tasks import register_session_tasks

logger = get_logger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    アプリケーションのライフサイクル管理

    起動時:
    - 起動時刻の記録
    - セッションGC・ブラックリスト清掃タスクの登録
    - スケジューラー起動

    シャットダウン時:
    - スケジューラー停止

    Args:
        app: FastAPIアプリケーションインスタンス

    Yields:
        None
    """
    # 起動時刻を記録（healthcheckのuptime計算用）
    app.state.start_time = datetime.now(timezone.utc)

    registry = TaskRegistry()
    register_session_tasks(registry, app.state.sesman)

    scheduler = create_scheduler(registry)
    app.state.scheduler = scheduler
    start_scheduler(scheduler)

    yield

    stop_scheduler(scheduler)
