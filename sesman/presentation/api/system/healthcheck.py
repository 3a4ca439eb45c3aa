from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from sesman.core.config import get_settings
from sesman.core.logging import get_logger
from sesman.core.manager import Sesman
from sesman.presentation.api.deps import get_sesman
from sesman.presentation.schemas.system import HealthCheckResponse, SessionStoreStatus

router = APIRouter()
logger = get_logger(__name__)


@router.get("/", response_model=HealthCheckResponse)
async def healthcheck(
    request: Request, sesman: Sesman = Depends(get_sesman)
) -> HealthCheckResponse:
    """
    ヘルスチェックエンドポイント

    - セッションストアの種類と有効なセッション数
    - アプリケーションuptime
    - 環境情報を返す
    """
    start_time = getattr(request.app.state, "start_time", None)
    uptime_seconds = 0.0
    if start_time:
        uptime_seconds = (datetime.now(timezone.utc) - start_time).total_seconds()

    settings = getattr(request.app.state, "settings", None) or get_settings()
    active = await run_in_threadpool(sesman.active_sessions)

    return HealthCheckResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=uptime_seconds,
        session_store=SessionStoreStatus(
            provider=sesman.provider.label, active_sessions=active
        ),
        environment=settings.ENV_MODE,
    )
