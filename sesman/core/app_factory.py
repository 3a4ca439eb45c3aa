"""FastAPIアプリケーションファクトリー"""

import logging
from typing import Any, Optional

from fastapi import FastAPI

from sesman.core.config import Settings, get_settings
from sesman.core.lifespan import lifespan
from sesman.core.logging import get_logger
from sesman.core.manager import SesCfg, Sesman, new_sesman
from sesman.infrastructure.repositories import Provider, build_registry
from sesman.presentation import api_router
from sesman.presentation.exception_handlers import register_exception_handlers
from sesman.presentation.middleware.error_handler import error_response_middleware
from sesman.presentation.middleware.session import SessionMiddleware

logger = get_logger(__name__)


class HealthCheckFilter(logging.Filter):
    """ヘルスチェックログを除外するフィルター"""

    def filter(self, record: logging.LogRecord) -> bool:
        return "/api/system/healthcheck" not in record.getMessage()


def build_sesman(settings: Settings) -> Sesman:
    """
    設定からセッションマネージャーを生成

    Raises:
        UnknownProviderError: SESSION_PROVIDERのバックエンドが登録されていない場合
        InvalidConfigurationError: 設定が不足・不正な場合
    """
    registry = build_registry(settings)
    return new_sesman(
        Provider.from_name(settings.SESSION_PROVIDER),
        SesCfg.from_settings(settings),
        registry,
    )


def create_app(
    settings: Optional[Settings] = None, sesman: Optional[Sesman] = None
) -> FastAPI:
    """
    FastAPIアプリケーションを生成

    Args:
        settings: アプリケーション設定（Noneの場合はget_settings()）
        sesman: セッションマネージャー（Noneの場合は設定から生成）

    Returns:
        FastAPIアプリケーションインスタンス
    """
    settings = settings or get_settings()
    sesman = sesman or build_sesman(settings)

    app_params: dict[str, Any] = {
        "title": "sesman",
        "description": "Server-side HTTP session manager",
        "version": "0.1.0",
        "lifespan": lifespan,
    }

    # 本番環境ではドキュメントを無効化
    if settings.is_production:
        app_params["docs_url"] = None
        app_params["redoc_url"] = None
        app_params["openapi_url"] = None

    app = FastAPI(**app_params)
    app.state.settings = settings
    app.state.sesman = sesman

    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

    register_exception_handlers(app)

    # 後に登録したミドルウェアが外側になる
    app.middleware("http")(error_response_middleware)
    app.add_middleware(
        SessionMiddleware,
        sesman=sesman,
        auth_marker_cookie=settings.AUTH_MARKER_COOKIE_NAME,
    )

    app.include_router(api_router, prefix="/api")

    return app
