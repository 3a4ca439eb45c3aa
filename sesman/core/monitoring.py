"""監視ツール（Sentry）の初期化"""

import sentry_sdk

from sesman.core.config import get_settings
from sesman.core.logging import get_logger

logger = get_logger(__name__)


def init_monitoring() -> None:
    """
    Sentryの初期化

    SENTRY_DSNが設定されていない場合はスキップされる
    """
    settings = get_settings()

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENV_MODE,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )
        logger.info(f"Sentry is enabled on {settings.ENV_MODE} mode")
    else:
        logger.info(
            f"Sentry is disabled on {settings.ENV_MODE} mode"
            if not settings.is_production
            else "Sentry DSN is not set"
        )
