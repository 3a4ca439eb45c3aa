import logging

import uvicorn

from sesman.core.app_factory import create_app
from sesman.core.config import get_settings
from sesman.core.monitoring import init_monitoring

settings = get_settings()

# logger config
logging.basicConfig(level=logging.WARN)
logger = logging.getLogger("uvicorn")
if settings.is_development:
    logger.setLevel(level=logging.DEBUG)
else:
    logger.setLevel(level=logging.INFO)

init_monitoring()

app = create_app(settings)


def run() -> None:
    """uvicornでアプリケーションを起動する"""
    uvicorn.run("sesman.main:app", host="0.0.0.0", port=8000, proxy_headers=True)


if __name__ == "__main__":
    run()
