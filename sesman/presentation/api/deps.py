from typing import Optional

from fastapi import HTTPException, Request
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from ...core.manager import Sesman
from ...domain.exceptions.base import UnknownSessionIDError
from ...domain.session import Session


def get_sesman(request: Request) -> Sesman:
    """
    セッションマネージャーを取得するdependency
    """
    sesman: Optional[Sesman] = getattr(request.app.state, "sesman", None)
    if sesman is None:
        raise HTTPException(
            status_code=HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session manager is not configured",
        )
    return sesman


def get_session(request: Request) -> Session:
    """
    ミドルウェアがリクエストに結び付けたセッションを取得するdependency
    """
    session: Optional[Session] = getattr(request.state, "session", None)
    if session is None:
        raise UnknownSessionIDError()
    return session

