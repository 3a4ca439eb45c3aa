"""セッション管理ミドルウェア"""

import json
from typing import Callable, Sequence

import sentry_sdk
from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from sesman.core.logging import get_logger
from sesman.core.manager import SESSION_STATE_HEADER, Sesman
from sesman.domain.session import AttrKey, SessionState
from sesman.presentation.exceptions import ErrorResponse

logger = get_logger(__name__)

HARDENING_HEADERS = {
    "X-XSS-Protection": "1; mode=block",
    "X-Frame-Options": "deny",
    "X-Content-Type-Options": "nosniff",
}


def apply_hardening_headers(response: Response) -> None:
    for name, value in HARDENING_HEADERS.items():
        response.headers[name] = value


class SessionMiddleware(BaseHTTPMiddleware):
    """
    セッション管理ミドルウェア

    全リクエストで以下を行う:
    - セキュリティヘッダーの付与
    - セッションの取得または作成（失敗時は Connection: close で500を返す）
    - セッションの状態をリクエストヘッダー X-Session-State に設定
    - セッションを request.state.session に格納
    - 未認証の場合、外部認証サービスのマーカーCookieを削除

    Args:
        app: ASGIアプリケーション
        sesman: セッションマネージャー
        auth_marker_cookie: 認証済みマーカーのCookie名
        exempt_paths: セッションを作成しないパスのプレフィックス
    """

    def __init__(
        self,
        app: ASGIApp,
        sesman: Sesman,
        auth_marker_cookie: str = "ia",
        exempt_paths: Sequence[str] = ("/api/system/healthcheck",),
    ) -> None:
        super().__init__(app)
        self.sesman = sesman
        self.auth_marker_cookie = auth_marker_cookie
        self.exempt_paths = tuple(exempt_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(self.exempt_paths):
            response = await call_next(request)
            apply_hardening_headers(response)
            return response

        # session_managerが書き込むSet-Cookieを一時的に受け取るレスポンス
        cookie_sink = Response()
        try:
            session = await run_in_threadpool(
                self.sesman.session_manager, request, cookie_sink
            )
            state = await run_in_threadpool(session.get, AttrKey.STATE)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error(
                f"Dropping the request due to session management error: {e}",
                exc_info=e,
            )
            error = ErrorResponse(
                code="session_failure",
                message="Internal server error occurred",
            )
            response = Response(
                content=json.dumps(jsonable_encoder(error)),
                status_code=500,
                media_type="application/json",
                headers={"Connection": "close"},
            )
            apply_hardening_headers(response)
            return response

        if not isinstance(state, str):
            state = ""

        MutableHeaders(scope=request.scope)[SESSION_STATE_HEADER] = state
        request.state.session = session
        logger.debug(f"Session {session.session_id} with state [{state}] bound to request")

        response = await call_next(request)

        for cookie in cookie_sink.headers.getlist("set-cookie"):
            response.headers.append("set-cookie", cookie)
        if state != SessionState.AUTHED.value:
            response.delete_cookie(self.auth_marker_cookie, path="/")
        apply_hardening_headers(response)
        return response
