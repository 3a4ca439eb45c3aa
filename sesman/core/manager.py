"""
セッションマネージャー

Cookieとセッションの対応付け、ID発行、状態遷移、認証時のIDローテーション、
期限切れセッションとブラックリストの清掃を行う。
バックエンドに触れる公開操作はすべて単一のロックで直列化する。
"""

import re
import threading
from typing import TYPE_CHECKING, Any, Optional, Union
from urllib.parse import quote_plus, unquote_plus

from fastapi import Request, Response
from pydantic import BaseModel

from ..domain.exceptions.base import (
    InvalidConfigurationError,
    InvalidSessionIDError,
    MissingSessionStateError,
    UnknownProviderError,
    UnknownSessionIDError,
)
from ..domain.repository import CleanSummary, SessionRepository
from ..domain.session import Session
from ..infrastructure.repositories.registry import Provider, ProviderRegistry
from ..infrastructure.security.identifiers import generate_session_id
from .logging import get_logger

if TYPE_CHECKING:
    from .config import Settings

logger = get_logger(__name__)

SESSION_STATE_HEADER = "X-Session-State"

# Cookieから受け付けるセッションIDの形式
SID_PATTERN = re.compile(r"[0-9A-Za-z._~-]{1,128}")


class SesCfg(BaseModel):
    """
    セッションマネージャーの設定

    値の検証はnew_sesmanで行い、不正な場合はInvalidConfigurationErrorとする。

    Attributes:
        cookie_name: セッションIDを保持するCookie名（必須）
        maxlifetime: セッションの最大生存期間（秒、正の値）
        visit_cookie_name: 訪問者Cookie名
        project_id: Firestoreのプロジェクト（Firestore選択時は必須）
        bl_clean_interval: ブラックリスト清掃の間隔（秒、0で無効）
    """

    cookie_name: str = ""
    maxlifetime: int = 0
    visit_cookie_name: str = ""
    project_id: str = ""
    bl_clean_interval: int = 3600

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SesCfg":
        return cls(
            cookie_name=settings.SESSION_COOKIE_NAME,
            maxlifetime=settings.SESSION_MAXLIFETIME,
            visit_cookie_name=settings.VISIT_COOKIE_NAME,
            project_id=settings.PROJECT_ID,
            bl_clean_interval=settings.BL_CLEAN_INTERVAL,
        )


def new_sesman(
    provider: Union[Provider, int],
    cfg: Optional[SesCfg],
    registry: ProviderRegistry,
) -> "Sesman":
    """
    セッションマネージャーを生成

    Args:
        provider: 使用するバックエンドの種類
        cfg: マネージャー設定
        registry: バックエンドの登録レジストリ

    Returns:
        Sesman: セッションマネージャー

    Raises:
        UnknownProviderError: 未知、または未登録のバックエンドの場合
        InvalidConfigurationError: 設定が不足・不正な場合
    """
    try:
        provider = Provider(provider)
    except ValueError:
        raise UnknownProviderError(provider)

    repository = registry.get(provider)
    if repository is None:
        raise UnknownProviderError(provider)

    if cfg is None or not cfg.cookie_name:
        raise InvalidConfigurationError()
    if cfg.maxlifetime <= 0:
        raise InvalidConfigurationError(
            details={"maxlifetime": cfg.maxlifetime},
        )
    if provider == Provider.FIRESTORE and not cfg.project_id:
        raise InvalidConfigurationError(
            "Sesman: ProjectID is required for the FireStore session store"
        )

    logger.info(
        f"Session manager ready: provider={provider.label}, "
        f"cookie={cfg.cookie_name}, maxlifetime={cfg.maxlifetime}s"
    )
    return Sesman(repository=repository, cfg=cfg, provider=provider)


class Sesman:
    """
    セッションマネージャー

    Attributes:
        repository: セッションのバックエンド
        cfg: マネージャー設定
        provider: バックエンドの種類
    """

    def __init__(
        self,
        repository: SessionRepository,
        cfg: SesCfg,
        provider: Provider = Provider.MEMORY,
    ) -> None:
        self.repository = repository
        self.cfg = cfg
        self.provider = provider
        self._lock = threading.Lock()
        self.repository.set_max_lifetime(cfg.maxlifetime)

    def _cookie_sid(self, request: Request) -> Optional[str]:
        """CookieからセッションIDを取り出す（無い・空・不正な形式の場合はNone）"""
        raw = request.cookies.get(self.cfg.cookie_name)
        if not raw:
            return None
        sid = unquote_plus(raw)
        if not SID_PATTERN.fullmatch(sid):
            logger.warning(f"Malformed session cookie ignored: {raw[:64]!r}")
            return None
        return sid

    def _require_sid(self, request: Request) -> str:
        sid = self._cookie_sid(request)
        if sid is None:
            raise UnknownSessionIDError()
        return sid

    def _set_cookie(self, response: Response, sid: str) -> None:
        response.set_cookie(
            key=self.cfg.cookie_name,
            value=quote_plus(sid),
            max_age=self.cfg.maxlifetime,
            path="/",
            secure=True,
            httponly=True,
            samesite="strict",
        )

    def session_manager(self, request: Request, response: Response) -> Session:
        """
        リクエストに対応するセッションを取得、または新規作成

        有効なセッションIDのCookieがある場合はそのセッションを返し、
        無い場合（未知・期限切れのIDを含む）は新しいIDでセッションを作成して
        Set-Cookieをレスポンスに書き込む。

        Args:
            request: HTTPリクエスト
            response: Set-Cookieを書き込むレスポンス

        Returns:
            Session: セッション

        Raises:
            BackendError: バックエンドの読み書きに失敗した場合
        """
        with self._lock:
            sid = self._cookie_sid(request)
            if sid is not None:
                if self.repository.exists(sid):
                    return self.repository.find_or_create(sid)
                logger.info(f"Unknown session id in cookie, issuing a new one: {sid}")

            sid = generate_session_id()
            session = self.repository.new_session(sid)
            self._set_cookie(response, sid)
            return session

    def destroy(self, request: Request, response: Response) -> None:
        """Cookieのセッションを削除し、クライアントのCookieを失効させる"""
        sid = self._cookie_sid(request)
        if sid is None:
            return

        with self._lock:
            self.repository.destroy_sid(sid)
            response.delete_cookie(
                key=self.cfg.cookie_name,
                path="/",
                secure=True,
                httponly=True,
                samesite="strict",
            )

    def exists(self, request: Request) -> bool:
        """
        Cookieのセッションが存在するか

        Raises:
            UnknownSessionIDError: Cookieが無い、または値が空の場合
        """
        sid = self._require_sid(request)
        with self._lock:
            return self.repository.exists(sid)

    def change_state(self, request: Request) -> bool:
        """
        X-Session-Stateヘッダーの値でセッションの状態を上書きする

        APIゲートウェイや認証サービスなど、他サービスが決めた状態を反映する。

        Raises:
            UnknownSessionIDError: Cookieが無い場合
            MissingSessionStateError: ヘッダーが空の場合
            SessionNotFoundError: セッションが存在しない場合
        """
        sid = self._require_sid(request)
        state = request.headers.get(SESSION_STATE_HEADER, "")
        if not state:
            raise MissingSessionStateError()

        with self._lock:
            self.repository.update_session_state(sid, state)

        logger.info(f"Session {sid} state changed to {state}")
        return True

    def session_auth(
        self, request: Request, response: Response, at: str, rt: str, uid: str
    ) -> str:
        """
        認証済みセッションへのIDローテーション

        旧セッションを削除し、新しいIDでセッションを作成してトークンを保存する。
        途中で失敗した場合、新しいCookieは発行されない。

        Args:
            request: HTTPリクエスト
            response: 新しいSet-Cookieを書き込むレスポンス
            at: アクセストークン
            rt: リフレッシュトークン
            uid: ユーザーID

        Returns:
            新しいセッションID

        Raises:
            UnknownSessionIDError: Cookieが無い場合
            InvalidSessionIDError: Cookieのセッションが存在しない場合
            BackendError: バックエンドの読み書きに失敗した場合
        """
        old_sid = self._require_sid(request)

        with self._lock:
            if not self.repository.exists(old_sid):
                raise InvalidSessionIDError()

            self.repository.destroy_sid(old_sid)

            new_sid = generate_session_id()
            self.repository.new_session(new_sid)
            self.repository.update_auth_session(new_sid, at, rt, uid)
            self._set_cookie(response, new_sid)

        logger.info(f"Session ID regenerated: {old_sid} -> {new_sid}")
        return new_sid

    def get_auth_session_attribute(self, request: Request, name: str) -> Any:
        """
        Cookieのセッションの属性を読み取る

        Raises:
            UnknownSessionIDError: Cookieが無い場合
            InvalidSessionIDError: Cookieのセッションが存在しない場合
        """
        sid = self._require_sid(request)
        with self._lock:
            if not self.repository.exists(sid):
                raise InvalidSessionIDError()
            session = self.repository.find_or_create(sid)
            return session.get(name)

    def get_context_attribute(self, request: Request, name: str) -> str:
        """
        ミドルウェアがリクエストに結び付けたセッションの文字列属性を読み取る

        セッションが無い、または属性が文字列でない場合は空文字を返す。
        """
        session = getattr(request.state, "session", None)
        if session is None:
            return ""
        value = session.get(name)
        return value if isinstance(value, str) else ""

    def active_sessions(self) -> int:
        return self.repository.active_sessions()

    def update_code_verifier(self, sid: str, verifier: str) -> None:
        with self._lock:
            self.repository.update_code_verifier(sid, verifier)

    def save_aca(
        self, sid: str, challenge: str, method: str, code: str, redirect_uri: str
    ) -> None:
        """認可リクエストの属性（Authorization Code Attributes）を保存する"""
        with self._lock:
            self.repository.save_code_challenge_and_method(
                sid, challenge, method, code, redirect_uri
            )

    def get_auth_code(self, sid: str) -> dict[str, str]:
        with self._lock:
            return self.repository.get_auth_code(sid)

    def add_blacklisting(self, ip: str, path: str, data: Any) -> None:
        self.repository.blacklisting(ip, path, data)

    def is_blacklisted(self, ip: str) -> bool:
        return self.repository.is_ip_exist_in_bl(ip)

    def gc(self) -> int:
        """期限切れセッションを1回清掃する（定期実行はスケジューラーが行う）"""
        with self._lock:
            return self.repository.session_gc(self.cfg.maxlifetime)

    def blc(self) -> CleanSummary:
        """ブラックリストを1回清掃する（DNS解決を含むためロックを保持しない）"""
        return self.repository.bl_clean()
