"""
セッションレコード

セッションID・最終アクセス時刻・属性マップを保持するエンティティ。
属性マップは前方互換のため任意のキーを受け付け、既知のキーには
型を検証するアクセサを提供する。
"""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .exceptions.base import ValidationError

if TYPE_CHECKING:
    from .repository import SessionRepository


class SessionState(str, Enum):
    """セッションの状態"""

    NEW = "New"
    IN_AUTH = "InAuth"
    AUTHED = "Authed"


class AttrKey:
    """既知の属性キー"""

    STATE = "state"
    CODE_VERIFIER = "code_verifier"
    CODE_CHALLENGER = "code_challenger"
    CODE_CHALLENGER_METHOD = "code_challenger_method"
    AUTH_CODE = "auth_code"
    CODE_EXPIRE = "code_expire"
    REDIRECT_URI = "redirect_uri"
    ACCESS_TOKEN = "at"
    REFRESH_TOKEN = "rt"
    USER_ID = "uid"


class Session:
    """
    セッションのハンドル

    属性の読み書きはすべて所有元バックエンドを経由し、最終アクセス時刻を更新する。
    """

    def __init__(
        self,
        sid: str,
        time_accessed: int,
        value: Optional[dict[str, Any]] = None,
        repository: Optional["SessionRepository"] = None,
    ) -> None:
        """
        Args:
            sid: セッションID
            time_accessed: 最終アクセス時刻（エポック秒）
            value: 属性マップ
            repository: 所有元バックエンド（Noneの場合は読み書きがローカルのみ）
        """
        self.sid = sid
        self.time_accessed = time_accessed
        self.value: dict[str, Any] = value if value is not None else {}
        self._repository = repository

    def __repr__(self) -> str:
        return f"Session(sid={self.sid!r}, time_accessed={self.time_accessed})"

    @property
    def session_id(self) -> str:
        return self.sid

    @property
    def last_accessed_at(self) -> datetime:
        """最終アクセス時刻（UTC）"""
        return datetime.fromtimestamp(self.time_accessed, tz=timezone.utc)

    def get(self, key: str, default: Any = None) -> Any:
        """属性を取得する（最終アクセス時刻を更新）"""
        if self._repository is not None:
            self._repository.update_time_accessed(self.sid)
        return self.value.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """属性を設定する"""
        if self._repository is not None:
            self._repository.set_attribute(self.sid, key, value)
        self.value[key] = value

    def delete(self, key: str) -> None:
        """属性を削除する"""
        if self._repository is not None:
            self._repository.delete_attribute(self.sid, key)
        self.value.pop(key, None)

    def _typed(self, key: str, expected: type) -> Any:
        value = self.get(key)
        if value is None:
            return None
        # boolはintのサブクラス
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ValidationError(
                message=f"session attribute {key!r} must be {expected.__name__}",
                details={"key": key, "type": type(value).__name__},
            )
        return value

    @property
    def state(self) -> Optional[str]:
        return self._typed(AttrKey.STATE, str)

    @property
    def code_verifier(self) -> Optional[str]:
        return self._typed(AttrKey.CODE_VERIFIER, str)

    @property
    def code_challenger(self) -> Optional[str]:
        return self._typed(AttrKey.CODE_CHALLENGER, str)

    @property
    def code_challenger_method(self) -> Optional[str]:
        return self._typed(AttrKey.CODE_CHALLENGER_METHOD, str)

    @property
    def auth_code(self) -> Optional[str]:
        return self._typed(AttrKey.AUTH_CODE, str)

    @property
    def code_expire(self) -> Optional[int]:
        return self._typed(AttrKey.CODE_EXPIRE, int)

    @property
    def redirect_uri(self) -> Optional[str]:
        return self._typed(AttrKey.REDIRECT_URI, str)

    @property
    def access_token(self) -> Optional[str]:
        return self._typed(AttrKey.ACCESS_TOKEN, str)

    @property
    def refresh_token(self) -> Optional[str]:
        return self._typed(AttrKey.REFRESH_TOKEN, str)

    @property
    def user_id(self) -> Optional[str]:
        return self._typed(AttrKey.USER_ID, str)

    def to_document(self) -> dict[str, Any]:
        """ドキュメントストア用の表現に変換"""
        return {
            "Sid": self.sid,
            "TimeAccessed": self.time_accessed,
            "Value": dict(self.value),
        }

    @classmethod
    def from_document(
        cls,
        data: dict[str, Any],
        repository: Optional["SessionRepository"] = None,
    ) -> "Session":
        """ドキュメントストアの表現から生成"""
        return cls(
            sid=str(data.get("Sid", "")),
            time_accessed=int(data.get("TimeAccessed", 0)),
            value=dict(data.get("Value") or {}),
            repository=repository,
        )
