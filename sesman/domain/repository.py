"""
セッションリポジトリのインターフェース

インメモリ・ドキュメントストア・リモートKVの各バックエンドが
同一に満たすべき契約を定義する。
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, NamedTuple

from .session import AttrKey, Session, SessionState

# 認可コードの有効期間（秒）
AUTH_CODE_TTL = 60

# ブラックリストの隔離期間（3日）
DEFAULT_QUARANTINE_PERIOD = 259200

Clock = Callable[[], float]
DNSVerifier = Callable[[str], bool]


class CleanSummary(NamedTuple):
    """ブラックリスト清掃の結果"""

    reviewed: int
    deleted: int


def auth_code_view(value: dict[str, Any], now: int) -> dict[str, str]:
    """
    認可コード属性を取り出す

    state が InAuth かつ code_expire > now の場合のみ値を返し、
    それ以外（型不一致を含む）は空の辞書を返す。

    Args:
        value: セッションの属性マップ
        now: 現在時刻（エポック秒）

    Returns:
        auth_code, code_challenger, code_challenger_method を含む辞書
    """
    code_expire = value.get(AttrKey.CODE_EXPIRE)
    if value.get(AttrKey.STATE) != SessionState.IN_AUTH.value:
        return {}
    if not isinstance(code_expire, int) or isinstance(code_expire, bool):
        return {}
    if code_expire <= now:
        return {}

    view = {
        AttrKey.AUTH_CODE: value.get(AttrKey.AUTH_CODE),
        AttrKey.CODE_CHALLENGER: value.get(AttrKey.CODE_CHALLENGER),
        AttrKey.CODE_CHALLENGER_METHOD: value.get(AttrKey.CODE_CHALLENGER_METHOD),
    }
    if not all(isinstance(v, str) for v in view.values()):
        return {}
    return view


class SessionRepository(ABC):
    """
    セッションリポジトリの基底クラス

    Attributes:
        name: プロバイダー名
        clock: 現在時刻（エポック秒）を返す関数
        maxlifetime: セッションの最大生存期間（秒）、0の場合は期限判定しない
        quarantine_period: ブラックリストの隔離期間（秒）
    """

    name: str = ""

    def __init__(
        self,
        clock: Clock = time.time,
        quarantine_period: int = DEFAULT_QUARANTINE_PERIOD,
    ) -> None:
        self.clock = clock
        self.maxlifetime = 0
        self.quarantine_period = quarantine_period

    def now(self) -> int:
        return int(self.clock())

    def now_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def quarantine_cutoff(self) -> datetime:
        """この時刻より前に登録されたブラックリストエントリが清掃対象"""
        return self.now_datetime() - timedelta(seconds=self.quarantine_period)

    def set_max_lifetime(self, seconds: int) -> None:
        self.maxlifetime = seconds

    def is_expired(self, time_accessed: int) -> bool:
        return self.maxlifetime > 0 and self.now() - time_accessed > self.maxlifetime

    def new_record(self, sid: str) -> Session:
        """初期状態（state=New）のセッションを生成する"""
        return Session(
            sid=sid,
            time_accessed=self.now(),
            value={AttrKey.STATE: SessionState.NEW.value},
            repository=self,
        )

    @abstractmethod
    def new_session(self, sid: str) -> Session:
        """新しいセッションを保存して返す"""

    @abstractmethod
    def find_or_create(self, sid: str) -> Session:
        """
        セッションを検索し、見つからない（または期限切れの）場合は同じIDで作成する

        見つかった場合は最終アクセス時刻を更新する。
        """

    @abstractmethod
    def exists(self, sid: str) -> bool:
        """有効なセッションが存在するか（例外を送出しない）"""

    @abstractmethod
    def destroy_sid(self, sid: str) -> None:
        """セッションを削除する（冪等）"""

    @abstractmethod
    def session_gc(self, maxlifetime: int) -> int:
        """期限切れセッションを削除し、削除件数を返す（例外を送出しない）"""

    @abstractmethod
    def update_time_accessed(self, sid: str) -> None:
        """最終アクセス時刻を現在時刻にする（存在しない場合は何もしない）"""

    @abstractmethod
    def update_session_state(self, sid: str, state: str) -> None:
        """state属性を上書きする"""

    @abstractmethod
    def update_code_verifier(self, sid: str, verifier: str) -> None:
        """PKCEのcode_verifierを保存する"""

    @abstractmethod
    def save_code_challenge_and_method(
        self, sid: str, challenge: str, method: str, code: str, redirect_uri: str
    ) -> None:
        """
        認可リクエストの属性を一括保存し、stateをInAuthにする

        code_expire には現在時刻 + AUTH_CODE_TTL を設定する。
        """

    @abstractmethod
    def get_auth_code(self, sid: str) -> dict[str, str]:
        """有効な認可コード属性を返す（無効・失敗時は空の辞書）"""

    @abstractmethod
    def update_auth_session(self, sid: str, at: str, rt: str, uid: str) -> None:
        """トークンとユーザーIDを一括保存し、stateをAuthedにする"""

    @abstractmethod
    def set_attribute(self, sid: str, key: str, value: Any) -> None:
        """任意の属性を設定する"""

    @abstractmethod
    def delete_attribute(self, sid: str, key: str) -> None:
        """任意の属性を削除する"""

    @abstractmethod
    def active_sessions(self) -> int:
        """有効なセッション数"""

    @abstractmethod
    def flush(self) -> None:
        """全セッションを削除する"""

    @abstractmethod
    def blacklisting(self, ip: str, path: str, details: Any) -> None:
        """IPアドレスをブラックリストに登録する（例外を送出しない）"""

    @abstractmethod
    def is_ip_exist_in_bl(self, ip: str) -> bool:
        """IPアドレスがブラックリストに存在するか"""

    @abstractmethod
    def bl_clean(self) -> CleanSummary:
        """
        隔離期間を過ぎたエントリのうち、逆引き・正引きDNSが一致するものを削除する
        """
