"""
Firestoreのセッションリポジトリ

1セッション = 1ドキュメント（ID = セッションID）。
フィールド: Sid / TimeAccessed（エポック秒）/ Value（属性マップ）
属性の書き込みは "Value.<key>" のフィールドパス更新で行い、
複数フィールドの更新は1回のupdateでアトミックに適用する。
ローカルキャッシュは持たない。
"""

import time
from typing import TYPE_CHECKING, Any, Iterator, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from ...core.logging import get_logger
from ...domain.exceptions.base import (
    BackendError,
    InvalidConfigurationError,
    SessionNotFoundError,
)
from ...domain.repository import (
    AUTH_CODE_TTL,
    DEFAULT_QUARANTINE_PERIOD,
    CleanSummary,
    Clock,
    DNSVerifier,
    SessionRepository,
    auth_code_view,
)
from ...domain.session import AttrKey, Session, SessionState
from ..security.dns import verify_reverse_dns

if TYPE_CHECKING:
    from ...core.config import Settings

logger = get_logger(__name__)

PAGE_SIZE = 300
# SessionGCにライフタイム0が渡された場合の既定値
DEFAULT_GC_LIFETIME = 3600


def value_path(key: str) -> str:
    """属性キーのフィールドパス（Value.<key>）"""
    return FieldPath("Value", key).to_api_repr()


class FirestoreSessionRepository(SessionRepository):
    """
    Firestoreのセッションリポジトリ

    Attributes:
        client: Firestoreクライアント
        collection: セッションのコレクション名
        blacklist: ブラックリストのコレクション名
        timeout: 各API呼び出しのタイムアウト（秒）
    """

    name = "FireStore"

    def __init__(
        self,
        client: firestore.Client,
        collection: str = "sessions",
        blacklist: str = "blacklist",
        timeout: Optional[float] = 10.0,
        page_size: int = PAGE_SIZE,
        clock: Clock = time.time,
        quarantine_period: int = DEFAULT_QUARANTINE_PERIOD,
        dns_verifier: Optional[DNSVerifier] = None,
    ) -> None:
        super().__init__(clock=clock, quarantine_period=quarantine_period)
        self.client = client
        self.collection = collection
        self.blacklist = blacklist
        self.timeout = timeout
        self.page_size = page_size
        self.dns_verifier = dns_verifier or verify_reverse_dns

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FirestoreSessionRepository":
        """
        設定からリポジトリを生成

        Raises:
            InvalidConfigurationError: PROJECT_IDが未設定の場合
        """
        if not settings.PROJECT_ID:
            raise InvalidConfigurationError(
                "FIRESTORE_PROJECT_ID (or PROJECT_ID) is required for the firestore session store"
            )
        client = firestore.Client(project=settings.PROJECT_ID)
        logger.info(
            f"Firestore session store: project={settings.PROJECT_ID}, "
            f"collection={settings.SESSION_COLLECTION_NAME}"
        )
        return cls(
            client=client,
            collection=settings.SESSION_COLLECTION_NAME,
            blacklist=settings.BLACKLIST_COLLECTION_NAME,
            timeout=settings.BACKEND_TIMEOUT,
            quarantine_period=settings.BL_QUARANTINE_PERIOD,
        )

    def _doc(self, sid: str) -> Any:
        return self.client.collection(self.collection).document(sid)

    def _paginate(self, query: Any, order_field: Optional[str] = None) -> Iterator[Any]:
        """カーソルでページ送りしながらドキュメントを返す"""
        if order_field:
            query = query.order_by(order_field)

        last = None
        while True:
            page = query.limit(self.page_size)
            if last is not None:
                page = page.start_after(last)
            snapshots = list(page.stream(timeout=self.timeout))
            yield from snapshots
            if len(snapshots) < self.page_size:
                return
            last = snapshots[-1]

    def _update(self, sid: str, fields: dict[str, Any], operation: str) -> None:
        fields = {**fields, "TimeAccessed": self.now()}
        try:
            self._doc(sid).update(fields, timeout=self.timeout)
        except gcp_exceptions.NotFound:
            raise SessionNotFoundError(sid)
        except gcp_exceptions.GoogleAPICallError as e:
            raise BackendError(operation, sid, e) from e

    def new_session(self, sid: str) -> Session:
        session = self.new_record(sid)
        try:
            self._doc(sid).set(session.to_document(), timeout=self.timeout)
        except gcp_exceptions.GoogleAPICallError as e:
            raise BackendError("new_session", sid, e) from e
        logger.debug(f"Session created: {sid}")
        return session

    def find_or_create(self, sid: str) -> Session:
        try:
            snapshot = self._doc(sid).get(timeout=self.timeout)
        except gcp_exceptions.PermissionDenied as e:
            raise BackendError(
                "find_or_create",
                sid,
                "insufficient permissions to read data from the session store",
            ) from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise BackendError("find_or_create", sid, e) from e

        if not snapshot.exists:
            logger.info(f"Session not found in the store, recreating: {sid}")
            return self.new_session(sid)

        session = Session.from_document(snapshot.to_dict() or {}, repository=self)
        if self.is_expired(session.time_accessed):
            logger.info(f"Session expired, recreating: {sid}")
            return self.new_session(sid)

        self.update_time_accessed(sid)
        session.time_accessed = max(session.time_accessed, self.now())
        return session

    def exists(self, sid: str) -> bool:
        try:
            snapshot = self._doc(sid).get(timeout=self.timeout)
        except gcp_exceptions.GoogleAPICallError as e:
            logger.warning(f"Failed to read session {sid}: {e}")
            return False
        if not snapshot.exists:
            return False
        data = snapshot.to_dict() or {}
        return not self.is_expired(int(data.get("TimeAccessed", 0)))

    def destroy_sid(self, sid: str) -> None:
        try:
            self._doc(sid).delete(timeout=self.timeout)
        except gcp_exceptions.GoogleAPICallError as e:
            raise BackendError("destroy_sid", sid, e) from e
        logger.info(f"Session deleted: {sid}")

    def session_gc(self, maxlifetime: int) -> int:
        if maxlifetime <= 0:
            maxlifetime = DEFAULT_GC_LIFETIME

        cutoff = self.now() - maxlifetime
        query = self.client.collection(self.collection).where(
            filter=FieldFilter("TimeAccessed", "<", cutoff)
        )

        count = 0
        errors: list[str] = []
        try:
            for snapshot in self._paginate(query, order_field="TimeAccessed"):
                try:
                    snapshot.reference.delete(timeout=self.timeout)
                    count += 1
                except gcp_exceptions.GoogleAPICallError as e:
                    errors.append(f"{snapshot.id}: {e}")
        except gcp_exceptions.GoogleAPICallError as e:
            errors.append(f"iteration: {e}")

        if errors:
            logger.error(
                f"{len(errors)} errors while cleaning up expired sessions: {'; '.join(errors)}"
            )
        if count > 0:
            logger.info(f"Cleaned up {count} expired sessions")
        return count

    def update_time_accessed(self, sid: str) -> None:
        try:
            self._doc(sid).update({"TimeAccessed": self.now()}, timeout=self.timeout)
        except gcp_exceptions.NotFound:
            return
        except gcp_exceptions.GoogleAPICallError as e:
            raise BackendError("update_time_accessed", sid, e) from e

    def update_session_state(self, sid: str, state: str) -> None:
        self._update(sid, {value_path(AttrKey.STATE): state}, "update_session_state")

    def update_code_verifier(self, sid: str, verifier: str) -> None:
        self._update(
            sid, {value_path(AttrKey.CODE_VERIFIER): verifier}, "update_code_verifier"
        )

    def save_code_challenge_and_method(
        self, sid: str, challenge: str, method: str, code: str, redirect_uri: str
    ) -> None:
        self._update(
            sid,
            {
                value_path(AttrKey.CODE_CHALLENGER): challenge,
                value_path(AttrKey.CODE_CHALLENGER_METHOD): method,
                value_path(AttrKey.AUTH_CODE): code,
                value_path(AttrKey.CODE_EXPIRE): self.now() + AUTH_CODE_TTL,
                value_path(AttrKey.REDIRECT_URI): redirect_uri,
                value_path(AttrKey.STATE): SessionState.IN_AUTH.value,
            },
            "save_code_challenge_and_method",
        )

    def get_auth_code(self, sid: str) -> dict[str, str]:
        try:
            snapshot = self._doc(sid).get(timeout=self.timeout)
            if not snapshot.exists:
                return {}
            self.update_time_accessed(sid)
        except (gcp_exceptions.GoogleAPICallError, BackendError) as e:
            logger.warning(f"Failed to read the auth code of session {sid}: {e}")
            return {}

        data = snapshot.to_dict() or {}
        return auth_code_view(data.get("Value") or {}, self.now())

    def update_auth_session(self, sid: str, at: str, rt: str, uid: str) -> None:
        self._update(
            sid,
            {
                value_path(AttrKey.ACCESS_TOKEN): at,
                value_path(AttrKey.REFRESH_TOKEN): rt,
                value_path(AttrKey.USER_ID): uid,
                value_path(AttrKey.STATE): SessionState.AUTHED.value,
            },
            "update_auth_session",
        )

    def set_attribute(self, sid: str, key: str, value: Any) -> None:
        self._update(sid, {value_path(key): value}, "set_attribute")

    def delete_attribute(self, sid: str, key: str) -> None:
        self._update(sid, {value_path(key): firestore.DELETE_FIELD}, "delete_attribute")

    def active_sessions(self) -> int:
        collection = self.client.collection(self.collection)
        order_field = None
        query = collection
        if self.maxlifetime > 0:
            query = collection.where(
                filter=FieldFilter("TimeAccessed", ">=", self.now() - self.maxlifetime)
            )
            order_field = "TimeAccessed"

        count = 0
        try:
            for _ in self._paginate(query, order_field=order_field):
                count += 1
        except gcp_exceptions.GoogleAPICallError as e:
            logger.error(f"Error while counting active sessions after {count}: {e}")
        return count

    def flush(self) -> None:
        errors: list[str] = []
        collection = self.client.collection(self.collection)
        try:
            for snapshot in self._paginate(collection):
                try:
                    snapshot.reference.delete(timeout=self.timeout)
                except gcp_exceptions.GoogleAPICallError as e:
                    errors.append(f"{snapshot.id}: {e}")
        except gcp_exceptions.GoogleAPICallError as e:
            errors.append(f"iteration: {e}")

        if errors:
            raise BackendError("flush", None, f"{len(errors)} errors: {'; '.join(errors)}")
        logger.info("All sessions flushed")

    def blacklisting(self, ip: str, path: str, details: Any) -> None:
        entry = {
            "created": self.now_datetime(),
            "requestURI": path,
            "details": details,
        }
        try:
            self.client.collection(self.blacklist).document(ip).set(
                entry, merge=True, timeout=self.timeout
            )
        except (gcp_exceptions.GoogleAPICallError, TypeError, ValueError) as e:
            logger.error(f"Error updating ip {ip} in the blacklist: {e}")
            return
        logger.info(f"IP {ip} listed in the blacklist")

    def is_ip_exist_in_bl(self, ip: str) -> bool:
        try:
            snapshot = (
                self.client.collection(self.blacklist)
                .document(ip)
                .get(timeout=self.timeout)
            )
        except gcp_exceptions.GoogleAPICallError as e:
            logger.warning(f"Failed to read blacklist entry {ip}: {e}")
            return False
        return bool(snapshot.exists)

    def bl_clean(self) -> CleanSummary:
        query = self.client.collection(self.blacklist).where(
            filter=FieldFilter("created", "<", self.quarantine_cutoff())
        )

        reviewed = 0
        deleted = 0
        try:
            for snapshot in self._paginate(query, order_field="created"):
                reviewed += 1
                if not self.dns_verifier(snapshot.id):
                    continue
                # 読み取り後に再登録されたエントリは更新時刻の前提条件で残す
                option = self.client.write_option(last_update_time=snapshot.update_time)
                try:
                    snapshot.reference.delete(option=option, timeout=self.timeout)
                    deleted += 1
                except gcp_exceptions.FailedPrecondition:
                    logger.info(f"IP {snapshot.id} was listed again during review, kept")
                except gcp_exceptions.GoogleAPICallError as e:
                    logger.error(f"Error deleting ip {snapshot.id} from the blacklist: {e}")
        except gcp_exceptions.GoogleAPICallError as e:
            logger.error(f"Error while iterating the blacklist: {e}")

        logger.info(f"Blacklist clean summary: {reviewed} reviewed, {deleted} deleted")
        return CleanSummary(reviewed=reviewed, deleted=deleted)
