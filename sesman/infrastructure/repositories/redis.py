"""
Redisのセッションリポジトリ

キー構成:
    <prefix>session:<sid>   ハッシュ（Sid / TimeAccessed / Value.<key>）
    <prefix>blacklist:<ip>  ハッシュ（created / requestURI / details）

属性値はJSON形式で保存し、基本型 (str, int, float, bool, list, dict) のみサポートする。
複数フィールドの更新はWATCH + MULTIのトランザクションで適用する。
"""

import json
import time
from typing import TYPE_CHECKING, Any, Optional

import redis

from ...core.logging import get_logger
from ...domain.exceptions.base import BackendError, SessionNotFoundError
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

VALUE_PREFIX = "Value."


def encode_fields(value: dict[str, Any]) -> dict[str, str]:
    """属性マップをハッシュのフィールドに変換"""
    return {f"{VALUE_PREFIX}{key}": json.dumps(v) for key, v in value.items()}


def decode_fields(
    data: dict[str, str], repository: Optional[SessionRepository] = None
) -> Session:
    """ハッシュのフィールドからセッションを復元"""
    value: dict[str, Any] = {}
    for field, raw in data.items():
        if not field.startswith(VALUE_PREFIX):
            continue
        try:
            value[field[len(VALUE_PREFIX):]] = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Error decoding session field {field}: {e}")
    return Session(
        sid=data.get("Sid", ""),
        time_accessed=int(float(data.get("TimeAccessed", 0))),
        value=value,
        repository=repository,
    )


class RedisSessionRepository(SessionRepository):
    """
    Redisのセッションリポジトリ

    maxlifetimeが設定されている場合、各キーに同じ秒数のTTLを付与する。
    """

    name = "Redis"

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "sesman:",
        clock: Clock = time.time,
        quarantine_period: int = DEFAULT_QUARANTINE_PERIOD,
        dns_verifier: Optional[DNSVerifier] = None,
    ) -> None:
        super().__init__(clock=clock, quarantine_period=quarantine_period)
        self.client = client
        self.key_prefix = key_prefix
        self.dns_verifier = dns_verifier or verify_reverse_dns

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RedisSessionRepository":
        client = redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True,
            socket_timeout=settings.BACKEND_TIMEOUT,
        )
        logger.info(
            f"Redis session store: {settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
        )
        return cls(
            client=client,
            key_prefix=settings.REDIS_KEY_PREFIX,
            quarantine_period=settings.BL_QUARANTINE_PERIOD,
        )

    def session_key(self, sid: str) -> str:
        return f"{self.key_prefix}session:{sid}"

    def blacklist_key(self, ip: str) -> str:
        return f"{self.key_prefix}blacklist:{ip}"

    def _write(self, sid: str, mapping: dict[str, Any], operation: str) -> None:
        """既存セッションのフィールドをアトミックに更新する"""
        key = self.session_key(sid)
        fields = encode_fields(mapping)
        fields["TimeAccessed"] = str(self.now())

        def apply(pipe: Any) -> None:
            if not pipe.exists(key):
                raise SessionNotFoundError(sid)
            pipe.multi()
            pipe.hset(key, mapping=fields)
            if self.maxlifetime > 0:
                pipe.expire(key, self.maxlifetime)

        try:
            self.client.transaction(apply, key)
        except redis.RedisError as e:
            raise BackendError(operation, sid, e) from e

    def new_session(self, sid: str) -> Session:
        session = self.new_record(sid)
        key = self.session_key(sid)
        fields = {
            "Sid": sid,
            "TimeAccessed": str(session.time_accessed),
            **encode_fields(session.value),
        }
        try:
            pipe = self.client.pipeline()
            pipe.delete(key)
            pipe.hset(key, mapping=fields)
            if self.maxlifetime > 0:
                pipe.expire(key, self.maxlifetime)
            pipe.execute()
        except redis.RedisError as e:
            raise BackendError("new_session", sid, e) from e
        logger.debug(f"Session created: {sid}")
        return session

    def find_or_create(self, sid: str) -> Session:
        try:
            data = self.client.hgetall(self.session_key(sid))
        except redis.RedisError as e:
            raise BackendError("find_or_create", sid, e) from e

        if not data:
            return self.new_session(sid)

        session = decode_fields(data, repository=self)
        if self.is_expired(session.time_accessed):
            logger.info(f"Session expired, recreating: {sid}")
            return self.new_session(sid)

        self.update_time_accessed(sid)
        session.time_accessed = max(session.time_accessed, self.now())
        return session

    def exists(self, sid: str) -> bool:
        try:
            raw = self.client.hget(self.session_key(sid), "TimeAccessed")
        except redis.RedisError as e:
            logger.warning(f"Failed to read session {sid}: {e}")
            return False
        if raw is None:
            return False
        return not self.is_expired(int(float(raw)))

    def destroy_sid(self, sid: str) -> None:
        try:
            self.client.delete(self.session_key(sid))
        except redis.RedisError as e:
            raise BackendError("destroy_sid", sid, e) from e
        logger.info(f"Session deleted: {sid}")

    def session_gc(self, maxlifetime: int) -> int:
        cutoff = self.now() - maxlifetime
        count = 0
        try:
            for key in self.client.scan_iter(match=self.session_key("*")):
                raw = self.client.hget(key, "TimeAccessed")
                if raw is None or int(float(raw)) >= cutoff:
                    continue
                count += self.client.delete(key)
        except redis.RedisError as e:
            logger.error(f"Error while cleaning up expired sessions: {e}")

        if count > 0:
            logger.info(f"Cleaned up {count} expired sessions")
        return count

    def update_time_accessed(self, sid: str) -> None:
        key = self.session_key(sid)

        def apply(pipe: Any) -> None:
            if not pipe.exists(key):
                return
            pipe.multi()
            pipe.hset(key, "TimeAccessed", str(self.now()))
            if self.maxlifetime > 0:
                pipe.expire(key, self.maxlifetime)

        try:
            self.client.transaction(apply, key)
        except redis.RedisError as e:
            raise BackendError("update_time_accessed", sid, e) from e

    def update_session_state(self, sid: str, state: str) -> None:
        self._write(sid, {AttrKey.STATE: state}, "update_session_state")

    def update_code_verifier(self, sid: str, verifier: str) -> None:
        self._write(sid, {AttrKey.CODE_VERIFIER: verifier}, "update_code_verifier")

    def save_code_challenge_and_method(
        self, sid: str, challenge: str, method: str, code: str, redirect_uri: str
    ) -> None:
        self._write(
            sid,
            {
                AttrKey.CODE_CHALLENGER: challenge,
                AttrKey.CODE_CHALLENGER_METHOD: method,
                AttrKey.AUTH_CODE: code,
                AttrKey.CODE_EXPIRE: self.now() + AUTH_CODE_TTL,
                AttrKey.REDIRECT_URI: redirect_uri,
                AttrKey.STATE: SessionState.IN_AUTH.value,
            },
            "save_code_challenge_and_method",
        )

    def get_auth_code(self, sid: str) -> dict[str, str]:
        try:
            data = self.client.hgetall(self.session_key(sid))
            if not data:
                return {}
            self.update_time_accessed(sid)
        except (redis.RedisError, BackendError) as e:
            logger.warning(f"Failed to read the auth code of session {sid}: {e}")
            return {}
        return auth_code_view(decode_fields(data).value, self.now())

    def update_auth_session(self, sid: str, at: str, rt: str, uid: str) -> None:
        self._write(
            sid,
            {
                AttrKey.ACCESS_TOKEN: at,
                AttrKey.REFRESH_TOKEN: rt,
                AttrKey.USER_ID: uid,
                AttrKey.STATE: SessionState.AUTHED.value,
            },
            "update_auth_session",
        )

    def set_attribute(self, sid: str, key: str, value: Any) -> None:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise BackendError("set_attribute", sid, f"unserializable value for {key}: {e}") from e
        self._write(sid, {key: value}, "set_attribute")

    def delete_attribute(self, sid: str, key: str) -> None:
        name = self.session_key(sid)
        field = f"{VALUE_PREFIX}{key}"

        def apply(pipe: Any) -> None:
            if not pipe.exists(name):
                raise SessionNotFoundError(sid)
            pipe.multi()
            pipe.hdel(name, field)
            pipe.hset(name, "TimeAccessed", str(self.now()))
            if self.maxlifetime > 0:
                pipe.expire(name, self.maxlifetime)

        try:
            self.client.transaction(apply, name)
        except redis.RedisError as e:
            raise BackendError("delete_attribute", sid, e) from e

    def active_sessions(self) -> int:
        count = 0
        try:
            for key in self.client.scan_iter(match=self.session_key("*")):
                raw = self.client.hget(key, "TimeAccessed")
                if raw is not None and not self.is_expired(int(float(raw))):
                    count += 1
        except redis.RedisError as e:
            logger.error(f"Error while counting active sessions after {count}: {e}")
        return count

    def flush(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=self.session_key("*")))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            raise BackendError("flush", None, e) from e
        logger.info("All sessions flushed")

    def blacklisting(self, ip: str, path: str, details: Any) -> None:
        try:
            self.client.hset(
                self.blacklist_key(ip),
                mapping={
                    "created": str(self.clock()),
                    "requestURI": path,
                    "details": json.dumps(details),
                },
            )
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"Error updating ip {ip} in the blacklist: {e}")
            return
        logger.info(f"IP {ip} listed in the blacklist")

    def is_ip_exist_in_bl(self, ip: str) -> bool:
        try:
            return bool(self.client.exists(self.blacklist_key(ip)))
        except redis.RedisError as e:
            logger.warning(f"Failed to read blacklist entry {ip}: {e}")
            return False

    def _delete_blacklisted(self, key: str, cutoff: float) -> int:
        """隔離期間を過ぎたままのエントリのみ削除する（検証中の再登録は残す）"""

        def apply(pipe: Any) -> int:
            created = pipe.hget(key, "created")
            if created is None or float(created) >= cutoff:
                return 0
            pipe.multi()
            pipe.delete(key)
            return 1

        return self.client.transaction(apply, key, value_from_callable=True)

    def bl_clean(self) -> CleanSummary:
        cutoff = self.quarantine_cutoff().timestamp()
        prefix = self.blacklist_key("")

        reviewed = 0
        deleted = 0
        try:
            for key in self.client.scan_iter(match=self.blacklist_key("*")):
                created = self.client.hget(key, "created")
                if created is None or float(created) >= cutoff:
                    continue
                reviewed += 1
                ip = key[len(prefix):]
                if self.dns_verifier(ip):
                    deleted += self._delete_blacklisted(key, cutoff)
        except redis.RedisError as e:
            logger.error(f"Error while iterating the blacklist: {e}")

        logger.info(f"Blacklist clean summary: {reviewed} reviewed, {deleted} deleted")
        return CleanSummary(reviewed=reviewed, deleted=deleted)
