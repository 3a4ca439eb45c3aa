"""
インメモリのセッションリポジトリ

セッションID→ノード位置のマップと、アクセス順の双方向リストを保持する。
リストは配列上のノードを整数インデックスで連結し、先頭が最新アクセス。
GCは末尾から期限切れノードを削除し、最初の有効ノードで停止する。
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from ...core.logging import get_logger
from ...domain.exceptions.base import SessionNotFoundError
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

logger = get_logger(__name__)

NIL = -1


@dataclass
class _Node:
    session: Optional[Session]
    prev: int = NIL
    next: int = NIL


class RecencyList:
    """
    整数インデックスで連結する双方向リスト

    削除されたスロットはフリーリストで再利用する。
    スレッドセーフではないため、呼び出し側でロックすること。
    """

    def __init__(self) -> None:
        self._nodes: list[_Node] = []
        self._free: list[int] = []
        self.head = NIL
        self.tail = NIL
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[Session]:
        """先頭（最新）から順にセッションを返す"""
        index = self.head
        while index != NIL:
            node = self._nodes[index]
            if node.session is not None:
                yield node.session
            index = node.next

    def get(self, index: int) -> Session:
        session = self._nodes[index].session
        if session is None:
            raise IndexError(f"slot {index} is free")
        return session

    def push_front(self, session: Session) -> int:
        """先頭に追加し、ノードのインデックスを返す"""
        if self._free:
            index = self._free.pop()
            self._nodes[index] = _Node(session=session)
        else:
            index = len(self._nodes)
            self._nodes.append(_Node(session=session))

        self._link_front(index)
        self._size += 1
        return index

    def move_to_front(self, index: int) -> None:
        if index == self.head:
            return
        self._unlink(index)
        self._link_front(index)

    def remove(self, index: int) -> Session:
        session = self.get(index)
        self._unlink(index)
        self._nodes[index] = _Node(session=None)
        self._free.append(index)
        self._size -= 1
        return session

    def clear(self) -> None:
        self._nodes.clear()
        self._free.clear()
        self.head = NIL
        self.tail = NIL
        self._size = 0

    def _link_front(self, index: int) -> None:
        node = self._nodes[index]
        node.prev = NIL
        node.next = self.head
        if self.head != NIL:
            self._nodes[self.head].prev = index
        self.head = index
        if self.tail == NIL:
            self.tail = index

    def _unlink(self, index: int) -> None:
        node = self._nodes[index]
        if node.prev != NIL:
            self._nodes[node.prev].next = node.next
        else:
            self.head = node.next
        if node.next != NIL:
            self._nodes[node.next].prev = node.prev
        else:
            self.tail = node.prev
        node.prev = NIL
        node.next = NIL


class MemorySessionRepository(SessionRepository):
    """
    インメモリのセッションリポジトリ

    マップとリストは単一のロックで同期する。
    返却するSessionはストア内のレコードそのもの。
    """

    name = "Memory"

    def __init__(
        self,
        clock: Clock = time.time,
        quarantine_period: int = DEFAULT_QUARANTINE_PERIOD,
        dns_verifier: Optional[DNSVerifier] = None,
    ) -> None:
        super().__init__(clock=clock, quarantine_period=quarantine_period)
        self.dns_verifier = dns_verifier or verify_reverse_dns
        self._lock = threading.Lock()
        self._index: dict[str, int] = {}
        self._recency = RecencyList()
        self._blacklist: dict[str, dict[str, Any]] = {}

    def _create_locked(self, sid: str) -> Session:
        previous = self._index.pop(sid, None)
        if previous is not None:
            self._recency.remove(previous)

        session = self.new_record(sid)
        self._index[sid] = self._recency.push_front(session)
        logger.debug(f"Session created: {sid}")
        return session

    def _touch_locked(self, index: int) -> Session:
        session = self._recency.get(index)
        session.time_accessed = max(session.time_accessed, self.now())
        self._recency.move_to_front(index)
        return session

    def _require_locked(self, sid: str) -> Session:
        index = self._index.get(sid)
        if index is None:
            raise SessionNotFoundError(sid)
        return self._touch_locked(index)

    def new_session(self, sid: str) -> Session:
        with self._lock:
            return self._create_locked(sid)

    def find_or_create(self, sid: str) -> Session:
        with self._lock:
            index = self._index.get(sid)
            if index is not None:
                if not self.is_expired(self._recency.get(index).time_accessed):
                    return self._touch_locked(index)
                logger.info(f"Session expired, recreating: {sid}")
            return self._create_locked(sid)

    def exists(self, sid: str) -> bool:
        with self._lock:
            index = self._index.get(sid)
            if index is None:
                return False
            return not self.is_expired(self._recency.get(index).time_accessed)

    def destroy_sid(self, sid: str) -> None:
        with self._lock:
            index = self._index.pop(sid, None)
            if index is not None:
                self._recency.remove(index)
                logger.info(f"Session deleted: {sid}")

    def session_gc(self, maxlifetime: int) -> int:
        count = 0
        with self._lock:
            now = self.now()
            while self._recency.tail != NIL:
                session = self._recency.get(self._recency.tail)
                if session.time_accessed + maxlifetime >= now:
                    break
                self._recency.remove(self._recency.tail)
                del self._index[session.sid]
                count += 1

        if count > 0:
            logger.info(f"Cleaned up {count} expired sessions")
        return count

    def update_time_accessed(self, sid: str) -> None:
        with self._lock:
            index = self._index.get(sid)
            if index is not None:
                self._touch_locked(index)

    def update_session_state(self, sid: str, state: str) -> None:
        with self._lock:
            self._require_locked(sid).value[AttrKey.STATE] = state

    def update_code_verifier(self, sid: str, verifier: str) -> None:
        with self._lock:
            self._require_locked(sid).value[AttrKey.CODE_VERIFIER] = verifier

    def save_code_challenge_and_method(
        self, sid: str, challenge: str, method: str, code: str, redirect_uri: str
    ) -> None:
        with self._lock:
            session = self._require_locked(sid)
            session.value.update(
                {
                    AttrKey.CODE_CHALLENGER: challenge,
                    AttrKey.CODE_CHALLENGER_METHOD: method,
                    AttrKey.AUTH_CODE: code,
                    AttrKey.CODE_EXPIRE: self.now() + AUTH_CODE_TTL,
                    AttrKey.REDIRECT_URI: redirect_uri,
                    AttrKey.STATE: SessionState.IN_AUTH.value,
                }
            )

    def get_auth_code(self, sid: str) -> dict[str, str]:
        with self._lock:
            index = self._index.get(sid)
            if index is None:
                return {}
            session = self._touch_locked(index)
            return auth_code_view(session.value, self.now())

    def update_auth_session(self, sid: str, at: str, rt: str, uid: str) -> None:
        with self._lock:
            session = self._require_locked(sid)
            session.value.update(
                {
                    AttrKey.ACCESS_TOKEN: at,
                    AttrKey.REFRESH_TOKEN: rt,
                    AttrKey.USER_ID: uid,
                    AttrKey.STATE: SessionState.AUTHED.value,
                }
            )

    def set_attribute(self, sid: str, key: str, value: Any) -> None:
        with self._lock:
            self._require_locked(sid).value[key] = value

    def delete_attribute(self, sid: str, key: str) -> None:
        with self._lock:
            self._require_locked(sid).value.pop(key, None)

    def active_sessions(self) -> int:
        with self._lock:
            return sum(
                1 for session in self._recency if not self.is_expired(session.time_accessed)
            )

    def flush(self) -> None:
        with self._lock:
            self._index.clear()
            self._recency.clear()
        logger.info("All sessions flushed")

    def blacklisting(self, ip: str, path: str, details: Any) -> None:
        with self._lock:
            self._blacklist[ip] = {
                "created": self.now_datetime(),
                "requestURI": path,
                "details": details,
            }
        logger.info(f"IP {ip} listed in the blacklist")

    def is_ip_exist_in_bl(self, ip: str) -> bool:
        with self._lock:
            return ip in self._blacklist

    def bl_clean(self) -> CleanSummary:
        cutoff = self.quarantine_cutoff()
        with self._lock:
            candidates = [
                ip for ip, entry in self._blacklist.items() if entry["created"] < cutoff
            ]

        # DNS解決はロック外で行う
        deleted = 0
        for ip in candidates:
            if not self.dns_verifier(ip):
                continue
            with self._lock:
                # 検証中に再登録されたエントリは残す
                entry = self._blacklist.get(ip)
                if entry is None or entry["created"] >= cutoff:
                    continue
                del self._blacklist[ip]
            deleted += 1

        logger.info(
            f"Blacklist clean summary: {len(candidates)} reviewed, {deleted} deleted"
        )
        return CleanSummary(reviewed=len(candidates), deleted=deleted)
