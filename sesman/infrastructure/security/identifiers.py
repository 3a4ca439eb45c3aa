"""
セッションID生成

時刻順にソート可能な不透明IDを生成する。
- 先頭4バイト: 生成時刻（秒、独自エポック起点）
- 後続16バイト: CSPRNGによるランダム値（128bit）
を base62 でエンコードし、27文字の固定長にする。
"""

import secrets
import time
from typing import Callable

from ...core.logging import get_logger
from ...domain.exceptions.base import IdentifierGenerationError

logger = get_logger(__name__)

# 2014-05-13T16:53:20Z
ID_EPOCH = 1400000000
TIMESTAMP_LENGTH = 4
PAYLOAD_LENGTH = 16
ENCODED_LENGTH = 27
MAX_ATTEMPTS = 3

BASE62_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"


def encode_base62(raw: bytes, length: int = ENCODED_LENGTH) -> str:
    """
    バイト列をbase62文字列に変換

    Args:
        raw: 変換するバイト列
        length: 出力の最小長（先頭を"0"で埋める）

    Returns:
        base62文字列
    """
    number = int.from_bytes(raw, "big")
    chars = []
    while number:
        number, remainder = divmod(number, 62)
        chars.append(BASE62_ALPHABET[remainder])
    return "".join(reversed(chars)).rjust(length, BASE62_ALPHABET[0])


def decode_base62(text: str) -> bytes:
    """base62文字列をID長のバイト列に戻す"""
    number = 0
    for char in text:
        number = number * 62 + BASE62_ALPHABET.index(char)
    return number.to_bytes(TIMESTAMP_LENGTH + PAYLOAD_LENGTH, "big")


def id_timestamp(sid: str) -> int:
    """
    セッションIDに埋め込まれた生成時刻を取得

    Returns:
        生成時刻（エポック秒）
    """
    raw = decode_base62(sid)
    return int.from_bytes(raw[:TIMESTAMP_LENGTH], "big") + ID_EPOCH


def _new_id(now: float) -> str:
    timestamp = (int(now) - ID_EPOCH) & 0xFFFFFFFF
    raw = timestamp.to_bytes(TIMESTAMP_LENGTH, "big") + secrets.token_bytes(
        PAYLOAD_LENGTH
    )
    return encode_base62(raw)


def generate_session_id(clock: Callable[[], float] = time.time) -> str:
    """
    セッションIDを生成

    乱数源の一時的な失敗は再試行する。空文字を返すことはない。

    Returns:
        27文字のbase62文字列

    Raises:
        IdentifierGenerationError: 再試行してもIDを生成できなかった場合
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            sid = _new_id(clock())
        except (OSError, NotImplementedError) as e:
            logger.warning(f"Session id generation failed (attempt {attempt}): {e}")
            continue
        if sid:
            return sid

    raise IdentifierGenerationError(
        f"unable to generate a session id after {MAX_ATTEMPTS} attempts"
    )
