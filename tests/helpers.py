"""
テスト用ヘルパー
"""

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response


class FakeClock:
    """
    テスト用の時計

    sleepの代わりにadvance()で時刻を進める。
    """

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(
    cookies: Optional[dict[str, str]] = None,
    headers: Optional[dict[str, str]] = None,
    path: str = "/",
) -> Request:
    """
    Cookie・ヘッダーを指定してStarletteのRequestを生成する
    """
    raw_headers: list[tuple[bytes, bytes]] = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        raw_headers.append((b"cookie", cookie_header.encode("latin-1")))
    for name, value in (headers or {}).items():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": raw_headers,
        "query_string": b"",
    }
    return Request(scope)


def set_cookie_headers(response: Response) -> list[str]:
    """レスポンスのSet-Cookieヘッダーを取得する"""
    return response.headers.getlist("set-cookie")


def cookie_value(set_cookie: str) -> str:
    """Set-Cookieヘッダーの値部分（name=value の value）を取り出す"""
    pair = set_cookie.split(";", 1)[0]
    return pair.split("=", 1)[1]
