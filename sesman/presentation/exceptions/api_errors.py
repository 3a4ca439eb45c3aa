"""
Presentation層のAPIエラークラス

FastAPI/Pydanticに依存するAPIエラークラス。
ドメインエラーをHTTPレスポンスに変換する。
"""

from typing import Any, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel

from ...domain.exceptions.base import (
    BackendError,
    BadRequestError,
    DomainError,
    NotFoundError,
    UnauthorizedError,
)


class ErrorResponse(BaseModel):
    """
    標準エラーレスポンス

    Attributes:
        status: ステータス（常に"error"）
        code: エラーコード
        message: エラーメッセージ
        details: エラーの詳細情報（オプション）
    """

    status: str = "error"
    code: str
    message: str
    details: Optional[list[dict[str, Any]] | dict[str, Any]] = None


class APIError(HTTPException):
    """
    API エラーの基底クラス

    FastAPIのHTTPExceptionを継承し、ドメインエラーを
    HTTPレスポンスに変換する。

    Attributes:
        status_code: HTTPステータスコード
        error_code: エラーコード
        error_message: エラーメッセージ
        details: エラーの詳細情報
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_server_error"
    error_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[list[dict[str, Any]] | dict[str, Any]] = None,
    ) -> None:
        self.error_message = message or self.error_message
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.error_message)

    def to_response(self) -> ErrorResponse:
        """標準エラーレスポンス形式に変換"""
        return ErrorResponse(
            code=self.error_code, message=self.error_message, details=self.details
        )


# 継承元を順に辿って最初に一致したステータスコードを使う
STATUS_MAP: dict[type, int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BadRequestError: status.HTTP_400_BAD_REQUEST,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    BackendError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def domain_error_to_api_error(domain_error: DomainError) -> APIError:
    """
    ドメインエラーをAPIエラーに変換

    エラーの種類に応じて適切なHTTPステータスコードを設定する。
    バックエンド障害の詳細（失敗した操作・セッションID）はレスポンスに含めない。

    Args:
        domain_error: ドメイン層のエラー

    Returns:
        APIError: API層のエラー

    Examples:
        >>> from sesman.domain.exceptions.base import UnknownSessionIDError
        >>> api_err = domain_error_to_api_error(UnknownSessionIDError())
        >>> api_err.status_code
        401
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for cls in type(domain_error).__mro__:
        if cls in STATUS_MAP:
            status_code = STATUS_MAP[cls]
            break

    if isinstance(domain_error, BackendError):
        message = "Session store failure"
        details = None
    else:
        message = domain_error.message
        details = domain_error.details

    api_error = APIError(message=message, details=details)
    api_error.status_code = status_code
    api_error.error_code = domain_error.code
    api_error.error_message = message

    return api_error
