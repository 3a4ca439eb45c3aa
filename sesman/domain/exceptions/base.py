"""
ドメイン層の例外クラス

セッション管理で発生するエラーを表現する純粋なPython例外。
フレームワークに依存しない。
"""

from typing import Any, Optional


class DomainError(Exception):
    """
    ドメイン層のベース例外

    Attributes:
        message: エラーメッセージ
        code: エラーコード（識別子）
        details: エラーの詳細情報（オプション）
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            message: エラーメッセージ
            code: エラーコード
            details: エラーの詳細情報（オプション）
        """
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)


class NotFoundError(DomainError):
    """リソースが見つからない場合のエラー"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="not_found", details=details)


class BadRequestError(DomainError):
    """不正なリクエストエラー"""

    def __init__(
        self,
        message: str = "Bad request",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="bad_request", details=details)


class UnauthorizedError(DomainError):
    """認証エラー"""

    def __init__(
        self,
        message: str = "Authentication required",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="unauthorized", details=details)


class ValidationError(BadRequestError):
    """バリデーションエラー"""

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[dict[str, Any] | list[dict[str, Any]]] = None,
    ) -> None:
        """
        Args:
            message: エラーメッセージ
            details: エラーの詳細情報（オプション）
                    リストまたは辞書形式で複数のバリデーションエラーを含められる
        """
        super().__init__(message=message, details=None)
        self.code = "validation_error"
        self.details = details


class UnknownSessionIDError(UnauthorizedError):
    """セッションIDが必要な操作でCookieが無い、または値が空の場合のエラー"""

    def __init__(self, message: str = "unknown session id") -> None:
        super().__init__(message=message)
        self.code = "unknown_session_id"


class InvalidSessionIDError(UnauthorizedError):
    """Cookieのセッションがバックエンドに存在しない場合のエラー"""

    def __init__(self, message: str = "invalid session id") -> None:
        super().__init__(message=message)
        self.code = "invalid_session_id"


class SessionNotFoundError(NotFoundError):
    """属性の書き込み対象セッションが存在しない場合のエラー"""

    def __init__(self, sid: str) -> None:
        super().__init__(message=f"session {sid} not found", details={"sid": sid})
        self.code = "session_not_found"
        self.sid = sid


class MissingSessionStateError(BadRequestError):
    """X-Session-Stateヘッダーが空の場合のエラー"""

    def __init__(
        self,
        message: str = "missing value for the new state in the request header x-session-state",
    ) -> None:
        super().__init__(message=message)
        self.code = "missing_session_state"


class UnknownProviderError(DomainError):
    """登録されていないバックエンドが指定された場合のエラー"""

    def __init__(self, provider: Any) -> None:
        super().__init__(
            message=f"Sesman: unknown session store type {provider!r}",
            code="unknown_provider",
            details={"provider": str(provider)},
        )


class InvalidConfigurationError(DomainError):
    """セッションマネージャーの設定が不足・不正な場合のエラー"""

    def __init__(
        self,
        message: str = "Sesman: Missing or invalid Session Manager Configuration",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="invalid_configuration", details=details)


class BackendError(DomainError):
    """
    永続化層から伝播したエラー

    失敗した操作名とセッションIDを保持する。

    Attributes:
        operation: 失敗したバックエンド操作
        sid: 対象のセッションID（またはIPアドレス）
    """

    def __init__(
        self, operation: str, sid: Optional[str], reason: Any = None
    ) -> None:
        message = f"{operation} failed for session id {sid}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="backend_failure",
            details={"operation": operation, "sid": sid},
        )
        self.operation = operation
        self.sid = sid


class ProgrammerError(Exception):
    """
    プログラミングエラー

    DomainErrorを継承しないため、例外ハンドラーで捕捉されずプロセスを停止させる。
    """


class ProviderRegistrationError(ProgrammerError):
    """バックエンドの重複登録・None登録"""


class IdentifierGenerationError(ProgrammerError):
    """セッションIDを生成できなかった"""
