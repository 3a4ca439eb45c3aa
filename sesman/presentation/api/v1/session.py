"""現在のセッションの参照とログアウト"""

from fastapi import APIRouter, Depends, Request, Response

from sesman.core.logging import get_logger
from sesman.core.manager import Sesman
from sesman.domain.session import Session, SessionState
from sesman.presentation.api.deps import get_sesman, get_session
from sesman.presentation.schemas.session import LogoutResponse, SessionResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/", response_model=SessionResponse)
def read_session(session: Session = Depends(get_session)) -> SessionResponse:
    """
    現在のセッションの状態を返す
    """
    state = session.state
    return SessionResponse(
        state=state,
        last_accessed_at=session.last_accessed_at,
        authenticated=state == SessionState.AUTHED.value,
    )


@router.delete("/", response_model=LogoutResponse)
def logout(
    request: Request, response: Response, sesman: Sesman = Depends(get_sesman)
) -> LogoutResponse:
    """
    セッションを破棄し、セッションCookieを失効させる
    """
    sesman.destroy(request, response)
    return LogoutResponse()
