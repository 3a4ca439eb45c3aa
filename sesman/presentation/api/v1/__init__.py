from fastapi import APIRouter

from sesman.presentation.api.v1 import session

router = APIRouter()
router.include_router(session.router, prefix="/session", tags=["session"])
