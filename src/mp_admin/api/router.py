"""Admin REST API: restricted to ADMIN_USERNAMES."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import require_admin
from src.mp_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/invariants")
async def verify_invariants(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    result = await container.admin.verify_invariants(db)
    return respond(request, result)


@router.post("/offers/expire")
async def expire_offers(
    admin: Annotated[UserModel, Depends(require_admin)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    result = await container.admin.expire_offers_now()
    return respond(request, result)
