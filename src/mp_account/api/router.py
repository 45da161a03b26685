"""Wallet endpoints: balance, top-up, cash-out and the ledger. All require a bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_account.application.schemas import DepositRequest, WithdrawRequest
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import CurrentUserId

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/balance")
async def get_balance(
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.accounts.get_balance(db, user_id)
    return respond(request, data.model_dump())


@router.post("/deposit")
async def deposit(
    body: DepositRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.accounts.deposit(db, user_id, body.amount_cents)
    return respond(request, data.model_dump())


@router.post("/withdraw")
async def withdraw(
    body: WithdrawRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.accounts.withdraw(db, user_id, body.amount_cents)
    return respond(request, data.model_dump())


@router.get("/ledger")
async def list_ledger(
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by LedgerEntryType"),
    reference_id: str | None = Query(None, description="Only movements of this offer or order"),
) -> ApiResponse:
    data = await container.accounts.list_ledger(
        db, user_id, cursor, limit, entry_type, reference_id
    )
    return respond(request, data.model_dump())
