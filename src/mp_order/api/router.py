"""mp_order REST API: purchase, progress and refund orders."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import CurrentUserId
from src.mp_order.application.schemas import (
    AdvanceOrderRequest,
    PurchaseRequest,
    RefundRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/purchase", status_code=201)
async def purchase_listing(
    body: PurchaseRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.orders.purchase_listing(
        db,
        user_id,
        body.listing_id,
        body.shipping_address.model_dump(),
        tax_cents=body.tax_cents,
    )
    return respond(request, data.model_dump())


@router.get("")
async def list_orders(
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    role: Literal["buyer", "seller"] = Query("buyer"),
    cursor: str | None = Query(None, description="Last order id of the previous page"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await container.orders.list_orders(db, user_id, role, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.orders.get_order(db, order_id, user_id)
    return respond(request, data.model_dump())


@router.post("/{order_id}/advance")
async def advance_order_status(
    order_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    body: AdvanceOrderRequest | None = None,
) -> ApiResponse:
    data = await container.orders.advance_order_status(
        db, order_id, user_id, target=body.target if body else None
    )
    return respond(request, data.model_dump())


@router.post("/{order_id}/refund")
async def issue_refund(
    order_id: str,
    body: RefundRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.orders.issue_refund(
        db,
        order_id,
        user_id,
        body.mode.value,
        body.reason,
        amount_cents=body.amount_cents,
    )
    return respond(request, data.model_dump(), message="Refund issued")
