"""mp_offer REST API: offer creation and responses, all require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import CurrentUserId
from src.mp_offer.application.schemas import (
    AcceptOfferRequest,
    CreateBroadcastOfferRequest,
    CreateBuyerOfferRequest,
    CreateSellerPrivateOfferRequest,
)

router = APIRouter(prefix="/offers", tags=["offers"])


@router.post("", status_code=201)
async def create_buyer_offer(
    body: CreateBuyerOfferRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.create_buyer_offer(
        db,
        user_id,
        body.listing_id,
        body.amount_cents,
        body.shipping_address.model_dump(),
        tax_cents=body.tax_cents,
    )
    return respond(request, data.model_dump())


@router.post("/seller-private", status_code=201)
async def create_seller_private_offer(
    body: CreateSellerPrivateOfferRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.create_seller_private_offer(
        db, user_id, body.listing_id, body.buyer_id, body.amount_cents
    )
    return respond(request, data.model_dump())


@router.post("/broadcast", status_code=201)
async def create_broadcast_offers(
    body: CreateBroadcastOfferRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.create_broadcast_offers(
        db, user_id, body.listing_id, body.amount_cents
    )
    return respond(request, data.model_dump())


@router.get("/listings/{listing_id}/broadcast/status")
async def get_broadcast_status(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.get_broadcast_status(db, listing_id, user_id)
    return respond(request, data.model_dump())


@router.get("/listings/{listing_id}/active-seller-offer")
async def get_active_seller_offer(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.get_active_seller_offer(db, listing_id, user_id)
    return respond(request, data.model_dump())


@router.get("/{offer_id}")
async def get_offer(
    offer_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.get_offer(db, offer_id, user_id)
    return respond(request, data.model_dump())


@router.post("/{offer_id}/accept")
async def accept_offer(
    offer_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    body: AcceptOfferRequest | None = None,
) -> ApiResponse:
    checkout = body or AcceptOfferRequest()
    data = await container.offers.accept_offer(
        db,
        offer_id,
        user_id,
        shipping_address=(
            checkout.shipping_address.model_dump() if checkout.shipping_address else None
        ),
        payment_method=checkout.payment_method,
    )
    return respond(request, data.model_dump(), message="Offer accepted")


@router.post("/{offer_id}/decline")
async def decline_offer(
    offer_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.offers.decline_offer(db, offer_id, user_id)
    return respond(request, data.model_dump(), message="Offer declined")
