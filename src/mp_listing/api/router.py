"""mp_listing REST API: listing lifecycle and favorites."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import CurrentUserId
from src.mp_listing.application.schemas import CreateListingRequest, PriceDropRequest

router = APIRouter(prefix="/listings", tags=["listings"])


@router.post("", status_code=201)
async def create_listing(
    body: CreateListingRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.create_listing(db, user_id, body)
    return respond(request, data.model_dump())


@router.get("/{listing_id}")
async def get_listing(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.get_listing(db, listing_id)
    return respond(request, data.model_dump())


@router.post("/{listing_id}/price-drop")
async def price_drop_listing(
    listing_id: str,
    body: PriceDropRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.price_drop_listing(
        db, listing_id, user_id, body.new_price_cents
    )
    return respond(request, data.model_dump())


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.delete_listing(db, listing_id, user_id)
    return respond(request, data.model_dump())


@router.post("/{listing_id}/favorite")
async def favorite_listing(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.favorite_listing(db, listing_id, user_id)
    return respond(request, data.model_dump())


@router.delete("/{listing_id}/favorite")
async def unfavorite_listing(
    listing_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.listings.unfavorite_listing(db, listing_id, user_id)
    return respond(request, data.model_dump())
