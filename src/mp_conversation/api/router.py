"""mp_conversation REST API: inbox, thread messages, read receipts."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_conversation.application.schemas import SendMessageRequest
from src.mp_gateway.auth.dependencies import CurrentUserId

router = APIRouter(prefix="/threads", tags=["conversation"])


@router.get("")
async def get_inbox(
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
    role: Literal["buyer", "seller"] = Query("buyer", description="Buy threads or sell threads"),
) -> ApiResponse:
    data = await container.conversations.get_inbox(db, user_id, role)
    return respond(request, data.model_dump())


@router.get("/unread-count")
async def get_unread_count(
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.conversations.get_unread_count(db, user_id)
    return respond(request, data.model_dump())


@router.post("/messages", status_code=201)
async def send_message(
    body: SendMessageRequest,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.conversations.send_message(
        db,
        user_id,
        body.content,
        thread_id=body.thread_id,
        listing_id=body.listing_id,
    )
    return respond(request, data.model_dump())


@router.get("/{thread_id}/messages")
async def get_thread_messages(
    thread_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.conversations.get_thread_messages(
        db, user_id, thread_id
    )
    return respond(request, data.model_dump())


@router.post("/{thread_id}/read")
async def mark_thread_read(
    thread_id: str,
    user_id: CurrentUserId,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
    request: Request,
) -> ApiResponse:
    data = await container.conversations.mark_thread_read(
        db, user_id, thread_id
    )
    return respond(request, data.model_dump())
