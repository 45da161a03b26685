"""Pydantic schemas for the conversation API."""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from src.mp_conversation.domain.models import InboxThread, Message, Thread


class SendMessageRequest(BaseModel):
    thread_id: str | None = None
    listing_id: str | None = Field(None, description="Start or reuse the caller's buy thread")
    content: str = Field(..., min_length=1, max_length=2000)

    @model_validator(mode="after")
    def one_target(self) -> "SendMessageRequest":
        if (self.thread_id is None) == (self.listing_id is None):
            raise ValueError("Exactly one of thread_id or listing_id is required")
        return self


class MessageItem(BaseModel):
    id: str
    thread_id: str
    type: str
    sender_id: str | None
    content: str | None
    offer_id: str | None
    order_id: str | None
    offer_snapshot: dict[str, Any] | None
    event: str | None
    payload: dict[str, Any] | None
    read_by: dict[str, str]
    created_at: str

    @classmethod
    def from_domain(cls, m: Message) -> "MessageItem":
        return cls(
            id=m.id,
            thread_id=m.thread_id,
            type=m.type,
            sender_id=m.sender_id,
            content=m.content,
            offer_id=m.offer_id,
            order_id=m.order_id,
            offer_snapshot=m.offer_snapshot,
            event=m.event,
            payload=m.payload,
            read_by={uid: at.isoformat() for uid, at in m.read_by.items()},
            created_at=m.created_at.isoformat() if m.created_at else "",
        )


class ThreadItem(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    last_message_id: str | None
    last_message_at: str | None
    is_archived: bool
    archived_reason: str | None
    unread_count: int = 0

    @classmethod
    def from_domain(cls, t: Thread, unread_count: int = 0) -> "ThreadItem":
        return cls(
            id=t.id,
            listing_id=t.listing_id,
            buyer_id=t.buyer_id,
            seller_id=t.seller_id,
            last_message_id=t.last_message_id,
            last_message_at=t.last_message_at.isoformat() if t.last_message_at else None,
            is_archived=t.is_archived,
            archived_reason=t.archived_reason,
            unread_count=unread_count,
        )

    @classmethod
    def from_inbox(cls, entry: InboxThread) -> "ThreadItem":
        return cls.from_domain(entry.thread, entry.unread_count)


class ThreadMessagesResponse(BaseModel):
    thread: ThreadItem
    messages: list[MessageItem]


class InboxResponse(BaseModel):
    role: str
    threads: list[ThreadItem]


class MarkReadResponse(BaseModel):
    thread_id: str
    marked: int


class UnreadCountResponse(BaseModel):
    unread: int
    threads: int
