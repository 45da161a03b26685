"""Domain models for mp_conversation: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Thread:
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    last_message_id: str | None = None
    last_message_at: datetime | None = None
    is_archived: bool = False
    archived_reason: str | None = None
    created_at: datetime | None = None

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


@dataclass
class Message:
    id: str
    thread_id: str
    listing_id: str
    type: str                                  # MessageType value
    sender_id: str | None = None               # None for system messages
    content: str | None = None                 # text messages
    offer_id: str | None = None
    order_id: str | None = None
    offer_snapshot: dict[str, Any] | None = None  # offer messages, status kept live
    event: str | None = None                   # SystemEvent value
    payload: dict[str, Any] | None = None
    read_by: dict[str, datetime] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class InboxThread:
    thread: Thread
    unread_count: int
