"""ConversationRepository Protocol: threads, append-only messages, read receipts."""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_conversation.domain.models import InboxThread, Message, Thread


class ConversationRepositoryProtocol(Protocol):
    async def get_or_create_thread(
        self,
        db: AsyncSession,
        thread_id: str,
        listing_id: str,
        buyer_id: str,
        seller_id: str,
        now: datetime,
    ) -> Thread:
        """Return the thread for the (listing, buyer, seller) triple, creating it with `thread_id`."""
        ...

    async def get_thread(self, db: AsyncSession, thread_id: str) -> Thread | None: ...

    async def append_message(self, db: AsyncSession, message: Message) -> Message: ...

    async def append_event_once(self, db: AsyncSession, message: Message) -> Message | None:
        """Insert a system message unless one with the same (order_id, event) exists."""
        ...

    async def patch_offer_snapshot(
        self, db: AsyncSession, offer_id: str, patch: dict[str, Any]
    ) -> int: ...

    async def touch_thread(
        self, db: AsyncSession, thread_id: str, message_id: str, at: datetime
    ) -> None: ...

    async def archive_threads(
        self,
        db: AsyncSession,
        listing_id: str,
        reason: str,
        except_buyer_id: str | None,
    ) -> int: ...

    async def list_messages(self, db: AsyncSession, thread_id: str) -> list[Message]: ...

    async def mark_read(
        self, db: AsyncSession, thread_id: str, user_id: str, now: datetime
    ) -> int: ...

    async def list_inbox(
        self, db: AsyncSession, user_id: str, role: str
    ) -> list[InboxThread]: ...

    async def count_unread(self, db: AsyncSession, user_id: str) -> tuple[int, int]:
        """(unread messages, threads with any) across every thread the user is party to."""
        ...
