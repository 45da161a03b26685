"""ConversationRecorder: the message trail written inside settlement transactions.

Offer, order and listing services call into this from within their own
transaction; the recorder never commits. Every append also moves the thread's
last-message pointers.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import MessageType, SystemEvent
from src.mp_common.id_generator import IdGenerator, default_generator
from src.mp_conversation.domain.models import Message, Thread
from src.mp_conversation.domain.repository import ConversationRepositoryProtocol
from src.mp_conversation.infrastructure.persistence import ConversationRepository


class ConversationRecorder:
    def __init__(
        self,
        repo: ConversationRepositoryProtocol | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        self._repo: ConversationRepositoryProtocol = repo or ConversationRepository()
        self._ids: IdGenerator = ids or default_generator()

    @property
    def repo(self) -> ConversationRepositoryProtocol:
        return self._repo

    async def thread_for(
        self,
        db: AsyncSession,
        listing_id: str,
        buyer_id: str,
        seller_id: str,
        now: datetime,
    ) -> Thread:
        return await self._repo.get_or_create_thread(
            db, self._ids.next_id(), listing_id, buyer_id, seller_id, now
        )

    async def record_text(
        self, db: AsyncSession, thread: Thread, sender_id: str, content: str, now: datetime
    ) -> Message:
        message = Message(
            id=self._ids.next_id(),
            thread_id=thread.id,
            listing_id=thread.listing_id,
            type=MessageType.TEXT.value,
            sender_id=sender_id,
            content=content,
            read_by={sender_id: now},
            created_at=now,
        )
        return await self._append(db, message)

    async def record_offer(
        self,
        db: AsyncSession,
        thread: Thread,
        sender_id: str,
        offer_id: str,
        snapshot: dict[str, Any],
        now: datetime,
    ) -> Message:
        message = Message(
            id=self._ids.next_id(),
            thread_id=thread.id,
            listing_id=thread.listing_id,
            type=MessageType.OFFER.value,
            sender_id=sender_id,
            offer_id=offer_id,
            offer_snapshot=dict(snapshot),
            read_by={sender_id: now},
            created_at=now,
        )
        return await self._append(db, message)

    async def record_event(
        self,
        db: AsyncSession,
        thread: Thread,
        event: SystemEvent,
        now: datetime,
        *,
        order_id: str | None = None,
        offer_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Message | None:
        """Append a system message.

        Order-scoped events are written at most once per (order_id, event);
        a replay returns None and leaves the thread untouched.
        """
        message = Message(
            id=self._ids.next_id(),
            thread_id=thread.id,
            listing_id=thread.listing_id,
            type=MessageType.SYSTEM.value,
            order_id=order_id,
            offer_id=offer_id,
            event=event.value,
            payload=payload or {},
            created_at=now,
        )
        if order_id is None:
            return await self._append(db, message)
        stored = await self._repo.append_event_once(db, message)
        if stored is not None:
            await self._repo.touch_thread(db, thread.id, stored.id, now)
        return stored

    async def project_offer_status(
        self, db: AsyncSession, offer_id: str, patch: dict[str, Any]
    ) -> int:
        return await self._repo.patch_offer_snapshot(db, offer_id, patch)

    async def archive_others(
        self, db: AsyncSession, listing_id: str, reason: str, except_buyer_id: str | None
    ) -> int:
        return await self._repo.archive_threads(db, listing_id, reason, except_buyer_id)

    async def _append(self, db: AsyncSession, message: Message) -> Message:
        stored = await self._repo.append_message(db, message)
        await self._repo.touch_thread(db, message.thread_id, stored.id, message.created_at)
        return stored
