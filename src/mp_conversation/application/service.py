"""ConversationApplicationService: the participant-facing message surface.

System and offer messages are written by the settlement services through
ConversationRecorder; this service only handles text messages and reads.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.errors import ForbiddenError, ListingNotFoundError, ThreadNotFoundError
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_conversation.application.schemas import (
    InboxResponse,
    MarkReadResponse,
    MessageItem,
    ThreadItem,
    ThreadMessagesResponse,
    UnreadCountResponse,
)
from src.mp_conversation.domain.models import Thread
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.infrastructure.persistence import ListingRepository

logger = logging.getLogger(__name__)


class ConversationApplicationService:
    def __init__(
        self,
        recorder: ConversationRecorder | None = None,
        listings: ListingRepositoryProtocol | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._recorder = recorder or ConversationRecorder()
        self._threads = self._recorder.repo
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._clock = clock

    async def send_message(
        self,
        db: AsyncSession,
        user_id: str,
        content: str,
        thread_id: str | None = None,
        listing_id: str | None = None,
    ) -> MessageItem:
        now = self._clock()
        try:
            if thread_id is not None:
                thread = await self._participant_thread(db, thread_id, user_id)
            else:
                listing = await self._listings.get_by_id(db, listing_id or "")
                if listing is None or listing.is_deleted:
                    raise ListingNotFoundError(listing_id or "")
                if listing.seller_id == user_id:
                    raise ForbiddenError("Sellers reply through an existing thread")
                thread = await self._recorder.thread_for(
                    db, listing.id, user_id, listing.seller_id, now
                )
            message = await self._recorder.record_text(db, thread, user_id, content, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.debug("Message %s appended to thread %s", message.id, thread.id)
        return MessageItem.from_domain(message)

    async def get_thread_messages(
        self, db: AsyncSession, user_id: str, thread_id: str
    ) -> ThreadMessagesResponse:
        thread = await self._participant_thread(db, thread_id, user_id)
        messages = await self._threads.list_messages(db, thread_id)
        return ThreadMessagesResponse(
            thread=ThreadItem.from_domain(thread),
            messages=[MessageItem.from_domain(m) for m in messages],
        )

    async def mark_thread_read(
        self, db: AsyncSession, user_id: str, thread_id: str
    ) -> MarkReadResponse:
        now = self._clock()
        try:
            await self._participant_thread(db, thread_id, user_id)
            marked = await self._threads.mark_read(db, thread_id, user_id, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return MarkReadResponse(thread_id=thread_id, marked=marked)

    async def get_inbox(self, db: AsyncSession, user_id: str, role: str) -> InboxResponse:
        entries = await self._threads.list_inbox(db, user_id, role)
        return InboxResponse(role=role, threads=[ThreadItem.from_inbox(e) for e in entries])

    async def get_unread_count(self, db: AsyncSession, user_id: str) -> UnreadCountResponse:
        """Unread messages across both buy and sell threads."""
        unread, threads = await self._threads.count_unread(db, user_id)
        return UnreadCountResponse(unread=unread, threads=threads)

    async def _participant_thread(
        self, db: AsyncSession, thread_id: str, user_id: str
    ) -> Thread:
        thread = await self._threads.get_thread(db, thread_id)
        if thread is None:
            raise ThreadNotFoundError(thread_id)
        if not thread.has_participant(user_id):
            raise ForbiddenError("Not a participant of this thread")
        return thread
