"""ConversationRepository: raw SQL persistence for threads and messages.

Messages are append-only. The only in-place mutation is the offer snapshot
status patch, and read receipts live in their own table.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import InternalError
from src.mp_common.jsonb import from_json, to_json
from src.mp_conversation.domain.models import InboxThread, Message, Thread

_THREAD_COLUMNS = """
    id, listing_id, buyer_id, seller_id, last_message_id, last_message_at,
    is_archived, archived_reason, created_at
"""

_MESSAGE_COLUMNS = """
    id, thread_id, listing_id, type, sender_id, content, offer_id, order_id,
    offer_snapshot, event, payload, created_at
"""

_GET_OR_CREATE_THREAD_SQL = text(f"""
    INSERT INTO threads (id, listing_id, buyer_id, seller_id, last_message_at)
    VALUES (:id, :listing_id, :buyer_id, :seller_id, :now)
    ON CONFLICT (listing_id, buyer_id, seller_id) DO UPDATE
        SET updated_at = NOW()
    RETURNING {_THREAD_COLUMNS}
""")

_GET_THREAD_SQL = text(f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id = :id")

_INSERT_MESSAGE_SQL = text(f"""
    INSERT INTO messages (id, thread_id, listing_id, type, sender_id, content,
        offer_id, order_id, offer_snapshot, event, payload, created_at)
    VALUES (:id, :thread_id, :listing_id, :type, :sender_id, :content,
        :offer_id, :order_id, CAST(:offer_snapshot AS JSONB), :event,
        CAST(:payload AS JSONB), :created_at)
    RETURNING {_MESSAGE_COLUMNS}
""")

_INSERT_EVENT_ONCE_SQL = text(f"""
    INSERT INTO messages (id, thread_id, listing_id, type, sender_id, content,
        offer_id, order_id, offer_snapshot, event, payload, created_at)
    VALUES (:id, :thread_id, :listing_id, :type, :sender_id, :content,
        :offer_id, :order_id, CAST(:offer_snapshot AS JSONB), :event,
        CAST(:payload AS JSONB), :created_at)
    ON CONFLICT (order_id, event) WHERE order_id IS NOT NULL AND event IS NOT NULL
    DO NOTHING
    RETURNING {_MESSAGE_COLUMNS}
""")

_INSERT_READ_SQL = text("""
    INSERT INTO message_reads (message_id, user_id, read_at)
    VALUES (:message_id, :user_id, :read_at)
    ON CONFLICT (message_id, user_id) DO NOTHING
""")

_PATCH_SNAPSHOT_SQL = text("""
    UPDATE messages
    SET offer_snapshot = offer_snapshot || CAST(:patch AS JSONB)
    WHERE offer_id = :offer_id AND type = 'offer'
""")

_TOUCH_THREAD_SQL = text("""
    UPDATE threads
    SET last_message_id = :message_id, last_message_at = :at, updated_at = NOW()
    WHERE id = :thread_id
""")

_ARCHIVE_THREADS_SQL = text("""
    UPDATE threads
    SET is_archived = TRUE, archived_reason = :reason, updated_at = NOW()
    WHERE listing_id = :listing_id
      AND is_archived = FALSE
      AND (CAST(:except_buyer_id AS TEXT) IS NULL OR buyer_id <> :except_buyer_id)
""")

_LIST_MESSAGES_SQL = text(f"""
    SELECT {_MESSAGE_COLUMNS},
           COALESCE(
               (SELECT json_object_agg(r.user_id, r.read_at)
                FROM message_reads r WHERE r.message_id = messages.id),
               '{{}}'::json
           ) AS read_by
    FROM messages
    WHERE thread_id = :thread_id
    ORDER BY created_at ASC, id ASC
""")

_MARK_READ_SQL = text("""
    INSERT INTO message_reads (message_id, user_id, read_at)
    SELECT id, :user_id, :now FROM messages WHERE thread_id = :thread_id
    ON CONFLICT (message_id, user_id) DO NOTHING
""")

_UNREAD_COUNT = """
    (SELECT COUNT(*) FROM messages m
     WHERE m.thread_id = t.id
       AND NOT EXISTS (
           SELECT 1 FROM message_reads r
           WHERE r.message_id = m.id AND r.user_id = :user_id
       )) AS unread_count
"""

_INBOX_BUYER_SQL = text(f"""
    SELECT {_THREAD_COLUMNS}, {_UNREAD_COUNT}
    FROM threads t
    WHERE t.buyer_id = :user_id
    ORDER BY t.last_message_at DESC NULLS LAST
""")

_INBOX_SELLER_SQL = text(f"""
    SELECT {_THREAD_COLUMNS}, {_UNREAD_COUNT}
    FROM threads t
    WHERE t.seller_id = :user_id
    ORDER BY t.last_message_at DESC NULLS LAST
""")


_UNREAD_TOTAL_SQL = text("""
    SELECT COUNT(*) AS unread, COUNT(DISTINCT m.thread_id) AS threads
    FROM messages m
    JOIN threads t ON t.id = m.thread_id
    WHERE (t.buyer_id = :user_id OR t.seller_id = :user_id)
      AND NOT EXISTS (
          SELECT 1 FROM message_reads r
          WHERE r.message_id = m.id AND r.user_id = :user_id
      )
""")


def _row_to_thread(row: Any) -> Thread:
    return Thread(
        id=row.id,
        listing_id=row.listing_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        last_message_id=row.last_message_id,
        last_message_at=row.last_message_at,
        is_archived=row.is_archived,
        archived_reason=row.archived_reason,
        created_at=row.created_at,
    )


def _parse_read_by(raw: Any) -> dict[str, datetime]:
    data = from_json(raw) or {}
    return {
        user_id: at if isinstance(at, datetime) else datetime.fromisoformat(at)
        for user_id, at in data.items()
    }


def _row_to_message(row: Any, read_by: dict[str, datetime] | None = None) -> Message:
    return Message(
        id=row.id,
        thread_id=row.thread_id,
        listing_id=row.listing_id,
        type=row.type,
        sender_id=row.sender_id,
        content=row.content,
        offer_id=row.offer_id,
        order_id=row.order_id,
        offer_snapshot=from_json(row.offer_snapshot),
        event=row.event,
        payload=from_json(row.payload),
        read_by=read_by or {},
        created_at=row.created_at,
    )


def _message_params(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "thread_id": message.thread_id,
        "listing_id": message.listing_id,
        "type": message.type,
        "sender_id": message.sender_id,
        "content": message.content,
        "offer_id": message.offer_id,
        "order_id": message.order_id,
        "offer_snapshot": to_json(message.offer_snapshot),
        "event": message.event,
        "payload": to_json(message.payload),
        "created_at": message.created_at,
    }


class ConversationRepository:
    """Concrete implementation of ConversationRepositoryProtocol using raw SQL."""

    async def get_or_create_thread(
        self,
        db: AsyncSession,
        thread_id: str,
        listing_id: str,
        buyer_id: str,
        seller_id: str,
        now: datetime,
    ) -> Thread:
        result = await db.execute(
            _GET_OR_CREATE_THREAD_SQL,
            {
                "id": thread_id,
                "listing_id": listing_id,
                "buyer_id": buyer_id,
                "seller_id": seller_id,
                "now": now,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Thread upsert returned no row")
        return _row_to_thread(row)

    async def get_thread(self, db: AsyncSession, thread_id: str) -> Thread | None:
        row = (await db.execute(_GET_THREAD_SQL, {"id": thread_id})).fetchone()
        return _row_to_thread(row) if row else None

    async def append_message(self, db: AsyncSession, message: Message) -> Message:
        result = await db.execute(_INSERT_MESSAGE_SQL, _message_params(message))
        row = result.fetchone()
        if row is None:
            raise InternalError("Message insert returned no row")
        await self._write_reads(db, message)
        return _row_to_message(row, dict(message.read_by))

    async def append_event_once(self, db: AsyncSession, message: Message) -> Message | None:
        result = await db.execute(_INSERT_EVENT_ONCE_SQL, _message_params(message))
        row = result.fetchone()
        if row is None:
            return None
        await self._write_reads(db, message)
        return _row_to_message(row, dict(message.read_by))

    async def patch_offer_snapshot(
        self, db: AsyncSession, offer_id: str, patch: dict[str, Any]
    ) -> int:
        result = await db.execute(
            _PATCH_SNAPSHOT_SQL, {"offer_id": offer_id, "patch": to_json(patch)}
        )
        return int(result.rowcount or 0)

    async def touch_thread(
        self, db: AsyncSession, thread_id: str, message_id: str, at: datetime
    ) -> None:
        await db.execute(
            _TOUCH_THREAD_SQL, {"thread_id": thread_id, "message_id": message_id, "at": at}
        )

    async def archive_threads(
        self,
        db: AsyncSession,
        listing_id: str,
        reason: str,
        except_buyer_id: str | None,
    ) -> int:
        result = await db.execute(
            _ARCHIVE_THREADS_SQL,
            {"listing_id": listing_id, "reason": reason, "except_buyer_id": except_buyer_id},
        )
        return int(result.rowcount or 0)

    async def list_messages(self, db: AsyncSession, thread_id: str) -> list[Message]:
        rows = (await db.execute(_LIST_MESSAGES_SQL, {"thread_id": thread_id})).fetchall()
        return [_row_to_message(row, _parse_read_by(row.read_by)) for row in rows]

    async def mark_read(
        self, db: AsyncSession, thread_id: str, user_id: str, now: datetime
    ) -> int:
        result = await db.execute(
            _MARK_READ_SQL, {"thread_id": thread_id, "user_id": user_id, "now": now}
        )
        return int(result.rowcount or 0)

    async def list_inbox(
        self, db: AsyncSession, user_id: str, role: str
    ) -> list[InboxThread]:
        sql = _INBOX_BUYER_SQL if role == "buyer" else _INBOX_SELLER_SQL
        rows = (await db.execute(sql, {"user_id": user_id})).fetchall()
        return [
            InboxThread(thread=_row_to_thread(row), unread_count=int(row.unread_count))
            for row in rows
        ]

    async def count_unread(self, db: AsyncSession, user_id: str) -> tuple[int, int]:
        row = (await db.execute(_UNREAD_TOTAL_SQL, {"user_id": user_id})).one()
        return int(row.unread), int(row.threads)

    async def _write_reads(self, db: AsyncSession, message: Message) -> None:
        for user_id, at in message.read_by.items():
            await db.execute(
                _INSERT_READ_SQL,
                {"message_id": message.id, "user_id": user_id, "read_at": at},
            )
