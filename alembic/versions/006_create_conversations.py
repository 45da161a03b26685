"""006: create threads, messages and message_reads tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE threads (
            id                  VARCHAR(32)     PRIMARY KEY,
            listing_id          VARCHAR(32)     NOT NULL REFERENCES listings (id),
            buyer_id            VARCHAR(64)     NOT NULL,
            seller_id           VARCHAR(64)     NOT NULL,
            last_message_id     VARCHAR(32),
            last_message_at     TIMESTAMPTZ,
            is_archived         BOOLEAN         NOT NULL DEFAULT FALSE,
            archived_reason     VARCHAR(30),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_threads_triple UNIQUE (listing_id, buyer_id, seller_id),
            CONSTRAINT ck_threads_archived_reason CHECK (
                archived_reason IS NULL
                OR archived_reason IN ('sold_to_other', 'listing_deleted')
            )
        );
    """)
    op.execute("CREATE INDEX idx_threads_buyer ON threads (buyer_id, last_message_at DESC);")
    op.execute("CREATE INDEX idx_threads_seller ON threads (seller_id, last_message_at DESC);")
    op.execute("""
        CREATE TABLE messages (
            id              VARCHAR(32)     PRIMARY KEY,
            thread_id       VARCHAR(32)     NOT NULL REFERENCES threads (id),
            listing_id      VARCHAR(32)     NOT NULL,
            type            VARCHAR(10)     NOT NULL,
            sender_id       VARCHAR(64),
            content         TEXT,
            offer_id        VARCHAR(32),
            order_id        VARCHAR(32),
            offer_snapshot  JSONB,
            event           VARCHAR(30),
            payload         JSONB,
            created_at      TIMESTAMPTZ     NOT NULL,
            CONSTRAINT ck_messages_type CHECK (type IN ('text', 'offer', 'system')),
            CONSTRAINT ck_messages_offer_snapshot CHECK (
                (type = 'offer') = (offer_snapshot IS NOT NULL)
            ),
            CONSTRAINT ck_messages_event CHECK ((type = 'system') = (event IS NOT NULL))
        );
    """)
    op.execute("CREATE INDEX idx_messages_thread ON messages (thread_id, created_at, id);")
    op.execute("CREATE INDEX idx_messages_offer ON messages (offer_id) WHERE offer_id IS NOT NULL;")
    # One system event of each kind per order: replays insert nothing
    op.execute("""
        CREATE UNIQUE INDEX uq_messages_order_event
        ON messages (order_id, event)
        WHERE order_id IS NOT NULL AND event IS NOT NULL;
    """)
    op.execute("""
        CREATE TABLE message_reads (
            message_id      VARCHAR(32)     NOT NULL REFERENCES messages (id),
            user_id         VARCHAR(64)     NOT NULL,
            read_at         TIMESTAMPTZ     NOT NULL,
            PRIMARY KEY (message_id, user_id)
        );
    """)
    op.execute("COMMENT ON TABLE messages IS 'Append-only; only offer_snapshot is patched in place';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS message_reads CASCADE;")
    op.execute("DROP TABLE IF EXISTS messages CASCADE;")
    op.execute("DROP TABLE IF EXISTS threads CASCADE;")
