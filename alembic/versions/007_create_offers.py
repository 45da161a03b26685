"""007: create offers table

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE offers (
            id                  VARCHAR(32)     PRIMARY KEY,
            listing_id          VARCHAR(32)     NOT NULL REFERENCES listings (id),
            buyer_id            VARCHAR(64)     NOT NULL,
            seller_id           VARCHAR(64)     NOT NULL,
            mode                VARCHAR(20)     NOT NULL,
            amount_cents        BIGINT          NOT NULL,
            shipping_cents      BIGINT          NOT NULL DEFAULT 0,
            tax_cents           BIGINT          NOT NULL DEFAULT 0,
            total_cents         BIGINT          NOT NULL,
            status              VARCHAR(10)     NOT NULL DEFAULT 'pending',
            funds_held          BOOLEAN         NOT NULL DEFAULT FALSE,
            expires_at          TIMESTAMPTZ,
            responded_at        TIMESTAMPTZ,
            decline_reason      VARCHAR(30),
            shipping_address    JSONB,
            created_at          TIMESTAMPTZ     NOT NULL,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_offers_mode CHECK (
                mode IN ('buyer', 'seller_private', 'seller_broadcast')
            ),
            CONSTRAINT ck_offers_status CHECK (
                status IN ('pending', 'accepted', 'declined', 'expired')
            ),
            CONSTRAINT ck_offers_amount_gt_0 CHECK (amount_cents > 0),
            CONSTRAINT ck_offers_total CHECK (
                total_cents = amount_cents + shipping_cents + tax_cents
            ),
            CONSTRAINT ck_offers_hold_only_pending CHECK (
                status = 'pending' OR funds_held = FALSE
            )
        );
    """)
    # At most one pending offer per (listing, buyer, mode)
    op.execute("""
        CREATE UNIQUE INDEX uq_offers_pending
        ON offers (listing_id, buyer_id, mode)
        WHERE status = 'pending';
    """)
    op.execute("""
        CREATE INDEX idx_offers_due
        ON offers (expires_at)
        WHERE status = 'pending' AND expires_at IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_offers_listing ON offers (listing_id, status);")
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers CASCADE;")
