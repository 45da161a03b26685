"""005: create listings and favorites tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id                      VARCHAR(32)     PRIMARY KEY,
            seller_id               VARCHAR(64)     NOT NULL,
            title                   VARCHAR(200),
            designer                VARCHAR(100),
            size                    VARCHAR(20),
            thumbnail               VARCHAR(500),
            price_cents             BIGINT          NOT NULL,
            original_price_cents    BIGINT          NOT NULL,
            buyer_id                VARCHAR(64),
            is_sold                 BOOLEAN         NOT NULL DEFAULT FALSE,
            is_deleted              BOOLEAN         NOT NULL DEFAULT FALSE,
            is_draft                BOOLEAN         NOT NULL DEFAULT FALSE,
            is_free_shipping        BOOLEAN         NOT NULL DEFAULT FALSE,
            shipping_regions        JSONB           NOT NULL DEFAULT '[]'::jsonb,
            can_offer               BOOLEAN         NOT NULL DEFAULT TRUE,
            favorites_count         INTEGER         NOT NULL DEFAULT 0,
            sold_at                 TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price_gt_0   CHECK (price_cents > 0),
            CONSTRAINT ck_listings_sold_buyer   CHECK (is_sold = (buyer_id IS NOT NULL)),
            CONSTRAINT ck_listings_not_self     CHECK (buyer_id IS NULL OR buyer_id <> seller_id)
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE favorites (
            user_id         VARCHAR(64)     NOT NULL,
            listing_id      VARCHAR(32)     NOT NULL REFERENCES listings (id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, listing_id)
        );
    """)
    op.execute("CREATE INDEX idx_favorites_listing ON favorites (listing_id, created_at);")
    op.execute("COMMENT ON TABLE listings IS 'Items for sale; is_sold flips to true at most once';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS favorites CASCADE;")
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
