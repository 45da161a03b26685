"""008: create orders and order_status_history tables

Revision ID: 008
Revises: 007
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                          VARCHAR(32)     PRIMARY KEY,
            order_number                VARCHAR(32)     NOT NULL,
            listing_id                  VARCHAR(32)     NOT NULL REFERENCES listings (id),
            buyer_id                    VARCHAR(64)     NOT NULL,
            seller_id                   VARCHAR(64)     NOT NULL,
            offer_id                    VARCHAR(32),
            status                      VARCHAR(10)     NOT NULL DEFAULT 'PAID',
            item_price_cents            BIGINT          NOT NULL,
            shipping_cents              BIGINT          NOT NULL DEFAULT 0,
            tax_cents                   BIGINT          NOT NULL DEFAULT 0,
            total_cents                 BIGINT          NOT NULL,
            escrow_held_cents           BIGINT          NOT NULL,
            escrow_status               VARCHAR(10)     NOT NULL DEFAULT 'HELD',
            escrow_released_at          TIMESTAMPTZ,
            seller_payout_cents         BIGINT          NOT NULL DEFAULT 0,
            refund_mode                 VARCHAR(10),
            refund_amount_cents         BIGINT,
            refund_fee_cents            BIGINT,
            refund_seller_debit_cents   BIGINT,
            refund_reason               VARCHAR(40),
            refund_issued_at            TIMESTAMPTZ,
            tracking_number             VARCHAR(40),
            listing_snapshot            JSONB           NOT NULL,
            shipping_address            JSONB           NOT NULL,
            created_at                  TIMESTAMPTZ     NOT NULL,
            updated_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_listing        UNIQUE (listing_id),
            CONSTRAINT uq_orders_number         UNIQUE (order_number),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('PAID', 'SHIPPED', 'DELIVERED', 'CANCELED')
            ),
            CONSTRAINT ck_orders_escrow_status CHECK (escrow_status IN ('HELD', 'RELEASED')),
            CONSTRAINT ck_orders_total CHECK (
                total_cents = item_price_cents + shipping_cents + tax_cents
            ),
            CONSTRAINT ck_orders_escrow_gte_0 CHECK (escrow_held_cents >= 0),
            CONSTRAINT ck_orders_refund_mode CHECK (
                refund_mode IS NULL OR refund_mode IN ('full', 'partial')
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE order_status_history (
            id              BIGSERIAL       PRIMARY KEY,
            order_id        VARCHAR(32)     NOT NULL REFERENCES orders (id),
            status          VARCHAR(10)     NOT NULL,
            changed_at      TIMESTAMPTZ     NOT NULL
        );
    """)
    op.execute("CREATE INDEX idx_order_history ON order_status_history (order_id, id);")
    op.execute("COMMENT ON TABLE order_status_history IS 'Append-only order status trail';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_status_history CASCADE;")
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
