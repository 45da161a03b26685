"""ListingRepository: raw SQL persistence, including the availability gate.

`reserve_for_sale` is the single-winner guard: the `is_sold = FALSE` filter
sits on the same UPDATE that sets it TRUE, so of N concurrent purchase/accept
transactions exactly one gets a row back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import AlreadySoldError, InternalError
from src.mp_common.jsonb import from_json, to_json
from src.mp_listing.domain.models import Listing, ShippingRegion

_COLUMNS = """
    id, seller_id, title, designer, size, thumbnail,
    price_cents, original_price_cents, buyer_id,
    is_sold, is_deleted, is_draft, is_free_shipping, shipping_regions,
    can_offer, favorites_count, sold_at, created_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO listings (id, seller_id, title, designer, size, thumbnail,
        price_cents, original_price_cents, is_draft, is_free_shipping,
        shipping_regions, can_offer)
    VALUES (:id, :seller_id, :title, :designer, :size, :thumbnail,
        :price_cents, :price_cents, :is_draft, :is_free_shipping,
        CAST(:shipping_regions AS JSONB), :can_offer)
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM listings WHERE id = :id")

_RESERVE_SQL = text(f"""
    UPDATE listings
    SET is_sold = TRUE, buyer_id = :buyer_id, sold_at = :now, updated_at = NOW()
    WHERE id = :id
      AND is_sold = FALSE
      AND is_deleted = FALSE
      AND is_draft = FALSE
      AND seller_id <> :buyer_id
    RETURNING {_COLUMNS}
""")

_DROP_PRICE_SQL = text(f"""
    UPDATE listings
    SET price_cents = :price_cents, updated_at = NOW()
    WHERE id = :id
      AND seller_id = :seller_id
      AND price_cents > :price_cents
      AND is_sold = FALSE AND is_deleted = FALSE AND is_draft = FALSE
    RETURNING {_COLUMNS}
""")

_SOFT_DELETE_SQL = text(f"""
    UPDATE listings
    SET is_deleted = TRUE, updated_at = NOW()
    WHERE id = :id AND seller_id = :seller_id
      AND is_sold = FALSE AND is_deleted = FALSE
    RETURNING {_COLUMNS}
""")

_ADD_FAVORITE_SQL = text("""
    WITH ins AS (
        INSERT INTO favorites (user_id, listing_id)
        VALUES (:user_id, :listing_id)
        ON CONFLICT (user_id, listing_id) DO NOTHING
        RETURNING listing_id
    )
    UPDATE listings SET favorites_count = favorites_count + 1
    WHERE id IN (SELECT listing_id FROM ins)
    RETURNING id
""")

_REMOVE_FAVORITE_SQL = text("""
    WITH del AS (
        DELETE FROM favorites
        WHERE user_id = :user_id AND listing_id = :listing_id
        RETURNING listing_id
    )
    UPDATE listings SET favorites_count = GREATEST(favorites_count - 1, 0)
    WHERE id IN (SELECT listing_id FROM del)
    RETURNING id
""")

_LIST_FAVORITED_SQL = text("""
    SELECT user_id FROM favorites
    WHERE listing_id = :listing_id
    ORDER BY created_at ASC
""")


def _row_to_listing(row: Any) -> Listing:
    regions = from_json(row.shipping_regions) or []
    return Listing(
        id=row.id,
        seller_id=row.seller_id,
        title=row.title,
        designer=row.designer,
        size=row.size,
        thumbnail=row.thumbnail,
        price_cents=row.price_cents,
        original_price_cents=row.original_price_cents,
        buyer_id=row.buyer_id,
        is_sold=row.is_sold,
        is_deleted=row.is_deleted,
        is_draft=row.is_draft,
        is_free_shipping=row.is_free_shipping,
        shipping_regions=[ShippingRegion.from_dict(r) for r in regions],
        can_offer=row.can_offer,
        favorites_count=row.favorites_count,
        sold_at=row.sold_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ListingRepository:
    """Concrete implementation of ListingRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, listing: Listing) -> Listing:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": listing.id,
                "seller_id": listing.seller_id,
                "title": listing.title,
                "designer": listing.designer,
                "size": listing.size,
                "thumbnail": listing.thumbnail,
                "price_cents": listing.price_cents,
                "is_draft": listing.is_draft,
                "is_free_shipping": listing.is_free_shipping,
                "shipping_regions": to_json([r.to_dict() for r in listing.shipping_regions]),
                "can_offer": listing.can_offer,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Listing insert returned no row")
        return _row_to_listing(row)

    async def get_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None:
        row = (await db.execute(_GET_SQL, {"id": listing_id})).fetchone()
        return _row_to_listing(row) if row else None

    async def reserve_for_sale(
        self, db: AsyncSession, listing_id: str, buyer_id: str, now: datetime
    ) -> Listing:
        result = await db.execute(
            _RESERVE_SQL, {"id": listing_id, "buyer_id": buyer_id, "now": now}
        )
        row = result.fetchone()
        if row is None:
            raise AlreadySoldError(listing_id)
        return _row_to_listing(row)

    async def drop_price(
        self, db: AsyncSession, listing_id: str, seller_id: str, new_price_cents: int
    ) -> Listing | None:
        result = await db.execute(
            _DROP_PRICE_SQL,
            {"id": listing_id, "seller_id": seller_id, "price_cents": new_price_cents},
        )
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def soft_delete(
        self, db: AsyncSession, listing_id: str, seller_id: str
    ) -> Listing | None:
        result = await db.execute(
            _SOFT_DELETE_SQL, {"id": listing_id, "seller_id": seller_id}
        )
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def add_favorite(self, db: AsyncSession, listing_id: str, user_id: str) -> bool:
        result = await db.execute(
            _ADD_FAVORITE_SQL, {"listing_id": listing_id, "user_id": user_id}
        )
        return result.fetchone() is not None

    async def remove_favorite(self, db: AsyncSession, listing_id: str, user_id: str) -> bool:
        result = await db.execute(
            _REMOVE_FAVORITE_SQL, {"listing_id": listing_id, "user_id": user_id}
        )
        return result.fetchone() is not None

    async def list_favorited_user_ids(
        self, db: AsyncSession, listing_id: str
    ) -> list[str]:
        rows = (await db.execute(_LIST_FAVORITED_SQL, {"listing_id": listing_id})).fetchall()
        return [row.user_id for row in rows]
