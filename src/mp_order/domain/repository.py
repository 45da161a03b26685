"""OrderRepository Protocol: orders, escrow and the status history trail."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_order.domain.models import Order, StatusChange
from src.mp_order.domain.refund import RefundPlan


class OrderRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, order: Order) -> Order | None:
        """Insert a PAID order; None when the listing already has one."""
        ...

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def get_for_update(self, db: AsyncSession, order_id: str) -> Order | None: ...

    async def find_by_listing_and_buyer(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> Order | None: ...

    async def advance_status(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        tracking_number: str | None = None,
    ) -> Order | None:
        """Conditional status step; None if the order is no longer in `from_status`."""
        ...

    async def release_escrow(
        self, db: AsyncSession, order_id: str, payout_cents: int, now: datetime
    ) -> Order | None:
        """Flip escrow HELD→RELEASED for a DELIVERED order; None if already released."""
        ...

    async def apply_refund(
        self, db: AsyncSession, order_id: str, plan: RefundPlan, now: datetime
    ) -> Order | None:
        """Record the refund once; None if the order already carries one."""
        ...

    async def append_history(
        self, db: AsyncSession, order_id: str, status: str, at: datetime
    ) -> None: ...

    async def list_history(self, db: AsyncSession, order_id: str) -> list[StatusChange]: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        limit: int,
        cursor_id: str | None,
    ) -> list[Order]: ...
