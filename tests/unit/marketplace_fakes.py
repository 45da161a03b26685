"""In-memory repositories and session for service-level tests.

Every fake implements its repository Protocol with the same conditional
semantics as the SQL: updates whose WHERE guard would match no row return
None, unique indexes reject duplicates, and conditional row updates take a
per-row lock held until the session commits or rolls back. Writes register an
undo step on the session, so rollback restores the state the transaction saw.
"""

import asyncio
import copy
import itertools
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from src.container import Container, build_container
from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_common.datetime_utils import FixedClock
from src.mp_common.enums import EscrowStatus, MessageType, OfferMode, OrderStatus
from src.mp_common.errors import (
    AccountNotFoundError,
    AlreadySoldError,
    InsufficientFundsError,
)
from src.mp_common.id_generator import SequentialIdGenerator
from src.mp_conversation.domain.models import InboxThread, Message, Thread
from src.mp_listing.domain.models import Listing, ShippingRegion
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.pricing import NegotiationPolicy
from src.mp_order.domain.models import Order, Refund, StatusChange
from src.mp_order.domain.refund import RefundPlan
from src.mp_search.projector import SearchProjector

US = "United States"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class FakeSession:
    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []
        self._held: dict[Any, asyncio.Lock] = {}
        self.commits = 0
        self.rollbacks = 0

    def on_rollback(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    async def lock(self, key: Any, registry: dict[Any, asyncio.Lock]) -> None:
        if key in self._held:
            return
        row_lock = registry.setdefault(key, asyncio.Lock())
        await row_lock.acquire()
        self._held[key] = row_lock

    async def commit(self) -> None:
        self._undo.clear()
        self.commits += 1
        self._release()

    async def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1
        self._release()

    async def close(self) -> None:
        if self._undo:
            await self.rollback()
        self._release()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _release(self) -> None:
        for row_lock in self._held.values():
            row_lock.release()
        self._held.clear()


class FakeSessionFactory:
    def __init__(self) -> None:
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session


def _put(db: FakeSession, table: dict[Any, Any], key: Any, value: Any) -> None:
    existed = key in table
    previous = table.get(key)
    table[key] = value

    def undo() -> None:
        if existed:
            table[key] = previous
        else:
            table.pop(key, None)

    db.on_rollback(undo)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class FakeAccountRepository:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.entries: list[LedgerEntry] = []
        self._entry_ids = itertools.count(1)

    def seed(self, user_id: str, balance_cents: int = 0) -> None:
        self.accounts[user_id] = Account(
            id=f"acc-{user_id}", user_id=user_id, balance_cents=0, version=0
        )
        if balance_cents:
            self._move(None, user_id, balance_cents, "DEPOSIT", "DEPOSIT", None, "seed")

    def balance(self, user_id: str) -> int:
        return self.accounts[user_id].balance_cents

    def total_balance(self) -> int:
        return sum(a.balance_cents for a in self.accounts.values())

    def entries_for(self, user_id: str, entry_type: str | None = None) -> list[LedgerEntry]:
        return [
            e for e in self.entries
            if e.user_id == user_id and (entry_type is None or e.entry_type == entry_type)
        ]

    async def create_account(self, db: FakeSession, user_id: str) -> Account:
        account = Account(id=f"acc-{user_id}", user_id=user_id, balance_cents=0, version=0)
        _put(db, self.accounts, user_id, account)
        return copy.deepcopy(account)

    async def get_account_by_user_id(self, db: FakeSession, user_id: str) -> Account | None:
        account = self.accounts.get(user_id)
        return copy.deepcopy(account) if account else None

    async def credit_cents(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]:
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        await asyncio.sleep(0)
        if user_id not in self.accounts:
            raise AccountNotFoundError(user_id)
        return self._move(db, user_id, amount, entry_type, ref_type, ref_id, description)

    async def debit_cents(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]:
        if amount <= 0:
            raise ValueError(f"debit amount must be positive, got {amount}")
        await asyncio.sleep(0)
        account = self.accounts.get(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        if not account.covers(amount):
            raise InsufficientFundsError(amount, account.balance_cents)
        return self._move(db, user_id, -amount, entry_type, ref_type, ref_id, description)

    async def list_ledger_entries(
        self,
        db: FakeSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
        reference_id: str | None = None,
    ) -> list[LedgerEntry]:
        rows = [
            e for e in reversed(self.entries)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
            and (reference_id is None or e.reference_id == reference_id)
        ]
        return rows[:limit]

    def _move(
        self,
        db: FakeSession | None,
        user_id: str,
        signed_amount: int,
        entry_type: str,
        ref_type: str | None,
        ref_id: str | None,
        description: str | None,
    ) -> tuple[Account, LedgerEntry]:
        account = self.accounts[user_id]
        account.balance_cents += signed_amount
        account.version += 1
        entry = LedgerEntry(
            id=next(self._entry_ids),
            user_id=user_id,
            entry_type=getattr(entry_type, "value", entry_type),
            amount=signed_amount,
            balance_after=account.balance_cents,
            reference_type=ref_type,
            reference_id=ref_id,
            description=description,
        )
        self.entries.append(entry)
        if db is not None:
            def undo() -> None:
                account.balance_cents -= signed_amount
                account.version -= 1
                self.entries.remove(entry)

            db.on_rollback(undo)
        return copy.deepcopy(account), entry


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class FakeListingRepository:
    def __init__(self) -> None:
        self.listings: dict[str, Listing] = {}
        self.favorites: dict[str, list[str]] = {}
        self._locks: dict[Any, asyncio.Lock] = {}

    def add(self, listing: Listing) -> Listing:
        self.listings[listing.id] = copy.deepcopy(listing)
        return listing

    def peek(self, listing_id: str) -> Listing:
        return self.listings[listing_id]

    async def insert(self, db: FakeSession, listing: Listing) -> Listing:
        stored = replace(copy.deepcopy(listing), original_price_cents=listing.price_cents)
        _put(db, self.listings, stored.id, stored)
        return copy.deepcopy(stored)

    async def get_by_id(self, db: FakeSession, listing_id: str) -> Listing | None:
        listing = self.listings.get(listing_id)
        return copy.deepcopy(listing) if listing else None

    async def reserve_for_sale(
        self, db: FakeSession, listing_id: str, buyer_id: str, now: datetime
    ) -> Listing:
        await db.lock(listing_id, self._locks)
        current = self.listings.get(listing_id)
        if current is None or not current.is_available or current.seller_id == buyer_id:
            raise AlreadySoldError(listing_id)
        updated = replace(current, is_sold=True, buyer_id=buyer_id, sold_at=now)
        _put(db, self.listings, listing_id, updated)
        return copy.deepcopy(updated)

    async def drop_price(
        self, db: FakeSession, listing_id: str, seller_id: str, new_price_cents: int
    ) -> Listing | None:
        await db.lock(listing_id, self._locks)
        current = self.listings.get(listing_id)
        if (
            current is None
            or current.seller_id != seller_id
            or current.price_cents <= new_price_cents
            or not current.is_available
        ):
            return None
        updated = replace(current, price_cents=new_price_cents)
        _put(db, self.listings, listing_id, updated)
        return copy.deepcopy(updated)

    async def soft_delete(
        self, db: FakeSession, listing_id: str, seller_id: str
    ) -> Listing | None:
        await db.lock(listing_id, self._locks)
        current = self.listings.get(listing_id)
        if (
            current is None
            or current.seller_id != seller_id
            or current.is_sold
            or current.is_deleted
        ):
            return None
        updated = replace(current, is_deleted=True)
        _put(db, self.listings, listing_id, updated)
        return copy.deepcopy(updated)

    async def add_favorite(self, db: FakeSession, listing_id: str, user_id: str) -> bool:
        fans = self.favorites.get(listing_id, [])
        if user_id in fans:
            return False
        _put(db, self.favorites, listing_id, [*fans, user_id])
        current = self.listings[listing_id]
        _put(db, self.listings, listing_id,
             replace(current, favorites_count=current.favorites_count + 1))
        return True

    async def remove_favorite(self, db: FakeSession, listing_id: str, user_id: str) -> bool:
        fans = self.favorites.get(listing_id, [])
        if user_id not in fans:
            return False
        _put(db, self.favorites, listing_id, [uid for uid in fans if uid != user_id])
        current = self.listings[listing_id]
        _put(db, self.listings, listing_id,
             replace(current, favorites_count=max(current.favorites_count - 1, 0)))
        return True

    async def list_favorited_user_ids(self, db: FakeSession, listing_id: str) -> list[str]:
        return list(self.favorites.get(listing_id, []))


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


class FakeOfferRepository:
    def __init__(self) -> None:
        self.offers: dict[str, Offer] = {}
        self._locks: dict[Any, asyncio.Lock] = {}

    def peek(self, offer_id: str) -> Offer:
        return self.offers[offer_id]

    def held_total(self) -> int:
        return sum(o.total_cents for o in self.offers.values() if o.funds_held)

    async def insert(self, db: FakeSession, offer: Offer) -> Offer | None:
        await asyncio.sleep(0)
        key = (offer.listing_id, offer.buyer_id, offer.mode)
        if any(
            o.is_pending and (o.listing_id, o.buyer_id, o.mode) == key
            for o in self.offers.values()
        ):
            return None
        stored = copy.deepcopy(offer)
        _put(db, self.offers, stored.id, stored)
        return copy.deepcopy(stored)

    async def get_by_id(self, db: FakeSession, offer_id: str) -> Offer | None:
        offer = self.offers.get(offer_id)
        return copy.deepcopy(offer) if offer else None

    async def transition(
        self,
        db: FakeSession,
        offer_id: str,
        status: str,
        now: datetime,
        reason: str | None = None,
        due_by: datetime | None = None,
    ) -> tuple[Offer, bool] | None:
        await db.lock(offer_id, self._locks)
        current = self.offers.get(offer_id)
        if current is None or not current.is_pending:
            return None
        if due_by is not None and (current.expires_at is None or current.expires_at > due_by):
            return None
        updated = replace(
            current, status=status, funds_held=False, responded_at=now, decline_reason=reason
        )
        _put(db, self.offers, offer_id, updated)
        return copy.deepcopy(updated), current.funds_held

    async def has_pending(
        self, db: FakeSession, listing_id: str, buyer_id: str, mode: str
    ) -> bool:
        return any(
            o.is_pending and o.listing_id == listing_id
            and o.buyer_id == buyer_id and o.mode == mode
            for o in self.offers.values()
        )

    async def has_pending_broadcast(self, db: FakeSession, listing_id: str) -> bool:
        return any(
            o.is_pending and o.listing_id == listing_id
            and o.mode == OfferMode.SELLER_BROADCAST.value
            for o in self.offers.values()
        )

    async def list_broadcast_waves(self, db: FakeSession, listing_id: str) -> list[int]:
        waves: list[int] = []
        for offer in self._ordered(listing_id):
            if offer.mode == OfferMode.SELLER_BROADCAST.value and offer.amount_cents not in waves:
                waves.append(offer.amount_cents)
        return waves

    async def list_pending_ids(
        self, db: FakeSession, listing_id: str, exclude_offer_id: str | None = None
    ) -> list[str]:
        return [
            o.id for o in self._ordered(listing_id)
            if o.is_pending and o.id != exclude_offer_id
        ]

    async def list_due_ids(self, db: FakeSession, now: datetime, limit: int) -> list[str]:
        due = [
            o for o in self.offers.values()
            if o.is_pending and o.expires_at is not None and o.expires_at <= now
        ]
        due.sort(key=lambda o: o.expires_at)
        return [o.id for o in due[:limit]]

    async def find_pending_seller_offer(
        self, db: FakeSession, listing_id: str, buyer_id: str
    ) -> Offer | None:
        matches = [
            o for o in self._ordered(listing_id)
            if o.is_pending and o.buyer_id == buyer_id and o.mode != OfferMode.BUYER.value
        ]
        return copy.deepcopy(matches[-1]) if matches else None

    def _ordered(self, listing_id: str) -> list[Offer]:
        offers = [o for o in self.offers.values() if o.listing_id == listing_id]
        return sorted(offers, key=lambda o: o.created_at)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class FakeOrderRepository:
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.history: dict[str, list[StatusChange]] = {}
        self._locks: dict[Any, asyncio.Lock] = {}

    def peek(self, order_id: str) -> Order:
        return self.orders[order_id]

    def escrowed_total(self) -> int:
        return sum(
            o.escrow.held_cents for o in self.orders.values()
            if o.escrow is not None and not o.escrow.is_released
        )

    async def insert(self, db: FakeSession, order: Order) -> Order | None:
        await asyncio.sleep(0)
        if any(o.listing_id == order.listing_id for o in self.orders.values()):
            return None
        stored = copy.deepcopy(order)
        _put(db, self.orders, stored.id, stored)
        return copy.deepcopy(stored)

    async def get_by_id(self, db: FakeSession, order_id: str) -> Order | None:
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def get_for_update(self, db: FakeSession, order_id: str) -> Order | None:
        await db.lock(order_id, self._locks)
        return await self.get_by_id(db, order_id)

    async def find_by_listing_and_buyer(
        self, db: FakeSession, listing_id: str, buyer_id: str
    ) -> Order | None:
        for order in self.orders.values():
            if order.listing_id == listing_id and order.buyer_id == buyer_id:
                return copy.deepcopy(order)
        return None

    async def advance_status(
        self,
        db: FakeSession,
        order_id: str,
        from_status: str,
        to_status: str,
        tracking_number: str | None = None,
    ) -> Order | None:
        await db.lock(order_id, self._locks)
        current = self.orders.get(order_id)
        if current is None or current.status != from_status:
            return None
        updated = replace(
            copy.deepcopy(current),
            status=to_status,
            tracking_number=current.tracking_number or tracking_number,
        )
        _put(db, self.orders, order_id, updated)
        return copy.deepcopy(updated)

    async def release_escrow(
        self, db: FakeSession, order_id: str, payout_cents: int, now: datetime
    ) -> Order | None:
        await db.lock(order_id, self._locks)
        current = self.orders.get(order_id)
        if (
            current is None
            or current.status != OrderStatus.DELIVERED.value
            or current.escrow is None
            or current.escrow.is_released
        ):
            return None
        updated = copy.deepcopy(current)
        updated.escrow.status = EscrowStatus.RELEASED.value
        updated.escrow.released_at = now
        updated.seller_payout_cents = payout_cents
        _put(db, self.orders, order_id, updated)
        return copy.deepcopy(updated)

    async def apply_refund(
        self, db: FakeSession, order_id: str, plan: RefundPlan, now: datetime
    ) -> Order | None:
        await db.lock(order_id, self._locks)
        current = self.orders.get(order_id)
        if current is None or current.refund is not None:
            return None
        updated = copy.deepcopy(current)
        updated.refund = Refund(
            mode=plan.mode,
            amount_cents=plan.amount_cents,
            fee_cents=plan.fee_cents,
            seller_debit_cents=plan.seller_debit_cents,
            reason=plan.reason,
            issued_at=now,
        )
        updated.escrow.held_cents = plan.escrow_held_after
        if plan.cancels_order:
            updated.status = OrderStatus.CANCELED.value
        _put(db, self.orders, order_id, updated)
        return copy.deepcopy(updated)

    async def append_history(
        self, db: FakeSession, order_id: str, status: str, at: datetime
    ) -> None:
        trail = self.history.setdefault(order_id, [])
        change = StatusChange(status, at)
        trail.append(change)
        db.on_rollback(lambda: trail.remove(change))

    async def list_history(self, db: FakeSession, order_id: str) -> list[StatusChange]:
        return list(self.history.get(order_id, []))

    async def list_for_user(
        self,
        db: FakeSession,
        user_id: str,
        role: str,
        limit: int,
        cursor_id: str | None,
    ) -> list[Order]:
        field = "buyer_id" if role == "buyer" else "seller_id"
        rows = sorted(
            (o for o in self.orders.values()
             if getattr(o, field) == user_id and (cursor_id is None or o.id < cursor_id)),
            key=lambda o: o.id,
            reverse=True,
        )
        return [copy.deepcopy(o) for o in rows[:limit]]


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class FakeConversationRepository:
    def __init__(self) -> None:
        self.threads: dict[str, Thread] = {}
        self.messages: dict[str, Message] = {}
        self.reads: dict[tuple[str, str], datetime] = {}

    def events(self, event: str | None = None, order_id: str | None = None) -> list[Message]:
        return [
            m for m in self.messages.values()
            if m.type == MessageType.SYSTEM.value
            and (event is None or m.event == event)
            and (order_id is None or m.order_id == order_id)
        ]

    def offer_message(self, offer_id: str) -> Message:
        return next(
            m for m in self.messages.values()
            if m.offer_id == offer_id and m.type == MessageType.OFFER.value
        )

    def thread_between(self, listing_id: str, buyer_id: str) -> Thread:
        return next(
            t for t in self.threads.values()
            if t.listing_id == listing_id and t.buyer_id == buyer_id
        )

    async def get_or_create_thread(
        self,
        db: FakeSession,
        thread_id: str,
        listing_id: str,
        buyer_id: str,
        seller_id: str,
        now: datetime,
    ) -> Thread:
        for thread in self.threads.values():
            if (thread.listing_id, thread.buyer_id, thread.seller_id) == (
                listing_id, buyer_id, seller_id
            ):
                return copy.deepcopy(thread)
        thread = Thread(
            id=thread_id, listing_id=listing_id, buyer_id=buyer_id,
            seller_id=seller_id, last_message_at=now, created_at=now,
        )
        _put(db, self.threads, thread_id, thread)
        return copy.deepcopy(thread)

    async def get_thread(self, db: FakeSession, thread_id: str) -> Thread | None:
        thread = self.threads.get(thread_id)
        return copy.deepcopy(thread) if thread else None

    async def append_message(self, db: FakeSession, message: Message) -> Message:
        stored = copy.deepcopy(message)
        _put(db, self.messages, stored.id, stored)
        for user_id, at in message.read_by.items():
            _put(db, self.reads, (stored.id, user_id), at)
        return copy.deepcopy(stored)

    async def append_event_once(self, db: FakeSession, message: Message) -> Message | None:
        if any(
            m.order_id == message.order_id and m.event == message.event
            for m in self.messages.values()
            if m.order_id is not None and m.event is not None
        ):
            return None
        return await self.append_message(db, message)

    async def patch_offer_snapshot(
        self, db: FakeSession, offer_id: str, patch: dict[str, Any]
    ) -> int:
        patched = 0
        for message in self.messages.values():
            if message.offer_id == offer_id and message.type == MessageType.OFFER.value:
                _put(db, self.messages, message.id,
                     replace(message, offer_snapshot={**(message.offer_snapshot or {}), **patch}))
                patched += 1
        return patched

    async def touch_thread(
        self, db: FakeSession, thread_id: str, message_id: str, at: datetime
    ) -> None:
        thread = self.threads[thread_id]
        _put(db, self.threads, thread_id,
             replace(thread, last_message_id=message_id, last_message_at=at))

    async def archive_threads(
        self,
        db: FakeSession,
        listing_id: str,
        reason: str,
        except_buyer_id: str | None,
    ) -> int:
        archived = 0
        for thread in list(self.threads.values()):
            if (
                thread.listing_id == listing_id
                and not thread.is_archived
                and thread.buyer_id != except_buyer_id
            ):
                _put(db, self.threads, thread.id,
                     replace(thread, is_archived=True, archived_reason=reason))
                archived += 1
        return archived

    async def list_messages(self, db: FakeSession, thread_id: str) -> list[Message]:
        rows = sorted(
            (m for m in self.messages.values() if m.thread_id == thread_id),
            key=lambda m: m.created_at,
        )
        return [
            replace(
                copy.deepcopy(m),
                read_by={uid: at for (mid, uid), at in self.reads.items() if mid == m.id},
            )
            for m in rows
        ]

    async def mark_read(
        self, db: FakeSession, thread_id: str, user_id: str, now: datetime
    ) -> int:
        marked = 0
        for message in self.messages.values():
            key = (message.id, user_id)
            if message.thread_id == thread_id and key not in self.reads:
                _put(db, self.reads, key, now)
                marked += 1
        return marked

    async def list_inbox(
        self, db: FakeSession, user_id: str, role: str
    ) -> list[InboxThread]:
        field = "buyer_id" if role == "buyer" else "seller_id"
        threads = sorted(
            (t for t in self.threads.values() if getattr(t, field) == user_id),
            key=lambda t: t.last_message_at,
            reverse=True,
        )
        return [
            InboxThread(
                thread=copy.deepcopy(t),
                unread_count=sum(
                    1 for m in self.messages.values()
                    if m.thread_id == t.id and (m.id, user_id) not in self.reads
                ),
            )
            for t in threads
        ]

    async def count_unread(self, db: FakeSession, user_id: str) -> tuple[int, int]:
        threads = {t.id for t in self.threads.values() if t.has_participant(user_id)}
        unread = [
            m for m in self.messages.values()
            if m.thread_id in threads and (m.id, user_id) not in self.reads
        ]
        return len(unread), len({m.thread_id for m in unread})


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class RecordingBackend:
    """Search backend that keeps every accepted document."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.failure: Exception | None = None

    async def apply(self, document: dict[str, Any]) -> None:
        if self.failure is not None:
            raise self.failure
        self.documents.append(document)

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Assembled marketplace
# ---------------------------------------------------------------------------


def make_listing(
    listing_id: str = "L1",
    seller_id: str = "seller",
    price_cents: int = 10000,
    shipping_cents: int = 2000,
    **overrides: Any,
) -> Listing:
    fields: dict[str, Any] = {
        "original_price_cents": price_cents,
        "title": f"Jacket {listing_id}",
        "designer": "Acne Studios",
        "size": "M",
        "thumbnail": f"https://img.example.com/{listing_id}.jpg",
        "shipping_regions": [ShippingRegion(US, shipping_cents, True)],
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Listing(
        id=listing_id,
        seller_id=seller_id,
        price_cents=price_cents,
        **fields,
    )


ADDRESS = {
    "name": "Jamie Doe",
    "line1": "1 Main St",
    "line2": None,
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": US,
}


@dataclass
class Marketplace:
    container: Container
    accounts: FakeAccountRepository
    listings: FakeListingRepository
    offers: FakeOfferRepository
    orders: FakeOrderRepository
    threads: FakeConversationRepository
    backend: RecordingBackend
    clock: FixedClock
    sessions: FakeSessionFactory

    def session(self) -> FakeSession:
        return self.sessions()

    def money_in_system(self) -> int:
        """Balances plus offer holds plus unreleased escrow."""
        return (
            self.accounts.total_balance()
            + self.offers.held_total()
            + self.orders.escrowed_total()
        )


def build_marketplace(
    now: datetime | None = None, policy: NegotiationPolicy | None = None
) -> Marketplace:
    clock = FixedClock(now or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
    accounts = FakeAccountRepository()
    listings = FakeListingRepository()
    offers = FakeOfferRepository()
    orders = FakeOrderRepository()
    threads = FakeConversationRepository()
    backend = RecordingBackend()
    sessions = FakeSessionFactory()
    container = build_container(
        projector=SearchProjector(backend),
        session_factory=sessions,
        clock=clock,
        ids=SequentialIdGenerator(),
        policy=policy or NegotiationPolicy(),
        fee_bps=900,
        accounts=accounts,
        listings=listings,
        offers=offers,
        orders=orders,
        threads=threads,
    )
    return Marketplace(
        container=container,
        accounts=accounts,
        listings=listings,
        offers=offers,
        orders=orders,
        threads=threads,
        backend=backend,
        clock=clock,
        sessions=sessions,
    )
