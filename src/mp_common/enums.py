"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class OfferMode(str, Enum):
    BUYER = "buyer"
    SELLER_PRIVATE = "seller_private"
    SELLER_BROADCAST = "seller_broadcast"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class OrderStatus(str, Enum):
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"


class EscrowStatus(str, Enum):
    HELD = "HELD"
    RELEASED = "RELEASED"


class RefundMode(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class RefundReason(str, Enum):
    # Valid only while the order has not shipped
    NO_LONGER_HAVE_ITEM = "no_longer_have_item"
    NO_INTERNATIONAL_SHIPPING = "no_international_shipping"
    NO_LONGER_WANT_TO_SELL = "no_longer_want_to_sell"
    # Valid at any point
    ITEM_NOT_AS_DESCRIBED = "item_not_as_described"
    ITEM_DAMAGED = "item_damaged"
    LOST_IN_TRANSIT = "lost_in_transit"
    BUYER_REQUESTED = "buyer_requested"
    OTHER = "other"


class MessageType(str, Enum):
    TEXT = "text"
    OFFER = "offer"
    SYSTEM = "system"


class SystemEvent(str, Enum):
    ORDER_CREATED = "order_created"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    PAYOUT_RELEASED = "payout_released"
    REFUND_ISSUED = "refund_issued"
    OFFER_DECLINED = "offer_declined"
    OFFER_EXPIRED = "offer_expired"


class ArchivedReason(str, Enum):
    SOLD_TO_OTHER = "sold_to_other"
    LISTING_DELETED = "listing_deleted"


class LedgerEntryType(str, Enum):
    # Wallet top-up / cash-out
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    # Buyer offer hold and its release (decline / expire / sold to other)
    OFFER_HOLD = "OFFER_HOLD"
    OFFER_RELEASE = "OFFER_RELEASE"
    # Buyer funds moved into order escrow (direct purchase or seller-offer accept)
    PURCHASE = "PURCHASE"
    # Escrow release to seller at delivery
    ESCROW_PAYOUT = "ESCROW_PAYOUT"
    # Refund: buyer credit, seller claw-back
    REFUND_CREDIT = "REFUND_CREDIT"
    REFUND_CLAWBACK = "REFUND_CLAWBACK"
