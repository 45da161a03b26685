"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Account / ledger
  3xxx: Listing
  4xxx: Offer
  5xxx: Order
  6xxx: Conversation
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


# --- 2xxx: Account ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}", 404)


# --- 3xxx: Listing ---

class ListingNotFoundError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}", 404)


class ListingUnavailableError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3002, f"Listing is not available: {listing_id}", 409)


class AlreadySoldError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3003, f"Listing already sold: {listing_id}", 409)


class ShippingUnavailableError(AppError):
    def __init__(self, region: str) -> None:
        super().__init__(3004, f"Shipping not available to region: {region}", 422)


class InvalidPriceDropError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3005, f"Invalid price drop: {detail}", 422)


# --- 4xxx: Offer ---

class OfferNotFoundError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4001, f"Offer not found: {offer_id}", 404)


class OfferNotPendingError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4002, f"Offer already processed: {offer_id}", 409)


class OfferExpiredError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4003, f"Offer has expired: {offer_id}", 410)


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4004, f"Invalid amount: {detail}", 422)


class OutOfPriceBoundsError(AppError):
    def __init__(self, amount: int, floor: int, ceiling: int) -> None:
        super().__init__(
            4005,
            f"Offer amount {amount} cents outside allowed range [{floor}, {ceiling}]",
            422,
        )


class DuplicateOfferError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4006, f"A pending offer already exists: {detail}", 409)


class NoBroadcastRecipientsError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(4007, f"No users have favorited listing {listing_id}", 422)


class MissingCheckoutDetailsError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4008, f"Checkout details required: {detail}", 422)


# --- 5xxx: Order ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(5001, f"Order not found: {order_id}", 404)


class DuplicateOrderError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(5002, f"Duplicate order attempt for listing {listing_id}", 409)


class InvalidRefundReasonError(AppError):
    def __init__(self, reason: str, status: str) -> None:
        super().__init__(
            5003, f"Refund reason {reason} is not allowed for an order in status {status}", 422
        )


class AlreadyRefundedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(5004, f"Order already refunded: {order_id}", 409)


class InvalidOrderTransitionError(AppError):
    def __init__(self, order_id: str, status: str, target: str) -> None:
        super().__init__(
            5005, f"Order {order_id} cannot move from {status} to {target}", 422
        )


# --- 6xxx: Conversation ---

class ThreadNotFoundError(AppError):
    def __init__(self, thread_id: str) -> None:
        super().__init__(6001, f"Thread not found: {thread_id}", 404)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(9003, detail, 403)
