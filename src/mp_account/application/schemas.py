"""Wallet request/response schemas and the ledger page cursor."""

import base64
import json

from pydantic import BaseModel, Field

from src.mp_account.domain.models import LedgerEntry
from src.mp_common.cents import cents_to_display


def cursor_encode(last_id: int) -> str:
    """Opaque cursor for the last ledger id on a page."""
    return base64.b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Inverse of `cursor_encode`; an unreadable cursor restarts from the top."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


class DepositRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Top-up amount in cents")


class WithdrawRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Cash-out amount in cents")


class BalanceResponse(BaseModel):
    user_id: str
    balance_cents: int
    balance_display: str

    @classmethod
    def from_cents(cls, user_id: str, balance: int) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
        )


class DepositResponse(BaseModel):
    balance_cents: int
    balance_display: str
    deposited_cents: int
    deposited_display: str
    ledger_entry_id: int

    @classmethod
    def from_result(cls, balance: int, amount: int, entry_id: int) -> "DepositResponse":
        return cls(
            balance_cents=balance,
            balance_display=cents_to_display(balance),
            deposited_cents=amount,
            deposited_display=cents_to_display(amount),
            ledger_entry_id=entry_id,
        )


class WithdrawResponse(BaseModel):
    balance_cents: int
    balance_display: str
    withdrawn_cents: int
    withdrawn_display: str
    ledger_entry_id: int

    @classmethod
    def from_result(cls, balance: int, amount: int, entry_id: int) -> "WithdrawResponse":
        return cls(
            balance_cents=balance,
            balance_display=cents_to_display(balance),
            withdrawn_cents=amount,
            withdrawn_display=cents_to_display(amount),
            ledger_entry_id=entry_id,
        )


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    direction: str  # credit | debit
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    balance_after_display: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            entry_type=entry.entry_type,
            direction=entry.direction,
            amount_cents=entry.amount,
            amount_display=cents_to_display(entry.amount),
            balance_after_cents=entry.balance_after,
            balance_after_display=cents_to_display(entry.balance_after),
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
