"""Wallet and ledger records.

Amounts are integer cents. Ledger amounts are signed from the wallet owner's
side: holds, purchases and claw-backs are negative; releases, payouts and
refund credits are positive.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    id: str
    user_id: str
    balance_cents: int
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def covers(self, amount_cents: int) -> bool:
        return self.balance_cents >= amount_cents


@dataclass
class LedgerEntry:
    id: int
    user_id: str
    entry_type: str
    amount: int
    balance_after: int
    reference_type: str | None = None  # LISTING / OFFER / ORDER / DEPOSIT / WITHDRAW
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None

    @property
    def direction(self) -> str:
        return "credit" if self.amount > 0 else "debit"
