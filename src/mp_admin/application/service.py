"""Admin application service: invariant checks and on-demand sweeps."""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_sweeper.expiry import ExpirySweeper

logger = logging.getLogger(__name__)

# Balance equals the sum of the account's signed ledger entries
_LEDGER_MISMATCH_SQL = text("""
    SELECT a.user_id, a.balance_cents, COALESCE(SUM(l.amount), 0) AS ledger_sum
    FROM accounts a
    LEFT JOIN ledger_entries l ON l.user_id = a.user_id
    GROUP BY a.user_id, a.balance_cents
    HAVING a.balance_cents <> COALESCE(SUM(l.amount), 0)
""")

# Terminal offers never keep a hold
_TERMINAL_HELD_SQL = text("""
    SELECT id, status FROM offers
    WHERE status <> 'pending' AND funds_held = TRUE
""")

# Escrow is RELEASED exactly for DELIVERED orders
_ESCROW_MISMATCH_SQL = text("""
    SELECT id, status, escrow_status FROM orders
    WHERE (status = 'DELIVERED') <> (escrow_status = 'RELEASED')
""")


class AdminApplicationService:
    def __init__(self, sweeper: ExpirySweeper) -> None:
        self._sweeper = sweeper

    async def verify_invariants(self, db: AsyncSession) -> dict[str, Any]:
        violations: list[str] = []

        for row in (await db.execute(_LEDGER_MISMATCH_SQL)).fetchall():
            violations.append(
                f"ledger mismatch: user {row.user_id} balance {row.balance_cents} "
                f"!= ledger sum {row.ledger_sum}"
            )
        for row in (await db.execute(_TERMINAL_HELD_SQL)).fetchall():
            violations.append(
                f"held funds on terminal offer: offer {row.id} is {row.status} with funds held"
            )
        for row in (await db.execute(_ESCROW_MISMATCH_SQL)).fetchall():
            violations.append(
                f"escrow mismatch: order {row.id} is {row.status} with escrow {row.escrow_status}"
            )

        for msg in violations:
            logger.error(msg)
        return {"ok": not violations, "violations": violations}

    async def expire_offers_now(self) -> dict[str, int]:
        report = await self._sweeper.run_once()
        return {
            "due": report.due,
            "expired": report.expired,
            "skipped": report.skipped,
            "failed": report.failed,
        }
