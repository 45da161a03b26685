"""ExpirySweeper: force-expire pending offers past their deadline.

Each offer is expired in its own session and transaction, so one failure
only skips that offer. The transition is conditional on `status = 'pending'`
and on the deadline, so a concurrent accept or decline that commits first
simply wins and the sweeper counts the offer as skipped.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_offer.application.service import OfferApplicationService
from src.mp_offer.domain.repository import OfferRepositoryProtocol
from src.mp_offer.infrastructure.persistence import OfferRepository

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    due: int = 0
    expired: int = 0
    skipped: int = 0
    failed: int = 0


class ExpirySweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        offers: OfferApplicationService,
        repo: OfferRepositoryProtocol | None = None,
        clock: Clock = utc_now,
        batch_size: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._offers = offers
        self._repo: OfferRepositoryProtocol = repo or OfferRepository()
        self._clock = clock
        self._batch_size = batch_size

    async def run_once(self) -> SweepReport:
        now = self._clock()
        async with self._session_factory() as db:
            due_ids = await self._repo.list_due_ids(db, now, self._batch_size)

        report = SweepReport(due=len(due_ids))
        for offer_id in due_ids:
            async with self._session_factory() as db:
                try:
                    expired = await self._offers.expire_offer(db, offer_id)
                except Exception as exc:
                    report.failed += 1
                    logger.warning("Expiry of offer %s failed: %s", offer_id, exc)
                    continue
            if expired is None:
                report.skipped += 1
            else:
                report.expired += 1

        if report.due:
            logger.info(
                "Offer sweep: due=%d expired=%d skipped=%d failed=%d",
                report.due, report.expired, report.skipped, report.failed,
            )
        return report
