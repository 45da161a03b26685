"""Service wiring.

Collaborators that must be shared (id generator, clock, conversation
recorder, offer releaser, search projector) are built once here and handed to
every service. The FastAPI lifespan stores the result on `app.state.container`;
routers fetch it through `get_container`.
"""

from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.mp_account.application.service import AccountApplicationService
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_admin.application.service import AdminApplicationService
from src.mp_common.database import async_session_factory
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.id_generator import IdGenerator, default_generator
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_conversation.application.service import ConversationApplicationService
from src.mp_conversation.domain.repository import ConversationRepositoryProtocol
from src.mp_conversation.infrastructure.persistence import ConversationRepository
from src.mp_listing.application.service import ListingApplicationService
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.infrastructure.persistence import ListingRepository
from src.mp_offer.application.release import OfferReleaser
from src.mp_offer.application.service import OfferApplicationService
from src.mp_offer.domain.pricing import NegotiationPolicy
from src.mp_offer.domain.repository import OfferRepositoryProtocol
from src.mp_offer.infrastructure.persistence import OfferRepository
from src.mp_order.application.service import OrderApplicationService
from src.mp_order.application.settlement import OrderOpener
from src.mp_order.domain.repository import OrderRepositoryProtocol
from src.mp_order.infrastructure.persistence import OrderRepository
from src.mp_search.backends import MeiliSearchBackend, NullBackend, SearchBackend
from src.mp_search.projector import SearchProjector
from src.mp_search.retry_queue import ProjectorRetryQueue
from src.mp_sweeper.expiry import ExpirySweeper


@dataclass
class Container:
    accounts: AccountApplicationService
    listings: ListingApplicationService
    offers: OfferApplicationService
    orders: OrderApplicationService
    conversations: ConversationApplicationService
    admin: AdminApplicationService
    sweeper: ExpirySweeper
    projector: SearchProjector


def build_projector(redis: aioredis.Redis | None = None) -> SearchProjector:
    backend: SearchBackend
    if settings.SEARCH_URL:
        backend = MeiliSearchBackend(
            settings.SEARCH_URL, settings.SEARCH_API_KEY, settings.SEARCH_INDEX
        )
    else:
        backend = NullBackend()
    queue = ProjectorRetryQueue(redis) if redis is not None else None
    return SearchProjector(backend, queue)


def build_container(
    *,
    projector: SearchProjector | None = None,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    clock: Clock = utc_now,
    ids: IdGenerator | None = None,
    policy: NegotiationPolicy | None = None,
    fee_bps: int | None = None,
    accounts: AccountRepositoryProtocol | None = None,
    listings: ListingRepositoryProtocol | None = None,
    offers: OfferRepositoryProtocol | None = None,
    orders: OrderRepositoryProtocol | None = None,
    threads: ConversationRepositoryProtocol | None = None,
) -> Container:
    ids = ids or default_generator()
    projector = projector or SearchProjector()
    accounts = accounts or AccountRepository()
    listings = listings or ListingRepository()
    offers = offers or OfferRepository()
    orders = orders or OrderRepository()

    recorder = ConversationRecorder(threads or ConversationRepository(), ids)
    releaser = OfferReleaser(offers, accounts, recorder)
    opener = OrderOpener(orders, releaser, recorder, ids)

    offer_service = OfferApplicationService(
        offers=offers, listings=listings, accounts=accounts,
        recorder=recorder, releaser=releaser, opener=opener,
        projector=projector, clock=clock, ids=ids, policy=policy,
    )
    sweeper = ExpirySweeper(session_factory, offer_service, repo=offers, clock=clock)
    return Container(
        accounts=AccountApplicationService(repo=accounts),
        listings=ListingApplicationService(
            listings=listings, releaser=releaser, recorder=recorder,
            projector=projector, clock=clock, ids=ids,
        ),
        offers=offer_service,
        orders=OrderApplicationService(
            orders=orders, listings=listings, accounts=accounts,
            recorder=recorder, opener=opener, projector=projector,
            clock=clock, ids=ids, fee_bps=fee_bps,
        ),
        conversations=ConversationApplicationService(
            recorder=recorder, listings=listings, clock=clock
        ),
        admin=AdminApplicationService(sweeper),
        sweeper=sweeper,
        projector=projector,
    )


def get_container(request: Request) -> Container:
    """FastAPI dependency: the container built in the application lifespan."""
    return request.app.state.container
