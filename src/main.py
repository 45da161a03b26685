"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.container import build_container, build_projector
from src.mp_account.api.router import router as account_router
from src.mp_admin.api.router import router as admin_router
from src.mp_common.database import engine, ping_database
from src.mp_common.errors import AppError
from src.mp_common.redis_client import close_redis, get_redis
from src.mp_common.response import error_response
from src.mp_conversation.api.router import router as conversation_router
from src.mp_gateway.api.router import router as auth_router
from src.mp_gateway.middleware.request_log import RequestLogMiddleware
from src.mp_listing.api.router import router as listing_router
from src.mp_offer.api.router import router as offer_router
from src.mp_order.api.router import router as order_router
from src.mp_sweeper.scheduler import build_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, wire services, start background jobs. Shutdown: reverse."""
    await ping_database()
    redis = await get_redis()

    projector = build_projector(redis)
    container = build_container(projector=projector)
    app.state.container = container

    scheduler = build_scheduler(
        container.sweeper,
        projector,
        settings.OFFER_SWEEP_INTERVAL_MINUTES,
        settings.SEARCH_RETRY_INTERVAL_MINUTES,
    )
    scheduler.start()
    logger.info("%s started", settings.APP_NAME)
    yield
    scheduler.shutdown(wait=False)
    await projector.aclose()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(request, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(auth_router, prefix="/api/v1")
app.include_router(account_router, prefix="/api/v1")
app.include_router(listing_router, prefix="/api/v1")
app.include_router(offer_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")
app.include_router(conversation_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
