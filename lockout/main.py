import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lockout.api.lockouts import router as lockouts_router
from lockout.core.clock import Clock, utc_now
from lockout.core.config import Settings, settings as default_settings
from lockout.core.errors import (
    HTTPError,
    LockedError,
    http_error_handler,
    locked_error_handler,
    store_unavailable_handler,
)
from lockout.core.exceptions import StoreUnavailableError
from lockout.core.logging import setup_logging
from lockout.core.middleware import LockoutGateMiddleware
from lockout.core.redis import close_redis, get_redis
from lockout.db import session as db_session
from lockout.services.lockout import LockoutService
from lockout.services.notification import NotificationSink, build_sink
from lockout.services.stores import AttemptStore, build_store

logger = logging.getLogger(__name__)


def build_service(
    settings: Settings,
    store: AttemptStore | None = None,
    sink: NotificationSink | None = None,
    clock: Clock = utc_now,
) -> LockoutService:
    """Wire a LockoutService from settings, using the shared engine or Redis client as needed."""
    if store is None:
        store = build_store(
            settings,
            session_maker=db_session.get_session_maker() if settings.LOCKOUT_BACKEND == "database" else None,
            redis=get_redis(settings.REDIS_URL) if settings.LOCKOUT_BACKEND == "redis" else None,
            clock=clock,
        )
    return LockoutService(
        store,
        policy=settings.policy(),
        sink=sink if sink is not None else build_sink(settings),
        clock=clock,
    )


def create_app(
    settings: Settings | None = None,
    service: LockoutService | None = None,
) -> FastAPI:
    """
    Application factory.

    Mounts the admin router and the access-gate middleware around a single
    LockoutService. Host applications add their own login routes and call
    AuthEventListener from them.
    """
    settings = settings or default_settings
    owns_service = service is None
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        logger.info(
            "Lockout starting (backend=%s, max_attempts=%d, lock_duration=%s)",
            settings.LOCKOUT_BACKEND,
            settings.LOCKOUT_MAX_ATTEMPTS,
            settings.LOCKOUT_DURATION_MINUTES,
        )
        if owns_service and settings.LOCKOUT_BACKEND == "database" and settings.DEBUG:
            await db_session.create_tables(db_session.engine)

        yield

        await service.store.close()
        if owns_service:
            await close_redis()
            await db_session.dispose_engine()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.lockout_service = service

    app.add_exception_handler(HTTPError, http_error_handler)
    app.add_exception_handler(LockedError, locked_error_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)

    app.add_middleware(
        LockoutGateMiddleware,
        service=service,
        protected_paths=settings.LOCKOUT_PROTECTED_PATHS,
        identifier_field=settings.LOCKOUT_IDENTIFIER_FIELD,
        secondary_field=settings.LOCKOUT_SECONDARY_IDENTIFIER_FIELD,
        message=settings.LOCKOUT_MESSAGE,
        status_code=settings.LOCKOUT_STATUS_CODE,
        trust_forwarded=settings.LOCKOUT_TRUST_FORWARDED,
    )

    app.include_router(lockouts_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "backend": settings.LOCKOUT_BACKEND}

    return app
