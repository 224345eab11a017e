from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from servicedesk.api.routes import metrics, ping, service_requests, tickets
from servicedesk.core.config import Settings, get_settings
from servicedesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from servicedesk.dependencies.auth import TokenRegistry
from servicedesk.metrics import metrics_registry
from servicedesk.notifications import (
    LoggingNotificationSender,
    NotificationDispatcher,
    NotificationSender,
    WebhookNotificationSender,
)
from servicedesk.requests import (
    InMemoryRequestStore,
    RequestLifecycleService,
    RequestStore,
    SequenceAllocator,
    SqlRequestStore,
)
from servicedesk.services.postgres import PostgresConnectionTester, to_sqlalchemy_url


def build_sender(settings: Settings) -> NotificationSender:
    if settings.notification_webhook_url:
        return WebhookNotificationSender(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        )
    return LoggingNotificationSender()


def build_lifecycle_service(
    settings: Settings, store: RequestStore, dispatcher: NotificationDispatcher
) -> RequestLifecycleService:
    return RequestLifecycleService(
        store,
        emitter=dispatcher,
        allocator=SequenceAllocator(
            store,
            max_attempts=settings.sequence_max_attempts,
            registry=metrics_registry,
        ),
        admin_recipient=settings.admin_notification_recipient,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
        registry=metrics_registry,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.metrics_registry = metrics_registry
    app.state.token_registry = TokenRegistry.from_settings(settings)
    if not len(app.state.token_registry):
        logger.warning("No API tokens configured; every request will be rejected")

    sender = build_sender(settings)
    dispatcher = NotificationDispatcher(
        sender,
        maxsize=settings.notification_queue_size,
        registry=metrics_registry,
    )
    app.state.notification_dispatcher = dispatcher

    db_engine: AsyncEngine | None = None
    postgres_tester: PostgresConnectionTester | None = None
    app.state.postgres_tester = None
    app.state.lifecycle_service = None
    try:
        if settings.storage_backend == "memory":
            store: RequestStore = InMemoryRequestStore()
            logger.info("Using in-memory request store")
        else:
            postgres_tester = PostgresConnectionTester(dsn=settings.postgres_dsn)
            app.state.postgres_tester = postgres_tester
            db_engine = create_async_engine(to_sqlalchemy_url(settings.postgres_dsn), future=True)
            session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
            store = SqlRequestStore(session_factory, engine=db_engine)
            await store.ensure_schema()
        app.state.lifecycle_service = build_lifecycle_service(settings, store, dispatcher)
    except Exception:
        # routes answer 503 until the store comes back on the next start
        logger.exception("Request store initialisation failed")
        if db_engine is not None:
            await db_engine.dispose()
            db_engine = None

    dispatcher.start()
    try:
        yield
    finally:
        await dispatcher.stop(drain=True)
        if isinstance(sender, WebhookNotificationSender):
            await sender.close()
        if db_engine is not None:
            await db_engine.dispose()
        if postgres_tester is not None:
            await postgres_tester.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    app.include_router(service_requests.router)
    return app


app = create_app()
