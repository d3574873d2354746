"""FastAPI application entrypoint for the promo code ledger API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from api.routes.codes import router as codes_router
from api.routes.data import router as data_router
from api.routes.notifications import router as notifications_router
from api.services.code_store import CodeStore
from core.logging_config import setup_logging
from core.settings import Settings, get_settings
from scheduler.notifier import InboxNotifier
from scheduler.service import NotificationScheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: CodeStore = app.state.store
    scheduler: NotificationScheduler = app.state.scheduler
    scheduler.start(store.get_all_codes(), store.get_notification_settings())
    try:
        yield
    finally:
        scheduler.stop()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CodeStore] = None,
    notifier: Optional[InboxNotifier] = None,
    scheduler: Optional[NotificationScheduler] = None,
) -> FastAPI:
    """Build the application and the long-lived objects it owns."""

    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Promo Code Ledger",
        version="0.1.0",
        description=(
            "Track promotional activation codes, see how long the current codes keep "
            "you covered, and get reminded before codes expire or lapse unused."
        ),
        lifespan=lifespan,
    )
    notifier = notifier or InboxNotifier(max_messages=settings.notification_history)
    app.state.settings = settings
    app.state.store = store or CodeStore(settings.data_path)
    app.state.notifier = notifier
    app.state.scheduler = scheduler or NotificationScheduler(
        notifier,
        rescan_interval=settings.rescan_interval_seconds,
        max_timer_delay=timedelta(milliseconds=settings.max_timer_delay_ms),
        display_timezone=settings.display_timezone,
    )

    app.include_router(codes_router)
    app.include_router(data_router)
    app.include_router(notifications_router)

    @app.get("/health")
    def healthcheck() -> dict[str, str]:
        """Simple readiness probe used by deployment tooling."""

        return {"status": "ok"}

    return app


app = create_app()
