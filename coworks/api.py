import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coworks.core.errors import register_error_handlers
from coworks.core.settings import settings
from coworks.routers.health import router as health_router
from coworks.routers.bookings import router as bookings_router
from coworks.routers.coins import router as coins_router
from coworks.routers.payments import router as payments_router
from coworks.db import AsyncSessionLocal, init_db
from coworks.deps import get_gateway, get_ledger
from coworks.services.bookings import BookingOrchestrator
from coworks.services.cleanup import run_booking_cleanup


def create_app(init_database: bool = True) -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    app = FastAPI(title=f"{settings.APP_NAME} - Bookings & Payments")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if init_database:
        @app.on_event("startup")
        async def _startup():
            await init_db()
            if settings.BOOKING_CLEANUP_INTERVAL_SECONDS > 0:
                orchestrator = BookingOrchestrator(get_ledger(), get_gateway(), settings)
                app.state.cleanup_task = asyncio.create_task(
                    run_booking_cleanup(AsyncSessionLocal, orchestrator, settings.BOOKING_CLEANUP_INTERVAL_SECONDS)
                )

        @app.on_event("shutdown")
        async def _shutdown():
            task = getattr(app.state, "cleanup_task", None)
            if task is not None:
                task.cancel()

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(bookings_router)
    app.include_router(coins_router)
    app.include_router(payments_router)

    return app
