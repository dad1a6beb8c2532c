# kiosk/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from kiosk.api.deps import get_payment_cache
from kiosk.api.routers import health, orders, payment_online, payments, users, webhooks
from kiosk.data import models  # noqa: F401  registers every table in Base.metadata
from kiosk.data.database import Base, engine
from kiosk.tasks.scheduler import IntervalScheduler
from kiosk.utils.settings import PAYMENT_CACHE_TTL_SECONDS, STORE_NAME
from kiosk.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Creating tables: {list(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)

    scheduler = IntervalScheduler()
    cache = app.dependency_overrides.get(get_payment_cache, get_payment_cache)()
    if cache.backend == "memory":
        # redis expires its own keys
        scheduler.add_job("sweep-payment-cache", PAYMENT_CACHE_TTL_SECONDS, cache.sweep)
    scheduler.start()

    yield

    scheduler.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{STORE_NAME} - Kiosk Orders",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(payment_online.router)
    app.include_router(webhooks.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
