import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wallet.api.deps import build_wallet_services
from wallet.api.router import api_router
from wallet.core.config import get_settings
from wallet.core.db import init_db
from wallet.services.sync import SyncScheduler

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_db()
    services = build_wallet_services()
    if settings.connectivity_probe_url:
        await services.connectivity.probe(
            settings.connectivity_probe_url,
            timeout=settings.connectivity_probe_timeout_seconds,
        )

    scheduler: SyncScheduler | None = None
    if settings.sync_scheduler_enabled:
        scheduler = SyncScheduler(services.sync_manager, settings.sync_interval_seconds)
        scheduler.start()

    logger.info("%s started (env=%s)", settings.app_name, settings.app_env)
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
