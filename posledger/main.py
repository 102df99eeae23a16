from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from posledger.config import Settings, settings as default_settings
from posledger.db import Database
from posledger.device import DeviceRuntime
from posledger.logging_config import configure_logging
from posledger.middleware import RequestIdMiddleware
from posledger.routers import ledger, reports, sales, sync


def _base_app(title: str, cfg: Settings, lifespan) -> FastAPI:
    app = FastAPI(title=title, version="0.1.0", lifespan=lifespan)
    app.state.secret = cfg.APP_SECRET

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    return app


def create_cloud_app(cfg: Settings | None = None, db: Database | None = None) -> FastAPI:
    """Cloud ingest + reporting service."""
    cfg = cfg or default_settings
    database = db or Database(cfg.CLOUD_DB_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(cfg.LOG_LEVEL)
        database.create_all()
        yield
        if db is None:
            database.dispose()

    app = _base_app("posledger cloud", cfg, lifespan)
    app.state.db = database
    app.include_router(sales.router)
    return app


def create_device_app(cfg: Settings | None = None, db: Database | None = None,
                      transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """On-device service: checkout, local ledger, reports and the outbox engine."""
    cfg = cfg or default_settings
    device = DeviceRuntime(cfg, db=db, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(cfg.LOG_LEVEL)
        device.db.create_all()
        device.purge_retention()
        if cfg.SYNC_ENABLED:
            device.engine.start()
        yield
        await device.aclose()

    app = _base_app("posledger device", cfg, lifespan)
    app.state.db = device.db
    app.state.device = device
    app.include_router(ledger.router)
    app.include_router(reports.router)
    app.include_router(sync.router)
    return app
