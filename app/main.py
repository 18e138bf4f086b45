from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.v1 import get_api_router
from app.core.config import get_settings
from app.core.db import create_engine, create_session_factory
from app.core.errors import install_error_handlers
from app.core.logging import configure_logging, get_logger, level_from_name
from app.core.storage import get_storage
from app.ingest.process import SubprocessRunner


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    logger = get_logger(component="app")

    Path(settings.scratch_root).mkdir(parents=True, exist_ok=True)
    assets_root = Path(settings.assets_root)
    assets_root.mkdir(parents=True, exist_ok=True)

    storage = get_storage(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    runner = SubprocessRunner(timeout_s=settings.tool_timeout_s)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.process_runner = runner
        logger.info("app_started", environment=settings.environment, storage_backend=settings.storage_backend)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    install_error_handlers(app)
    app.include_router(get_api_router())
    app.mount("/assets", StaticFiles(directory=assets_root), name="assets")
    return app


__all__ = ["create_app"]
