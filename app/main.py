from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Release orchestrator state on shutdown if the service was built."""
    from app.services.menu_collection_service import get_menu_collection_service

    try:
        yield
    finally:
        if get_menu_collection_service.cache_info().currsize:
            get_menu_collection_service().close()
            get_menu_collection_service.cache_clear()
            logging.getLogger(__name__).info("Menu collection service closed")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    from db.config import load_env_files

    load_env_files()
    _configure_logging()

    application = FastAPI(
        title="Lunchtable API",
        version="0.1.0",
        lifespan=_lifespan,
    )

    from app.api.routers import menus_router

    application.include_router(menus_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
