"""
Entry point for the accreditation portal backend.

This module creates the FastAPI application and includes all API
routers. Run with:

    uvicorn accreditation_portal.main:app --reload

"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from .core.db import engine
from .models import Base
from .scripts.run_migrations import run_migrations_to_head

from .api import api_router
from .core.config import get_app_env
from .core.errors import log_exception


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def create_app() -> FastAPI:
    app = FastAPI(title="Accreditation Portal", version="0.1.0")
    app.include_router(api_router)

    @app.on_event("startup")
    def _init_db() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        if _env_flag("AUTO_CREATE_DB"):
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        if _env_flag("AUTO_RUN_MIGRATIONS"):
            try:
                run_migrations_to_head()
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if env == "prod":
                    raise
        logger.info("Accreditation portal started env=%s", env)

    return app


app = create_app()
