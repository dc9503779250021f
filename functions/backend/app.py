"""
FastAPI application entry point for the content service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from backend.config import get_settings
from backend.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Stem-Com Content Service", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
