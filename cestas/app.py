"""
FastAPI application entry point for the distribution service.
"""

from __future__ import annotations

from fastapi import FastAPI

from cestas.config import get_settings
from cestas.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Cestas Básicas Backend", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
