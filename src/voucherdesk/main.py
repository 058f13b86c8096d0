"""FastAPI application entrypoint for voucherdesk."""

import logging

from fastapi import FastAPI

from .api.v1.router import api_router
from .core.config import get_settings
from .core.database import create_schema
from .jobs import register_scheduler


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Voucherdesk API", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")

    if settings.auto_create_schema:
        @app.on_event("startup")
        def ensure_schema() -> None:
            create_schema()

    register_scheduler(app)
    return app


app = create_app()
