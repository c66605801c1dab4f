from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.api_v1 import api_router
from app.api.api_v1.endpoints import admin
from app.core.config import Settings, settings as default_settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.core.middleware import register_middleware
from app.core.rate_limiter import RateLimiter
from app.db.session import ServiceContext


def create_app(settings: Optional[Settings] = None, *, configure_logging: bool = True) -> FastAPI:
    settings = settings or default_settings
    if configure_logging:
        setup_logging(settings.LOG_LEVEL)

    context = ServiceContext.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        context.init_storage()
        try:
            yield
        finally:
            context.dispose()

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.context = context
    app.state.rate_limiter = RateLimiter(settings.RATE_LIMIT_PER_MINUTE)

    register_middleware(app, settings, app.state.rate_limiter)
    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(admin.router)

    # Read-only; StaticFiles never lists directories without html=True.
    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()
