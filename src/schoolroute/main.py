"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health, monitoring, routes
from .config import settings
from .container import ServiceContainer, build_container


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = container if container is not None else build_container(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        services.close()

    app = FastAPI(title=services.settings.app_name, root_path="", lifespan=lifespan)
    app.state.services = services

    if services.settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(services.settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Root endpoint for diagnostics
    @app.get("/")
    def root():
        return {
            "service": services.settings.app_name,
            "status": "running",
            "api_prefix": services.settings.api_prefix,
            "health": f"{services.settings.api_prefix}/health",
            "docs": "/docs",
        }

    prefix = services.settings.api_prefix
    app.include_router(health.router, prefix=prefix)
    app.include_router(routes.router, prefix=prefix)
    app.include_router(monitoring.router, prefix=prefix)
    return app


app = create_app()
