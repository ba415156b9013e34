"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from property_service.app.container import AppContainer, build_container
from property_service.app.exception_handlers import configure_exception_handlers
from property_service.app.lifespan import lifespan
from property_service.app.router import setup_routers
from property_service.core.settings import get_settings

if TYPE_CHECKING:
    from property_service.core.settings import Settings


def create_app(settings: Settings | None = None, *, container: AppContainer | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings override; defaults to the cached unified settings.
        container: Pre-built container (tests wire fakes through it).

    Returns:
        Configured FastAPI application instance.
    """
    if container is None:
        container = build_container(settings or get_settings())
    settings = container.settings
    app_settings = settings.app

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )
    app.state.container = container

    # Configure exception handlers (must be before routers)
    configure_exception_handlers(app)

    setup_routers(app, settings)

    return app
