"""WA Manager - FastAPI Application Entry Point.

Multi-device messaging session orchestrator with per-device webhook relay.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wamanager import __version__
from wamanager.api import dependencies
from wamanager.api.errors import register_exception_handlers
from wamanager.api.routes import devices, health, stats
from wamanager.config.settings import get_settings
from wamanager.observability.logging import get_logger, init_logging
from wamanager.orchestrator.manager import SessionOrchestrator
from wamanager.provider.factory import get_provider_factory
from wamanager.store.database import SessionStore
from wamanager.webhook.dispatcher import WebhookDispatcher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup opens the store, builds the dispatcher and orchestrator and
    starts persisted devices in the background. Shutdown tears every
    session down before closing the store.
    """
    settings = get_settings()
    init_logging(json_format=settings.environment == "production", level=settings.log_level)
    logger.info(
        "wamanager_starting",
        version=__version__,
        environment=settings.environment,
        port=settings.api_port,
        provider_engine=settings.provider_engine,
    )

    try:
        store = SessionStore(settings.database_path)
        health.set_component_health("store", True)

        dispatcher = WebhookDispatcher(
            store,
            timeout_s=settings.webhook_timeout_s,
            user_agent=settings.webhook_user_agent,
        )
        health.set_component_health("dispatcher", True)

        orchestrator = SessionOrchestrator(
            store=store,
            provider_factory=get_provider_factory(settings.provider_engine),
            dispatcher=dispatcher,
            provider_options=settings.provider_options(),
        )
        health.set_component_health("orchestrator", True)

        dependencies.set_components(store, dispatcher, orchestrator)
    except Exception as e:
        logger.error("wamanager_startup_failed", error=str(e))
        raise

    init_task: asyncio.Task | None = None
    if settings.initialize_on_startup:
        init_task = asyncio.create_task(orchestrator.initialize_devices(), name="initialize-devices")

    health.set_ready(True)
    logger.info("wamanager_ready", components=health.get_component_health())

    yield  # Application runs here

    logger.info("wamanager_shutting_down")
    health.set_ready(False)

    if init_task is not None and not init_task.done():
        init_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await init_task

    await orchestrator.disconnect_all()
    await dispatcher.aclose()
    store.close()

    dependencies.clear_components()
    for component in health.get_component_health():
        health.set_component_health(component, False)

    logger.info("wamanager_shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="WA Manager",
        description="Multi-device messaging session orchestrator with webhook relay",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(devices.router)
    app.include_router(stats.router)

    register_exception_handlers(app)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "wamanager.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=settings.environment == "development",
    )
