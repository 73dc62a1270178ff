"""Shared API components.

The application lifespan installs the store, dispatcher and orchestrator
here; routes fetch them through the get_* accessors.
"""

from fastapi import HTTPException, status

from wamanager.orchestrator.manager import SessionOrchestrator
from wamanager.store.database import SessionStore
from wamanager.webhook.dispatcher import WebhookDispatcher

# Global components (installed on startup)
_store: SessionStore | None = None
_dispatcher: WebhookDispatcher | None = None
_orchestrator: SessionOrchestrator | None = None


def set_components(
    store: SessionStore,
    dispatcher: WebhookDispatcher,
    orchestrator: SessionOrchestrator,
) -> None:
    global _store, _dispatcher, _orchestrator
    _store = store
    _dispatcher = dispatcher
    _orchestrator = orchestrator


def clear_components() -> None:
    global _store, _dispatcher, _orchestrator
    _store = None
    _dispatcher = None
    _orchestrator = None


def _not_ready() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Service not initialized",
    )


def get_store() -> SessionStore:
    if _store is None:
        raise _not_ready()
    return _store


def get_dispatcher() -> WebhookDispatcher:
    if _dispatcher is None:
        raise _not_ready()
    return _dispatcher


def get_orchestrator() -> SessionOrchestrator:
    if _orchestrator is None:
        raise _not_ready()
    return _orchestrator


def find_orchestrator() -> SessionOrchestrator | None:
    """Orchestrator if installed, without raising."""
    return _orchestrator
