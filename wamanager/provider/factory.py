"""Provider Factory - Engine registry.

Maps the configured provider engine name to a constructor. The bundled
"mock" engine needs no external services; real providers register
themselves with register_provider().
"""

from typing import Any, Callable

from wamanager.exceptions import InvalidConfigError
from wamanager.observability.logging import get_logger
from wamanager.provider.base import SessionProvider
from wamanager.provider.mock_provider import MockSessionProvider

logger = get_logger(__name__)

ProviderFactory = Callable[[str, dict[str, Any]], SessionProvider]

_REGISTRY: dict[str, ProviderFactory] = {
    "mock": MockSessionProvider,
}


def register_provider(engine: str, factory: ProviderFactory) -> None:
    """Register a provider constructor under an engine name."""
    if engine in _REGISTRY:
        logger.warning("provider_overridden", engine=engine)
    _REGISTRY[engine] = factory


def available_providers() -> list[str]:
    """Registered engine names."""
    return sorted(_REGISTRY)


def get_provider_factory(engine: str) -> ProviderFactory:
    """Look up the constructor for an engine.

    Raises:
        InvalidConfigError: If the engine is not registered
    """
    try:
        return _REGISTRY[engine]
    except KeyError:
        raise InvalidConfigError(
            "provider_engine",
            engine,
            f"unknown provider engine (available: {', '.join(available_providers())})",
        )


def create_provider(
    engine: str,
    device_id: str,
    options: dict[str, Any] | None = None,
) -> SessionProvider:
    """Create a provider instance for one device.

    Args:
        engine: Registered engine name
        device_id: Device the provider is bound to
        options: Opaque provider configuration

    Returns:
        New, unconnected provider
    """
    return get_provider_factory(engine)(device_id, dict(options or {}))
