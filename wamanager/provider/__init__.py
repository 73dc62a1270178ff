"""Session provider module - messaging account connections.

Provides:
- SessionProvider: Provider protocol
- BaseSessionProvider: Queue-backed event stream base class
- MockSessionProvider: Scripted in-process provider
- create_provider: Engine registry lookup
"""

from wamanager.provider.base import BaseSessionProvider, SessionProvider
from wamanager.provider.factory import (
    ProviderFactory,
    available_providers,
    create_provider,
    get_provider_factory,
    register_provider,
)
from wamanager.provider.mock_provider import MockSessionProvider

__all__ = [
    "SessionProvider",
    "BaseSessionProvider",
    "MockSessionProvider",
    "ProviderFactory",
    "available_providers",
    "create_provider",
    "get_provider_factory",
    "register_provider",
]
