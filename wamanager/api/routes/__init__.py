"""API routers."""

from wamanager.api.routes import devices, health, stats

__all__ = ["devices", "health", "stats"]
