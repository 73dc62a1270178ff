"""Session store module - persistent device configuration and activity."""

from wamanager.store.database import SessionStore

__all__ = ["SessionStore"]
