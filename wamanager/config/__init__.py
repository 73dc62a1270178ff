"""Configuration module."""

from wamanager.config.constants import LIMITS, ManagerLimits
from wamanager.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "ManagerLimits", "LIMITS"]
