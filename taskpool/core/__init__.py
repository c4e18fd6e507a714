"""Core: config, constants, lifespan and the service composition root."""

from taskpool.core.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
