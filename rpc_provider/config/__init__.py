"""Configuration module."""

from rpc_provider.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
