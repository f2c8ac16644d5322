"""Settings and configuration for the RPC provider."""

import logging
import os
from typing import Optional
from dataclasses import dataclass, field

_settings_logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Safely parse an integer from an environment variable.

    Args:
        env_var: Name of the environment variable.
        default: Default value as a string.

    Returns:
        Parsed integer value, or default if parsing fails.
    """
    value = os.getenv(env_var, default)
    try:
        return int(value)
    except ValueError:
        _settings_logger.warning("Invalid value '%s' for %s, using default %s", value, env_var, default)
        return int(default)


def _safe_float(env_var: str, default: str) -> float:
    """Safely parse a float from an environment variable."""
    value = os.getenv(env_var, default)
    try:
        return float(value)
    except ValueError:
        _settings_logger.warning("Invalid value '%s' for %s, using default %s", value, env_var, default)
        return float(default)


def _parse_runtime_context() -> str:
    """Parse RUNTIME_CONTEXT, accepting only 'server' or 'browser'.

    Returns:
        Lower-cased context name. Unknown values fall back to 'browser'.
    """
    value = os.getenv("RUNTIME_CONTEXT", "browser").strip().lower()
    if value not in ("server", "browser"):
        _settings_logger.warning("Invalid RUNTIME_CONTEXT '%s' (expected server or browser), using browser", value)
        return "browser"
    return value


@dataclass
class Settings:
    """Configuration settings for the RPC provider."""

    # Absolute base URL used when rendering on the server (no default: must be configured)
    app_url: Optional[str] = field(default_factory=lambda: os.getenv("APP_URL") or None)

    # Origin that relative endpoints resolve against in a browser session
    app_origin: str = field(default_factory=lambda: os.getenv("APP_ORIGIN", "http://localhost:8000"))

    # Context assumed when none is bound explicitly
    runtime_context: str = field(default_factory=_parse_runtime_context)

    # Transport configuration
    rpc_timeout_seconds: float = field(default_factory=lambda: _safe_float("RPC_TIMEOUT_SECONDS", "10"))
    # 0 means unlimited
    rpc_max_batch_items: int = field(default_factory=lambda: _safe_int("RPC_MAX_BATCH_ITEMS", "0"))
    rpc_max_url_length: int = field(default_factory=lambda: _safe_int("RPC_MAX_URL_LENGTH", "0"))

    # Query cache configuration
    query_stale_seconds: float = field(default_factory=lambda: _safe_float("QUERY_STALE_SECONDS", "30"))

    # Local server configuration
    server_host: str = field(default_factory=lambda: os.getenv("SERVER_HOST", "0.0.0.0"))
    server_port: int = field(default_factory=lambda: _safe_int("SERVER_PORT", "8000"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def max_batch_items(self) -> Optional[int]:
        """Maximum calls per batch, or None when unlimited."""
        return self.rpc_max_batch_items if self.rpc_max_batch_items > 0 else None

    @property
    def max_url_length(self) -> Optional[int]:
        """Maximum length of a batched query URL, or None when unlimited."""
        return self.rpc_max_url_length if self.rpc_max_url_length > 0 else None


# Global settings instance
settings = Settings()
