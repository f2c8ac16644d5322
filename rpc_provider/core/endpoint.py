"""Endpoint resolution for the RPC transport."""

from typing import Optional

from rpc_provider.config import Settings, settings as default_settings
from rpc_provider.core.runtime import RuntimeContext, current_runtime_context
from rpc_provider.errors import ConfigurationError

API_PATH = "/api/trpc"


def resolve_base_url(context: Optional[RuntimeContext] = None, settings: Optional[Settings] = None) -> str:
    """
    Resolve the base URL the endpoint path is appended to.

    Args:
        context: Runtime context (defaults to the current one)
        settings: Settings holding APP_URL

    Returns:
        "" in a browser session (same origin), the configured APP_URL on the server

    Raises:
        ConfigurationError: APP_URL is not set in the server context
    """
    settings = settings or default_settings
    if context is None:
        context = current_runtime_context(settings)
    if RuntimeContext(context) is RuntimeContext.BROWSER:
        return ""
    if not settings.app_url:
        raise ConfigurationError("APP_URL must be set to render in the server context")
    return settings.app_url.rstrip("/")


def get_url(context: Optional[RuntimeContext] = None, settings: Optional[Settings] = None) -> str:
    """Get the full RPC endpoint URL for a runtime context."""
    return f"{resolve_base_url(context, settings)}{API_PATH}"
