"""ASGI middleware mounting a per-request provider for server-side rendering."""

import logging
from typing import Tuple

from rpc_provider.config import Settings
from rpc_provider.core.endpoint import API_PATH
from rpc_provider.core.provider import RpcProvider
from rpc_provider.core.runtime import RuntimeContext, runtime_context

logger = logging.getLogger(__name__)


class RpcProviderMiddleware:
    """
    Wrap each HTTP request in a server-context provider scope.

    Handlers can then call ``use_rpc()``; every request gets its own query
    client and RPC client, and the client is closed once the response is sent.
    RPC endpoint, health and metrics requests are passed through untouched.

    Settings are read from ``app.state.settings``; an optional
    ``app.state.rpc_transport`` overrides the HTTP transport.
    """

    def __init__(self, app, exclude_prefixes: Tuple[str, ...] = (API_PATH, "/api/procedures", "/health", "/metrics")):
        self.app = app
        self.exclude_prefixes = exclude_prefixes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"].startswith(self.exclude_prefixes):
            await self.app(scope, receive, send)
            return

        state = scope["app"].state
        settings: Settings = state.settings
        provider = RpcProvider(
            settings=settings,
            context=RuntimeContext.SERVER,
            transport=getattr(state, "rpc_transport", None),
        )
        logger.debug("Mounting server provider for %s", scope["path"])
        with runtime_context(RuntimeContext.SERVER):
            try:
                async with provider:
                    await self.app(scope, receive, send)
            finally:
                await provider.aclose()
