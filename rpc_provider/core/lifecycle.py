"""Lifecycle policies deciding when a query client is created or reused."""

import logging
import threading
from typing import Callable, Optional

from rpc_provider.cache import QueryClient, make_query_client
from rpc_provider.core.runtime import RuntimeContext, current_runtime_context
from rpc_provider.telemetry.metrics import query_clients_created_total

logger = logging.getLogger(__name__)

QueryClientFactory = Callable[[], QueryClient]


class LifecyclePolicy:
    """Base class for query client lifecycle policies."""

    context: RuntimeContext

    def __init__(self, factory: QueryClientFactory = make_query_client):
        self.factory = factory

    def acquire(self) -> QueryClient:
        raise NotImplementedError

    def _create(self) -> QueryClient:
        query_clients_created_total.labels(context=self.context.value).inc()
        return self.factory()


class ServerLifecyclePolicy(LifecyclePolicy):
    """
    Always creates a new query client.

    A server context serves one request; reusing a client would leak cached
    results between unrelated requests.
    """

    context = RuntimeContext.SERVER

    def acquire(self) -> QueryClient:
        return self._create()


class BrowserLifecyclePolicy(LifecyclePolicy):
    """
    Creates the query client once per session and hands back the same one after.

    Initialization may be re-run speculatively (an interrupted render, a
    retried activation); returning the stored client keeps results already
    cached and fetches already in flight.
    """

    context = RuntimeContext.BROWSER

    def __init__(self, factory: QueryClientFactory = make_query_client):
        super().__init__(factory)
        self._slot: Optional[QueryClient] = None
        self._lock = threading.Lock()

    def acquire(self) -> QueryClient:
        if self._slot is None:
            with self._lock:
                # Double-check after acquiring lock
                if self._slot is None:
                    self._slot = self._create()
                    logger.info("Browser query client created")
        return self._slot

    def reset(self) -> None:
        """Empty the slot so the next acquire creates a new client."""
        with self._lock:
            self._slot = None


# Process-wide policies; the browser one owns the session's single slot
_server_policy = ServerLifecyclePolicy()
_browser_policy = BrowserLifecyclePolicy()


def policy_for(context: RuntimeContext) -> LifecyclePolicy:
    """Return the lifecycle policy of a runtime context."""
    if RuntimeContext(context) is RuntimeContext.SERVER:
        return _server_policy
    return _browser_policy


def get_query_client(context: Optional[RuntimeContext] = None) -> QueryClient:
    """
    Get the query client for a runtime context.

    Args:
        context: Runtime context (defaults to the current one)

    Returns:
        A new client in the server context, the session's client in the browser
    """
    if context is None:
        context = current_runtime_context()
    return policy_for(context).acquire()


def reset_browser_query_client() -> None:
    """Reset the browser slot (useful for testing)."""
    _browser_policy.reset()
