"""Provider scope exposing the RPC client and query client to descendant code."""

from __future__ import annotations

import functools
import inspect
import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

import httpx

from rpc_provider.cache import QueryClient
from rpc_provider.config import Settings, settings as default_settings
from rpc_provider.core.endpoint import get_url
from rpc_provider.core.lifecycle import get_query_client
from rpc_provider.core.runtime import RuntimeContext, current_runtime_context
from rpc_provider.errors import ProviderScopeError
from rpc_provider.transport import RichJSONTransformer, RpcClient, build_rpc_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class OnceCell(Generic[T]):
    """Holds a value computed on first access and reused afterwards."""

    def __init__(self) -> None:
        self._value: Any = _MISSING

    @property
    def is_set(self) -> bool:
        return self._value is not _MISSING

    def get_or_init(self, init: Callable[[], T]) -> T:
        if self._value is _MISSING:
            self._value = init()
        return self._value

    def get(self) -> Optional[T]:
        return None if self._value is _MISSING else self._value


@dataclass
class RpcHandles:
    """The client pair visible inside a provider scope."""

    rpc_client: RpcClient
    query_client: QueryClient

    @staticmethod
    def query_key(path: str, input: Any = None) -> List[Any]:
        """Build the cache key of a query: ``[path segments, {input, type}]``."""
        params = {"type": "query"}
        if input is not None:
            params["input"] = input
        return [path.split("."), params]

    async def fetch(self, path: str, input: Any = None, stale_seconds: Optional[float] = None) -> Any:
        """Run a query through the query cache."""
        return await self.query_client.fetch_query(
            self.query_key(path, input),
            lambda: self.rpc_client.query(path, input),
            stale_seconds=stale_seconds,
        )

    async def mutate(self, path: str, input: Any = None) -> Any:
        """Run a mutation; mutations bypass the cache."""
        return await self.rpc_client.mutation(path, input)

    def invalidate(self, path: Optional[str] = None) -> int:
        """Invalidate cached queries under a path prefix (all when None)."""
        prefix = None if path is None else [path.split(".")]
        return self.query_client.invalidate_queries(prefix)


_current_handles: ContextVar[Optional[RpcHandles]] = ContextVar("rpc_handles", default=None)
# Tokens of the scopes entered in the current context, innermost last
_scope_tokens: ContextVar[Tuple[Token, ...]] = ContextVar("rpc_scope_tokens", default=())


class RpcProvider:
    """
    Mount point for the RPC client pair.

    Each activation asks the lifecycle policy for a query client; the RPC
    client is built on the first activation only and reused by every later one.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        context: Optional[RuntimeContext] = None,
        transformer: Optional[RichJSONTransformer] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            settings: Settings for endpoint resolution and transport limits
            context: Fixed runtime context (defaults to the current one at activation)
            transformer: Serializer for the transport link
            transport: Optional httpx transport override
        """
        self.settings = settings or default_settings
        self.context = context
        self.transformer = transformer
        self.transport = transport
        self._rpc_client: OnceCell[RpcClient] = OnceCell()

    def _build_client(self, context: RuntimeContext) -> RpcClient:
        endpoint = get_url(context, self.settings)
        logger.info("Creating RPC client for %s context (endpoint: %s)", context.value, endpoint)
        return build_rpc_client(endpoint, transformer=self.transformer, settings=self.settings, transport=self.transport)

    def activate(self) -> RpcHandles:
        """Resolve the client pair for this activation."""
        context = self.context or current_runtime_context(self.settings)
        query_client = get_query_client(context)
        rpc_client = self._rpc_client.get_or_init(lambda: self._build_client(context))
        return RpcHandles(rpc_client=rpc_client, query_client=query_client)

    def __enter__(self) -> RpcHandles:
        handles = self.activate()
        _scope_tokens.set(_scope_tokens.get() + (_current_handles.set(handles),))
        return handles

    def __exit__(self, exc_type, exc, tb) -> None:
        tokens = _scope_tokens.get()
        _scope_tokens.set(tokens[:-1])
        _current_handles.reset(tokens[-1])

    async def __aenter__(self) -> RpcHandles:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.__exit__(exc_type, exc, tb)

    def wrap(self, children: Callable[..., T]) -> Callable[..., T]:
        """Return a callable running children inside this provider's scope."""
        if inspect.iscoroutinefunction(children):

            @functools.wraps(children)
            async def async_wrapper(*args, **kwargs):
                # Token kept local: concurrent tasks may share this provider
                token = _current_handles.set(self.activate())
                try:
                    return await children(*args, **kwargs)
                finally:
                    _current_handles.reset(token)

            return async_wrapper

        @functools.wraps(children)
        def wrapper(*args, **kwargs):
            token = _current_handles.set(self.activate())
            try:
                return children(*args, **kwargs)
            finally:
                _current_handles.reset(token)

        return wrapper

    async def aclose(self) -> None:
        """Close the RPC client if one was built."""
        client = self._rpc_client.get()
        if client is not None:
            await client.aclose()


def use_rpc() -> RpcHandles:
    """
    Get the client pair of the nearest enclosing provider.

    Raises:
        ProviderScopeError: Called outside of any provider scope
    """
    handles = _current_handles.get()
    if handles is None:
        raise ProviderScopeError("use_rpc() must be called inside an RpcProvider scope")
    return handles
