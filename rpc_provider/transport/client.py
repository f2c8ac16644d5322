"""Remote procedure client and its assembly."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from rpc_provider.config import Settings, settings as default_settings
from rpc_provider.transport.batch_link import HeadersOption, HttpBatchLink
from rpc_provider.transport.links import Link, Operation
from rpc_provider.transport.transformer import RichJSONTransformer

logger = logging.getLogger(__name__)


class RpcClient:
    """
    Client issuing procedure calls through a chain of links.

    Calls can be made by path or through attribute proxies::

        await client.query("post.by_id", {"id": 1})
        await client.post.by_id.query({"id": 1})
    """

    def __init__(self, links: List[Link]):
        if not links:
            raise ValueError("RpcClient requires at least one link")
        self.links = list(links)

    async def query(self, path: str, input: Any = None, context: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(Operation(type="query", path=path, input=input, context=dict(context or {})))

    async def mutation(self, path: str, input: Any = None, context: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(Operation(type="mutation", path=path, input=input, context=dict(context or {})))

    async def request(self, op: Operation) -> Any:
        """Run an operation through the link chain."""
        return await self._execute(op, 0)

    async def _execute(self, op: Operation, index: int) -> Any:
        async def forward(next_op: Operation) -> Any:
            if index + 1 >= len(self.links):
                raise RuntimeError("The last link in the chain must not forward operations")
            return await self._execute(next_op, index + 1)

        return await self.links[index].request(op, forward)

    async def aclose(self) -> None:
        """Close every link in the chain."""
        for link in self.links:
            await link.aclose()

    def __getattr__(self, name: str) -> "_ProcedureProxy":
        if name.startswith("_"):
            raise AttributeError(name)
        return _ProcedureProxy(self, (name,))


class _ProcedureProxy:
    """Builds a dotted procedure path from attribute access."""

    def __init__(self, client: RpcClient, segments: Tuple[str, ...]):
        self._client = client
        self._segments = segments

    @property
    def path(self) -> str:
        return ".".join(self._segments)

    def __getattr__(self, name: str) -> "_ProcedureProxy":
        if name.startswith("_"):
            raise AttributeError(name)
        return _ProcedureProxy(self._client, self._segments + (name,))

    async def query(self, input: Any = None, context: Optional[Dict[str, Any]] = None) -> Any:
        return await self._client.query(self.path, input, context)

    async def mutate(self, input: Any = None, context: Optional[Dict[str, Any]] = None) -> Any:
        return await self._client.mutation(self.path, input, context)

    def __repr__(self) -> str:
        return f"<procedure {self.path}>"


def build_rpc_client(
    endpoint: str,
    transformer: Optional[RichJSONTransformer] = None,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    headers: HeadersOption = None,
) -> RpcClient:
    """
    Build a client with a single batching HTTP link.

    Args:
        endpoint: Endpoint URL; a relative one resolves against settings.app_origin
        transformer: Serializer for inputs and results (rich JSON by default)
        settings: Settings providing timeout and batch limits
        transport: Optional httpx transport override
        headers: Extra request headers or a callable producing them

    Returns:
        RpcClient bound to the endpoint
    """
    settings = settings or default_settings
    link = HttpBatchLink(
        url=endpoint,
        transformer=transformer or RichJSONTransformer(),
        max_items=settings.max_batch_items,
        max_url_length=settings.max_url_length,
        headers=headers,
        timeout=settings.rpc_timeout_seconds,
        base_url=settings.app_origin,
        transport=transport,
    )
    logger.debug("Built RPC client for endpoint %s", endpoint)
    return RpcClient(links=[link])
