"""Remote procedure transport: client, batching link and transformer."""

from rpc_provider.transport.links import Link, Operation
from rpc_provider.transport.transformer import RichJSONTransformer, transformer
from rpc_provider.transport.batch_link import HttpBatchLink
from rpc_provider.transport.client import RpcClient, build_rpc_client

__all__ = [
    "Link",
    "Operation",
    "RichJSONTransformer",
    "transformer",
    "HttpBatchLink",
    "RpcClient",
    "build_rpc_client",
]
