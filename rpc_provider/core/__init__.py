"""Core lifecycle, endpoint and provider components."""

from rpc_provider.core.runtime import RuntimeContext, current_runtime_context, runtime_context
from rpc_provider.core.lifecycle import (
    BrowserLifecyclePolicy,
    LifecyclePolicy,
    ServerLifecyclePolicy,
    get_query_client,
    policy_for,
    reset_browser_query_client,
)
from rpc_provider.core.endpoint import API_PATH, get_url, resolve_base_url
from rpc_provider.core.provider import OnceCell, RpcHandles, RpcProvider, use_rpc

__all__ = [
    "RuntimeContext",
    "current_runtime_context",
    "runtime_context",
    "LifecyclePolicy",
    "ServerLifecyclePolicy",
    "BrowserLifecyclePolicy",
    "get_query_client",
    "policy_for",
    "reset_browser_query_client",
    "API_PATH",
    "get_url",
    "resolve_base_url",
    "OnceCell",
    "RpcHandles",
    "RpcProvider",
    "use_rpc",
]
