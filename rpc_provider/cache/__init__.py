"""Query cache module."""

from rpc_provider.cache.query_client import QueryClient, QueryState, make_query_client

__all__ = ["QueryClient", "QueryState", "make_query_client"]
