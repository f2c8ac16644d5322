"""In-memory query cache shared by code running inside a provider scope."""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from rpc_provider.config import Settings, settings as default_settings
from rpc_provider.telemetry.metrics import query_cache_hits_total, query_cache_misses_total
from rpc_provider.transport.transformer import RichJSONTransformer

logger = logging.getLogger(__name__)

QueryKey = Sequence[Any]


@dataclass
class QueryState:
    """Cached state of a single query."""

    key: QueryKey
    status: str = "pending"
    data: Any = None
    error: Optional[BaseException] = None
    updated_at: float = 0.0
    invalidated: bool = False


class QueryClient:
    """Caches query results by key and deduplicates concurrent fetches."""

    def __init__(self, stale_seconds: float = 30.0, transformer: Optional[RichJSONTransformer] = None):
        """
        Initialize the query client.

        Args:
            stale_seconds: How long fetched data counts as fresh
            transformer: Serializer used for key hashing and (de)hydration
        """
        self.stale_seconds = stale_seconds
        self.transformer = transformer or RichJSONTransformer()
        self._queries: Dict[str, QueryState] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    def hash_key(self, key: QueryKey) -> str:
        """Return a stable string identity for a query key."""
        return json.dumps(self.transformer.serialize(list(key)), sort_keys=True, separators=(",", ":"))

    def _is_fresh(self, state: QueryState, stale_seconds: float) -> bool:
        if state.status != "success" or state.invalidated:
            return False
        return time.time() - state.updated_at < stale_seconds

    async def fetch_query(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[Any]],
        stale_seconds: Optional[float] = None,
    ) -> Any:
        """
        Return cached data for key, fetching it when missing or stale.

        Concurrent calls for the same key share one fetch.

        Args:
            key: Query key
            fetcher: Coroutine function producing fresh data
            stale_seconds: Override of the freshness window

        Returns:
            Query data
        """
        if stale_seconds is None:
            stale_seconds = self.stale_seconds
        query_hash = self.hash_key(key)

        state = self._queries.get(query_hash)
        if state is not None and self._is_fresh(state, stale_seconds):
            logger.debug(f"Query cache hit for key: {query_hash}")
            query_cache_hits_total.inc()
            return state.data

        task = self._in_flight.get(query_hash)
        if task is None:
            logger.debug(f"Query cache miss for key: {query_hash}")
            query_cache_misses_total.inc()
            task = asyncio.ensure_future(self._run_fetch(query_hash, key, fetcher))
            task.add_done_callback(_retrieve_exception)
            self._in_flight[query_hash] = task
        # A cancelled caller must not cancel the fetch other callers wait on
        return await asyncio.shield(task)

    async def _run_fetch(self, query_hash: str, key: QueryKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        state = self._queries.setdefault(query_hash, QueryState(key=key))
        try:
            data = await fetcher()
        except Exception as e:
            state.status = "error"
            state.error = e
            raise
        finally:
            self._in_flight.pop(query_hash, None)
        state.status = "success"
        state.data = data
        state.error = None
        state.updated_at = time.time()
        state.invalidated = False
        return data

    def get_query_data(self, key: QueryKey, default: Any = None) -> Any:
        """Return cached data for key regardless of freshness."""
        state = self._queries.get(self.hash_key(key))
        if state is None or state.status != "success":
            return default
        return state.data

    def get_query_state(self, key: QueryKey) -> Optional[QueryState]:
        return self._queries.get(self.hash_key(key))

    def set_query_data(self, key: QueryKey, data: Any, updated_at: Optional[float] = None) -> None:
        """Store data for key as freshly fetched."""
        query_hash = self.hash_key(key)
        state = self._queries.setdefault(query_hash, QueryState(key=key))
        state.status = "success"
        state.data = data
        state.error = None
        state.updated_at = time.time() if updated_at is None else updated_at
        state.invalidated = False

    def _matching(self, prefix: Optional[QueryKey]):
        for query_hash, state in self._queries.items():
            if prefix is None or _key_matches(state.key, prefix):
                yield query_hash, state

    def invalidate_queries(self, prefix: Optional[QueryKey] = None) -> int:
        """
        Mark queries as stale so the next fetch goes to the network.

        Args:
            prefix: Key prefix to match (None = all queries)

        Returns:
            Number of queries invalidated
        """
        count = 0
        for _query_hash, state in self._matching(prefix):
            state.invalidated = True
            count += 1
        if count > 0:
            logger.info(f"Invalidated {count} cached queries")
        return count

    def remove_queries(self, prefix: Optional[QueryKey] = None) -> int:
        """Drop matching queries from the cache."""
        removed = [query_hash for query_hash, _state in self._matching(prefix)]
        for query_hash in removed:
            self._queries.pop(query_hash, None)
        return len(removed)

    def clear(self) -> None:
        """Clear all cached queries."""
        self._queries.clear()
        logger.info("Cleared all cached queries")

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        total = len(self._queries)
        fresh = len([1 for state in self._queries.values() if self._is_fresh(state, self.stale_seconds)])
        return {
            "total_entries": total,
            "active_entries": fresh,
            "stale_entries": total - fresh,
            "in_flight": len(self._in_flight),
        }

    def dehydrate(self) -> Dict[str, Any]:
        """
        Export successful queries in a transferable form.

        Used on the server to hand rendered data over to a browser session.
        Pending queries are skipped since an unfinished fetch cannot be sent.
        """
        queries = []
        for query_hash, state in self._queries.items():
            if state.status != "success":
                continue
            queries.append(
                {
                    "queryHash": query_hash,
                    "queryKey": self.transformer.serialize(list(state.key)),
                    "state": {
                        "status": state.status,
                        "data": self.transformer.serialize(state.data),
                        "dataUpdatedAt": int(state.updated_at * 1000),
                    },
                }
            )
        return {"queries": queries}

    def hydrate(self, dehydrated: Dict[str, Any]) -> int:
        """
        Import queries produced by dehydrate.

        Existing entries are only overwritten by newer data.

        Returns:
            Number of queries imported
        """
        imported = 0
        for entry in dehydrated.get("queries", []):
            key = self.transformer.deserialize(entry["queryKey"])
            state = entry["state"]
            updated_at = state.get("dataUpdatedAt", 0) / 1000
            existing = self.get_query_state(key)
            if existing is not None and existing.status == "success" and existing.updated_at >= updated_at:
                continue
            self.set_query_data(key, self.transformer.deserialize(state["data"]), updated_at=updated_at)
            imported += 1
        return imported


def _retrieve_exception(task: asyncio.Task) -> None:
    # The error is kept on the query state even when every waiter is gone
    if not task.cancelled():
        task.exception()


def _key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    """Check whether key starts with prefix; nested sequences match by prefix too."""
    if len(prefix) > len(key):
        return False
    for own, wanted in zip(key, prefix):
        if isinstance(own, (list, tuple)) and isinstance(wanted, (list, tuple)):
            if not _key_matches(own, wanted):
                return False
        elif own != wanted:
            return False
    return True


def make_query_client(settings: Optional[Settings] = None) -> QueryClient:
    """Create a fresh query client. Construction only, no I/O."""
    settings = settings or default_settings
    return QueryClient(stale_seconds=settings.query_stale_seconds)
