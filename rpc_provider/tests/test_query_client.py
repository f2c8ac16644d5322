"""Tests for the query client cache."""

import asyncio
import datetime
import gc

import pytest

from rpc_provider.cache import QueryClient, make_query_client
from rpc_provider.config import Settings


@pytest.fixture
def query_client():
    """Create a query client for testing."""
    return QueryClient(stale_seconds=30)


def _counting_fetcher(result):
    calls = {"count": 0}

    async def fetcher():
        calls["count"] += 1
        await asyncio.sleep(0)
        return result

    return fetcher, calls


@pytest.mark.asyncio
async def test_fetch_query_caches_result(query_client):
    """A fresh cached result is returned without calling the fetcher again."""
    fetcher, calls = _counting_fetcher({"id": 1})

    first = await query_client.fetch_query(["post"], fetcher)
    second = await query_client.fetch_query(["post"], fetcher)

    assert first == second == {"id": 1}
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_concurrent_fetches_are_deduplicated(query_client):
    """Concurrent fetches of one key share a single in-flight fetch."""
    fetcher, calls = _counting_fetcher("data")

    results = await asyncio.gather(*(query_client.fetch_query(["k"], fetcher) for _ in range(5)))

    assert results == ["data"] * 5
    assert calls["count"] == 1
    assert query_client.get_stats()["in_flight"] == 0


@pytest.mark.asyncio
async def test_stale_data_is_refetched(query_client):
    fetcher, calls = _counting_fetcher("data")

    await query_client.fetch_query(["k"], fetcher, stale_seconds=0)
    await query_client.fetch_query(["k"], fetcher, stale_seconds=0)

    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_fetch_error_is_recorded_and_raised(query_client):
    """Fetch errors propagate and leave the query in error state."""

    async def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await query_client.fetch_query(["bad"], failing)

    state = query_client.get_query_state(["bad"])
    assert state.status == "error"
    assert isinstance(state.error, RuntimeError)
    assert query_client.get_query_data(["bad"], default="fallback") == "fallback"


@pytest.mark.asyncio
async def test_failed_fetch_without_waiters_reports_nothing(query_client):
    """A fetch failing after its only caller was cancelled leaves no unretrieved error."""
    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    started = asyncio.Event()

    async def failing():
        started.set()
        await asyncio.sleep(0.01)
        raise RuntimeError("boom")

    try:
        caller = asyncio.ensure_future(query_client.fetch_query(["orphan"], failing))
        await started.wait()
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        await asyncio.sleep(0.05)
        del caller
        gc.collect()

        assert query_client.get_query_state(["orphan"]).status == "error"
        assert reported == []
    finally:
        loop.set_exception_handler(None)


@pytest.mark.asyncio
async def test_invalidate_queries_by_prefix(query_client):
    """Invalidated queries are fetched again; others stay cached."""
    post_fetcher, post_calls = _counting_fetcher("post")
    user_fetcher, user_calls = _counting_fetcher("user")
    post_key = [["post", "by_id"], {"input": {"id": 1}, "type": "query"}]
    user_key = [["user", "me"], {"type": "query"}]

    await query_client.fetch_query(post_key, post_fetcher)
    await query_client.fetch_query(user_key, user_fetcher)

    assert query_client.invalidate_queries([["post"]]) == 1

    await query_client.fetch_query(post_key, post_fetcher)
    await query_client.fetch_query(user_key, user_fetcher)
    assert post_calls["count"] == 2
    assert user_calls["count"] == 1


def test_set_and_get_query_data(query_client):
    query_client.set_query_data(["k", {"id": 1}], {"value": 42})

    assert query_client.get_query_data(["k", {"id": 1}]) == {"value": 42}
    assert query_client.get_query_data(["k", {"id": 2}]) is None


def test_key_hash_ignores_dict_order(query_client):
    assert query_client.hash_key(["k", {"a": 1, "b": 2}]) == query_client.hash_key(["k", {"b": 2, "a": 1}])


def test_remove_and_clear(query_client):
    query_client.set_query_data([["a", "x"]], 1)
    query_client.set_query_data([["a", "y"]], 2)
    query_client.set_query_data([["b"]], 3)

    assert query_client.remove_queries([["a"]]) == 2
    assert query_client.get_stats()["total_entries"] == 1

    query_client.clear()
    assert query_client.get_stats()["total_entries"] == 0


def test_stats(query_client):
    query_client.set_query_data(["fresh"], 1)
    query_client.set_query_data(["old"], 2, updated_at=0)

    stats = query_client.get_stats()
    assert stats["total_entries"] == 2
    assert stats["active_entries"] == 1
    assert stats["stale_entries"] == 1


def test_dehydrate_and_hydrate_rich_data(query_client):
    """Dehydrated state carries rich values into another client."""
    created = datetime.datetime(2024, 2, 29, 8, 0, tzinfo=datetime.timezone.utc)
    query_client.set_query_data([["post", "by_id"], {"input": {"id": 7}}], {"created": created, "tags": {"x"}})

    other = QueryClient()
    assert other.hydrate(query_client.dehydrate()) == 1

    data = other.get_query_data([["post", "by_id"], {"input": {"id": 7}}])
    assert data == {"created": created, "tags": {"x"}}


def test_hydrate_keeps_newer_local_data(query_client):
    query_client.set_query_data(["k"], "old", updated_at=100)
    dehydrated = query_client.dehydrate()

    other = QueryClient()
    other.set_query_data(["k"], "new")

    assert other.hydrate(dehydrated) == 0
    assert other.get_query_data(["k"]) == "new"


def test_make_query_client_uses_settings():
    client = make_query_client(Settings(query_stale_seconds=5))

    assert isinstance(client, QueryClient)
    assert client.stale_seconds == 5
    assert make_query_client() is not make_query_client()
