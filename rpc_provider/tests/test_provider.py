"""Tests for the provider scope and lookup hook."""

import asyncio

import httpx
import pytest

from rpc_provider.config import Settings
from rpc_provider.core import RpcProvider, RuntimeContext, reset_browser_query_client, runtime_context, use_rpc
from rpc_provider.errors import ConfigurationError, ProviderScopeError
from rpc_provider.transport import RichJSONTransformer

transformer = RichJSONTransformer()


@pytest.fixture(autouse=True)
def clean_browser_slot():
    reset_browser_query_client()
    yield
    reset_browser_query_client()


@pytest.fixture
def settings():
    return Settings(app_url="https://example.com", app_origin="http://session.local")


def _counting_transport(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        paths = request.url.path.rsplit("/", 1)[-1].split(",")
        return httpx.Response(200, json=[{"result": {"data": transformer.serialize({"path": path})}} for path in paths])

    return httpx.MockTransport(handler)


def test_rpc_client_stable_across_activations(settings):
    """Re-activating a provider returns the identical RPC client."""
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    first = provider.activate()
    second = provider.activate()

    assert first.rpc_client is second.rpc_client
    assert first.query_client is second.query_client


def test_server_provider_gets_fresh_query_client_per_activation(settings):
    provider = RpcProvider(settings=settings, context=RuntimeContext.SERVER)

    first = provider.activate()
    second = provider.activate()

    assert first.rpc_client is second.rpc_client
    assert first.query_client is not second.query_client
    assert first.rpc_client.links[0].url == "https://example.com/api/trpc"


def test_browser_providers_share_query_client(settings):
    """Separate browser mounts share the session's query client but not RPC clients."""
    one = RpcProvider(settings=settings, context=RuntimeContext.BROWSER).activate()
    two = RpcProvider(settings=settings, context=RuntimeContext.BROWSER).activate()

    assert one.query_client is two.query_client
    assert one.rpc_client is not two.rpc_client
    assert one.rpc_client.links[0].url == "/api/trpc"


def test_server_provider_without_app_url():
    provider = RpcProvider(settings=Settings(app_url=None), context=RuntimeContext.SERVER)

    with pytest.raises(ConfigurationError):
        provider.activate()


def test_provider_uses_bound_context(settings):
    provider = RpcProvider(settings=settings)

    with runtime_context(RuntimeContext.SERVER):
        handles = provider.activate()

    assert handles.rpc_client.links[0].url == "https://example.com/api/trpc"


def test_use_rpc_outside_scope_raises():
    with pytest.raises(ProviderScopeError):
        use_rpc()


def test_use_rpc_inside_scope(settings):
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    with provider as handles:
        assert use_rpc() is handles

    with pytest.raises(ProviderScopeError):
        use_rpc()


def test_nested_providers_innermost_wins(settings):
    outer = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)
    inner = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    with outer as outer_handles:
        with inner as inner_handles:
            assert use_rpc() is inner_handles
        assert use_rpc() is outer_handles


def test_wrap_sync_children(settings):
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    def children(label):
        return label, use_rpc().rpc_client

    wrapped = provider.wrap(children)
    label, client = wrapped("page")

    assert label == "page"
    assert client is provider.activate().rpc_client
    with pytest.raises(ProviderScopeError):
        use_rpc()


@pytest.mark.asyncio
async def test_wrap_async_children_concurrently(settings):
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    async def children():
        await asyncio.sleep(0)
        return use_rpc().rpc_client

    wrapped = provider.wrap(children)
    clients = await asyncio.gather(wrapped(), wrapped(), wrapped())

    assert all(client is clients[0] for client in clients)


@pytest.mark.asyncio
async def test_shared_provider_scopes_in_concurrent_tasks(settings):
    """Tasks entering one provider may leave its scope in any order."""
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER)

    async def page(delay):
        async with provider as handles:
            await asyncio.sleep(delay)
            assert use_rpc() is handles
        with pytest.raises(ProviderScopeError):
            use_rpc()
        return handles.rpc_client

    first, second = await asyncio.gather(page(0.02), page(0.0))

    assert first is second
    with pytest.raises(ProviderScopeError):
        use_rpc()


@pytest.mark.asyncio
async def test_handles_fetch_goes_through_cache(settings):
    """Queries fetched through the handles are cached by key."""
    requests = []
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER, transport=_counting_transport(requests))

    async with provider as handles:
        first = await handles.fetch("post.by_id", {"id": 1})
        second = await use_rpc().fetch("post.by_id", {"id": 1})
        other = await handles.fetch("post.by_id", {"id": 2})

    assert first == second == {"path": "post.by_id"}
    assert other == {"path": "post.by_id"}
    assert len(requests) == 2
    assert handles.query_client.get_query_data(handles.query_key("post.by_id", {"id": 1})) == first
    await provider.aclose()


@pytest.mark.asyncio
async def test_handles_invalidate_and_mutate(settings):
    requests = []
    provider = RpcProvider(settings=settings, context=RuntimeContext.BROWSER, transport=_counting_transport(requests))

    async with provider as handles:
        await handles.fetch("post.list")
        await handles.mutate("post.create", {"title": "x"})
        assert handles.invalidate("post") == 1
        await handles.fetch("post.list")

    assert [request.method for request in requests] == ["GET", "POST", "GET"]
    await provider.aclose()


def test_query_key_shape():
    from rpc_provider.core import RpcHandles

    assert RpcHandles.query_key("post.by_id", {"id": 1}) == [["post", "by_id"], {"type": "query", "input": {"id": 1}}]
    assert RpcHandles.query_key("user.me") == [["user", "me"], {"type": "query"}]


@pytest.mark.asyncio
async def test_aclose_without_client_is_noop(settings):
    await RpcProvider(settings=settings).aclose()
