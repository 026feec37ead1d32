import json

import httpx
import pytest

from stash.config import Settings
from stash.errors import UpstreamError
from stash.ranking import HttpEmbeddingProvider, QueryEmbedder, TTLCache, pseudo_embedding


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _settings(**overrides):
    base = {"embedding_api_url": "https://embed.example.com/v1", "embedding_api_key": "sk-test"}
    base.update(overrides)
    return Settings(**base)


def test_ttl_cache_expires_entries():
    clock = FakeClock()
    cache = TTLCache(max_entries=4, ttl_seconds=10, clock=clock)
    cache.set("q", [1.0])

    clock.now = 9.9
    assert cache.get("q") == [1.0]
    clock.now = 10.0
    assert cache.get("q") is None
    assert len(cache) == 0


def test_ttl_cache_evicts_least_recently_used():
    cache = TTLCache(max_entries=2, ttl_seconds=60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


@pytest.mark.asyncio
async def test_http_provider_posts_openai_shaped_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = HttpEmbeddingProvider(_settings(embedding_model="embed-small"), client=client)
        vector = await provider.embed("roadmap")

    assert vector == [0.1, 0.2, 0.3]
    assert seen["url"] == "https://embed.example.com/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {"model": "embed-small", "input": "roadmap"}


@pytest.mark.asyncio
async def test_http_provider_wraps_http_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "down"}))
    async with httpx.AsyncClient(transport=transport) as client:
        provider = HttpEmbeddingProvider(_settings(), client=client)
        with pytest.raises(UpstreamError):
            await provider.embed("roadmap")


@pytest.mark.asyncio
async def test_http_provider_rejects_malformed_payload():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))
    async with httpx.AsyncClient(transport=transport) as client:
        provider = HttpEmbeddingProvider(_settings(), client=client)
        with pytest.raises(UpstreamError):
            await provider.embed("roadmap")


@pytest.mark.asyncio
async def test_http_provider_requires_url():
    provider = HttpEmbeddingProvider(Settings(embedding_api_url=None))
    with pytest.raises(UpstreamError, match="not configured"):
        await provider.embed("roadmap")


@pytest.mark.asyncio
async def test_query_embedder_caches_provider_vectors(mocker):
    provider = mocker.Mock()
    provider.embed = mocker.AsyncMock(return_value=[0.5, 0.5])
    cache = TTLCache()

    first = await QueryEmbedder(provider, cache).embed(" roadmap ")
    second = await QueryEmbedder(provider, cache).embed("roadmap")

    assert first == second == [0.5, 0.5]
    provider.embed.assert_awaited_once_with("roadmap")


@pytest.mark.asyncio
async def test_query_embedder_fallback_is_not_cached(mocker):
    """A failed provider call degrades to the pseudo vector and is retried next time."""
    # Arrange
    provider = mocker.Mock()
    provider.embed = mocker.AsyncMock(side_effect=[UpstreamError("boom"), [1.0, 0.0]])
    cache = TTLCache()

    # Act
    fallback = await QueryEmbedder(provider, cache, dims=32).embed("roadmap")
    recovered = await QueryEmbedder(provider, cache, dims=32).embed("roadmap")

    # Assert
    assert fallback == pseudo_embedding("roadmap", 32)
    assert recovered == [1.0, 0.0]
    assert cache.get("roadmap") == [1.0, 0.0]
    assert provider.embed.await_count == 2


@pytest.mark.asyncio
async def test_query_embedder_memoizes_within_one_operation(mocker):
    provider = mocker.Mock()
    provider.embed = mocker.AsyncMock(side_effect=RuntimeError("offline"))
    embedder = QueryEmbedder(provider, cache=None, dims=16)

    await embedder.embed("roadmap")
    await embedder.embed("roadmap")

    assert provider.embed.await_count == 1


@pytest.mark.asyncio
async def test_query_embedder_without_provider_uses_pseudo_vectors():
    assert await QueryEmbedder(None, None, dims=16).embed("x") == pseudo_embedding("x", 16)
