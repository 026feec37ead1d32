"""
Query embeddings for semantic scoring.

``HttpEmbeddingProvider`` calls an OpenAI-compatible ``/embeddings`` endpoint.
``QueryEmbedder`` sits in front of a provider and a shared ``KeyValueCache`` and never
fails: provider errors degrade to a deterministic pseudo embedding.
"""
import logging
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config import Settings, get_settings
from ..errors import UpstreamError
from ..repositories.base import EmbeddingProvider, KeyValueCache
from .scoring import pseudo_embedding

logger = logging.getLogger(__name__)


class HttpEmbeddingProvider:
    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    def _endpoint(self) -> str:
        base_url = (self.settings.embedding_api_url or "").rstrip("/")
        if not base_url:
            raise UpstreamError("Embedding provider not configured")
        if base_url.endswith("/embeddings"):
            return base_url
        return f"{base_url}/embeddings"

    async def _post(self, client: httpx.AsyncClient, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.settings.embedding_api_key:
            headers["Authorization"] = f"Bearer {self.settings.embedding_api_key}"
        resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()

    async def embed(self, text: str) -> List[float]:
        url = self._endpoint()
        payload = {"model": self.settings.embedding_model, "input": text}
        try:
            if self._client is not None:
                data = await self._post(self._client, url, payload)
            else:
                async with httpx.AsyncClient(timeout=self.settings.embedding_timeout_seconds) as client:
                    data = await self._post(client, url, payload)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Embedding request failed: {exc}") from exc

        try:
            vector = [float(v) for v in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamError("Embedding response missing data[0].embedding") from exc
        if not vector:
            raise UpstreamError("Embedding response was empty")
        return vector


class TTLCache:
    """Bounded LRU cache whose entries expire ``ttl_seconds`` after they were set."""

    def __init__(self, max_entries: int = 128, ttl_seconds: float = 300.0, clock=time.monotonic):
        self.max_entries = max(1, int(max_entries))
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class QueryEmbedder:
    """
    Resolves query text to a vector for one operation.

    Lookups go: per-operation memo, shared cache, provider. Provider failures fall back
    to ``pseudo_embedding`` and the fallback is not written to the shared cache, so
    the next operation retries the provider.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        cache: Optional[KeyValueCache] = None,
        dims: int = 256,
    ):
        self.provider = provider
        self.cache = cache
        self.dims = dims
        self._memo: Dict[str, List[float]] = {}

    async def embed(self, text: str) -> List[float]:
        key = str(text or "").strip()
        if key in self._memo:
            return self._memo[key]

        vector = self.cache.get(key) if self.cache is not None else None
        if vector is None:
            vector = await self._from_provider(key)
            if vector is not None and self.cache is not None:
                self.cache.set(key, vector)
        if vector is None:
            vector = pseudo_embedding(key, self.dims)

        self._memo[key] = list(vector)
        return self._memo[key]

    async def _from_provider(self, text: str) -> Optional[List[float]]:
        if self.provider is None:
            return None
        try:
            return list(await self.provider.embed(text))
        except Exception as exc:  # any provider failure degrades to the pseudo embedding
            logger.warning("Embedding provider failed, using pseudo embedding: %s", exc)
            return None
