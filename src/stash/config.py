"""
Runtime configuration for the Stash core.

Values come from the process environment (a local ``.env`` is loaded first, the same
way the database module always did). Components take an explicit ``Settings`` so tests
can build one directly instead of touching the environment.
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class RankingWeights(BaseModel):
    """Blend used by the hybrid ranker. BM25 dominates, semantic is secondary."""
    bm25: float = 0.5
    semantic: float = 0.3
    lexical: float = 0.15
    phrase_boost: float = 0.05
    freshness_boost: float = 0.02
    freshness_window_days: float = 30.0
    working_set_boost: float = 0.08


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./stash.db"
    log_level: str = "INFO"

    embedding_api_url: Optional[str] = None
    embedding_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-3-small"
    embedding_timeout_seconds: float = 15.0
    embedding_cache_size: int = 128
    embedding_cache_ttl_seconds: float = 300.0
    pseudo_embedding_dims: int = 256

    max_search_candidates: int = 500
    candidate_fetch_cap: int = 5000
    citation_content_chars: int = 1200

    bm25_k1: float = 1.5
    bm25_b: float = 0.75
    weights: RankingWeights = Field(default_factory=RankingWeights)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./stash.db"),
            log_level=os.getenv("STASH_LOG_LEVEL", "INFO"),
            embedding_api_url=os.getenv("EMBEDDING_API_URL") or None,
            embedding_api_key=os.getenv("EMBEDDING_API_KEY") or None,
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_timeout_seconds=_env_float("EMBEDDING_TIMEOUT_SECONDS", 15.0),
            embedding_cache_size=_env_int("EMBEDDING_CACHE_SIZE", 128),
            embedding_cache_ttl_seconds=_env_float("EMBEDDING_CACHE_TTL_SECONDS", 300.0),
            max_search_candidates=_env_int("STASH_MAX_SEARCH_CANDIDATES", 500),
            candidate_fetch_cap=_env_int("STASH_CANDIDATE_FETCH_CAP", 5000),
            citation_content_chars=_env_int("STASH_CITATION_CONTENT_CHARS", 1200),
            bm25_k1=_env_float("BM25_K1", 1.5),
            bm25_b=_env_float("BM25_B", 0.75),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
