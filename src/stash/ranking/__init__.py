from .bm25 import Bm25Index, tokenize
from .embeddings import HttpEmbeddingProvider, QueryEmbedder, TTLCache
from .scoring import (
    cosine_similarity,
    freshness,
    lexical_score,
    make_excerpt,
    materialize_citation,
    normalize_scores,
    note_display_title,
    pseudo_embedding,
    semantic_similarity,
)
from .search import HybridSearcher

__all__ = [
    "Bm25Index",
    "HttpEmbeddingProvider",
    "HybridSearcher",
    "QueryEmbedder",
    "TTLCache",
    "cosine_similarity",
    "freshness",
    "lexical_score",
    "make_excerpt",
    "materialize_citation",
    "normalize_scores",
    "note_display_title",
    "pseudo_embedding",
    "semantic_similarity",
    "tokenize",
]
