"""
Scoring primitives for the hybrid ranker: lexical overlap, min-max normalisation,
vector similarity, pseudo embeddings and the citation projection.
"""
import hashlib
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from ..models import Citation, CitationNote, Note
from ..utils import as_aware, utcnow
from .bm25 import tokenize

DEFAULT_EMBEDDING_DIMS = 256


def overlap_ratio(query_tokens: Sequence[str], text: str) -> float:
    """Fraction of distinct query tokens that occur in ``text``."""
    distinct = set(query_tokens)
    if not distinct:
        return 0.0
    return len(distinct & set(tokenize(text))) / len(distinct)


def lexical_score(note: Note, query_tokens: Sequence[str]) -> float:
    return overlap_ratio(query_tokens, note.searchable_text())


def normalize_scores(values: Sequence[float]) -> List[float]:
    """Min-max scale into ``[0, 1]``.

    A flat list maps to all 1.0 when its value is positive and all 0.0 otherwise, so
    a single candidate with a real match still earns the full weight.
    """
    if not values:
        return []
    arr = np.nan_to_num(np.asarray(values, dtype=float))
    lo, hi = float(arr.min()), float(arr.max())
    if hi - lo <= 0:
        fill = 1.0 if hi > 0 else 0.0
        return [fill] * len(arr)
    return ((arr - lo) / (hi - lo)).tolist()


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.nan_to_num(np.asarray(a, dtype=float))
    vb = np.nan_to_num(np.asarray(b, dtype=float))
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def pseudo_embedding(text: str, dims: int = DEFAULT_EMBEDDING_DIMS) -> List[float]:
    """Deterministic bag-of-hashed-tokens vector used when no real embedding is available."""
    vector = np.zeros(dims, dtype=float)
    for token in tokenize(text):
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        vector[int.from_bytes(digest[0:4], "big") % dims] += 1.0
        vector[int.from_bytes(digest[4:8], "big") % dims] += 0.5
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        vector = vector / norm
    return vector.tolist()


def note_embedding(note: Note, dims: int = DEFAULT_EMBEDDING_DIMS) -> List[float]:
    if note.embedding:
        return list(note.embedding)
    return pseudo_embedding(f"{note.content}\n{note.summary}", dims)


def semantic_similarity(
    query_vector: Optional[Sequence[float]],
    note: Note,
    query_text: str,
    dims: int = DEFAULT_EMBEDDING_DIMS,
    query_pseudo: Optional[Sequence[float]] = None,
) -> float:
    """Cosine between query and note vectors.

    When the two vectors come from different spaces (lengths differ) both sides are
    compared as pseudo embeddings instead.
    """
    vector = note_embedding(note, dims)
    if query_vector is not None and len(query_vector) == len(vector):
        return cosine_similarity(query_vector, vector)
    if query_pseudo is None:
        query_pseudo = pseudo_embedding(query_text, dims)
    return cosine_similarity(query_pseudo, pseudo_embedding(f"{note.content}\n{note.summary}", dims))


def freshness(created_at: Optional[datetime], window_days: float, now: Optional[datetime] = None) -> float:
    """1.0 for a note created now, decaying linearly to 0 at ``window_days``."""
    created = as_aware(created_at)
    if created is None or window_days <= 0:
        return 0.0
    age = ((now or utcnow()) - created).total_seconds()
    return max(0.0, 1.0 - age / (window_days * 86400.0))


def make_excerpt(text: str, query: str, max_len: int = 320) -> str:
    body = str(text or "")
    needle = str(query or "").strip().lower()
    if not body:
        return ""
    if not needle:
        return body[:max_len]
    idx = body.lower().find(needle)
    if idx == -1:
        return body[:max_len]
    start = max(0, idx - int(max_len * 0.3))
    return body[start:start + max_len]


def note_display_title(note: Optional[Note], max_chars: int = 120) -> str:
    if note is None:
        return ""
    explicit = str((note.metadata or {}).get("title") or "").strip()
    if explicit:
        return explicit[:max_chars]
    return (note.summary or note.file_name or note.content or "")[:max_chars]


def materialize_citation(note: Note, score: float, rank: int, content_chars: int = 1200, excerpt: Optional[str] = None) -> Citation:
    """Project a note onto the redacted citation shape. Content is truncated."""
    return Citation(
        rank=rank,
        score=float(score),
        note=CitationNote(
            id=note.id,
            title=note_display_title(note, 140),
            summary=note.summary,
            project=note.project,
            source_url=note.source_url,
            source_type=note.source_type,
            file_name=note.file_name,
            tags=list(note.tags),
            content=note.content[:content_chars],
            excerpt=excerpt,
            created_at=note.created_at,
            updated_at=note.updated_at,
        ),
    )
