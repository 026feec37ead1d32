"""
Hybrid Ranking Engine.

``HybridSearcher.search_memories`` blends normalised BM25, normalised semantic
similarity and lexical overlap, then adds phrase, freshness and working-set boosts.
The BM25-only, raw-text and related-note searches reuse the same candidate pool.
"""
import logging
from typing import Any, List, Optional

from ..access import AccessControl, can_read_note
from ..config import Settings, get_settings
from ..errors import ITEM_NOT_FOUND_MESSAGE, NotFoundError, ValidationError
from ..models import ActorContext, Citation, MemoryScope, Note
from ..repositories.base import EmbeddingProvider, KeyValueCache, NoteRepository
from ..utils import clamp_int, normalize_text, normalize_working_set_ids, utcnow
from ..visibility import MAX_WORKING_SET_IDS, NoteVisibility
from .bm25 import Bm25Index, tokenize
from .embeddings import QueryEmbedder, TTLCache
from .scoring import (
    cosine_similarity,
    freshness,
    lexical_score,
    make_excerpt,
    materialize_citation,
    normalize_scores,
    note_embedding,
    overlap_ratio,
    pseudo_embedding,
    semantic_similarity,
)

logger = logging.getLogger(__name__)

RAW_BM25_WEIGHT = 0.85
RAW_LEXICAL_WEIGHT = 0.15
RAW_PHRASE_BOOST = 0.15
RELATED_MIN_SIMILARITY = 0.05


def _raw_text(note: Note) -> str:
    return note.extracted_text()


class HybridSearcher:
    def __init__(
        self,
        note_repo: NoteRepository,
        access: AccessControl,
        visibility: NoteVisibility,
        embedding_provider: Optional[EmbeddingProvider] = None,
        embedding_cache: Optional[KeyValueCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.note_repo = note_repo
        self.access = access
        self.visibility = visibility
        self.embedding_provider = embedding_provider
        self.settings = settings or get_settings()
        if embedding_cache is None:
            embedding_cache = TTLCache(
                self.settings.embedding_cache_size, self.settings.embedding_cache_ttl_seconds
            )
        self.embedding_cache = embedding_cache

    def _bm25(self, notes, text_of) -> Bm25Index:
        return Bm25Index.from_items(notes, text_of, k1=self.settings.bm25_k1, b=self.settings.bm25_b)

    def _citation(self, note: Note, score: float, rank: int, excerpt: Optional[str] = None) -> Citation:
        return materialize_citation(note, score, rank, self.settings.citation_content_chars, excerpt)

    async def search_memories(
        self,
        actor: ActorContext,
        query: str = "",
        project: str = "",
        limit: Any = 15,
        offset: Any = 0,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Citation]:
        """Rank the actor's candidate pool against ``query``.

        With an empty query the scope's listing order is returned instead, scored
        ``1 - i * 0.001``. ``offset`` only applies to that listing path.
        """
        bounded_limit = clamp_int(limit, 1, 100, 15)
        normalized_query = normalize_text(query)
        normalized_scope = MemoryScope.parse(scope)
        ws_ids = normalize_working_set_ids(working_set_ids, MAX_WORKING_SET_IDS)

        if not normalized_query:
            notes = await self.visibility.list_visible_notes_for_actor(
                actor,
                project=project,
                limit=bounded_limit,
                offset=clamp_int(offset, 0, 100000, 0),
                scope=normalized_scope,
                working_set_ids=ws_ids,
                context_note_id=context_note_id,
            )
            return [self._citation(note, 1 - i * 0.001, i + 1) for i, note in enumerate(notes)]

        notes = await self.visibility.list_search_candidates_for_actor(
            actor,
            project=project,
            scope=normalized_scope,
            working_set_ids=ws_ids,
            context_note_id=context_note_id,
        )
        if not notes:
            return []

        weights = self.settings.weights
        query_tokens = tokenize(normalized_query)
        index = self._bm25(notes, Note.searchable_text)
        embedder = QueryEmbedder(self.embedding_provider, self.embedding_cache, self.settings.pseudo_embedding_dims)
        query_vector = await embedder.embed(normalized_query)

        bm25_raw = index.scores(query_tokens)
        dims = self.settings.pseudo_embedding_dims
        query_pseudo = pseudo_embedding(normalized_query, dims)
        semantic_raw = [
            semantic_similarity(query_vector, note, normalized_query, dims, query_pseudo)
            for note in notes
        ]
        bm25_norm = normalize_scores(bm25_raw)
        semantic_norm = normalize_scores(semantic_raw)

        now = utcnow()
        needle = normalized_query.lower()
        ws_set = set(ws_ids)
        scored = []
        for i, note in enumerate(notes):
            score = (
                weights.bm25 * bm25_norm[i]
                + weights.semantic * semantic_norm[i]
                + weights.lexical * lexical_score(note, query_tokens)
            )
            if needle in note.searchable_text().lower():
                score += weights.phrase_boost
            score += weights.freshness_boost * freshness(note.created_at, weights.freshness_window_days, now)
            if note.id in ws_set:
                score += weights.working_set_boost
            scored.append((score, i, note))

        # Ties keep candidate order.
        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        top = scored[:bounded_limit]
        logger.debug("Ranked %d candidates for %s, returning %d", len(notes), actor.user_id, len(top))
        return [self._citation(note, score, rank) for rank, (score, _, note) in enumerate(top, start=1)]

    async def search_notes_bm25(
        self,
        actor: ActorContext,
        query: str,
        project: str = "",
        limit: Any = 8,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Citation]:
        normalized_query = normalize_text(query)
        if not normalized_query:
            raise ValidationError("Missing query")
        bounded_limit = clamp_int(limit, 1, 100, 8)
        notes = await self.visibility.list_search_candidates_for_actor(
            actor,
            project=project,
            scope=scope,
            working_set_ids=working_set_ids,
            context_note_id=context_note_id,
        )
        if not notes:
            return []

        index = self._bm25(notes, Note.searchable_text)
        raw = index.scores(tokenize(normalized_query))
        hits = sorted(
            ((score, i) for i, score in enumerate(raw) if score > 0),
            key=lambda entry: (-entry[0], entry[1]),
        )[:bounded_limit]
        normalized = normalize_scores([score for score, _ in hits])
        return [
            self._citation(
                notes[i],
                normalized[pos],
                pos + 1,
                excerpt=make_excerpt(notes[i].raw_content or notes[i].markdown_content or notes[i].content, normalized_query),
            )
            for pos, (_, i) in enumerate(hits)
        ]

    async def search_raw_memories(
        self,
        actor: ActorContext,
        query: str,
        project: str = "",
        limit: Any = 8,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Citation]:
        """Search extracted text (raw, markdown, content) and return excerpts."""
        normalized_query = normalize_text(query)
        if not normalized_query:
            raise ValidationError("Missing query")
        bounded_limit = clamp_int(limit, 1, 100, 8)
        notes = await self.visibility.list_search_candidates_for_actor(
            actor,
            project=project,
            scope=scope,
            working_set_ids=working_set_ids,
            context_note_id=context_note_id,
        )
        if not notes:
            return []

        query_tokens = tokenize(normalized_query)
        index = self._bm25(notes, _raw_text)
        needle = normalized_query.lower()
        scored = []
        for i, note in enumerate(notes):
            text = _raw_text(note)
            score = (
                RAW_BM25_WEIGHT * index.score(i, query_tokens)
                + RAW_LEXICAL_WEIGHT * overlap_ratio(query_tokens, text)
            )
            if needle in text.lower():
                score += RAW_PHRASE_BOOST
            if score > 0:
                scored.append((score, i))
        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        scored = scored[:bounded_limit * 3]

        normalized = normalize_scores([score for score, _ in scored])
        reranked = sorted(
            zip(normalized, (i for _, i in scored)), key=lambda entry: -entry[0]
        )[:bounded_limit]
        return [
            self._citation(
                notes[i],
                score,
                rank,
                excerpt=make_excerpt(notes[i].raw_content or notes[i].markdown_content or notes[i].content, normalized_query),
            )
            for rank, (score, i) in enumerate(reranked, start=1)
        ]

    async def find_related_memories(
        self,
        actor: ActorContext,
        note_id: str,
        limit: Any = 5,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
    ) -> List[Citation]:
        normalized_id = normalize_text(note_id)
        if not normalized_id:
            raise ValidationError("Missing id")
        bounded_limit = clamp_int(limit, 1, 20, 5)

        source = await self.note_repo.get_note_by_id(normalized_id, actor.workspace_id)
        access = await self.access.build_access_context(actor)
        if source is None or not can_read_note(source, actor, access):
            raise NotFoundError(ITEM_NOT_FOUND_MESSAGE)

        candidates = await self.visibility.list_search_candidates_for_actor(
            actor,
            scope=scope,
            working_set_ids=working_set_ids,
            context_note_id=normalized_id,
        )
        if len(candidates) <= 1:
            return []

        dims = self.settings.pseudo_embedding_dims
        source_vector = note_embedding(source, dims)
        scored = []
        for i, note in enumerate(candidates):
            if note.id == normalized_id:
                continue
            similarity = cosine_similarity(source_vector, note_embedding(note, dims))
            if similarity > RELATED_MIN_SIMILARITY:
                scored.append((similarity, i, note))
        scored.sort(key=lambda entry: (-entry[0], entry[1]))
        return [
            self._citation(note, score, rank)
            for rank, (score, _, note) in enumerate(scored[:bounded_limit], start=1)
        ]
