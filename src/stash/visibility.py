"""
Scope Resolver: enumerate the notes an actor may see for a given scope.

Two entry points share the same per-scope rules. ``list_visible_notes_for_actor``
serves paginated listings, ``list_search_candidates_for_actor`` builds an unpaginated
candidate pool for the ranker.
"""
import asyncio
import logging
from typing import Any, List, Optional, Sequence

from .access import AccessControl, can_read_note, is_workspace_manager
from .config import Settings, get_settings
from .models import ActorContext, MemoryScope, Note
from .repositories.base import NoteRepository
from .utils import clamp_int, normalize_text, normalize_working_set_ids, timestamp_or_zero

logger = logging.getLogger(__name__)

MAX_WORKING_SET_IDS = 100
OVERFETCH_FACTOR = 4

_DIRECT_SCOPES = (MemoryScope.ALL, MemoryScope.WORKSPACE, MemoryScope.PROJECT)


def sort_notes_by_recency(notes: Sequence[Note]) -> List[Note]:
    """Most recently updated (or created) first. Stable for equal timestamps."""
    return sorted(notes, key=lambda note: timestamp_or_zero(note.last_activity_at), reverse=True)


class NoteVisibility:
    def __init__(
        self,
        note_repo: NoteRepository,
        access: AccessControl,
        settings: Optional[Settings] = None,
    ):
        self.note_repo = note_repo
        self.access = access
        self.settings = settings or get_settings()

    async def load_working_set_notes_for_actor(
        self, actor: ActorContext, working_set_ids: Any = None, context_note_id: str = ""
    ) -> List[Note]:
        """Fetch the explicitly named notes and keep the readable ones."""
        ids = normalize_working_set_ids(
            normalize_working_set_ids(working_set_ids, MAX_WORKING_SET_IDS) + [normalize_text(context_note_id)],
            MAX_WORKING_SET_IDS,
        )
        if not ids:
            return []

        notes = await asyncio.gather(
            *[self.note_repo.get_note_by_id(note_id, actor.workspace_id) for note_id in ids]
        )
        access = await self.access.build_access_context(actor)
        return [note for note in notes if note is not None and can_read_note(note, actor, access)]

    async def _collect_readable(self, actor: ActorContext, project: Optional[str], wanted: int) -> List[Note]:
        """Scan newest-first raw batches until ``wanted`` readable notes are found.

        Pages are then cut from the same readable prefix whatever the page size, and
        the scan stops once the store is exhausted or the fetch cap is reached.
        """
        cap = self.settings.candidate_fetch_cap
        batch_size = min(max(wanted * OVERFETCH_FACTOR, 1), cap)
        access = await self.access.build_access_context(actor)
        visible: List[Note] = []
        scanned = 0
        while len(visible) < wanted and scanned < cap:
            size = min(batch_size, cap - scanned)
            batch = await self.note_repo.list_by_project(project, size, scanned, actor.workspace_id)
            scanned += len(batch)
            visible.extend(note for note in batch if can_read_note(note, actor, access))
            if len(batch) < size:
                break
        logger.debug(
            "Scanned notes for %s wanted=%d fetched=%d visible=%d",
            actor.user_id, wanted, scanned, len(visible),
        )
        return visible

    async def list_visible_notes_for_actor(
        self,
        actor: ActorContext,
        project: str = "",
        limit: Any = 200,
        offset: Any = 0,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Note]:
        normalized_scope = MemoryScope.parse(scope)
        normalized_project = normalize_text(project)
        bounded_limit = clamp_int(limit, 1, 10000, 200)
        bounded_offset = clamp_int(offset, 0, 100000, 0)

        if normalized_scope == MemoryScope.ITEM:
            notes = sort_notes_by_recency(
                await self.load_working_set_notes_for_actor(actor, working_set_ids, context_note_id)
            )
            return notes[bounded_offset:bounded_offset + bounded_limit]

        if normalized_scope == MemoryScope.PROJECT and not normalized_project:
            return []

        if normalized_scope == MemoryScope.USER:
            return await self.note_repo.list_by_project_for_user(
                normalized_project or None,
                bounded_limit,
                bounded_offset,
                actor.workspace_id,
                actor.user_id,
            )

        if is_workspace_manager(actor) and normalized_scope in _DIRECT_SCOPES:
            return await self.note_repo.list_by_project(
                normalized_project or None, bounded_limit, bounded_offset, actor.workspace_id
            )

        # Offset/limit apply to the filtered list so pages only count visible notes.
        visible = await self._collect_readable(
            actor, normalized_project or None, bounded_offset + bounded_limit
        )
        return visible[bounded_offset:bounded_offset + bounded_limit]

    async def list_search_candidates_for_actor(
        self,
        actor: ActorContext,
        project: str = "",
        max_candidates: Optional[int] = None,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Note]:
        normalized_scope = MemoryScope.parse(scope)
        normalized_project = normalize_text(project)
        cap = self.settings.candidate_fetch_cap
        if max_candidates is None:
            max_candidates = self.settings.max_search_candidates
        max_candidates = clamp_int(max_candidates, 1, cap, self.settings.max_search_candidates)

        if normalized_scope == MemoryScope.ITEM:
            notes = sort_notes_by_recency(
                await self.load_working_set_notes_for_actor(actor, working_set_ids, context_note_id)
            )
            return notes[:max_candidates]

        if normalized_scope == MemoryScope.PROJECT and not normalized_project:
            return []

        if normalized_scope == MemoryScope.USER:
            return await self.note_repo.list_by_project_for_user(
                normalized_project or None, max_candidates, 0, actor.workspace_id, actor.user_id
            )

        if is_workspace_manager(actor) and normalized_scope in _DIRECT_SCOPES:
            return await self.note_repo.list_by_project(
                normalized_project or None, max_candidates, 0, actor.workspace_id
            )

        visible = await self._collect_readable(actor, normalized_project or None, max_candidates)
        return visible[:max_candidates]
