"""
MemoryService: the entry point callers use.

It resolves the actor once per call, then delegates to the access, visibility,
ranking, collaboration and activity components. Nothing here holds per-request state.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import async_sessionmaker

from .access import AccessControl, can_read_note
from .activity import ActivityBus, ActivityEmitter
from .collaboration import FolderCollaboration
from .config import Settings, get_settings
from .errors import ITEM_NOT_FOUND_MESSAGE, AuthenticationError, NotFoundError, ValidationError
from .models import ActorContext, Citation, FolderRole, MemoryScope, Note
from .ranking import HttpEmbeddingProvider, HybridSearcher
from .references import ReferenceResolver
from .repositories.base import (
    CollaborationRepository,
    EmbeddingProvider,
    FolderRepository,
    KeyValueCache,
    NoteRepository,
    WorkspaceMemberRepository,
)
from .tool_args import normalize_tool_args, parse_raw_args
from .utils import clamp_int, normalize_text
from .visibility import NoteVisibility

logger = logging.getLogger(__name__)

ActorLike = Union[ActorContext, Mapping[str, Any]]


def resolve_actor(actor: Optional[ActorLike], allow_service_actor: bool = False) -> ActorContext:
    """Coerce ``actor`` into an ``ActorContext`` or raise ``AuthenticationError``.

    Mappings may use snake_case or camelCase keys.
    """
    if isinstance(actor, ActorContext):
        source: Mapping[str, Any] = actor.model_dump(mode="json")
    elif isinstance(actor, Mapping):
        source = actor
    else:
        source = {}

    def pick(*keys):
        for key in keys:
            value = normalize_text(source.get(key))
            if value:
                return value
        return ""

    workspace_id = pick("workspace_id", "workspaceId")
    if not workspace_id:
        raise AuthenticationError("Missing actor workspace id")
    user_id = pick("user_id", "userId")
    if not user_id and not allow_service_actor:
        raise AuthenticationError("Missing actor user id")
    return ActorContext(
        workspace_id=workspace_id,
        user_id=user_id or None,
        role=pick("role") or "member",
        user_name=pick("user_name", "userName", "name"),
        user_email=pick("user_email", "userEmail", "email"),
    )


def serialize_notes_as_markdown(notes: Iterable[Note]) -> str:
    sections = []
    for note in notes:
        title = note.summary or note.content[:80] or "(untitled)"
        tags = " ".join(f"`{tag}`" for tag in note.tags)
        body = note.markdown_content or note.raw_content or note.content
        tag_line = f"Tags: {tags}\n\n" if tags else ""
        sections.append(f"## {title}\n\n{tag_line}{body}\n\n---\n")
    return "\n".join(sections)


class MemoryService:
    def __init__(
        self,
        note_repo: NoteRepository,
        folder_repo: FolderRepository,
        collaboration_repo: CollaborationRepository,
        member_repo: WorkspaceMemberRepository,
        embedding_provider: Optional[EmbeddingProvider] = None,
        embedding_cache: Optional[KeyValueCache] = None,
        activity_bus: Optional[ActivityBus] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.note_repo = note_repo
        self.folder_repo = folder_repo
        self.collaboration_repo = collaboration_repo
        self.access = AccessControl(folder_repo, collaboration_repo)
        self.visibility = NoteVisibility(note_repo, self.access, self.settings)
        self.searcher = HybridSearcher(
            note_repo,
            self.access,
            self.visibility,
            embedding_provider=embedding_provider,
            embedding_cache=embedding_cache,
            settings=self.settings,
        )
        self.activity = ActivityEmitter(collaboration_repo, folder_repo, activity_bus)
        self.collaboration = FolderCollaboration(
            self.access, folder_repo, collaboration_repo, member_repo, self.activity
        )

    @classmethod
    def from_session_factory(
        cls, session_factory: async_sessionmaker, settings: Optional[Settings] = None, **kwargs
    ) -> "MemoryService":
        """Wire the SQLAlchemy repositories (and the HTTP embedding provider when configured)."""
        from .repositories.sql import (
            SqlCollaborationRepository,
            SqlFolderRepository,
            SqlNoteRepository,
            SqlWorkspaceMemberRepository,
        )

        settings = settings or get_settings()
        if "embedding_provider" not in kwargs and settings.embedding_api_url:
            kwargs["embedding_provider"] = HttpEmbeddingProvider(settings)
        return cls(
            SqlNoteRepository(session_factory),
            SqlFolderRepository(session_factory),
            SqlCollaborationRepository(session_factory),
            SqlWorkspaceMemberRepository(session_factory),
            settings=settings,
            **kwargs,
        )

    # --- Listing ---

    async def list_visible_notes(
        self,
        actor: ActorLike,
        project: str = "",
        limit: Any = 200,
        offset: Any = 0,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
    ) -> List[Note]:
        return await self.visibility.list_visible_notes_for_actor(
            resolve_actor(actor), project, limit, offset, scope, working_set_ids, context_note_id
        )

    async def list_recent_memories(
        self,
        actor: ActorLike,
        limit: Any = 20,
        offset: Any = 0,
        scope: Any = MemoryScope.ALL,
        working_set_ids: Any = None,
        context_note_id: str = "",
        project: str = "",
    ) -> List[Note]:
        return await self.visibility.list_visible_notes_for_actor(
            resolve_actor(actor),
            project=project,
            limit=clamp_int(limit, 1, 200, 20),
            offset=clamp_int(offset, 0, 100000, 0),
            scope=scope,
            working_set_ids=working_set_ids,
            context_note_id=context_note_id,
        )

    async def list_projects(self, actor: ActorLike) -> List[str]:
        """Projects the actor can see: their own notes' projects plus shared folders."""
        ctx = resolve_actor(actor)
        if ctx.is_privileged:
            return await self.note_repo.list_projects(ctx.workspace_id)
        owned, memberships, folders = await asyncio.gather(
            self.note_repo.list_projects_for_user(ctx.workspace_id, ctx.user_id),
            self.collaboration_repo.list_folder_memberships_for_user(
                workspace_id=ctx.workspace_id, user_id=ctx.user_id
            ),
            self.folder_repo.list_all_folders(ctx.workspace_id),
        )
        shared_ids = {
            normalize_text(m.folder_id) for m in memberships if FolderRole.parse(m.role) is not None
        }
        shared = [normalize_text(f.name) for f in folders if normalize_text(f.id) in shared_ids]
        return sorted({name for name in list(owned or []) + shared if name})

    async def list_tags(self, actor: ActorLike) -> List[Dict[str, Any]]:
        ctx = resolve_actor(actor)
        if ctx.is_privileged:
            return await self.note_repo.list_tags(ctx.workspace_id)
        return await self.note_repo.list_tags_for_user(ctx.workspace_id, ctx.user_id)

    async def export_memories(self, actor: ActorLike, project: str = "", format: str = "json") -> str:
        notes = await self.visibility.list_visible_notes_for_actor(
            resolve_actor(actor), project=project, limit=10000, offset=0
        )
        if normalize_text(format).lower() == "markdown":
            return serialize_notes_as_markdown(notes)
        return json.dumps([note.model_dump(mode="json") for note in notes], indent=2)

    async def get_memory_raw_content(
        self, actor: ActorLike, note_id: str, include_markdown: bool = True, max_chars: Any = 12000
    ) -> Dict[str, Any]:
        """Extracted text of one readable note.

        Missing and unreadable notes raise the same ``NotFoundError``.
        """
        ctx = resolve_actor(actor)
        normalized_id = normalize_text(note_id)
        if not normalized_id:
            raise ValidationError("Missing id")
        note = await self.note_repo.get_note_by_id(normalized_id, ctx.workspace_id)
        access = await self.access.build_access_context(ctx)
        if note is None or not can_read_note(note, ctx, access):
            raise NotFoundError(ITEM_NOT_FOUND_MESSAGE)

        bounded = clamp_int(max_chars, 200, 200000, 12000)
        fallback = "" if note.source_type.has_extracted_text_only else note.content
        raw = note.raw_content or fallback
        markdown = note.markdown_content or note.raw_content or fallback
        result: Dict[str, Any] = {
            "id": note.id,
            "revision": note.revision,
            "source_type": note.source_type.value,
            "file_name": note.file_name,
            "file_mime": note.file_mime,
            "project": note.project,
            "created_at": note.created_at,
            "title": normalize_text(note.metadata.get("title")),
            "summary": note.summary,
            "content": note.content[:bounded],
            "raw_content": raw[:bounded],
        }
        if include_markdown:
            result["markdown_content"] = markdown[:bounded]
        return result

    # --- Search ---

    async def search_memories(self, actor: ActorLike, query: str = "", **kwargs) -> List[Citation]:
        return await self.searcher.search_memories(resolve_actor(actor), query, **kwargs)

    async def search_notes_bm25(self, actor: ActorLike, query: str, **kwargs) -> List[Citation]:
        return await self.searcher.search_notes_bm25(resolve_actor(actor), query, **kwargs)

    async def search_raw_memories(self, actor: ActorLike, query: str, **kwargs) -> List[Citation]:
        return await self.searcher.search_raw_memories(resolve_actor(actor), query, **kwargs)

    async def find_related_memories(self, actor: ActorLike, note_id: str, **kwargs) -> List[Citation]:
        return await self.searcher.find_related_memories(resolve_actor(actor), note_id, **kwargs)

    # --- Notes ---

    async def assert_can_mutate(self, actor: ActorLike, note_id: str) -> Note:
        """Load a note for a write. Missing notes are ``NotFoundError``, denials ``AuthorizationError``."""
        ctx = resolve_actor(actor)
        note = await self.note_repo.get_note_by_id(normalize_text(note_id), ctx.workspace_id)
        if note is None:
            raise NotFoundError(ITEM_NOT_FOUND_MESSAGE)
        await self.access.assert_can_mutate_note(note, ctx)
        return note

    # --- Collaboration ---

    async def create_folder(self, actor: ActorLike, name: str, **kwargs):
        return await self.collaboration.create_workspace_folder(resolve_actor(actor), name, **kwargs)

    async def update_folder(self, actor: ActorLike, folder_id: str, patch: Dict[str, Any]):
        return await self.collaboration.update_workspace_folder(resolve_actor(actor), folder_id, patch)

    async def delete_folder(self, actor: ActorLike, folder_id: str):
        return await self.collaboration.delete_workspace_folder(resolve_actor(actor), folder_id)

    async def list_folder_collaborators(self, actor: ActorLike, folder_id: str):
        return await self.collaboration.list_folder_collaborators(resolve_actor(actor), folder_id)

    async def set_folder_collaborator_role(self, actor: ActorLike, folder_id: str, user_id: str = "", role: Any = "viewer", email: str = ""):
        return await self.collaboration.set_folder_collaborator_role(
            resolve_actor(actor), folder_id, user_id=user_id, role=role, email=email
        )

    async def remove_folder_collaborator(self, actor: ActorLike, folder_id: str, user_id: str = "", email: str = ""):
        return await self.collaboration.remove_folder_collaborator(
            resolve_actor(actor), folder_id, user_id=user_id, email=email
        )

    async def list_workspace_members(self, actor: ActorLike, query: str = "", limit: Any = 50):
        return await self.collaboration.list_workspace_members(resolve_actor(actor), query, limit)

    async def list_workspace_activity(self, actor: ActorLike, folder_id: str = "", note_id: str = "", limit: Any = 60):
        return await self.collaboration.list_workspace_activity(resolve_actor(actor), folder_id, note_id, limit)

    # --- Assistant tool calls ---

    def prepare_tool_call(
        self,
        name: str,
        raw_args: Any,
        citations: Optional[Iterable[Any]] = None,
        context_note_id: str = "",
        context_project: str = "",
    ) -> Dict[str, Any]:
        """Parse, resolve references in, and validate one assistant tool call's arguments."""
        resolver = ReferenceResolver(citations, context_note_id, context_project)
        resolved = resolver.tool_args(name, parse_raw_args(raw_args))
        return normalize_tool_args(name, resolved)
