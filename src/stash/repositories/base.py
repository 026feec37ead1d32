"""
Collaborator contracts consumed by the stash core.

The core never talks to a store directly; it is handed objects that satisfy these
protocols. ``stash.repositories.sql`` ships SQLAlchemy-backed implementations, and
tests use in-memory fakes.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ..models import ActivityEvent, Folder, FolderMembership, FolderRole, Note, WorkspaceMember


@runtime_checkable
class NoteRepository(Protocol):
    async def get_note_by_id(self, note_id: str, workspace_id: str) -> Optional[Note]: ...

    async def list_by_project(
        self, project: Optional[str], limit: int, offset: int, workspace_id: str
    ) -> List[Note]: ...

    async def list_by_project_for_user(
        self, project: Optional[str], limit: int, offset: int, workspace_id: str, user_id: str
    ) -> List[Note]: ...

    async def list_projects(self, workspace_id: str) -> List[str]: ...

    async def list_projects_for_user(self, workspace_id: str, user_id: str) -> List[str]: ...

    async def list_tags(self, workspace_id: str) -> List[Dict[str, Any]]: ...

    async def list_tags_for_user(self, workspace_id: str, user_id: str) -> List[Dict[str, Any]]: ...


@runtime_checkable
class FolderRepository(Protocol):
    async def get_folder(self, folder_id: str, workspace_id: str) -> Optional[Folder]: ...

    async def get_folder_by_name(self, name: str, workspace_id: str) -> Optional[Folder]: ...

    async def get_folder_by_name_insensitive(self, name: str, workspace_id: str) -> Optional[Folder]: ...

    async def list_all_folders(self, workspace_id: str) -> List[Folder]: ...

    async def create_folder(
        self,
        *,
        name: str,
        workspace_id: str,
        description: str = "",
        color: str = "green",
        symbol: str = "DOC",
        parent_id: Optional[str] = None,
    ) -> Folder: ...

    async def update_folder(self, folder_id: str, patch: Dict[str, Any], workspace_id: str) -> Folder: ...

    async def delete_folder(self, folder_id: str, workspace_id: str) -> Dict[str, Any]: ...


@runtime_checkable
class CollaborationRepository(Protocol):
    async def list_folder_memberships_for_user(
        self, *, workspace_id: str, user_id: str
    ) -> List[FolderMembership]: ...

    async def list_folder_members(self, *, workspace_id: str, folder_id: str) -> List[FolderMembership]: ...

    async def get_folder_member_role(
        self, *, workspace_id: str, folder_id: str, user_id: str
    ) -> Optional[FolderRole]: ...

    async def upsert_folder_member(
        self,
        *,
        workspace_id: str,
        folder_id: str,
        user_id: str,
        role: FolderRole,
        created_by_user_id: Optional[str] = None,
    ) -> FolderMembership: ...

    async def remove_folder_member(self, *, workspace_id: str, folder_id: str, user_id: str) -> int: ...

    async def create_activity_event(
        self,
        *,
        workspace_id: str,
        actor_user_id: Optional[str],
        actor_name: str,
        event_type: str,
        entity_type: str,
        entity_id: str,
        folder_id: Optional[str] = None,
        note_id: Optional[str] = None,
        visibility_user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityEvent]: ...

    async def list_activity_events(
        self, *, workspace_id: str, folder_id: str = "", note_id: str = "", limit: int = 100
    ) -> List[ActivityEvent]: ...


@runtime_checkable
class WorkspaceMemberRepository(Protocol):
    async def list_workspace_members(self, workspace_id: str, limit: int = 1000) -> List[WorkspaceMember]: ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a vector. May raise; callers must tolerate failure."""
    async def embed(self, text: str) -> Sequence[float]: ...


@runtime_checkable
class KeyValueCache(Protocol):
    """Bounded cache owned by the caller; eviction and TTL are its business."""
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...
