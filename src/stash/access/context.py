"""
Access Context Builder and assertion guards.

``AccessControl`` is the I/O half of the access layer: it builds the per-operation
role snapshot from the folder and collaboration repositories and wraps the pure
predicates in assertions that raise ``AuthorizationError``.
"""
import asyncio
import logging
from typing import Dict, Optional

from ..errors import AuthorizationError, ValidationError
from ..models import AccessContext, ActorContext, Folder, FolderRole, Note
from ..repositories.base import CollaborationRepository, FolderRepository
from ..utils import normalize_text
from .predicates import can_mutate_note, can_read_note, is_workspace_manager, role_at_least

logger = logging.getLogger(__name__)


class AccessControl:
    def __init__(self, folder_repo: FolderRepository, collaboration_repo: CollaborationRepository):
        self.folder_repo = folder_repo
        self.collaboration_repo = collaboration_repo

    async def build_access_context(self, actor: Optional[ActorContext]) -> AccessContext:
        """Build a fresh role snapshot for ``actor``.

        Privileged actors (and actors without a user id) get an empty context without
        any lookups. Otherwise memberships and folders are fetched concurrently and the
        folder-name map is derived by joining the two; names are lower-cased here and
        nowhere else.
        """
        if actor is None or is_workspace_manager(actor):
            return AccessContext()
        user_id = normalize_text(actor.user_id)
        if not user_id:
            return AccessContext()

        memberships, folders = await asyncio.gather(
            self.collaboration_repo.list_folder_memberships_for_user(
                workspace_id=actor.workspace_id, user_id=user_id
            ),
            self.folder_repo.list_all_folders(actor.workspace_id),
        )

        role_by_folder_id: Dict[str, FolderRole] = {}
        for membership in memberships or []:
            folder_id = normalize_text(membership.folder_id)
            role = FolderRole.parse(membership.role)
            if folder_id and role is not None:
                role_by_folder_id[folder_id] = role

        role_by_project_name: Dict[str, FolderRole] = {}
        for folder in folders or []:
            role = role_by_folder_id.get(normalize_text(folder.id))
            name = normalize_text(folder.name).lower()
            if role is None or not name:
                continue
            role_by_project_name[name] = role

        logger.debug(
            "Built access context for user %s: %d memberships, %d folders",
            user_id, len(role_by_folder_id), len(folders or []),
        )
        return AccessContext(role_by_folder_id=role_by_folder_id, role_by_project_name=role_by_project_name)

    async def assert_can_read_note(self, note: Note, actor: ActorContext, access: Optional[AccessContext] = None) -> None:
        if access is None:
            access = await self.build_access_context(actor)
        if not can_read_note(note, actor, access):
            raise AuthorizationError("Forbidden: you do not have permission to access this item")

    async def assert_can_mutate_note(self, note: Note, actor: ActorContext, access: Optional[AccessContext] = None) -> None:
        if access is None:
            access = await self.build_access_context(actor)
        if not can_mutate_note(note, actor, access):
            raise AuthorizationError("Forbidden: you do not have permission to modify this item")

    def assert_workspace_manager(self, actor: Optional[ActorContext]) -> None:
        if not is_workspace_manager(actor):
            raise AuthorizationError("Forbidden: this operation requires workspace owner/admin privileges")

    async def actor_folder_role(
        self, folder: Folder, actor: ActorContext, access: Optional[AccessContext] = None
    ) -> Optional[FolderRole]:
        if folder is None or actor is None:
            return None
        if is_workspace_manager(actor):
            return FolderRole.MANAGER
        user_id = normalize_text(actor.user_id)
        folder_id = normalize_text(folder.id)
        if not user_id or not folder_id:
            return None
        if access is not None and folder_id in access.role_by_folder_id:
            return access.role_by_folder_id[folder_id]
        role = await self.collaboration_repo.get_folder_member_role(
            workspace_id=actor.workspace_id, folder_id=folder_id, user_id=user_id
        )
        return FolderRole.parse(role)

    async def assert_can_view_folder(
        self, folder: Optional[Folder], actor: ActorContext, access: Optional[AccessContext] = None
    ) -> None:
        if folder is None:
            raise AuthorizationError("Folder not found")
        if is_workspace_manager(actor):
            return
        role = await self.actor_folder_role(folder, actor, access)
        if not role_at_least(role, FolderRole.VIEWER):
            raise AuthorizationError("Forbidden: you do not have permission to access this folder")

    async def assert_can_manage_folder(
        self, folder: Optional[Folder], actor: ActorContext, access: Optional[AccessContext] = None
    ) -> None:
        if folder is None:
            raise AuthorizationError("Folder not found")
        if is_workspace_manager(actor):
            return
        role = await self.actor_folder_role(folder, actor, access)
        if not role_at_least(role, FolderRole.MANAGER):
            raise AuthorizationError("Forbidden: you do not have permission to manage folder collaborators")

    async def resolve_folder_by_id_or_name(self, raw_folder_id: str, workspace_id: str) -> Optional[Folder]:
        """Look a folder up by id, then exact name, then case-insensitive name."""
        normalized = normalize_text(raw_folder_id)
        if not normalized:
            raise ValidationError("Missing folder id")
        folder = await self.folder_repo.get_folder(normalized, workspace_id)
        if folder is None:
            folder = await self.folder_repo.get_folder_by_name(normalized, workspace_id)
        if folder is None:
            folder = await self.folder_repo.get_folder_by_name_insensitive(normalized, workspace_id)
        return folder

    async def resolve_canonical_project_name(self, project: str, workspace_id: str) -> str:
        """Map a folder id or loosely-cased name to the folder's stored name.

        Falls back to the trimmed input when no folder matches.
        """
        normalized = normalize_text(project)
        if not normalized:
            return ""
        folder = await self.folder_repo.get_folder(normalized, workspace_id)
        if folder is None:
            folder = await self.folder_repo.get_folder_by_name(normalized, workspace_id)
        if folder is None:
            folder = await self.folder_repo.get_folder_by_name_insensitive(normalized, workspace_id)
        if folder is not None and normalize_text(folder.name):
            return normalize_text(folder.name)
        return normalized
