"""
Folder collaborator management and the workspace activity feed.

Management paths resolve the folder first and report "Folder not found" separately
from a permission denial.
"""
import logging
from typing import Any, Dict, Optional

from .access import AccessControl
from .activity import ActivityEmitter, build_activity_message
from .errors import NotFoundError, ValidationError
from .models import ActorContext, Folder, FolderMembership, FolderRole, WorkspaceMember
from .repositories.base import CollaborationRepository, FolderRepository, WorkspaceMemberRepository
from .utils import clamp_int, normalize_text

logger = logging.getLogger(__name__)

FOLDER_PATCH_FIELDS = ("name", "description", "color", "symbol", "parent_id")


def _check_keeps_manager(members, user_id: str, new_role: Optional[FolderRole]) -> None:
    """Raise if moving ``user_id`` to ``new_role`` (``None`` = removal) leaves no manager."""
    if new_role == FolderRole.MANAGER:
        return
    current = next((m for m in members if normalize_text(m.user_id) == normalize_text(user_id)), None)
    if current is None or current.role != FolderRole.MANAGER:
        return
    managers = sum(1 for member in members if member.role == FolderRole.MANAGER)
    if managers <= 1:
        raise ValidationError("Folder must retain at least one manager")


class FolderCollaboration:
    def __init__(
        self,
        access: AccessControl,
        folder_repo: FolderRepository,
        collaboration_repo: CollaborationRepository,
        member_repo: WorkspaceMemberRepository,
        emitter: ActivityEmitter,
    ):
        self.access = access
        self.folder_repo = folder_repo
        self.collaboration_repo = collaboration_repo
        self.member_repo = member_repo
        self.emitter = emitter

    async def _require_folder(self, folder_ref: Any, actor: ActorContext) -> Folder:
        folder = await self.access.resolve_folder_by_id_or_name(folder_ref, actor.workspace_id)
        if folder is None:
            raise NotFoundError("Folder not found")
        return folder

    # --- Folders ---

    async def create_workspace_folder(
        self,
        actor: ActorContext,
        name: str,
        description: str = "",
        color: str = "green",
        symbol: str = "DOC",
        parent_id: Optional[str] = None,
    ) -> Folder:
        normalized_name = normalize_text(name)
        if not normalized_name:
            raise ValidationError("Missing folder name")
        folder = await self.folder_repo.create_folder(
            name=normalized_name,
            workspace_id=actor.workspace_id,
            description=normalize_text(description),
            color=normalize_text(color) or "green",
            symbol=normalize_text(symbol) or "DOC",
            parent_id=normalize_text(parent_id) or None,
        )
        if normalize_text(actor.user_id):
            await self.collaboration_repo.upsert_folder_member(
                workspace_id=actor.workspace_id,
                folder_id=folder.id,
                user_id=actor.user_id,
                role=FolderRole.MANAGER,
                created_by_user_id=actor.user_id,
            )
        await self.emitter.emit_workspace_activity(
            actor,
            "folder.created",
            entity_type="folder",
            entity_id=folder.id,
            folder_id=folder.id,
            details={"folderName": folder.name},
        )
        return folder

    async def update_workspace_folder(self, actor: ActorContext, folder_id: str, patch: Dict[str, Any]) -> Folder:
        existing = await self._require_folder(folder_id, actor)
        await self.access.assert_can_manage_folder(existing, actor)
        clean_patch = {key: value for key, value in (patch or {}).items() if key in FOLDER_PATCH_FIELDS}
        if "name" in clean_patch and not normalize_text(clean_patch["name"]):
            raise ValidationError("Folder name cannot be empty")
        updated = await self.folder_repo.update_folder(existing.id, clean_patch, actor.workspace_id)
        await self.emitter.emit_workspace_activity(
            actor,
            "folder.updated",
            entity_type="folder",
            entity_id=updated.id,
            folder_id=updated.id,
            details={"folderName": updated.name},
        )
        return updated

    async def delete_workspace_folder(self, actor: ActorContext, folder_id: str) -> Dict[str, Any]:
        existing = await self._require_folder(folder_id, actor)
        await self.access.assert_can_manage_folder(existing, actor)
        result = await self.folder_repo.delete_folder(existing.id, actor.workspace_id)
        # The folder row is gone, so the event carries no folder id.
        await self.emitter.emit_workspace_activity(
            actor,
            "folder.deleted",
            entity_type="folder",
            entity_id=existing.id,
            details={"folderName": existing.name},
        )
        return result

    # --- Collaborators ---

    async def list_folder_collaborators(self, actor: ActorContext, folder_id: str) -> Dict[str, Any]:
        folder = await self._require_folder(folder_id, actor)
        access = await self.access.build_access_context(actor)
        await self.access.assert_can_view_folder(folder, actor, access)
        items = await self.collaboration_repo.list_folder_members(
            workspace_id=actor.workspace_id, folder_id=folder.id
        )
        return {"folder": folder, "items": items, "count": len(items)}

    async def _find_workspace_member(self, actor: ActorContext, user_id: str = "", email: str = "") -> WorkspaceMember:
        normalized_user_id = normalize_text(user_id)
        normalized_email = normalize_text(email).lower()
        if not normalized_user_id and not normalized_email:
            raise ValidationError("Missing user id")
        members = await self.member_repo.list_workspace_members(actor.workspace_id, 1000)
        for member in members:
            if normalized_user_id and normalize_text(member.user_id) == normalized_user_id:
                return member
            if normalized_email and normalize_text(member.email).lower() == normalized_email:
                return member
        raise ValidationError("User is not a member of this workspace")

    async def set_folder_collaborator_role(
        self,
        actor: ActorContext,
        folder_id: str,
        user_id: str = "",
        role: Any = FolderRole.VIEWER,
        email: str = "",
    ) -> FolderMembership:
        folder = await self._require_folder(folder_id, actor)
        await self.access.assert_can_manage_folder(folder, actor)
        target = await self._find_workspace_member(actor, user_id, email)

        role_to_set = FolderRole.parse(role) or FolderRole.VIEWER
        if role_to_set != FolderRole.MANAGER:
            members = await self.collaboration_repo.list_folder_members(
                workspace_id=actor.workspace_id, folder_id=folder.id
            )
            _check_keeps_manager(members, target.user_id, role_to_set)

        collaborator = await self.collaboration_repo.upsert_folder_member(
            workspace_id=actor.workspace_id,
            folder_id=folder.id,
            user_id=target.user_id,
            role=role_to_set,
            created_by_user_id=actor.user_id,
        )
        await self.emitter.emit_workspace_activity(
            actor,
            "folder.shared",
            entity_type="folder",
            entity_id=folder.id,
            folder_id=folder.id,
            details={
                "folderName": folder.name,
                "role": role_to_set.value,
                "userId": target.user_id,
                "userEmail": target.email,
                "userName": target.name,
            },
        )
        return collaborator

    async def remove_folder_collaborator(
        self, actor: ActorContext, folder_id: str, user_id: str = "", email: str = ""
    ) -> Dict[str, int]:
        """Remove one collaborator. The last manager of a folder cannot be removed."""
        folder = await self._require_folder(folder_id, actor)
        await self.access.assert_can_manage_folder(folder, actor)
        normalized_user_id = normalize_text(user_id)
        normalized_email = normalize_text(email).lower()
        if not normalized_user_id and not normalized_email:
            raise ValidationError("Missing user id")

        members = await self.collaboration_repo.list_folder_members(
            workspace_id=actor.workspace_id, folder_id=folder.id
        )
        target = None
        for member in members:
            if normalized_user_id and normalize_text(member.user_id) == normalized_user_id:
                target = member
                break
            if normalized_email and normalize_text(member.user_email).lower() == normalized_email:
                target = member
                break
        if target is None:
            return {"removed": 0}

        _check_keeps_manager(members, target.user_id, None)

        removed = await self.collaboration_repo.remove_folder_member(
            workspace_id=actor.workspace_id, folder_id=folder.id, user_id=target.user_id
        )
        if removed > 0:
            await self.emitter.emit_workspace_activity(
                actor,
                "folder.unshared",
                entity_type="folder",
                entity_id=folder.id,
                folder_id=folder.id,
                details={
                    "folderName": folder.name,
                    "role": target.role.value,
                    "userId": target.user_id,
                    "userEmail": target.user_email,
                    "userName": target.user_name,
                },
            )
        return {"removed": removed}

    async def list_workspace_members(self, actor: ActorContext, query: str = "", limit: Any = 50) -> Dict[str, Any]:
        self.access.assert_workspace_manager(actor)
        bounded = clamp_int(limit, 1, 1000, 50)
        members = await self.member_repo.list_workspace_members(actor.workspace_id, 1000)
        needle = normalize_text(query).lower()
        if needle:
            members = [
                member for member in members
                if needle in member.name.lower() or needle in member.email.lower() or needle in member.user_id.lower()
            ]
        items = members[:bounded]
        return {"items": items, "count": len(items)}

    # --- Activity feed ---

    async def list_workspace_activity(
        self, actor: ActorContext, folder_id: str = "", note_id: str = "", limit: Any = 60
    ) -> Dict[str, Any]:
        bounded = clamp_int(limit, 1, 200, 60)
        resolved_folder_id = ""
        if normalize_text(folder_id):
            folder = await self._require_folder(folder_id, actor)
            await self.access.assert_can_view_folder(folder, actor)
            resolved_folder_id = folder.id

        events = await self.collaboration_repo.list_activity_events(
            workspace_id=actor.workspace_id,
            folder_id=resolved_folder_id,
            note_id=normalize_text(note_id),
            limit=min(500, bounded * 4),
        )

        if not actor.is_privileged:
            access = await self.access.build_access_context(actor)
            actor_user_id = normalize_text(actor.user_id)
            visible = []
            for event in events:
                visibility_user_id = normalize_text(event.visibility_user_id)
                if visibility_user_id:
                    if visibility_user_id == actor_user_id:
                        visible.append(event)
                elif normalize_text(event.folder_id):
                    if normalize_text(event.folder_id) in access.role_by_folder_id:
                        visible.append(event)
                else:
                    visible.append(event)
            events = visible

        items = [
            event.model_copy(update={
                "actor_name": normalize_text(event.actor_name) or "Unknown user",
                "message": build_activity_message(event),
            })
            for event in events[:bounded]
        ]
        return {"items": items, "count": len(items)}
