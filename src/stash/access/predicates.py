"""
Pure access predicates.

Every check takes the entity, the actor and an optional precomputed ``AccessContext``
and answers without I/O. Privileged actors (workspace owner/admin) pass everything.
"""
from typing import Any, Optional

from ..models import AccessContext, ActorContext, Folder, FolderRole, Note
from ..utils import normalize_text


def note_owner_id(note: Optional[Note]) -> str:
    """Owner of a note: ``owner_user_id``, then ``created_by_user_id``, then ``metadata.actorUserId``.

    This is the only place the fallback order lives; every ownership check goes through it.
    """
    if note is None:
        return ""
    explicit = normalize_text(note.owner_user_id)
    if explicit:
        return explicit
    creator = normalize_text(note.created_by_user_id)
    if creator:
        return creator
    return normalize_text((note.metadata or {}).get("actorUserId"))


def is_workspace_manager(actor: Optional[ActorContext]) -> bool:
    return actor is not None and actor.is_privileged


def role_at_least(role: Any, minimum: FolderRole) -> bool:
    parsed = FolderRole.parse(role)
    return parsed is not None and parsed.at_least(minimum)


def folder_role_for_note(note: Optional[Note], access: Optional[AccessContext]) -> Optional[FolderRole]:
    # Notes point at folders by name, so the lookup goes through the name map.
    if note is None or access is None:
        return None
    return access.role_for_project(note.project)


def _note_permitted(note, actor, access, minimum: FolderRole) -> bool:
    if note is None or actor is None:
        return False
    if is_workspace_manager(actor):
        return True
    user_id = normalize_text(actor.user_id)
    if not user_id:
        return False
    if note_owner_id(note) == user_id:
        return True
    return role_at_least(folder_role_for_note(note, access), minimum)


def can_read_note(note: Optional[Note], actor: Optional[ActorContext], access: Optional[AccessContext] = None) -> bool:
    return _note_permitted(note, actor, access, FolderRole.VIEWER)


def can_mutate_note(note: Optional[Note], actor: Optional[ActorContext], access: Optional[AccessContext] = None) -> bool:
    return _note_permitted(note, actor, access, FolderRole.EDITOR)


def _folder_permitted(folder, actor, access, minimum: FolderRole) -> bool:
    if folder is None or actor is None:
        return False
    if is_workspace_manager(actor):
        return True
    if not normalize_text(actor.user_id) or access is None:
        return False
    return role_at_least(access.role_for_folder(folder.id), minimum)


def can_view_folder(folder: Optional[Folder], actor: Optional[ActorContext], access: Optional[AccessContext] = None) -> bool:
    return _folder_permitted(folder, actor, access, FolderRole.VIEWER)


def can_manage_folder(folder: Optional[Folder], actor: Optional[ActorContext], access: Optional[AccessContext] = None) -> bool:
    return _folder_permitted(folder, actor, access, FolderRole.MANAGER)
