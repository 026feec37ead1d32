from .context import AccessControl
from .predicates import (
    can_manage_folder,
    can_mutate_note,
    can_read_note,
    can_view_folder,
    folder_role_for_note,
    is_workspace_manager,
    note_owner_id,
    role_at_least,
)

__all__ = [
    "AccessControl",
    "can_manage_folder",
    "can_mutate_note",
    "can_read_note",
    "can_view_folder",
    "folder_role_for_note",
    "is_workspace_manager",
    "note_owner_id",
    "role_at_least",
]
