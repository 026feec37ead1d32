# stash/models/folder.py
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class FolderRole(str, Enum):
    """Per-folder collaborator role, totally ordered by ``rank``."""
    VIEWER = "viewer"
    EDITOR = "editor"
    MANAGER = "manager"

    @property
    def rank(self) -> int:
        return _FOLDER_ROLE_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["FolderRole"]:
        """Return the role named by ``value`` or ``None`` if it names no role."""
        if isinstance(value, FolderRole):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return None

    def at_least(self, minimum: "FolderRole") -> bool:
        return self.rank >= minimum.rank


_FOLDER_ROLE_RANK = {
    FolderRole.VIEWER: 1,
    FolderRole.EDITOR: 2,
    FolderRole.MANAGER: 3,
}


class Folder(BaseModel):
    id: str
    workspace_id: Optional[str] = None
    # Mutable and not unique over time; name lookups are best-effort.
    name: str
    parent_id: Optional[str] = None
    description: str = ""
    color: str = "green"
    symbol: str = "DOC"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("description", "color", "symbol", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class FolderMembership(BaseModel):
    workspace_id: str
    folder_id: str
    user_id: str
    role: FolderRole = FolderRole.VIEWER
    created_by_user_id: Optional[str] = None
    user_email: str = ""
    user_name: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        return FolderRole.parse(value) or FolderRole.VIEWER

    @field_validator("user_email", "user_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value
