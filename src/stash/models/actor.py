# stash/models/actor.py
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .folder import FolderRole


class WorkspaceRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: Any) -> "WorkspaceRole":
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.MEMBER

    @property
    def is_privileged(self) -> bool:
        return self in (WorkspaceRole.OWNER, WorkspaceRole.ADMIN)


class MemoryScope(str, Enum):
    ALL = "all"
    WORKSPACE = "workspace"
    USER = "user"
    PROJECT = "project"
    ITEM = "item"

    @classmethod
    def parse(cls, value: Any) -> "MemoryScope":
        if isinstance(value, MemoryScope):
            return value
        normalized = str(value or "all").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.ALL


class ActorContext(BaseModel):
    """The user + workspace pair issuing an operation."""
    workspace_id: str
    user_id: Optional[str] = None
    role: WorkspaceRole = WorkspaceRole.MEMBER
    user_name: str = ""
    user_email: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        return WorkspaceRole.parse(value)

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged

    @property
    def display_name(self) -> str:
        return self.user_name.strip() or (self.user_id or "").strip() or "Unknown user"


class WorkspaceMember(BaseModel):
    workspace_id: str
    user_id: str
    role: WorkspaceRole = WorkspaceRole.MEMBER
    email: str = ""
    name: str = ""

    model_config = {"from_attributes": True}

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        return WorkspaceRole.parse(value)

    @field_validator("email", "name", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class AccessContext(BaseModel):
    """Request-scoped snapshot of one actor's folder roles. Never cached across calls."""
    role_by_folder_id: Dict[str, FolderRole] = Field(default_factory=dict)
    # Lower-cased folder names; a point-in-time join, so renames can leave it stale.
    role_by_project_name: Dict[str, FolderRole] = Field(default_factory=dict)

    def role_for_folder(self, folder_id: Optional[str]) -> Optional[FolderRole]:
        return self.role_by_folder_id.get(str(folder_id or "").strip())

    def role_for_project(self, project: Optional[str]) -> Optional[FolderRole]:
        key = str(project or "").strip().lower()
        if not key:
            return None
        return self.role_by_project_name.get(key)
