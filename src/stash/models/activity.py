# stash/models/activity.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class ActivityEvent(BaseModel):
    id: str
    workspace_id: str
    actor_user_id: Optional[str] = None
    actor_name: str = ""
    event_type: str
    entity_type: str = "workspace"
    entity_id: str = ""
    folder_id: str = ""
    folder_name: str = ""
    note_id: str = ""
    visibility_user_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    message: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("actor_name", "entity_id", "folder_id", "folder_name", "note_id", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("details", mode="before")
    @classmethod
    def _details_dict(cls, value):
        return value if isinstance(value, dict) else {}
