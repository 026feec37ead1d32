# stash/models/note.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class SourceType(str, Enum):
    TEXT = "text"
    LINK = "link"
    URL = "url"
    MANUAL = "manual"
    FILE = "file"
    IMAGE = "image"

    @classmethod
    def parse(cls, value: Any) -> "SourceType":
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.TEXT

    @property
    def has_extracted_text_only(self) -> bool:
        """File and image notes keep their text in raw/markdown content, not in ``content``."""
        return self in (SourceType.FILE, SourceType.IMAGE)


class Note(BaseModel):
    """A saved item. Read-only inside the core."""
    id: str
    workspace_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    created_by_user_id: Optional[str] = None
    content: str = ""
    raw_content: str = ""
    markdown_content: str = ""
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    # Denormalised folder *name*; may lag behind a folder rename.
    project: str = ""
    source_type: SourceType = SourceType.TEXT
    source_url: str = ""
    file_name: str = ""
    file_mime: str = ""
    embedding: Optional[List[float]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    revision: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator(
        "content", "raw_content", "markdown_content", "summary", "project",
        "source_url", "file_name", "file_mime", mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, value):
        if value is None:
            return []
        return [str(tag) for tag in value if str(tag or "").strip()]

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_dict(cls, value):
        return value if isinstance(value, dict) else {}

    @field_validator("source_type", mode="before")
    @classmethod
    def _parse_source_type(cls, value):
        return SourceType.parse(value)

    @field_validator("embedding", mode="before")
    @classmethod
    def _embedding_list(cls, value):
        if value is None:
            return None
        try:
            vector = [float(v) for v in value]
        except (TypeError, ValueError):
            return None
        return vector or None

    @property
    def last_activity_at(self) -> Optional[datetime]:
        return self.updated_at or self.created_at

    def searchable_text(self) -> str:
        """Composite text used for BM25, lexical overlap and phrase matching."""
        return "\n".join([
            self.content,
            self.raw_content,
            self.markdown_content,
            self.summary,
            " ".join(self.tags),
            self.project,
            self.file_name,
        ])

    def extracted_text(self) -> str:
        return "\n".join([self.raw_content, self.markdown_content, self.content])
