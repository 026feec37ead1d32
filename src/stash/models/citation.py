# stash/models/citation.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .note import SourceType


class CitationNote(BaseModel):
    """Redacted projection of a note, safe to hand to a model or a client."""
    id: str
    title: str = ""
    summary: str = ""
    project: str = ""
    source_url: str = ""
    source_type: SourceType = SourceType.TEXT
    file_name: str = ""
    tags: List[str] = Field(default_factory=list)
    content: str = ""
    excerpt: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Citation(BaseModel):
    rank: int = Field(ge=1)
    score: float
    note: CitationNote

    @property
    def label(self) -> str:
        return f"N{self.rank}"
