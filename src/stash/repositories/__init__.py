from .base import (
    CollaborationRepository,
    EmbeddingProvider,
    FolderRepository,
    KeyValueCache,
    NoteRepository,
    WorkspaceMemberRepository,
)
from .sql import (
    SqlCollaborationRepository,
    SqlFolderRepository,
    SqlNoteRepository,
    SqlWorkspaceMemberRepository,
)

__all__ = [
    "CollaborationRepository",
    "EmbeddingProvider",
    "FolderRepository",
    "KeyValueCache",
    "NoteRepository",
    "WorkspaceMemberRepository",
    "SqlCollaborationRepository",
    "SqlFolderRepository",
    "SqlNoteRepository",
    "SqlWorkspaceMemberRepository",
]
