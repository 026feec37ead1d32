from .activity import ActivityEvent
from .actor import AccessContext, ActorContext, MemoryScope, WorkspaceMember, WorkspaceRole
from .citation import Citation, CitationNote
from .folder import Folder, FolderMembership, FolderRole
from .note import Note, SourceType

__all__ = [
    "AccessContext",
    "ActivityEvent",
    "ActorContext",
    "Citation",
    "CitationNote",
    "Folder",
    "FolderMembership",
    "FolderRole",
    "MemoryScope",
    "Note",
    "SourceType",
    "WorkspaceMember",
    "WorkspaceRole",
]
