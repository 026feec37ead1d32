"""
Shared fixtures: in-memory repositories that satisfy the collaborator protocols.
"""
import itertools
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from stash.access import note_owner_id
from stash.config import Settings
from stash.models import (
    ActivityEvent,
    ActorContext,
    Folder,
    FolderMembership,
    FolderRole,
    Note,
    WorkspaceMember,
)
from stash.service import MemoryService

WORKSPACE = "ws-1"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_note(note_id: str, owner: Optional[str] = "owner", minutes: int = 0, **fields) -> Note:
    """Notes created ``minutes`` after ``BASE_TIME``; later minutes sort first."""
    fields.setdefault("workspace_id", WORKSPACE)
    fields.setdefault("created_at", BASE_TIME + timedelta(minutes=minutes))
    return Note(id=note_id, owner_user_id=owner, **fields)


def actor(user_id: str = "user-1", role: str = "member", **fields) -> ActorContext:
    return ActorContext(workspace_id=WORKSPACE, user_id=user_id, role=role, **fields)


class FakeNoteRepository:
    def __init__(self, notes: Optional[List[Note]] = None):
        self.notes: Dict[str, Note] = {n.id: n for n in notes or []}
        self.list_calls: List[dict] = []

    def add(self, *notes: Note) -> None:
        for note in notes:
            self.notes[note.id] = note

    def _ordered(self, workspace_id, project, owner=None):
        rows = [n for n in self.notes.values() if n.workspace_id == workspace_id]
        if project:
            rows = [n for n in rows if n.project.lower() == project.lower()]
        if owner is not None:
            rows = [n for n in rows if note_owner_id(n) == owner]
        return sorted(rows, key=lambda n: (n.created_at, n.id), reverse=True)

    async def get_note_by_id(self, note_id, workspace_id):
        note = self.notes.get(note_id)
        return note if note and note.workspace_id == workspace_id else None

    async def list_by_project(self, project, limit, offset, workspace_id):
        self.list_calls.append({"project": project, "limit": limit, "offset": offset})
        return self._ordered(workspace_id, project)[offset:offset + limit]

    async def list_by_project_for_user(self, project, limit, offset, workspace_id, user_id):
        self.list_calls.append({"project": project, "limit": limit, "offset": offset, "user_id": user_id})
        return self._ordered(workspace_id, project, owner=user_id)[offset:offset + limit]

    async def list_projects(self, workspace_id):
        return sorted({n.project for n in self.notes.values() if n.workspace_id == workspace_id and n.project})

    async def list_projects_for_user(self, workspace_id, user_id):
        return sorted({
            n.project for n in self.notes.values()
            if n.workspace_id == workspace_id and note_owner_id(n) == user_id and n.project
        })

    async def list_tags(self, workspace_id, owner=None):
        counts = Counter()
        for note in self.notes.values():
            if note.workspace_id != workspace_id:
                continue
            if owner is not None and note_owner_id(note) != owner:
                continue
            counts.update(tag.lower() for tag in note.tags)
        return [{"tag": t, "count": c} for t, c in sorted(counts.items(), key=lambda i: (-i[1], i[0]))]

    async def list_tags_for_user(self, workspace_id, user_id):
        return await self.list_tags(workspace_id, owner=user_id)


class FakeFolderRepository:
    def __init__(self, folders: Optional[List[Folder]] = None):
        self.folders: Dict[str, Folder] = {f.id: f for f in folders or []}
        self._ids = itertools.count(1)
        self.list_calls = 0

    async def get_folder(self, folder_id, workspace_id):
        folder = self.folders.get(folder_id)
        return folder if folder and folder.workspace_id == workspace_id else None

    async def get_folder_by_name(self, name, workspace_id):
        for folder in self.folders.values():
            if folder.workspace_id == workspace_id and folder.name == name:
                return folder
        return None

    async def get_folder_by_name_insensitive(self, name, workspace_id):
        for folder in self.folders.values():
            if folder.workspace_id == workspace_id and folder.name.lower() == name.lower():
                return folder
        return None

    async def list_all_folders(self, workspace_id):
        self.list_calls += 1
        return [f for f in self.folders.values() if f.workspace_id == workspace_id]

    async def create_folder(self, *, name, workspace_id, description="", color="green", symbol="DOC", parent_id=None):
        folder = Folder(
            id=f"folder-{next(self._ids)}",
            workspace_id=workspace_id,
            name=name,
            description=description,
            color=color,
            symbol=symbol,
            parent_id=parent_id,
        )
        self.folders[folder.id] = folder
        return folder

    async def update_folder(self, folder_id, patch, workspace_id):
        updated = self.folders[folder_id].model_copy(update=patch)
        self.folders[folder_id] = updated
        return updated

    async def delete_folder(self, folder_id, workspace_id):
        deleted = self.folders.pop(folder_id, None) is not None
        return {"id": folder_id, "deleted": deleted}


class FakeCollaborationRepository:
    def __init__(self):
        self.memberships: Dict[tuple, FolderMembership] = {}
        self.events: List[ActivityEvent] = []
        self.fail_activity = False
        self.membership_calls = 0
        self._ids = itertools.count(1)

    def grant(self, folder_id, user_id, role, workspace_id=WORKSPACE):
        self.memberships[(workspace_id, folder_id, user_id)] = FolderMembership(
            workspace_id=workspace_id, folder_id=folder_id, user_id=user_id, role=role
        )

    async def list_folder_memberships_for_user(self, *, workspace_id, user_id):
        self.membership_calls += 1
        return [m for (ws, _, uid), m in self.memberships.items() if ws == workspace_id and uid == user_id]

    async def list_folder_members(self, *, workspace_id, folder_id):
        return [m for (ws, fid, _), m in self.memberships.items() if ws == workspace_id and fid == folder_id]

    async def get_folder_member_role(self, *, workspace_id, folder_id, user_id):
        membership = self.memberships.get((workspace_id, folder_id, user_id))
        return membership.role if membership else None

    async def upsert_folder_member(self, *, workspace_id, folder_id, user_id, role, created_by_user_id=None):
        membership = FolderMembership(
            workspace_id=workspace_id,
            folder_id=folder_id,
            user_id=user_id,
            role=role,
            created_by_user_id=created_by_user_id,
        )
        self.memberships[(workspace_id, folder_id, user_id)] = membership
        return membership

    async def remove_folder_member(self, *, workspace_id, folder_id, user_id):
        return 1 if self.memberships.pop((workspace_id, folder_id, user_id), None) else 0

    async def create_activity_event(self, *, workspace_id, actor_user_id, actor_name, event_type, entity_type,
                                    entity_id, folder_id=None, note_id=None, visibility_user_id=None, details=None):
        if self.fail_activity:
            raise RuntimeError("activity store offline")
        event = ActivityEvent(
            id=f"evt-{next(self._ids)}",
            workspace_id=workspace_id,
            actor_user_id=actor_user_id,
            actor_name=actor_name,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            folder_id=folder_id,
            note_id=note_id,
            visibility_user_id=visibility_user_id,
            details=details or {},
        )
        self.events.append(event)
        return event

    async def list_activity_events(self, *, workspace_id, folder_id="", note_id="", limit=100):
        events = [e for e in reversed(self.events) if e.workspace_id == workspace_id]
        if folder_id:
            events = [e for e in events if e.folder_id == folder_id]
        if note_id:
            events = [e for e in events if e.note_id == note_id]
        return events[:limit]


class FakeWorkspaceMemberRepository:
    def __init__(self, members: Optional[List[WorkspaceMember]] = None):
        self.members = list(members or [])

    async def list_workspace_members(self, workspace_id, limit=1000):
        return [m for m in self.members if m.workspace_id == workspace_id][:limit]


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def note_repo():
    return FakeNoteRepository()


@pytest.fixture
def folder_repo():
    return FakeFolderRepository()


@pytest.fixture
def collab_repo():
    return FakeCollaborationRepository()


@pytest.fixture
def member_repo():
    return FakeWorkspaceMemberRepository([
        WorkspaceMember(workspace_id=WORKSPACE, user_id="owner", role="owner", name="Olive"),
        WorkspaceMember(workspace_id=WORKSPACE, user_id="manager", name="Mona", email="mona@example.com"),
        WorkspaceMember(workspace_id=WORKSPACE, user_id="editor", name="Eddie", email="eddie@example.com"),
        WorkspaceMember(workspace_id=WORKSPACE, user_id="viewer", name="Vera", email="vera@example.com"),
    ])


@pytest.fixture
def service(note_repo, folder_repo, collab_repo, member_repo, settings):
    return MemoryService(note_repo, folder_repo, collab_repo, member_repo, settings=settings)


@pytest.fixture
def product_workspace(note_repo, folder_repo, collab_repo):
    """A "Product" folder managed by ``manager`` with ``editor`` and ``viewer`` collaborators."""
    folder_repo.folders["f-product"] = Folder(id="f-product", workspace_id=WORKSPACE, name="Product")
    folder_repo.folders["f-private"] = Folder(id="f-private", workspace_id=WORKSPACE, name="Private")
    collab_repo.grant("f-product", "manager", FolderRole.MANAGER)
    collab_repo.grant("f-product", "editor", FolderRole.EDITOR)
    collab_repo.grant("f-product", "viewer", FolderRole.VIEWER)
    note_repo.add(
        make_note("n-roadmap", owner="manager", minutes=3, project="Product",
                  content="Quarterly roadmap for the search launch", metadata={"title": "Roadmap"}),
        make_note("n-pricing", owner="manager", minutes=2, project="Product",
                  content="Pricing experiments and discount tiers"),
        make_note("n-secret", owner="manager", minutes=1, project="Private",
                  content="Hiring plan for the search team"),
        make_note("n-editor-own", owner="editor", minutes=0, project="",
                  content="Editor scratchpad about search ranking"),
    )
    return {"note_repo": note_repo, "folder_repo": folder_repo, "collab_repo": collab_repo}
