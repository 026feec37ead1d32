"""
SQLAlchemy-backed implementations of the collaborator protocols.

Each call opens its own session from the supplied ``async_sessionmaker``; writes
commit before returning. Rows are mapped onto the pydantic records explicitly.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..database import crud
from ..database import models as orm
from ..models import ActivityEvent, Folder, FolderMembership, FolderRole, Note, WorkspaceMember
from ..utils import clamp_int, normalize_text


def note_from_row(row: orm.Note) -> Note:
    return Note(
        id=row.id,
        workspace_id=row.workspace_id,
        owner_user_id=row.owner_user_id,
        created_by_user_id=row.created_by_user_id,
        content=row.content,
        raw_content=row.raw_content,
        markdown_content=row.markdown_content,
        summary=row.summary,
        tags=row.tags,
        project=row.project,
        source_type=row.source_type,
        source_url=row.source_url,
        file_name=row.file_name,
        file_mime=row.file_mime,
        embedding=row.embedding,
        metadata=row.meta,
        revision=row.revision or 1,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _membership_from_row(row: orm.FolderMembership, member: Optional[orm.WorkspaceMember] = None) -> FolderMembership:
    return FolderMembership(
        workspace_id=row.workspace_id,
        folder_id=row.folder_id,
        user_id=row.user_id,
        role=row.role,
        created_by_user_id=row.created_by_user_id,
        user_email=member.email if member else "",
        user_name=member.name if member else "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _event_from_row(row: orm.ActivityEvent, folder_name: Optional[str] = None) -> ActivityEvent:
    return ActivityEvent(
        id=row.id,
        workspace_id=row.workspace_id,
        actor_user_id=row.actor_user_id,
        actor_name=row.actor_name,
        event_type=row.event_type,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        folder_id=row.folder_id,
        folder_name=folder_name,
        note_id=row.note_id,
        visibility_user_id=row.visibility_user_id,
        details=row.details,
        created_at=row.created_at,
    )


class SqlNoteRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_note_by_id(self, note_id: str, workspace_id: str) -> Optional[Note]:
        async with self._session_factory() as db:
            row = await crud.get_note(db, normalize_text(note_id), workspace_id)
            return note_from_row(row) if row else None

    async def list_by_project(self, project, limit, offset, workspace_id) -> List[Note]:
        async with self._session_factory() as db:
            rows = await crud.list_notes(
                db,
                workspace_id,
                project=normalize_text(project) or None,
                skip=clamp_int(offset, 0, 100000, 0),
                limit=clamp_int(limit, 1, 10000, 200),
            )
            return [note_from_row(r) for r in rows]

    async def list_by_project_for_user(self, project, limit, offset, workspace_id, user_id) -> List[Note]:
        async with self._session_factory() as db:
            rows = await crud.list_notes(
                db,
                workspace_id,
                project=normalize_text(project) or None,
                owner_user_id=normalize_text(user_id),
                skip=clamp_int(offset, 0, 100000, 0),
                limit=clamp_int(limit, 1, 10000, 200),
            )
            return [note_from_row(r) for r in rows]

    async def list_projects(self, workspace_id: str) -> List[str]:
        async with self._session_factory() as db:
            return await crud.list_distinct_projects(db, workspace_id)

    async def list_projects_for_user(self, workspace_id: str, user_id: str) -> List[str]:
        async with self._session_factory() as db:
            return await crud.list_distinct_projects(db, workspace_id, owner_user_id=user_id)

    async def list_tags(self, workspace_id: str) -> List[Dict[str, Any]]:
        async with self._session_factory() as db:
            return await crud.list_tag_counts(db, workspace_id)

    async def list_tags_for_user(self, workspace_id: str, user_id: str) -> List[Dict[str, Any]]:
        async with self._session_factory() as db:
            return await crud.list_tag_counts(db, workspace_id, owner_user_id=user_id)

    async def create_note(self, **fields: Any) -> Note:
        async with self._session_factory() as db:
            row = await crud.create_note(db, **fields)
            await db.commit()
            return note_from_row(row)


class SqlFolderRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_folder(self, folder_id: str, workspace_id: str) -> Optional[Folder]:
        async with self._session_factory() as db:
            row = await crud.get_folder(db, normalize_text(folder_id), workspace_id)
            return Folder.model_validate(row) if row else None

    async def get_folder_by_name(self, name: str, workspace_id: str) -> Optional[Folder]:
        async with self._session_factory() as db:
            row = await crud.get_folder_by_name(db, normalize_text(name), workspace_id)
            return Folder.model_validate(row) if row else None

    async def get_folder_by_name_insensitive(self, name: str, workspace_id: str) -> Optional[Folder]:
        async with self._session_factory() as db:
            row = await crud.get_folder_by_name(db, normalize_text(name), workspace_id, case_insensitive=True)
            return Folder.model_validate(row) if row else None

    async def list_all_folders(self, workspace_id: str) -> List[Folder]:
        async with self._session_factory() as db:
            return [Folder.model_validate(r) for r in await crud.list_folders(db, workspace_id)]

    async def create_folder(self, *, name, workspace_id, description="", color="green", symbol="DOC", parent_id=None) -> Folder:
        async with self._session_factory() as db:
            row = await crud.create_folder(
                db,
                name=name,
                workspace_id=workspace_id,
                description=description,
                color=color,
                symbol=symbol,
                parent_id=parent_id,
            )
            await db.commit()
            return Folder.model_validate(row)

    async def update_folder(self, folder_id: str, patch: Dict[str, Any], workspace_id: str) -> Folder:
        async with self._session_factory() as db:
            row = await crud.update_folder(db, folder_id, workspace_id, patch)
            if row is None:
                raise LookupError(f"Folder not found: {folder_id}")
            await db.commit()
            return Folder.model_validate(row)

    async def delete_folder(self, folder_id: str, workspace_id: str) -> Dict[str, Any]:
        async with self._session_factory() as db:
            deleted = await crud.delete_folder(db, folder_id, workspace_id)
            await db.commit()
            return {"id": folder_id, "deleted": deleted}


class SqlCollaborationRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def list_folder_memberships_for_user(self, *, workspace_id: str, user_id: str) -> List[FolderMembership]:
        async with self._session_factory() as db:
            rows = await crud.list_memberships_for_user(db, workspace_id, user_id)
            return [_membership_from_row(r) for r in rows]

    async def list_folder_members(self, *, workspace_id: str, folder_id: str) -> List[FolderMembership]:
        async with self._session_factory() as db:
            pairs = await crud.list_folder_members(db, workspace_id, folder_id)
            return [_membership_from_row(m, wm) for m, wm in pairs]

    async def get_folder_member_role(self, *, workspace_id: str, folder_id: str, user_id: str) -> Optional[FolderRole]:
        async with self._session_factory() as db:
            row = await crud.get_membership(db, workspace_id, folder_id, user_id)
            return FolderRole.parse(row.role) if row else None

    async def upsert_folder_member(self, *, workspace_id, folder_id, user_id, role, created_by_user_id=None) -> FolderMembership:
        parsed = FolderRole.parse(role) or FolderRole.VIEWER
        async with self._session_factory() as db:
            row = await crud.upsert_membership(
                db, workspace_id, folder_id, user_id, parsed.value, created_by_user_id
            )
            await db.commit()
            return _membership_from_row(row)

    async def remove_folder_member(self, *, workspace_id: str, folder_id: str, user_id: str) -> int:
        async with self._session_factory() as db:
            removed = await crud.delete_membership(db, workspace_id, folder_id, user_id)
            await db.commit()
            return removed

    async def create_activity_event(
        self,
        *,
        workspace_id,
        actor_user_id,
        actor_name,
        event_type,
        entity_type,
        entity_id,
        folder_id=None,
        note_id=None,
        visibility_user_id=None,
        details=None,
    ) -> Optional[ActivityEvent]:
        async with self._session_factory() as db:
            row = await crud.create_activity_event(
                db,
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
            await db.commit()
            return _event_from_row(row)

    async def list_activity_events(self, *, workspace_id, folder_id="", note_id="", limit=100) -> List[ActivityEvent]:
        bounded = clamp_int(limit, 1, 500, 50)
        async with self._session_factory() as db:
            pairs = await crud.list_activity_events(
                db, workspace_id, normalize_text(folder_id), normalize_text(note_id), bounded
            )
            return [_event_from_row(e, name) for e, name in pairs]


class SqlWorkspaceMemberRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def list_workspace_members(self, workspace_id: str, limit: int = 1000) -> List[WorkspaceMember]:
        async with self._session_factory() as db:
            rows = await crud.list_workspace_members(db, workspace_id, clamp_int(limit, 1, 5000, 1000))
            return [WorkspaceMember.model_validate(r) for r in rows]

    async def add_workspace_member(self, workspace_id: str, user_id: str, role: str = "member", email: str = "", name: str = "") -> WorkspaceMember:
        async with self._session_factory() as db:
            row = await crud.upsert_workspace_member(db, workspace_id, user_id, role, email, name)
            await db.commit()
            return WorkspaceMember.model_validate(row)
