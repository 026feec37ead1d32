from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models

# --- Note queries ---


def _owned_by(user_id: str):
    """Same fallback order as ``stash.access.note_owner_id``."""
    owner = func.coalesce(
        func.nullif(models.Note.owner_user_id, ""),
        func.nullif(models.Note.created_by_user_id, ""),
        func.nullif(models.Note.meta["actorUserId"].as_string(), ""),
    )
    return owner == user_id


async def get_note(db: AsyncSession, note_id: str, workspace_id: str) -> Optional[models.Note]:
    query = select(models.Note).filter(
        models.Note.id == note_id, models.Note.workspace_id == workspace_id
    )
    result = await db.execute(query)
    return result.scalars().first()


async def list_notes(
    db: AsyncSession,
    workspace_id: str,
    project: Optional[str] = None,
    owner_user_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 200,
) -> List[models.Note]:
    query = select(models.Note).filter(models.Note.workspace_id == workspace_id)
    if owner_user_id is not None:
        query = query.filter(_owned_by(owner_user_id))
    if project:
        query = query.filter(func.lower(func.coalesce(models.Note.project, "")) == project.lower())
    query = (
        query.order_by(models.Note.created_at.desc(), models.Note.id.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_note(db: AsyncSession, **fields: Any) -> models.Note:
    """Creates a note row in the session. Does not commit."""
    if "metadata" in fields:
        fields["meta"] = fields.pop("metadata") or {}
    db_note = models.Note(**fields)
    db.add(db_note)
    await db.flush()
    await db.refresh(db_note)
    return db_note


async def list_distinct_projects(
    db: AsyncSession, workspace_id: str, owner_user_id: Optional[str] = None
) -> List[str]:
    query = select(models.Note.project).distinct().filter(
        models.Note.workspace_id == workspace_id,
        models.Note.project.is_not(None),
        models.Note.project != "",
    )
    if owner_user_id is not None:
        query = query.filter(_owned_by(owner_user_id))
    result = await db.execute(query.order_by(models.Note.project.asc()))
    return [row for row in result.scalars().all() if row]


async def list_tag_counts(
    db: AsyncSession, workspace_id: str, owner_user_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Tags are a JSON column, so counting happens here rather than in SQL."""
    query = select(models.Note.tags).filter(models.Note.workspace_id == workspace_id)
    if owner_user_id is not None:
        query = query.filter(_owned_by(owner_user_id))
    result = await db.execute(query)
    counts: Counter = Counter()
    for tags in result.scalars().all():
        for tag in tags or []:
            key = str(tag or "").strip().lower()
            if key:
                counts[key] += 1
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"tag": tag, "count": count} for tag, count in ordered]


# --- Folder queries ---


async def get_folder(db: AsyncSession, folder_id: str, workspace_id: str) -> Optional[models.Folder]:
    result = await db.execute(
        select(models.Folder).filter(
            models.Folder.id == folder_id, models.Folder.workspace_id == workspace_id
        )
    )
    return result.scalars().first()


async def get_folder_by_name(
    db: AsyncSession, name: str, workspace_id: str, case_insensitive: bool = False
) -> Optional[models.Folder]:
    query = select(models.Folder).filter(models.Folder.workspace_id == workspace_id)
    if case_insensitive:
        query = query.filter(func.lower(models.Folder.name) == name.lower())
    else:
        query = query.filter(models.Folder.name == name)
    result = await db.execute(query.order_by(models.Folder.created_at.asc()).limit(1))
    return result.scalars().first()


async def list_folders(db: AsyncSession, workspace_id: str) -> List[models.Folder]:
    result = await db.execute(
        select(models.Folder)
        .filter(models.Folder.workspace_id == workspace_id)
        .order_by(models.Folder.name.asc())
    )
    return list(result.scalars().all())


async def create_folder(db: AsyncSession, **fields: Any) -> models.Folder:
    """Creates a folder row in the session. Does not commit."""
    db_folder = models.Folder(**fields)
    db.add(db_folder)
    await db.flush()
    await db.refresh(db_folder)
    return db_folder


async def update_folder(
    db: AsyncSession, folder_id: str, workspace_id: str, patch: Dict[str, Any]
) -> Optional[models.Folder]:
    """Updates a folder in the session. Does not commit."""
    db_folder = await get_folder(db, folder_id, workspace_id)
    if db_folder:
        for key in ("name", "description", "color", "symbol", "parent_id"):
            if key in patch:
                setattr(db_folder, key, patch[key])
        await db.flush()
        await db.refresh(db_folder)
    return db_folder


async def delete_folder(db: AsyncSession, folder_id: str, workspace_id: str) -> bool:
    """Deletes a folder and its memberships. Does not commit."""
    db_folder = await get_folder(db, folder_id, workspace_id)
    if not db_folder:
        return False
    await db.execute(
        delete(models.FolderMembership).where(
            models.FolderMembership.workspace_id == workspace_id,
            models.FolderMembership.folder_id == folder_id,
        )
    )
    await db.delete(db_folder)
    await db.flush()
    return True


# --- Membership queries ---

_ROLE_ORDER = case(
    (models.FolderMembership.role == "manager", 1),
    (models.FolderMembership.role == "editor", 2),
    else_=3,
)


async def list_memberships_for_user(
    db: AsyncSession, workspace_id: str, user_id: str
) -> List[models.FolderMembership]:
    result = await db.execute(
        select(models.FolderMembership)
        .filter(
            models.FolderMembership.workspace_id == workspace_id,
            models.FolderMembership.user_id == user_id,
        )
        .order_by(models.FolderMembership.created_at.asc())
    )
    return list(result.scalars().all())


async def list_folder_members(db: AsyncSession, workspace_id: str, folder_id: str):
    """Returns ``(membership, workspace_member_or_None)`` pairs, managers first."""
    query = (
        select(models.FolderMembership, models.WorkspaceMember)
        .outerjoin(
            models.WorkspaceMember,
            and_(
                models.WorkspaceMember.workspace_id == models.FolderMembership.workspace_id,
                models.WorkspaceMember.user_id == models.FolderMembership.user_id,
            ),
        )
        .filter(
            models.FolderMembership.workspace_id == workspace_id,
            models.FolderMembership.folder_id == folder_id,
        )
        .order_by(_ROLE_ORDER.asc(), models.FolderMembership.created_at.asc())
    )
    result = await db.execute(query)
    return list(result.all())


async def get_membership(
    db: AsyncSession, workspace_id: str, folder_id: str, user_id: str
) -> Optional[models.FolderMembership]:
    result = await db.execute(
        select(models.FolderMembership).filter(
            models.FolderMembership.workspace_id == workspace_id,
            models.FolderMembership.folder_id == folder_id,
            models.FolderMembership.user_id == user_id,
        )
    )
    return result.scalars().first()


async def upsert_membership(
    db: AsyncSession,
    workspace_id: str,
    folder_id: str,
    user_id: str,
    role: str,
    created_by_user_id: Optional[str] = None,
) -> models.FolderMembership:
    """Inserts or updates a membership. Does not commit."""
    db_member = await get_membership(db, workspace_id, folder_id, user_id)
    if db_member is None:
        db_member = models.FolderMembership(
            workspace_id=workspace_id,
            folder_id=folder_id,
            user_id=user_id,
            role=role,
            created_by_user_id=created_by_user_id,
        )
        db.add(db_member)
    else:
        db_member.role = role
    await db.flush()
    await db.refresh(db_member)
    return db_member


async def delete_membership(db: AsyncSession, workspace_id: str, folder_id: str, user_id: str) -> int:
    """Deletes a membership. Does not commit."""
    result = await db.execute(
        delete(models.FolderMembership).where(
            models.FolderMembership.workspace_id == workspace_id,
            models.FolderMembership.folder_id == folder_id,
            models.FolderMembership.user_id == user_id,
        )
    )
    return int(result.rowcount or 0)


# --- Workspace members ---


async def list_workspace_members(
    db: AsyncSession, workspace_id: str, limit: int = 1000
) -> List[models.WorkspaceMember]:
    result = await db.execute(
        select(models.WorkspaceMember)
        .filter(models.WorkspaceMember.workspace_id == workspace_id)
        .order_by(models.WorkspaceMember.created_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def upsert_workspace_member(
    db: AsyncSession, workspace_id: str, user_id: str, role: str = "member", email: str = "", name: str = ""
) -> models.WorkspaceMember:
    """Inserts or updates a workspace member. Does not commit."""
    result = await db.execute(
        select(models.WorkspaceMember).filter(
            models.WorkspaceMember.workspace_id == workspace_id,
            models.WorkspaceMember.user_id == user_id,
        )
    )
    db_member = result.scalars().first()
    if db_member is None:
        db_member = models.WorkspaceMember(workspace_id=workspace_id, user_id=user_id)
        db.add(db_member)
    db_member.role = role
    db_member.email = email
    db_member.name = name
    await db.flush()
    await db.refresh(db_member)
    return db_member


# --- Activity ---


async def create_activity_event(db: AsyncSession, **fields: Any) -> models.ActivityEvent:
    """Creates an activity row. Does not commit."""
    db_event = models.ActivityEvent(**fields)
    db.add(db_event)
    await db.flush()
    await db.refresh(db_event)
    return db_event


async def list_activity_events(
    db: AsyncSession, workspace_id: str, folder_id: str = "", note_id: str = "", limit: int = 100
):
    """Returns ``(event, folder_name_or_None)`` pairs, newest first."""
    query = (
        select(models.ActivityEvent, models.Folder.name)
        .outerjoin(models.Folder, models.Folder.id == models.ActivityEvent.folder_id)
        .filter(models.ActivityEvent.workspace_id == workspace_id)
    )
    if folder_id:
        query = query.filter(models.ActivityEvent.folder_id == folder_id)
    if note_id:
        query = query.filter(models.ActivityEvent.note_id == note_id)
    query = query.order_by(models.ActivityEvent.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.all())
