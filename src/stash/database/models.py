import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint, func

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Note(Base):
    __tablename__ = "notes"

    id = Column(String, primary_key=True, default=_uuid)
    workspace_id = Column(String, nullable=False, index=True)
    owner_user_id = Column(String, nullable=True, index=True)
    created_by_user_id = Column(String, nullable=True)
    content = Column(Text, nullable=True)
    raw_content = Column(Text, nullable=True)
    markdown_content = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    project = Column(String, nullable=True, index=True)
    source_type = Column(String, nullable=False, default="text")
    source_url = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    file_mime = Column(String, nullable=True)
    embedding = Column(JSON, nullable=True)
    # ``metadata`` is reserved on declarative classes.
    meta = Column("metadata_json", JSON, nullable=False, default=dict)
    revision = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    def __repr__(self):
        return f"<Note(id={self.id}, project='{self.project}')>"


class Folder(Base):
    __tablename__ = "folders"

    id = Column(String, primary_key=True, default=_uuid)
    workspace_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    color = Column(String, nullable=True)
    symbol = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    def __repr__(self):
        return f"<Folder(id={self.id}, name='{self.name}')>"


class FolderMembership(Base):
    __tablename__ = "folder_memberships"
    __table_args__ = (UniqueConstraint("workspace_id", "folder_id", "user_id"),)

    id = Column(String, primary_key=True, default=_uuid)
    workspace_id = Column(String, nullable=False, index=True)
    folder_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False, default="viewer")
    created_by_user_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())


class WorkspaceMember(Base):
    __tablename__ = "workspace_members"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id"),)

    id = Column(String, primary_key=True, default=_uuid)
    workspace_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    role = Column(String, nullable=False, default="member")
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ActivityEvent(Base):
    __tablename__ = "activity_events"

    id = Column(String, primary_key=True, default=_uuid)
    workspace_id = Column(String, nullable=False, index=True)
    actor_user_id = Column(String, nullable=True)
    actor_name = Column(String, nullable=True)
    event_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False, default="workspace")
    entity_id = Column(String, nullable=True)
    folder_id = Column(String, nullable=True, index=True)
    note_id = Column(String, nullable=True, index=True)
    visibility_user_id = Column(String, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
