"""
Activity Emission.

Best-effort: an activity write that fails is logged and dropped, it never fails the
operation that triggered it. Written events are also published on an in-process
``ActivityBus`` so live listeners (e.g. a streaming endpoint) can forward them.
"""
import logging
from typing import Any, Callable, Dict, Optional

from .access.predicates import note_owner_id
from .models import ActivityEvent, ActorContext, Note
from .ranking.scoring import note_display_title
from .repositories.base import CollaborationRepository, FolderRepository
from .utils import normalize_text

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class ActivityBus:
    def __init__(self):
        self._listeners = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        if not callable(listener):
            return lambda: None
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, payload: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception as exc:  # one broken listener must not starve the rest
                logger.warning("Activity listener failed: %s", exc)


def _quoted(value: Any, fallback: str) -> str:
    return normalize_text(value) or fallback


def build_activity_message(event: ActivityEvent) -> str:
    details = event.details or {}
    title = normalize_text(details.get("title"))
    role = normalize_text(details.get("role")) or "viewer"
    member = details.get("userName") or details.get("userEmail") or "member"
    event_type = normalize_text(event.event_type)

    if event_type == "note.created":
        return f'created "{title}"' if title else "created an item"
    if event_type == "note.updated":
        return f'updated "{title}"' if title else "updated an item"
    if event_type == "note.deleted":
        return f'deleted "{title}"' if title else "deleted an item"
    if event_type == "note.comment_added":
        return f'commented on "{title}"' if title else "added a comment"
    if event_type == "note.version_restored":
        return f'restored "{title}"' if title else "restored a version"
    if event_type == "note.enrichment_retry":
        return f'retried AI on "{title}"' if title else "retried enrichment"
    if event_type == "folder.created":
        return f'created folder "{_quoted(details.get("folderName"), "folder")}"'
    if event_type == "folder.updated":
        return f'updated folder "{_quoted(details.get("folderName"), "folder")}"'
    if event_type == "folder.deleted":
        return f'deleted folder "{_quoted(details.get("folderName"), "folder")}"'
    if event_type == "folder.shared":
        return f"shared folder with {member} ({role})"
    if event_type == "folder.unshared":
        return f"removed folder access for {member}"
    return normalize_text(details.get("message")) or "updated workspace"


class ActivityEmitter:
    def __init__(
        self,
        collaboration_repo: CollaborationRepository,
        folder_repo: FolderRepository,
        bus: Optional[ActivityBus] = None,
    ):
        self.collaboration_repo = collaboration_repo
        self.folder_repo = folder_repo
        self.bus = bus or ActivityBus()

    async def emit_workspace_activity(
        self,
        actor: ActorContext,
        event_type: str,
        entity_type: str = "workspace",
        entity_id: str = "",
        folder_id: Optional[str] = None,
        note_id: Optional[str] = None,
        visibility_user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityEvent]:
        """Record an event. Returns ``None`` (and logs) instead of raising on failure."""
        if actor is None or not actor.workspace_id or not event_type:
            return None
        try:
            event = await self.collaboration_repo.create_activity_event(
                workspace_id=actor.workspace_id,
                actor_user_id=actor.user_id or None,
                actor_name=actor.display_name,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                folder_id=folder_id,
                note_id=note_id,
                visibility_user_id=visibility_user_id,
                details=details or {},
            )
        except Exception as exc:  # activity is a side channel
            logger.warning(
                "Activity write failed: event_type=%s workspace_id=%s error=%s",
                event_type, actor.workspace_id, exc,
            )
            return None

        if event is not None:
            message = build_activity_message(event)
            event = event.model_copy(update={"message": message})
            self.bus.publish({"type": "activity", **event.model_dump(mode="json")})
        return event

    async def emit_note_activity(
        self,
        actor: ActorContext,
        note: Optional[Note],
        event_type: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityEvent]:
        """Record a note event, attached to the note's folder when one exists.

        Without a folder the event is only visible to the note's owner. Deleted notes
        keep no note id on the event.
        """
        if actor is None or note is None or not event_type:
            return None
        folder = None
        project = normalize_text(note.project)
        if project:
            try:
                folder = await self.folder_repo.get_folder_by_name(project, actor.workspace_id)
            except Exception as exc:  # activity is a side channel
                logger.warning(
                    "Activity folder lookup failed: event_type=%s workspace_id=%s error=%s",
                    event_type, actor.workspace_id, exc,
                )
                return None
        keep_note_id = normalize_text(event_type) != "note.deleted"
        return await self.emit_workspace_activity(
            actor,
            event_type,
            entity_type="note",
            entity_id=note.id,
            folder_id=folder.id if folder else None,
            note_id=note.id if keep_note_id else None,
            visibility_user_id=None if folder else (note_owner_id(note) or None),
            details={"title": note_display_title(note, 120), "project": note.project, **(details or {})},
        )
