"""
Validation and normalisation of assistant tool arguments.

Arguments arrive as JSON objects with camelCase keys (the shape the assistant is
prompted with). ``normalize_tool_args`` returns a cleaned copy or raises
``ValidationError``; reference rewriting (``stash.references``) runs before it.
"""
import json
from typing import Any, Callable, Dict, Mapping

from .errors import ValidationError
from .models import FolderRole, MemoryScope
from .utils import clamp_int, normalize_text, normalize_working_set_ids

MAX_BULK_ITEMS = 25


def parse_raw_args(raw: Any) -> Dict[str, Any]:
    """Accept a mapping or a JSON object string; anything else is empty."""
    if isinstance(raw, Mapping):
        return dict(raw)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return {}
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Tool arguments are not valid JSON: {exc.msg}") from exc
        if isinstance(parsed, dict):
            return parsed
        raise ValidationError("Tool arguments must be a JSON object")
    return {}


def _string_list(value: Any, max_items: int) -> list:
    if not isinstance(value, (list, tuple)):
        return []
    out = []
    for item in value:
        text = normalize_text(item)
        if text:
            out.append(text)
        if len(out) >= max_items:
            break
    return out


def _required(source: Mapping[str, Any], key: str, tool: str, what: str = "") -> str:
    value = normalize_text(source.get(key))
    if not value:
        raise ValidationError(f"{tool} requires {what or key}")
    return value


def _base_revision(source: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        revision = int(float(source.get("baseRevision")))
    except (TypeError, ValueError):
        return {}
    return {"baseRevision": revision} if revision >= 1 else {}


def _folder_ref(source: Mapping[str, Any]) -> str:
    return normalize_text(source.get("folderId") or source.get("folder") or source.get("id"))


def _collaborator(source: Mapping[str, Any], tool: str) -> Dict[str, Any]:
    folder_id = _folder_ref(source)
    if not folder_id:
        raise ValidationError(f"{tool} requires folderId")
    user_id = normalize_text(source.get("userId"))
    email = normalize_text(source.get("email")).lower()
    if not user_id and not email:
        raise ValidationError(f"{tool} requires userId or email")
    out: Dict[str, Any] = {"folderId": folder_id}
    if user_id:
        out["userId"] = user_id
    if email:
        out["email"] = email
    return out


def _search_notes(source):
    query = _required(source, "query", "search_notes", "a query")
    out = {"query": query, "project": normalize_text(source.get("project"))}
    if source.get("scope"):
        out["scope"] = MemoryScope.parse(source.get("scope")).value
    working_set_ids = normalize_working_set_ids(source.get("workingSetIds"), 100)
    if working_set_ids:
        out["workingSetIds"] = working_set_ids
    return out


def _get_note_raw_content(source):
    return {
        "id": _required(source, "id", "get_note_raw_content", "an id"),
        "includeMarkdown": source.get("includeMarkdown") is not False,
        "maxChars": clamp_int(source.get("maxChars") or 12000, 200, 200000, 12000),
    }


def _update_note(source):
    out: Dict[str, Any] = {"id": _required(source, "id", "update_note", "an id")}
    if "title" in source:
        out["title"] = normalize_text(source.get("title"))
    if "content" in source:
        out["content"] = str(source.get("content") or "")
    if "summary" in source:
        out["summary"] = str(source.get("summary") or "")
    if "tags" in source:
        out["tags"] = _string_list(source.get("tags"), 40)
    if "project" in source:
        out["project"] = normalize_text(source.get("project"))
    out.update(_base_revision(source))
    return out


def _add_note_comment(source):
    return {
        "id": _required(source, "id", "add_note_comment", "an id"),
        "text": _required(source, "text", "add_note_comment", "text"),
    }


def _list_note_versions(source):
    return {"id": _required(source, "id", "list_note_versions", "an id")}


def _restore_note_version(source):
    note_id = _required(source, "id", "restore_note_version", "an id")
    version = clamp_int(source.get("versionNumber"), 0, 10**9, 0)
    if version <= 0:
        raise ValidationError("restore_note_version requires a positive versionNumber")
    return {"id": note_id, "versionNumber": version}


def _retry_note_enrichment(source):
    return {"id": _required(source, "id", "retry_note_enrichment", "an id")}


def _list_folder_collaborators(source):
    folder_id = _folder_ref(source)
    if not folder_id:
        raise ValidationError("list_folder_collaborators requires folderId")
    return {"folderId": folder_id}


def _set_folder_collaborator(source):
    out = _collaborator(source, "set_folder_collaborator")
    out["role"] = (FolderRole.parse(source.get("role")) or FolderRole.VIEWER).value
    return out


def _remove_folder_collaborator(source):
    return _collaborator(source, "remove_folder_collaborator")


def _list_activity(source):
    out: Dict[str, Any] = {}
    folder_id = normalize_text(source.get("folderId") or source.get("folder") or source.get("project"))
    note_id = normalize_text(source.get("noteId") or source.get("id"))
    if folder_id:
        out["folderId"] = folder_id
    if note_id:
        out["noteId"] = note_id
    out["limit"] = clamp_int(source.get("limit") or 30, 1, 200, 30)
    return out


def _list_workspace_members(source):
    out: Dict[str, Any] = {}
    query = normalize_text(source.get("query"))
    if query:
        out["query"] = query
    out["limit"] = clamp_int(source.get("limit") or 50, 1, 200, 50)
    return out


def _create_folder(source):
    return {
        "name": _required(source, "name", "create_folder", "a folder name"),
        "description": normalize_text(source.get("description")),
        "color": normalize_text(source.get("color")),
    }


def _create_note_item(source, tool="create_note"):
    content = normalize_text(source.get("content"))
    image = normalize_text(source.get("imageDataUrl"))
    attachment = normalize_text(source.get("fileDataUrl"))
    if not content and not image and not attachment:
        raise ValidationError(f"{tool} requires content or an attachment")
    source_type = normalize_text(source.get("sourceType")).lower()
    if source_type in ("url", "link"):
        source_type = "link"
    elif source_type in ("manual", "text"):
        source_type = "text"
    elif source_type not in ("file", "image"):
        source_type = ""
    return {
        "content": content,
        "title": normalize_text(source.get("title")),
        "project": normalize_text(source.get("project")),
        "sourceType": source_type,
        "sourceUrl": normalize_text(source.get("sourceUrl")),
        "imageDataUrl": image,
        "fileDataUrl": attachment,
        "fileName": normalize_text(source.get("fileName")),
        "fileMimeType": normalize_text(source.get("fileMimeType")),
    }


def _create_note(source):
    return _create_note_item(source)


def _create_notes_bulk(source):
    items = source.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("create_notes_bulk requires a non-empty items array")
    if len(items) > MAX_BULK_ITEMS:
        raise ValidationError(f"create_notes_bulk supports at most {MAX_BULK_ITEMS} items per call")
    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"create_notes_bulk item {index} must be an object")
        normalized.append(_create_note_item(item, f"create_notes_bulk item {index}"))
    return {
        "items": normalized,
        "project": normalize_text(source.get("project")),
        "stopOnError": source.get("stopOnError") is True,
    }


def _update_note_attachment(source):
    out: Dict[str, Any] = {"id": _required(source, "id", "update_note_attachment", "an id")}
    if "content" in source:
        out["content"] = str(source.get("content") or "")
    for key in ("imageDataUrl", "fileDataUrl", "fileName", "fileMimeType"):
        if key in source:
            out[key] = normalize_text(source.get(key))
    out["requeueEnrichment"] = source.get("requeueEnrichment") is not False
    out.update(_base_revision(source))
    return out


def _update_note_markdown(source):
    out: Dict[str, Any] = {"id": _required(source, "id", "update_note_markdown", "an id")}
    for key in ("content", "rawContent", "markdownContent"):
        if key in source:
            out[key] = str(source.get(key) or "")
    out["requeueEnrichment"] = source.get("requeueEnrichment") is not False
    out.update(_base_revision(source))
    return out


TOOL_ARG_NORMALIZERS: Dict[str, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    "search_notes": _search_notes,
    "get_note_raw_content": _get_note_raw_content,
    "update_note": _update_note,
    "add_note_comment": _add_note_comment,
    "list_note_versions": _list_note_versions,
    "restore_note_version": _restore_note_version,
    "retry_note_enrichment": _retry_note_enrichment,
    "list_folder_collaborators": _list_folder_collaborators,
    "set_folder_collaborator": _set_folder_collaborator,
    "remove_folder_collaborator": _remove_folder_collaborator,
    "list_activity": _list_activity,
    "list_workspace_members": _list_workspace_members,
    "create_folder": _create_folder,
    "create_note": _create_note,
    "create_notes_bulk": _create_notes_bulk,
    "update_note_attachment": _update_note_attachment,
    "update_note_markdown": _update_note_markdown,
}


def normalize_tool_args(name: str, args: Any) -> Dict[str, Any]:
    tool_name = normalize_text(name)
    normalizer = TOOL_ARG_NORMALIZERS.get(tool_name)
    if normalizer is None:
        raise ValidationError(f"Unknown tool: {tool_name}")
    source = args if isinstance(args, Mapping) else {}
    return normalizer(source)
