"""
Citation/Reference Resolver.

Turns the references an assistant uses in tool calls ("N2", "this note", a quoted
title, "here") into canonical note ids and folder names. All maps are built fresh
from the previous turn's citations; nothing here keeps state between calls.

Unresolvable or ambiguous references are passed through unchanged so the tool that
receives them decides whether they are valid ids.
"""
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import Citation
from .utils import normalize_text

CONTEXT_NOTE_ALIASES = frozenset({
    "this",
    "this note",
    "this item",
    "current",
    "current note",
    "current item",
    "active note",
    "active item",
    "selected note",
    "selected item",
    "open note",
    "open item",
})

CONTEXT_FOLDER_ALIASES = frozenset({
    "this folder",
    "current folder",
    "open folder",
    "active folder",
    "this project",
    "current project",
    "open project",
    "active project",
    "this collection",
    "current collection",
    "here",
})

NOTE_ID_ARG_TOOLS = frozenset({
    "get_note_raw_content",
    "update_note",
    "update_note_attachment",
    "update_note_markdown",
    "add_note_comment",
    "list_note_versions",
    "restore_note_version",
    "retry_note_enrichment",
})

FOLDER_ID_ARG_TOOLS = frozenset({
    "list_folder_collaborators",
    "set_folder_collaborator",
    "remove_folder_collaborator",
    "list_activity",
})

PROJECT_ARG_TOOLS = frozenset({
    "create_note",
    "create_notes_bulk",
    "search_notes",
    "update_note",
})

# Marks a name shared by two different notes. Never resolves.
AMBIGUOUS = ""

_QUOTES = "`\"'“”‘’"
_EDGE_QUOTES = re.compile(f"^[{_QUOTES}]+|[{_QUOTES}]+$")
_QUOTED = re.compile(f"^[{_QUOTES}](.+)[{_QUOTES}]$")
_WHITESPACE = re.compile(r"\s+")
_DECORATED_NAMED = re.compile(r"^(?:the\s+)?(?:note|item|file|doc|document)\s+(?:called|named|titled)\s+", re.I)
_DECORATED_PLAIN = re.compile(r"^(?:the\s+)?(?:note|item|file|doc|document)\s+", re.I)
_TRAILING_PUNCT = re.compile(r"[.!?]+$")
_ORDINAL = re.compile(r"^\[?\s*N\s*(\d+)\s*\]?$", re.I)
_NOTE_ORDINAL = re.compile(r"^note\s+\[?\s*N\s*(\d+)\s*\]?$", re.I)
_BARE_N1 = re.compile(r"^n1$", re.I)


def normalize_lookup_key(value: Any) -> str:
    """Trim, lower-case, strip surrounding quote characters, collapse whitespace."""
    key = normalize_text(value).lower()
    key = _EDGE_QUOTES.sub("", key)
    return _WHITESPACE.sub(" ", key)


def strip_decorated_prefix(value: Any) -> str:
    """``the note called Foo.`` -> ``Foo``"""
    normalized = normalize_text(value)
    if not normalized:
        return ""
    stripped = _DECORATED_NAMED.sub("", normalized)
    stripped = _DECORATED_PLAIN.sub("", stripped)
    stripped = _TRAILING_PUNCT.sub("", stripped)
    return normalize_text(stripped)


def name_lookup_candidates(raw_value: Any) -> List[str]:
    normalized = normalize_text(raw_value)
    if not normalized:
        return []
    candidates: List[str] = []
    for variant in (normalized, strip_decorated_prefix(normalized)):
        key = normalize_lookup_key(variant)
        if key and key not in candidates:
            candidates.append(key)
    quoted = _QUOTED.match(normalized)
    if quoted:
        key = normalize_lookup_key(quoted.group(1))
        if key and key not in candidates:
            candidates.append(key)
    return candidates


def extract_citation_alias(raw_value: Any) -> str:
    """Return ``N{k}`` for ``N3``, ``[N3]``, ``n 3`` or ``note N3``, else ``""``."""
    normalized = normalize_text(raw_value)
    if not normalized:
        return ""
    match = _ORDINAL.match(normalized) or _NOTE_ORDINAL.match(normalized)
    if match:
        return f"N{int(match.group(1))}"
    return ""


def _citation_note(entry: Any) -> Mapping[str, Any]:
    if isinstance(entry, Citation):
        return entry.note.model_dump()
    if isinstance(entry, Mapping):
        note = entry.get("note")
        if isinstance(note, Mapping):
            return note
        if note is not None and hasattr(note, "model_dump"):
            return note.model_dump()
    return {}


def build_citation_alias_map(citations: Optional[Iterable[Any]]) -> Dict[str, str]:
    """Ordinal map: ``N{position + 1}`` -> note id, in citation order."""
    alias_map: Dict[str, str] = {}
    for index, entry in enumerate(citations or []):
        note_id = normalize_text(_citation_note(entry).get("id"))
        if note_id:
            alias_map[f"N{index + 1}"] = note_id
    return alias_map


def _add_lookup_key(name_map: Dict[str, str], key: Any, note_id: str) -> None:
    normalized_key = normalize_lookup_key(key)
    if not normalized_key or not note_id:
        return
    if normalized_key not in name_map:
        name_map[normalized_key] = note_id
    elif name_map[normalized_key] and name_map[normalized_key] != note_id:
        name_map[normalized_key] = AMBIGUOUS


def build_note_name_alias_map(citations: Optional[Iterable[Any]]) -> Dict[str, str]:
    """Name map over title, ``metadata.title`` and file name.

    A name claimed by two different notes maps to ``AMBIGUOUS`` and stays that way.
    """
    name_map: Dict[str, str] = {}
    for entry in citations or []:
        note = _citation_note(entry)
        note_id = normalize_text(note.get("id"))
        if not note_id:
            continue
        metadata = note.get("metadata") if isinstance(note.get("metadata"), Mapping) else {}
        _add_lookup_key(name_map, note.get("title"), note_id)
        _add_lookup_key(name_map, metadata.get("title"), note_id)
        _add_lookup_key(name_map, note.get("file_name") or note.get("fileName"), note_id)
    return name_map


def resolve_note_reference(
    raw_value: Any,
    context_note_id: str = "",
    citation_alias_map: Optional[Mapping[str, str]] = None,
    note_name_alias_map: Optional[Mapping[str, str]] = None,
) -> str:
    normalized = normalize_text(raw_value)
    context_id = normalize_text(context_note_id)
    if not normalized:
        return context_id

    alias = extract_citation_alias(normalized)
    if alias and citation_alias_map and alias in citation_alias_map:
        return citation_alias_map[alias] or normalized

    if context_id and normalized.lower() in CONTEXT_NOTE_ALIASES:
        return context_id

    # A lone N1 with no citations in play means the note the user has open.
    if context_id and _BARE_N1.match(normalized):
        return context_id

    if note_name_alias_map:
        for candidate in name_lookup_candidates(normalized):
            mapped = normalize_text(note_name_alias_map.get(candidate))
            if mapped:
                return mapped

    return normalized


def resolve_folder_reference(raw_value: Any, context_project: str = "") -> str:
    normalized = normalize_text(raw_value)
    project = normalize_text(context_project)
    if not normalized:
        return project
    if project and normalized.lower() in CONTEXT_FOLDER_ALIASES:
        return project
    return normalized


def resolve_tool_args(
    name: str,
    args: Optional[Mapping[str, Any]],
    context_note_id: str = "",
    context_project: str = "",
    citation_alias_map: Optional[Mapping[str, str]] = None,
    note_name_alias_map: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Return a copy of ``args`` with note and folder references made canonical."""
    tool_name = normalize_text(name)
    next_args: Dict[str, Any] = dict(args) if isinstance(args, Mapping) else {}

    def note_ref(value):
        return resolve_note_reference(value, context_note_id, citation_alias_map, note_name_alias_map)

    if tool_name in NOTE_ID_ARG_TOOLS:
        resolved = note_ref(next_args.get("id"))
        if resolved:
            next_args["id"] = resolved

    if tool_name in FOLDER_ID_ARG_TOOLS:
        resolved = resolve_folder_reference(next_args.get("folderId"), context_project)
        if resolved:
            next_args["folderId"] = resolved

    if tool_name == "list_activity":
        resolved = note_ref(next_args.get("noteId"))
        if resolved:
            next_args["noteId"] = resolved

    if tool_name in PROJECT_ARG_TOOLS:
        resolved = resolve_folder_reference(next_args.get("project"), context_project)
        if resolved:
            next_args["project"] = resolved

    items = next_args.get("items")
    if tool_name == "create_notes_bulk" and isinstance(items, list) and items:
        resolved_items = []
        for item in items:
            if not isinstance(item, Mapping):
                resolved_items.append(item)
                continue
            project = resolve_folder_reference(item.get("project"), context_project)
            resolved_items.append({**item, "project": project} if project else item)
        next_args["items"] = resolved_items

    return next_args


def build_citation_block(citations: Iterable[Any]) -> str:
    """Render citations as the ``[N1] title: ...`` block handed to the assistant."""
    blocks = []
    for index, entry in enumerate(citations or []):
        note = _citation_note(entry)
        metadata = note.get("metadata") if isinstance(note.get("metadata"), Mapping) else {}
        title = normalize_text(metadata.get("title")) or normalize_text(note.get("title")) or str(
            note.get("summary") or note.get("file_name") or note.get("content") or ""
        )
        blocks.append("\n".join([
            f"[N{index + 1}] title: {title[:140]}",
            f"summary: {note.get('summary') or ''}",
            f"project: {note.get('project') or ''}",
            f"source_url: {note.get('source_url') or note.get('sourceUrl') or ''}",
            f"content: {note.get('content') or ''}",
        ]))
    return "\n\n".join(blocks)


class ReferenceResolver:
    """Alias maps for one conversational turn, built from that turn's citations."""

    def __init__(self, citations: Optional[Iterable[Any]] = None, context_note_id: str = "", context_project: str = ""):
        entries = list(citations or [])
        self.context_note_id = normalize_text(context_note_id)
        self.context_project = normalize_text(context_project)
        self.citation_alias_map = build_citation_alias_map(entries)
        self.note_name_alias_map = build_note_name_alias_map(entries)

    def note_id(self, raw_value: Any) -> str:
        return resolve_note_reference(
            raw_value, self.context_note_id, self.citation_alias_map, self.note_name_alias_map
        )

    def folder(self, raw_value: Any) -> str:
        return resolve_folder_reference(raw_value, self.context_project)

    def tool_args(self, name: str, args: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return resolve_tool_args(
            name,
            args,
            self.context_note_id,
            self.context_project,
            self.citation_alias_map,
            self.note_name_alias_map,
        )
