import pytest

from stash.errors import ValidationError
from stash.tool_args import normalize_tool_args, parse_raw_args


def test_parse_raw_args_accepts_mapping_and_json():
    assert parse_raw_args({"id": "a"}) == {"id": "a"}
    assert parse_raw_args('{"id": "a"}') == {"id": "a"}
    assert parse_raw_args(None) == {}
    assert parse_raw_args("   ") == {}
    assert parse_raw_args(42) == {}


@pytest.mark.parametrize("raw", ['{"id": ', "[1, 2]", '"just a string"'])
def test_parse_raw_args_rejects_non_objects(raw):
    with pytest.raises(ValidationError):
        parse_raw_args(raw)


def test_unknown_tool_is_rejected():
    with pytest.raises(ValidationError, match="Unknown tool: drop_database"):
        normalize_tool_args("drop_database", {})


@pytest.mark.parametrize(
    "name",
    ["get_note_raw_content", "update_note", "add_note_comment", "list_note_versions",
     "restore_note_version", "retry_note_enrichment", "update_note_markdown", "update_note_attachment"],
)
def test_note_tools_require_id(name):
    with pytest.raises(ValidationError):
        normalize_tool_args(name, {"text": "hello", "versionNumber": 1})


def test_search_notes_normalizes_scope_and_working_set():
    args = normalize_tool_args(
        "search_notes",
        {"query": " roadmap ", "scope": "ITEM", "workingSetIds": ["a", " a ", "b", ""]},
    )
    assert args == {"query": "roadmap", "project": "", "scope": "item", "workingSetIds": ["a", "b"]}

    with pytest.raises(ValidationError):
        normalize_tool_args("search_notes", {"query": "  "})


def test_get_note_raw_content_defaults():
    assert normalize_tool_args("get_note_raw_content", {"id": "a"}) == {
        "id": "a",
        "includeMarkdown": True,
        "maxChars": 12000,
    }
    args = normalize_tool_args("get_note_raw_content", {"id": "a", "includeMarkdown": False, "maxChars": 5})
    assert args["includeMarkdown"] is False
    assert args["maxChars"] == 200


def test_update_note_keeps_only_supplied_fields():
    args = normalize_tool_args(
        "update_note",
        {"id": "a", "tags": ["x", "", "y"], "baseRevision": "3", "unknown": True},
    )
    assert args == {"id": "a", "tags": ["x", "y"], "baseRevision": 3}
    assert "baseRevision" not in normalize_tool_args("update_note", {"id": "a", "baseRevision": 0})


def test_restore_note_version_requires_positive_version():
    assert normalize_tool_args("restore_note_version", {"id": "a", "versionNumber": "4"}) == {
        "id": "a",
        "versionNumber": 4,
    }
    with pytest.raises(ValidationError):
        normalize_tool_args("restore_note_version", {"id": "a", "versionNumber": 0})


def test_add_note_comment_requires_text():
    with pytest.raises(ValidationError):
        normalize_tool_args("add_note_comment", {"id": "a", "text": " "})


def test_collaborator_tools():
    assert normalize_tool_args(
        "set_folder_collaborator", {"folderId": "Product", "email": "Mona@Example.com"}
    ) == {"folderId": "Product", "email": "mona@example.com", "role": "viewer"}
    assert normalize_tool_args(
        "set_folder_collaborator", {"folder": "Product", "userId": "u1", "role": "EDITOR"}
    )["role"] == "editor"
    assert normalize_tool_args("remove_folder_collaborator", {"folderId": "Product", "userId": "u1"}) == {
        "folderId": "Product",
        "userId": "u1",
    }
    with pytest.raises(ValidationError):
        normalize_tool_args("set_folder_collaborator", {"folderId": "Product"})
    with pytest.raises(ValidationError):
        normalize_tool_args("list_folder_collaborators", {})


def test_list_activity_bounds_limit():
    assert normalize_tool_args("list_activity", {}) == {"limit": 30}
    assert normalize_tool_args("list_activity", {"project": "Product", "id": "n1", "limit": 999}) == {
        "folderId": "Product",
        "noteId": "n1",
        "limit": 200,
    }


def test_list_workspace_members_defaults():
    assert normalize_tool_args("list_workspace_members", {"query": " mo "}) == {"query": "mo", "limit": 50}


def test_create_folder_and_note():
    assert normalize_tool_args("create_folder", {"name": " Ops "}) == {"name": "Ops", "description": "", "color": ""}
    with pytest.raises(ValidationError):
        normalize_tool_args("create_folder", {})

    note = normalize_tool_args("create_note", {"content": "hi", "sourceType": "URL"})
    assert note["sourceType"] == "link"
    assert normalize_tool_args("create_note", {"content": "hi", "sourceType": "weird"})["sourceType"] == ""
    with pytest.raises(ValidationError):
        normalize_tool_args("create_note", {"title": "no body"})


def test_create_notes_bulk_normalizes_each_item():
    args = normalize_tool_args(
        "create_notes_bulk",
        {"items": [{"content": " one ", "sourceType": "manual"}, {"fileDataUrl": "data:x", "project": "Ops"}]},
    )

    assert [item["content"] for item in args["items"]] == ["one", ""]
    assert args["items"][0]["sourceType"] == "text"
    assert args["items"][1]["project"] == "Ops"
    assert args["stopOnError"] is False


@pytest.mark.parametrize(
    "items, message",
    [
        ([], "non-empty items"),
        ([{"content": "x"}] * 26, "at most 25"),
        (["not an object"], "item 0 must be an object"),
        ([{"content": "ok"}, {"title": "empty"}], "item 1 requires content"),
    ],
)
def test_create_notes_bulk_rejects_bad_items(items, message):
    with pytest.raises(ValidationError, match=message):
        normalize_tool_args("create_notes_bulk", {"items": items})


def test_update_note_markdown_and_attachment_keep_given_fields():
    markdown = normalize_tool_args(
        "update_note_markdown", {"id": "n1", "markdownContent": "# Hi", "baseRevision": "3"}
    )
    attachment = normalize_tool_args(
        "update_note_attachment", {"id": "n1", "fileName": " deck.pdf ", "requeueEnrichment": False}
    )

    assert markdown == {"id": "n1", "markdownContent": "# Hi", "requeueEnrichment": True, "baseRevision": 3}
    assert attachment == {"id": "n1", "fileName": "deck.pdf", "requeueEnrichment": False}
