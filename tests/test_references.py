import pytest

from conftest import make_note
from stash.ranking import materialize_citation
from stash.references import (
    AMBIGUOUS,
    ReferenceResolver,
    build_citation_alias_map,
    build_citation_block,
    build_note_name_alias_map,
    extract_citation_alias,
    name_lookup_candidates,
    normalize_lookup_key,
    resolve_folder_reference,
    resolve_note_reference,
    resolve_tool_args,
    strip_decorated_prefix,
)


def citation(note_id, rank, **fields):
    return materialize_citation(make_note(note_id, **fields), 1.0, rank)


@pytest.fixture
def citations():
    return [
        citation("a", 1, metadata={"title": "Launch Plan"}),
        citation("b", 2, summary="Budget review", file_name="budget.xlsx"),
    ]


@pytest.fixture
def resolver(citations):
    return ReferenceResolver(citations, context_note_id="c", context_project="Product")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("N2", "b"),
        ("[N1]", "a"),
        ("n 2", "b"),
        ("note N1", "a"),
        ("this note", "c"),
        ("Current Item", "c"),
        ("xyz", "xyz"),
        ("", "c"),
        ("N9", "N9"),
    ],
)
def test_note_references_resolve(resolver, raw, expected):
    assert resolver.note_id(raw) == expected


def test_bare_n1_without_citations_means_context_note():
    assert resolve_note_reference("N1", context_note_id="c") == "c"
    assert resolve_note_reference("n1", context_note_id="c", citation_alias_map={}) == "c"
    assert resolve_note_reference("N1") == "N1"


def test_names_resolve_through_title_and_file_name(resolver):
    assert resolver.note_id("launch plan") == "a"
    assert resolver.note_id('"Launch Plan"') == "a"
    assert resolver.note_id("the note called Launch Plan.") == "a"
    assert resolver.note_id("BUDGET.XLSX") == "b"
    assert resolver.note_id("Budget review") == "b"


def test_ambiguous_names_never_resolve():
    entries = [
        citation("a", 1, metadata={"title": "Weekly Sync"}),
        citation("b", 2, metadata={"title": "weekly sync"}),
        citation("c", 3, metadata={"title": "Weekly Sync"}),
    ]

    name_map = build_note_name_alias_map(entries)

    assert name_map["weekly sync"] == AMBIGUOUS
    assert resolve_note_reference("Weekly Sync", note_name_alias_map=name_map) == "Weekly Sync"


def test_same_note_under_two_keys_is_not_ambiguous():
    entries = [citation("a", 1, metadata={"title": "deck.pdf"}, file_name="deck.pdf")]
    assert build_note_name_alias_map(entries) == {"deck.pdf": "a"}


def test_alias_maps_accept_plain_dicts():
    entries = [{"note": {"id": "x", "title": "X", "fileName": "x.md"}}, {"note": {}}, {"note": {"id": "y"}}]

    assert build_citation_alias_map(entries) == {"N1": "x", "N3": "y"}
    assert build_note_name_alias_map(entries) == {"x": "x", "x.md": "x"}


def test_lookup_helpers():
    assert normalize_lookup_key('  "Launch   Plan"  ') == "launch plan"
    assert strip_decorated_prefix("the document titled Q3 Report!") == "Q3 Report"
    assert strip_decorated_prefix("") == ""
    assert name_lookup_candidates("the file named Roadmap") == ["the file named roadmap", "roadmap"]
    assert name_lookup_candidates("'Roadmap'") == ["roadmap"]
    assert extract_citation_alias("[ n12 ]") == "N12"
    assert extract_citation_alias("N1x") == ""


def test_folder_references():
    assert resolve_folder_reference("this folder", "Product") == "Product"
    assert resolve_folder_reference("HERE", "Product") == "Product"
    assert resolve_folder_reference("", "Product") == "Product"
    assert resolve_folder_reference("Marketing", "Product") == "Marketing"
    assert resolve_folder_reference("this folder", "") == "this folder"


def test_tool_args_rewrite_note_ids(resolver):
    assert resolver.tool_args("update_note", {"id": "N2", "content": "x"}) == {
        "id": "b",
        "content": "x",
        "project": "Product",
    }
    assert resolver.tool_args("get_note_raw_content", {}) == {"id": "c"}
    assert resolver.tool_args("restore_note_version", {"id": "this note", "versionNumber": 2}) == {
        "id": "c",
        "versionNumber": 2,
    }


def test_tool_args_rewrite_folder_and_note_for_activity(resolver):
    assert resolver.tool_args("list_activity", {"folderId": "current folder", "noteId": "[N1]"}) == {
        "folderId": "Product",
        "noteId": "a",
    }


def test_tool_args_bulk_items_get_context_project(resolver):
    args = {"items": [{"content": "one"}, {"content": "two", "project": "Ops"}, "junk"]}

    resolved = resolver.tool_args("create_notes_bulk", args)

    assert resolved["items"] == [
        {"content": "one", "project": "Product"},
        {"content": "two", "project": "Ops"},
        "junk",
    ]
    assert resolved["project"] == "Product"
    assert args["items"][0] == {"content": "one"}


def test_tool_args_leave_unrelated_tools_alone():
    assert resolve_tool_args("list_workspace_members", {"query": "N1"}, context_note_id="c") == {"query": "N1"}
    assert resolve_tool_args("search_notes", None) == {}


def test_citation_block_format(citations):
    block = build_citation_block(citations)

    first, second = block.split("\n\n")
    assert first.splitlines() == [
        "[N1] title: Launch Plan",
        "summary: ",
        "project: ",
        "source_url: ",
        "content: ",
    ]
    assert second.startswith("[N2] title: Budget review\nsummary: Budget review")
    assert build_citation_block([]) == ""
