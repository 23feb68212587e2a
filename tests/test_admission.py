"""
Tests for the admission pipeline: stage order, failure kinds, collisions.
"""

from admission import Collision, IncompleteMetadata, NoContent, NoFiles, validate_candidate
from archive_reader import candidate_from_entries
from mod_schema import ModMetadata
from ownership_index import FileOwnershipIndex


def index_of(**mods):
    return FileOwnershipIndex.build({
        mod_id: ModMetadata(id=mod_id, name=mod_id, author="A", description="D", files=files)
        for mod_id, files in mods.items()
    })


def test_complete_disjoint_candidate_is_admitted(make_candidate):
    candidate = make_candidate(["audio/new.ogg", "img/new.png"])

    result = validate_candidate(candidate, index_of(X=["audio/old.ogg"]))

    assert result.ok
    assert result.reason is None
    assert result


def test_empty_name_reports_name_only(make_candidate):
    candidate = make_candidate(["img/a.png"], {"name": "", "author": "A", "description": "D"})

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert not result.ok
    assert result.reason == IncompleteMetadata(("name",))
    assert result.reason.kind == "incomplete_metadata"


def test_missing_descriptor_reports_all_fields(make_candidate):
    candidate = candidate_from_entries({"content/img/a.png": b"x"})

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert result.reason == IncompleteMetadata(("name", "author", "description"))
    assert "name, author, description" in result.reason.message


def test_no_content_directory():
    candidate = candidate_from_entries(
        {"icons/i.jpg": b"x"}, {"name": "N", "author": "A", "description": "D"}
    )

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert result.reason == NoContent()
    assert result.reason.kind == "no_content"


def test_only_directory_markers_is_no_files():
    candidate = candidate_from_entries(
        {"content/": b"", "content/img/": b""},
        {"name": "N", "author": "A", "description": "D"},
    )

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert result.reason == NoFiles()
    assert result.reason.kind == "no_files"


def test_only_unrecognized_files_is_no_files():
    candidate = candidate_from_entries(
        {"content/": b"", "content/readme.txt": b"x", "icons/i.jpg": b"x"},
        {"name": "N", "author": "A", "description": "D"},
    )

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert result.reason == NoFiles()


def test_metadata_checked_before_content():
    candidate = candidate_from_entries({}, {"name": "N", "author": "", "description": "D"})

    result = validate_candidate(candidate, FileOwnershipIndex())

    assert isinstance(result.reason, IncompleteMetadata)
    assert result.reason.missing_fields == ("author",)


def test_collision_with_single_owner(make_candidate):
    candidate = make_candidate(["audio/x.ogg"])

    result = validate_candidate(candidate, index_of(X=["audio/x.ogg"]))

    assert result.reason == Collision(frozenset({"X"}))
    assert result.reason.kind == "collision"


def test_collision_reports_every_owner(make_candidate):
    candidate = make_candidate(["audio/x.ogg", "img/y.png", "strings/free.json"])

    result = validate_candidate(
        candidate,
        index_of(X=["audio/x.ogg"], Y=["img/y.png", "img/other.png"], Z=["strings/z.json"]),
    )

    assert isinstance(result.reason, Collision)
    assert result.reason.owner_ids == {"X", "Y"}


def test_collision_uses_content_relative_paths(make_candidate):
    # Index paths never carry the content/ prefix.
    candidate = make_candidate(["img/a.png"])

    assert validate_candidate(candidate, index_of(X=["content/img/a.png"])).ok
    assert not validate_candidate(candidate, index_of(X=["img/a.png"])).ok
