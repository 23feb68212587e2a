"""
Tests for RegistryStore: whole-document load/save, fail-open on corruption,
and pending-move recovery.
"""

import json

import pytest

from errors import ModNotFoundError
from mod_schema import ModMetadata
from registry_store import RegistryStore


def meta(mod_id, files=("img/a.png",)):
    return ModMetadata(id=mod_id, name=f"Mod {mod_id}", author="A", description="D", files=list(files))


# ── load / save ──────────────────────────────────────────────────────────────

def test_missing_document_loads_empty(store):
    assert store.load("enabled") == {}
    assert store.load("disabled") == {}


def test_save_then_load(store):
    store.save("enabled", {"a": meta("a"), "b": meta("b", ["audio/x.ogg"])})

    loaded = store.load("enabled")

    assert list(loaded) == ["a", "b"]
    assert loaded["b"].files == ["audio/x.ogg"]
    assert loaded["a"].id == "a"


def test_document_layout(store, data_root):
    store.save("enabled", {"a": meta("a")})
    store.save("disabled", {"b": meta("b")})

    enabled = json.loads((data_root / "data" / "enabled.json").read_text(encoding="utf-8"))
    assert enabled == {"a": {"name": "Mod a", "author": "A", "description": "D", "files": ["img/a.png"]}}
    assert (data_root / "data" / "disabled-mods.json").exists()
    assert not (data_root / "data" / "enabled.json.tmp").exists()


def test_release_document_name(data_root):
    store = RegistryStore(data_root, release_names=True)
    store.save("enabled", {"a": meta("a")})

    assert (data_root / "data" / "enabled.mods").exists()
    assert list(store.load("enabled")) == ["a"]


def test_save_overwrites_not_merges(store):
    store.save("enabled", {"a": meta("a"), "b": meta("b")})
    store.save("enabled", {"c": meta("c")})

    assert list(store.load("enabled")) == ["c"]


def test_partitions_are_independent(store):
    store.save("enabled", {"a": meta("a")})

    assert store.load("disabled") == {}


# ── fail-open on corrupt storage ─────────────────────────────────────────────

@pytest.mark.parametrize(
    "content",
    [
        b"{not json",
        b"[1, 2, 3]",
        b'{"a": "not an object"}',
        b'{"a": {"name": "N"}}',
        b"\xff\xfe\x00garbage",
    ],
)
def test_corrupt_document_loads_empty(store, content, caplog):
    path = store.document_path("enabled")
    path.parent.mkdir(parents=True)
    path.write_bytes(content)

    assert store.load("enabled") == {}
    assert "corrupt" in caplog.text


def test_legacy_md5_key_is_accepted(store):
    path = store.document_path("disabled")
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps({"x": {"md5": "x", "name": "N", "author": "A", "description": "D", "files": []}}),
        encoding="utf-8",
    )

    assert store.load("disabled")["x"].name == "N"


# ── moves ────────────────────────────────────────────────────────────────────

def test_move_between_partitions(store):
    store.save("enabled", {"a": meta("a"), "b": meta("b")})

    moved = store.move("a", "enabled", "disabled")

    assert moved.id == "a"
    assert list(store.load("enabled")) == ["b"]
    assert list(store.load("disabled")) == ["a"]
    assert not store.pending_move_path.exists()


def test_move_missing_id_raises_and_changes_nothing(store):
    store.save("enabled", {"a": meta("a")})

    with pytest.raises(ModNotFoundError):
        store.move("zzz", "enabled", "disabled")

    assert list(store.load("enabled")) == ["a"]
    assert store.load("disabled") == {}
    assert not store.pending_move_path.exists()


def test_recover_without_marker_is_noop(store):
    assert store.recover() is None


def test_recover_after_crash_before_target_write(store):
    store.save("enabled", {"a": meta("a")})
    store._write_json(
        store.pending_move_path,
        {"id": "a", "source": "enabled", "target": "disabled", "metadata": meta("a").to_document()},
    )

    assert store.recover() == "a"

    assert store.load("enabled") == {}
    assert list(store.load("disabled")) == ["a"]
    assert not store.pending_move_path.exists()


def test_recover_after_crash_between_writes(store):
    # Target already written, source not yet: id is in both partitions.
    store.save("enabled", {"a": meta("a")})
    store.save("disabled", {"a": meta("a")})
    store._write_json(
        store.pending_move_path,
        {"id": "a", "source": "enabled", "target": "disabled", "metadata": meta("a").to_document()},
    )

    assert store.recover() == "a"

    assert store.load("enabled") == {}
    assert list(store.load("disabled")) == ["a"]


def test_recover_restores_entry_lost_from_both(store):
    store._write_json(
        store.pending_move_path,
        {"id": "a", "source": "disabled", "target": "enabled", "metadata": meta("a").to_document()},
    )

    store.recover()

    assert store.load("enabled")["a"].files == ["img/a.png"]


def test_unreadable_marker_is_discarded(store):
    store.pending_move_path.parent.mkdir(parents=True)
    store.pending_move_path.write_text("{oops", encoding="utf-8")

    assert store.recover() is None
    assert not store.pending_move_path.exists()
