"""
Shared fixtures and helpers for the Mod Shelf test suite.
"""

import json
import zipfile

import pytest

from archive_reader import candidate_from_entries
from lifecycle import ModLifecycleManager
from registry_store import RegistryStore

COMPLETE_DESCRIPTOR = {"name": "Lobby Pack", "author": "Someone", "description": "New lobby music"}


@pytest.fixture
def data_root(tmp_path):
    """A fresh, empty application data root."""
    root = tmp_path / "appdata"
    root.mkdir()
    return root


@pytest.fixture
def store(data_root):
    return RegistryStore(data_root)


@pytest.fixture
def manager(data_root, store):
    return ModLifecycleManager(data_root, store=store, log_callback=lambda _: None)


@pytest.fixture
def make_candidate():
    """Build a candidate with a complete descriptor from content-relative files.

    ``make_candidate(["img/a.png"])`` yields entries ``content/`` and
    ``content/img/a.png``.
    """

    def _make(files, descriptor=None, extra=None):
        entries = {"content/": b""}
        for relpath in files:
            entries[f"content/{relpath}"] = f"data:{relpath}".encode()
        entries.update(extra or {})
        return candidate_from_entries(entries, descriptor or dict(COMPLETE_DESCRIPTOR))

    return _make


@pytest.fixture
def make_zip(tmp_path):
    """Write a zip archive from ``{member: data}``; dict data becomes mod.txt JSON."""

    def _make(name, members):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for member, data in members.items():
                if isinstance(data, dict):
                    data = json.dumps(data)
                zf.writestr(member, data)
        return path

    return _make
