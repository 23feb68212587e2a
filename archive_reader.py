"""
Archive extraction for Mod Shelf.

Reads a mod archive (.zip/.7z/.rar) fully into memory and hands the rest of
the program a CandidatePackage: recognized entries mapped to their bytes, the
archive's directory markers, and the partial metadata from ``mod.txt``.
Nothing here decides whether a package is installable; that is
``admission.validate_candidate``.
"""

from __future__ import annotations

import hashlib
import logging
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import py7zr
import rarfile

from errors import UnsupportedArchiveError
from mod_schema import ModDescriptor, parse_descriptor
from path_policy import (
    DESCRIPTOR_FILENAME,
    content_relative,
    is_content_path,
    is_directory_marker,
    is_icon_path,
    is_recognized,
    is_safe_relative,
)

_log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".zip", ".7z", ".rar"}


@dataclass
class CandidatePackage:
    """An extracted archive waiting for admission. Never persisted."""

    entries: dict[str, bytes]
    metadata: ModDescriptor = field(default_factory=ModDescriptor)
    digest: str = ""
    source: Path | None = None

    def file_paths(self) -> list[str]:
        """Entry paths that are real files, not directory markers."""
        return [path for path in self.entries if not is_directory_marker(path)]

    def content_files(self) -> list[str]:
        """Archive paths of the files that install under content/."""
        return [
            path for path in self.file_paths()
            if is_content_path(path) and is_recognized(path)
        ]

    def content_relative_paths(self) -> list[str]:
        return [content_relative(path) for path in self.content_files()]

    def icon_entry(self) -> str | None:
        for path in self.file_paths():
            if is_icon_path(path):
                return path
        return None


# ── Low-level archive reading ─────────────────────────────────────────


def _read_zip(filepath: Path) -> dict[str, bytes | None]:
    members: dict[str, bytes | None] = {}
    with zipfile.ZipFile(filepath, "r") as zf:
        for info in zf.infolist():
            members[info.filename] = None if info.is_dir() else zf.read(info)
    return members


def _read_7z(filepath: Path) -> dict[str, bytes | None]:
    members: dict[str, bytes | None] = {}
    with tempfile.TemporaryDirectory() as tmpdir:
        tmppath = Path(tmpdir)
        with py7zr.SevenZipFile(filepath, "r") as sz:
            infos = sz.list()
        with py7zr.SevenZipFile(filepath, "r") as sz:
            sz.extractall(path=tmppath)
        for info in infos:
            if info.is_directory:
                members[info.filename] = None
            else:
                members[info.filename] = (tmppath / info.filename).read_bytes()
    return members


def _read_rar(filepath: Path) -> dict[str, bytes | None]:
    members: dict[str, bytes | None] = {}
    with rarfile.RarFile(filepath, "r") as rf:
        for info in rf.infolist():
            members[info.filename] = None if info.is_dir() else rf.read(info)
    return members


_READERS = {
    ".zip": _read_zip,
    ".7z": _read_7z,
    ".rar": _read_rar,
}


def _normalize(name: str, is_dir: bool) -> str:
    name = name.replace("\\", "/").lstrip("/")
    if is_dir and not name.endswith("/"):
        name += "/"
    return name


# ── Candidate building ────────────────────────────────────────────────


def _descriptor_from(data: bytes | None, origin: str) -> ModDescriptor:
    if data is None:
        return ModDescriptor()
    try:
        return parse_descriptor(data)
    except ValueError as exc:
        _log.warning("Could not read %s in %s: %s", DESCRIPTOR_FILENAME, origin, exc)
        return ModDescriptor()


def _keep_entries(members: dict[str, bytes], origin: str) -> dict[str, bytes]:
    kept: dict[str, bytes] = {}
    for name, data in members.items():
        if not is_safe_relative(name):
            _log.warning("Skipping unsafe entry %r in %s", name, origin)
        elif is_directory_marker(name) or is_recognized(name):
            kept[name] = data
    return kept


def read_candidate(filepath: str | Path) -> CandidatePackage:
    """Read an archive into a CandidatePackage.

    Raises ``UnsupportedArchiveError`` for unknown extensions; archive library
    errors (bad zip, bad 7z, missing unrar tool) propagate unchanged.
    """
    filepath = Path(filepath)
    ext = filepath.suffix.lower()
    reader = _READERS.get(ext)
    if reader is None:
        raise UnsupportedArchiveError(f"Unsupported archive format: {ext or filepath.name}")

    members: dict[str, bytes] = {}
    for name, data in reader(filepath).items():
        members[_normalize(name, data is None)] = b"" if data is None else data

    descriptor = _descriptor_from(members.get(DESCRIPTOR_FILENAME), filepath.name)
    entries = _keep_entries(members, filepath.name)
    digest = hashlib.md5(filepath.read_bytes()).hexdigest()
    _log.info(
        "Read %s: %d entr%s kept of %d",
        filepath.name, len(entries), "y" if len(entries) == 1 else "ies", len(members),
    )
    return CandidatePackage(entries=entries, metadata=descriptor, digest=digest, source=filepath)


def candidate_from_entries(
    entries: dict[str, bytes], descriptor: ModDescriptor | dict | None = None
) -> CandidatePackage:
    """Build a candidate from an in-memory ``path -> bytes`` mapping.

    Entries are taken as given (no filtering). The digest covers paths and
    bytes in sorted order, so equal mappings get equal ids.
    """
    if descriptor is None:
        descriptor = ModDescriptor()
    elif isinstance(descriptor, dict):
        descriptor = ModDescriptor.model_validate(descriptor)

    md5 = hashlib.md5()
    for path in sorted(entries):
        md5.update(path.encode("utf-8"))
        md5.update(b"\0")
        md5.update(entries[path])
    return CandidatePackage(entries=dict(entries), metadata=descriptor, digest=md5.hexdigest())
