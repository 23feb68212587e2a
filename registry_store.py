"""
Registry persistence for Mod Shelf.

Two JSON documents, one per partition, each mapping mod id -> metadata.
Documents are always read and written whole. A missing document is an empty
registry; so is a corrupt one (logged, never raised), which makes a damaged
file indistinguishable from a fresh install. That fail-open policy is relied
on by the GUI to start up at all and is covered by tests.

Moving a mod between partitions touches both documents. The move first
writes ``data/pending-move.json`` with everything needed to finish it, so a
crash between the two saves is repaired by ``recover()`` on the next load
instead of leaving the id in both partitions or in neither.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import ValidationError

from errors import ModNotFoundError, StorageCorruptError
from mod_schema import ModMetadata
from path_policy import (
    DISABLED_DOCUMENT,
    ENABLED_DOCUMENT,
    ENABLED_DOCUMENT_RELEASE,
    PENDING_MOVE_DOCUMENT,
    data_path,
)

_log = logging.getLogger(__name__)

Partition = Literal["enabled", "disabled"]
PARTITIONS: tuple[Partition, ...] = ("enabled", "disabled")


class RegistryStore:
    def __init__(self, root: str | Path, *, release_names: bool = False):
        self.root = Path(root)
        self._documents: dict[str, str] = {
            "enabled": ENABLED_DOCUMENT_RELEASE if release_names else ENABLED_DOCUMENT,
            "disabled": DISABLED_DOCUMENT,
        }
        self.pending_move_path = data_path(self.root, PENDING_MOVE_DOCUMENT)

    def document_path(self, partition: Partition) -> Path:
        return data_path(self.root, self._documents[partition])

    # ── Load / Save ───────────────────────────────────────────────────

    def load(self, partition: Partition) -> dict[str, ModMetadata]:
        path = self.document_path(partition)
        if not path.exists():
            return {}
        try:
            return self._parse_document(path.read_bytes())
        except StorageCorruptError as exc:
            _log.warning("Registry %s is corrupt, treating as empty: %s", path.name, exc)
            return {}

    @staticmethod
    def _parse_document(data: bytes) -> dict[str, ModMetadata]:
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageCorruptError(str(exc)) from exc
        if not isinstance(raw, dict):
            raise StorageCorruptError(f"expected an object, got {type(raw).__name__}")

        mods: dict[str, ModMetadata] = {}
        for mod_id, body in raw.items():
            if not isinstance(body, dict):
                raise StorageCorruptError(f"entry {mod_id!r} is not an object")
            try:
                mods[mod_id] = ModMetadata.from_document(mod_id, body)
            except ValidationError as exc:
                raise StorageCorruptError(f"entry {mod_id!r}: {exc}") from exc
        return mods

    def save(self, partition: Partition, mods: dict[str, ModMetadata]):
        data = {mod_id: meta.to_document() for mod_id, meta in mods.items()}
        self._write_json(self.document_path(partition), data)

    @staticmethod
    def _write_json(path: Path, data: object):
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)

    # ── Partition moves ───────────────────────────────────────────────

    def move(self, mod_id: str, source: Partition, target: Partition) -> ModMetadata:
        source_mods = self.load(source)
        metadata = source_mods.get(mod_id)
        if metadata is None:
            raise ModNotFoundError(mod_id, source)

        self._write_json(
            self.pending_move_path,
            {
                "id": mod_id,
                "source": source,
                "target": target,
                "metadata": metadata.to_document(),
            },
        )

        # Copy into the target before removing from the source.
        target_mods = self.load(target)
        target_mods[mod_id] = metadata
        self.save(target, target_mods)

        del source_mods[mod_id]
        self.save(source, source_mods)

        self.pending_move_path.unlink()
        return metadata

    def recover(self) -> str | None:
        """Finish a move interrupted between its two saves.

        Returns the id that was repaired, or None if there was nothing to do.
        """
        if not self.pending_move_path.exists():
            return None

        try:
            marker = json.loads(self.pending_move_path.read_text(encoding="utf-8"))
            mod_id = marker["id"]
            source, target = marker["source"], marker["target"]
            if source not in PARTITIONS or target not in PARTITIONS or source == target:
                raise ValueError(f"bad partitions {source!r} -> {target!r}")
            metadata = ModMetadata.from_document(mod_id, marker["metadata"])
        except (ValueError, KeyError, TypeError) as exc:
            _log.warning("Discarding unreadable pending move marker: %s", exc)
            self.pending_move_path.unlink()
            return None

        target_mods = self.load(target)
        if mod_id not in target_mods:
            target_mods[mod_id] = metadata
            self.save(target, target_mods)

        source_mods = self.load(source)
        if mod_id in source_mods:
            del source_mods[mod_id]
            self.save(source, source_mods)

        self.pending_move_path.unlink()
        _log.info("Recovered interrupted move of %s from %s to %s", mod_id, source, target)
        return mod_id
