"""
Mod Shelf - Core Logic

Installs, enables, disables and deletes mods against the registry documents
and the content directory.

Per mod id the states are::

    absent --install--> enabled <--enable/disable--> disabled
    enabled/disabled --delete--> absent

Every operation loads what it needs from disk, changes it and saves it back;
nothing is cached between calls. Callers must rebuild their
FileOwnershipIndex after any operation that touched the enabled partition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from archive_reader import CandidatePackage
from errors import ModAlreadyInstalledError, ModIOError, ModNotFoundError, UnsafePathError
from mod_schema import ModMetadata
from ownership_index import FileOwnershipIndex
from path_policy import CONTENT_PREFIX, content_path, content_relative, icon_path
from registry_store import Partition, RegistryStore

_log = logging.getLogger(__name__)


@dataclass
class ModRecord:
    """An installed mod plus its icon bytes (empty when it has no icon)."""

    metadata: ModMetadata
    icon: bytes = b""

    @property
    def id(self) -> str:
        return self.metadata.id


@dataclass
class Registry:
    enabled: dict[str, ModRecord] = field(default_factory=dict)
    disabled: dict[str, ModRecord] = field(default_factory=dict)


class ModLifecycleManager:
    """
    Main mod lifecycle controller.

    Workflow:
        1. load_registry() to read both partitions with icons resolved
        2. admission.validate_candidate() against ownership_index()
        3. install() / enable() / disable() / delete() to manage mods
    """

    def __init__(
        self,
        data_root: str | Path,
        store: RegistryStore | None = None,
        log_callback: Optional[Callable[[str], None]] = None,
    ):
        self.data_root = Path(data_root)
        self.store = store or RegistryStore(self.data_root)
        self.content_root = self.data_root / CONTENT_PREFIX.rstrip("/")
        self._log_cb = log_callback or _log.info

    # ── Logging ───────────────────────────────────────────────────────

    def log(self, msg: str):
        self._log_cb(msg)

    # ── Loading ───────────────────────────────────────────────────────

    def read_icon(self, mod_id: str) -> bytes:
        path = icon_path(self.data_root, mod_id)
        return path.read_bytes() if path.exists() else b""

    def load_registry(self) -> Registry:
        recovered = self.store.recover()
        if recovered:
            self.log(f"Finished an interrupted enable/disable of {recovered}")

        enabled = self.store.load("enabled")
        disabled = self.store.load("disabled")

        for mod_id in [m for m in disabled if m in enabled]:
            self.log(f"Warning: {mod_id} is listed as both enabled and disabled, keeping enabled")
            del disabled[mod_id]

        registry = Registry(
            enabled={m: ModRecord(meta, self.read_icon(m)) for m, meta in enabled.items()},
            disabled={m: ModRecord(meta, self.read_icon(m)) for m, meta in disabled.items()},
        )
        self.log(
            f"Loaded registry: {len(registry.enabled)} enabled, "
            f"{len(registry.disabled)} disabled"
        )
        return registry

    def ownership_index(self) -> FileOwnershipIndex:
        return FileOwnershipIndex.build(self.store.load("enabled"))

    def _find(self, mod_id: str) -> tuple[Partition, dict[str, ModMetadata]] | None:
        for partition in ("enabled", "disabled"):
            mods = self.store.load(partition)
            if mod_id in mods:
                return partition, mods
        return None

    # ── Install ───────────────────────────────────────────────────────

    def install(self, candidate: CandidatePackage, mod_id: str | None = None) -> ModMetadata:
        """Write a validated candidate to disk and register it as enabled.

        If a write fails, files written so far are removed (and any file they
        replaced is restored) before ModIOError is raised; the registry is not
        touched.
        """
        mod_id = mod_id or candidate.digest
        if not mod_id:
            raise ValueError("install() needs a mod id or a candidate digest")

        found = self._find(mod_id)
        if found:
            raise ModAlreadyInstalledError(mod_id, found[0])

        descriptor = candidate.metadata
        self.log(f"Installing '{descriptor.name}' as {mod_id}...")

        replaced: dict[Path, bytes | None] = {}
        files: list[str] = []
        try:
            for path in candidate.content_files():
                relpath = content_relative(path)
                dst = content_path(self.data_root, relpath)
                self._write_file(dst, candidate.entries[path], replaced)
                if relpath not in files:
                    files.append(relpath)
                self.log(f"  Copied: {relpath}")

            icon_entry = candidate.icon_entry()
            if icon_entry:
                self._write_file(
                    icon_path(self.data_root, mod_id), candidate.entries[icon_entry], replaced
                )
                self.log(f"  Icon: {icon_entry}")
        except (OSError, UnsafePathError) as exc:
            self.log("  Write failed, rolling back...")
            self._roll_back(replaced)
            raise ModIOError(mod_id, f"Could not write files for {mod_id}: {exc}") from exc

        metadata = ModMetadata(
            id=mod_id,
            name=descriptor.name or "",
            author=descriptor.author or "",
            description=descriptor.description or "",
            files=files,
        )
        enabled = self.store.load("enabled")
        enabled[mod_id] = metadata
        self.store.save("enabled", enabled)

        self.log(f"  Successfully installed '{metadata.name}' ({len(files)} files)")
        return metadata

    @staticmethod
    def _write_file(dst: Path, data: bytes, replaced: dict[Path, bytes | None]):
        if dst not in replaced:
            replaced[dst] = dst.read_bytes() if dst.exists() else None
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(data)

    def _roll_back(self, replaced: dict[Path, bytes | None]):
        for dst, previous in replaced.items():
            try:
                if previous is None:
                    dst.unlink(missing_ok=True)
                else:
                    dst.write_bytes(previous)
            except OSError as exc:
                self.log(f"  WARNING: could not roll back {dst}: {exc}")

    # ── Enable / Disable ──────────────────────────────────────────────

    def enable(self, mod_id: str) -> ModMetadata:
        metadata = self.store.move(mod_id, "disabled", "enabled")
        self.log(f"Enabled '{metadata.name}' ({mod_id})")
        return metadata

    def disable(self, mod_id: str) -> ModMetadata:
        metadata = self.store.move(mod_id, "enabled", "disabled")
        self.log(f"Disabled '{metadata.name}' ({mod_id})")
        return metadata

    # ── Delete ────────────────────────────────────────────────────────

    def delete(self, mod_id: str) -> Partition:
        """Remove a mod's files, icon and registry entry.

        Returns the partition the mod was removed from. Files of a disabled
        mod that an enabled mod has since claimed are left in place.
        """
        found = self._find(mod_id)
        if found is None:
            raise ModNotFoundError(mod_id)
        partition, mods = found
        metadata = mods[mod_id]

        self.log(f"Deleting '{metadata.name}' ({mod_id}) from {partition}...")
        index = self.ownership_index()

        targets: list[tuple[str, Path]] = []
        for relpath in metadata.files:
            owner = index.owner_of(relpath)
            if owner is not None and owner != mod_id:
                self.log(f"  Kept: {relpath} (now owned by {owner})")
                continue
            try:
                targets.append((relpath, content_path(self.data_root, relpath)))
            except UnsafePathError as exc:
                raise ModIOError(mod_id, f"Refusing to delete {mod_id}: {exc}") from exc

        removed = 0
        for relpath, fp in targets:
            if not fp.exists():
                self.log(f"  Already missing: {relpath}")
                continue
            try:
                fp.unlink()
            except OSError as exc:
                raise ModIOError(mod_id, f"Could not remove {relpath}: {exc}") from exc
            removed += 1
            self.log(f"  Removed: {relpath}")
            self._prune_empty_dirs(fp.parent)

        try:
            icon_path(self.data_root, mod_id).unlink(missing_ok=True)
        except OSError as exc:
            self.log(f"  WARNING: could not remove icon: {exc}")

        del mods[mod_id]
        self.store.save(partition, mods)

        self.log(f"  Successfully deleted '{metadata.name}' ({removed} files)")
        return partition

    def _prune_empty_dirs(self, directory: Path):
        # Walk up to, but never remove, the content root.
        while (
            directory != self.content_root
            and self.content_root in directory.parents
            and directory.exists()
            and not any(directory.iterdir())
        ):
            directory.rmdir()
            directory = directory.parent
