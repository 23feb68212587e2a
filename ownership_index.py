"""
File ownership for Mod Shelf.

Two mods "collide" when both would install the same content-relative path
(e.g. ``audio/lobby.ogg``); the second install would silently overwrite the
first mod's file. Only enabled mods own their paths. A disabled mod keeps its
files on disk, but they are free to be claimed by a new install.

Public API
----------
FileOwnershipIndex.build(enabled)
    -> index mapping path -> owning mod id
index.find_collisions(candidate_paths)
    -> set of owner ids already holding any of those paths
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping

from mod_schema import ModMetadata

_log = logging.getLogger(__name__)


class FileOwnershipIndex(Mapping[str, str]):
    """Read-only mapping of content-relative path -> owning mod id.

    Always rebuilt from the enabled registry, never patched in place.
    """

    def __init__(self, owners: dict[str, str] | None = None):
        self._owners: dict[str, str] = dict(owners or {})

    @classmethod
    def build(cls, enabled: Mapping[str, ModMetadata]) -> FileOwnershipIndex:
        """Record ownership for every file of every enabled mod.

        If two mods claim the same path (only possible with a damaged
        registry), the one iterated later wins. ``enabled`` iterates in the
        insertion order of its backing document, so the tie-break is stable
        across runs.
        """
        owners: dict[str, str] = {}
        for mod_id, metadata in enabled.items():
            for path in metadata.files:
                previous = owners.get(path)
                if previous is not None and previous != mod_id:
                    _log.warning(
                        "Path %s claimed by both %s and %s, keeping %s",
                        path, previous, mod_id, mod_id,
                    )
                owners[path] = mod_id
        return cls(owners)

    def find_collisions(self, candidate_paths: Iterable[str]) -> set[str]:
        return {self._owners[path] for path in candidate_paths if path in self._owners}

    def owner_of(self, path: str) -> str | None:
        return self._owners.get(path)

    def paths_owned_by(self, mod_id: str) -> list[str]:
        return [path for path, owner in self._owners.items() if owner == mod_id]

    def __getitem__(self, path: str) -> str:
        return self._owners[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def __repr__(self) -> str:
        return f"FileOwnershipIndex({self._owners!r})"
