"""
Application state for Mod Shelf.

LibraryState is the one object the GUI talks to. It owns the lifecycle
manager, keeps the current enabled/disabled records and the ownership index,
and tells subscribers whenever any of that changes. After every successful
mutation the registry is reloaded and the index rebuilt from scratch.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from admission import AdmissionFailure, AdmissionResult, Collision, validate_candidate
from archive_reader import CandidatePackage, read_candidate
from lifecycle import ModLifecycleManager, ModRecord
from ownership_index import FileOwnershipIndex

_log = logging.getLogger(__name__)

Subscriber = Callable[["LibraryState"], None]


class LibraryState:
    def __init__(self, manager: ModLifecycleManager):
        self.manager = manager
        self.enabled: dict[str, ModRecord] = {}
        self.disabled: dict[str, ModRecord] = {}
        self.index = FileOwnershipIndex()
        self.collisions: frozenset[str] = frozenset()
        self.last_failure: AdmissionFailure | None = None
        self._subscribers: list[Subscriber] = []

    # ── Subscribers ───────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._subscribers):
            callback(self)

    # ── Queries ───────────────────────────────────────────────────────

    def record(self, mod_id: str) -> ModRecord | None:
        return self.enabled.get(mod_id) or self.disabled.get(mod_id)

    def is_enabled(self, mod_id: str) -> bool:
        return mod_id in self.enabled

    # ── Mutations ─────────────────────────────────────────────────────

    def reload(self):
        registry = self.manager.load_registry()
        self.enabled = registry.enabled
        self.disabled = registry.disabled
        self.index = FileOwnershipIndex.build(
            {mod_id: rec.metadata for mod_id, rec in self.enabled.items()}
        )
        self._notify()

    def validate(self, candidate: CandidatePackage) -> AdmissionResult:
        result = validate_candidate(candidate, self.index)
        self.last_failure = result.reason
        if isinstance(result.reason, Collision):
            self.collisions = result.reason.owner_ids
        else:
            self.collisions = frozenset()
        return result

    def add(self, candidate: CandidatePackage, mod_id: str | None = None) -> AdmissionResult:
        """Validate and, if admitted, install ``candidate`` as an enabled mod."""
        result = self.validate(candidate)
        if not result.ok:
            self._notify()
            return result
        self.manager.install(candidate, mod_id)
        self.reload()
        return result

    def add_archive(self, filepath: str | Path) -> AdmissionResult:
        return self.add(read_candidate(filepath))

    def enable(self, mod_id: str):
        self.manager.enable(mod_id)
        self.reload()

    def disable(self, mod_id: str):
        self.manager.disable(mod_id)
        self.reload()

    def delete(self, mod_id: str):
        self.manager.delete(mod_id)
        if mod_id in self.collisions:
            self.collisions = self.collisions - {mod_id}
        self.reload()
