"""
Admission checks for Mod Shelf.

``validate_candidate`` runs four stages in order and stops at the first one
that fails:

1. metadata completeness (name, author, description)
2. content presence (something under content/)
3. non-empty file set (at least one recognized file under content/)
4. no collisions with files owned by enabled mods

The outcome is always returned as an AdmissionResult, never raised, so the
caller can branch on the failure kind. A Collision carries every conflicting
mod id, which is what lets the user disable the right mods and retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Literal, Union

from archive_reader import CandidatePackage
from ownership_index import FileOwnershipIndex
from path_policy import is_content_path

_log = logging.getLogger(__name__)

FailureKind = Literal["incomplete_metadata", "no_content", "no_files", "collision"]


@dataclass(frozen=True)
class IncompleteMetadata:
    missing_fields: tuple[str, ...]
    kind: ClassVar[FailureKind] = "incomplete_metadata"

    @property
    def message(self) -> str:
        labels = ", ".join(self.missing_fields)
        return f"Missing details: {labels}"


@dataclass(frozen=True)
class NoContent:
    kind: ClassVar[FailureKind] = "no_content"

    @property
    def message(self) -> str:
        return "The mod's content directory could not be found"


@dataclass(frozen=True)
class NoFiles:
    kind: ClassVar[FailureKind] = "no_files"

    @property
    def message(self) -> str:
        return "No files were found in the mod's content directory"


@dataclass(frozen=True)
class Collision:
    owner_ids: frozenset[str]
    kind: ClassVar[FailureKind] = "collision"

    @property
    def message(self) -> str:
        return f"Conflicts with {len(self.owner_ids)} installed mod(s)"


AdmissionFailure = Union[IncompleteMetadata, NoContent, NoFiles, Collision]


@dataclass(frozen=True)
class AdmissionResult:
    reason: AdmissionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    def __bool__(self) -> bool:
        return self.ok


ADMITTED = AdmissionResult()


# ── Stages ────────────────────────────────────────────────────────────


def _check_metadata(candidate: CandidatePackage) -> AdmissionFailure | None:
    missing = candidate.metadata.missing_fields()
    return IncompleteMetadata(missing) if missing else None


def _check_content(candidate: CandidatePackage) -> AdmissionFailure | None:
    if any(is_content_path(path) for path in candidate.entries):
        return None
    return NoContent()


def _check_files(candidate: CandidatePackage) -> AdmissionFailure | None:
    return None if candidate.content_files() else NoFiles()


def _check_collisions(
    candidate: CandidatePackage, index: FileOwnershipIndex
) -> AdmissionFailure | None:
    owners = index.find_collisions(candidate.content_relative_paths())
    return Collision(frozenset(owners)) if owners else None


def validate_candidate(
    candidate: CandidatePackage, index: FileOwnershipIndex
) -> AdmissionResult:
    """Decide whether ``candidate`` may be installed against ``index``."""
    for stage in (_check_metadata, _check_content, _check_files):
        failure = stage(candidate)
        if failure is not None:
            _log.info("Rejected %s: %s", candidate.digest or "<candidate>", failure.message)
            return AdmissionResult(failure)

    failure = _check_collisions(candidate, index)
    if failure is not None:
        _log.info(
            "Rejected %s: collides with %s",
            candidate.digest or "<candidate>", sorted(failure.owner_ids),
        )
        return AdmissionResult(failure)

    return ADMITTED
