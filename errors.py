"""
Exceptions raised by Mod Shelf lifecycle and storage code.

Admission failures are not exceptions; see ``admission.AdmissionFailure``.
"""

from __future__ import annotations


class ModShelfError(Exception):
    """Base class for all Mod Shelf errors."""


class ModNotFoundError(ModShelfError, KeyError):
    """A lifecycle operation named an id that is not in the required partition."""

    def __init__(self, mod_id: str, partition: str | None = None):
        self.mod_id = mod_id
        self.partition = partition
        where = f" in {partition}" if partition else ""
        super().__init__(f"No mod {mod_id!r}{where}")

    def __str__(self) -> str:
        return self.args[0]


class ModAlreadyInstalledError(ModShelfError):
    def __init__(self, mod_id: str, partition: str):
        self.mod_id = mod_id
        self.partition = partition
        super().__init__(f"Mod {mod_id!r} is already installed ({partition})")


class ModIOError(ModShelfError):
    """Disk write/delete failure during install or delete."""

    def __init__(self, mod_id: str, message: str):
        self.mod_id = mod_id
        super().__init__(message)


class StorageCorruptError(ModShelfError):
    """A registry document could not be parsed. Recovered locally as empty."""


class UnsupportedArchiveError(ModShelfError, ValueError):
    pass


class UnsafePathError(ModShelfError, ValueError):
    """A mod file path would resolve outside the content directory."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path escapes the content directory: {path!r}")
