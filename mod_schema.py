"""
Metadata schema for Mod Shelf.

Mod authors ship a ``mod.txt`` JSON descriptor at the root of their archive:

    {
        "name": "Lobby Music Pack",
        "author": "SomeAuthor",
        "description": "Replaces the lobby tracks."
    }

The descriptor is partial on purpose: whatever is missing is reported by the
admission pipeline rather than rejected here. Once a mod is installed its
metadata gains an ``id`` and the list of content-relative ``files`` it owns;
that is what the registry documents store, keyed by id:

    {
        "<id>": {
            "name": "...",
            "author": "...",
            "description": "...",
            "files": ["audio/lobby.ogg", "img/cover.png"]
        }
    }
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIRED_DESCRIPTOR_FIELDS = ("name", "author", "description")


class ModDescriptor(BaseModel):
    """Partial metadata read from an archive's ``mod.txt``.

    Values that are absent or not strings are kept as ``None`` so the
    admission pipeline can list them as missing.
    """

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    author: str | None = None
    description: str | None = None

    @field_validator("name", "author", "description", mode="before")
    @classmethod
    def _strings_only(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(
            field_name
            for field_name in REQUIRED_DESCRIPTOR_FIELDS
            if not getattr(self, field_name)
        )


class ModMetadata(BaseModel):
    """Metadata of an installed mod, as stored in the registry documents."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    author: str
    description: str
    files: list[str] = Field(default_factory=list)

    @field_validator("files")
    @classmethod
    def _unique_files(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @classmethod
    def from_document(cls, mod_id: str, body: dict[str, Any]) -> ModMetadata:
        """Build from a registry entry; the id is the document key, not a field."""
        return cls.model_validate({**body, "id": mod_id})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"})


def parse_descriptor(data: bytes) -> ModDescriptor:
    """Parse raw ``mod.txt`` bytes into a ModDescriptor.

    Raises ``json.JSONDecodeError`` / ``UnicodeDecodeError`` if the bytes are
    not JSON, ``ValueError`` if the top level is not an object.
    """
    raw = json.loads(data.decode("utf-8-sig"))
    if not isinstance(raw, dict):
        raise ValueError(f"Descriptor must be a JSON object, got {type(raw).__name__}")
    return ModDescriptor.model_validate(raw)
