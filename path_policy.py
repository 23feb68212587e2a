"""
Mod Shelf - on-disk layout.

Everything lives under one application data root:

    <root>/
    ├── data/
    │   ├── enabled.json          <- enabled registry (enabled.mods in release builds)
    │   ├── disabled-mods.json    <- disabled registry
    │   └── pending-move.json     <- present only while a mod moves between the two
    ├── content/                  <- installed mod files, paths as recorded in "files"
    │   ├── audio/*.ogg
    │   ├── img/*.png
    │   └── strings/*.json
    └── icons/<id>.jpg            <- optional per-mod icon

Archive entries use the same layout, so an entry path is either under
``content/`` or under ``icons/``.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

from errors import UnsafePathError

CONTENT_PREFIX = "content/"
ICON_DIR = "icons"
DATA_DIR = "data"
DESCRIPTOR_FILENAME = "mod.txt"

ENABLED_DOCUMENT = "enabled.json"
ENABLED_DOCUMENT_RELEASE = "enabled.mods"
DISABLED_DOCUMENT = "disabled-mods.json"
PENDING_MOVE_DOCUMENT = "pending-move.json"

_AUDIO = r"audio/.+\.ogg"
_IMAGE = r"img/.+\.png"
_STRINGS = r"strings/.+\.json"

RECOGNIZED_RE = re.compile(
    rf"^(?:{re.escape(CONTENT_PREFIX)}(?:{_AUDIO}|{_IMAGE}|{_STRINGS})$|{ICON_DIR}/)"
)


def is_safe_relative(path: str) -> bool:
    """False for absolute paths and paths with ``..`` segments."""
    if not path or path.startswith("/") or "\\" in path:
        return False
    return ".." not in path.split("/")


def is_recognized(path: str) -> bool:
    """True for audio/image/strings files under content/ and anything under icons/."""
    return is_safe_relative(path) and RECOGNIZED_RE.match(path) is not None


def is_directory_marker(path: str) -> bool:
    return path.endswith("/")


def is_content_path(path: str) -> bool:
    return path.startswith(CONTENT_PREFIX)


def is_icon_path(path: str) -> bool:
    return path.startswith(ICON_DIR + "/") and not is_directory_marker(path)


def content_relative(path: str) -> str:
    """Strip one leading ``content/`` from an archive path."""
    if path.startswith(CONTENT_PREFIX):
        return path[len(CONTENT_PREFIX):]
    return path


def content_path(root: Path, relpath: str) -> Path:
    """Absolute path of an installed content file.

    Raises ``UnsafePathError`` when ``relpath`` would land outside
    ``<root>/content``.
    """
    base = root / CONTENT_PREFIX.rstrip("/")
    target = base / relpath.replace("/", os.sep)
    if not is_safe_relative(relpath) or not target.resolve().is_relative_to(base.resolve()):
        raise UnsafePathError(relpath)
    return target


def icon_relpath(mod_id: str) -> str:
    return f"{ICON_DIR}/{mod_id}.jpg"


def icon_path(root: Path, mod_id: str) -> Path:
    return root / ICON_DIR / f"{mod_id}.jpg"


def data_path(root: Path, document: str) -> Path:
    return root / DATA_DIR / document


def default_data_root() -> Path:
    override = os.environ.get("MODSHELF_DATA_ROOT")
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "~")).expanduser() / "ModShelf"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "ModShelf"
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "modshelf"
