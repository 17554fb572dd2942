"""
receiptit.storage.profile
~~~~~~~~~~~~~~~~~~~~~~~~~
Local profile layout — maps a profile name to its paths:

  ~/.receiptit/<profile>/receiptit.db   — SQLite database of raw records
  ~/.receiptit/<profile>/files/         — uploaded receipt images

Usage::

    from receiptit.storage.profile import resolve_profile

    layout = resolve_profile()              # "default" or RECEIPTIT_PROFILE env var
    layout = resolve_profile("household")   # explicit profile name
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

RECEIPTIT_HOME  = Path.home() / ".receiptit"
DEFAULT_PROFILE = "default"
DB_FILENAME     = "receiptit.db"

# Profile names: lowercase alphanumeric + hyphens + underscores, 1–64 chars
_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


@dataclass(frozen=True)
class ProfileLayout:
    """All paths belonging to a single local profile."""
    name:      str
    root:      Path   # ~/.receiptit/<name>/
    db_path:   Path   # root/receiptit.db
    files_dir: Path   # root/files/

    def create_dirs(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.files_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_PROFILE

    @property
    def exists(self) -> bool:
        """True if the db file has been created."""
        return self.db_path.exists()


def resolve_profile(
    profile: str | None = None,
    *,
    env_var: bool = True,
    home: Path | None = None,
) -> ProfileLayout:
    """
    Resolve a profile name to its layout.

    Priority order:
      1. Explicit ``profile`` argument
      2. ``RECEIPTIT_PROFILE`` environment variable (when env_var=True)
      3. ``"default"``
    """
    name = (
        profile
        or (os.environ.get("RECEIPTIT_PROFILE") if env_var else None)
        or DEFAULT_PROFILE
    )
    error = validate_profile_name(name)
    if error:
        raise ValueError(f"Invalid profile name {name!r}: {error}")
    root = (home or RECEIPTIT_HOME) / name
    return ProfileLayout(
        name=name,
        root=root,
        db_path=root / DB_FILENAME,
        files_dir=root / "files",
    )


def layout_from_db_path(db_path: Path) -> ProfileLayout:
    """Infer a layout rooted in the directory of an explicit db path."""
    db_path = db_path.resolve()
    parent  = db_path.parent
    name = parent.name if db_path.name == DB_FILENAME else db_path.stem
    return ProfileLayout(
        name=name,
        root=parent,
        db_path=db_path,
        files_dir=parent / "files",
    )


def validate_profile_name(name: str) -> str | None:
    """
    Validate a proposed profile name.
    Returns an error message string on failure, None on success.
    """
    if not name or not name.strip():
        return "Name cannot be empty."
    if not _NAME_RE.match(name):
        return (
            "Use only lowercase letters, digits, hyphens and underscores. "
            "Must start with a letter or digit (max 64 characters)."
        )
    return None


def list_profiles(home: Path | None = None) -> list[ProfileLayout]:
    """
    Scan the receiptit home for profile subdirectories.
    Returns layouts sorted: default first, then alphabetically.
    """
    home = home or RECEIPTIT_HOME
    if not home.exists():
        return []

    layouts = [
        ProfileLayout(
            name=subdir.name,
            root=subdir,
            db_path=subdir / DB_FILENAME,
            files_dir=subdir / "files",
        )
        for subdir in home.iterdir()
        if subdir.is_dir()
    ]
    layouts.sort(key=lambda l: (0 if l.is_default else 1, l.name))
    return layouts


__all__ = [
    "RECEIPTIT_HOME",
    "DEFAULT_PROFILE",
    "ProfileLayout",
    "resolve_profile",
    "layout_from_db_path",
    "validate_profile_name",
    "list_profiles",
]
