"""Helpers for creating maildir structures and locating delivery folders."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .types import Category

LOGGER = logging.getLogger(__name__)

MAILDIR_SUBDIRS = ("cur", "new", "tmp")
CATEGORY_PREFIX = "."
DIR_MODE = 0o700


class MaildirError(RuntimeError):
    """Raised when maildir operations fail."""


def ensure_maildir(maildir: Path) -> None:
    """Create the tmp/, new/ and cur/ directories of a single maildir."""

    root = maildir.expanduser()
    _ensure_dir(root)
    for subdir in MAILDIR_SUBDIRS:
        _ensure_dir(root / subdir)


def ensure_maildir_structure(maildir: Path, categories: Iterable[str | Category]) -> None:
    """Ensure the inbox and every category maildir exist below ``maildir``."""

    root = maildir.expanduser()
    ensure_maildir(root)

    for name in dict.fromkeys(_category_name(category) for category in categories):
        ensure_maildir(category_dir(root, name))


def resolve_extension(maildir: Path, extension: str | None) -> Path:
    """Return the effective delivery root for an address extension.

    The extension only retargets delivery when a folder of that name already
    exists below ``maildir``; otherwise mail goes to ``maildir`` itself.
    """

    root = maildir.expanduser()
    if not extension:
        return root
    if "/" in extension or extension in (".", ".."):
        LOGGER.warning("Ignoring extension %r: not a folder name", extension)
        return root
    candidate = root / extension
    if not candidate.exists():
        LOGGER.debug("No folder for extension %r below %s", extension, root)
        return root
    return candidate


def inbox_new_dir(maildir: Path) -> Path:
    """Return the path to the inbox new/ directory."""

    return maildir.expanduser() / "new"


def inbox_tmp_dir(maildir: Path) -> Path:
    """Return the path to the inbox tmp/ directory."""

    return maildir.expanduser() / "tmp"


def category_dir(maildir: Path, category: str | Category) -> Path:
    """Return the base directory for a category (e.g. /Maildir/.Junk)."""

    return maildir.expanduser() / f"{CATEGORY_PREFIX}{_category_name(category)}"


def category_subdir(maildir: Path, category: str | Category, subdir: str) -> Path:
    """Return a tmp/, new/ or cur/ directory inside a category."""

    return category_dir(maildir, category) / subdir


def destination_dir(maildir: Path, category: str | Category | None) -> Path:
    """Return the new/ directory that receives mail for ``category``.

    ``None`` stands for the uncategorised inbox.
    """

    if category is None:
        return inbox_new_dir(maildir)
    return category_subdir(maildir, category, "new")


def _category_name(category: str | Category) -> str:
    return category.value if isinstance(category, Category) else category


def _ensure_dir(path: Path) -> None:
    """Create ``path`` and any missing parents with private permissions.

    ``Path.mkdir(parents=True)`` would create the parents with the default
    mode, so each missing level is created here.
    """

    if not path.parent.exists():
        _ensure_dir(path.parent)
    try:
        path.mkdir(mode=DIR_MODE)
    except FileExistsError:
        if path.is_dir():
            return
        raise MaildirError(f"Error creating {path}: not a directory") from None
    except OSError as exc:
        raise MaildirError(f"Error creating {path}: {exc}") from exc
    LOGGER.info("Created maildir folder %s", path)


__all__ = [
    "MAILDIR_SUBDIRS",
    "MaildirError",
    "ensure_maildir",
    "ensure_maildir_structure",
    "resolve_extension",
    "inbox_new_dir",
    "inbox_tmp_dir",
    "category_dir",
    "category_subdir",
    "destination_dir",
]
