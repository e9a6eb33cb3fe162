"""Album directory sync.

Compares the album keys of the document with the album directories on
disk and works out which keys were renamed, which lost their directory and
which directories have no album yet. Only renames are applied; everything
else is reported for the operator.
"""

import re
from dataclasses import dataclass, field
from logging import Logger
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .document import Document, load_document, save_document, title_from_key
from .log import get_logger
from .protocols import PortfolioPaths, list_album_dirs

LOGGER = get_logger(__name__)

RENAME = "rename"
MISSING_DIRECTORY = "missing_directory"
MISSING_JSON = "missing_json"
AMBIGUOUS = "ambiguous"
MOVE_FAILED = "move_failed"


class SyncError(Exception):
    """A requested rename does not match the document and the directories."""


@dataclass(frozen=True)
class Change:
    """One difference between the document and the albums directory."""

    type: str
    key: Optional[str] = None
    new_key: Optional[str] = None
    candidates: Tuple[str, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        if self.type == RENAME:
            return f'"{self.key}" -> "{self.new_key}"'
        if self.type == MISSING_JSON:
            return f'New directory found: "{self.key}"'
        if self.type == MISSING_DIRECTORY:
            return f'Directory missing for: "{self.key}"'
        if self.type == MOVE_FAILED:
            return f'Could not move derived files of "{self.key}" to "{self.new_key}"'
        return f'"{self.key}" could be any of: {", ".join(self.candidates)}'


def _words(name: str) -> List[str]:
    return re.split(r"\s+|[-_]", name.lower())


def shared_words(old: str, new: str) -> int:
    """Number of significant words (longer than two letters) of ``old`` found in ``new``."""
    new_words = _words(new)
    return sum(1 for word in _words(old) if len(word) > 2 and word in new_words)


def is_similar(old: str, new: str) -> bool:
    """Two names are similar when they share at least half of their words.

    Examples:
        >>> is_similar("summer-trip", "summer-trip-2024")
        True
        >>> is_similar("portraits", "street")
        False
    """
    common = shared_words(old, new)
    return common > 0 and common >= min(len(_words(old)), len(_words(new))) * 0.5


def detect_changes(
    keys: Sequence[str],
    directories: Sequence[str],
    overrides: Optional[Mapping[str, str]] = None,
) -> List[Change]:
    """Compare document keys with directory names.

    A key without a directory is a rename when exactly one directory lacks
    a key and the counts match, or else when a single unclaimed directory is
    the most similar to it. Ties between equally similar directories are
    reported as ``ambiguous`` rather than guessed. ``overrides`` maps old
    keys to new directories chosen by the operator and takes precedence.

    Raises:
        SyncError: If an override does not name a missing key and a free directory
    """
    keys = list(keys)
    directories = list(directories)
    unmatched = [d for d in directories if d not in keys]
    claimed: Dict[str, str] = {}

    for old, new in (overrides or {}).items():
        if old not in keys or old in directories:
            raise SyncError(f'"{old}" is not an album key without a directory')
        if new not in unmatched or new in claimed:
            raise SyncError(f'"{new}" is not a directory without an album')
        claimed[new] = old

    changes: List[Change] = []
    for key in keys:
        if key in directories:
            continue
        if overrides and key in overrides:
            changes.append(Change(RENAME, key, overrides[key]))
            continue

        free = [d for d in unmatched if d not in claimed]
        if len(unmatched) == 1 and len(directories) == len(keys) and free:
            claimed[free[0]] = key
            changes.append(Change(RENAME, key, free[0]))
            continue

        similar = [d for d in free if is_similar(key, d)]
        if similar:
            best = max(shared_words(key, d) for d in similar)
            top = [d for d in similar if shared_words(key, d) == best]
            if len(top) == 1:
                claimed[top[0]] = key
                changes.append(Change(RENAME, key, top[0]))
            else:
                changes.append(Change(AMBIGUOUS, key, candidates=tuple(top)))
            continue

        changes.append(Change(MISSING_DIRECTORY, key))

    for directory in unmatched:
        if directory not in claimed:
            changes.append(Change(MISSING_JSON, directory))

    return changes


def _rewrite(path: str, old: str, new: str) -> str:
    path = path.replace(f"/{old}/", f"/{new}/")
    if path.startswith(f"{old}/"):
        path = f"{new}/" + path[len(old) + 1 :]
    return path


def rename_album(document: Document, old: str, new: str) -> Document:
    """Return a copy of ``document`` with album ``old`` re-keyed to ``new``.

    The title is regenerated from the new key and the old key is replaced in
    every derived image path and in the cover. The album keeps its position.
    """
    album = dict(document[old])
    album["title"] = title_from_key(new)
    album["images"] = [
        {
            **photo,
            **{
                name: _rewrite(photo[name], old, new)
                for name in ("thumbnail", "full")
                if isinstance(photo.get(name), str)
            },
        }
        for photo in album.get("images", [])
    ]
    if isinstance(album.get("cover"), str):
        album["cover"] = _rewrite(album["cover"], old, new)
    return {
        (new if key == old else key): (album if key == old else value)
        for key, value in document.items()
    }


def apply_changes(document: Document, changes: Sequence[Change]) -> Document:
    """Apply the renames in ``changes``; other change types are report-only."""
    for change in changes:
        if change.type == RENAME:
            document = rename_album(document, change.key, change.new_key)
    return document


def relocate_derived(
    paths: PortfolioPaths, old: str, new: str, logger: Logger = LOGGER
) -> bool:
    """Move the derived image directories of a renamed album.

    Returns:
        False if a directory could not be moved
    """
    moved = True
    for base in (paths.thumbnails_dir, paths.full_dir):
        source, target = base / old, base / new
        if source.is_dir() and not target.exists():
            try:
                source.rename(target)
            except OSError as exc:
                logger.error("Failed to move %s to %s: %s", source, target, exc)
                moved = False
                continue
            logger.info("Moved %s to %s", source, target)
        elif source.is_dir():
            logger.warning("Not moving %s: %s already exists", source, target)
    return moved


def sync_albums(
    paths: PortfolioPaths,
    dry_run: bool = False,
    overrides: Optional[Mapping[str, str]] = None,
    logger: Logger = LOGGER,
) -> List[Change]:
    """Detect album renames and, unless ``dry_run``, apply and persist them.

    Derived directories that cannot be moved are reported as ``move_failed``
    changes; the document already refers to the new key at that point.

    Raises:
        DocumentError: If the document cannot be read or written
        FileNotFoundError: If the albums directory does not exist
        SyncError: If an override is invalid
    """
    document = load_document(paths.document)
    changes = detect_changes(list(document), list_album_dirs(paths.albums_dir), overrides)
    renames = [c for c in changes if c.type == RENAME]

    for change in changes:
        logger.debug("%s: %s", change.type, change.describe())

    if dry_run or not renames:
        return changes

    save_document(apply_changes(document, renames), paths.document)
    for change in renames:
        if not relocate_derived(paths, change.key, change.new_key, logger=logger):
            changes.append(Change(MOVE_FAILED, change.key, change.new_key))
    return changes
