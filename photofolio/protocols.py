"""Filesystem protocols for the portfolio tree.

This module knows where source images, derived images and the albums
document live, and provides the small set of file operations the
reconciliation commands are allowed to perform. Original source images are
only ever listed, never modified.
"""

import os
import tempfile
from dataclasses import dataclass
from logging import Logger
from pathlib import Path
from typing import List, Optional, Union

from .log import get_logger

LOGGER = get_logger(__name__)

# Source image extensions picked up by import and cleanup
IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".tiff",
    ".tif",
    ".raw",
    ".cr2",
    ".nef",
    ".arw",
}

# Document paths are relative to the site root
ASSETS_PREFIX = "assets/images"


@dataclass(frozen=True)
class PortfolioPaths:
    """Locations of everything the pipeline reads and writes."""

    root: Path

    @classmethod
    def from_root(cls, root: Union[str, Path]) -> "PortfolioPaths":
        return cls(Path(root).expanduser().resolve())

    @property
    def document(self) -> Path:
        return self.root / "data" / "albums.json"

    @property
    def images_dir(self) -> Path:
        return self.root / ASSETS_PREFIX

    @property
    def albums_dir(self) -> Path:
        return self.images_dir / "albums"

    @property
    def thumbnails_dir(self) -> Path:
        return self.images_dir / "thumbnails"

    @property
    def full_dir(self) -> Path:
        return self.images_dir / "full"

    @property
    def cache_dir(self) -> Path:
        """Analysis results cached between runs."""
        return self.root / ".cache" / "analysis"

    def source_dir(self, album_key: str) -> Path:
        return self.albums_dir / album_key

    def thumbnail_file(self, album_key: str, name: str) -> Path:
        return self.thumbnails_dir / album_key / name

    def full_file(self, album_key: str, name: str) -> Path:
        return self.full_dir / album_key / name

    @staticmethod
    def thumbnail_ref(album_key: str, name: str) -> str:
        """Document-relative path of a thumbnail."""
        return f"{ASSETS_PREFIX}/thumbnails/{album_key}/{name}"

    @staticmethod
    def full_ref(album_key: str, name: str) -> str:
        """Document-relative path of a full-size image."""
        return f"{ASSETS_PREFIX}/full/{album_key}/{name}"


def is_image_file(file_path: Path) -> bool:
    """Check if a file is a source image based on its extension."""
    return file_path.suffix.lower() in IMAGE_EXTENSIONS


def list_album_dirs(albums_dir: Path) -> List[str]:
    """List album directory names under ``albums_dir``.

    Hidden directories are ignored. The result is sorted so that every
    command walks albums in the same order.

    Raises:
        FileNotFoundError: If ``albums_dir`` does not exist
    """
    if not albums_dir.is_dir():
        raise FileNotFoundError(f"Albums directory not found: {albums_dir}")
    return sorted(
        entry.name
        for entry in albums_dir.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    )


def list_image_files(directory: Path) -> List[str]:
    """List source image filenames directly inside ``directory``."""
    if not directory.is_dir():
        return []
    return sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and is_image_file(entry)
    )


def rm(path: Path, logger: Logger = LOGGER) -> bool:
    """Remove a derived file.

    A file that is already gone is not an error. Any other failure
    propagates to the caller.

    Returns:
        True if a file was removed, False if it did not exist
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug("Already removed: %s", path)
        return False
    logger.info("Removed %s", path)
    return True


def remove_empty_dir(path: Path, logger: Logger = LOGGER) -> bool:
    """Remove ``path`` if it is an empty directory."""
    try:
        if any(path.iterdir()):
            return False
        path.rmdir()
    except FileNotFoundError:
        return False
    logger.info("Removed empty directory %s", path)
    return True


def atomic_write_text(
    path: Path, text: str, encoding: str = "utf-8", logger: Logger = LOGGER
) -> None:
    """Write ``text`` to ``path`` through a temporary file and a rename.

    Readers see either the previous content or the complete new content.
    The temporary file is removed if anything goes wrong.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    tmp_path: Optional[str] = tmp_name
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
        tmp_path = None
        logger.debug("Wrote %s", path)
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
