"""Orphan cleanup.

Removes document entries whose source photo or source album directory is
gone, together with their derived thumbnail and full-size files. Original
source images are never touched. Photos without a recorded source filename
cannot be verified and are always kept.
"""

from dataclasses import dataclass, field
from logging import Logger
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from .document import Document, Photo, load_document, save_document
from .log import get_logger
from .protocols import (
    PortfolioPaths,
    list_album_dirs,
    list_image_files,
    remove_empty_dir,
    rm,
)

LOGGER = get_logger(__name__)


@dataclass
class CleanupReport:
    """What a cleanup pass found and did."""

    dry_run: bool
    orphaned_albums: List[str] = field(default_factory=list)
    orphaned_photos: List[Tuple[str, Photo]] = field(default_factory=list)
    new_albums: List[Tuple[str, int]] = field(default_factory=list)
    stats: Dict[str, int] = field(
        default_factory=lambda: {
            "albums_checked": 0,
            "photos_checked": 0,
            "orphaned_photos": 0,
            "orphaned_albums": 0,
            "files_removed": 0,
            "errors": 0,
        }
    )

    @property
    def has_orphans(self) -> bool:
        return bool(self.orphaned_albums or self.orphaned_photos)


def derived_files(paths: PortfolioPaths, album_key: str, photo: Photo) -> List[Path]:
    """Thumbnail and full-size files belonging to a photo record."""
    files = []
    for name, locate in (
        ("thumbnail", paths.thumbnail_file),
        ("full", paths.full_file),
    ):
        recorded = photo.get(name)
        if isinstance(recorded, str) and recorded:
            filename = PurePosixPath(recorded).name
        elif photo.get("id"):
            filename = f"{photo['id']}.webp"
        else:
            continue
        files.append(locate(album_key, filename))
    return files


def remove_derived_files(
    paths: PortfolioPaths,
    album_key: str,
    photo: Photo,
    report: CleanupReport,
    logger: Logger = LOGGER,
) -> None:
    for path in derived_files(paths, album_key, photo):
        try:
            if rm(path, logger=logger):
                report.stats["files_removed"] += 1
        except OSError as exc:
            report.stats["errors"] += 1
            logger.warning("Failed to remove %s: %s", path, exc)


def find_new_albums(document: Document, paths: PortfolioPaths) -> List[Tuple[str, int]]:
    """Album directories with images that have no document entry yet."""
    found = []
    for name in list_album_dirs(paths.albums_dir):
        if name in document:
            continue
        count = len(list_image_files(paths.source_dir(name)))
        if count:
            found.append((name, count))
    return found


def cleanup_document(
    document: Document,
    paths: PortfolioPaths,
    albums: Optional[Iterable[str]] = None,
    dry_run: bool = True,
    remove_processed: bool = True,
    show_new_albums: bool = True,
    logger: Logger = LOGGER,
) -> Tuple[Document, CleanupReport]:
    """Find orphaned albums and photos and, unless ``dry_run``, remove them.

    Args:
        document: Albums document; not modified
        paths: Portfolio tree
        albums: Album keys to check; all albums when None or empty
        dry_run: Only report what would be removed
        remove_processed: Delete derived thumbnail/full files of removed entries
        show_new_albums: Also report album directories missing from the document

    Returns:
        The cleaned document and the report

    Raises:
        FileNotFoundError: If the albums directory itself is missing
    """
    if not paths.albums_dir.is_dir():
        raise FileNotFoundError(f"Albums directory not found: {paths.albums_dir}")

    report = CleanupReport(dry_run=dry_run)
    requested = list(albums or [])
    for name in requested:
        if name not in document:
            logger.warning("Album '%s' not found in document", name)
    selected = [k for k in requested if k in document] if requested else list(document)

    cleaned: Document = {}
    for key, album in document.items():
        if key not in selected:
            cleaned[key] = album
            continue

        images = album.get("images", [])
        report.stats["albums_checked"] += 1
        logger.info("Checking album %s (%d photos)", key, len(images))
        source_dir = paths.source_dir(key)

        if not source_dir.is_dir():
            logger.warning("Album directory missing: %s", key)
            report.stats["orphaned_albums"] += 1
            report.orphaned_albums.append(key)
            if dry_run:
                cleaned[key] = album
                continue
            if remove_processed:
                for photo in images:
                    remove_derived_files(paths, key, photo, report, logger=logger)
                for base in (paths.thumbnails_dir, paths.full_dir):
                    remove_empty_dir(base / key, logger=logger)
            logger.info("Removed album %s", key)
            continue

        kept = []
        for photo in images:
            report.stats["photos_checked"] += 1
            original = (photo.get("metadata") or {}).get("originalFilename")
            if not original:
                logger.debug("Photo %s has no original filename, keeping it", photo.get("id"))
                kept.append(photo)
                continue
            if (source_dir / original).is_file():
                kept.append(photo)
                continue

            report.stats["orphaned_photos"] += 1
            report.orphaned_photos.append((key, photo))
            logger.warning(
                "Orphaned photo: %s (%s)", photo.get("title") or photo.get("id"), original
            )
            if dry_run:
                kept.append(photo)
            elif remove_processed:
                remove_derived_files(paths, key, photo, report, logger=logger)

        cleaned[key] = {**album, "images": kept}

    if show_new_albums:
        report.new_albums = find_new_albums(document, paths)
    return cleaned, report


def run_cleanup(
    paths: PortfolioPaths,
    albums: Optional[Iterable[str]] = None,
    dry_run: bool = True,
    remove_processed: bool = True,
    show_new_albums: bool = True,
    logger: Logger = LOGGER,
) -> CleanupReport:
    """Load the document, clean it and persist it when something was removed.

    Raises:
        DocumentError: If the document cannot be read or written
        FileNotFoundError: If the albums directory itself is missing
    """
    document = load_document(paths.document)
    cleaned, report = cleanup_document(
        document,
        paths,
        albums=albums,
        dry_run=dry_run,
        remove_processed=remove_processed,
        show_new_albums=show_new_albums,
        logger=logger,
    )
    if not dry_run and report.has_orphans:
        save_document(cleaned, paths.document)
    return report
