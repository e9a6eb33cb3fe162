"""Photo import.

This module discovers source photos that are not yet in the albums
document, renders their derived images, gathers their metadata and adds
them to their album. Re-running an import over an unchanged tree adds
nothing.
"""

import re
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from logging import Logger
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from tqdm import tqdm

from . import config
from .convert import FULL, THUMBNAIL, render_variant
from .document import (
    Document,
    Photo,
    load_document,
    new_album_entry,
    save_document,
    sort_photos,
    title_from_filename,
)
from .exif import aspect_ratio, camera_name, capture_date, format_settings
from .log import get_logger
from .protocols import PortfolioPaths, list_album_dirs, list_image_files

LOGGER = get_logger(__name__)

SUFFIX_DIGITS = 6


class AlbumNotFoundError(Exception):
    """The requested album has no source directory."""

    def __init__(self, album: str, available: List[str]):
        super().__init__(f"Album folder '{album}' not found")
        self.album = album
        self.available = available


@dataclass(frozen=True)
class PendingPhoto:
    """A source file that will become a new photo record."""

    filename: str
    id: str
    source: Path


def photo_id_stem(filename: str, album_key: str) -> str:
    """Deterministic part of a photo id: album prefix + normalised stem.

    Examples:
        >>> photo_id_stem("IMG_0042.JPG", "nature")
        'natimg0042'
    """
    base = re.sub(r"[^a-z0-9]", "", Path(filename).stem.lower())
    return f"{album_key[:3]}{base}"


def generate_photo_id(
    filename: str, album_key: str, taken: Set[str], now: datetime
) -> str:
    """Build a new document-unique photo id.

    The suffix is the last six digits of the import time in milliseconds,
    bumped until the id is not in ``taken``.
    """
    stem = photo_id_stem(filename, album_key)
    modulus = 10**SUFFIX_DIGITS
    suffix = int(now.timestamp() * 1000) % modulus
    candidate = f"{stem}{suffix:0{SUFFIX_DIGITS}d}"
    while candidate in taken:
        suffix = (suffix + 1) % modulus
        candidate = f"{stem}{suffix:0{SUFFIX_DIGITS}d}"
    return candidate


def is_imported(filename: str, album_key: str, images: Iterable[Photo]) -> bool:
    """Check whether a source file already has a record in the album.

    Records carry their source filename. Older records without one are
    recognised by their id, with or without the uniqueness suffix.
    """
    stem = photo_id_stem(filename, album_key)
    legacy = re.compile(re.escape(stem) + rf"\d{{{SUFFIX_DIGITS}}}")
    for photo in images:
        original = (photo.get("metadata") or {}).get("originalFilename")
        if original:
            if original == filename:
                return True
            continue
        photo_id = str(photo.get("id", ""))
        if photo_id == stem or legacy.fullmatch(photo_id):
            return True
    return False


def all_photo_ids(document: Document) -> Set[str]:
    return {
        str(photo.get("id"))
        for album in document.values()
        for photo in album.get("images", [])
        if photo.get("id") is not None
    }


class PhotoImporter:
    """Imports new source photos into the albums document."""

    def __init__(
        self,
        paths: PortfolioPaths,
        analyzer: Optional[Any] = None,
        concurrency: int = config.IMPORT_CONCURRENCY,
        clock: Callable[[], datetime] = datetime.now,
        progress: bool = True,
        logger: Logger = LOGGER,
    ):
        """
        Args:
            paths: Portfolio tree to work on
            analyzer: Object with an ``analyze(path)`` method returning the
                analysis bag; None skips analysis entirely
            concurrency: Maximum number of photos processed at once
            clock: Source of "now" for ids, fallback dates and timestamps
            progress: Show a tqdm progress bar
        """
        self.paths = paths
        self.analyzer = analyzer
        self.concurrency = max(1, concurrency)
        self.clock = clock
        self.progress = progress
        self.logger = logger
        self.stats: Dict[str, int] = {
            "albums": 0,
            "found": 0,
            "imported": 0,
            "errors": 0,
        }

    def available_albums(self) -> List[str]:
        try:
            return list_album_dirs(self.paths.albums_dir)
        except FileNotFoundError:
            self.logger.warning("No albums directory at %s", self.paths.albums_dir)
            return []

    def find_new_photos(self, document: Document, album_key: str) -> List[PendingPhoto]:
        """List source files of an album that have no record yet.

        Ids are assigned here, in filename order, so that they are unique
        across the document before any work starts.
        """
        images = document.get(album_key, {}).get("images", [])
        taken = all_photo_ids(document)
        now = self.clock()
        pending = []
        source_dir = self.paths.source_dir(album_key)
        for filename in list_image_files(source_dir):
            if is_imported(filename, album_key, images):
                continue
            photo_id = generate_photo_id(filename, album_key, taken, now)
            taken.add(photo_id)
            pending.append(PendingPhoto(filename, photo_id, source_dir / filename))
        return pending

    def _analyze(self, source: Path) -> Optional[Dict[str, Any]]:
        if self.analyzer is None:
            return None
        try:
            return self.analyzer.analyze(source)
        except Exception as exc:
            self.logger.warning("Analysis failed for %s: %s", source.name, exc)
            return None

    def process_photo(self, pending: PendingPhoto, album_key: str) -> Photo:
        """Render the derived images of one photo and build its record.

        The record is only returned once both derived files are written.

        Raises:
            OSError: If the source cannot be decoded or a variant cannot be written
        """
        analysis = self._analyze(pending.source)
        technical = (analysis or {}).get("technical") or {}
        exif = technical.get("exif")

        output_name = f"{pending.id}{THUMBNAIL.extension}"
        width, height = render_variant(
            pending.source, self.paths.thumbnail_file(album_key, output_name), THUMBNAIL
        )
        render_variant(
            pending.source,
            self.paths.full_file(album_key, f"{pending.id}{FULL.extension}"),
            FULL,
        )

        now = self.clock()
        title = title_from_filename(pending.filename)
        alt_text = ((analysis or {}).get("accessibility") or {}).get("altText")
        exif = exif or {}
        return {
            "id": pending.id,
            "title": title,
            "thumbnail": self.paths.thumbnail_ref(album_key, output_name),
            "full": self.paths.full_ref(album_key, f"{pending.id}{FULL.extension}"),
            "date": capture_date(exif) or now.date().isoformat(),
            "accessibility": {"altText": alt_text or f"Photo: {title}"},
            "technical": {
                "camera": camera_name(exif),
                "lens": (exif.get("camera") or {}).get("lens"),
                "settings": format_settings(exif.get("settings")),
                "sceneAnalysis": technical.get("sceneAnalysis"),
                "summary": technical.get("summary"),
                "dimensions": {
                    "width": width,
                    "height": height,
                    "aspectRatio": aspect_ratio(width, height),
                },
            },
            "location": exif.get("location"),
            "metadata": {
                "originalFilename": pending.filename,
                "fileSize": (exif.get("file") or {}).get("size"),
                "captureDate": (exif.get("capture") or {}).get("dateTime"),
                "processingDate": now.isoformat(),
            },
        }

    def _process_all(self, pending: List[PendingPhoto], album_key: str) -> List[Photo]:
        records: Dict[int, Photo] = {}
        executor = ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="import"
        )
        try:
            futures: Dict[Future, int] = {
                executor.submit(self.process_photo, item, album_key): index
                for index, item in enumerate(pending)
            }
            with tqdm(
                total=len(pending),
                desc=f"Importing {album_key}",
                unit="photo",
                dynamic_ncols=True,
                disable=not self.progress,
            ) as pbar:
                for future in as_completed(futures):
                    item = pending[futures[future]]
                    pbar.set_postfix_str(item.filename[:50], refresh=False)
                    try:
                        records[futures[future]] = future.result()
                        self.logger.info("Processed %s", item.filename)
                    except Exception as exc:
                        self.stats["errors"] += 1
                        self.logger.error("Failed to process %s: %s", item.filename, exc)
                    pbar.update(1)
        except KeyboardInterrupt:
            self.logger.warning("Interrupted, cancelling pending photos")
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return [records[index] for index in sorted(records)]

    def import_album(self, document: Document, album_key: str) -> int:
        """Import the new photos of one album into ``document``.

        Returns:
            Number of photos added
        """
        self.stats["albums"] += 1
        pending = self.find_new_photos(document, album_key)
        self.stats["found"] += len(pending)
        if not pending:
            self.logger.info("%s: no new photos to import", album_key)
            return 0

        self.logger.info("%s: found %d new photo(s)", album_key, len(pending))
        records = self._process_all(pending, album_key)
        if records:
            album = document[album_key]
            album["images"] = sort_photos(album.get("images", []) + records)
            self.stats["imported"] += len(records)
            self.logger.info("%s: imported %d photo(s)", album_key, len(records))
        return len(records)

    def run(self, album: Optional[str] = None) -> Dict[str, int]:
        """Import one album, or every album directory when ``album`` is None.

        The document is written once at the end, and only if it changed.

        Raises:
            AlbumNotFoundError: If ``album`` has no source directory
            DocumentError: If the document cannot be read or written
        """
        document = load_document(self.paths.document)

        if album is not None:
            if not self.paths.source_dir(album).is_dir():
                raise AlbumNotFoundError(album, self.available_albums())
            keys = [album]
        else:
            keys = self.available_albums()
            self.logger.info("Found %d album folder(s)", len(keys))

        changed = False
        for key in keys:
            if key not in document:
                self.logger.info("Album '%s' not in document, creating entry", key)
                document[key] = new_album_entry(key)
                changed = True
            try:
                if self.import_album(document, key):
                    changed = True
            except OSError as exc:
                self.stats["errors"] += 1
                self.logger.error("Failed to import album '%s': %s", key, exc)

        if changed:
            save_document(document, self.paths.document)
        return dict(self.stats)

    def close(self) -> None:
        """Release the analyzer's resources."""
        if self.analyzer is not None and hasattr(self.analyzer, "close"):
            self.analyzer.close()
