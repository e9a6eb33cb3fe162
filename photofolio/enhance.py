"""Backfill enhanced metadata for photos imported without it.

Photos that already carry ``accessibility``, ``technical`` and ``metadata``
are left alone; for the others the source photo is analysed again and the
missing sections are filled in. Existing ``metadata`` keys always survive.
"""

from datetime import datetime
from logging import Logger
from typing import Any, Callable, Dict, Iterable, Optional

from .document import Document, Photo
from .exif import camera_name, format_settings
from .log import get_logger
from .protocols import PortfolioPaths

LOGGER = get_logger(__name__)


def has_enhanced_metadata(photo: Photo) -> bool:
    return bool(photo.get("accessibility") and photo.get("technical") and photo.get("metadata"))


def _dimensions(photo: Photo) -> Optional[Dict[str, Any]]:
    known = (photo.get("technical") or {}).get("dimensions")
    if known:
        return known
    metadata = photo.get("metadata") or {}
    width, height = metadata.get("width"), metadata.get("height")
    if not (width and height):
        return None
    return {"width": width, "height": height, "aspectRatio": round(width / height, 2)}


def enhance_photo(
    photo: Photo, analysis: Dict[str, Any], now: datetime
) -> Photo:
    """Merge one analysis result into a copy of ``photo``.

    Only sections that are missing or empty are generated; hand-written
    alt text and existing technical details are kept.
    """
    technical = analysis.get("technical") or {}
    exif = technical.get("exif") or {}
    enhanced = dict(photo)
    if not photo.get("accessibility"):
        alt_text = (analysis.get("accessibility") or {}).get("altText")
        enhanced["accessibility"] = {
            "altText": alt_text or f"Photo: {photo.get('title') or 'Untitled'}"
        }
    if not photo.get("technical"):
        enhanced["technical"] = {
            "camera": camera_name(exif),
            "lens": (exif.get("camera") or {}).get("lens"),
            "settings": format_settings(exif.get("settings")),
            "sceneAnalysis": technical.get("sceneAnalysis"),
            "summary": technical.get("summary"),
            "dimensions": _dimensions(photo),
        }
    if not photo.get("location"):
        enhanced["location"] = exif.get("location")
    enhanced["metadata"] = {
        "fileSize": (exif.get("file") or {}).get("size"),
        "captureDate": (exif.get("capture") or {}).get("dateTime"),
        **(photo.get("metadata") or {}),
        "enhancementDate": now.isoformat(),
    }
    return enhanced


def enhance_document(
    document: Document,
    paths: PortfolioPaths,
    analyzer: Any,
    albums: Optional[Iterable[str]] = None,
    clock: Callable[[], datetime] = datetime.now,
    logger: Logger = LOGGER,
) -> Dict[str, int]:
    """Fill in enhanced metadata across ``document`` in place.

    Args:
        document: Albums document, modified in place
        paths: Portfolio tree used to find source photos
        analyzer: Object with an ``analyze(path)`` method
        albums: Album keys to process; all albums when None

    Returns:
        Counters ``processed``, ``updated``, ``skipped`` and ``errors``
    """
    stats = {"processed": 0, "updated": 0, "skipped": 0, "errors": 0}

    keys = list(document) if albums is None else list(albums)
    for key in keys:
        album = document.get(key)
        if album is None:
            logger.warning("Album '%s' not found", key)
            continue
        logger.info("Processing album %s (%d photos)", key, len(album.get("images", [])))

        images = []
        for photo in album.get("images", []):
            stats["processed"] += 1
            label = photo.get("title") or photo.get("id")
            if has_enhanced_metadata(photo):
                logger.debug("%s: already enhanced", label)
                stats["skipped"] += 1
                images.append(photo)
                continue

            original = (photo.get("metadata") or {}).get("originalFilename")
            source = paths.source_dir(key) / original if original else None
            if source is None or not source.is_file():
                logger.warning("%s: source image not found", label)
                stats["skipped"] += 1
                images.append(photo)
                continue

            try:
                analysis = analyzer.analyze(source)
            except Exception as exc:
                logger.error("Failed to analyze %s: %s", label, exc)
                stats["errors"] += 1
                images.append(photo)
                continue

            images.append(enhance_photo(photo, analysis, clock()))
            stats["updated"] += 1
            logger.info("Enhanced %s", label)
        album["images"] = images

    return stats
