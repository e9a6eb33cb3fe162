"""EXIF metadata extraction utilities.

Reads camera, exposure, capture-time and GPS information from a source
photo with Pillow. Extraction is best effort: any failure yields ``None``
and the caller falls back to defaults.
"""

import math
import os
from datetime import datetime
from enum import IntEnum
from logging import Logger
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from PIL import ExifTags, Image

from .log import get_logger

LOGGER = get_logger(__name__)


class ExifTag(IntEnum):
    """EXIF tag number constants."""

    MAKE = 271
    MODEL = 272
    ORIENTATION = 274
    DATETIME = 306
    EXPOSURE_TIME = 33434
    F_NUMBER = 33437
    ISO = 34855
    DATETIME_ORIGINAL = 36867
    DATETIME_DIGITIZED = 36868
    FOCAL_LENGTH = 37386
    PIXEL_X_DIMENSION = 40962
    PIXEL_Y_DIMENSION = 40963
    FOCAL_LENGTH_35MM = 41989
    LENS_MODEL = 42036


class GpsTag(IntEnum):
    LATITUDE_REF = 1
    LATITUDE = 2
    LONGITUDE_REF = 3
    LONGITUDE = 4
    ALTITUDE_REF = 5
    ALTITUDE = 6


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def _number(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    # Rationals with a zero denominator come back as NaN
    return number if math.isfinite(number) else None


def _compact(value: float) -> str:
    return f"{value:g}"


def _shutter_speed(exposure: Any) -> Optional[str]:
    seconds = _number(exposure)
    if not seconds or seconds <= 0:
        return None
    if seconds >= 1:
        return f"{_compact(seconds)}s"
    return f"1/{round(1 / seconds)}s"


def _dms_to_degrees(dms: Any, ref: Any) -> Optional[float]:
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    value = degrees + minutes / 60 + seconds / 3600
    if not math.isfinite(value):
        return None
    if _clean_text(ref) in ("S", "W"):
        value = -value
    return round(value, 6)


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` or ISO datetime string."""
    text = _clean_text(value)
    if not text:
        return None
    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            return datetime.strptime(text[:19], fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _location(gps: Dict[int, Any]) -> Optional[Dict[str, Any]]:
    if GpsTag.LATITUDE not in gps or GpsTag.LONGITUDE not in gps:
        return None
    latitude = _dms_to_degrees(gps[GpsTag.LATITUDE], gps.get(GpsTag.LATITUDE_REF))
    longitude = _dms_to_degrees(gps[GpsTag.LONGITUDE], gps.get(GpsTag.LONGITUDE_REF))
    if latitude is None or longitude is None:
        return None
    altitude = _number(gps.get(GpsTag.ALTITUDE))
    if altitude is not None and gps.get(GpsTag.ALTITUDE_REF) in (1, b"\x01"):
        altitude = -altitude
    return {"latitude": latitude, "longitude": longitude, "altitude": altitude}


def extract_exif(
    file_path: Union[str, Path], logger: Logger = LOGGER
) -> Optional[Dict[str, Any]]:
    """Extract the structured EXIF bag used for photo records.

    Args:
        file_path: Path to the source image
        logger: Logger instance for error reporting

    Returns:
        Dictionary with ``camera``, ``settings``, ``image``, ``capture``,
        ``location`` and ``file`` sections, or None if the file cannot be read
    """
    try:
        with Image.open(file_path) as img:
            exif = img.getexif()
            sub = exif.get_ifd(ExifTags.IFD.Exif)
            gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
            width, height = img.size
            file_format = img.format

        def tag(number: int) -> Any:
            # Exposure tags live in the Exif sub-IFD, some writers put them in IFD0
            return sub.get(number, exif.get(number))

        aperture = _number(tag(ExifTag.F_NUMBER))
        focal = _number(tag(ExifTag.FOCAL_LENGTH))
        focal_35 = _number(tag(ExifTag.FOCAL_LENGTH_35MM))
        iso = tag(ExifTag.ISO)
        if isinstance(iso, (tuple, list)):
            iso = iso[0] if iso else None

        captured = None
        for number in (
            ExifTag.DATETIME_ORIGINAL,
            ExifTag.DATETIME_DIGITIZED,
            ExifTag.DATETIME,
        ):
            captured = _clean_text(tag(number))
            if captured:
                break

        return {
            "camera": {
                "make": _clean_text(exif.get(ExifTag.MAKE)),
                "model": _clean_text(exif.get(ExifTag.MODEL)),
                "lens": _clean_text(tag(ExifTag.LENS_MODEL)),
            },
            "settings": {
                "aperture": f"f/{_compact(aperture)}" if aperture else None,
                "shutterSpeed": _shutter_speed(tag(ExifTag.EXPOSURE_TIME)),
                "iso": int(iso) if iso else None,
                "focalLength": f"{_compact(focal)}mm" if focal else None,
                "focalLengthIn35mm": f"{_compact(focal_35)}mm" if focal_35 else None,
            },
            "image": {
                "width": tag(ExifTag.PIXEL_X_DIMENSION) or width,
                "height": tag(ExifTag.PIXEL_Y_DIMENSION) or height,
                "orientation": exif.get(ExifTag.ORIENTATION),
            },
            "capture": {"dateTime": captured},
            "location": _location(gps) if gps else None,
            "file": {
                "size": os.path.getsize(file_path),
                "format": file_format,
            },
        }
    except Exception as exc:
        logger.warning("Failed to extract EXIF data from %s: %s", file_path, exc)
        return None


def capture_date(exif: Optional[Dict[str, Any]]) -> Optional[str]:
    """``YYYY-MM-DD`` capture date from an EXIF bag, if it has a usable one."""
    if not exif:
        return None
    parsed = parse_exif_datetime((exif.get("capture") or {}).get("dateTime"))
    return parsed.date().isoformat() if parsed else None


def camera_name(exif: Optional[Dict[str, Any]]) -> Optional[str]:
    camera = (exif or {}).get("camera") or {}
    if not camera.get("make"):
        return None
    return f"{camera['make']} {camera.get('model') or ''}".strip()


def format_settings(settings: Optional[Dict[str, Any]]) -> Optional[str]:
    """Human-readable exposure line, e.g. ``1/250s, f/2.8, ISO 200, 35mm``."""
    if not settings:
        return None
    parts: List[str] = []
    if settings.get("shutterSpeed"):
        parts.append(settings["shutterSpeed"])
    if settings.get("aperture"):
        parts.append(settings["aperture"])
    if settings.get("iso"):
        parts.append(f"ISO {settings['iso']}")
    if settings.get("focalLength"):
        parts.append(settings["focalLength"])
    return ", ".join(parts) if parts else None


def technical_summary(exif: Optional[Dict[str, Any]]) -> Optional[str]:
    """One-line summary of camera, lens, exposure and dimensions."""
    if not exif:
        return None
    parts: List[str] = []
    camera = exif.get("camera") or {}
    if camera.get("make") and camera.get("model"):
        parts.append(f"{camera['make']} {camera['model']}")
    if camera.get("lens"):
        parts.append(camera["lens"])
    settings = format_settings(exif.get("settings"))
    if settings:
        parts.append(settings)
    image = exif.get("image") or {}
    if image.get("width") and image.get("height"):
        parts.append(f"{image['width']}x{image['height']}")
    return " | ".join(parts)


def aspect_ratio(width: int, height: int) -> Optional[float]:
    if not width or not height:
        return None
    return round(width / height, 2)

