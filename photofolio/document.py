"""The albums document: loading, saving and common derivations.

The document is a mapping from album key to album entry and is the only
state the pipeline persists. Every command loads it once, transforms the
in-memory copy and saves it once at the end of a successful run.
"""

import json
import re
from datetime import date
from logging import Logger
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .log import get_logger
from .protocols import atomic_write_text

LOGGER = get_logger(__name__)

Document = Dict[str, Dict[str, Any]]
Photo = Dict[str, Any]

# Descriptions for well-known album names; anything else gets a generic one
ALBUM_DESCRIPTIONS = {
    "nature": "Capturing the beauty of landscapes and wildlife",
    "portraits": "Professional portraits and candid moments",
    "events": "Capturing special moments at weddings, parties, and corporate events",
    "wedding": "Beautiful wedding photography and memorable moments",
    "street": "Urban life and street photography",
    "travel": "Adventures and destinations from around the world",
    "architecture": "Stunning buildings and architectural details",
    "macro": "Close-up photography revealing intricate details",
    "black_and_white": "Timeless black and white photography",
    "lifestyle": "Lifestyle and everyday moments",
}


class DocumentError(Exception):
    """The albums document could not be read or written."""


def load_document(path: Path, logger: Logger = LOGGER) -> Document:
    """Load the albums document.

    A missing document is treated as empty. A document that exists but
    cannot be parsed is fatal: continuing would risk overwriting data.

    Raises:
        DocumentError: If the file is unreadable, is not valid JSON or its
            top level is not an object
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("%s not found, starting with an empty document", path)
        return {}
    except OSError as exc:
        raise DocumentError(f"Failed to read {path}: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentError(f"Malformed JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise DocumentError(
            f"Expected an object at the top level of {path}, got {type(data).__name__}"
        )
    for key, album in data.items():
        if not isinstance(album, dict):
            raise DocumentError(f"Album '{key}' in {path} is not an object")
        album.setdefault("images", [])
    return data


def dump_document(document: Document) -> str:
    """Serialize the document the way it is stored on disk."""
    return json.dumps(document, indent=4, ensure_ascii=False, allow_nan=False) + "\n"


def save_document(document: Document, path: Path, logger: Logger = LOGGER) -> None:
    """Persist the whole document atomically.

    Raises:
        DocumentError: If the document cannot be written
    """
    try:
        atomic_write_text(Path(path), dump_document(document))
    except (OSError, TypeError, ValueError) as exc:
        raise DocumentError(f"Failed to save {path}: {exc}") from exc
    logger.info("Saved %s", path)


def title_from_key(key: str) -> str:
    """Build an album title from its key: ``street-life_2024`` -> ``Street Life 2024``."""
    return " ".join(word[:1].upper() + word[1:] for word in re.split(r"[-_]", key))


def title_from_filename(filename: str) -> str:
    """Build a photo title from its source filename."""
    stem = Path(filename).stem
    spaced = re.sub(r"[_-]", " ", stem)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced).strip()


def describe_album(key: str) -> str:
    return ALBUM_DESCRIPTIONS.get(key.lower(), f"A collection of {key} photography")


def new_album_entry(key: str) -> Dict[str, Any]:
    """Create the document entry for an album seen for the first time."""
    return {
        "title": title_from_key(key),
        "description": describe_album(key),
        "cover": f"{key}/cover.jpg",
        "images": [],
    }


def _date_ordinal(value: Any) -> int:
    """Ordinal of an ISO date string; unknown dates sort as oldest."""
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10]).toordinal()
        except ValueError:
            pass
    return 0


def _has_order(photo: Photo) -> bool:
    order = photo.get("order")
    return isinstance(order, (int, float)) and not isinstance(order, bool)


def sort_photos(photos: Iterable[Photo]) -> List[Photo]:
    """Sort photos for display.

    Photos carrying an ``order`` come first, ascending. The rest follow,
    newest ``date`` first. Equal keys keep their relative position.
    """
    photos = list(photos)
    ordered = sorted((p for p in photos if _has_order(p)), key=lambda p: p["order"])
    dated = sorted(
        (p for p in photos if not _has_order(p)),
        key=lambda p: _date_ordinal(p.get("date")),
        reverse=True,
    )
    return ordered + dated


def public_photos(document: Document, tag: Optional[str] = None) -> List[Photo]:
    """Flatten all public albums into one newest-first list.

    Private albums stay reachable by key but are left out here. Each photo
    is copied and annotated with its album title under ``album``.
    """
    photos: List[Photo] = []
    for album in document.values():
        if album.get("isPrivate"):
            continue
        for photo in album.get("images", []):
            if tag is not None and tag not in (photo.get("tags") or []):
                continue
            photos.append({**photo, "album": album.get("title")})
    photos.sort(key=lambda p: _date_ordinal(p.get("date")), reverse=True)
    return photos


def paginate(items: List[Any], page: int, per_page: int = 20) -> Tuple[List[Any], bool]:
    """Return the 1-based ``page`` of ``items`` and whether more pages follow."""
    if page < 1:
        raise ValueError("page must be >= 1")
    start = (page - 1) * per_page
    return items[start : start + per_page], start + per_page < len(items)
