"""Image backends for source formats Pillow cannot decode on its own.

Camera RAW files (NEF, CR2, ARW) are decoded with rawpy. The embedded JPEG
preview is preferred since it is much faster than demosaicing the sensor
data and is already large enough for the derived variants.
"""

import io
from functools import lru_cache
from logging import Logger
from pathlib import Path
from typing import Dict, Optional, Protocol, Type, Union

from PIL import Image

from .log import get_logger

LOGGER = get_logger(__name__)


@lru_cache(maxsize=None)
def _rawpy_available() -> bool:
    try:
        import rawpy  # noqa: F401

        return True
    except ImportError:
        LOGGER.warning(
            "rawpy is not available. RAW file processing will be disabled. "
            "Install it with: pip install 'photofolio[raw]'"
        )
        return False


class ImageBackend(Protocol):
    """Protocol for source image backends."""

    def can_process(self, file_path: Union[str, Path]) -> bool:
        """Check if this backend can decode the given file."""
        ...

    def open(self, file_path: Union[str, Path]) -> Image.Image:
        """Decode the file into a Pillow image.

        Raises:
            OSError: If the file cannot be decoded
        """
        ...


class RawBackend:
    """Backend for camera RAW files, built on rawpy."""

    def __init__(self, logger: Logger = LOGGER):
        self.logger = logger
        self._rawpy_available = _rawpy_available()

    def can_process(self, file_path: Union[str, Path]) -> bool:
        if not self._rawpy_available:
            return False
        path = Path(file_path)
        return path.suffix.lower() in _BACKENDS and path.is_file()

    def open(self, file_path: Union[str, Path]) -> Image.Image:
        import rawpy

        try:
            with rawpy.imread(str(file_path)) as raw:
                try:
                    thumb = raw.extract_thumb()
                    if thumb.format == rawpy.ThumbFormat.JPEG:
                        image = Image.open(io.BytesIO(thumb.data))
                        image.load()
                    else:
                        image = Image.fromarray(thumb.data)
                    self.logger.debug("Using embedded preview of %s", file_path)
                except (rawpy.LibRawError, ValueError) as preview_error:
                    self.logger.debug(
                        "No usable preview in %s (%s), processing RAW data",
                        file_path,
                        preview_error,
                    )
                    image = Image.fromarray(raw.postprocess())
        except rawpy.LibRawError as exc:
            raise OSError(f"Cannot decode RAW file {file_path}: {exc}") from exc
        return image


# Backend registry
_BACKENDS: Dict[str, Type[ImageBackend]] = {}


def register_backend(extension: str, backend_class: Type[ImageBackend]) -> None:
    """Register an image backend for a file extension (including the dot)."""
    _BACKENDS[extension.lower()] = backend_class


def get_backend(file_path: Union[str, Path]) -> Optional[ImageBackend]:
    """Get a backend able to decode ``file_path``, or None for Pillow formats."""
    backend_class = _BACKENDS.get(Path(file_path).suffix.lower())
    if backend_class is None:
        return None

    backend = backend_class()
    if backend.can_process(file_path):
        return backend
    return None


def open_image(file_path: Union[str, Path]) -> Image.Image:
    """Open any supported source image as a Pillow image.

    Raises:
        OSError: If the file cannot be decoded
    """
    backend = get_backend(file_path)
    if backend is not None:
        return backend.open(file_path)
    image = Image.open(file_path)
    image.load()
    return image


for _extension in (".nef", ".cr2", ".arw", ".raw"):
    register_backend(_extension, RawBackend)
