"""Derived image generation.

Source photos are rendered into the web variants the site serves: a
thumbnail for the grids and a larger "full" image for the lightbox and the
photo page. Both keep the source aspect ratio and are never enlarged.
"""

from dataclasses import dataclass
from logging import Logger
from pathlib import Path
from typing import Tuple, Union

from PIL import Image, ImageOps

from .backends import open_image
from .log import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class VariantSpec:
    """Target constraints for one derived image."""

    max_width: int
    quality: int
    format: str = "WEBP"

    @property
    def extension(self) -> str:
        return {"WEBP": ".webp", "JPEG": ".jpg", "PNG": ".png"}[self.format.upper()]


THUMBNAIL = VariantSpec(max_width=800, quality=85)
FULL = VariantSpec(max_width=2000, quality=90)

# Images sent to the analysis service
ANALYSIS = VariantSpec(max_width=1024, quality=85, format="JPEG")


def fit_width(size: Tuple[int, int], max_width: int) -> Tuple[int, int]:
    """Scale ``size`` down to ``max_width`` keeping the aspect ratio.

    Sizes that already fit are returned unchanged.

    Examples:
        >>> fit_width((4000, 3000), 800)
        (800, 600)
        >>> fit_width((640, 480), 800)
        (640, 480)
    """
    width, height = size
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))


def _prepare_mode(image: Image.Image, output_format: str) -> Image.Image:
    if output_format.upper() == "JPEG":
        if image.mode in ("RGBA", "LA", "P"):
            # Flatten transparency onto white
            rgb_image = Image.new("RGB", image.size, (255, 255, 255))
            if image.mode != "RGBA":
                image = image.convert("RGBA")
            rgb_image.paste(image, mask=image.split()[-1])
            return rgb_image
        if image.mode not in ("RGB", "L"):
            return image.convert("RGB")
        return image
    if image.mode not in ("RGB", "RGBA", "L", "LA"):
        return image.convert("RGBA" if "A" in image.getbands() else "RGB")
    return image


def render_variant(
    src: Union[str, Path],
    dst: Union[str, Path],
    spec: VariantSpec,
    logger: Logger = LOGGER,
) -> Tuple[int, int]:
    """Render one derived image from a source photo.

    The EXIF orientation of the source is applied before resizing, so the
    variant is stored upright.

    Args:
        src: Source image path (any Pillow format, or RAW through rawpy)
        dst: Destination path; parent directories are created
        spec: Size, quality and format of the variant

    Returns:
        ``(width, height)`` of the upright source image

    Raises:
        OSError: If the source cannot be decoded or the variant cannot be written
    """
    dst = Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)

    with open_image(src) as opened:
        image = ImageOps.exif_transpose(opened)
        source_size = image.size

        target = fit_width(source_size, spec.max_width)
        if target != source_size:
            image = image.resize(target, Image.Resampling.LANCZOS)
            logger.debug(
                "Resized %s from %dx%d to %dx%d", src, *source_size, *target
            )

        image = _prepare_mode(image, spec.format)
        image.save(dst, format=spec.format.upper(), quality=spec.quality)

    logger.debug("Wrote %s", dst)
    return source_size

