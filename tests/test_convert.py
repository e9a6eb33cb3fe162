import pytest
from PIL import Image

from photofolio.backends import get_backend, open_image
from photofolio.convert import FULL, THUMBNAIL, VariantSpec, fit_width, render_variant

from .conftest import make_image


def test_fit_width_never_enlarges():
    assert fit_width((4000, 3000), 800) == (800, 600)
    assert fit_width((640, 480), 800) == (640, 480)
    assert fit_width((5000, 1), 800) == (800, 1)


def test_variant_extensions():
    assert THUMBNAIL.extension == ".webp"
    assert FULL.extension == ".webp"
    assert VariantSpec(100, 80, "JPEG").extension == ".jpg"


def test_render_variant_downscales_to_webp(tmp_path):
    source = make_image(tmp_path / "src.jpg", size=(1600, 1200))
    target = tmp_path / "out" / "thumb.webp"

    assert render_variant(source, target, THUMBNAIL) == (1600, 1200)
    with Image.open(target) as image:
        assert image.format == "WEBP"
        assert image.size == (800, 600)


def test_render_variant_applies_orientation(tmp_path):
    exif = Image.Exif()
    exif[274] = 6  # rotated 90 degrees clockwise
    source = make_image(tmp_path / "rotated.jpg", size=(300, 200), exif=exif)

    assert render_variant(source, tmp_path / "upright.webp", FULL) == (200, 300)


def test_render_variant_flattens_transparency_for_jpeg(tmp_path):
    source = tmp_path / "alpha.png"
    Image.new("RGBA", (40, 40), (255, 0, 0, 0)).save(source)
    target = tmp_path / "flat.jpg"

    render_variant(source, target, VariantSpec(100, 80, "JPEG"))
    with Image.open(target) as image:
        assert image.mode == "RGB"


def test_render_variant_rejects_non_images(tmp_path):
    source = tmp_path / "fake.jpg"
    source.write_bytes(b"nope")
    with pytest.raises(OSError):
        render_variant(source, tmp_path / "x.webp", THUMBNAIL)


def test_pillow_formats_need_no_backend(tmp_path):
    source = make_image(tmp_path / "plain.jpg")
    assert get_backend(source) is None
    with open_image(source) as image:
        assert image.size == (64, 48)
