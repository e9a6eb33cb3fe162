from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from photofolio.document import save_document
from photofolio.protocols import PortfolioPaths

FIXED_NOW = datetime(2024, 5, 17, 12, 0, 0)


def make_image(path: Path, size=(64, 48), color="red", exif=None) -> Path:
    """Write a small JPEG, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGB", size, color)
    if exif is not None:
        image.save(path, format="JPEG", exif=exif)
    else:
        image.save(path, format="JPEG")
    return path


@pytest.fixture
def paths(tmp_path):
    """Empty portfolio tree with an albums directory."""
    portfolio = PortfolioPaths.from_root(tmp_path)
    portfolio.albums_dir.mkdir(parents=True)
    return portfolio


@pytest.fixture
def write_document(paths):
    def _write(document):
        save_document(document, paths.document)
        return paths.document

    return _write


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
