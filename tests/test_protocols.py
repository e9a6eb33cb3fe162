import pytest

from photofolio.protocols import (
    PortfolioPaths,
    atomic_write_text,
    list_album_dirs,
    list_image_files,
    remove_empty_dir,
    rm,
)


def test_portfolio_layout(tmp_path):
    paths = PortfolioPaths.from_root(tmp_path)
    assert paths.document == tmp_path / "data" / "albums.json"
    assert paths.source_dir("nature") == tmp_path / "assets/images/albums/nature"
    assert paths.thumbnail_file("nature", "a.webp") == tmp_path / "assets/images/thumbnails/nature/a.webp"
    assert paths.full_ref("nature", "a.webp") == "assets/images/full/nature/a.webp"


def test_list_album_dirs(tmp_path):
    for name in ("street", "nature", ".hidden"):
        (tmp_path / name).mkdir()
    (tmp_path / "notes.txt").write_text("x")
    assert list_album_dirs(tmp_path) == ["nature", "street"]
    with pytest.raises(FileNotFoundError):
        list_album_dirs(tmp_path / "missing")


def test_list_image_files(tmp_path):
    for name in ("b.JPG", "a.nef", "c.txt", "d.webp"):
        (tmp_path / name).write_bytes(b"")
    (tmp_path / "sub.jpg").mkdir()
    assert list_image_files(tmp_path) == ["a.nef", "b.JPG", "d.webp"]
    assert list_image_files(tmp_path / "missing") == []


def test_rm_and_remove_empty_dir(tmp_path):
    target = tmp_path / "album" / "a.webp"
    target.parent.mkdir()
    target.write_bytes(b"x")

    assert remove_empty_dir(target.parent) is False
    assert rm(target) is True
    assert rm(target) is False
    assert remove_empty_dir(target.parent) is True
    assert remove_empty_dir(target.parent) is False


def test_atomic_write_replaces_content(tmp_path):
    path = tmp_path / "data" / "albums.json"
    atomic_write_text(path, "first")
    atomic_write_text(path, "second")
    assert path.read_text() == "second"
    assert [p.name for p in path.parent.iterdir()] == ["albums.json"]
