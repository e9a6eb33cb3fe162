import pytest

from photofolio.cleanup import cleanup_document, derived_files, run_cleanup
from photofolio.document import load_document
from photofolio.protocols import PortfolioPaths

from .conftest import make_image


def _photo(photo_id, original=None, key="nature"):
    photo = {
        "id": photo_id,
        "title": photo_id.title(),
        "thumbnail": f"assets/images/thumbnails/{key}/{photo_id}.webp",
        "full": f"assets/images/full/{key}/{photo_id}.webp",
    }
    if original is not None:
        photo["metadata"] = {"originalFilename": original}
    return photo


def _derive(paths, key, photo_id):
    created = []
    for path in (
        paths.thumbnail_file(key, f"{photo_id}.webp"),
        paths.full_file(key, f"{photo_id}.webp"),
    ):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"webp")
        created.append(path)
    return created


@pytest.fixture
def portfolio(paths, write_document):
    """Album with one present photo, one orphan and one unverifiable photo."""
    source = make_image(paths.source_dir("nature") / "kept.jpg")
    write_document(
        {
            "nature": {
                "title": "Nature",
                "images": [
                    _photo("natkept", "kept.jpg"),
                    _photo("natgone", "gone.jpg"),
                    _photo("natlegacy"),
                ],
            }
        }
    )
    for photo_id in ("natkept", "natgone", "natlegacy"):
        _derive(paths, "nature", photo_id)
    return source


def test_derived_files_from_record_or_id(paths):
    assert derived_files(paths, "nature", _photo("abc")) == [
        paths.thumbnail_file("nature", "abc.webp"),
        paths.full_file("nature", "abc.webp"),
    ]
    assert derived_files(paths, "nature", {"id": "xyz"}) == [
        paths.thumbnail_file("nature", "xyz.webp"),
        paths.full_file("nature", "xyz.webp"),
    ]
    assert derived_files(paths, "nature", {}) == []


def test_dry_run_is_the_default_and_changes_nothing(paths, portfolio):
    before = paths.document.read_bytes()
    report = run_cleanup(paths)

    assert report.dry_run
    assert [p["id"] for _, p in report.orphaned_photos] == ["natgone"]
    assert report.stats["orphaned_photos"] == 1
    assert paths.document.read_bytes() == before
    assert paths.thumbnail_file("nature", "natgone.webp").exists()


def test_removes_orphaned_photo_and_derived_files(paths, portfolio):
    report = run_cleanup(paths, dry_run=False)

    images = load_document(paths.document)["nature"]["images"]
    assert [p["id"] for p in images] == ["natkept", "natlegacy"]
    assert report.stats["files_removed"] == 2
    assert not paths.thumbnail_file("nature", "natgone.webp").exists()
    assert not paths.full_file("nature", "natgone.webp").exists()
    assert paths.thumbnail_file("nature", "natkept.webp").exists()
    # Sources are never touched
    assert portfolio.is_file()
    assert [p.name for p in paths.source_dir("nature").iterdir()] == ["kept.jpg"]


def test_photo_without_original_filename_is_never_removed(paths, portfolio):
    portfolio.unlink()
    run_cleanup(paths, dry_run=False)

    images = load_document(paths.document)["nature"]["images"]
    assert [p["id"] for p in images] == ["natlegacy"]
    assert paths.full_file("nature", "natlegacy.webp").exists()


def test_keep_processed_files(paths, portfolio):
    run_cleanup(paths, dry_run=False, remove_processed=False)
    assert len(load_document(paths.document)["nature"]["images"]) == 2
    assert paths.thumbnail_file("nature", "natgone.webp").exists()


def test_orphaned_album_is_dropped(paths, write_document):
    write_document(
        {
            "nature": {"title": "Nature", "images": []},
            "vanished": {"title": "Vanished", "images": [_photo("vanone", "one.jpg", "vanished")]},
        }
    )
    paths.source_dir("nature").mkdir()
    _derive(paths, "vanished", "vanone")

    report = run_cleanup(paths, dry_run=False)

    assert report.orphaned_albums == ["vanished"]
    assert list(load_document(paths.document)) == ["nature"]
    assert not (paths.thumbnails_dir / "vanished").exists()
    assert not (paths.full_dir / "vanished").exists()


def test_album_filter(paths, portfolio, write_document):
    document = load_document(paths.document)
    document["street"] = {"title": "Street", "images": [_photo("strgone", "gone.jpg", "street")]}
    paths.source_dir("street").mkdir()

    cleaned, report = cleanup_document(document, paths, albums=["street"], dry_run=False)

    assert report.stats["albums_checked"] == 1
    assert cleaned["street"]["images"] == []
    assert len(cleaned["nature"]["images"]) == 3
    # The input document is not modified
    assert len(document["street"]["images"]) == 1


def test_reports_new_album_folders(paths, portfolio):
    make_image(paths.source_dir("travel") / "beach.jpg")
    paths.source_dir("empty").mkdir()

    report = run_cleanup(paths)
    assert report.new_albums == [("travel", 1)]
    assert run_cleanup(paths, show_new_albums=False).new_albums == []


def test_missing_albums_root_is_fatal(tmp_path):
    paths = PortfolioPaths.from_root(tmp_path)
    with pytest.raises(FileNotFoundError):
        run_cleanup(paths, dry_run=False)
