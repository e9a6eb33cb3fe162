from pathlib import Path

import pytest

from cli.main import main
from cli.parser import _expand_abbreviations, build_parser
from photofolio.document import load_document

from .conftest import make_image


def _run(paths, *argv):
    return main(["--root", str(paths.root), "-q", *argv])


def test_expand_abbreviations():
    parser = build_parser()
    assert _expand_abbreviations(["sy", "--dry-run"], parser) == ["sync", "--dry-run"]
    assert _expand_abbreviations(["-v", "--root", "x", "cl"], parser) == ["-v", "--root", "x", "cleanup"]
    assert _expand_abbreviations(["re"], parser) == ["reorder"]
    # Unknown or exact names are left alone
    assert _expand_abbreviations(["zz"], parser) == ["zz"]
    assert _expand_abbreviations(["import"], parser) == ["import"]


def test_no_command_shows_help():
    assert main([]) == 2


def test_import_then_cleanup_and_sync(paths):
    make_image(paths.source_dir("nature") / "sunset.jpg")

    assert _run(paths, "import", "--no-ai") == 0
    assert len(load_document(paths.document)["nature"]["images"]) == 1

    (paths.source_dir("nature") / "sunset.jpg").unlink()
    assert _run(paths, "cleanup") == 0
    assert len(load_document(paths.document)["nature"]["images"]) == 1
    assert _run(paths, "cleanup", "--confirm") == 0
    assert load_document(paths.document)["nature"]["images"] == []

    paths.source_dir("nature").rename(paths.source_dir("wildlife"))
    assert _run(paths, "sync", "--dry-run") == 0
    assert "nature" in load_document(paths.document)
    assert _run(paths, "sync") == 0
    assert list(load_document(paths.document)) == ["wildlife"]


def test_import_unknown_album(paths):
    paths.source_dir("nature").mkdir()
    assert _run(paths, "import", "naturee", "--no-ai") == 1


def test_malformed_document_exits_non_zero(paths):
    paths.document.parent.mkdir(parents=True)
    paths.document.write_text("{broken", encoding="utf-8")
    assert _run(paths, "sync") == 1
    assert _run(paths, "import", "--no-ai") == 1


def test_sync_invalid_rename(paths):
    assert _run(paths, "sync", "--rename", "missing") == 1


def test_sync_exits_non_zero_when_derived_folders_stay_behind(paths, write_document, monkeypatch):
    write_document({"nature": {"title": "Nature", "images": []}})
    paths.source_dir("wildlife").mkdir()
    (paths.full_dir / "nature").mkdir(parents=True)

    def refuse(self, target):
        raise OSError("cross-device link")

    monkeypatch.setattr(Path, "rename", refuse)
    assert _run(paths, "sync") == 1
    assert list(load_document(paths.document)) == ["wildlife"]


def test_cleanup_without_albums_directory(tmp_path):
    assert main(["--root", str(tmp_path), "-q", "cleanup", "--confirm"]) == 1


def test_layout_preview(paths, write_document):
    write_document(
        {
            "nature": {
                "title": "Nature",
                "images": [
                    {"id": "natwide", "technical": {"dimensions": {"width": 1600, "height": 800}}},
                    {"id": "nattall", "technical": {"dimensions": {"width": 600, "height": 900}}},
                ],
            }
        }
    )
    assert _run(paths, "layout", "nature", "--width", "1000") == 0
    assert _run(paths, "layout", "street") == 1


def test_enhance_dry_run_does_not_save(paths, write_document):
    make_image(paths.source_dir("nature") / "sunset.jpg")
    write_document(
        {
            "nature": {
                "title": "Nature",
                "images": [{"id": "natsunset", "metadata": {"originalFilename": "sunset.jpg"}}],
            }
        }
    )
    before = paths.document.read_bytes()
    assert _run(paths, "enhance", "--dry-run", "--no-ai") == 0
    assert paths.document.read_bytes() == before

    assert _run(paths, "enhance", "--no-ai") == 0
    photo = load_document(paths.document)["nature"]["images"][0]
    assert photo["accessibility"]["altText"] == "Photo: Untitled"
    assert photo["metadata"]["originalFilename"] == "sunset.jpg"
    assert "enhancementDate" in photo["metadata"]


def test_keyboard_interrupt_exits_130(paths, monkeypatch):
    def interrupt(self, album=None):
        raise KeyboardInterrupt

    monkeypatch.setattr("photofolio.importer.PhotoImporter.run", interrupt)
    assert _run(paths, "import", "--no-ai") == 130


@pytest.mark.parametrize("argv", [["reorder", "--help"], ["cleanup", "--help"]])
def test_subcommand_help(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 0
