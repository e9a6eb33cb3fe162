from datetime import datetime

from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from photofolio.exif import (
    ExifTag,
    GpsTag,
    aspect_ratio,
    camera_name,
    capture_date,
    extract_exif,
    format_settings,
    parse_exif_datetime,
    technical_summary,
)

from .conftest import make_image


def test_extract_exif_reads_camera_and_capture_time(tmp_path):
    exif = Image.Exif()
    exif[ExifTag.MAKE] = "Canon"
    exif[ExifTag.MODEL] = "EOS R5"
    exif[ExifTag.DATETIME] = "2023:07:14 10:30:00"
    path = make_image(tmp_path / "tagged.jpg", size=(120, 80), exif=exif)

    data = extract_exif(path)

    assert data["camera"]["make"] == "Canon"
    assert data["camera"]["model"] == "EOS R5"
    assert data["capture"]["dateTime"] == "2023:07:14 10:30:00"
    assert data["image"]["width"] == 120
    assert data["image"]["height"] == 80
    assert data["file"]["format"] == "JPEG"
    assert data["file"]["size"] == path.stat().st_size
    assert data["location"] is None
    assert capture_date(data) == "2023-07-14"


def test_extract_exif_without_tags(tmp_path):
    data = extract_exif(make_image(tmp_path / "plain.jpg"))
    assert data["camera"] == {"make": None, "model": None, "lens": None}
    assert capture_date(data) is None


def test_extract_exif_failure_returns_none(tmp_path):
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"garbage")
    assert extract_exif(broken) is None
    assert extract_exif(tmp_path / "missing.jpg") is None


def test_parse_exif_datetime():
    expected = datetime(2023, 7, 14, 10, 30)
    assert parse_exif_datetime("2023:07:14 10:30:00") == expected
    assert parse_exif_datetime("2023-07-14T10:30:00") == expected
    assert parse_exif_datetime(b"2023:07:14 10:30:00\x00") == expected
    assert parse_exif_datetime("0000:00:00 00:00:00") is None
    assert parse_exif_datetime(None) is None


def test_formatting():
    exif = {
        "camera": {"make": "Nikon", "model": "Z6", "lens": "24-70mm f/4"},
        "settings": {
            "shutterSpeed": "1/250s",
            "aperture": "f/4",
            "iso": 400,
            "focalLength": "35mm",
        },
        "image": {"width": 6000, "height": 4000},
    }
    assert camera_name(exif) == "Nikon Z6"
    assert format_settings(exif["settings"]) == "1/250s, f/4, ISO 400, 35mm"
    assert technical_summary(exif) == "Nikon Z6 | 24-70mm f/4 | 1/250s, f/4, ISO 400, 35mm | 6000x4000"
    assert format_settings({}) is None
    assert camera_name(None) is None
    assert technical_summary(None) is None


def test_aspect_ratio():
    assert aspect_ratio(1200, 800) == 1.5
    assert aspect_ratio(0, 800) is None


def _gps_image(path, latitude, longitude):
    exif = Image.Exif()
    exif[ExifTags.IFD.GPSInfo] = {
        GpsTag.LATITUDE_REF: "S",
        GpsTag.LATITUDE: latitude,
        GpsTag.LONGITUDE_REF: "E",
        GpsTag.LONGITUDE: longitude,
    }
    return make_image(path, exif=exif)


def test_extract_exif_reads_location(tmp_path):
    path = _gps_image(
        tmp_path / "gps.jpg",
        (IFDRational(33, 1), IFDRational(30, 1), IFDRational(0, 1)),
        (IFDRational(151, 1), IFDRational(12, 1), IFDRational(36, 1)),
    )
    location = extract_exif(path)["location"]
    assert location["latitude"] == -33.5
    assert location["longitude"] == 151.21
    assert location["altitude"] is None


def test_extract_exif_drops_zero_denominator_gps(tmp_path):
    path = _gps_image(
        tmp_path / "broken_gps.jpg",
        (IFDRational(0, 0),) * 3,
        (IFDRational(1, 1), IFDRational(0, 1), IFDRational(0, 1)),
    )
    data = extract_exif(path)
    assert data["location"] is None
